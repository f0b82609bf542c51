"""Credential checksum for the netprobe handshake.

Each side proves it holds the shared secret by returning
checksum(secret, challenge) for a challenge the other side chose.
"""

import hashlib
import hmac
import secrets
import string

from common.protocol import CHALLENGE_SIZE

CHALLENGE_ALPHABET = string.ascii_letters + string.digits


def checksum(secret: str, challenge: str) -> bytes:
    """Return SHA-256(secret || challenge). Secret first, then challenge."""
    md = hashlib.sha256()
    md.update(secret.encode("utf-8"))
    md.update(challenge.encode("utf-8"))
    return md.digest()


def verify(secret: str, challenge: str, tag: bytes) -> bool:
    """Check a peer's tag against our own checksum in constant time."""
    return hmac.compare_digest(tag, checksum(secret, challenge))


def new_challenge(size: int = CHALLENGE_SIZE) -> str:
    """Generate a fresh random printable challenge."""
    return "".join(secrets.choice(CHALLENGE_ALPHABET) for _ in range(size))
