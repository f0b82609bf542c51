"""Server-side handshake functions for netprobe.

Implements the responder side of the mutual challenge-response handshake:
  1. Wait for Hello from client
  2. Send HelloResponse with our proof and a fresh challenge
  3. Wait for Hi and answer with HiResponse
"""

import logging

from common.auth import checksum, new_challenge, verify
from common.connection import AuthenticationFailed, HandshakeTimeout, ProtocolError
from common.encoding import (
    Codec,
    EncodingError,
    Hello,
    HelloResponse,
    Hi,
    HiResponse,
    ReadTimeout,
)
from common.io import read_within
from common.protocol import CHALLENGE_SIZE, HANDSHAKE_TIMEOUT_S, PROTOCOL_VERSION, Stream

logger = logging.getLogger(__name__)


def server_wait_for_hello(
    stream: Stream,
    codec: Codec,
    timeout_s: float = HANDSHAKE_TIMEOUT_S,
) -> Hello:
    """Wait for Hello from client.

    Returns the Hello on success.
    Raises HandshakeTimeout on timeout, ProtocolError on a malformed
    Hello, an unknown protocol version or a challenge of the wrong length.
    """
    try:
        hello = read_within(stream, codec, Hello, timeout_s)
    except ReadTimeout:
        raise HandshakeTimeout(f"Server: timeout ({timeout_s}s) waiting for Hello")
    except EncodingError as e:
        raise ProtocolError(f"Server: invalid Hello: {e}") from e

    if hello.version != PROTOCOL_VERSION:
        raise ProtocolError(f"Server: unsupported protocol version {hello.version!r}")
    if len(hello.challenge) != CHALLENGE_SIZE:
        raise ProtocolError(
            f"Server: challenge must be {CHALLENGE_SIZE} characters, got {len(hello.challenge)}"
        )

    logger.debug(f"Server: received Hello (version={hello.version})")
    return hello


def server_send_hello_rsp_wait_hi(
    stream: Stream,
    codec: Codec,
    secret: str,
    client_challenge: str,
    timeout_s: float = HANDSHAKE_TIMEOUT_S,
) -> tuple[str, Hi]:
    """Send HelloResponse and wait for Hi.

    Returns (our_challenge, hi).
    Raises HandshakeTimeout on timeout, ProtocolError on a malformed Hi.
    """
    hello_rsp = HelloResponse(
        checksum=checksum(secret, client_challenge),
        challenge=new_challenge(),
    )
    codec.write(stream, hello_rsp)
    logger.debug("Server: sent HelloResponse")

    try:
        hi = read_within(stream, codec, Hi, timeout_s)
    except ReadTimeout:
        raise HandshakeTimeout(f"Server: timeout ({timeout_s}s) waiting for Hi")
    except EncodingError as e:
        raise ProtocolError(f"Server: invalid Hi: {e}") from e

    return hello_rsp.challenge, hi


def server_handshake(
    stream: Stream,
    codec: Codec,
    secret: str,
    timeout_s: float = HANDSHAKE_TIMEOUT_S,
) -> None:
    """Perform the responder side of the handshake.

    1. Wait for Hello (up to timeout_s)
    2. Send HelloResponse with our proof and a fresh challenge
    3. Wait for Hi (up to timeout_s)
    4. Send HiResponse; welcome is False if the client's proof is wrong

    Returns once the client is authenticated.
    Raises AuthenticationFailed (after sending welcome=False) when the
    client's proof does not match; the caller must then close the stream.
    """
    hello = server_wait_for_hello(stream, codec, timeout_s)
    our_challenge, hi = server_send_hello_rsp_wait_hi(
        stream, codec, secret, hello.challenge, timeout_s
    )

    welcome = verify(secret, our_challenge, hi.checksum)
    codec.write(stream, HiResponse(welcome=welcome))
    if not welcome:
        raise AuthenticationFailed("Server: client failed to prove it holds the secret")

    logger.debug("Server: sent HiResponse, client authenticated")
