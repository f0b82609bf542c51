"""Client-side handshake functions for netprobe.

Implements the initiator side of the mutual challenge-response handshake:
  1. Send Hello with a fresh challenge, wait for HelloResponse
  2. Check the server's proof for our challenge
  3. Send Hi with our proof for the server's challenge, wait for HiResponse
"""

import logging

from common.auth import checksum, new_challenge, verify
from common.connection import (
    AuthenticationFailed,
    AuthenticationRejected,
    HandshakeTimeout,
    ProtocolError,
)
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
from common.protocol import HANDSHAKE_TIMEOUT_S, PROTOCOL_VERSION, Stream

logger = logging.getLogger(__name__)


def client_send_hello_wait_hello_rsp(
    stream: Stream,
    codec: Codec,
    secret: str,
    timeout_s: float = HANDSHAKE_TIMEOUT_S,
) -> HelloResponse:
    """Send Hello and wait for the server's HelloResponse.

    Returns the HelloResponse once the server has proven it holds the secret.

    Raises:
        HandshakeTimeout: No HelloResponse within timeout_s.
        ProtocolError: HelloResponse malformed.
        AuthenticationFailed: Server's checksum does not match.
        TransportError: Stream failed.
    """
    hello = Hello(version=PROTOCOL_VERSION, challenge=new_challenge())
    codec.write(stream, hello)
    logger.debug("Client: sent Hello")

    try:
        hello_rsp = read_within(stream, codec, HelloResponse, timeout_s)
    except ReadTimeout:
        raise HandshakeTimeout(f"Client: timeout ({timeout_s}s) waiting for HelloResponse")
    except EncodingError as e:
        raise ProtocolError(f"Client: invalid HelloResponse: {e}") from e

    if not verify(secret, hello.challenge, hello_rsp.checksum):
        raise AuthenticationFailed("Client: server failed to prove it holds the secret")

    logger.debug("Client: server proof accepted")
    return hello_rsp


def client_send_hi_wait_hi_rsp(
    stream: Stream,
    codec: Codec,
    secret: str,
    server_challenge: str,
    timeout_s: float = HANDSHAKE_TIMEOUT_S,
) -> None:
    """Send Hi with our proof and wait for the server's verdict.

    Raises:
        HandshakeTimeout: No HiResponse within timeout_s.
        ProtocolError: HiResponse malformed.
        AuthenticationRejected: Server rejected our proof.
        TransportError: Stream failed.
    """
    codec.write(stream, Hi(checksum=checksum(secret, server_challenge)))
    logger.debug("Client: sent Hi")

    try:
        hi_rsp = read_within(stream, codec, HiResponse, timeout_s)
    except ReadTimeout:
        raise HandshakeTimeout(f"Client: timeout ({timeout_s}s) waiting for HiResponse")
    except EncodingError as e:
        raise ProtocolError(f"Client: invalid HiResponse: {e}") from e

    if not hi_rsp.welcome:
        raise AuthenticationRejected("Client: server rejected our proof")


def client_handshake(
    stream: Stream,
    codec: Codec,
    secret: str,
    timeout_s: float = HANDSHAKE_TIMEOUT_S,
) -> None:
    """Perform the initiator side of the handshake.

    1. Send Hello with a fresh challenge
    2. Wait for HelloResponse (up to timeout_s) and verify the server's proof
    3. Send Hi with our proof for the server's challenge
    4. Wait for HiResponse (up to timeout_s)

    Returns once both sides are authenticated.
    Raises HandshakeError (or TransportError) on failure; the caller
    owns the stream and must close it.
    """
    hello_rsp = client_send_hello_wait_hello_rsp(stream, codec, secret, timeout_s)
    client_send_hi_wait_hi_rsp(stream, codec, secret, hello_rsp.challenge, timeout_s)
    logger.info("Client: handshake complete")
