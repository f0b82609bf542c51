"""Common modules for netprobe.

This package contains shared code used by both client and server:
- protocol: MsgType enum, timing constants, Stream Protocol
- connection: Role/State enums, Connection, handshake exceptions
- message: Frame encoding/decoding
- encoding: Typed messages and the Codec
- auth: Credential checksum and challenge generation
- io: SocketStream and deadline-scoped reads
- transport: Dial and listen
- config: ProbeConfig and address parsing
"""

from common.config import ConfigError, Mode, ProbeConfig
from common.connection import (
    AuthenticationFailed,
    AuthenticationRejected,
    Connection,
    HandshakeError,
    HandshakeTimeout,
    InvalidTransition,
    ProtocolError,
    Role,
    State,
)
from common.encoding import Codec, EncodingError, ReadTimeout, TransportError
from common.protocol import (
    CHALLENGE_SIZE,
    DEFAULT_PROBE_INTERVAL_S,
    HANDSHAKE_TIMEOUT_S,
    PROTOCOL_VERSION,
    RECONNECT_DELAY_S,
    MsgType,
    Stream,
)

__all__ = [
    # Protocol
    "MsgType",
    "Stream",
    "PROTOCOL_VERSION",
    "CHALLENGE_SIZE",
    "HANDSHAKE_TIMEOUT_S",
    "RECONNECT_DELAY_S",
    "DEFAULT_PROBE_INTERVAL_S",
    # Connection
    "Role",
    "State",
    "Connection",
    "Codec",
    # Config
    "Mode",
    "ProbeConfig",
    # Exceptions
    "AuthenticationFailed",
    "AuthenticationRejected",
    "ConfigError",
    "EncodingError",
    "HandshakeError",
    "HandshakeTimeout",
    "InvalidTransition",
    "ProtocolError",
    "ReadTimeout",
    "TransportError",
]
