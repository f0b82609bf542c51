"""Protocol definitions for netprobe.

Contains:
- MsgType enum for handshake and RPC message types
- Stream Protocol for type checking
- Timing constants for dialing, handshake, probing and accept
- Logging configuration
"""

import logging
import os
from enum import IntEnum
from typing import Protocol

# TRACE logging level (below DEBUG)
TRACE = 5
logging.addLevelName(TRACE, "TRACE")

# Probes between periodic latency summaries (configurable via envvar, 0 disables)
LOG_SUMMARY_INTERVAL = max(0, int(os.environ.get("NETPROBE_SUMMARY_INTERVAL", "60")))


class MsgType(IntEnum):
    """Message types on the wire."""

    HELLO = 0x01
    HELLO_RSP = 0x02
    HI = 0x03
    HI_RSP = 0x04
    REQUEST = 0x10
    RESPONSE = 0x11
    ECHO = 0x20


class Stream(Protocol):
    """Protocol for byte stream operations needed by the handshake and RPC layer.

    read() returns fewer bytes than requested when the timeout expires.
    A timeout of None blocks until data arrives.
    """

    timeout: float | None

    def write(self, data: bytes, /) -> int | None: ...
    def read(self, size: int = ..., /) -> bytes: ...
    def close(self) -> None: ...


PROTOCOL_VERSION = "v1"
CHALLENGE_SIZE = 16

DEFAULT_LISTEN = ":5353"

# Default timing constants
HANDSHAKE_TIMEOUT_S = 5.0  # Bound on each handshake read
RECONNECT_DELAY_S = 30.0  # Client waits this long before redialing
DEFAULT_PROBE_INTERVAL_S = 10.0  # Client sends an echo at this interval
ACCEPT_POLL_S = 1.0  # Accept wakes up this often to check for shutdown
ACCEPT_ERROR_BACKOFF_S = 0.1  # Pause after a failed accept
