"""Transport setup for netprobe.

Contains:
- dial: Open a client connection through pyserial's socket:// handler
- listen: Bind the server's listening socket
"""

import logging
import socket

import serial

from common.config import parse_address
from common.encoding import TransportError
from common.protocol import ACCEPT_POLL_S

logger = logging.getLogger(__name__)


def dial(addr: str) -> serial.SerialBase:
    """Open a blocking connection to addr.

    The connect timeout is pyserial's own: its socket:// handler gives up after 5s.

    Raises TransportError if the connection cannot be established.
    """
    host, port = parse_address(addr)
    if ":" in host:
        host = f"[{host}]"
    url = f"socket://{host or 'localhost'}:{port}"
    try:
        stream = serial.serial_for_url(url, timeout=None, write_timeout=None)
    except (serial.SerialException, OSError) as e:
        raise TransportError(f"Dial {addr} failed: {e}") from e
    logger.debug(f"Connected to {url}")
    return stream


def listen(addr: str) -> socket.socket:
    """Bind and listen on addr. Returns the listening socket.

    The socket polls with ACCEPT_POLL_S so an accept loop can notice
    shutdown even if the socket is never closed under it.

    Raises OSError if the address cannot be bound.
    """
    host, port = parse_address(addr)
    family = socket.AF_INET6 if ":" in host else socket.AF_INET
    listener = socket.create_server((host, port), family=family)
    listener.settimeout(ACCEPT_POLL_S)
    logger.info(f"Listening on {listener.getsockname()}")
    return listener
