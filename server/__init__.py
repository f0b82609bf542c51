"""Server package for netprobe.

Contains the responder side of the handshake and the accept loop:
- handshake: server_wait_for_hello, server_send_hello_rsp_wait_hi, server_handshake
- runner: Server
"""

from server.handshake import (
    server_handshake,
    server_send_hello_rsp_wait_hi,
    server_wait_for_hello,
)
from server.runner import Server

__all__ = [
    "server_wait_for_hello",
    "server_send_hello_rsp_wait_hi",
    "server_handshake",
    "Server",
]
