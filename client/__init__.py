"""Client package for netprobe.

Contains the initiator side of the handshake and the probe lifecycle:
- handshake: client_send_hello_wait_hello_rsp, client_send_hi_wait_hi_rsp, client_handshake
- runner: Client, run_client
"""

from client.handshake import (
    client_handshake,
    client_send_hello_wait_hello_rsp,
    client_send_hi_wait_hi_rsp,
)
from client.runner import Client, run_client

__all__ = [
    "client_send_hello_wait_hello_rsp",
    "client_send_hi_wait_hi_rsp",
    "client_handshake",
    "Client",
    "run_client",
]
