"""Application layer for netprobe.

This package handles traffic after the handshake completes:
- Request dispatch (Dispatcher, RpcClient)
- The Echo operation
- Probe results and latency statistics
"""

from session.dispatch import Dispatcher, RpcClient, RpcError
from session.echo import ECHO_METHOD, echo, new_dispatcher
from session.result import LatencyStats, ProbeResult, ProbeSummary, compute_latency_stats

__all__ = [
    "ECHO_METHOD",
    "Dispatcher",
    "LatencyStats",
    "ProbeResult",
    "ProbeSummary",
    "RpcClient",
    "RpcError",
    "compute_latency_stats",
    "echo",
    "new_dispatcher",
]
