"""Client lifecycle for netprobe.

Contains:
- Client: One remote target (connect, echo, probe, close)
- run_client: Dial, authenticate, probe, and redial after failures

One run_client loop runs per remote, each in its own thread. The
loops share nothing but the read-only secret and codec.
"""

import logging
import threading
import time

from client.handshake import client_handshake
from common.connection import Connection, HandshakeError, Role, State
from common.encoding import Codec, Echo, EncodingError, TransportError
from common.protocol import (
    DEFAULT_PROBE_INTERVAL_S,
    HANDSHAKE_TIMEOUT_S,
    LOG_SUMMARY_INTERVAL,
    RECONNECT_DELAY_S,
)
from common.transport import dial
from session.dispatch import RpcClient, RpcError
from session.echo import ECHO_METHOD
from session.result import ProbeResult, ProbeSummary

logger = logging.getLogger(__name__)


class Client:
    """Probe client for a single remote echo server.

    With a secret, every connection is authenticated before use.
    Without one, the handshake is skipped.
    """

    def __init__(
        self,
        addr: str,
        secret: str | None = None,
        codec: Codec | None = None,
        handshake_timeout_s: float = HANDSHAKE_TIMEOUT_S,
    ) -> None:
        self.addr = addr
        self.secret = secret or None
        self.codec = codec or Codec()
        self.handshake_timeout_s = handshake_timeout_s
        self.conn: Connection | None = None
        self._rpc: RpcClient | None = None

    @property
    def connected(self) -> bool:
        return self.conn is not None and self.conn.state == State.PROBING

    def connect(self) -> Connection:
        """Dial the remote and authenticate if a secret is configured.

        Returns the Connection in PROBING state.
        Raises TransportError or HandshakeError; the transport is closed
        before either propagates.
        """
        self.close()
        stream = dial(self.addr)
        conn = Connection(remote=self.addr, role=Role.CLIENT, stream=stream)
        try:
            if self.secret is not None:
                conn.advance(State.AUTHENTICATING)
                client_handshake(stream, self.codec, self.secret, self.handshake_timeout_s)
                conn.advance(State.AUTHENTICATED)
            conn.advance(State.PROBING)
        except BaseException:
            conn.close()
            raise

        self.conn = conn
        self._rpc = RpcClient(stream, self.codec)
        return conn

    def echo(self, timestamp_ns: int) -> int:
        """Call Echo and return the timestamp carried back by the reply.

        Raises TransportError, EncodingError or RpcError on failure.
        """
        if self._rpc is None:
            raise TransportError(f"Not connected to {self.addr}")
        reply = self._rpc.call(ECHO_METHOD, Echo(timestamp=timestamp_ns), Echo)
        return reply.timestamp

    def probe(self) -> ProbeResult:
        """Send the current time and measure how long the echo took."""
        sent_ns = time.time_ns()
        echoed_ns = self.echo(sent_ns)
        return ProbeResult(sent_ns=sent_ns, echoed_ns=echoed_ns, received_ns=time.time_ns())

    def close(self) -> None:
        if self.conn is not None:
            self.conn.close()
        self.conn = None
        self._rpc = None


def _report(addr: str, result: ProbeResult) -> None:
    if result.ordered:
        logger.info(f"Client[{addr}]: success response (latency={result.latency_ms:.3f}ms)")
    else:
        logger.warning(
            f"Client[{addr}]: timestamp reversed by {-result.latency_ms:.3f}ms, ignoring"
        )


def _probe_until_failure(
    client: Client,
    interval_s: float,
    stop: threading.Event,
) -> ProbeSummary:
    """Probe every interval_s until a call fails or stop is set."""
    summary = ProbeSummary()
    while not stop.wait(interval_s):
        try:
            result = client.probe()
        except (TransportError, EncodingError, RpcError) as e:
            logger.error(f"Client[{client.addr}]: echo failed: {e}")
            break

        summary.add(result)
        _report(client.addr, result)
        if LOG_SUMMARY_INTERVAL and summary.probes % LOG_SUMMARY_INTERVAL == 0:
            logger.info(f"Client[{client.addr}]: {summary.describe()}")
    return summary


def run_client(
    client: Client,
    interval_s: float = DEFAULT_PROBE_INTERVAL_S,
    reconnect_delay_s: float = RECONNECT_DELAY_S,
    stop: threading.Event | None = None,
) -> None:
    """Run the client lifecycle until stop is set.

    The client:
    - Dials the remote (and authenticates if it has a secret)
    - Sends an echo every interval_s and logs the latency
    - On any failure closes the connection and waits reconnect_delay_s
      before dialing again
    """
    if stop is None:
        stop = threading.Event()

    logger.info(f"Client[{client.addr}]: starting (interval={interval_s}s)")
    while not stop.is_set():
        try:
            client.connect()
        except (TransportError, HandshakeError) as e:
            logger.error(f"Client[{client.addr}]: connect failed: {e}")
            stop.wait(reconnect_delay_s)
            continue

        logger.info(f"Client[{client.addr}]: connected")
        try:
            summary = _probe_until_failure(client, interval_s, stop)
        finally:
            client.close()
        logger.info(f"Client[{client.addr}]: session closed ({summary.describe()})")

        if not stop.is_set():
            logger.info(f"Client[{client.addr}]: reconnecting in {reconnect_delay_s}s")
            stop.wait(reconnect_delay_s)

    logger.info(f"Client[{client.addr}]: stopped")
