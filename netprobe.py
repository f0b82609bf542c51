#!/usr/bin/env python3
"""Network reachability and latency probe.

Runs an echo server, one or more probing clients, or both. Clients
ping each remote on an interval and log the round-trip latency.
"""

import argparse
import logging
import logging.handlers
import signal
import sys
import threading
from enum import IntEnum
from types import FrameType

from client.runner import Client, run_client
from common.config import ConfigError, Mode, ProbeConfig
from common.encoding import Codec
from common.protocol import (
    DEFAULT_LISTEN,
    DEFAULT_PROBE_INTERVAL_S,
    HANDSHAKE_TIMEOUT_S,
    RECONNECT_DELAY_S,
    TRACE,
)
from server.runner import Server
from session.echo import new_dispatcher

logger = logging.getLogger("netprobe")

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

# How long shutdown waits for each worker thread
JOIN_TIMEOUT_S = 5.0


class ExitCode(IntEnum):
    """Exit codes for netprobe."""

    SUCCESS = 0
    LISTEN_FAILED = 1  # Could not bind the listen address
    USAGE = 2  # Invalid arguments (argparse convention)


def configure_logging(verbosity: int = 0, log_file: str | None = None) -> None:
    """Log to stderr, and to a file rotated at midnight if log_file is set."""
    level = {0: logging.INFO, 1: logging.DEBUG}.get(verbosity, TRACE)
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        handlers.append(
            logging.handlers.TimedRotatingFileHandler(log_file, when="midnight", backupCount=7)
        )
    logging.basicConfig(level=level, format=LOG_FORMAT, handlers=handlers, force=True)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Probe network reachability and latency with authenticated echo",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s --mode server --listen :5353                 Run an echo server
  %(prog)s --mode client --remotes 10.0.0.1:5353        Probe one server
  %(prog)s --mode both --remotes a:5353,b:5353          Serve and probe

Tokens may also be set with NETPROBE_SERVER_TOKEN / NETPROBE_CLIENT_TOKEN.
""",
    )
    parser.add_argument(
        "-m",
        "--mode",
        type=str,
        choices=[m.value for m in Mode],
        default=Mode.SERVER.value,
        help="client|server|both (default: server)",
    )
    parser.add_argument(
        "-l",
        "--listen",
        type=str,
        default=DEFAULT_LISTEN,
        help=f"Address the echo server listens at (default: {DEFAULT_LISTEN})",
    )
    parser.add_argument(
        "-r",
        "--remotes",
        type=str,
        default="",
        help="Comma-separated echo server addresses, e.g. '1.1.1.1:5353,2.2.2.2:5353'",
    )
    parser.add_argument(
        "-i",
        "--interval",
        type=float,
        default=DEFAULT_PROBE_INTERVAL_S,
        help=f"Seconds between pings (default: {DEFAULT_PROBE_INTERVAL_S})",
    )
    parser.add_argument(
        "--server-token",
        type=str,
        default=None,
        help="Token for authenticating incoming connections; empty disables auth",
    )
    parser.add_argument(
        "--client-token",
        type=str,
        default=None,
        help="Token the client authenticates with; empty disables auth",
    )
    parser.add_argument(
        "--reconnect-delay",
        type=float,
        default=RECONNECT_DELAY_S,
        help=f"Seconds to wait before redialing after a failure (default: {RECONNECT_DELAY_S})",
    )
    parser.add_argument(
        "--handshake-timeout",
        type=float,
        default=HANDSHAKE_TIMEOUT_S,
        help=f"Seconds to wait for each handshake message (default: {HANDSHAKE_TIMEOUT_S})",
    )
    parser.add_argument(
        "--log-file",
        type=str,
        default=None,
        help="Also write logs to this file, rotated daily",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Increase log verbosity (-v debug, -vv trace)",
    )
    return parser


def run(config: ProbeConfig, stop: threading.Event) -> int:
    """Run the configured server and clients until stop is set. Returns exit code."""
    codec = Codec()
    server: Server | None = None
    server_thread: threading.Thread | None = None

    if config.runs_server:
        server = Server(
            config.listen,
            new_dispatcher(codec),
            secret=config.server_token,
            handshake_timeout_s=config.handshake_timeout_s,
        )
        try:
            server.start()
        except OSError as e:
            logger.error(f"Failed to listen on {config.listen}: {e}")
            return ExitCode.LISTEN_FAILED
        server_thread = threading.Thread(
            target=server.serve_forever, name="netprobe-server", daemon=True
        )
        server_thread.start()

    client_threads: list[threading.Thread] = []
    if config.runs_client:
        for remote in config.remotes:
            client = Client(
                remote,
                secret=config.client_token,
                codec=codec,
                handshake_timeout_s=config.handshake_timeout_s,
            )
            thread = threading.Thread(
                target=run_client,
                args=(client, config.interval_s, config.reconnect_delay_s, stop),
                name=f"netprobe-client-{remote}",
                daemon=True,
            )
            thread.start()
            client_threads.append(thread)

    while not stop.wait(1.0):
        pass
    logger.info("Shutting down")

    if server is not None:
        server.close()
    if server_thread is not None:
        server_thread.join(timeout=JOIN_TIMEOUT_S)
    for thread in client_threads:
        thread.join(timeout=JOIN_TIMEOUT_S)
        if thread.is_alive():
            logger.warning(f"{thread.name} still blocked, abandoning it")

    logger.info("Shutdown complete")
    return ExitCode.SUCCESS


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = ProbeConfig.from_args(args)
    except ConfigError as e:
        parser.error(str(e))

    configure_logging(config.verbosity, config.log_file)

    stop = threading.Event()

    def handle_signal(_sig: int, _frame: FrameType | None) -> None:
        logger.info("Signal received - shutting down")
        stop.set()

    signal.signal(signal.SIGINT, handle_signal)
    signal.signal(signal.SIGTERM, handle_signal)

    return run(config, stop)


if __name__ == "__main__":
    sys.exit(main())
