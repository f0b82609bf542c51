"""Process configuration for netprobe.

Contains:
- ConfigError: Raised on invalid configuration
- parse_address: Split a "host:port" string
- Mode: Which lifecycles the process runs
- ProbeConfig: Validated configuration built from CLI args and env
"""

import argparse
import os
from dataclasses import dataclass, field
from enum import Enum

from common.protocol import (
    DEFAULT_LISTEN,
    DEFAULT_PROBE_INTERVAL_S,
    HANDSHAKE_TIMEOUT_S,
    RECONNECT_DELAY_S,
)

# Tokens may come from the environment so they stay out of `ps` output
SERVER_TOKEN_ENV = "NETPROBE_SERVER_TOKEN"
CLIENT_TOKEN_ENV = "NETPROBE_CLIENT_TOKEN"


class ConfigError(ValueError):
    """Raised when configuration values are invalid."""

    pass


class Mode(Enum):
    """Which lifecycles the process runs."""

    SERVER = "server"
    CLIENT = "client"
    BOTH = "both"


def parse_address(addr: str) -> tuple[str, int]:
    """Split "host:port" into (host, port). An empty host is allowed.

    Raises ConfigError if the address is malformed.
    """
    host, sep, port_str = addr.strip().rpartition(":")
    if not sep:
        raise ConfigError(f"Address {addr!r} is missing a port")
    host = host.strip("[]")  # [::1]:5353
    try:
        port = int(port_str)
    except ValueError:
        raise ConfigError(f"Invalid port in address {addr!r}")
    if not 0 <= port <= 65535:
        raise ConfigError(f"Port out of range in address {addr!r}")
    return host, port


def split_remotes(remotes: str) -> list[str]:
    """Split a comma-separated remote list, dropping empty entries."""
    return [r.strip() for r in remotes.split(",") if r.strip()]


@dataclass
class ProbeConfig:
    """Validated process configuration.

    An empty or missing token disables authentication on that side.
    """

    mode: Mode = Mode.SERVER
    listen: str = DEFAULT_LISTEN
    remotes: list[str] = field(default_factory=list)
    server_token: str | None = None
    client_token: str | None = None
    interval_s: float = DEFAULT_PROBE_INTERVAL_S
    reconnect_delay_s: float = RECONNECT_DELAY_S
    handshake_timeout_s: float = HANDSHAKE_TIMEOUT_S
    log_file: str | None = None
    verbosity: int = 0

    def __post_init__(self) -> None:
        """Validate invariants."""
        self.server_token = self.server_token or None
        self.client_token = self.client_token or None

        if self.runs_server:
            if not self.listen:
                raise ConfigError("listen address is required in server or both mode")
            parse_address(self.listen)
        if self.runs_client:
            if not self.remotes:
                raise ConfigError("remote addresses are required in client or both mode")
            for remote in self.remotes:
                parse_address(remote)
        if self.interval_s <= 0:
            raise ConfigError(f"interval must be positive, got {self.interval_s}")
        if self.reconnect_delay_s < 0:
            raise ConfigError(f"reconnect delay must not be negative, got {self.reconnect_delay_s}")
        if self.handshake_timeout_s <= 0:
            raise ConfigError(
                f"handshake timeout must be positive, got {self.handshake_timeout_s}"
            )

    @property
    def runs_server(self) -> bool:
        return self.mode in (Mode.SERVER, Mode.BOTH)

    @property
    def runs_client(self) -> bool:
        return self.mode in (Mode.CLIENT, Mode.BOTH)

    @classmethod
    def from_args(cls, args: argparse.Namespace) -> "ProbeConfig":
        """Build a config from parsed CLI args, falling back to env for tokens."""
        try:
            mode = Mode(args.mode)
        except ValueError:
            raise ConfigError(f"invalid mode {args.mode!r}")

        server_token = args.server_token
        if server_token is None:
            server_token = os.environ.get(SERVER_TOKEN_ENV)
        client_token = args.client_token
        if client_token is None:
            client_token = os.environ.get(CLIENT_TOKEN_ENV)

        return cls(
            mode=mode,
            listen=args.listen,
            remotes=split_remotes(args.remotes),
            server_token=server_token,
            client_token=client_token,
            interval_s=args.interval,
            reconnect_delay_s=args.reconnect_delay,
            handshake_timeout_s=args.handshake_timeout,
            log_file=args.log_file,
            verbosity=args.verbose,
        )
