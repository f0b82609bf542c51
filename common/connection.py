"""Connection state for netprobe.

Contains:
- Role: Enum for client/server role
- State: Enum for the per-connection lifecycle
- Handshake exceptions (HandshakeError and subclasses)
- Connection: Lifecycle state of one transport connection
"""

import logging
from dataclasses import dataclass
from enum import Enum

from common.protocol import Stream

logger = logging.getLogger(__name__)


class Role(Enum):
    """Role in the client/server protocol."""

    CLIENT = "client"
    SERVER = "server"


class State(Enum):
    """Lifecycle state of a single connection."""

    DIALING = "dialing"
    AUTHENTICATING = "authenticating"
    AUTHENTICATED = "authenticated"
    PROBING = "probing"
    SERVING = "serving"
    CLOSED = "closed"


_TRANSITIONS: dict[State, frozenset[State]] = {
    State.DIALING: frozenset(
        {State.AUTHENTICATING, State.PROBING, State.SERVING, State.CLOSED}
    ),
    State.AUTHENTICATING: frozenset({State.AUTHENTICATED, State.CLOSED}),
    State.AUTHENTICATED: frozenset({State.PROBING, State.SERVING, State.CLOSED}),
    State.PROBING: frozenset({State.CLOSED}),
    State.SERVING: frozenset({State.CLOSED}),
    State.CLOSED: frozenset(),
}


class HandshakeError(Exception):
    """Raised when the authentication handshake fails."""

    pass


class AuthenticationFailed(HandshakeError):
    """Raised when the peer did not prove it holds the shared secret."""

    pass


class HandshakeTimeout(AuthenticationFailed):
    """Raised when no handshake message arrived within the timeout."""

    pass


class ProtocolError(AuthenticationFailed):
    """Raised when a handshake message is malformed or out of order."""

    pass


class AuthenticationRejected(HandshakeError):
    """Raised when the responder rejected our proof."""

    pass


class InvalidTransition(Exception):
    """Raised when a connection is moved to a state it cannot reach."""

    pass


@dataclass
class Connection:
    """One transport connection and its lifecycle state.

    The connection owns its stream: close() closes it exactly once,
    whatever state the connection is in.
    """

    remote: str
    role: Role
    stream: Stream
    state: State = State.DIALING

    def advance(self, state: State) -> None:
        """Move to the next lifecycle state, rejecting illegal transitions."""
        if state not in _TRANSITIONS[self.state]:
            raise InvalidTransition(
                f"{self.role.value} {self.remote}: {self.state.value} -> {state.value}"
            )
        logger.debug(
            f"{self.role.value} {self.remote}: {self.state.value} -> {state.value}"
        )
        self.state = state

    @property
    def closed(self) -> bool:
        return self.state == State.CLOSED

    def close(self) -> None:
        """Close the stream and enter CLOSED. Safe to call more than once."""
        if self.closed:
            return
        self.state = State.CLOSED
        try:
            self.stream.close()
        except OSError as e:
            logger.debug(f"{self.role.value} {self.remote}: error on close: {e}")
