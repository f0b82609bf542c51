"""Unit tests for connection lifecycle state."""

import pytest

from common.connection import Connection, InvalidTransition, Role, State


class CountingStream:
    """Stream stub that counts close() calls."""

    def __init__(self, fail: bool = False) -> None:
        self.timeout: float | None = None
        self.closes = 0
        self._fail = fail

    def read(self, size: int = 1, /) -> bytes:
        return b""

    def write(self, data: bytes, /) -> int:
        return len(data)

    def close(self) -> None:
        self.closes += 1
        if self._fail:
            raise OSError("already gone")


@pytest.mark.unit
class TestConnection:
    """Tests for Connection state transitions."""

    def test_authenticated_client_path(self) -> None:
        conn = Connection(remote="r:1", role=Role.CLIENT, stream=CountingStream())
        for state in (State.AUTHENTICATING, State.AUTHENTICATED, State.PROBING, State.CLOSED):
            conn.advance(state)
        assert conn.closed

    def test_unauthenticated_server_path(self) -> None:
        conn = Connection(remote="r:1", role=Role.SERVER, stream=CountingStream())
        conn.advance(State.SERVING)
        assert conn.state == State.SERVING

    def test_cannot_skip_handshake_result(self) -> None:
        conn = Connection(remote="r:1", role=Role.CLIENT, stream=CountingStream())
        with pytest.raises(InvalidTransition, match="dialing -> authenticated"):
            conn.advance(State.AUTHENTICATED)

    def test_cannot_probe_while_authenticating(self) -> None:
        conn = Connection(remote="r:1", role=Role.CLIENT, stream=CountingStream())
        conn.advance(State.AUTHENTICATING)
        with pytest.raises(InvalidTransition):
            conn.advance(State.PROBING)

    def test_close_is_idempotent(self) -> None:
        stream = CountingStream()
        conn = Connection(remote="r:1", role=Role.CLIENT, stream=stream)
        conn.advance(State.AUTHENTICATING)
        conn.close()
        conn.close()
        assert conn.state == State.CLOSED
        assert stream.closes == 1

    def test_close_swallows_stream_error(self) -> None:
        stream = CountingStream(fail=True)
        conn = Connection(remote="r:1", role=Role.SERVER, stream=stream)
        conn.close()
        assert conn.closed
        assert stream.closes == 1

    def test_closed_is_terminal(self) -> None:
        conn = Connection(remote="r:1", role=Role.CLIENT, stream=CountingStream())
        conn.close()
        with pytest.raises(InvalidTransition):
            conn.advance(State.DIALING)
