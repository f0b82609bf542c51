"""pytest configuration and fixtures for netprobe tests.

Provides:
- MockStream: Single-buffer mock for simple unit tests
- RecordingStream: Wrapper that records every message written through it
- mock_stream, recording fixtures
- stream_pair fixture: Connected SocketStream pair over socketpair()
- echo_server fixture factory: Server bound to an ephemeral port
- Markers for unit vs integration tests
"""

import io
import socket
import threading
from collections.abc import Callable, Generator

import pytest

from common.encoding import Codec, Message
from common.io import SocketStream
from server.runner import Server
from session.echo import new_dispatcher


class MockStream:
    """Mock stream for unit testing.

    Injected data is returned by read(); written data is kept in `written`.
    Reads never block; an empty buffer behaves like an expired timeout.
    """

    def __init__(self) -> None:
        self._buffer = io.BytesIO()
        self._read_pos = 0
        self._lock = threading.Lock()
        self.timeout: float | None = None
        self.timeouts_seen: list[float | None] = []
        self.written = bytearray()
        self.closed = False

    def write(self, data: bytes, /) -> int:
        self.written.extend(data)
        return len(data)

    def read(self, size: int = 1, /) -> bytes:
        self.timeouts_seen.append(self.timeout)
        with self._lock:
            self._buffer.seek(self._read_pos)
            data = self._buffer.read(size)
            self._read_pos = self._buffer.tell()
            return data

    def close(self) -> None:
        self.closed = True

    def inject(self, data: bytes) -> None:
        """Inject data into the read buffer as if received from peer."""
        with self._lock:
            self._buffer.seek(0, 2)
            self._buffer.write(data)


class RecordingStream:
    """Wraps a stream and decodes every frame written through it."""

    def __init__(self, inner: SocketStream, codec: Codec) -> None:
        self._inner = inner
        self._codec = codec
        self.sent: list[Message] = []

    @property
    def timeout(self) -> float | None:
        return self._inner.timeout

    @timeout.setter
    def timeout(self, value: float | None) -> None:
        self._inner.timeout = value

    def write(self, data: bytes, /) -> int:
        # Strip framing: magic(4) + length(4) + payload + crc(4)
        self.sent.append(self._codec.unpack(data[8:-4]))
        return self._inner.write(data)

    def read(self, size: int = 1, /) -> bytes:
        return self._inner.read(size)

    def close(self) -> None:
        self._inner.close()


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: mark test as unit test")
    config.addinivalue_line("markers", "integration: mark test as integration test (uses TCP on localhost)")


@pytest.fixture
def codec() -> Codec:
    return Codec()


@pytest.fixture
def mock_stream() -> MockStream:
    return MockStream()


@pytest.fixture
def recording(codec: Codec) -> Callable[[SocketStream], RecordingStream]:
    """Factory wrapping a stream so the messages it sends are recorded."""

    def wrap(stream: SocketStream) -> RecordingStream:
        return RecordingStream(stream, codec)

    return wrap


@pytest.fixture
def stream_pair() -> Generator[tuple[SocketStream, SocketStream], None, None]:
    """Create a connected pair of SocketStreams.

    Data written to one side can be read from the other.
    """
    a, b = socket.socketpair()
    left, right = SocketStream(a), SocketStream(b)
    try:
        yield left, right
    finally:
        left.close()
        right.close()


@pytest.fixture
def echo_server(codec: Codec) -> Generator[Callable[..., Server], None, None]:
    """Factory that starts an echo server on 127.0.0.1 with an ephemeral port.

    Servers are closed when the test finishes.
    """
    servers: list[Server] = []

    def start(secret: str | None = None, handshake_timeout_s: float = 1.0) -> Server:
        server = Server(
            "127.0.0.1:0",
            new_dispatcher(codec),
            secret=secret,
            handshake_timeout_s=handshake_timeout_s,
        )
        server.start()
        threading.Thread(target=server.serve_forever, daemon=True).start()
        servers.append(server)
        return server

    yield start

    for server in servers:
        server.close()
