"""Stream I/O helpers for netprobe.

Contains:
- SocketStream: Adapts a connected socket to the Stream protocol
- read_within: Read one message with a deadline scoped to that read
"""

import logging
import select
import socket
import time

from common.encoding import Codec, M, TransportError
from common.protocol import TRACE, Stream

logger = logging.getLogger(__name__)


class SocketStream:
    """Stream over a connected socket.

    Read semantics match pyserial's socket:// handler used on the client
    side: read() returns what arrived before the timeout expires (possibly
    fewer bytes than requested), and a closed peer is an error rather
    than an empty read.
    """

    def __init__(self, sock: socket.socket) -> None:
        self._sock = sock
        self._sock.setblocking(False)
        self.timeout: float | None = None

    def read(self, size: int = 1, /) -> bytes:
        data = bytearray()
        deadline = None if self.timeout is None else time.monotonic() + self.timeout
        while len(data) < size:
            remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
            ready, _, _ = select.select([self._sock], [], [], remaining)
            if not ready:
                break
            try:
                chunk = self._sock.recv(size - len(data))
            except BlockingIOError:
                continue
            except OSError as e:
                raise TransportError(f"Read failed: {e}") from e
            if not chunk:
                raise TransportError("socket disconnected")
            data.extend(chunk)
        return bytes(data)

    def write(self, data: bytes, /) -> int:
        self._sock.setblocking(True)
        try:
            self._sock.sendall(data)
        except OSError as e:
            raise TransportError(f"Write failed: {e}") from e
        finally:
            self._sock.setblocking(False)
        return len(data)

    def close(self) -> None:
        try:
            self._sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            # Peer may already be gone
            pass
        self._sock.close()


class _DeadlineStream:
    """View of a stream whose reads all share one absolute deadline.

    Each read gets only the time left, so a frame that arrives in slow
    pieces cannot stretch the wait past the deadline.
    """

    def __init__(self, stream: Stream, timeout_s: float) -> None:
        self._stream = stream
        self._deadline = time.monotonic() + timeout_s

    @property
    def timeout(self) -> float | None:
        return self._stream.timeout

    @timeout.setter
    def timeout(self, value: float | None) -> None:
        self._stream.timeout = value

    def read(self, size: int = 1, /) -> bytes:
        remaining = self._deadline - time.monotonic()
        if remaining <= 0:
            return b""
        self._stream.timeout = remaining
        return self._stream.read(size)

    def write(self, data: bytes, /) -> int | None:
        return self._stream.write(data)

    def close(self) -> None:
        self._stream.close()


def read_within(
    stream: Stream,
    codec: Codec,
    expected: type[M],
    timeout_s: float,
) -> M:
    """Read one message of the expected type, waiting at most timeout_s.

    timeout_s bounds the whole message, not each read inside it. The
    stream timeout is cleared afterwards, so it never applies to later
    operations on the same stream.

    Raises:
        ReadTimeout: No message within timeout_s.
        TransportError: Peer disconnected or stream failed.
        EncodingError: Malformed message or unexpected message type.
    """
    try:
        msg = codec.read(_DeadlineStream(stream, timeout_s), expected)
    finally:
        stream.timeout = None
    logger.log(TRACE, f"Received {msg.MSG_TYPE.name}")
    return msg
