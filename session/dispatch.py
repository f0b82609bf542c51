"""Request dispatch for netprobe.

Contains:
- RpcError: Raised for failed calls
- Dispatcher: Server-side method table and serve loop
- RpcClient: Client-side call helper

A Dispatcher is built explicitly and handed to the server at
construction; there is no process-wide registry.
"""

import logging
from collections.abc import Callable

from common.encoding import (
    Codec,
    EncodingError,
    M,
    Message,
    Request,
    Response,
    TransportError,
)
from common.protocol import TRACE, Stream

logger = logging.getLogger(__name__)

Handler = Callable[[Message], Message]


class RpcError(Exception):
    """Raised when a remote call fails or a handler rejects its arguments."""

    pass


class Dispatcher:
    """Routes requests to registered handlers by method name."""

    def __init__(self, codec: Codec) -> None:
        self.codec = codec
        self._handlers: dict[str, Handler] = {}

    def register(self, method: str, handler: Handler) -> None:
        if method in self._handlers:
            raise ValueError(f"Method {method!r} already registered")
        self._handlers[method] = handler

    @property
    def methods(self) -> list[str]:
        return sorted(self._handlers)

    def dispatch(self, request: Request) -> Response:
        """Run the handler for one request and build its response.

        Unknown methods, undecodable bodies and RpcErrors raised by the
        handler become error responses.
        """
        handler = self._handlers.get(request.method)
        if handler is None:
            return Response(seq=request.seq, error=f"unknown method {request.method!r}", body=b"")

        try:
            args = self.codec.unpack(request.body)
            reply = handler(args)
        except (EncodingError, RpcError) as e:
            return Response(seq=request.seq, error=str(e), body=b"")

        return Response(seq=request.seq, error="", body=self.codec.pack(reply))

    def serve(self, stream: Stream, remote: str) -> int:
        """Answer requests until the peer disconnects.

        Returns the number of requests served.
        Raises EncodingError if the peer sends something that is not a request.
        """
        served = 0
        while True:
            try:
                request = self.codec.read(stream, Request)
            except TransportError as e:
                logger.debug(f"Server: stream from {remote} ended: {e}")
                return served

            response = self.dispatch(request)
            if response.error:
                logger.warning(f"Server: {request.method} from {remote} failed: {response.error}")
            try:
                self.codec.write(stream, response)
            except TransportError as e:
                logger.debug(f"Server: stream to {remote} ended: {e}")
                return served

            served += 1
            logger.log(TRACE, f"Server: served {request.method} #{request.seq} for {remote}")


class RpcClient:
    """Issues sequential calls over one stream."""

    def __init__(self, stream: Stream, codec: Codec) -> None:
        self._stream = stream
        self._codec = codec
        self._seq = 0

    def call(self, method: str, args: Message, reply_type: type[M]) -> M:
        """Send one request and block until its response arrives.

        Responses to earlier requests are skipped.

        Raises:
            RpcError: Server reported an error, or replied out of sequence.
            TransportError: Stream failed.
            EncodingError: Malformed response.
        """
        self._seq += 1
        seq = self._seq
        self._codec.write(
            self._stream, Request(seq=seq, method=method, body=self._codec.pack(args))
        )

        while True:
            response = self._codec.read(self._stream, Response)
            if response.seq < seq:
                logger.debug(f"Skipping stale response #{response.seq} (waiting for #{seq})")
                continue
            if response.seq > seq:
                raise RpcError(f"Response #{response.seq} for unsent request (expected #{seq})")
            break

        if response.error:
            raise RpcError(response.error)

        reply = self._codec.unpack(response.body)
        if not isinstance(reply, reply_type):
            raise RpcError(f"Expected {reply_type.__name__} reply, got {type(reply).__name__}")
        return reply
