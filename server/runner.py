"""Server lifecycle for netprobe.

Contains Server, which accepts connections in a loop, runs the
handshake for each one on its own thread, and hands authenticated
streams to a request Dispatcher.
"""

import logging
import socket
import threading

from common.connection import Connection, HandshakeError, Role, State
from common.encoding import Codec, EncodingError, TransportError
from common.io import SocketStream
from common.protocol import ACCEPT_ERROR_BACKOFF_S, HANDSHAKE_TIMEOUT_S
from common.transport import listen
from server.handshake import server_handshake
from session.dispatch import Dispatcher

logger = logging.getLogger(__name__)


class Server:
    """Echo server.

    With a secret, every inbound connection must complete the handshake
    before it is served. Without one, connections are served directly.
    """

    def __init__(
        self,
        listen_addr: str,
        dispatcher: Dispatcher,
        secret: str | None = None,
        handshake_timeout_s: float = HANDSHAKE_TIMEOUT_S,
        accept_backoff_s: float = ACCEPT_ERROR_BACKOFF_S,
    ) -> None:
        self.listen_addr = listen_addr
        self.dispatcher = dispatcher
        self.secret = secret or None
        self.handshake_timeout_s = handshake_timeout_s
        self.accept_backoff_s = accept_backoff_s
        self._listener: socket.socket | None = None
        self._done = threading.Event()

    @property
    def codec(self) -> Codec:
        return self.dispatcher.codec

    @property
    def address(self) -> tuple[str, int]:
        """Bound (host, port). Only valid after start()."""
        if self._listener is None:
            raise RuntimeError("Server not started")
        host, port = self._listener.getsockname()[:2]
        return host, port

    def start(self) -> None:
        """Bind the listening socket. Raises OSError if the address is unavailable."""
        self._listener = listen(self.listen_addr)
        auth = "enabled" if self.secret else "disabled"
        logger.info(f"Server: listening on {self.listen_addr} (auth {auth})")

    def serve_forever(self) -> None:
        """Accept connections until close() is called.

        A failed accept is logged and retried after accept_backoff_s.
        """
        if self._listener is None:
            raise RuntimeError("Server not started")

        while not self._done.is_set():
            try:
                sock, peer = self._listener.accept()
            except TimeoutError:
                # Poll timeout, loop back to check the done flag
                continue
            except OSError as e:
                if self._done.is_set():
                    break
                logger.warning(f"Server: accept failed: {e}")
                self._done.wait(self.accept_backoff_s)
                continue

            remote = f"{peer[0]}:{peer[1]}"
            threading.Thread(
                target=self._handle_connection,
                args=(sock, remote),
                name=f"netprobe-conn-{remote}",
                daemon=True,
            ).start()

        logger.info("Server: accept loop stopped")

    def start_and_serve(self) -> None:
        self.start()
        self.serve_forever()

    def close(self) -> None:
        """Stop accepting. Shutting the socket down releases a blocked accept()."""
        self._done.set()
        if self._listener is None:
            return
        try:
            self._listener.shutdown(socket.SHUT_RDWR)
        except OSError:
            # Not connected on some platforms; close() below still applies
            pass
        self._listener.close()

    def _handle_connection(self, sock: socket.socket, remote: str) -> None:
        """Authenticate (if configured) and serve one connection, then close it."""
        stream = SocketStream(sock)
        conn = Connection(remote=remote, role=Role.SERVER, stream=stream)
        logger.debug(f"Server: accepted {remote}")
        try:
            if self.secret is not None:
                conn.advance(State.AUTHENTICATING)
                server_handshake(stream, self.codec, self.secret, self.handshake_timeout_s)
                conn.advance(State.AUTHENTICATED)
                logger.info(f"Server: authenticated {remote}")
            conn.advance(State.SERVING)
            served = self.dispatcher.serve(stream, remote)
            logger.info(f"Server: {remote} disconnected after {served} requests")
        except HandshakeError as e:
            logger.warning(f"Server: auth failed (remote={remote}, phase={conn.state.value}): {e}")
        except TransportError as e:
            logger.warning(f"Server: transport error (remote={remote}, phase={conn.state.value}): {e}")
        except EncodingError as e:
            logger.warning(f"Server: bad request (remote={remote}, phase={conn.state.value}): {e}")
        finally:
            conn.close()
