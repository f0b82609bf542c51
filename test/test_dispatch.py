"""Unit tests for request dispatch and the Echo operation."""

import threading

import pytest

from common.encoding import Echo, EncodingError, Hello, Request, Response
from session.dispatch import Dispatcher, RpcClient, RpcError
from session.echo import ECHO_METHOD, echo, new_dispatcher


@pytest.mark.unit
class TestEcho:
    """Tests for the Echo handler."""

    def test_returns_input_unchanged(self) -> None:
        assert echo(Echo(timestamp=123456789)) == Echo(timestamp=123456789)

    def test_rejects_other_payloads(self) -> None:
        with pytest.raises(RpcError):
            echo(Hello(version="v1", challenge="x" * 16))


@pytest.mark.unit
class TestDispatcher:
    """Tests for Dispatcher routing."""

    def test_new_dispatcher_registers_echo(self, codec) -> None:
        assert new_dispatcher(codec).methods == [ECHO_METHOD]

    def test_duplicate_registration(self, codec) -> None:
        dispatcher = new_dispatcher(codec)
        with pytest.raises(ValueError):
            dispatcher.register(ECHO_METHOD, echo)

    def test_dispatch_echo(self, codec) -> None:
        dispatcher = new_dispatcher(codec)
        request = Request(seq=1, method=ECHO_METHOD, body=codec.pack(Echo(timestamp=42)))
        response = dispatcher.dispatch(request)
        assert response.seq == 1
        assert response.error == ""
        assert codec.unpack(response.body) == Echo(timestamp=42)

    def test_dispatch_unknown_method(self, codec) -> None:
        response = new_dispatcher(codec).dispatch(Request(seq=5, method="Nope", body=b""))
        assert response.seq == 5
        assert "unknown method" in response.error

    def test_dispatch_bad_body(self, codec) -> None:
        response = new_dispatcher(codec).dispatch(
            Request(seq=2, method=ECHO_METHOD, body=b"\x7f")
        )
        assert "Invalid message type" in response.error

    def test_serve_until_disconnect(self, codec, stream_pair) -> None:
        left, right = stream_pair
        dispatcher = new_dispatcher(codec)
        served: list[int] = []
        thread = threading.Thread(
            target=lambda: served.append(dispatcher.serve(right, "peer")), daemon=True
        )
        thread.start()

        client = RpcClient(left, codec)
        for ts in (1, 2, 3):
            assert client.call(ECHO_METHOD, Echo(timestamp=ts), Echo) == Echo(timestamp=ts)
        left.close()

        thread.join(timeout=2.0)
        assert served == [3]

    def test_serve_rejects_non_request(self, codec, stream_pair) -> None:
        left, right = stream_pair
        codec.write(left, Hello(version="v1", challenge="x" * 16))
        with pytest.raises(EncodingError):
            Dispatcher(codec).serve(right, "peer")


@pytest.mark.unit
class TestRpcClient:
    """Tests for RpcClient sequencing and errors."""

    def test_error_response_raises(self, codec, stream_pair) -> None:
        left, right = stream_pair
        threading.Thread(
            target=new_dispatcher(codec).serve, args=(right, "peer"), daemon=True
        ).start()
        with pytest.raises(RpcError, match="unknown method"):
            RpcClient(left, codec).call("Missing.Method", Echo(timestamp=1), Echo)

    def test_stale_response_skipped(self, codec, mock_stream) -> None:
        mock_stream.inject(codec.encode(Response(seq=0, error="", body=codec.pack(Echo(timestamp=9)))))
        mock_stream.inject(codec.encode(Response(seq=1, error="", body=codec.pack(Echo(timestamp=10)))))
        reply = RpcClient(mock_stream, codec).call(ECHO_METHOD, Echo(timestamp=10), Echo)
        assert reply == Echo(timestamp=10)

    def test_future_response_raises(self, codec, mock_stream) -> None:
        mock_stream.inject(codec.encode(Response(seq=4, error="", body=codec.pack(Echo(timestamp=1)))))
        with pytest.raises(RpcError, match="unsent request"):
            RpcClient(mock_stream, codec).call(ECHO_METHOD, Echo(timestamp=1), Echo)

    def test_wrong_reply_type(self, codec, mock_stream) -> None:
        body = codec.pack(Hello(version="v1", challenge="x" * 16))
        mock_stream.inject(codec.encode(Response(seq=1, error="", body=body)))
        with pytest.raises(RpcError, match="Expected Echo"):
            RpcClient(mock_stream, codec).call(ECHO_METHOD, Echo(timestamp=1), Echo)
