"""Typed message encoding/decoding for netprobe.

Contains the message dataclasses exchanged over a stream and the Codec
that packs them into frames:
- Handshake messages (Hello, HelloResponse, Hi, HiResponse)
- RPC envelope messages (Request, Response)
- Application messages (Echo)

Payload layout: [1-byte MsgType][fields...]. Strings and byte strings
are prefixed with a 4-byte length; bools are one byte; timestamps are
signed 64-bit; sequence numbers are unsigned 64-bit.
"""

from dataclasses import dataclass
from typing import ClassVar, TypeVar, overload

import serial

from common import message
from common.message import MAX_MESSAGE_LENGTH, FrameError
from common.protocol import MsgType, Stream


class EncodingError(Exception):
    """Raised when message decoding fails due to invalid message format."""

    pass


class TransportError(Exception):
    """Raised when reading or writing fails at the byte stream level."""

    pass


class ReadTimeout(TransportError):
    """Raised when no complete message arrived before the stream timeout."""

    pass


@dataclass(frozen=True)
class Hello:
    """Initiator's opening message."""

    MSG_TYPE: ClassVar[MsgType] = MsgType.HELLO

    version: str
    challenge: str


@dataclass(frozen=True)
class HelloResponse:
    """Responder's proof for the initiator's challenge, plus its own challenge."""

    MSG_TYPE: ClassVar[MsgType] = MsgType.HELLO_RSP

    checksum: bytes
    challenge: str


@dataclass(frozen=True)
class Hi:
    """Initiator's proof for the responder's challenge."""

    MSG_TYPE: ClassVar[MsgType] = MsgType.HI

    checksum: bytes


@dataclass(frozen=True)
class HiResponse:
    """Responder's verdict on the initiator's proof."""

    MSG_TYPE: ClassVar[MsgType] = MsgType.HI_RSP

    welcome: bool


@dataclass(frozen=True)
class Request:
    """RPC request envelope. body is a packed application message."""

    MSG_TYPE: ClassVar[MsgType] = MsgType.REQUEST

    seq: int
    method: str
    body: bytes


@dataclass(frozen=True)
class Response:
    """RPC response envelope. An empty error string means success."""

    MSG_TYPE: ClassVar[MsgType] = MsgType.RESPONSE

    seq: int
    error: str
    body: bytes


@dataclass(frozen=True)
class Echo:
    """Echo payload: a timestamp in nanoseconds since the epoch."""

    MSG_TYPE: ClassVar[MsgType] = MsgType.ECHO

    timestamp: int


Message = Hello | HelloResponse | Hi | HiResponse | Request | Response | Echo
M = TypeVar("M", Hello, HelloResponse, Hi, HiResponse, Request, Response, Echo)


def _pack_bytes(value: bytes) -> bytes:
    return message.uint32_to_bytes(len(value)) + value


def _pack_str(value: str) -> bytes:
    return _pack_bytes(value.encode("utf-8"))


class _FieldReader:
    """Cursor over a payload body, raising EncodingError on underflow."""

    def __init__(self, data: bytes) -> None:
        self._data = data
        self._pos = 0

    def _take(self, size: int) -> bytes:
        if self._pos + size > len(self._data):
            raise EncodingError(
                f"Payload too short: need {self._pos + size} bytes, have {len(self._data)}"
            )
        chunk = self._data[self._pos : self._pos + size]
        self._pos += size
        return chunk

    def read_bytes(self) -> bytes:
        return self._take(message.uint32_from_bytes(self._take(message.UINT32_SIZE)))

    def read_str(self) -> str:
        raw = self.read_bytes()
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise EncodingError(f"Invalid UTF-8 string: {e}") from e

    def read_bool(self) -> bool:
        value = self._take(1)[0]
        if value not in (0, 1):
            raise EncodingError(f"Invalid bool value: {value}")
        return value == 1

    def read_int64(self) -> int:
        return message.int64_from_bytes(self._take(message.UINT64_SIZE))

    def read_uint64(self) -> int:
        return message.uint64_from_bytes(self._take(message.UINT64_SIZE))

    def finish(self) -> None:
        if self._pos != len(self._data):
            raise EncodingError(f"{len(self._data) - self._pos} trailing bytes in payload")


@dataclass(frozen=True)
class Codec:
    """Message codec configuration.

    Constructed once at startup and handed to every component that reads
    or writes messages, so all of them agree on the same limits.
    """

    max_message_length: int = MAX_MESSAGE_LENGTH

    def pack(self, msg: Message) -> bytes:
        """Encode a message to a payload (without framing)."""
        match msg:
            case Hello(version=version, challenge=challenge):
                body = _pack_str(version) + _pack_str(challenge)
            case HelloResponse(checksum=checksum, challenge=challenge):
                body = _pack_bytes(checksum) + _pack_str(challenge)
            case Hi(checksum=checksum):
                body = _pack_bytes(checksum)
            case HiResponse(welcome=welcome):
                body = bytes([1 if welcome else 0])
            case Request(seq=seq, method=method, body=inner):
                body = message.uint64_to_bytes(seq) + _pack_str(method) + _pack_bytes(inner)
            case Response(seq=seq, error=error, body=inner):
                body = message.uint64_to_bytes(seq) + _pack_str(error) + _pack_bytes(inner)
            case Echo(timestamp=timestamp):
                body = message.int64_to_bytes(timestamp)
            case _:
                raise TypeError(f"Cannot encode {type(msg).__name__}")
        return bytes([msg.MSG_TYPE]) + body

    def unpack(self, payload: bytes) -> Message:
        """Decode a payload (without framing) to a message.

        Raises EncodingError on unknown type, short or trailing fields.
        """
        if not payload:
            raise EncodingError("Empty payload")

        try:
            msg_type = MsgType(payload[0])
        except ValueError:
            raise EncodingError(f"Invalid message type: {payload[0]}")

        fields = _FieldReader(payload[1:])
        msg: Message
        match msg_type:
            case MsgType.HELLO:
                msg = Hello(version=fields.read_str(), challenge=fields.read_str())
            case MsgType.HELLO_RSP:
                msg = HelloResponse(checksum=fields.read_bytes(), challenge=fields.read_str())
            case MsgType.HI:
                msg = Hi(checksum=fields.read_bytes())
            case MsgType.HI_RSP:
                msg = HiResponse(welcome=fields.read_bool())
            case MsgType.REQUEST:
                msg = Request(seq=fields.read_uint64(), method=fields.read_str(), body=fields.read_bytes())
            case MsgType.RESPONSE:
                msg = Response(seq=fields.read_uint64(), error=fields.read_str(), body=fields.read_bytes())
            case MsgType.ECHO:
                msg = Echo(timestamp=fields.read_int64())
        fields.finish()
        return msg

    def encode(self, msg: Message) -> bytes:
        """Encode a message to a complete frame."""
        payload = self.pack(msg)
        if len(payload) > self.max_message_length:
            raise EncodingError(
                f"Message length {len(payload)} exceeds max {self.max_message_length}"
            )
        return message.encode(payload)

    def write(self, stream: Stream, msg: Message) -> int:
        """Write one message to a stream. Returns bytes written.

        Raises TransportError if the stream fails.
        """
        frame = self.encode(msg)
        try:
            stream.write(frame)
        except (serial.SerialException, OSError) as e:
            raise TransportError(f"Write failed: {e}") from e
        return len(frame)

    @overload
    def read(self, stream: Stream, expected: type[M]) -> M: ...

    @overload
    def read(self, stream: Stream, expected: None = None) -> Message: ...

    def read(self, stream: Stream, expected: type[M] | None = None) -> Message:
        """Read one message from a stream.

        If expected is given, any other message type is an EncodingError.

        Raises:
            ReadTimeout: If no complete frame arrived before the stream timeout.
            TransportError: If the peer disconnected or the stream failed.
            EncodingError: On invalid frame, CRC mismatch or invalid message.
        """
        try:
            payload, crc_ok = message.decode(stream, self.max_message_length)
        except FrameError as e:
            raise EncodingError(str(e)) from e
        except (serial.SerialException, OSError) as e:
            raise TransportError(f"Read failed: {e}") from e

        if payload is None:
            raise ReadTimeout("Timeout or truncated message")
        if not crc_ok:
            raise EncodingError("CRC mismatch")

        msg = self.unpack(payload)
        if expected is not None and not isinstance(msg, expected):
            raise EncodingError(
                f"Expected {expected.MSG_TYPE.name}, got {msg.MSG_TYPE.name}"
            )
        return msg
