"""Message framing for stream communication.

Messages use a sync-prefixed, length-prefixed frame with CRC32 checksums:
  [4-byte sync magic][4-byte length][payload][4-byte CRC32]

The sync magic lets a peer that is not speaking the protocol at all
be told apart from a short read.

All integers are little-endian. Unsigned unless noted.
"""

import logging
import zlib
from typing import Literal, Protocol

logger = logging.getLogger(__name__)

UINT32_SIZE = 4
UINT64_SIZE = 8
BYTE_ORDER: Literal["little", "big"] = "little"

# Sync magic for message framing
SYNC_MAGIC = 0x5E5A1000
SYNC_MAGIC_BYTES = SYNC_MAGIC.to_bytes(UINT32_SIZE, BYTE_ORDER, signed=False)

# Maximum message length (prevents huge allocations on corrupted length)
MAX_MESSAGE_LENGTH = 4096


class Reader(Protocol):
    """Protocol for objects that can read bytes."""

    def read(self, size: int) -> bytes: ...


class FrameError(Exception):
    """Raised when a frame header is invalid (bad magic or oversized length)."""

    pass


def uint32_to_bytes(value: int) -> bytes:
    """Encode unsigned 32-bit int as little-endian bytes."""
    return value.to_bytes(UINT32_SIZE, BYTE_ORDER, signed=False)


def uint32_from_bytes(data: bytes) -> int:
    """Decode little-endian bytes to unsigned 32-bit int."""
    return int.from_bytes(data, BYTE_ORDER, signed=False)


def uint64_to_bytes(value: int) -> bytes:
    """Encode unsigned 64-bit int as little-endian bytes."""
    return value.to_bytes(UINT64_SIZE, BYTE_ORDER, signed=False)


def uint64_from_bytes(data: bytes) -> int:
    """Decode little-endian bytes to unsigned 64-bit int."""
    return int.from_bytes(data, BYTE_ORDER, signed=False)


def int64_to_bytes(value: int) -> bytes:
    """Encode signed 64-bit int as little-endian bytes."""
    return value.to_bytes(UINT64_SIZE, BYTE_ORDER, signed=True)


def int64_from_bytes(data: bytes) -> int:
    """Decode little-endian bytes to signed 64-bit int."""
    return int.from_bytes(data, BYTE_ORDER, signed=True)


def encode(payload: bytes) -> bytes:
    """Encode a byte payload with sync magic, length prefix and CRC32 suffix."""
    length = uint32_to_bytes(len(payload))
    crc = uint32_to_bytes(zlib.crc32(payload))
    return SYNC_MAGIC_BYTES + length + payload + crc


def decode(
    reader: Reader, max_length: int = MAX_MESSAGE_LENGTH
) -> tuple[bytes | None, bool]:
    """Decode one frame from a reader.

    Returns (payload, crc_ok), or (None, False) if the reader ran out of
    data (timeout or truncation) before a whole frame arrived.

    Raises:
        FrameError: On bad sync magic or a length above max_length.
    """
    sync_bytes = reader.read(UINT32_SIZE)
    if len(sync_bytes) < UINT32_SIZE:
        return None, False

    if sync_bytes != SYNC_MAGIC_BYTES:
        raise FrameError(f"Bad sync magic: {sync_bytes.hex()}")

    length_bytes = reader.read(UINT32_SIZE)
    if len(length_bytes) < UINT32_SIZE:
        return None, False

    length = uint32_from_bytes(length_bytes)
    if length > max_length:
        raise FrameError(f"Message length {length} exceeds max {max_length}")

    payload = reader.read(length)
    crc_bytes = reader.read(UINT32_SIZE)
    if len(payload) < length or len(crc_bytes) < UINT32_SIZE:
        return None, False

    expected_crc = uint32_from_bytes(crc_bytes)
    actual_crc = zlib.crc32(payload)
    if expected_crc != actual_crc:
        logger.debug(f"CRC mismatch: expected {expected_crc:08x}, got {actual_crc:08x}")

    return payload, expected_crc == actual_crc
