"""Reader for the binary serialization format used by the perf data stream.

Values are big-endian. Byte arrays and strings are length-prefixed with a
32-bit count where ``0xFFFFFFFF`` marks a null value. Strings are UTF-16
big-endian. Lists are a 32-bit element count followed by the elements.
Newer stream versions may use an extended 64-bit size after a
``0xFFFFFFFE`` marker.
"""

from __future__ import annotations

import struct
from typing import Callable, List, TypeVar

T = TypeVar("T")

#: First stream version that serializes ``float`` with double precision.
VERSION_DOUBLE_PRECISION_FLOAT = 12
#: First stream version that may use extended 64-bit sizes.
VERSION_EXTENDED_SIZE = 22

_NULL_SIZE = 0xFFFFFFFF
_EXTENDED_SIZE_MARKER = 0xFFFFFFFE


class StreamError(ValueError):
    """Raised when the data cannot be decoded, e.g. reading past its end."""


class DataStreamReader:
    """Sequential reader over one buffer of serialized values."""

    def __init__(self, data, version):
        self._data = bytes(data)
        self._pos = 0
        self.version = int(version)

    @property
    def position(self) -> int:
        """Number of bytes consumed so far."""
        return self._pos

    def at_end(self) -> bool:
        """Return True once every byte has been consumed."""
        return self._pos >= len(self._data)

    def _take(self, count: int) -> bytes:
        end = self._pos + count
        if count < 0 or end > len(self._data):
            raise StreamError(
                f"read past end: need {count} bytes at offset {self._pos}, "
                f"{len(self._data) - self._pos} available"
            )
        chunk = self._data[self._pos:end]
        self._pos = end
        return chunk

    def _unpack(self, fmt: str):
        return struct.unpack(fmt, self._take(struct.calcsize(fmt)))[0]

    def _read_size(self) -> int | None:
        """Read a length prefix; None stands for a null value."""
        size = self.read_uint32()
        if size == _NULL_SIZE:
            return None
        if size == _EXTENDED_SIZE_MARKER and self.version >= VERSION_EXTENDED_SIZE:
            extended = self._unpack(">q")
            if extended < 0:
                raise StreamError(f"invalid extended size {extended}")
            return extended
        return size

    def read_int8(self) -> int:
        return self._unpack(">b")

    def read_uint8(self) -> int:
        return self._unpack(">B")

    def read_int32(self) -> int:
        return self._unpack(">i")

    def read_uint32(self) -> int:
        return self._unpack(">I")

    def read_uint64(self) -> int:
        return self._unpack(">Q")

    def read_bool(self) -> bool:
        return self.read_int8() != 0

    def read_float(self) -> float:
        """Read a float; newer versions store it with double precision."""
        if self.version >= VERSION_DOUBLE_PRECISION_FLOAT:
            return self._unpack(">d")
        return self._unpack(">f")

    def read_bytes(self) -> bytes:
        size = self._read_size()
        if size is None:
            return b""
        return self._take(size)

    def read_string(self) -> str:
        size = self._read_size()
        if size is None:
            return ""
        if size % 2:
            raise StreamError(f"string byte length {size} is not a multiple of two")
        return self._take(size).decode("utf-16-be", errors="surrogatepass")

    def read_list(self, read_item: Callable[["DataStreamReader"], T]) -> List[T]:
        """Read a counted list, decoding each element with ``read_item``."""
        count = self._read_size()
        if count is None:
            raise StreamError("invalid list size")
        return [read_item(self) for _ in range(count)]