"""Byte buffers and views over them, with typed access to their content."""

from __future__ import annotations

import logging
import struct
from abc import ABC, abstractmethod
from collections.abc import Iterator
from typing import BinaryIO

from .util import get_ascii_len, get_ascii_len_w

_log = logging.getLogger(__name__)

_NUM_SIZES = (1, 2, 4, 8)


class ParserError(Exception):
    """Base error of the parser."""


class ByteBufferError(ParserError):
    """Raised when a buffer cannot be created or accessed as requested."""


def roundup_to_unit(size: int, unit: int) -> int:
    """Round ``size`` up to a multiple of ``unit``."""
    if unit == 0:
        raise ValueError("Invalid roundup unit!")
    units, rest = divmod(size, unit)
    if rest:
        units += 1
    return units * unit


def _fail(message: str, allow_exceptions: bool) -> None:
    if allow_exceptions:
        raise ByteBufferError(message)
    return None


class AbstractByteBuffer(ABC):
    """A block of bytes addressed by offsets."""

    @property
    @abstractmethod
    def content(self) -> memoryview | None:
        """Writable view over the whole content, or None if there is none."""

    @staticmethod
    def is_valid(buf: AbstractByteBuffer | None) -> bool:
        """Whether ``buf`` exists and holds a non-empty content."""
        if buf is None:
            return False
        return buf.content is not None and len(buf) != 0

    def __len__(self) -> int:
        data = self.content
        return 0 if data is None else len(data)

    def __getitem__(self, idx: int) -> int:
        if idx < 0 or idx >= len(self):
            raise ByteBufferError("Too far offset requested!")
        data = self.content
        if data is None:
            raise ByteBufferError("Too far offset requested!")
        return data[idx]

    def __iter__(self) -> Iterator[int]:
        data = self.content
        return iter(b"" if data is None else bytes(data))

    def __bytes__(self) -> bytes:
        data = self.content
        return b"" if data is None else bytes(data)

    def get_content_at(self, offset: int | None, size: int, allow_exceptions: bool = False) -> memoryview | None:
        """View of ``size`` bytes at ``offset``, or None if out of bounds."""
        if offset is None or offset < 0:
            return _fail("Invalid address requested!", allow_exceptions)
        if size <= 0:
            return _fail("Zero size requested!", allow_exceptions)
        data = self.content
        if data is None:
            return None
        total = len(data)
        if offset >= total:
            return _fail(
                f"Too far offset requested! Buffer size: {total} vs reguested Offset: 0x{offset:x}",
                allow_exceptions,
            )
        end = offset + size
        if end > total:
            return _fail(
                f"Too big size requested! Buffer size: {total} vs end of the requested area: 0x{end:x}",
                allow_exceptions,
            )
        return data[offset:end]

    def get_max_size_from_offset(self, offset: int | None) -> int:
        """Number of bytes available from ``offset`` to the end."""
        if offset is None:
            return 0
        size = len(self)
        if size < offset:
            return 0
        return size - offset

    def set_buffered_value(
        self, dst_offset: int | None, src: bytes, padding_size: int = 0, allow_exceptions: bool = False
    ) -> bool:
        """Copy ``src`` to ``dst_offset``, zero-padding ``padding_size`` bytes after it.

        Returns False if nothing had to change.
        """
        if src is None:
            return False
        src = bytes(src)
        data = self.content
        if data is None or dst_offset is None or not 0 <= dst_offset < len(data):
            _log.error("Invalid copy destination!")
            if allow_exceptions:
                raise ByteBufferError("Invalid copy destination!")
            return False
        size = min(len(src) + padding_size, len(data) - dst_offset)
        expected = (src + bytes(padding_size))[:size]
        if bytes(data[dst_offset:dst_offset + size]) == expected:
            return False
        if padding_size:
            data[dst_offset:dst_offset + size] = bytes(size)
        chunk = src[:size]
        data[dst_offset:dst_offset + len(chunk)] = chunk
        return True

    def set_string_value(self, offset: int | None, text: str) -> bool:
        """Write ``text`` as a terminated UTF-8 string at ``offset``."""
        encoded = text.encode("utf-8")
        if self.get_content_at(offset, len(encoded) + 1) is None:
            return False
        return self.set_buffered_value(offset, encoded, 1)

    def get_string_value(
        self, offset: int | None, size: int | None = None, accept_non_terminated: bool = False
    ) -> str:
        """Read the ASCII string at ``offset``, looking at most ``size`` bytes."""
        if offset is None:
            return ""
        if size is None:
            size = len(self) - offset
        area = self.get_content_at(offset, size)
        if area is None:
            return ""
        length = get_ascii_len(area, size, accept_non_terminated)
        return bytes(area[:length]).decode("utf-8", errors="replace")

    def _words_from(self, offset: int, area: memoryview, length: int | None) -> bytes:
        source = self.content[offset:] if length is None else area
        return bytes(source[: len(source) & ~1])

    def get_wstring_value(self, offset: int | None, length: int | None = None) -> str:
        """Read a UTF-16 string of ``length`` characters, or up to its terminator."""
        area = self.get_content_at(offset, 2 if length is None else length * 2)
        if area is None:
            return ""
        raw = self._words_from(offset, area, length)
        if length is None:
            for index, (word,) in enumerate(struct.iter_unpack("<H", raw)):
                if word == 0:
                    raw = raw[: index * 2]
                    break
        return raw.decode("utf-16-le", errors="replace")

    def get_wascii_string_value(
        self, offset: int | None, length: int | None = None, accept_non_terminated: bool = False
    ) -> str:
        """Read a wide string whose characters are all printable ASCII."""
        area = self.get_content_at(offset, 2 if length is None else length * 2)
        if area is None:
            return ""
        raw = self._words_from(offset, area, length)
        words = [word for (word,) in struct.iter_unpack("<H", raw)]
        count = get_ascii_len_w(words, length, accept_non_terminated)
        return raw[: count * 2].decode("utf-16-le", errors="replace")

    def is_area_empty(self, offset: int | None, size: int) -> bool:
        """Whether the area exists and holds only zeros."""
        area = self.get_content_at(offset, size)
        if area is None:
            return False
        return not any(area)

    def fill_content(self, filling: int = 0) -> bool:
        """Set every byte of the content to ``filling``."""
        data = self.content
        if data is None:
            return False
        data[:] = bytes([filling]) * len(data)
        return True

    def paste_buffer(self, offset: int | None, buf: AbstractByteBuffer, allow_trunc: bool = False) -> bool:
        """Copy the content of ``buf`` to ``offset``, truncating it if allowed."""
        if not self.is_valid(buf) or not self.is_valid(self):
            return False
        if offset is None:
            return False
        source = bytes(buf.content)
        my_size = len(self)
        if my_size <= offset:
            _log.error("Too far offset requested: %X while mySize: %X", offset, my_size)
            return False
        size_to_fill = len(source)
        target = self.get_content_at(offset, size_to_fill)
        if target is None:
            if not allow_trunc:
                return False
            size_to_fill = my_size - offset
            target = self.get_content_at(offset, size_to_fill)
        if target is None:
            return False
        target[:] = source[:size_to_fill]
        return True

    def contains_block(self, offset: int | None, size: int) -> bool:
        """Whether the whole block lies inside the buffer."""
        if offset is None or size == 0:
            return False
        if self.content is None or len(self) == 0:
            return False
        return offset >= 0 and offset + size <= len(self)

    def intersects_block(self, offset: int | None, size: int) -> bool:
        """Whether the block starts or ends inside the buffer."""
        if offset is None or size == 0:
            return False
        if self.content is None or len(self) == 0:
            return False
        start, end = 0, len(self)
        block_end = offset + size
        if start <= offset <= end:
            _log.info("Found in bounds: %X - %X end: %X", start, end, offset)
            return True
        if start <= block_end <= end:
            _log.info("Found in bounds: %X - %X", start, end)
            return True
        return False

    def get_num_value(self, offset: int | None, size: int) -> int | None:
        """Little-endian unsigned value of 1, 2, 4 or 8 bytes, or None."""
        if size == 0 or offset is None:
            return None
        area = self.get_content_at(offset, size)
        if area is None or size not in _NUM_SIZES:
            return None
        return int.from_bytes(area, "little")

    def set_num_value(self, offset: int | None, size: int, value: int) -> bool:
        """Store ``value`` truncated to ``size`` bytes; False if unchanged or impossible."""
        if size == 0 or offset is None:
            return False
        area = self.get_content_at(offset, size)
        if area is None:
            _log.error("Cannot get Ptr at: %X of size: %X!", offset, size)
            return False
        if size not in _NUM_SIZES:
            _log.error("Wrong size!")
            return False
        new_value = value & ((1 << (8 * size)) - 1)
        if int.from_bytes(area, "little") == new_value:
            return False
        area[:] = new_value.to_bytes(size, "little")
        return True

    def set_text_value(self, offset: int | None, text: str, field_limit_len: int = 0) -> bool:
        """Overwrite the terminated string at ``offset``, clearing a fixed-size field first."""
        data = self.content
        if offset is None or data is None or not 0 <= offset < len(data):
            return False
        encoded = text.encode("utf-8")
        new_len = len(encoded) + 1
        if self.get_content_at(offset, new_len) is None:
            return False
        existing = bytes(data[offset:]).split(b"\0", 1)[0]
        if existing == encoded:
            return False
        if field_limit_len and self.get_content_at(offset, field_limit_len) is not None:
            data[offset:offset + field_limit_len] = bytes(field_limit_len)
            new_len = min(new_len, field_limit_len)
        data[offset:offset + new_len] = (encoded + b"\0")[:new_len]
        if offset + new_len < len(data):
            data[offset + new_len] = 0
        return True

    def subst_fragment_by_file(self, offset: int | None, size: int, stream: BinaryIO) -> int:
        """Replace an area with bytes read from ``stream``; returns how many were read."""
        part = self.get_content_at(offset, size)
        if part is None:
            return 0
        readable = getattr(stream, "readable", None)
        if readable is None or not readable():
            return 0
        loaded = stream.read(size) or b""
        part[:] = bytes(size)
        part[: len(loaded)] = loaded
        return len(loaded)


class BufferView(AbstractByteBuffer):
    """A window of a parent buffer, trimmed to the parent's end."""

    def __init__(self, parent: AbstractByteBuffer, offset: int, size: int) -> None:
        if parent is None:
            raise ByteBufferError("Cannot make subBuffer for NULL buffer!")
        self.parent = parent
        self.offset = offset
        self.size = size

    def __len__(self) -> int:
        max_size = len(self.parent)
        if self.offset > max_size:
            return 0
        return min(self.size, max_size - self.offset)

    @property
    def content(self) -> memoryview | None:
        return self.parent.get_content_at(self.offset, len(self))


class ByteBuffer(AbstractByteBuffer):
    """A buffer owning its bytes, with optional zeroed padding after them."""

    def __init__(self, size: int, padding: int = 0) -> None:
        if size <= 0:
            raise ByteBufferError("Zero size requested")
        if padding < 0:
            raise ByteBufferError("Invalid padding requested")
        self._data = bytearray(size + padding)
        self._size = size
        self.padding = padding
        self.original_size = size

    @classmethod
    def from_bytes(cls, data: bytes, padding: int = 0) -> ByteBuffer:
        """Buffer holding a copy of ``data``."""
        data = bytes(data)
        buf = cls(len(data), padding)
        buf._data[: len(data)] = data
        return buf

    @classmethod
    def from_buffer(
        cls, parent: AbstractByteBuffer, offset: int, size: int, padding: int = 0
    ) -> ByteBuffer:
        """Buffer of ``size`` bytes holding a copy of the parent's content at ``offset``."""
        if parent is None:
            raise ByteBufferError("Cannot make subBuffer for NULL buffer!")
        if not size:
            raise ByteBufferError("Cannot make 0 size buffer!")
        copy_size = min(size, len(parent))
        if parent.get_content_at(offset, copy_size) is None:
            raise ByteBufferError("Cannot make Buffer for NULL content!")
        buf = cls(size, padding)
        available = bytes(parent.content[offset:offset + size])
        buf._data[: len(available)] = available
        return buf

    def __len__(self) -> int:
        return self._size

    @property
    def content(self) -> memoryview:
        return memoryview(self._data)[: self._size]

    def resize(self, new_size: int) -> bool:
        """Change the content size, keeping the start and zeroing what is new."""
        if new_size == self._size:
            return True
        if new_size <= 0:
            return False
        alloc = new_size + self.padding
        data = bytearray(alloc)
        keep = min(self._size, alloc)
        data[:keep] = self._data[:keep]
        self._data = data
        self._size = new_size
        return True