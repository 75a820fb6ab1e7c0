"""Byte-by-byte rendering of buffer content as text."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterator

from .buffer import AbstractByteBuffer, ByteBufferError
from .util import is_printable


class AbstractFormatter(ABC):
    """Renders each byte of a buffer as a short string."""

    def __init__(self, buf: AbstractByteBuffer) -> None:
        if buf is None:
            raise ByteBufferError("Cannot make HexFilter for NULL buffer!")
        self.buf = buf

    @abstractmethod
    def __getitem__(self, idx: int) -> str:
        """Text for the byte at ``idx``."""

    def __len__(self) -> int:
        return len(self.buf)

    def __iter__(self) -> Iterator[str]:
        return (self[i] for i in range(len(self)))


def _hex_byte(b: int) -> str:
    return format(b, "x").ljust(2, "0")


class Formatter(AbstractFormatter):
    """Shows printable bytes as characters and others as escapes or hex."""

    def __init__(self, buf: AbstractByteBuffer, hex_mode: bool = False, skip_nonprintable: bool = False) -> None:
        super().__init__(buf)
        self.hex_mode = hex_mode
        self.skip_nonprintable = skip_nonprintable

    def __getitem__(self, idx: int) -> str:
        b = self.buf[idx]
        if self.hex_mode:
            return _hex_byte(b)
        if not is_printable(b):
            if self.skip_nonprintable:
                return ".."
            return "\\x" + _hex_byte(b)
        return chr(b)


class HexFormatter(Formatter):
    """Shows every byte in hexadecimal."""

    def __init__(self, buf: AbstractByteBuffer) -> None:
        super().__init__(buf, hex_mode=True)