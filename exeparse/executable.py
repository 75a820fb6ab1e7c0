"""Executables seen as byte buffers with raw, relative and virtual addressing."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from enum import IntEnum

from .buffer import AbstractByteBuffer, BufferView, ParserError
from .filebuffer import FileView, dump

_log = logging.getLogger(__name__)


class ExeError(ParserError):
    """Raised when an executable cannot be built or addressed."""


class AddrType(IntEnum):
    """Kinds of address an executable understands."""

    NOT_ADDR = 0
    RAW = 1
    RVA = 2
    VA = 3


class Executable(AbstractByteBuffer):
    """An executable image backed by a byte buffer."""

    def __init__(self, buf: AbstractByteBuffer, bit_mode: int = 32) -> None:
        if buf is None:
            raise ExeError("Cannot make an Exe from NULL buffer")
        self.buf = buf
        self.bit_mode = bit_mode

    @property
    def content(self) -> memoryview | None:
        return self.buf.content

    def __len__(self) -> int:
        return len(self.buf)

    @property
    def image_base(self) -> int:
        """Address at which the image is meant to be loaded."""
        return 0

    @property
    def raw_size(self) -> int:
        """Size of the raw content."""
        return len(self)

    @property
    def file_name(self) -> str:
        """Path of the file the content was read from, or an empty string."""
        if isinstance(self.buf, FileView):
            return self.buf.path
        return ""

    @abstractmethod
    def mapped_size(self, addr_type: AddrType) -> int:
        """Size of the image in the given address space."""

    @abstractmethod
    def alignment(self, addr_type: AddrType) -> int:
        """Alignment of the image in the given address space."""

    @abstractmethod
    def rva_to_raw(self, rva: int) -> int | None:
        """Raw offset of a relative virtual address, or None."""

    @abstractmethod
    def raw_to_rva(self, raw: int) -> int | None:
        """Relative virtual address of a raw offset, or None."""

    def content_at(
        self, offset: int | None, addr_type: AddrType, size: int, allow_exceptions: bool = False
    ) -> memoryview | None:
        """View of ``size`` bytes at an address of the given type."""
        raw = self.to_raw(offset, addr_type, allow_exceptions)
        if raw is None:
            return None
        return self.get_content_at(raw, size, allow_exceptions)

    def is_valid_addr(self, addr: int | None, addr_type: AddrType) -> bool:
        """Whether the address lies inside the image in its address space."""
        if addr is None or addr_type == AddrType.NOT_ADDR:
            return False
        mapped_from = self.image_base if addr_type == AddrType.VA else 0
        mapped_to = mapped_from + self.mapped_size(addr_type)
        return mapped_from <= addr < mapped_to

    def va_to_rva(self, va: int | None, autodetect: bool = False) -> int | None:
        """Subtract the image base; with ``autodetect``, non-VA values pass unchanged."""
        if va is None:
            return None
        if autodetect and not self.is_valid_addr(va, AddrType.VA):
            return va
        base = self.image_base
        if va < base:
            return va
        return va - base

    def convert_addr(self, addr: int | None, in_type: AddrType, out_type: AddrType) -> int | None:
        """Convert an address between address spaces, or None if impossible."""
        if in_type == AddrType.NOT_ADDR or out_type == AddrType.NOT_ADDR:
            return None
        if not self.is_valid_addr(addr, in_type):
            return None
        if in_type == out_type:
            return addr
        base = self.image_base
        if out_type == AddrType.RAW:
            if in_type == AddrType.VA:
                if addr < base:
                    return None
                addr -= base
            return self.rva_to_raw(addr)
        if in_type == AddrType.RAW:
            out = self.raw_to_rva(addr)
            if out is None:
                return None
            return out + base if out_type == AddrType.VA else out
        if out_type == AddrType.RVA:
            if addr < base:
                return None
            return addr - base
        if out_type == AddrType.VA:
            return addr + base
        return None

    def to_raw(self, offset: int | None, addr_type: AddrType, allow_exceptions: bool = False) -> int | None:
        """Raw offset of an address of the given type."""
        if offset is None:
            return None
        if addr_type == AddrType.RAW:
            return offset if offset < self.raw_size else None
        if addr_type == AddrType.VA:
            offset = self.va_to_rva(offset, False)
            addr_type = AddrType.RVA
        converted = None
        if addr_type == AddrType.RVA:
            try:
                converted = self.rva_to_raw(offset)
            except ParserError:
                if allow_exceptions:
                    raise
        if converted is None:
            _log.warning("Address out of bounds: offset = %X addrType = %u", offset, int(addr_type))
            if allow_exceptions:
                raise ExeError("Address out of bounds!")
        return converted

    def detect_addr_type(self, offset: int | None, hint_type: AddrType = AddrType.NOT_ADDR) -> AddrType:
        """Guess the address space of ``offset``, trying the hint first."""
        if hint_type == AddrType.RAW:
            return hint_type if self.is_valid_addr(offset, hint_type) else AddrType.NOT_ADDR
        if hint_type == AddrType.NOT_ADDR:
            hint_type = AddrType.RVA
        if not self.is_valid_addr(offset, hint_type):
            hint_type = AddrType.VA if hint_type == AddrType.RVA else AddrType.RVA
        if not self.is_valid_addr(offset, hint_type):
            return AddrType.NOT_ADDR
        return hint_type

    def file_size(self) -> int:
        """Size of the underlying file, or of the content if there is no file."""
        if isinstance(self.buf, FileView):
            return self.buf.file_size
        return len(self.buf)

    def dump_fragment(self, offset: int, size: int, path) -> bool:
        """Write ``size`` raw bytes from ``offset`` into a file."""
        view = BufferView(self, offset, size)
        return dump(path, view, False) != 0


class ExeBuilder(ABC):
    """Recognises one executable format and builds it from a buffer."""

    @abstractmethod
    def signature_matches(self, buf: AbstractByteBuffer) -> bool:
        """Whether the buffer starts with this format's signature."""

    @abstractmethod
    def build(self, buf: AbstractByteBuffer) -> Executable | None:
        """Build the executable, or None if the buffer does not hold one."""

    @abstractmethod
    def type_name(self) -> str:
        """Human-readable name of the format."""