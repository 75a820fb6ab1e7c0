"""MS-DOS executables: the MZ header and its builder."""

from __future__ import annotations

import logging
from enum import IntEnum

from .buffer import AbstractByteBuffer
from .executable import AddrType, ExeBuilder, ExeError, Executable
from .wrappers import ExeElementWrapper, MappedExe

_log = logging.getLogger(__name__)

S_DOS = 0x5A4D
S_DOS2 = 0x4D5A
DOS_HEADER_SIZE = 64
WR_DOS_HDR = 0
PARAGRAPH_SIZE = 16


class DosField(IntEnum):
    """Fields of the DOS header, in their order."""

    MAGIC = 0
    CBLP = 1
    CP = 2
    CRLC = 3
    CPARHDR = 4
    MINALLOC = 5
    MAXALLOC = 6
    SS = 7
    SP = 8
    CSUM = 9
    IP = 10
    CS = 11
    LFARLC = 12
    OVNO = 13
    RES = 14
    OEMID = 15
    OEMINFO = 16
    RES2 = 17
    LFNEW = 18
    FIELD_COUNTER = 19


_FIELD_OFFSETS = {
    DosField.MAGIC: 0,
    DosField.CBLP: 2,
    DosField.CP: 4,
    DosField.CRLC: 6,
    DosField.CPARHDR: 8,
    DosField.MINALLOC: 10,
    DosField.MAXALLOC: 12,
    DosField.SS: 14,
    DosField.SP: 16,
    DosField.CSUM: 18,
    DosField.IP: 20,
    DosField.CS: 22,
    DosField.LFARLC: 24,
    DosField.OVNO: 26,
    DosField.RES: 28,
    DosField.OEMID: 36,
    DosField.OEMINFO: 38,
    DosField.RES2: 40,
    DosField.LFNEW: 60,
    DosField.FIELD_COUNTER: 64,
}

_FIELD_NAMES = {
    DosField.MAGIC: "Magic number",
    DosField.CBLP: "Bytes on last page of file",
    DosField.CP: "Pages in file",
    DosField.CRLC: "Relocations",
    DosField.CPARHDR: "Size of header in paragraphs",
    DosField.MINALLOC: "Minimum extra paragraphs needed",
    DosField.MAXALLOC: "Maximum extra paragraphs needed",
    DosField.SS: "Initial (relative) SS value",
    DosField.SP: "Initial SP value",
    DosField.CSUM: "Checksum",
    DosField.IP: "Initial IP value",
    DosField.CS: "Initial (relative) CS value",
    DosField.LFARLC: "File address of relocation table",
    DosField.OVNO: "Overlay number",
    DosField.RES: "Reserved words[4]",
    DosField.OEMID: "OEM identifier (for OEM information)",
    DosField.OEMINFO: "OEM information; OEM identifier specific",
    DosField.RES2: "Reserved words[10]",
    DosField.LFNEW: "File address of new exe header",
}


class DosHdrWrapper(ExeElementWrapper):
    """The DOS header at the start of the executable."""

    def __init__(self, exe: Executable) -> None:
        super().__init__(exe)

    def _present(self) -> bool:
        return self.exe.get_content_at(0, DOS_HEADER_SIZE) is not None

    @property
    def offset(self) -> int | None:
        return 0 if self._present() else None

    @property
    def size(self) -> int:
        return DOS_HEADER_SIZE if self._present() else 0

    @property
    def name(self) -> str:
        return "DOS Hdr"

    @property
    def fields_count(self) -> int:
        return int(DosField.FIELD_COUNTER)

    def field_offset(self, field_id: int, sub_field: int = 0) -> int | None:
        if not self._present():
            return None
        try:
            return _FIELD_OFFSETS[DosField(field_id)]
        except ValueError:
            return 0

    def field_name(self, field_id: int) -> str:
        try:
            return _FIELD_NAMES.get(DosField(field_id), "")
        except ValueError:
            return ""

    def contains_addr_type(self, field_id: int, sub_field: int = 0) -> AddrType:
        if field_id in (DosField.LFARLC, DosField.LFNEW):
            return AddrType.RAW
        return AddrType.NOT_ADDR


class DOSExe(MappedExe):
    """A 16-bit MS-DOS executable, addressed flat."""

    def __init__(self, buf: AbstractByteBuffer) -> None:
        super().__init__(buf, 16)
        self.dos_hdr_wrapper: DosHdrWrapper | None = None
        self.wrap()

    def wrap(self) -> None:
        wrapper = DosHdrWrapper(self)
        self.dos_hdr_wrapper = wrapper
        if self.get_content_at(0, DOS_HEADER_SIZE) is None:
            raise ExeError("Could not Wrap!")
        magic = wrapper.get_num_value(DosField.MAGIC)
        if wrapper.offset is None or magic is None:
            raise ExeError("Could not Wrap!")
        if magic not in (S_DOS, S_DOS2):
            _log.warning("It is not a DOS file!")
            raise ExeError("It is not a DOS file!")
        self.wrappers[WR_DOS_HDR] = wrapper

    @property
    def entry_point(self) -> int | None:
        """Raw offset of the first instruction: load module start plus CS:IP."""
        hdr = self.dos_hdr_wrapper
        if hdr is None:
            return None
        paragraphs = hdr.get_num_value(DosField.CPARHDR)
        cs = hdr.get_num_value(DosField.CS)
        ip = hdr.get_num_value(DosField.IP)
        if paragraphs is None or cs is None or ip is None:
            return None
        return paragraphs * PARAGRAPH_SIZE + cs * PARAGRAPH_SIZE + ip

    def pe_signature_offset(self) -> int:
        """Value of the header's pointer to the new executable header."""
        if self.dos_hdr_wrapper is None:
            return 0
        value = self.dos_hdr_wrapper.get_num_value(DosField.LFNEW)
        if value is None:
            return 0
        if value >= 1 << 31:
            value -= 1 << 32
        return value

    def mapped_size(self, addr_type: AddrType) -> int:
        if addr_type == AddrType.NOT_ADDR:
            return 0
        return len(self)

    def alignment(self, addr_type: AddrType) -> int:
        return 0 if addr_type == AddrType.NOT_ADDR else 1

    def rva_to_raw(self, rva: int) -> int | None:
        return rva if rva is not None and 0 <= rva < len(self) else None

    def raw_to_rva(self, raw: int) -> int | None:
        return raw if raw is not None and 0 <= raw < len(self) else None


class DOSExeBuilder(ExeBuilder):
    """Recognises and builds MZ executables."""

    def signature_matches(self, buf: AbstractByteBuffer | None) -> bool:
        if buf is None:
            return False
        magic = buf.get_content_at(0, 2)
        if magic is None:
            return False
        return int.from_bytes(magic, "little") in (S_DOS, S_DOS2)

    def build(self, buf: AbstractByteBuffer) -> Executable | None:
        if not self.signature_matches(buf):
            return None
        try:
            return DOSExe(buf)
        except ExeError:
            return None

    def type_name(self) -> str:
        return "MZ"