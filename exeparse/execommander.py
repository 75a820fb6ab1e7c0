"""Commands that inspect and modify a loaded executable."""

from __future__ import annotations

import re
from abc import abstractmethod
from typing import TextIO

from .buffer import BufferView, ParserError
from .commander import CmdContext, Command, Commander
from .executable import AddrType, Executable
from .filebuffer import dump
from .formatter import Formatter, HexFormatter
from .wrappers import ExeElementWrapper, ExeNodeWrapper, MappedExe

_INVALID_ADDR = (1 << 64) - 1
_FETCH_SIZE = 100
_HEX_RE = re.compile(r"(?:0[xX])?([0-9a-fA-F]+)")
_DEC_RE = re.compile(r"\d+")


def _hex_field(value: int | None, width: int = 8) -> str:
    shown = _INVALID_ADDR if value is None else value
    return f"{shown:0{width}x}"


def _padded_offset(value: int | None) -> str:
    return f"[{_hex_field(value)}]"


def addr_type_to_char(addr_type: AddrType) -> str:
    """One-letter tag of an address type."""
    return {AddrType.RAW: "r", AddrType.RVA: "v", AddrType.VA: "V"}.get(addr_type, "_")


def addr_type_to_str(addr_type: AddrType) -> str:
    """Short name of an address type."""
    return {AddrType.RAW: "raw", AddrType.RVA: "RVA", AddrType.VA: "VA"}.get(addr_type, "")


class ExeCmdContext(CmdContext):
    """Command context that also holds the executable being worked on."""

    def __init__(
        self,
        stdin: TextIO | None = None,
        stdout: TextIO | None = None,
        exe: Executable | None = None,
    ) -> None:
        super().__init__(stdin, stdout)
        self.exe = exe


def exe_from_context(context: CmdContext) -> Executable:
    """The executable held by the context; raises if there is none."""
    if not isinstance(context, ExeCmdContext):
        raise ParserError("Invalid command context!")
    if context.exe is None:
        raise ParserError("Invalid command context: no Exe")
    return context.exe


def _mapped_exe_from_context(context: CmdContext) -> MappedExe | None:
    exe = exe_from_context(context)
    return exe if isinstance(exe, MappedExe) else None


def _prompt(context: CmdContext, prompt: str) -> None:
    context.stdout.write(f"{prompt}: ")
    context.stdout.flush()


def _parse_number(token: str | None, read_hex: bool, bits: int) -> int:
    if token is None:
        return 0
    if read_hex:
        found = _HEX_RE.match(token)
        value = int(found.group(1), 16) if found else 0
    else:
        found = _DEC_RE.match(token)
        value = int(found.group(0)) if found else 0
    return value & ((1 << bits) - 1)


def read_offset(context: CmdContext, addr_type: AddrType) -> int | None:
    """Ask for a hexadecimal address of the given type."""
    if addr_type == AddrType.NOT_ADDR:
        return None
    _prompt(context, addr_type_to_str(addr_type))
    return _parse_number(context.read_token(), True, 64)


def read_number(context: CmdContext, prompt: str, read_hex: bool = False) -> int:
    """Ask for a number, decimal unless ``read_hex``; 0 if none is given."""
    _prompt(context, prompt)
    return _parse_number(context.read_token(), read_hex, 32)


def fetch(context: CmdContext, exe: Executable, offset: int | None, addr_type: AddrType, hex_mode: bool) -> None:
    """Print the bytes found at an address."""
    raw = exe.to_raw(offset, addr_type)
    if raw is None:
        print("ERROR: Invalid Address suplied", file=context.stderr)
        return
    view = BufferView(exe, raw, _FETCH_SIZE)
    if view.content is None:
        print("[ERROR] Cannot fetch", file=context.stdout)
        return
    if hex_mode:
        formatter: Formatter = HexFormatter(view)
        separator = " "
    else:
        formatter = Formatter(view)
        separator = ""
    out = context.stdout
    print("Fetched:", file=out)
    out.write("".join(text + separator for text in formatter))
    out.write("\n")


def print_wrapper_names(context: CmdContext, exe: MappedExe) -> None:
    """List the wrappers of the executable that are present."""
    for index in range(exe.wrappers_count()):
        wrapper = exe.wrapper(index)
        if wrapper is None or wrapper.content is None:
            continue
        print(f"[{index}] {exe.wrapper_name(index)}", file=context.stdout)


def dump_entry_info(context: CmdContext, wrapper: ExeElementWrapper | None) -> None:
    """Print the fields of a wrapper with their values."""
    if wrapper is None:
        return
    out = context.stdout
    out.write("\n------\n")
    fields = wrapper.fields_count
    print(f"[{wrapper.name}] size: 0x{wrapper.size:x} fieldsCount: {fields}\n", file=out)
    for field_id in range(fields):
        offset = wrapper.field_offset(field_id)
        if offset is None:
            continue
        out.write(f"{_padded_offset(offset)} {wrapper.field_name(field_id)}\t")
        sub_fields = wrapper.sub_fields_count or 1
        for sub_field in range(sub_fields):
            value = wrapper.wrapped_value(field_id, sub_field)
            if not value.is_valid():
                break
            tag = addr_type_to_char(wrapper.contains_addr_type(field_id, sub_field))
            out.write(f"[{value.to_string()} {tag}]")
        translated = wrapper.translate_field_content(field_id)
        if translated:
            out.write(f" {translated} ")
        out.write("\n")
    print("------", file=out)


def dump_node_info(context: CmdContext, wrapper: ExeElementWrapper | None) -> None:
    """Print the entries of a node wrapper; other wrappers are ignored."""
    if not isinstance(wrapper, ExeNodeWrapper):
        return
    out = context.stdout
    print("------", file=out)
    count = wrapper.entries_count()
    print(f"\t [{wrapper.name}] entriesCount: {count}", file=out)
    for index in range(count):
        entry = wrapper.entry_at(index)
        if entry is None:
            break
        out.write(f"Entry #{index}\n")
        dump_entry_info(context, entry)
        sub_entries = entry.entries_count()
        if sub_entries > 0:
            out.write(f"Have entries: {sub_entries} ( 0x{sub_entries:x} )")
        out.write("\n")


class ConvertAddrCommand(Command):
    """Converts an address from one address space to another."""

    def __init__(self, addr_from: AddrType, addr_to: AddrType, description: str) -> None:
        super().__init__(description)
        self.addr_from = addr_from
        self.addr_to = addr_to

    def execute(self, context: CmdContext) -> None:
        exe = exe_from_context(context)
        offset = read_offset(context, self.addr_from)
        converted = exe.convert_addr(offset, self.addr_from, self.addr_to)
        out = context.stdout
        if converted is None:
            print("[WARNING] This address cannot be mapped", file=out)
            return
        print(
            f"[{addr_type_to_str(self.addr_from)}]\t->\t[{addr_type_to_str(self.addr_to)}]:",
            file=out,
        )
        print(f"{_padded_offset(offset)}\t->\t{_padded_offset(converted)}", file=out)


class FetchCommand(Command):
    """Prints the content found at an address."""

    def __init__(self, hex_mode: bool, addr_type: AddrType, description: str) -> None:
        super().__init__(description)
        self.hex_mode = hex_mode
        self.addr_type = addr_type

    def execute(self, context: CmdContext) -> None:
        exe = exe_from_context(context)
        offset = read_offset(context, self.addr_type)
        fetch(context, exe, offset, self.addr_type, self.hex_mode)


class ExeInfoCommand(Command):
    """Prints general information about the executable."""

    def __init__(self, description: str = "Exe Info") -> None:
        super().__init__(description)

    def execute(self, context: CmdContext) -> None:
        exe = exe_from_context(context)
        out = context.stdout
        out.write(f"Bit mode: \t{exe.bit_mode}\n")
        out.write(f"Entry point: \t[{_hex_field(exe.entry_point)} {addr_type_to_char(AddrType.RVA)}]\n")
        out.write(f"Raw size: \t{_padded_offset(exe.mapped_size(AddrType.RAW))}\n")
        out.write(f"Raw align. \t{_padded_offset(exe.alignment(AddrType.RAW))}\n")
        out.write(f"Virtual size: \t{_padded_offset(exe.mapped_size(AddrType.RVA))}\n")
        out.write(f"Virtual align. \t{_padded_offset(exe.alignment(AddrType.RVA))}\n")
        if isinstance(exe, MappedExe):
            out.write("Contains:\n")
            print_wrapper_names(context, exe)
        out.write("\n")


class WrapperCommand(Command):
    """A command acting on one wrapper of the executable, chosen by id."""

    def __init__(self, description: str, wrapper_id: int | None = None) -> None:
        super().__init__(description)
        self.wrapper_id = wrapper_id

    def execute(self, context: CmdContext) -> None:
        exe = _mapped_exe_from_context(context)
        if exe is None:
            return
        wrapper_id = self.wrapper_id
        if wrapper_id is None:
            print_wrapper_names(context, exe)
            wrapper_id = read_number(context, "wrapperNum", False)
        wrapper = exe.wrapper(wrapper_id)
        if wrapper is None:
            print("No such wrapper!", file=context.stdout)
            return
        self.wrapper_action(context, wrapper)

    @abstractmethod
    def wrapper_action(self, context: CmdContext, wrapper: ExeElementWrapper) -> None:
        """Act on the chosen wrapper."""


class AddEntryCommand(WrapperCommand):
    """Appends a copy of the last entry to a node wrapper."""

    def wrapper_action(self, context: CmdContext, wrapper: ExeElementWrapper | None) -> None:
        out = context.stdout
        if wrapper is None:
            print("Invalid Wrapper", file=out)
            return
        if not isinstance(wrapper, ExeNodeWrapper):
            print("This wrapper stores no entries!", file=context.stderr)
            return
        if not wrapper.can_add_entry():
            print("No space to add entry", file=out)
            return
        if wrapper.add_entry(None) is not None:
            print("Added!", file=out)
            return
        print("Failed!", file=out)


class DumpWrapperCommand(WrapperCommand):
    """Prints the fields and entries of a wrapper."""

    def wrapper_action(self, context: CmdContext, wrapper: ExeElementWrapper | None) -> None:
        if wrapper is None:
            return
        dump_entry_info(context, wrapper)
        dump_node_info(context, wrapper)


class DumpWrapperEntriesCommand(WrapperCommand):
    """Prints a node wrapper and then one of its entries, chosen by index."""

    def wrapper_action(self, context: CmdContext, wrapper: ExeElementWrapper | None) -> None:
        if wrapper is None:
            print("Invalid Wrapper", file=context.stderr)
            return
        if not isinstance(wrapper, ExeNodeWrapper):
            print("This wrapper has no entries!", file=context.stderr)
            return
        dump_entry_info(context, wrapper)
        index = read_number(context, "Dump subentries of Index: ")
        entry = wrapper.entry_at(index)
        dump_entry_info(context, entry)
        dump_node_info(context, entry)


class ClearWrapperCommand(WrapperCommand):
    """Zeroes the content of a wrapper and rebuilds the executable's wrappers."""

    def wrapper_action(self, context: CmdContext, wrapper: ExeElementWrapper | None) -> None:
        if wrapper is None:
            return
        out = context.stdout
        if wrapper.fill_content(0):
            print("Filled!", file=out)
        else:
            print("Failed to fill...", file=out)
            return
        if isinstance(wrapper.exe, MappedExe):
            wrapper.exe.wrap()


class DumpWrapperToFileCommand(WrapperCommand):
    """Writes the content of a wrapper into a file in the current directory."""

    def wrapper_action(self, context: CmdContext, wrapper: ExeElementWrapper | None) -> None:
        if wrapper is None:
            return
        file_name = self.make_file_name(wrapper.offset)
        size = dump(file_name, wrapper, True)
        print(f"Dumped size: 0x{size:x} into: {file_name}", file=context.stdout)

    def make_file_name(self, wrapper_offset: int | None) -> str:
        """File name for a wrapper found at ``wrapper_offset``."""
        suffix = "" if wrapper_offset is None else f"_at_{wrapper_offset:x}"
        return f"wrapper{suffix}.bin"


class SaveExeToFileCommand(Command):
    """Writes the whole executable into ``dumped.exe``."""

    FILE_NAME = "dumped.exe"

    def __init__(self, description: str = "Save exe to file") -> None:
        super().__init__(description)

    def execute(self, context: CmdContext) -> None:
        exe = exe_from_context(context)
        size = dump(self.FILE_NAME, exe, True)
        print(f"Dumped size: 0x{size:x} into: {self.FILE_NAME}", file=context.stdout)


class ExeCommander(Commander):
    """Command loop with the commands that work on any executable."""

    def __init__(self, context: ExeCmdContext) -> None:
        super().__init__(context)
        self.exe_context = context
        ExeCommander.init_commands(self)

    def init_commands(self) -> None:
        """Register the executable commands."""
        self.add_command("info", ExeInfoCommand())
        self.add_command("r-v", ConvertAddrCommand(AddrType.RAW, AddrType.RVA, "Convert: RAW -> RVA"))
        self.add_command("v-r", ConvertAddrCommand(AddrType.RVA, AddrType.RAW, "Convert: RVA -> RAW"))
        self.add_command("printc", FetchCommand(False, AddrType.RAW, "Print content by Raw address"))
        self.add_command("printx", FetchCommand(True, AddrType.RAW, "Print content by Raw address - HEX"))
        self.add_command("cl", ClearWrapperCommand("Clear chosen wrapper Content"))
        self.add_command("fdump", DumpWrapperToFileCommand("Dump chosen wrapper Content into a file"))
        self.add_command("winfo", DumpWrapperCommand("Dump chosen wrapper info"))
        self.add_command("einfo", DumpWrapperEntriesCommand("Dump wrapper entries"))
        self.add_command("e_add", AddEntryCommand("Add entry to a wrapper"))
        self.add_command("save", SaveExeToFileCommand())