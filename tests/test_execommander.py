import io

import pytest

from exeparse.buffer import ByteBuffer, ParserError
from exeparse.commander import CmdContext
from exeparse.dos import DOSExe
from exeparse.executable import AddrType, ExeError
from exeparse.execommander import (
    AddEntryCommand,
    ClearWrapperCommand,
    ConvertAddrCommand,
    DumpWrapperCommand,
    DumpWrapperEntriesCommand,
    DumpWrapperToFileCommand,
    ExeCmdContext,
    ExeCommander,
    ExeInfoCommand,
    FetchCommand,
    SaveExeToFileCommand,
    addr_type_to_char,
    addr_type_to_str,
    dump_entry_info,
    dump_node_info,
    exe_from_context,
    fetch,
    print_wrapper_names,
    read_number,
    read_offset,
)
from exeparse.wrappers import ExeNodeWrapper


def _dos_bytes(size=128, lfanew=0x80, rows=0):
    data = bytearray(size)
    data[0:2] = b"MZ"
    data[60:64] = lfanew.to_bytes(4, "little")
    for i in range(rows):
        start = 0x40 + 4 * i
        data[start:start + 4] = b"\x01\x02\x03\x04"
    return bytes(data)


def _exe(**kwargs):
    return DOSExe(ByteBuffer.from_bytes(_dos_bytes(**kwargs)))


def _context(exe=None, text=""):
    ctx = ExeCmdContext(stdin=io.StringIO(text), stdout=io.StringIO(), exe=exe)
    ctx.stderr = io.StringIO()
    return ctx


class _Row(ExeNodeWrapper):
    @property
    def offset(self):
        start = 0x40 + 4 * self.entry_num
        return start if self.exe.get_content_at(start, 4) is not None else None

    @property
    def size(self):
        return 0 if self.offset is None else 4

    @property
    def name(self):
        return "Row"

    @property
    def fields_count(self):
        return 1

    def field_offset(self, field_id, sub_field=0):
        return self.offset

    def field_name(self, field_id):
        return "Value"


class _Table(ExeNodeWrapper):
    def load_next_entry(self, entry_num):
        row = _Row(self.exe, self, entry_num)
        if row.offset is None or not row.get_num_value(0):
            return False
        self.entries.append(row)
        return True

    @property
    def offset(self):
        return 0x40 if self.entries else None

    @property
    def size(self):
        return 4 * len(self.entries)

    @property
    def name(self):
        return "Table"

    @property
    def fields_count(self):
        return 0

    def field_offset(self, field_id, sub_field=0):
        return None

    def field_name(self, field_id):
        return ""


def _exe_with_table(rows=2):
    exe = _exe(rows=rows)
    table = _Table(exe)
    exe.wrappers[1] = table
    return exe, table


def test_addr_type_names():
    assert [addr_type_to_char(t) for t in AddrType] == ["_", "r", "v", "V"]
    assert [addr_type_to_str(t) for t in AddrType] == ["", "raw", "RVA", "VA"]


def test_exe_from_context_errors_and_success():
    with pytest.raises(ParserError, match="Invalid command context!"):
        exe_from_context(CmdContext(io.StringIO(), io.StringIO()))
    with pytest.raises(ParserError, match="no Exe"):
        exe_from_context(_context())
    exe = _exe()
    assert exe_from_context(_context(exe)) is exe


def test_read_offset_reads_hex():
    ctx = _context(text="1f\n")
    assert read_offset(ctx, AddrType.RAW) == 0x1F
    assert ctx.stdout.getvalue() == "raw: "


def test_read_offset_not_addr():
    assert read_offset(_context(text="10\n"), AddrType.NOT_ADDR) is None


def test_read_number_modes():
    ctx = _context(text="42 ff zz\n")
    assert read_number(ctx, "n") == 42
    assert read_number(ctx, "n", True) == 0xFF
    assert read_number(ctx, "n") == 0
    assert read_number(ctx, "n") == 0


def test_fetch_hex():
    exe = _exe()
    ctx = _context(exe)
    fetch(ctx, exe, 0, AddrType.RAW, True)
    lines = ctx.stdout.getvalue().splitlines()
    assert lines[0] == "Fetched:"
    tokens = lines[1].split()
    assert len(tokens) == 100
    assert tokens[:2] == ["4d", "5a"]


def test_fetch_text():
    exe = _exe()
    ctx = _context(exe)
    fetch(ctx, exe, 0, AddrType.RAW, False)
    assert ctx.stdout.getvalue().splitlines()[1].startswith("MZ\\x00")


def test_fetch_invalid_address():
    exe = _exe()
    ctx = _context(exe)
    fetch(ctx, exe, 0x1000, AddrType.RAW, True)
    assert "ERROR: Invalid Address suplied" in ctx.stderr.getvalue()
    assert ctx.stdout.getvalue() == ""


def test_print_wrapper_names():
    exe, _ = _exe_with_table()
    ctx = _context(exe)
    print_wrapper_names(ctx, exe)
    assert ctx.stdout.getvalue().splitlines() == ["[0] DOS Hdr", "[1] Table"]


def test_dump_entry_info_dos_header():
    exe = _exe()
    ctx = _context(exe)
    dump_entry_info(ctx, exe.wrapper(0))
    text = ctx.stdout.getvalue()
    assert "[DOS Hdr] size: 0x40 fieldsCount: 19" in text
    assert "[00000000] Magic number\t[5A4D _]" in text
    assert "[0000003c] File address of new exe header\t[00000080 r]" in text
    assert text.rstrip().endswith("------")


def test_dump_entry_info_none_prints_nothing():
    ctx = _context()
    dump_entry_info(ctx, None)
    assert ctx.stdout.getvalue() == ""


def test_dump_node_info_lists_entries():
    exe, table = _exe_with_table(rows=2)
    ctx = _context(exe)
    dump_node_info(ctx, table)
    text = ctx.stdout.getvalue()
    assert "\t [Table] entriesCount: 2" in text
    assert "Entry #0" in text and "Entry #1" in text
    assert text.count("[Row] size: 0x4") == 2


def test_dump_node_info_ignores_plain_wrapper():
    exe = _exe()
    ctx = _context(exe)
    dump_node_info(ctx, exe.wrapper(0))
    assert ctx.stdout.getvalue() == ""


def test_exe_commander_commands():
    commander = ExeCommander(_context())
    assert set(commander.commands) == {
        "q", "info", "r-v", "v-r", "printc", "printx", "cl",
        "fdump", "winfo", "einfo", "e_add", "save",
    }


def test_convert_command():
    exe = _exe()
    ctx = _context(exe, "10\n")
    ConvertAddrCommand(AddrType.RAW, AddrType.RVA, "Convert").execute(ctx)
    text = ctx.stdout.getvalue()
    assert "[raw]\t->\t[RVA]:" in text
    assert "[00000010]\t->\t[00000010]" in text


def test_convert_command_unmappable():
    exe = _exe()
    ctx = _context(exe, "fff\n")
    ConvertAddrCommand(AddrType.RAW, AddrType.RVA, "Convert").execute(ctx)
    assert "[WARNING] This address cannot be mapped" in ctx.stdout.getvalue()


def test_fetch_command_reads_offset():
    exe = _exe()
    ctx = _context(exe, "1\n")
    FetchCommand(True, AddrType.RAW, "fetch").execute(ctx)
    lines = ctx.stdout.getvalue().split("Fetched:\n")[1].split()
    assert lines[0] == "5a"
    assert len(lines) == 100


def test_info_command():
    exe = _exe()
    ctx = _context(exe)
    ExeInfoCommand().execute(ctx)
    text = ctx.stdout.getvalue()
    assert "Bit mode: \t16" in text
    assert "Raw size: \t[00000080]" in text
    assert "Contains:\n[0] DOS Hdr" in text


def test_winfo_through_commander():
    exe = _exe()
    ctx = _context(exe, "winfo 0\nq\n")
    ExeCommander(ctx).run()
    assert "[DOS Hdr] size: 0x40" in ctx.stdout.getvalue()
    assert exe.end_processing if hasattr(exe, "end_processing") else ctx.end_processing


def test_wrapper_command_no_such_wrapper():
    exe = _exe()
    ctx = _context(exe, "7\n")
    DumpWrapperCommand("dump").execute(ctx)
    assert "No such wrapper!" in ctx.stdout.getvalue()


def test_wrapper_command_fixed_id_reads_nothing():
    exe = _exe()
    ctx = _context(exe, "")
    DumpWrapperCommand("dump", 0).execute(ctx)
    text = ctx.stdout.getvalue()
    assert "wrapperNum" not in text
    assert "[DOS Hdr]" in text


def test_clear_wrapper_zeroes_and_rewraps():
    exe = _exe()
    ctx = _context(exe)
    with pytest.raises(ExeError, match="It is not a DOS file!"):
        ClearWrapperCommand("clear").wrapper_action(ctx, exe.wrapper(0))
    assert "Filled!" in ctx.stdout.getvalue()
    assert bytes(exe)[:64] == bytes(64)


def test_add_entry_plain_wrapper():
    exe = _exe()
    ctx = _context(exe)
    AddEntryCommand("add").wrapper_action(ctx, exe.wrapper(0))
    assert "This wrapper stores no entries!" in ctx.stderr.getvalue()


def test_add_entry_to_table():
    exe, table = _exe_with_table(rows=2)
    ctx = _context(exe)
    AddEntryCommand("add").wrapper_action(ctx, table)
    assert "Added!" in ctx.stdout.getvalue()
    assert table.entries_count() == 3
    assert bytes(exe)[0x48:0x4C] == b"\x01\x02\x03\x04"


def test_add_entry_without_space():
    exe, table = _exe_with_table(rows=2)
    exe.set_num_value(0x4C, 1, 9)
    ctx = _context(exe)
    AddEntryCommand("add").wrapper_action(ctx, table)
    assert "No space to add entry" in ctx.stdout.getvalue()
    assert table.entries_count() == 2


def test_dump_entries_plain_wrapper():
    exe = _exe()
    ctx = _context(exe)
    DumpWrapperEntriesCommand("entries").wrapper_action(ctx, exe.wrapper(0))
    assert "This wrapper has no entries!" in ctx.stderr.getvalue()


def test_dump_entries_of_table():
    exe, table = _exe_with_table(rows=2)
    ctx = _context(exe, "1\n")
    DumpWrapperEntriesCommand("entries").wrapper_action(ctx, table)
    text = ctx.stdout.getvalue()
    assert "[Table]" in text
    assert "[00000044] Value\t[04030201 _]" in text


def test_make_file_name():
    cmd = DumpWrapperToFileCommand("fdump")
    assert cmd.make_file_name(0x40) == "wrapper_at_40.bin"
    assert cmd.make_file_name(None) == "wrapper.bin"


def test_dump_wrapper_to_file(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    exe = _exe()
    ctx = _context(exe)
    DumpWrapperToFileCommand("fdump").wrapper_action(ctx, exe.wrapper(0))
    assert (tmp_path / "wrapper_at_0.bin").read_bytes() == _dos_bytes()[:64]
    assert "Dumped size: 0x40 into: wrapper_at_0.bin" in ctx.stdout.getvalue()


def test_save_exe(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    exe = _exe()
    ctx = _context(exe)
    SaveExeToFileCommand().execute(ctx)
    assert (tmp_path / "dumped.exe").read_bytes() == _dos_bytes()
    assert "into: dumped.exe" in ctx.stdout.getvalue()