# exeparse

Tools for reading and editing executable images in memory, and an
interactive shell for inspecting them. The one executable format the
package builds is the MZ (DOS) executable.

## Modules

- `exeparse.util` – helpers on raw bytes and names: `is_printable`,
  `get_ascii_len`, `validate_func_name`, `forwarder_name_len`, `hexdump`
  and more.
- `exeparse.buffer` – `ByteBuffer` (owns its bytes; `from_bytes`,
  `from_buffer`, `resize`) and `BufferView` (a window on a parent buffer).
  Both share bounds-checked access from `AbstractByteBuffer`:
  `get_content_at`, `get_num_value` / `set_num_value` (little-endian, sizes
  1, 2, 4 and 8), `get_string_value`, `get_wstring_value`,
  `set_string_value`, `set_text_value`, `is_area_empty`, `paste_buffer`,
  `fill_content`, `contains_block`, `intersects_block`.
  Out-of-range reads return `None` (or `False` for writes); where a method
  takes `allow_exceptions=True` it raises `ByteBufferError` instead.
- `exeparse.filebuffer` – `FileView` (a file loaded as a buffer, usable as a
  context manager), `read_file`, `readable_size` and `dump`.
- `exeparse.executable` – the `Executable` base with RAW / RVA / VA address
  handling (`AddrType`, `convert_addr`, `to_raw`, `va_to_rva`,
  `detect_addr_type`, `is_valid_addr`, `content_at`, `dump_fragment`) and the
  `ExeBuilder` interface.
- `exeparse.wrappers` – field-level views on structures in an executable:
  `ExeElementWrapper`, `ExeNodeWrapper` (structures holding entry lists, with
  `add_entry`), `WrappedValue`, `DataType` and `MappedExe`.
- `exeparse.dos` – the DOS header (`DosHdrWrapper`, `DosField`), `DOSExe`
  (with `pe_signature_offset` and `entry_point`) and `DOSExeBuilder`.
- `exeparse.factory` – signature detection and building: `find_matching`,
  `build`, `get_type_name`, `register_builder`, `ExeType`.
- `exeparse.formatter` – per-byte text for buffers: `Formatter`,
  `HexFormatter`.
- `exeparse.commander`, `exeparse.execommander`, `exeparse.cli` – the
  interactive shell.

## Installing

```
pip install .
```

## Command line

```
exeparse path/to/program.exe
```

Run without arguments, it prints the version, the usage line and the list of
commands. With a file, it detects the type, copies the file into a buffer of
at least 0x200 bytes, builds the executable and shows a `$ ` prompt. If
loading fails, it asks for a smaller size in hex (0 gives up).

Commands:

| command  | action |
|----------|--------|
| `info`   | bit mode, entry point, sizes, alignments and the wrappers present |
| `r-v`    | convert a RAW offset to an RVA |
| `v-r`    | convert an RVA to a RAW offset |
| `printc` | print 100 bytes from a RAW offset as characters |
| `printx` | print 100 bytes from a RAW offset in hex |
| `winfo`  | dump the fields (and entries) of a chosen wrapper |
| `einfo`  | dump a node wrapper and one of its entries |
| `cl`     | zero the content of a chosen wrapper |
| `fdump`  | write a wrapper's bytes to `wrapper_at_<offset>.bin` |
| `e_add`  | append a copy of the last entry to a node wrapper |
| `save`   | write the whole image to `dumped.exe` |
| `q`      | quit |

Numbers are typed in hex for addresses and in decimal for indexes. A word
that is not a command prints the list of commands. The shell also ends at the
end of its input.

## Library use

```python
from exeparse.buffer import ByteBuffer
from exeparse.executable import AddrType
from exeparse import factory

with open("program.exe", "rb") as f:
    buf = ByteBuffer.from_bytes(f.read(), 0)
exe_type = factory.find_matching(buf)
exe = factory.build(buf, exe_type)
print(factory.get_type_name(exe_type))
print(exe.convert_addr(0x40, AddrType.RAW, AddrType.RVA))
```

Other formats can be added by subclassing `ExeBuilder` and calling
`factory.register_builder`.

## What it does not do

Only the MZ format has a builder. `ExeType.PE` exists, but no builder for it
is registered: a PE file is recognised by its MZ signature and handled as a
plain DOS executable, with flat addressing and only the DOS header as a
wrapper. There is no parsing of PE headers, sections, imports, exports,
resources or data directories, and no commands for them.

## Tests

```
pip install .[test]
pytest
```