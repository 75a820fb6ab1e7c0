"""Structured views over parts of an executable: fields, values and entry lists."""

from __future__ import annotations

import logging
from abc import abstractmethod
from enum import Enum, auto
from typing import ClassVar, Mapping

from .buffer import AbstractByteBuffer, ParserError
from .executable import AddrType, Executable

_log = logging.getLogger(__name__)


class DataType(Enum):
    """How the bytes of a field are to be read."""

    NONE = auto()
    INT = auto()
    STRING = auto()
    WSTRING = auto()
    COMPLEX = auto()


class WrappedValue:
    """A typed value located in an owner buffer."""

    def __init__(
        self,
        owner: AbstractByteBuffer | None = None,
        offset: int | None = None,
        size: int = 0,
        data_type: DataType = DataType.NONE,
    ) -> None:
        self.owner = owner
        self.offset = offset
        self.size = size
        self.data_type = data_type if owner is not None and offset is not None else DataType.NONE

    def is_valid(self) -> bool:
        """Whether the value refers to anything."""
        return self.data_type != DataType.NONE

    def value(self):
        """The value as a Python object: int, str, None or a placeholder string."""
        if self.data_type == DataType.INT:
            num = self.owner.get_num_value(self.offset, self.size)
            if num is None:
                return "INVALID"
            if num >= 1 << 63:
                num -= 1 << 64
            return num
        if self.data_type == DataType.STRING:
            area = self.owner.get_content_at(self.offset, self.size)
            if area is None:
                return None
            return bytes(area).split(b"\0", 1)[0].decode("utf-8", errors="replace")
        if self.data_type == DataType.WSTRING:
            area = self.owner.get_content_at(self.offset, self.size)
            if area is None:
                return ""
            raw = bytes(area)
            return raw[: len(raw) & ~1].decode("utf-16-le", errors="replace")
        return "..."

    def int_format(self) -> str:
        """Format string giving an integer as zero-padded upper-case hex."""
        return f"%0{self.size * 2}X"

    def to_string(self) -> str:
        """The value rendered as text."""
        if self.data_type == DataType.NONE:
            return ""
        if self.data_type == DataType.COMPLEX:
            return "..."
        if self.data_type in (DataType.STRING, DataType.WSTRING):
            val = self.value()
            return "" if val is None else str(val)
        if self.data_type == DataType.INT:
            if self.size > 8:
                return "..."
            num = self.owner.get_num_value(self.offset, self.size)
            if num is None:
                return "INVALID"
            return self.int_format() % num
        return str(self.value())

    def __str__(self) -> str:
        return self.to_string()


class ExeElementWrapper(AbstractByteBuffer):
    """A structure inside an executable, made of numbered fields."""

    #: Per field id, the names of the values the field may hold.
    value_names: ClassVar[Mapping[int, Mapping[int, str]]] = {}

    def __init__(self, exe: Executable) -> None:
        if exe is None:
            _log.error("Cannot initialize with Exe == NULL!")
            raise ParserError("Cannot initialize with Exe == NULL!")
        self.exe = exe

    @property
    @abstractmethod
    def offset(self) -> int | None:
        """Raw offset of the structure, or None if it is not present."""

    @property
    @abstractmethod
    def size(self) -> int:
        """Size of the structure in bytes."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Name of the structure."""

    @property
    @abstractmethod
    def fields_count(self) -> int:
        """Number of fields."""

    @property
    def sub_fields_count(self) -> int:
        """Number of sub-fields per field."""
        return 1

    @abstractmethod
    def field_offset(self, field_id: int, sub_field: int = 0) -> int | None:
        """Raw offset of a field, or None."""

    @abstractmethod
    def field_name(self, field_id: int) -> str:
        """Name of a field."""

    @property
    def content(self) -> memoryview | None:
        offset = self.offset
        size = self.size
        if offset is None or not size:
            return None
        return self.exe.get_content_at(offset, size)

    def field_size(self, field_id: int, sub_field: int = 0) -> int:
        """Size of a field, measured up to the next field or the structure's end."""
        count = self.fields_count
        if field_id >= count:
            return self.size
        start = self.field_offset(field_id, sub_field)
        if start is None:
            return 0
        next_start = None
        if field_id + 1 < count:
            next_start = self.field_offset(field_id + 1, sub_field)
        if next_start is not None:
            return max(next_start - start, 0)
        base = self.offset
        if base is None:
            return 0
        return base + self.size - start

    def contains_addr_type(self, field_id: int, sub_field: int = 0) -> AddrType:
        """Kind of address the field holds, if any."""
        return AddrType.NOT_ADDR

    def contains_data_type(self, field_id: int, sub_field: int = 0) -> DataType:
        """Kind of data the field holds."""
        return DataType.INT

    def translate_field_content(self, field_id: int) -> str:
        """Human-readable meaning of the field's value, from :attr:`value_names`."""
        names = self.value_names.get(field_id)
        if not names:
            return ""
        value = self.get_num_value(field_id)
        if value is None:
            return ""
        return names.get(value, "")

    def wrapped_value(self, field_id: int | None, sub_field: int = 0) -> WrappedValue:
        """The field as a :class:`WrappedValue`; empty if it cannot be located."""
        if field_id is None or field_id < 0:
            return WrappedValue()
        offset = self.field_offset(field_id, sub_field)
        if offset is None:
            return WrappedValue()
        size = self.field_size(field_id, sub_field)
        if size <= 0:
            return WrappedValue()
        return WrappedValue(self.exe, offset, size, self.contains_data_type(field_id, sub_field))

    def get_num_value(self, field_id: int, sub_field: int = 0) -> int | None:
        """Numeric value of a field, or None."""
        return self.exe.get_num_value(self.field_offset(field_id, sub_field), self.field_size(field_id, sub_field))

    def set_num_value(self, field_id: int, sub_field: int, value: int) -> bool:
        """Store a numeric value in a field; False if unchanged or impossible."""
        return self.exe.set_num_value(
            self.field_offset(field_id, sub_field), self.field_size(field_id, sub_field), value
        )

    def can_copy_to_offset(self, offset: int | None) -> bool:
        """Whether the area at ``offset`` is empty and large enough for a copy."""
        return self.exe.is_area_empty(offset, self.size)

    def copy_to_offset(self, offset: int | None) -> bool:
        """Copy the structure to an empty area of the executable."""
        if not self.can_copy_to_offset(offset):
            _log.error("The area is not empty!")
            return False
        if not self.exe.paste_buffer(offset, self, False):
            _log.error("Cannot paste the buffer!")
            return False
        return True

    def fill_content(self, filling: int = 0) -> bool:
        """Set every byte of the structure to ``filling``."""
        return super().fill_content(filling)


class ExeNodeWrapper(ExeElementWrapper):
    """A structure that also holds a list of entry structures."""

    #: Class of the entries; each is built as ``entry_class(exe, parent, entry_num)``.
    entry_class: ClassVar[type[ExeNodeWrapper] | None] = None

    def __init__(self, exe: Executable, parent: ExeNodeWrapper | None = None, entry_num: int = 0) -> None:
        super().__init__(exe)
        self.parent_node = parent
        self.entry_num = entry_num
        self.entries: list[ExeNodeWrapper] = []
        self.entries_by_offset: dict[int, ExeNodeWrapper] = {}
        self.wrap()

    def wrap(self) -> bool:
        """Reload the entries."""
        self.clear()
        count = 0
        while self.load_next_entry(count):
            count += 1
        self.reload_mapping()
        return True

    def entry_at(self, index: int) -> ExeNodeWrapper | None:
        """Entry at ``index``, or None."""
        if 0 <= index < len(self.entries):
            return self.entries[index]
        return None

    def entries_count(self) -> int:
        """Number of loaded entries."""
        return len(self.entries)

    def clear(self) -> None:
        """Forget all entries."""
        self.entries.clear()
        self.entries_by_offset.clear()

    def load_next_entry(self, entry_num: int) -> bool:
        """Load the entry with the given number; False when there is none."""
        entry_class = self.entry_class
        if entry_class is None:
            return False
        entry = entry_class(self.exe, self, entry_num)
        if entry.content is None:
            return False
        self.entries.append(entry)
        return True

    def reload_mapping(self) -> None:
        """Rebuild the index of entries by their raw offsets."""
        self.entries_by_offset = {
            entry.offset: entry for entry in self.entries if entry.offset is not None
        }

    def is_my_entry_type(self, entry: ExeNodeWrapper | None) -> bool:
        """Whether ``entry`` may be added to this node."""
        return entry is not None

    def last_entry(self) -> ExeNodeWrapper | None:
        """The last entry, or None."""
        return self.entries[-1] if self.entries else None

    def next_entry_offset(self) -> int | None:
        """Raw offset right after the last entry."""
        last = self.last_entry()
        if last is None:
            return None
        offset = last.offset
        if offset is None:
            return None
        return offset + last.size

    def entry_size(self) -> int:
        """Size of the last entry."""
        last = self.last_entry()
        return 0 if last is None else last.size

    def can_add_entry(self) -> bool:
        """Whether there is empty space for two more entries after the last one."""
        next_offset = self.next_entry_offset()
        size = self.entry_size()
        if size == 0:
            return False
        have_space = self.exe.is_area_empty(next_offset, size * 2)
        _log.info("NextOffset = %s size = %X, canAdd: %u", next_offset, size, have_space)
        return have_space

    def add_entry_at(self, entry: ExeNodeWrapper | None, offset: int | None) -> ExeNodeWrapper | None:
        """Copy ``entry`` (or the last entry) to ``offset`` and load it."""
        if not self.can_add_entry():
            return None
        entry_num = self.entries_count()
        if offset is None:
            return None
        if entry is None:
            entry = self.last_entry()
        if not self.is_my_entry_type(entry):
            return None
        if not self.exe.paste_buffer(offset, entry, False):
            return None
        if not self.load_next_entry(entry_num):
            return None
        self.reload_mapping()
        _log.info("Entries count: %u", self.entries_count())
        return self.last_entry()

    def add_entry(self, entry: ExeNodeWrapper | None = None) -> ExeNodeWrapper | None:
        """Append an entry right after the last one."""
        return self.add_entry_at(entry, self.next_entry_offset())


class MappedExe(Executable):
    """An executable whose structures are exposed as numbered wrappers."""

    def __init__(self, buf: AbstractByteBuffer, bit_mode: int = 32) -> None:
        super().__init__(buf, bit_mode)
        self.wrappers: dict[int, ExeElementWrapper] = {}

    @abstractmethod
    def wrap(self) -> None:
        """(Re)build the wrappers."""

    def wrapper(self, wrapper_id: int) -> ExeElementWrapper | None:
        """Wrapper with the given id, or None."""
        return self.wrappers.get(wrapper_id)

    def wrapper_name(self, wrapper_id: int) -> str:
        """Name of the wrapper with the given id, or an empty string."""
        found = self.wrappers.get(wrapper_id)
        return "" if found is None else found.name

    def wrappers_count(self) -> int:
        """Number of wrappers."""
        return len(self.wrappers)

    def clear_wrappers(self) -> None:
        """Forget all wrappers."""
        self.wrappers.clear()