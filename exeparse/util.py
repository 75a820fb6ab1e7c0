"""Small helpers for inspecting raw bytes and names found in executables."""

from __future__ import annotations

from collections.abc import Iterable, Sequence

_FUNC_EXTRA_CHARS = frozenset(b"_.#@?-\\/:")


def _code(c: int | str | bytes) -> int:
    if isinstance(c, str):
        return ord(c)
    if isinstance(c, (bytes, bytearray)):
        return c[0]
    return int(c)


def is_printable(c: int | str) -> bool:
    """Whether the character is a printable ASCII character."""
    return 0x20 <= _code(c) < 0x7F


def is_endline(c: int | str) -> bool:
    """Whether the character is a line feed or a carriage return."""
    return _code(c) in (0x0A, 0x0D)


def is_str_longer(data: bytes, max_len: int) -> bool:
    """True if no string terminator occurs within the first ``max_len`` bytes."""
    head = bytes(data[:max_len])
    if len(head) < max_len:
        return False
    return 0 not in head


def get_ascii_len(data: bytes, max_len: int | None, accept_not_terminated: bool = False) -> int:
    """Length of the printable ASCII string at the start of ``data``.

    A string that is not terminated within ``max_len`` bytes (or that hits a
    non-printable character) counts only when ``accept_not_terminated`` is set;
    otherwise 0 is returned.
    """
    chunk = data if max_len is None else data[:max_len]
    length = 0
    for c in chunk:
        if c == 0:
            return length
        if not is_printable(c) and not is_endline(c):
            break
        length += 1
    return length if accept_not_terminated else 0


def get_ascii_len_w(words: Sequence[int], max_len: int | None, accept_not_terminated: bool = False) -> int:
    """Like :func:`get_ascii_len`, for a sequence of 16-bit characters."""
    chunk = words if max_len is None else words[:max_len]
    length = 0
    for w in chunk:
        if w == 0:
            return length
        if not is_printable(w) and not is_endline(w):
            break
        length += 1
    return length if accept_not_terminated else 0


def has_non_printable(data: bytes, max_len: int) -> bool:
    """Whether the string at the start of ``data`` holds a non-printable character."""
    for c in data[:max_len]:
        if c == 0:
            break
        if not is_printable(c):
            return True
    return False


def _is_func_char(c: int) -> bool:
    return (
        0x30 <= c <= 0x39
        or 0x41 <= c <= 0x5A
        or 0x61 <= c <= 0x7A
        or c in _FUNC_EXTRA_CHARS
    )


def validate_func_name(data: bytes) -> bool:
    """Whether the (possibly terminated) name holds only function-name characters."""
    if not data:
        return False
    for c in data:
        if c == 0:
            break
        if not _is_func_char(c):
            return False
    return True


def forwarder_name_len(data: bytes) -> int:
    """Length of a terminated forwarder name such as ``LIB.Function``, else 0."""
    data = bytes(data)
    if not data:
        return 0
    length = 0
    for c in data:
        if not _is_func_char(c):
            break
        length += 1
    if length == len(data) or data[length] != 0:
        return 0
    if b"." not in data[:length]:
        return 0
    return length


def no_white_count(text: str | bytes | Iterable[int]) -> int:
    """Number of printable characters that are not spaces."""
    return sum(1 for c in text if is_printable(c) and _code(c) != 0x20)


def is_space_clear(data: bytes) -> bool:
    """Whether every byte of ``data`` is zero."""
    return not any(data)


def is_hex_char(c: int | str) -> bool:
    """Whether the character is a hexadecimal digit."""
    code = _code(c)
    return 0x30 <= code <= 0x39 or 0x41 <= code <= 0x46 or 0x61 <= code <= 0x66


def hexdump(data: bytes, pad: int = 16) -> str:
    """Render ``data`` as rows of ``0xNN`` values, ``pad`` bytes per row."""
    if pad <= 0:
        raise ValueError("pad must be positive")
    parts = ["\n---\n"]
    for i, b in enumerate(data):
        if i % pad == 0:
            parts.append("\n")
        parts.append(f"0x{b:02X} ")
    parts.append("\n---\n")
    return "".join(parts)


def ends_with(text: str, suffix: str) -> bool:
    """Whether ``text`` ends with ``suffix``."""
    if len(text) < len(suffix):
        return False
    return text[len(text) - len(suffix):] == suffix