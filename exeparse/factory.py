"""Registry of executable formats: detection and building."""

from __future__ import annotations

from enum import IntEnum

from .buffer import AbstractByteBuffer
from .dos import DOSExeBuilder
from .executable import ExeBuilder, Executable


class ExeType(IntEnum):
    """Known executable formats; lower values are tried first."""

    NONE = 0
    PE = 1
    MZ = 2


_builders: dict[ExeType, ExeBuilder] = {}


def _ensure_defaults() -> None:
    if _builders:
        return
    _builders[ExeType.MZ] = DOSExeBuilder()


def register_builder(exe_type: ExeType, builder: ExeBuilder | None) -> None:
    """Install a builder for a format, or remove it when ``builder`` is None."""
    _ensure_defaults()
    if builder is None:
        _builders.pop(ExeType(exe_type), None)
    else:
        _builders[ExeType(exe_type)] = builder


def find_matching(buf: AbstractByteBuffer | None) -> ExeType:
    """The first format whose signature the buffer carries, or NONE."""
    if buf is None:
        return ExeType.NONE
    _ensure_defaults()
    for exe_type in sorted(_builders):
        if _builders[exe_type].signature_matches(buf):
            return exe_type
    return ExeType.NONE


def build(buf: AbstractByteBuffer, exe_type: ExeType) -> Executable | None:
    """Build an executable of the given format, or None."""
    _ensure_defaults()
    builder = _builders.get(exe_type)
    if builder is None:
        return None
    return builder.build(buf)


def get_type_name(exe_type: ExeType) -> str:
    """Name of the format, or "Not supported"."""
    _ensure_defaults()
    builder = _builders.get(exe_type)
    if builder is None:
        return "Not supported"
    return builder.type_name()