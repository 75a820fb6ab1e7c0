"""Reading files into buffers and dumping buffers into files."""

from __future__ import annotations

import logging
import os

from .buffer import AbstractByteBuffer, ByteBuffer, ByteBufferError, ParserError

_log = logging.getLogger(__name__)

FILE_MAXSIZE = 0x7FFFFFFF
FILEVIEW_MAXSIZE = 0x7FFFFFFF


class FileBufferError(ByteBufferError):
    """Raised when a file cannot be read or written."""


def _stream_readable_size(stream) -> int:
    size = os.fstat(stream.fileno()).st_size
    return min(size, FILE_MAXSIZE)


class FileView(AbstractByteBuffer):
    """The first bytes of a file, loaded as a buffer."""

    def __init__(self, path, max_size: int = FILE_MAXSIZE) -> None:
        self.path = os.fspath(path)
        try:
            stream = open(self.path, "rb")
        except OSError as exc:
            raise FileBufferError(f"Cannot open the file: {self.path}") from exc
        with stream:
            self.file_size = os.fstat(stream.fileno()).st_size
            if self.file_size == 0:
                raise FileBufferError("The file is empty")
            readable = min(_stream_readable_size(stream), FILEVIEW_MAXSIZE)
            self.mapped_size = min(readable, max_size)
            data = stream.read(self.mapped_size) if self.mapped_size > 0 else b""
        if not data:
            raise ByteBufferError(
                f"Cannot map the file: {self.path} of size: 0x{max(self.mapped_size, 0):x}"
            )
        self._data: bytearray | None = bytearray(data)

    @property
    def content(self) -> memoryview | None:
        if self._data is None:
            return None
        return memoryview(self._data)

    def close(self) -> None:
        """Release the loaded content."""
        self._data = None

    def __enter__(self) -> FileView:
        return self

    def __exit__(self, *args) -> None:
        self.close()


def readable_size(path) -> int:
    """Number of bytes of the file that can be read, or 0."""
    if not path:
        return 0
    try:
        with open(path, "rb") as stream:
            return _stream_readable_size(stream)
    except OSError:
        return 0


def read_file(path, min_buf_size: int = 0, allow_truncate: bool = False) -> ByteBuffer:
    """Read a file into a buffer of at least ``min_buf_size`` bytes."""
    try:
        stream = open(path, "rb")
    except OSError as exc:
        raise FileBufferError(f"Cannot open the file: {path}") from exc
    with stream:
        alloc = max(_stream_readable_size(stream), min_buf_size)
        buf = None
        while buf is None and alloc:
            try:
                buf = ByteBuffer(alloc)
            except (ParserError, MemoryError) as exc:
                if not allow_truncate:
                    if isinstance(exc, MemoryError):
                        raise ByteBufferError(f"Cannot allocate buffer of size: 0x{alloc:x}") from exc
                    raise
                alloc //= 2
        if buf is None:
            raise FileBufferError("Cannot allocate buffer")
        content = buf.content
        read = 0
        while read < len(content):
            chunk = content[read:read + FILEVIEW_MAXSIZE]
            count = stream.readinto(chunk)
            if not count:
                break
            read += count
    _log.info("Read size: %X", read)
    return buf


def dump(path, buf: AbstractByteBuffer, allow_exceptions: bool = True) -> int:
    """Write the content of ``buf`` into a file; returns the number of bytes written."""
    data = buf.content
    if data is None:
        if allow_exceptions:
            raise FileBufferError("Buffer is empty")
        return 0
    try:
        with open(path, "wb") as out:
            return out.write(bytes(data))
    except OSError as exc:
        if allow_exceptions:
            raise FileBufferError(f"Cannot open the file: {path} for writing") from exc
        return 0