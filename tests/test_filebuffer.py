import pytest

from exeparse.buffer import BufferView, ByteBuffer, ByteBufferError
from exeparse.filebuffer import FileBufferError, FileView, dump, read_file, readable_size

DATA = bytes(range(200))


@pytest.fixture
def sample(tmp_path):
    path = tmp_path / "sample.bin"
    path.write_bytes(DATA)
    return path


def test_file_view_reads_content(sample):
    with FileView(sample) as view:
        assert bytes(view) == DATA
        assert view.file_size == len(DATA)
        assert view.mapped_size == len(DATA)


def test_file_view_limited_size(sample):
    view = FileView(sample, 10)
    assert bytes(view) == DATA[:10]
    assert view.file_size == len(DATA)


def test_file_view_close_releases_content(sample):
    view = FileView(sample)
    view.close()
    assert view.content is None
    assert len(view) == 0


def test_file_view_empty_file(tmp_path):
    path = tmp_path / "empty.bin"
    path.write_bytes(b"")
    with pytest.raises(FileBufferError):
        FileView(path)


def test_file_view_missing_file(tmp_path):
    with pytest.raises(FileBufferError):
        FileView(tmp_path / "missing.bin")


def test_file_view_zero_map_size(sample):
    with pytest.raises(ByteBufferError):
        FileView(sample, 0)


def test_readable_size(sample, tmp_path):
    assert readable_size(sample) == len(DATA)
    assert readable_size(tmp_path / "missing.bin") == 0
    assert readable_size("") == 0


def test_read_file(sample):
    buf = read_file(sample)
    assert bytes(buf) == DATA


def test_read_file_with_minimum_size(sample):
    buf = read_file(sample, len(DATA) + 50)
    assert len(buf) == len(DATA) + 50
    assert bytes(buf)[: len(DATA)] == DATA
    assert not any(bytes(buf)[len(DATA):])


def test_read_file_missing(tmp_path):
    with pytest.raises(FileBufferError):
        read_file(tmp_path / "missing.bin")


def test_dump_round_trip(tmp_path):
    out = tmp_path / "out.bin"
    assert dump(out, ByteBuffer.from_bytes(DATA)) == len(DATA)
    assert out.read_bytes() == DATA


def test_dump_empty_buffer(tmp_path):
    empty = BufferView(ByteBuffer.from_bytes(b"abc"), 10, 4)
    with pytest.raises(FileBufferError):
        dump(tmp_path / "x.bin", empty, True)
    assert dump(tmp_path / "x.bin", empty, False) == 0


def test_dump_to_unwritable_path(tmp_path):
    buf = ByteBuffer.from_bytes(DATA)
    with pytest.raises(FileBufferError):
        dump(tmp_path, buf, True)
    assert dump(tmp_path, buf, False) == 0