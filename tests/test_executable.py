import pytest

from exeparse.buffer import ByteBuffer
from exeparse.executable import AddrType, ExeBuilder, ExeError, Executable
from exeparse.filebuffer import FileView

IMAGE_BASE = 0x1000
SIZE = 0x100


class FlatExe(Executable):
    image_base = IMAGE_BASE

    def mapped_size(self, addr_type):
        return len(self)

    def alignment(self, addr_type):
        return 0x200

    def rva_to_raw(self, rva):
        return rva if 0 <= rva < len(self) else None

    def raw_to_rva(self, raw):
        return raw if 0 <= raw < len(self) else None


class RaisingExe(FlatExe):
    def rva_to_raw(self, rva):
        raise ExeError("boom")


def make_exe(cls=FlatExe):
    return cls(ByteBuffer.from_bytes(bytes(range(SIZE))), 32)


def test_none_buffer_is_rejected():
    instance = FlatExe.__new__(FlatExe)
    with pytest.raises(ExeError):
        Executable.__init__(instance, None, 32)


def test_is_valid_addr():
    exe = make_exe()
    assert exe.is_valid_addr(0, AddrType.RAW)
    assert not exe.is_valid_addr(SIZE, AddrType.RAW)
    assert exe.is_valid_addr(IMAGE_BASE, AddrType.VA)
    assert not exe.is_valid_addr(0x10, AddrType.VA)
    assert not exe.is_valid_addr(None, AddrType.RVA)
    assert not exe.is_valid_addr(0, AddrType.NOT_ADDR)


def test_convert_raw_to_va_and_back():
    exe = make_exe()
    va = exe.convert_addr(0x10, AddrType.RAW, AddrType.VA)
    assert va == IMAGE_BASE + 0x10
    assert exe.convert_addr(va, AddrType.VA, AddrType.RAW) == 0x10
    assert exe.convert_addr(va, AddrType.VA, AddrType.RVA) == 0x10
    assert exe.convert_addr(0x10, AddrType.RVA, AddrType.VA) == va


def test_convert_invalid_and_identity():
    exe = make_exe()
    assert exe.convert_addr(SIZE + 1, AddrType.RAW, AddrType.RVA) is None
    assert exe.convert_addr(0x10, AddrType.NOT_ADDR, AddrType.RVA) is None
    assert exe.convert_addr(0x20, AddrType.RVA, AddrType.RVA) == 0x20


def test_va_to_rva():
    exe = make_exe()
    assert exe.va_to_rva(IMAGE_BASE + 0x20) == 0x20
    assert exe.va_to_rva(0x20, True) == 0x20
    assert exe.va_to_rva(None) is None


def test_to_raw():
    exe = make_exe()
    assert exe.to_raw(SIZE * 3, AddrType.RAW) is None
    assert exe.to_raw(IMAGE_BASE + 5, AddrType.VA) == 5
    assert exe.to_raw(SIZE * 3, AddrType.RVA) is None
    with pytest.raises(ExeError):
        exe.to_raw(SIZE * 3, AddrType.RVA, True)


def test_to_raw_propagates_conversion_errors_only_when_allowed():
    exe = make_exe(RaisingExe)
    assert exe.to_raw(5, AddrType.RVA, False) is None
    with pytest.raises(ExeError):
        exe.to_raw(5, AddrType.RVA, True)


def test_detect_addr_type():
    exe = make_exe()
    assert exe.detect_addr_type(0x10, AddrType.RVA) == AddrType.RVA
    assert exe.detect_addr_type(IMAGE_BASE + 1, AddrType.RVA) == AddrType.VA
    assert exe.detect_addr_type(0x10, AddrType.NOT_ADDR) == AddrType.RVA
    assert exe.detect_addr_type(0x10, AddrType.VA) == AddrType.RVA
    assert exe.detect_addr_type(SIZE * 5, AddrType.RAW) == AddrType.NOT_ADDR
    assert exe.detect_addr_type(IMAGE_BASE * 5, AddrType.RVA) == AddrType.NOT_ADDR


def test_content_at():
    exe = make_exe()
    assert bytes(exe.content_at(IMAGE_BASE + 4, AddrType.VA, 3)) == bytes([4, 5, 6])
    assert exe.content_at(SIZE * 2, AddrType.RVA, 3) is None


def test_file_size_of_plain_buffer():
    exe = make_exe()
    assert exe.file_size() == SIZE
    assert exe.file_name == ""


def test_file_size_of_file_view(tmp_path):
    path = tmp_path / "sample.bin"
    path.write_bytes(bytes(range(64)))
    with FileView(path, 16) as view:
        exe = FlatExe(view)
        assert exe.file_size() == 64
        assert len(exe) == 16
        assert exe.file_name == str(path)


def test_dump_fragment(tmp_path):
    exe = make_exe()
    out = tmp_path / "frag.bin"
    assert exe.dump_fragment(8, 8, out)
    assert out.read_bytes() == bytes(range(8, 16))


def test_dump_fragment_out_of_range(tmp_path):
    exe = make_exe()
    assert not exe.dump_fragment(SIZE * 2, 8, tmp_path / "none.bin")


def test_builder_is_abstract():
    with pytest.raises(TypeError):
        ExeBuilder()