import io
import struct

import pytest

from kernsim.console import Console
from kernsim.dtb import (
    DeviceTreeError,
    MemoryRegion,
    build_memory_dtb,
    dtb_init,
    read_memory_region,
)


def make_console():
    out = io.StringIO()
    return Console(output=out, input=io.StringIO("")), out


def test_round_trip():
    blob = build_memory_dtb(0x80000000, 0x8000000)
    assert read_memory_region(blob) == MemoryRegion(0x80000000, 0x8000000)


@pytest.mark.parametrize("base,size", [(0, 1), (0x1000, 0x2000), (2**63, 2**40)])
def test_round_trip_various(base, size):
    region = read_memory_region(build_memory_dtb(base, size))
    assert (region.base, region.size) == (base, size)
    assert region.end == base + size


def test_magic_bytes():
    blob = build_memory_dtb(0x80000000, 0x8000000)
    assert blob[:4] == b"\xd0\x0d\xfe\xed"


def test_header_totalsize_matches_length():
    blob = build_memory_dtb(0x80000000, 0x8000000)
    totalsize = struct.unpack_from(">I", blob, 4)[0]
    assert totalsize == len(blob)


def test_bad_magic_raises():
    blob = bytearray(build_memory_dtb(0x80000000, 0x8000000))
    blob[0] = 0
    with pytest.raises(DeviceTreeError):
        read_memory_region(blob)


def test_short_blob_raises():
    with pytest.raises(DeviceTreeError):
        read_memory_region(b"\xd0\x0d\xfe\xed")


def test_truncated_struct_raises():
    blob = build_memory_dtb(0x80000000, 0x8000000)
    with pytest.raises(DeviceTreeError):
        read_memory_region(blob[:60])


def test_no_memory_node_returns_none():
    blob = build_memory_dtb(0x80000000, 0x8000000).replace(b"memory@", b"xemory@")
    assert read_memory_region(blob) is None


def test_build_rejects_out_of_range():
    with pytest.raises(ValueError):
        build_memory_dtb(-1, 10)


def test_dtb_init_reports_memory():
    console, out = make_console()
    region = dtb_init(console, build_memory_dtb(0x80000000, 0x8000000), 0, 0x87000000)
    assert region == MemoryRegion(0x80000000, 0x8000000)
    text = out.getvalue()
    assert text.startswith("DTB Init\nHartID: 0\n")
    assert "  Base: 0x0000000080000000\n" in text
    assert "(128 MB)" in text
    assert text.endswith("DTB init completed\n")


def test_dtb_init_null_address():
    console, out = make_console()
    assert dtb_init(console, build_memory_dtb(0, 4096), 0, 0) is None
    assert "Error: DTB address is null" in out.getvalue()
    assert "completed" not in out.getvalue()


def test_dtb_init_bad_magic():
    console, out = make_console()
    assert dtb_init(console, b"\x00\x00\x00\x01" + bytes(40), 1, 0x1000) is None
    assert "Error: Invalid DTB magic number: 0x1\n" in out.getvalue()
    assert "completed" not in out.getvalue()


def test_dtb_init_missing_memory_warns():
    console, out = make_console()
    blob = build_memory_dtb(0x80000000, 0x8000000).replace(b"memory@", b"xemory@")
    assert dtb_init(console, blob, 0, 0x1000) is None
    text = out.getvalue()
    assert "Warning: Could not extract memory info from DTB" in text
    assert text.endswith("DTB init completed\n")