"""Flattened device tree reading: finding the physical memory region."""

from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import Union

from kernsim.console import Console
from kernsim.cstring import strcmp, strncmp

FDT_MAGIC = 0xD00DFEED
FDT_BEGIN_NODE = 0x00000001
FDT_END_NODE = 0x00000002
FDT_PROP = 0x00000003
FDT_NOP = 0x00000004
FDT_END = 0x00000009

_HEADER = struct.Struct(">10I")
_RSVMAP_END = bytes(16)
_FDT_VERSION = 17
_FDT_LAST_COMP_VERSION = 16
_UINT64_LIMIT = 1 << 64

Blob = Union[bytes, bytearray, memoryview]


class DeviceTreeError(ValueError):
    """Raised when a device tree blob is malformed."""


@dataclass(frozen=True)
class MemoryRegion:
    """A range of physical memory: its base address and size in bytes."""

    base: int
    size: int

    @property
    def end(self) -> int:
        """Address just past the region."""
        return self.base + self.size


def _u32(blob: bytes, offset: int) -> int:
    if offset < 0 or offset + 4 > len(blob):
        raise DeviceTreeError(f"device tree truncated at offset {offset}")
    return struct.unpack_from(">I", blob, offset)[0]


def read_memory_region(blob: Blob) -> MemoryRegion | None:
    """Return the first ``reg`` entry of a ``memory`` node.

    Returns None when the tree has no such entry or holds an unknown token.
    Raises DeviceTreeError for a bad magic number or a truncated blob.
    """
    data = bytes(blob)
    if len(data) < _HEADER.size:
        raise DeviceTreeError("device tree shorter than its header")
    magic, _totalsize, off_struct, off_strings = struct.unpack_from(">4I", data)
    if magic != FDT_MAGIC:
        raise DeviceTreeError(f"invalid device tree magic number: {magic:#x}")

    pos = off_struct
    in_memory_node = False
    while True:
        token = _u32(data, pos)
        pos += 4
        if token == FDT_BEGIN_NODE:
            end = data.find(b"\0", pos)
            if end < 0:
                raise DeviceTreeError(f"unterminated node name at offset {pos}")
            name = data[pos:end]
            if strncmp(name, b"memory", 6) == 0:
                in_memory_node = True
            pos = (pos + len(name) + 4) & ~3
        elif token == FDT_END_NODE:
            in_memory_node = False
        elif token == FDT_PROP:
            length = _u32(data, pos)
            nameoff = _u32(data, pos + 4)
            pos += 8
            prop_name = data[off_strings + nameoff:]
            if in_memory_node and strcmp(prop_name, b"reg") == 0 and length >= 16:
                if pos + 16 > len(data):
                    raise DeviceTreeError(f"reg property truncated at offset {pos}")
                base, size = struct.unpack_from(">QQ", data, pos)
                return MemoryRegion(base, size)
            pos = (pos + length + 3) & ~3
        elif token == FDT_NOP:
            continue
        else:
            return None


def _node_name(name: str) -> bytes:
    raw = name.encode("ascii") + b"\0"
    return raw + bytes(-len(raw) % 4)


def _prop(length_data: bytes, nameoff: int) -> bytes:
    header = struct.pack(">III", FDT_PROP, len(length_data), nameoff)
    return header + length_data + bytes(-len(length_data) % 4)


def build_memory_dtb(base: int, size: int) -> bytes:
    """Build a minimal device tree describing one memory region."""
    for label, value in (("base", base), ("size", size)):
        if not 0 <= value < _UINT64_LIMIT:
            raise ValueError(f"memory {label} out of range: {value}")

    strings = b"device_type\0reg\0"
    device_type_off = 0
    reg_off = strings.index(b"reg\0")

    body = b"".join(
        [
            struct.pack(">I", FDT_BEGIN_NODE),
            _node_name(""),
            struct.pack(">I", FDT_BEGIN_NODE),
            _node_name(f"memory@{base:x}"),
            _prop(b"memory\0", device_type_off),
            _prop(struct.pack(">QQ", base, size), reg_off),
            struct.pack(">I", FDT_END_NODE),
            struct.pack(">I", FDT_END_NODE),
            struct.pack(">I", FDT_END),
        ]
    )

    off_mem_rsvmap = _HEADER.size
    off_dt_struct = off_mem_rsvmap + len(_RSVMAP_END)
    off_dt_strings = off_dt_struct + len(body)
    totalsize = off_dt_strings + len(strings)
    header = _HEADER.pack(
        FDT_MAGIC,
        totalsize,
        off_dt_struct,
        off_dt_strings,
        off_mem_rsvmap,
        _FDT_VERSION,
        _FDT_LAST_COMP_VERSION,
        0,
        len(strings),
        len(body),
    )
    return header + _RSVMAP_END + body + strings


def dtb_init(console: Console, blob: Blob, hartid: int, address: int) -> MemoryRegion | None:
    """Report the boot hart and device tree, and return the memory it describes.

    Returns None when the address is null, the magic number is wrong or the
    tree describes no memory; each case is reported on the console.
    """
    console.cprintf("DTB Init\n")
    console.cprintf("HartID: %ld\n", hartid)
    console.cprintf("DTB Address: 0x%lx\n", address)

    if address == 0:
        console.cprintf("Error: DTB address is null\n")
        return None

    data = bytes(blob)
    magic = struct.unpack_from(">I", data)[0] if len(data) >= 4 else 0
    if magic != FDT_MAGIC:
        console.cprintf("Error: Invalid DTB magic number: 0x%x\n", magic)
        return None

    region = read_memory_region(data)
    if region is not None:
        console.cprintf("Physical Memory from DTB:\n")
        console.cprintf("  Base: 0x%016lx\n", region.base)
        console.cprintf("  Size: 0x%016lx (%ld MB)\n", region.size, region.size // (1024 * 1024))
        console.cprintf("  End:  0x%016lx\n", region.base + region.size - 1)
    else:
        console.cprintf("Warning: Could not extract memory info from DTB\n")
    console.cprintf("DTB init completed\n")
    return region