"""Kernel start-up: device tree, console banner and physical memory."""

from __future__ import annotations

import argparse
import sys
from dataclasses import dataclass
from pathlib import Path

from kernsim.console import Console, KernelPanic
from kernsim.dtb import Blob, build_memory_dtb, dtb_init
from kernsim.page import KERNEL_BEGIN_VADDR
from kernsim.pmm import DRAM_BASE, PhysicalMemory

_BANNER = "(THU.CST) os is loading ...\0"
_DEFAULT_MEMORY_SIZE = 0x8000000
_DEFAULT_DTB_ADDRESS = 0x87000000


@dataclass(frozen=True)
class _KernelImage:
    entry: int = KERNEL_BEGIN_VADDR
    etext: int = KERNEL_BEGIN_VADDR + 0x2000
    edata: int = KERNEL_BEGIN_VADDR + 0x6000
    end: int = KERNEL_BEGIN_VADDR + 0x8000


_IMAGE = _KernelImage()


def _print_kerninfo(console: Console, image: _KernelImage) -> None:
    console.cprintf("Special kernel symbols:\n")
    console.cprintf("  entry  0x%016lx (virtual)\n", image.entry)
    console.cprintf("  etext  0x%016lx (virtual)\n", image.etext)
    console.cprintf("  edata  0x%016lx (virtual)\n", image.edata)
    console.cprintf("  end    0x%016lx (virtual)\n", image.end)
    console.cprintf(
        "Kernel executable memory footprint: %dKB\n", (image.end - image.entry + 1023) // 1024
    )


def kern_init(console: Console, blob: Blob, hartid: int, address: int) -> PhysicalMemory:
    """Boot the kernel and return its initialised physical memory manager."""
    region = dtb_init(console, blob, hartid, address)
    console.cputs(_BANNER)
    _print_kerninfo(console, _IMAGE)
    memory = PhysicalMemory(console, region, _IMAGE.end)
    memory.init()
    return memory


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    def number(text: str) -> int:
        return int(text, 0)

    parser = argparse.ArgumentParser(prog="kernsim", description="Boot the simulated kernel.")
    parser.add_argument("--dtb", type=Path, help="device tree blob to boot with")
    parser.add_argument("--memory-base", type=number, default=DRAM_BASE)
    parser.add_argument("--memory-size", type=number, default=_DEFAULT_MEMORY_SIZE)
    parser.add_argument("--hartid", type=number, default=0)
    parser.add_argument("--dtb-address", type=number, default=_DEFAULT_DTB_ADDRESS)
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    """Command-line entry point; returns 0 on a clean boot, 1 on a panic."""
    args = _parse_args(argv)
    if args.dtb is not None:
        blob = args.dtb.read_bytes()
    else:
        blob = build_memory_dtb(args.memory_base, args.memory_size)
    console = Console(output=sys.stdout, input=sys.stdin)
    try:
        kern_init(console, blob, args.hartid, args.dtb_address)
    except KernelPanic:
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())