# kernsim

kernsim models the early boot path of a small teaching kernel in plain
Python. It has these modules:

- `kernsim.printfmt` is the kernel's `printf`-style formatter (`printfmt`, `sformat`,
  `snprintf`). It handles `%d %u %o %x %p %c %s %e %%`, field widths (also
  from `*`), `0` and `-` padding, precision for `%s`, the `#` flag for `%s`
  and the `l`/`ll` length flags. `printfmt` passes each character to a
  callback and returns the count. `sformat` returns the whole string.
  `snprintf(size, fmt, ...)` returns the text that fits in `size - 1`
  characters, together with the full length. It raises `ValueError` when
  `size < 1`. The module also holds the `ErrorCode` enum and
  `error_message(code)`, under which `-4` and `4` both give `"out of memory"`.
- `kernsim.cstring` holds C string helpers with C semantics: `strtol` returns
  `(value, end_index)`, and there are also `strcmp`, `strncmp`, `strfind`,
  `memcmp` and `memmove`.
- `kernsim.console` provides a `Console` over a pair of text streams, an output
  and an input, which default to stdout and stdin. It has `putc`, `getc`,
  `getchar`, `cprintf`, `cputs`, `readline` (with echo and backspace
  editing), `warn`, `panic` and `is_panicked`. `panic` prints its message and
  raises `KernelPanic`. A panic after the first one raises without printing.
- `kernsim.page` holds page descriptors (`Page`, `PageFlag`), the memory-layout
  and Sv39 constants, and address helpers (`round_down`, `round_up`, `ppn`,
  `vpn`, `pgaddr`, `pte_addr`).
- `kernsim.first_fit` provides `FirstFitManager`, a first-fit page allocator over
  a list of `Page` objects addressed by index. It offers `init_memmap`,
  `alloc_pages`, `free_pages` (which merges adjacent free blocks),
  `nr_free_pages` and `free_blocks`. It also has a self-test, `check`, which
  raises `AssertionError` on any failure.
- `kernsim.dtb` reads flattened device trees. `read_memory_region` finds the
  first `reg` entry of a `memory` node and returns a `MemoryRegion`, or
  `None`. It raises `DeviceTreeError` for a bad magic number or a truncated
  blob. `build_memory_dtb` builds a minimal blob. `dtb_init` reports on a
  `Console` and returns the region.
- `kernsim.pmm` provides `PhysicalMemory`, which lays out the page array for the
  region, hands the free range to the first-fit allocator and runs its
  `check`. It also has `page2pa`, `pa2page` and `paddr`.
- `kernsim.kernel` holds `kern_init`, which runs the whole boot sequence and returns
  the `PhysicalMemory`. It also holds `main`, the command-line entry point.

## Installation

```
pip install .
```

## Running the simulated boot

```
kernsim
```

By default, `kernsim` builds a device tree that describes 128 MiB of RAM at
`0x80000000` and boots with it. The boot log goes to standard output. It covers
device-tree discovery, the banner, the kernel symbols, the memory map and the
allocator self-check.

Options (numbers may be given in decimal or with a `0x` prefix):

- `--dtb PATH` boots from a device tree blob file instead of a generated one.
- `--memory-base N` and `--memory-size N` set the memory of the generated tree.
- `--hartid N` sets the boot hart id that is reported.
- `--dtb-address N` sets the reported device tree address. `0` is reported
  as a null address.

The command exits with status 0 after a clean boot and 1 after a kernel panic,
for example when no memory is found.

## Using the library

```python
import io
from kernsim.console import Console
from kernsim.printfmt import sformat
from kernsim.dtb import build_memory_dtb, read_memory_region

print(sformat("%08x|%-5s|%e", 0xBEEF, "ok", -4))
# 0000beef|ok   |out of memory

region = read_memory_region(build_memory_dtb(0x80000000, 0x8000000))
print(hex(region.base), hex(region.size))

out = io.StringIO()
console = Console(out, io.StringIO("hello\n"))
line = console.readline("> ")   # "hello"; out holds "> hello\n"
```

## What it does not do

The boot stops once physical memory is set up. kernsim does not:

- build page tables or switch address spaces,
- handle traps or interrupts,
- run processes.

Only the first-fit allocator is provided.

## Tests

```
pip install .[test]
pytest
```