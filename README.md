# xv6fs

A pure-Python toolkit around the xv6 teaching operating system: it builds
file-system images, describes the on-disk and x86 data structures, models
the kernel's page tables, parses shell command lines and provides a handful
of small text utilities.

## Modules

- `xv6fs.layout` – the on-disk format and system numbering: `SuperBlock`,
  `DiskInode` and `DirEntry` (each with `pack()` / `unpack()`), the enums
  `FileType`, `OpenFlag`, `Syscall`, `Trap`, `Irq` and `BufFlag`, constants
  such as `BSIZE`, `NDIRECT`, `MAXFILE` and `DIRSIZ`, and the helpers
  `inode_block(inum)` and `bitmap_block(block, ninodes)`.
- `xv6fs.mkfs` – `ImageBuilder`, which lays out super block, inodes, bitmap
  and data blocks in a binary file, `build_image()` and the `xv6-mkfs`
  command.
- `xv6fs.mmu` – `SegmentDescriptor` and `GateDescriptor` with their bit
  fields, `TrapFrame`, the flag enums `EFlags`, `Cr0`, `PteFlag`, `SegType`,
  and paging arithmetic: `pdx`, `ptx`, `pgaddr`, `pg_round_up`,
  `pg_round_down`, `pte_addr`, `seg_asm`.
- `xv6fs.vm` – `PhysicalMemory`, a page-granular simulated memory with a
  free list, and `PageDirectory`, two-level page tables kept inside it
  (`setup_kernel`, `map_pages`, `walk`, `init_user`, `load`, `grow`,
  `shrink`, `copy`, `free`, `user_to_physical`, `copy_out`). Failures raise
  `OutOfMemory` or `VmPanic`.
- `xv6fs.trap` – `TrapHandler`, which routes a `TrapFrame` to a system-call
  callable, device callables or fault handling and returns a `TrapOutcome`
  (`RESUME`, `YIELD` or `EXIT`); unrecoverable kernel faults raise
  `KernelPanic`. `build_idt()` makes the 256-entry gate table.
- `xv6fs.uart` – `Uart`, the COM1 8250 serial driver, working through any
  object with `inb`/`outb`; `LoopbackPorts` is an in-memory port set for it.
- `xv6fs.shell` – `parse_command()` turns a command line into a tree of
  `ExecCmd`, `RedirCmd`, `PipeCmd`, `ListCmd` and `BackCmd`; `Tokenizer`
  and `read_command()` are also available.
- `xv6fs.grep` – `match()` for patterns with `^`, `.`, `*` and `$`,
  `grep()` over a text stream, and the `xv6-grep` command.
- `xv6fs.textutils` – `atoi`, `read_line`, `count_words` / `wc`
  (returning a `WordCount`), `cat`, `echo`, `fmtname` and `ls`.
- `xv6fs.printf` – `format_message()` and `fprintf()` understanding
  `%d`, `%x`, `%p`, `%s`, `%c` and `%%`.
- `xv6fs.umalloc` – `Allocator`, a first-fit free-list allocator over a
  heap grown with `sbrk`; addresses are offsets into the heap.
- `xv6fs.commands` – `ln_main`, `mkdir_main`, `rm_main` and `kill_main`,
  acting on the host file system and processes.

## Installation

```
pip install .
```

## Building a disk image

```
xv6-mkfs fs.img path/to/root
```

This writes a 1024-block image (995 data blocks, 200 inodes), copies every
file and directory below `path/to/root` into it in name order, and marks the
used blocks in the free bitmap. Names longer than 14 bytes are cut short.
Without a directory argument the image holds just an empty root directory.
Progress is printed on standard output. From Python:

```python
from xv6fs.mkfs import build_image

used = build_image("fs.img", "path/to/root")   # number of blocks in use
```

## Searching text

```
xv6-grep '^ab*c$' notes.txt
```

With no file arguments it reads standard input. From Python:

```python
from xv6fs.grep import match

match("^ab*c$", "abbbc")   # True
```

## Parsing shell commands

```python
from xv6fs.shell import parse_command

tree = parse_command("cat < in | grep x > out &\n")
# BackCmd(PipeCmd(RedirCmd(ExecCmd(['cat']), 'in', ...), RedirCmd(...)))
```

Malformed input raises `ShellSyntaxError`; its `leftover` attribute holds
any unparsed text.

## Formatting

```python
from xv6fs.printf import format_message

format_message("%d %x %s\n", -5, 255, "ok")   # '-5 FF ok\n'
```

## What this package does not do

- It does not run the operating system. The paging, trap and serial-port
  modules are models driven by plain Python objects and callables, not a
  kernel or an emulator.
- The shell module only parses command lines; it does not run commands,
  set up pipes or perform redirections.
- There is no tool to check or mount an image; `ImageBuilder` can read back
  sectors and inodes of an image it is building, nothing more.

## Running the tests

```
pip install .[test]
pytest
```