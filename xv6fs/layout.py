"""On-disk file system format, system parameters and kernel numbering."""

from __future__ import annotations

import enum
import struct
from dataclasses import dataclass, field
from typing import ClassVar, List

# Block 0 is unused, block 1 is the super block, inodes start at block 2.
ROOTINO = 1
BSIZE = 512

NDIRECT = 12
NINDIRECT = BSIZE // 4
MAXFILE = NDIRECT + NINDIRECT

DIRSIZ = 14

# System parameters.
NPROC = 64
KSTACKSIZE = 4096
NCPU = 8
NOFILE = 16
NFILE = 100
NBUF = 10
NINODE = 50
NDEV = 10
ROOTDEV = 1
USERTOP = 0xA0000
PHYSTOP = 0x1000000
MAXARG = 32

_SUPERBLOCK = struct.Struct("<3I")
_DINODE = struct.Struct(f"<4hI{NDIRECT + 1}I")
_DIRENT = struct.Struct(f"<H{DIRSIZ}s")

DINODE_SIZE = _DINODE.size
DIRENT_SIZE = _DIRENT.size
SUPERBLOCK_SIZE = _SUPERBLOCK.size

IPB = BSIZE // DINODE_SIZE  # inodes per block
BPB = BSIZE * 8  # bitmap bits per block


class FileType(enum.IntEnum):
    """Kind of object an inode describes."""

    DIR = 1
    FILE = 2
    DEV = 3


class OpenFlag(enum.IntFlag):
    """Flags accepted by open."""

    RDONLY = 0x000
    WRONLY = 0x001
    RDWR = 0x002
    CREATE = 0x200


class Syscall(enum.IntEnum):
    """System call numbers."""

    FORK = 1
    EXIT = 2
    WAIT = 3
    PIPE = 4
    WRITE = 5
    READ = 6
    CLOSE = 7
    KILL = 8
    EXEC = 9
    OPEN = 10
    MKNOD = 11
    UNLINK = 12
    FSTAT = 13
    LINK = 14
    MKDIR = 15
    CHDIR = 16
    DUP = 17
    GETPID = 18
    SBRK = 19
    SLEEP = 20
    UPTIME = 21
    PART_A = 22
    PART_B = 23


class Trap(enum.IntEnum):
    """x86 trap and interrupt vector numbers."""

    DIVIDE = 0
    DEBUG = 1
    NMI = 2
    BRKPT = 3
    OFLOW = 4
    BOUND = 5
    ILLOP = 6
    DEVICE = 7
    DBLFLT = 8
    TSS = 10
    SEGNP = 11
    STACK = 12
    GPFLT = 13
    PGFLT = 14
    FPERR = 16
    ALIGN = 17
    MCHK = 18
    SIMDERR = 19
    IRQ0 = 32
    SYSCALL = 64
    DEFAULT = 500


class Irq(enum.IntEnum):
    """Hardware interrupt lines, relative to Trap.IRQ0."""

    TIMER = 0
    KBD = 1
    COM1 = 4
    IDE = 14
    ERROR = 19
    SPURIOUS = 31


class BufFlag(enum.IntFlag):
    """State bits of a disk block buffer."""

    BUSY = 0x1
    VALID = 0x2
    DIRTY = 0x4


def _pack(layout: struct.Struct, *values: int) -> bytes:
    try:
        return layout.pack(*values)
    except struct.error as exc:
        raise ValueError(str(exc)) from exc


def _unpack(layout: struct.Struct, data: bytes, what: str) -> tuple:
    if len(data) < layout.size:
        raise ValueError(f"{what} needs {layout.size} bytes, got {len(data)}")
    return layout.unpack_from(data)


@dataclass
class SuperBlock:
    """File system super block."""

    size: int
    nblocks: int
    ninodes: int

    def pack(self) -> bytes:
        return _pack(_SUPERBLOCK, self.size, self.nblocks, self.ninodes)

    @classmethod
    def unpack(cls, data: bytes) -> "SuperBlock":
        return cls(*_unpack(_SUPERBLOCK, data, "super block"))


@dataclass
class DiskInode:
    """On-disk inode."""

    type: int = 0
    major: int = 0
    minor: int = 0
    nlink: int = 0
    size: int = 0
    addrs: List[int] = field(default_factory=lambda: [0] * (NDIRECT + 1))

    ADDR_COUNT: ClassVar[int] = NDIRECT + 1

    def __post_init__(self) -> None:
        self.addrs = list(self.addrs)
        if len(self.addrs) != self.ADDR_COUNT:
            raise ValueError(
                f"an inode holds {self.ADDR_COUNT} block addresses, got {len(self.addrs)}"
            )

    def pack(self) -> bytes:
        return _pack(
            _DINODE,
            self.type,
            self.major,
            self.minor,
            self.nlink,
            self.size,
            *self.addrs,
        )

    @classmethod
    def unpack(cls, data: bytes) -> "DiskInode":
        kind, major, minor, nlink, size, *addrs = _unpack(_DINODE, data, "inode")
        return cls(kind, major, minor, nlink, size, addrs)


@dataclass
class DirEntry:
    """Directory entry; names longer than DIRSIZ bytes are cut short."""

    inum: int
    name: str

    def pack(self) -> bytes:
        raw = self.name.encode("utf-8", "surrogateescape")[:DIRSIZ]
        return _pack(_DIRENT, self.inum, raw)

    @classmethod
    def unpack(cls, data: bytes) -> "DirEntry":
        inum, raw = _unpack(_DIRENT, data, "directory entry")
        name = raw.split(b"\0", 1)[0].decode("utf-8", "surrogateescape")
        return cls(inum, name)


def inode_block(inum: int) -> int:
    """Block that holds inode number inum."""
    return inum // IPB + 2


def bitmap_block(block: int, ninodes: int) -> int:
    """Bitmap block that holds the bit for the given block."""
    return block // BPB + ninodes // IPB + 3