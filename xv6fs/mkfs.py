"""Build a file system image from a host directory tree."""

from __future__ import annotations

import os
import struct
import sys
from typing import BinaryIO, List, Optional

from .layout import (
    BPB,
    BSIZE,
    DINODE_SIZE,
    IPB,
    MAXFILE,
    NDIRECT,
    NINDIRECT,
    ROOTINO,
    DirEntry,
    DiskInode,
    FileType,
    SuperBlock,
    inode_block,
)

NBLOCKS = 995
NINODES = 200
FS_SIZE = 1024

_ZERO_SECTOR = bytes(BSIZE)
_INDIRECT = struct.Struct(f"<{NINDIRECT}I")


class ImageBuilder:
    """Lays out super block, inodes, bitmap and data blocks in an image file."""

    def __init__(
        self,
        image: BinaryIO,
        nblocks: int = NBLOCKS,
        ninodes: int = NINODES,
        size: int = FS_SIZE,
    ) -> None:
        self.image = image
        self.nblocks = nblocks
        self.ninodes = ninodes
        self.size = size
        self.bit_blocks = size // BPB + 1
        self.used_blocks = ninodes // IPB + 3 + self.bit_blocks
        self.free_block = self.used_blocks
        self.next_inode = 1

        sys.stdout.write(
            f"used {self.used_blocks} (bit {self.bit_blocks} ninode {ninodes // IPB + 1}) "
            f"free {self.free_block} total {nblocks + self.used_blocks}\n"
        )
        if nblocks + self.used_blocks != size:
            raise ValueError(
                f"{nblocks} data blocks and {self.used_blocks} used blocks "
                f"do not make {size} blocks"
            )
        for sector in range(size):
            self.write_sector(sector, _ZERO_SECTOR)
        self.write_sector(1, SuperBlock(size, nblocks, ninodes).pack())

    def write_sector(self, sector: int, data: bytes) -> None:
        """Write one sector; shorter data is padded with zero bytes."""
        if len(data) > BSIZE:
            raise ValueError(f"a sector holds {BSIZE} bytes, got {len(data)}")
        self.image.seek(sector * BSIZE)
        self.image.write(bytes(data).ljust(BSIZE, b"\0"))

    def read_sector(self, sector: int) -> bytes:
        self.image.seek(sector * BSIZE)
        data = self.image.read(BSIZE)
        if len(data) != BSIZE:
            raise EOFError(f"short read of sector {sector}")
        return data

    def _inode_location(self, inum: int) -> tuple:
        return inode_block(inum), (inum % IPB) * DINODE_SIZE

    def read_inode(self, inum: int) -> DiskInode:
        block, offset = self._inode_location(inum)
        return DiskInode.unpack(self.read_sector(block)[offset:offset + DINODE_SIZE])

    def write_inode(self, inum: int, inode: DiskInode) -> None:
        block, offset = self._inode_location(inum)
        sector = bytearray(self.read_sector(block))
        sector[offset:offset + DINODE_SIZE] = inode.pack()
        self.write_sector(block, sector)

    def alloc_inode(self, kind: int) -> int:
        """Take the next inode number and give it an empty inode of the given kind."""
        inum = self.next_inode
        self.next_inode += 1
        self.write_inode(inum, DiskInode(type=int(kind), nlink=1, size=0))
        return inum

    def _alloc_block(self) -> int:
        block = self.free_block
        self.free_block += 1
        self.used_blocks += 1
        return block

    def append(self, inum: int, data: bytes) -> None:
        """Add data to the end of the file held by inode inum."""
        inode = self.read_inode(inum)
        view = memoryview(bytes(data))
        off = inode.size
        while view:
            fbn = off // BSIZE
            if fbn >= MAXFILE:
                raise ValueError(f"inode {inum} would exceed {MAXFILE} blocks")
            if fbn < NDIRECT:
                if inode.addrs[fbn] == 0:
                    inode.addrs[fbn] = self._alloc_block()
                block = inode.addrs[fbn]
            else:
                if inode.addrs[NDIRECT] == 0:
                    inode.addrs[NDIRECT] = self._alloc_block()
                table = inode.addrs[NDIRECT]
                indirect: List[int] = list(_INDIRECT.unpack(self.read_sector(table)))
                slot = fbn - NDIRECT
                if indirect[slot] == 0:
                    indirect[slot] = self._alloc_block()
                    self.write_sector(table, _INDIRECT.pack(*indirect))
                block = indirect[slot]
            start = off - fbn * BSIZE
            n = min(len(view), BSIZE - start)
            sector = bytearray(self.read_sector(block))
            sector[start:start + n] = view[:n]
            self.write_sector(block, sector)
            view = view[n:]
            off += n
        inode.size = off
        self.write_inode(inum, inode)

    def add_directory(self, path: Optional[str], inum: int, parent: int) -> None:
        """Fill directory inode inum with '.', '..' and the tree under path."""
        self.append(inum, DirEntry(inum, ".").pack())
        self.append(inum, DirEntry(parent, "..").pack())
        if path is None:
            return

        with os.scandir(path) as listing:
            entries = sorted(listing, key=lambda entry: entry.name)
        for entry in entries:
            sys.stdout.write(f"{entry.name}\n")
            if entry.is_dir():
                child = self.alloc_inode(FileType.DIR)
                self.add_directory(entry.path, child, inum)
            else:
                with open(entry.path, "rb") as source:
                    child = self.alloc_inode(FileType.FILE)
                    for chunk in iter(lambda: source.read(BSIZE), b""):
                        self.append(child, chunk)
            self.append(inum, DirEntry(child, entry.name).pack())

        inode = self.read_inode(inum)
        inode.size = (inode.size // BSIZE + 1) * BSIZE
        self.write_inode(inum, inode)

    def write_bitmap(self) -> None:
        """Mark every block handed out so far as in use."""
        used = self.used_blocks
        sys.stdout.write(f"balloc: first {used} blocks have been allocated\n")
        if used >= BPB:
            raise ValueError(f"{used} used blocks do not fit in one bitmap block")
        bitmap = bytearray(BSIZE)
        for block in range(used):
            bitmap[block // 8] |= 1 << (block % 8)
        sector = self.ninodes // IPB + 3
        sys.stdout.write(f"balloc: write bitmap block at sector {sector}\n")
        self.write_sector(sector, bitmap)


def build_image(image_path: str, root_dir: Optional[str] = None) -> int:
    """Write a fresh image holding root_dir's tree; returns the blocks in use."""
    with open(image_path, "w+b") as image:
        builder = ImageBuilder(image)
        root = builder.alloc_inode(FileType.DIR)
        if root != ROOTINO:
            raise RuntimeError(f"root inode is {root}, expected {ROOTINO}")
        builder.add_directory(root_dir, root, root)
        builder.write_bitmap()
    return builder.used_blocks


def main(argv: Optional[List[str]] = None) -> int:
    """mkfs fs.img [dir]"""
    args = sys.argv[1:] if argv is None else list(argv)
    if not args:
        sys.stderr.write("Usage: mkfs fs.img files...\n")
        return 1
    root_dir = args[1] if len(args) > 1 else None
    try:
        build_image(args[0], root_dir)
    except OSError as exc:
        sys.stderr.write(f"{exc.filename or args[0]}: {exc.strerror}\n")
        return 1
    return 0