import pytest

from xv6fs.layout import (
    BPB,
    BSIZE,
    DIRENT_SIZE,
    DIRSIZ,
    IPB,
    MAXFILE,
    NDIRECT,
    NINDIRECT,
    DirEntry,
    DiskInode,
    FileType,
    OpenFlag,
    SuperBlock,
    bitmap_block,
    inode_block,
)


def test_superblock_round_trip():
    sb = SuperBlock(1024, 995, 200)
    assert SuperBlock.unpack(sb.pack()) == sb


def test_superblock_is_little_endian():
    packed = SuperBlock(1024, 995, 200).pack()
    assert packed[:4] == (1024).to_bytes(4, "little")
    assert packed[8:12] == (200).to_bytes(4, "little")


def test_superblock_unpacks_from_full_block():
    block = SuperBlock(1024, 995, 200).pack().ljust(BSIZE, b"\0")
    assert SuperBlock.unpack(block) == SuperBlock(1024, 995, 200)


def test_superblock_short_data():
    with pytest.raises(ValueError):
        SuperBlock.unpack(b"\0" * 4)


def test_superblock_negative_value():
    with pytest.raises(ValueError):
        SuperBlock(-1, 0, 0).pack()


def test_inodes_fill_block_exactly():
    packed = DiskInode().pack()
    assert BSIZE % len(packed) == 0
    assert len(packed) * IPB == BSIZE


def test_inode_round_trip():
    addrs = list(range(100, 100 + NDIRECT + 1))
    inode = DiskInode(FileType.FILE, 0, 0, 1, 4096, addrs)
    back = DiskInode.unpack(inode.pack())
    assert back == inode
    assert back.type == FileType.FILE


def test_inode_wrong_address_count():
    with pytest.raises(ValueError):
        DiskInode(addrs=[0] * NDIRECT)


def test_max_file_blocks():
    inode = DiskInode()
    assert len(inode.addrs) == NDIRECT + 1
    assert MAXFILE == NDIRECT + NINDIRECT
    assert NINDIRECT * 4 == BSIZE


def test_dirent_round_trip():
    entry = DirEntry(7, "README")
    packed = entry.pack()
    assert len(packed) == DIRENT_SIZE
    assert BSIZE % DIRENT_SIZE == 0
    assert DirEntry.unpack(packed) == entry


def test_dirent_name_truncated():
    entry = DirEntry.unpack(DirEntry(3, "123456789012345").pack())
    assert entry.name == "12345678901234"
    assert len(entry.name) == DIRSIZ


def test_dirent_short_data():
    with pytest.raises(ValueError):
        DirEntry.unpack(b"\x01\x00ab")


@pytest.mark.parametrize("block", [0, 1, 2, 5])
def test_inode_block_steps_per_ipb(block):
    assert inode_block(block * IPB) == block + 2
    assert inode_block(block * IPB + IPB - 1) == block + 2


def test_bitmap_follows_inodes():
    ninodes = 200
    assert bitmap_block(0, ninodes) > inode_block(ninodes - 1)
    assert bitmap_block(BPB, ninodes) == bitmap_block(0, ninodes) + 1
    assert bitmap_block(BPB - 1, ninodes) == bitmap_block(0, ninodes)


def test_open_flags_combine():
    flags = OpenFlag(0x201)
    assert flags == OpenFlag.WRONLY | OpenFlag.CREATE
    assert OpenFlag.CREATE in flags
    assert OpenFlag.RDWR not in flags