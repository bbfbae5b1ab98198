"""Two-level x86 page tables kept in simulated physical memory."""

from __future__ import annotations

import logging
import struct
from collections import deque
from typing import Callable, Deque, Dict, Optional, Set

from .layout import PHYSTOP, USERTOP
from .mmu import NPDENTRIES, PGSIZE, PteFlag, pdx, pg_round_down, pg_round_up, pte_addr, ptx

_MASK32 = 0xFFFFFFFF
_WORD = struct.Struct("<I")
_P = int(PteFlag.P)
_W = int(PteFlag.W)
_U = int(PteFlag.U)
_KERNEL_BASE = 0x100000
_DEVICE_BASE = 0xFE000000

_log = logging.getLogger(__name__)

Reader = Callable[[int, int], bytes]


class OutOfMemory(MemoryError):
    """No physical page, or no room in the user address space, is left."""


class VmPanic(RuntimeError):
    """An inconsistency in the page tables that the kernel cannot survive."""


class PhysicalMemory:
    """Page-granular physical memory with a free list over [start, stop)."""

    def __init__(self, start: int, stop: int) -> None:
        first = pg_round_up(start)
        last = pg_round_down(stop)
        if first >= last:
            raise ValueError(f"no whole page between {start:#x} and {stop:#x}")
        self.start = first
        self.stop = last
        self._pages: Dict[int, bytearray] = {}
        self._free: Deque[int] = deque(range(first, last, PGSIZE))
        self._allocated: Set[int] = set()

    @property
    def free_count(self) -> int:
        """Number of pages still on the free list."""
        return len(self._free)

    def alloc_page(self) -> int:
        """Take a page off the free list; its contents are left as they were."""
        if not self._free:
            raise OutOfMemory("out of physical pages")
        address = self._free.popleft()
        self._allocated.add(address)
        return address

    def free_page(self, address: int) -> None:
        """Put an allocated page back on the free list."""
        if address % PGSIZE or address not in self._allocated:
            raise VmPanic("kfree")
        self._allocated.remove(address)
        self._free.appendleft(address)

    def _page(self, address: int) -> bytearray:
        base = address - address % PGSIZE
        page = self._pages.get(base)
        if page is None:
            page = self._pages[base] = bytearray(PGSIZE)
        return page

    def _check(self, address: int, length: int) -> None:
        if length < 0 or address < self.start or address + length > self.stop:
            raise ValueError(
                f"{length} bytes at {address:#x} lie outside {self.start:#x}..{self.stop:#x}"
            )

    def read(self, address: int, length: int) -> bytes:
        self._check(address, length)
        out = bytearray()
        while length > 0:
            offset = address % PGSIZE
            n = min(length, PGSIZE - offset)
            out += self._page(address)[offset:offset + n]
            address += n
            length -= n
        return bytes(out)

    def write(self, address: int, data: bytes) -> None:
        view = memoryview(bytes(data))
        self._check(address, len(view))
        while view:
            offset = address % PGSIZE
            n = min(len(view), PGSIZE - offset)
            self._page(address)[offset:offset + n] = view[:n]
            address += n
            view = view[n:]

    def _load(self, address: int) -> int:
        self._check(address, 4)
        return _WORD.unpack_from(self._page(address), address % PGSIZE)[0]

    def _store(self, address: int, value: int) -> None:
        self._check(address, 4)
        _WORD.pack_into(self._page(address), address % PGSIZE, value & _MASK32)


class PageDirectory:
    """A page directory and the page tables and user pages reachable from it."""

    def __init__(self, memory: PhysicalMemory) -> None:
        self.memory = memory
        self.address: Optional[int] = memory.alloc_page()
        memory.write(self.address, bytes(PGSIZE))

    def _dir(self) -> int:
        if self.address is None:
            raise VmPanic("page directory has been freed")
        return self.address

    def _entry(self, pte_at: int) -> int:
        return self.memory._load(pte_at)

    def walk(self, va: int, create: bool) -> Optional[int]:
        """Physical address of the PTE for va, creating its page table if asked."""
        pde_at = self._dir() + pdx(va) * 4
        pde = self.memory._load(pde_at)
        if pde & _P:
            table = pte_addr(pde)
        else:
            if not create:
                return None
            table = self.memory.alloc_page()
            self.memory.write(table, bytes(PGSIZE))
            self.memory._store(pde_at, table | _P | _W | _U)
        return table + ptx(va) * 4

    def map_pages(self, la: int, size: int, pa: int, perm: int) -> None:
        """Map the pages covering [la, la+size) to physical pages from pa."""
        if size <= 0:
            raise ValueError("cannot map an empty range")
        a = pg_round_down(la)
        last = pg_round_down(la + size - 1)
        pa &= _MASK32
        perm = int(perm)
        while True:
            pte_at = self.walk(a, True)
            if self.memory._load(pte_at) & _P:
                raise VmPanic("remap")
            self.memory._store(pte_at, pa | perm | _P)
            if a == last:
                break
            a = (a + PGSIZE) & _MASK32
            pa = (pa + PGSIZE) & _MASK32

    @classmethod
    def setup_kernel(cls, memory: PhysicalMemory, data_start: int) -> "PageDirectory":
        """New directory holding the direct mappings every address space shares."""
        if not _KERNEL_BASE < data_start < PHYSTOP:
            raise ValueError(f"kernel data must start between 1M and PHYSTOP, got {data_start:#x}")
        kmap = (
            (USERTOP, _KERNEL_BASE, _W),  # I/O space
            (_KERNEL_BASE, data_start, 0),  # kernel text, rodata
            (data_start, PHYSTOP, _W),  # kernel data, memory
            (_DEVICE_BASE, 0, _W),  # device mappings
        )
        pgdir = cls(memory)
        try:
            for start, end, perm in kmap:
                pgdir.map_pages(start, (end - start) & _MASK32, start, perm)
        except OutOfMemory:
            pgdir.free()
            raise
        return pgdir

    def init_user(self, code: bytes) -> None:
        """Place the first program at address 0; it must fit in one page."""
        if len(code) >= PGSIZE:
            raise VmPanic("inituvm: more than a page")
        mem = self.memory.alloc_page()
        self.memory.write(mem, bytes(PGSIZE))
        self.map_pages(0, PGSIZE, mem, _W | _U)
        self.memory.write(mem, code)

    def load(self, addr: int, reader: Reader, offset: int, size: int) -> None:
        """Fill already mapped pages from addr with size bytes read at offset."""
        if addr % PGSIZE:
            raise VmPanic("loaduvm: addr must be page aligned")
        for i in range(0, size, PGSIZE):
            pte_at = self.walk(addr + i, False)
            if pte_at is None or not self._entry(pte_at) & _P:
                raise VmPanic("loaduvm: address should exist")
            pa = pte_addr(self._entry(pte_at))
            n = min(size - i, PGSIZE)
            chunk = reader(offset + i, n)
            if len(chunk) != n:
                raise EOFError(f"short read at offset {offset + i}: wanted {n}, got {len(chunk)}")
            self.memory.write(pa, chunk)

    def grow(self, oldsz: int, newsz: int) -> int:
        """Grow user memory from oldsz to newsz with zeroed pages; returns the new size."""
        if newsz > USERTOP:
            raise OutOfMemory(f"size {newsz:#x} is beyond USERTOP")
        if newsz < oldsz:
            return oldsz
        a = pg_round_up(oldsz)
        while a < newsz:
            mem: Optional[int] = None
            try:
                mem = self.memory.alloc_page()
                self.memory.write(mem, bytes(PGSIZE))
                self.map_pages(a, PGSIZE, mem, _W | _U)
            except OutOfMemory:
                _log.warning("allocuvm out of memory")
                if mem is not None and not self._mapped(a):
                    self.memory.free_page(mem)
                self.shrink(newsz, oldsz)
                raise
            a += PGSIZE
        return newsz

    def _mapped(self, va: int) -> bool:
        pte_at = self.walk(va, False)
        return pte_at is not None and bool(self._entry(pte_at) & _P)

    def shrink(self, oldsz: int, newsz: int) -> int:
        """Free user pages to bring the size from oldsz down to newsz."""
        if newsz >= oldsz:
            return oldsz
        for a in range(pg_round_up(newsz), oldsz, PGSIZE):
            pte_at = self.walk(a, False)
            if pte_at is None:
                continue
            pte = self._entry(pte_at)
            if pte & _P:
                pa = pte_addr(pte)
                if pa == 0:
                    raise VmPanic("kfree")
                self.memory.free_page(pa)
                self.memory._store(pte_at, 0)
        return newsz

    def free(self) -> None:
        """Release the user pages, the page tables and the directory itself."""
        if self.address is None:
            raise VmPanic("freevm: no pgdir")
        self.shrink(USERTOP, 0)
        for i in range(NPDENTRIES):
            pde = self.memory._load(self.address + i * 4)
            if pde & _P:
                self.memory.free_page(pte_addr(pde))
        self.memory.free_page(self.address)
        self.address = None

    def copy(self, size: int, data_start: int) -> "PageDirectory":
        """New address space with a private copy of the first size bytes of user memory."""
        child = PageDirectory.setup_kernel(self.memory, data_start)
        try:
            for va in range(0, size, PGSIZE):
                pte_at = self.walk(va, False)
                if pte_at is None:
                    raise VmPanic("copyuvm: pte should exist")
                pte = self._entry(pte_at)
                if not pte & _P:
                    raise VmPanic("copyuvm: page not present")
                mem = self.memory.alloc_page()
                self.memory.write(mem, self.memory.read(pte_addr(pte), PGSIZE))
                try:
                    child.map_pages(va, PGSIZE, mem, _W | _U)
                except OutOfMemory:
                    self.memory.free_page(mem)
                    raise
        except (OutOfMemory, VmPanic):
            child.free()
            raise
        return child

    def user_to_physical(self, uva: int) -> Optional[int]:
        """Physical page behind a user-accessible virtual address, or None."""
        pte_at = self.walk(uva, False)
        if pte_at is None:
            return None
        pte = self._entry(pte_at)
        if not pte & _P or not pte & _U:
            return None
        return pte_addr(pte)

    def copy_out(self, va: int, data: bytes) -> None:
        """Copy data to user address va of this address space."""
        view = memoryview(bytes(data))
        va &= _MASK32
        while view:
            va0 = pg_round_down(va)
            pa0 = self.user_to_physical(va0)
            if pa0 is None:
                raise ValueError(f"copy_out: {va:#x} is not mapped for user access")
            n = min(PGSIZE - (va - va0), len(view))
            self.memory.write(pa0 + (va - va0), view[:n])
            view = view[n:]
            va = va0 + PGSIZE