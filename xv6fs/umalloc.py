"""First-fit free-list allocator over a heap grown with sbrk."""

from __future__ import annotations

from typing import Dict, Optional, Set

UNIT = 8  # size of a block header, and the allocation granule
MIN_GROWTH = 4096  # units requested from sbrk at a time, at least
_BASE = -UNIT  # the empty sentinel block sits below the heap


class Allocator:
    """Heap allocator; addresses are offsets from the start of the heap."""

    def __init__(self, limit: int) -> None:
        if limit < 0:
            raise ValueError("heap limit must not be negative")
        self.limit = limit
        self.brk = 0
        self._next: Dict[int, int] = {}  # free block header -> next free header
        self._size: Dict[int, int] = {}  # block header -> size in units
        self._allocated: Set[int] = set()
        self._freep: Optional[int] = None

    def sbrk(self, increment: int) -> int:
        """Move the break by increment bytes and return the old break."""
        old = self.brk
        new = old + increment
        if new < 0 or new > self.limit:
            raise MemoryError(f"cannot move break from {old} to {new}")
        self.brk = new
        return old

    def _morecore(self, nunits: int) -> int:
        nunits = max(nunits, MIN_GROWTH)
        header = self.sbrk(nunits * UNIT)
        self._size[header] = nunits
        self._allocated.add(header)
        self.free(header + UNIT)
        assert self._freep is not None
        return self._freep

    def malloc(self, nbytes: int) -> int:
        """Address of a new block of at least nbytes; MemoryError when none is left."""
        if nbytes < 0:
            raise ValueError("cannot allocate a negative size")
        nunits = (nbytes + UNIT - 1) // UNIT + 1
        if self._freep is None:
            self._next[_BASE] = _BASE
            self._size[_BASE] = 0
            self._freep = _BASE
        prevp = self._freep
        p = self._next[prevp]
        while True:
            if self._size[p] >= nunits:
                if self._size[p] == nunits:
                    self._next[prevp] = self._next.pop(p)
                else:
                    self._size[p] -= nunits
                    p += self._size[p] * UNIT
                    self._size[p] = nunits
                self._freep = prevp
                self._allocated.add(p)
                return p + UNIT
            if p == self._freep:
                p = self._morecore(nunits)
            prevp, p = p, self._next[p]

    def free(self, address: int) -> None:
        """Return a block from malloc to the free list, merging neighbours."""
        bp = address - UNIT
        if bp not in self._allocated or self._freep is None:
            raise ValueError(f"{address} is not an allocated block")
        self._allocated.remove(bp)

        p = self._freep
        while not (p < bp < self._next[p]):
            nxt = self._next[p]
            if p >= nxt and (bp > p or bp < nxt):
                break
            p = nxt

        nxt = self._next[p]
        if bp + self._size[bp] * UNIT == nxt:
            self._size[bp] += self._size.pop(nxt)
            self._next[bp] = self._next.pop(nxt)
        else:
            self._next[bp] = nxt
        if p + self._size[p] * UNIT == bp:
            self._size[p] += self._size.pop(bp)
            self._next[p] = self._next.pop(bp)
        else:
            self._next[p] = bp
        self._freep = p