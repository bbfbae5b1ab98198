"""x86 memory management structures: descriptors, paging and trap frames."""

from __future__ import annotations

import enum
import struct
from dataclasses import dataclass
from typing import ClassVar, Dict, Sequence, Tuple

_MASK32 = 0xFFFFFFFF


class EFlags(enum.IntFlag):
    """Bits of the EFLAGS register."""

    CF = 0x00000001
    PF = 0x00000004
    AF = 0x00000010
    ZF = 0x00000040
    SF = 0x00000080
    TF = 0x00000100
    IF = 0x00000200
    DF = 0x00000400
    OF = 0x00000800
    IOPL_MASK = 0x00003000
    IOPL_0 = 0x00000000
    IOPL_1 = 0x00001000
    IOPL_2 = 0x00002000
    IOPL_3 = 0x00003000
    NT = 0x00004000
    RF = 0x00010000
    VM = 0x00020000
    AC = 0x00040000
    VIF = 0x00080000
    VIP = 0x00100000
    ID = 0x00200000


class Cr0(enum.IntFlag):
    """Bits of control register CR0."""

    PE = 0x00000001
    MP = 0x00000002
    EM = 0x00000004
    TS = 0x00000008
    ET = 0x00000010
    NE = 0x00000020
    WP = 0x00010000
    AM = 0x00040000
    NW = 0x20000000
    CD = 0x40000000
    PG = 0x80000000


class PteFlag(enum.IntFlag):
    """Page table and page directory entry flags."""

    P = 0x001
    W = 0x002
    U = 0x004
    PWT = 0x008
    PCD = 0x010
    A = 0x020
    D = 0x040
    PS = 0x080
    MBZ = 0x180


class SegType(enum.IntFlag):
    """Application segment type bits."""

    X = 0x8  # executable
    E = 0x4  # expand down (data)
    C = 0x4  # conforming (code)
    W = 0x2  # writeable (data)
    R = 0x2  # readable (code)
    A = 0x1  # accessed


# System segment types.
STS_T16A = 0x1
STS_LDT = 0x2
STS_T16B = 0x3
STS_CG16 = 0x4
STS_TG = 0x5
STS_IG16 = 0x6
STS_TG16 = 0x7
STS_T32A = 0x9
STS_T32B = 0xB
STS_CG32 = 0xC
STS_IG32 = 0xE
STS_TG32 = 0xF

DPL_USER = 0x3

NPDENTRIES = 1024
NPTENTRIES = 1024
PGSIZE = 4096
PGSHIFT = 12
PTXSHIFT = 12
PDXSHIFT = 22

NULL_SEGMENT = bytes(8)

_Layout = Tuple[Tuple[str, int], ...]


def _check_fields(obj: object, layout: _Layout) -> None:
    for name, width in layout:
        value = getattr(obj, name)
        if not 0 <= value < 1 << width:
            raise ValueError(f"{name}={value} does not fit in {width} bits")


def _pack_fields(obj: object, layout: _Layout) -> bytes:
    value = 0
    shift = 0
    for name, width in layout:
        value |= getattr(obj, name) << shift
        shift += width
    return value.to_bytes(shift // 8, "little")


def _unpack_fields(layout: _Layout, data: bytes) -> Dict[str, int]:
    size = sum(width for _, width in layout) // 8
    if len(data) < size:
        raise ValueError(f"descriptor needs {size} bytes, got {len(data)}")
    value = int.from_bytes(data[:size], "little")
    fields = {}
    for name, width in layout:
        fields[name] = value & ((1 << width) - 1)
        value >>= width
    return fields


@dataclass
class SegmentDescriptor:
    """Segment descriptor with its hardware bit fields."""

    lim_15_0: int = 0
    base_15_0: int = 0
    base_23_16: int = 0
    type: int = 0
    s: int = 0
    dpl: int = 0
    p: int = 0
    lim_19_16: int = 0
    avl: int = 0
    rsv1: int = 0
    db: int = 0
    g: int = 0
    base_31_24: int = 0

    LAYOUT: ClassVar[_Layout] = (
        ("lim_15_0", 16),
        ("base_15_0", 16),
        ("base_23_16", 8),
        ("type", 4),
        ("s", 1),
        ("dpl", 2),
        ("p", 1),
        ("lim_19_16", 4),
        ("avl", 1),
        ("rsv1", 1),
        ("db", 1),
        ("g", 1),
        ("base_31_24", 8),
    )

    def __post_init__(self) -> None:
        _check_fields(self, self.LAYOUT)

    @classmethod
    def seg(cls, type: int, base: int, limit: int, dpl: int) -> "SegmentDescriptor":
        """Normal 32-bit segment with a limit in 4096-byte units."""
        base &= _MASK32
        limit &= _MASK32
        return cls(
            (limit >> 12) & 0xFFFF,
            base & 0xFFFF,
            (base >> 16) & 0xFF,
            int(type) & 0xF,
            1,
            dpl & 0x3,
            1,
            (limit >> 28) & 0xF,
            0,
            0,
            1,
            1,
            base >> 24,
        )

    @classmethod
    def seg16(cls, type: int, base: int, limit: int, dpl: int) -> "SegmentDescriptor":
        """Segment with a byte-granular limit."""
        base &= _MASK32
        limit &= _MASK32
        return cls(
            limit & 0xFFFF,
            base & 0xFFFF,
            (base >> 16) & 0xFF,
            int(type) & 0xF,
            1,
            dpl & 0x3,
            1,
            (limit >> 16) & 0xF,
            0,
            0,
            1,
            0,
            base >> 24,
        )

    @property
    def base(self) -> int:
        return self.base_15_0 | self.base_23_16 << 16 | self.base_31_24 << 24

    def pack(self) -> bytes:
        _check_fields(self, self.LAYOUT)
        return _pack_fields(self, self.LAYOUT)

    @classmethod
    def unpack(cls, data: bytes) -> "SegmentDescriptor":
        return cls(**_unpack_fields(cls.LAYOUT, data))


@dataclass
class GateDescriptor:
    """Interrupt or trap gate descriptor."""

    off_15_0: int = 0
    cs: int = 0
    args: int = 0
    rsv1: int = 0
    type: int = 0
    s: int = 0
    dpl: int = 0
    p: int = 0
    off_31_16: int = 0

    LAYOUT: ClassVar[_Layout] = (
        ("off_15_0", 16),
        ("cs", 16),
        ("args", 5),
        ("rsv1", 3),
        ("type", 4),
        ("s", 1),
        ("dpl", 2),
        ("p", 1),
        ("off_31_16", 16),
    )

    def __post_init__(self) -> None:
        _check_fields(self, self.LAYOUT)

    @classmethod
    def make(cls, istrap: bool, selector: int, offset: int, dpl: int) -> "GateDescriptor":
        """Trap gates leave interrupts enabled; interrupt gates clear FL_IF."""
        offset &= _MASK32
        return cls(
            offset & 0xFFFF,
            selector,
            0,
            0,
            STS_TG32 if istrap else STS_IG32,
            0,
            dpl,
            1,
            offset >> 16,
        )

    @property
    def offset(self) -> int:
        return self.off_15_0 | self.off_31_16 << 16

    def pack(self) -> bytes:
        _check_fields(self, self.LAYOUT)
        return _pack_fields(self, self.LAYOUT)

    @classmethod
    def unpack(cls, data: bytes) -> "GateDescriptor":
        return cls(**_unpack_fields(cls.LAYOUT, data))


_TRAPFRAME = struct.Struct("<8I8H3I2H2I2H")


@dataclass
class TrapFrame:
    """Registers saved on the stack when a trap is taken."""

    edi: int = 0
    esi: int = 0
    ebp: int = 0
    oesp: int = 0
    ebx: int = 0
    edx: int = 0
    ecx: int = 0
    eax: int = 0
    gs: int = 0
    fs: int = 0
    es: int = 0
    ds: int = 0
    trapno: int = 0
    err: int = 0
    eip: int = 0
    cs: int = 0
    eflags: int = 0
    esp: int = 0
    ss: int = 0

    SIZE: ClassVar[int] = _TRAPFRAME.size

    def pack(self) -> bytes:
        try:
            return _TRAPFRAME.pack(
                self.edi, self.esi, self.ebp, self.oesp,
                self.ebx, self.edx, self.ecx, self.eax,
                self.gs, 0, self.fs, 0, self.es, 0, self.ds, 0,
                self.trapno, self.err, self.eip,
                self.cs, 0,
                self.eflags, self.esp,
                self.ss, 0,
            )
        except struct.error as exc:
            raise ValueError(str(exc)) from exc

    @classmethod
    def unpack(cls, data: bytes) -> "TrapFrame":
        if len(data) < _TRAPFRAME.size:
            raise ValueError(f"trap frame needs {_TRAPFRAME.size} bytes, got {len(data)}")
        (edi, esi, ebp, oesp, ebx, edx, ecx, eax,
         gs, _, fs, _, es, _, ds, _,
         trapno, err, eip, cs, _, eflags, esp, ss, _) = _TRAPFRAME.unpack_from(data)
        return cls(edi, esi, ebp, oesp, ebx, edx, ecx, eax, gs, fs, es, ds,
                   trapno, err, eip, cs, eflags, esp, ss)


def seg_asm(type: int, base: int, limit: int) -> bytes:
    """Bytes of a flat 32-bit segment as the boot assembler lays it out."""
    base &= _MASK32
    limit &= _MASK32
    words = struct.pack("<HH", (limit >> 12) & 0xFFFF, base & 0xFFFF)
    tail = bytes((
        (base >> 16) & 0xFF,
        0x90 | (int(type) & 0xF),
        0xC0 | ((limit >> 28) & 0xF),
        (base >> 24) & 0xFF,
    ))
    return words + tail


def pdx(la: int) -> int:
    """Page directory index of a linear address."""
    return ((la & _MASK32) >> PDXSHIFT) & 0x3FF


def ptx(la: int) -> int:
    """Page table index of a linear address."""
    return ((la & _MASK32) >> PTXSHIFT) & 0x3FF


def pgaddr(d: int, t: int, o: int) -> int:
    """Linear address built from directory index, table index and offset."""
    return (d << PDXSHIFT | t << PTXSHIFT | o) & _MASK32


def pg_round_up(size: int) -> int:
    return (size + PGSIZE - 1) & ~(PGSIZE - 1) & _MASK32


def pg_round_down(addr: int) -> int:
    return addr & ~(PGSIZE - 1) & _MASK32


def pte_addr(pte: int) -> int:
    """Physical address held in a page table or directory entry."""
    return pte & ~0xFFF & _MASK32


def gates(entries: Sequence[GateDescriptor]) -> bytes:
    """Bytes of a descriptor table made of the given gates."""
    return b"".join(gate.pack() for gate in entries)