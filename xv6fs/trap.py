"""Dispatch of traps, interrupts and system calls to their handlers."""

from __future__ import annotations

import enum
import sys
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence

from .layout import Irq, Trap
from .mmu import DPL_USER, GateDescriptor, TrapFrame
from .printf import format_message

SEG_KCODE = 1  # kernel code segment index in the GDT
NVECTORS = 256


class KernelPanic(RuntimeError):
    """The kernel hit a trap it cannot recover from."""


@dataclass
class Process:
    """The parts of a process that trap handling looks at."""

    pid: int
    name: str
    killed: bool = False
    running: bool = True
    tf: Optional[TrapFrame] = None


class TrapOutcome(enum.Enum):
    """What the current process must do once the trap is handled."""

    RESUME = "resume"
    YIELD = "yield"
    EXIT = "exit"


def _nothing() -> None:
    return None


class TrapHandler:
    """Routes each trap to the system call, device or fault handling it needs."""

    def __init__(
        self,
        syscall: Optional[Callable[[Process], None]] = None,
        ide: Optional[Callable[[], None]] = None,
        keyboard: Optional[Callable[[], None]] = None,
        uart: Optional[Callable[[], None]] = None,
        log: Optional[Callable[[str], object]] = None,
    ) -> None:
        self.syscall = syscall or (lambda process: None)
        self.ide = ide or _nothing
        self.keyboard = keyboard or _nothing
        self.uart = uart or _nothing
        self.log = log or sys.stderr.write
        self.ticks = 0
        self.eoi_count = 0

    def _eoi(self) -> None:
        self.eoi_count += 1

    def handle(
        self,
        frame: TrapFrame,
        cpu_id: int,
        process: Optional[Process],
        cr2: int = 0,
    ) -> TrapOutcome:
        """Handle one trap and say what the interrupted process does next."""
        if frame.trapno == Trap.SYSCALL:
            if process is None:
                raise KernelPanic("system call with no current process")
            if process.killed:
                return TrapOutcome.EXIT
            process.tf = frame
            self.syscall(process)
            return TrapOutcome.EXIT if process.killed else TrapOutcome.RESUME

        irq = frame.trapno - Trap.IRQ0
        if irq == Irq.TIMER:
            if cpu_id == 0:
                self.ticks += 1
            self._eoi()
        elif irq == Irq.IDE:
            self.ide()
            self._eoi()
        elif irq == Irq.IDE + 1:
            pass  # Bochs generates spurious IDE1 interrupts.
        elif irq == Irq.KBD:
            self.keyboard()
            self._eoi()
        elif irq == Irq.COM1:
            self.uart()
            self._eoi()
        elif irq in (7, Irq.SPURIOUS):
            self.log(format_message(
                "cpu%d: spurious interrupt at %x:%x\n", cpu_id, frame.cs, frame.eip))
            self._eoi()
        else:
            if process is None or frame.cs & 3 == 0:
                self.log(format_message(
                    "unexpected trap %d from cpu %d eip %x (cr2=0x%x)\n",
                    frame.trapno, cpu_id, frame.eip, cr2))
                raise KernelPanic("trap")
            self.log(format_message(
                "pid %d %s: trap %d err %d on cpu %d eip 0x%x addr 0x%x--kill proc\n",
                process.pid, process.name, frame.trapno, frame.err, cpu_id,
                frame.eip, cr2))
            process.killed = True

        user_mode = frame.cs & 3 == DPL_USER
        if process is not None and process.killed and user_mode:
            return TrapOutcome.EXIT
        if (process is not None and process.running
                and frame.trapno == Trap.IRQ0 + Irq.TIMER):
            return TrapOutcome.YIELD
        return TrapOutcome.RESUME


def build_idt(vectors: Sequence[int]) -> List[GateDescriptor]:
    """Interrupt descriptor table for the 256 handler entry points."""
    entries = list(vectors)
    if len(entries) != NVECTORS:
        raise ValueError(f"need {NVECTORS} vectors, got {len(entries)}")
    idt = [GateDescriptor.make(False, SEG_KCODE << 3, offset, 0) for offset in entries]
    idt[Trap.SYSCALL] = GateDescriptor.make(
        True, SEG_KCODE << 3, entries[Trap.SYSCALL], DPL_USER)
    return idt