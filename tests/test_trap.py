import pytest

from xv6fs.layout import Irq, Trap
from xv6fs.mmu import DPL_USER, STS_IG32, STS_TG32, TrapFrame
from xv6fs.trap import KernelPanic, Process, TrapHandler, TrapOutcome, build_idt

USER_CS = 0x1B
KERNEL_CS = 0x08


def test_syscall_runs_handler_with_frame():
    seen = []
    handler = TrapHandler(syscall=seen.append)
    proc = Process(pid=3, name="sh")
    frame = TrapFrame(trapno=Trap.SYSCALL, cs=USER_CS, eax=5)
    assert handler.handle(frame, 0, proc) is TrapOutcome.RESUME
    assert seen == [proc]
    assert proc.tf is frame


def test_syscall_of_killed_process_exits_without_running():
    seen = []
    handler = TrapHandler(syscall=seen.append)
    proc = Process(pid=3, name="sh", killed=True)
    frame = TrapFrame(trapno=Trap.SYSCALL, cs=USER_CS)
    assert handler.handle(frame, 0, proc) is TrapOutcome.EXIT
    assert seen == []


def test_syscall_that_kills_exits():
    def kill(process):
        process.killed = True

    handler = TrapHandler(syscall=kill)
    proc = Process(pid=4, name="kill")
    frame = TrapFrame(trapno=Trap.SYSCALL, cs=USER_CS)
    assert handler.handle(frame, 0, proc) is TrapOutcome.EXIT


def test_timer_ticks_on_cpu_zero_and_yields():
    handler = TrapHandler()
    proc = Process(pid=1, name="init")
    frame = TrapFrame(trapno=Trap.IRQ0 + Irq.TIMER, cs=USER_CS)
    assert handler.handle(frame, 0, proc) is TrapOutcome.YIELD
    assert handler.ticks == 1
    handler.handle(frame, 1, proc)
    assert handler.ticks == 1
    assert handler.eoi_count == 2


def test_timer_without_process_resumes():
    handler = TrapHandler()
    frame = TrapFrame(trapno=Trap.IRQ0 + Irq.TIMER, cs=KERNEL_CS)
    assert handler.handle(frame, 0, None) is TrapOutcome.RESUME


def test_timer_for_killed_user_process_exits():
    handler = TrapHandler()
    proc = Process(pid=2, name="loop", killed=True)
    frame = TrapFrame(trapno=Trap.IRQ0 + Irq.TIMER, cs=USER_CS)
    assert handler.handle(frame, 0, proc) is TrapOutcome.EXIT


@pytest.mark.parametrize("irq,name", [(Irq.IDE, "ide"), (Irq.KBD, "keyboard"), (Irq.COM1, "uart")])
def test_device_interrupts_dispatch(irq, name):
    calls = []
    handler = TrapHandler(**{name: lambda: calls.append(name)})
    frame = TrapFrame(trapno=Trap.IRQ0 + irq, cs=KERNEL_CS)
    assert handler.handle(frame, 0, None) is TrapOutcome.RESUME
    assert calls == [name]
    assert handler.eoi_count == 1


def test_spurious_ide1_is_ignored():
    handler = TrapHandler()
    frame = TrapFrame(trapno=Trap.IRQ0 + Irq.IDE + 1, cs=KERNEL_CS)
    assert handler.handle(frame, 0, None) is TrapOutcome.RESUME
    assert handler.eoi_count == 0


def test_spurious_interrupt_is_logged():
    lines = []
    handler = TrapHandler(log=lines.append)
    frame = TrapFrame(trapno=Trap.IRQ0 + Irq.SPURIOUS, cs=0x1B, eip=0xABC)
    handler.handle(frame, 1, None)
    assert lines == ["cpu1: spurious interrupt at 1B:ABC\n"]
    assert handler.eoi_count == 1


def test_kernel_fault_panics():
    lines = []
    handler = TrapHandler(log=lines.append)
    frame = TrapFrame(trapno=Trap.PGFLT, cs=KERNEL_CS)
    with pytest.raises(KernelPanic, match="trap"):
        handler.handle(frame, 0, Process(pid=1, name="init"), cr2=0x10)
    assert lines[0].startswith("unexpected trap")


def test_user_fault_kills_process():
    lines = []
    handler = TrapHandler(log=lines.append)
    proc = Process(pid=7, name="bad")
    frame = TrapFrame(trapno=Trap.GPFLT, cs=USER_CS)
    assert handler.handle(frame, 0, proc) is TrapOutcome.EXIT
    assert proc.killed
    assert lines[0].startswith("pid 7 bad:")
    assert lines[0].endswith("--kill proc\n")


def test_build_idt():
    vectors = [0x100000 + i * 8 for i in range(256)]
    idt = build_idt(vectors)
    assert len(idt) == 256
    assert [gate.offset for gate in idt] == vectors
    assert idt[Trap.SYSCALL].type == STS_TG32
    assert idt[Trap.SYSCALL].dpl == DPL_USER
    assert all(gate.type == STS_IG32 and gate.dpl == 0
               for i, gate in enumerate(idt) if i != Trap.SYSCALL)
    with pytest.raises(ValueError):
        build_idt(vectors[:10])