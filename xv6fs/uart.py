"""Driver for an 8250 serial port on COM1."""

from __future__ import annotations

import time
from collections import deque
from typing import Callable, Deque, Dict, Optional, Protocol, Union

COM1 = 0x3F8

_DATA = COM1
_IER = COM1 + 1
_FIFO = COM1 + 2
_LCR = COM1 + 3
_MCR = COM1 + 4
_LSR = COM1 + 5

_LSR_RX_READY = 0x01
_LSR_TX_READY = 0x20
_LCR_DLAB = 0x80
_ABSENT = 0xFF


class Ports(Protocol):
    def inb(self, port: int) -> int: ...

    def outb(self, port: int, value: int) -> None: ...


class LoopbackPorts:
    """COM1 ports whose transmitter is always ready; input arrives through feed()."""

    def __init__(self, present: bool = True) -> None:
        self.present = present
        self.registers: Dict[int, int] = {}
        self.divisor = 0
        self.transmitted = bytearray()
        self._received: Deque[int] = deque()

    def feed(self, data: bytes) -> None:
        """Queue bytes as if they had arrived on the line."""
        self._received.extend(data)

    def _dlab(self) -> bool:
        return bool(self.registers.get(_LCR, 0) & _LCR_DLAB)

    def inb(self, port: int) -> int:
        if not self.present:
            return _ABSENT
        if port == _LSR:
            return _LSR_TX_READY | (_LSR_RX_READY if self._received else 0)
        if port == _DATA:
            if self._dlab():
                return self.divisor & 0xFF
            return self._received.popleft() if self._received else 0
        if port == _FIFO:
            return 0x01  # no interrupt pending
        return self.registers.get(port, 0)

    def outb(self, port: int, value: int) -> None:
        if not self.present:
            return
        value &= 0xFF
        if port == _DATA:
            if self._dlab():
                self.divisor = (self.divisor & 0xFF00) | value
            else:
                self.transmitted.append(value)
            return
        if port == _IER and self._dlab():
            self.divisor = (self.divisor & 0x00FF) | value << 8
            return
        self.registers[port] = value


def _sleep_microseconds(us: int) -> None:
    time.sleep(us / 1_000_000)


class Uart:
    """Serial console at 9600 baud, 8 data bits, 1 stop bit, no parity."""

    def __init__(self, ports: Ports, delay: Optional[Callable[[int], object]] = None) -> None:
        self.ports = ports
        self.delay = delay or _sleep_microseconds
        self.present = False

    def init(self) -> bool:
        """Program the port; returns whether a serial port is there."""
        out = self.ports.outb
        out(_FIFO, 0)  # FIFO off
        out(_LCR, _LCR_DLAB)  # unlock divisor
        out(_DATA, 115200 // 9600)
        out(_IER, 0)
        out(_LCR, 0x03)  # lock divisor, 8 data bits
        out(_MCR, 0)
        out(_IER, 0x01)  # receive interrupts
        if self.ports.inb(_LSR) == _ABSENT:
            return False
        self.present = True
        # Acknowledge pre-existing interrupt conditions.
        self.ports.inb(_FIFO)
        self.ports.inb(_DATA)
        for ch in "xv6...\n":
            self.putc(ch)
        return True

    def putc(self, c: Union[int, str]) -> None:
        """Send one character, waiting a bounded time for the transmitter."""
        if not self.present:
            return
        code = ord(c) if isinstance(c, str) else int(c)
        for _ in range(128):
            if self.ports.inb(_LSR) & _LSR_TX_READY:
                break
            self.delay(10)
        self.ports.outb(_DATA, code & 0xFF)

    def getc(self) -> Optional[int]:
        """Next received byte, or None when there is none."""
        if not self.present:
            return None
        if not self.ports.inb(_LSR) & _LSR_RX_READY:
            return None
        return self.ports.inb(_DATA)

    def interrupt(self, consume: Callable[[Callable[[], Optional[int]]], object]) -> None:
        """Hand the receive function to the console input handler."""
        consume(self.getc)