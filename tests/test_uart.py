from xv6fs.uart import COM1, LoopbackPorts, Uart


class StuckPorts:
    """Ports whose transmitter never reports ready."""

    def __init__(self):
        self.sent = []

    def inb(self, port):
        return 0x00

    def outb(self, port, value):
        if port == COM1:
            self.sent.append(value)


def _drain(getc):
    out = []
    while (c := getc()) is not None:
        out.append(c)
    return out


def test_init_announces_itself():
    ports = LoopbackPorts(present=True)
    uart = Uart(ports, delay=lambda us: None)
    assert uart.init() is True
    assert uart.present
    assert bytes(ports.transmitted) == b"xv6...\n"


def test_init_sets_divisor_without_transmitting_it():
    ports = LoopbackPorts(present=True)
    Uart(ports, delay=lambda us: None).init()
    assert ports.divisor == 12
    assert 12 not in ports.transmitted


def test_absent_port():
    ports = LoopbackPorts(present=False)
    uart = Uart(ports, delay=lambda us: None)
    assert uart.init() is False
    uart.putc("a")
    assert ports.transmitted == bytearray()
    assert uart.getc() is None


def test_putc_sends_characters_and_ints():
    ports = LoopbackPorts()
    uart = Uart(ports, delay=lambda us: None)
    uart.init()
    ports.transmitted.clear()
    uart.putc("h")
    uart.putc(ord("i"))
    assert bytes(ports.transmitted) == b"hi"


def test_getc_returns_fed_bytes_then_none():
    ports = LoopbackPorts()
    uart = Uart(ports, delay=lambda us: None)
    uart.init()
    ports.feed(b"ls\n")
    assert _drain(uart.getc) == list(b"ls\n")
    assert uart.getc() is None


def test_interrupt_hands_getc_to_console():
    ports = LoopbackPorts()
    uart = Uart(ports, delay=lambda us: None)
    uart.init()
    ports.feed(b"echo")
    received = []
    uart.interrupt(lambda getc: received.extend(_drain(getc)))
    assert bytes(received) == b"echo"


def test_putc_gives_up_waiting_after_128_delays():
    ports = StuckPorts()
    delays = []
    uart = Uart(ports, delay=delays.append)
    assert uart.init() is True
    delays.clear()
    ports.sent.clear()
    uart.putc("A")
    assert delays == [10] * 128
    assert ports.sent == [ord("A")]