import pytest
from serial import SerialException

from roomba_oi.l0_core.errors import EndOfStream
from roomba_oi.l1_drivers import pyserial_port
from roomba_oi.l1_drivers.pyserial_port import PySerialPort
from roomba_oi.l1_drivers.serial_port import (
    BufferPort, BufferSink, BufferSource, ByteSink, ByteSource, SerialError, SerialLink,
)


class FakeSerial:
    """Stands in for serial.Serial: scripted reads, recorded writes."""

    def __init__(self, device, baudrate, timeout=None):
        self.device = device
        self.baudrate = baudrate
        self.timeout = timeout
        self.is_open = True
        self.rx = bytearray()
        self.written = bytearray()
        self.rts = True
        self.rts_history = []

    def read(self, n=1):
        chunk = bytes(self.rx[:n])
        del self.rx[:n]
        return chunk

    def write(self, data):
        self.written += data
        return len(data)

    def flush(self):
        pass

    def reset_input_buffer(self):
        self.rx.clear()

    def close(self):
        self.is_open = False

    def __setattr__(self, name, value):
        if name == "rts" and "rts_history" in self.__dict__:
            self.rts_history.append(value)
        object.__setattr__(self, name, value)


@pytest.fixture
def fake_serial(monkeypatch):
    made = []

    def factory(*args, **kwargs):
        s = FakeSerial(*args, **kwargs)
        made.append(s)
        return s

    monkeypatch.setattr(pyserial_port.serial, "Serial", factory)
    monkeypatch.setattr(pyserial_port.time, "sleep", lambda _s: None)
    return made


def test_buffer_source_reads_then_ends():
    src = BufferSource(b"\x01\x02\x03")
    assert src.read_byte() == 1
    with pytest.raises(SerialError):
        src.read_exact(3)
    assert src.read_exact(2) == b"\x02\x03"
    with pytest.raises(EndOfStream):
        src.read_byte()


def test_buffer_sink_collects_writes():
    sink = BufferSink()
    sink.write(b"\x80")
    sink.write(b"\x83")
    assert sink.writes == [b"\x80", b"\x83"]
    assert sink.data == b"\x80\x83"


def test_buffer_port_satisfies_protocols():
    port = BufferPort(b"\x13")
    assert isinstance(port, SerialLink)
    assert isinstance(port, ByteSink) and isinstance(port, ByteSource)
    assert port.read_byte() == 0x13
    with pytest.raises(EndOfStream):
        port.read_byte()
    with pytest.raises(SerialError):
        port.read_exact(1)


def test_buffer_port_feed_after_partial_reads():
    port = BufferPort(b"\x01\x02\x03")
    assert port.read_byte() == 1
    assert port.read_exact(1) == b"\x02"
    port.feed(b"\x04\x05")
    assert port.pending == 3
    assert port.read_exact(3) == b"\x03\x04\x05"
    with pytest.raises(SerialError):
        port.read_exact(1)
    with pytest.raises(EndOfStream):
        port.read_byte()


def test_buffer_port_reads_a_long_capture():
    data = bytes(range(256)) * 64
    port = BufferPort(data)
    assert bytes(port.read_byte() for _ in range(len(data))) == data
    assert port.pending == 0


def test_pyserial_port_write_and_read(fake_serial):
    port = PySerialPort("/dev/fake", 115200)
    port.open()
    assert port.is_open()
    ser = fake_serial[0]
    assert (ser.device, ser.baudrate, ser.timeout) == ("/dev/fake", 115200, 0.05)

    port.write(b"\x80\x83")
    assert bytes(ser.written) == b"\x80\x83"

    ser.rx += b"\x13\x05\x1d"
    assert port.read_byte() == 0x13
    assert port.read_exact(2) == b"\x05\x1d"

    port.close()
    assert not port.is_open()


def test_pyserial_port_read_exact_times_out(fake_serial):
    with PySerialPort("/dev/fake") as port:
        fake_serial[0].rx += b"\x01"
        with pytest.raises(SerialError):
            port.read_exact(2, timeout=0.0)


def test_pyserial_port_idle_timeout_ends_stream(fake_serial):
    with PySerialPort("/dev/fake", idle_timeout=0.0) as port:
        with pytest.raises(EndOfStream):
            port.read_byte()


def test_pyserial_port_requires_open():
    port = PySerialPort("/dev/fake")
    with pytest.raises(SerialError):
        port.write(b"\x80")
    with pytest.raises(SerialError):
        port.read_byte()


def test_pyserial_port_open_failure(monkeypatch):
    def boom(*args, **kwargs):
        raise SerialException("no such device")

    monkeypatch.setattr(pyserial_port.serial, "Serial", boom)
    with pytest.raises(SerialError) as excinfo:
        PySerialPort("/dev/missing").open()
    assert isinstance(excinfo.value.__cause__, SerialException)


def test_pulse_wakeup_drives_rts_low_then_high(fake_serial):
    with PySerialPort("/dev/fake") as port:
        port.pulse_wakeup(0.5)
        assert fake_serial[0].rts_history == [False, True]
