from __future__ import annotations

from typing import Optional
import threading
import logging
import time

import serial  # provided by pyserial
from serial import SerialException
from roomba_oi.l0_core.errors import EndOfStream
from .serial_port import SerialError

log = logging.getLogger(__name__)


class PySerialPort:
    """
    ByteSink / ByteSource over a pyserial connection to the robot's mini-DIN
    port.

    Current capabilities:
    - Open and close a serial connection (also usable as a context manager).
    - Write command frames in a thread-safe manner.
    - Blocking reads, one byte at a time or an exact count.
    - Drive the BRC pin (wired to RTS) to wake the robot.

    Reads are performed on the caller's thread; there is no background reader.
    """

    def __init__(self, device: str, baudrate: int = 115200, timeout: float = 0.05,
                 idle_timeout: Optional[float] = None) -> None:
        self._device = device
        self._baudrate = baudrate
        self._timeout = timeout
        self._idle_timeout = idle_timeout

        self._ser: Optional[serial.Serial] = None
        self._write_lock = threading.Lock()

    @property
    def device(self) -> str:
        return self._device

    def open(self) -> None:
        """
        Open the serial device with the configured baud rate and read timeout.

        Raises:
            SerialError: If pyserial fails to open the device.
        """
        try:
            self._ser = serial.Serial(
                self._device,
                self._baudrate,
                timeout=self._timeout
            )
        except SerialException as e:
            raise SerialError(f"Failed to open {self._device}: {e}") from e
        log.info("Opened %s at %d baud", self._device, self._baudrate)

    def close(self) -> None:
        """
        Close the serial connection. Safe to call when already closed.

        Raises:
            SerialError: If closing the underlying port raises a SerialException.
        """
        if self._ser and self._ser.is_open:
            try:
                self._ser.close()
            except SerialException as e:
                raise SerialError(f"Failed to close {self._device}: {e}") from e
            log.info("Closed %s", self._device)
        self._ser = None

    def is_open(self) -> bool:
        return bool(self._ser and self._ser.is_open)

    def __enter__(self) -> "PySerialPort":
        self.open()
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def _require_open(self) -> serial.Serial:
        if not self._ser or not self._ser.is_open:
            raise SerialError("Port not open")
        return self._ser

    # -------------------------------------------------------------------------
    # TX
    # -------------------------------------------------------------------------
    def write(self, data: bytes) -> None:
        """
        Write one command frame and flush it.

        The write lock keeps frames from different threads from interleaving
        on the wire.

        Raises:
            SerialError: If the port is not open, or pyserial write/flush fails.
        """
        ser = self._require_open()
        try:
            with self._write_lock:
                ser.write(data)
                ser.flush()
        except SerialException as e:
            raise SerialError(f"Write failed on {self._device}: {e}") from e

    # -------------------------------------------------------------------------
    # RX
    # -------------------------------------------------------------------------
    def read_byte(self) -> int:
        """
        Block until one byte arrives and return it.

        pyserial returns b"" when its read timeout expires; that is retried.
        When ``idle_timeout`` was given and no byte arrives within it,
        EndOfStream is raised.

        Raises:
            SerialError: If the port is not open or the read fails.
            EndOfStream: If the idle timeout expires.
        """
        ser = self._require_open()
        started = time.monotonic()
        while True:
            try:
                chunk = ser.read(1)
            except SerialException as e:
                raise SerialError(f"Read failed on {self._device}: {e}") from e
            if chunk:
                return chunk[0]
            if self._idle_timeout is not None and time.monotonic() - started >= self._idle_timeout:
                raise EndOfStream(f"no data from {self._device} for {self._idle_timeout:.1f}s")

    def read_exact(self, n: int, timeout: float = 1.0) -> bytes:
        """
        Read exactly ``n`` bytes, e.g. the reply to a SENSORS query.

        Raises:
            SerialError: If fewer than ``n`` bytes arrive within ``timeout``
                seconds, or the read fails.
        """
        ser = self._require_open()
        buf = bytearray()
        deadline = time.monotonic() + timeout
        while len(buf) < n:
            try:
                buf += ser.read(n - len(buf))
            except SerialException as e:
                raise SerialError(f"Read failed on {self._device}: {e}") from e
            if len(buf) < n and time.monotonic() >= deadline:
                raise SerialError(f"Timed out after {len(buf)}/{n} bytes on {self._device}")
        return bytes(buf)

    def reset_input(self) -> None:
        """Discard anything already buffered on the RX side."""
        self._require_open().reset_input_buffer()

    # -------------------------------------------------------------------------
    # BRC pin
    # -------------------------------------------------------------------------
    def set_rts_low(self) -> None:
        """
        Force RTS LOW. On the Roomba this engages the BRC pin.
        Hardware-level action, not an OI command.
        """
        self._require_open().rts = False
        log.info("RTS forced LOW (BRC active)")

    def set_rts_high(self) -> None:
        """Force RTS HIGH, releasing BRC (normal auto-sleep behaviour)."""
        self._require_open().rts = True
        log.info("RTS forced HIGH (BRC inactive)")

    def pulse_wakeup(self, duration: float = 0.5) -> None:
        """
        Wake the robot by pulsing BRC: RTS LOW for ``duration`` seconds, then HIGH.

        A robot in deep off treats this like a CLEAN press. START (128) must
        still be sent afterwards to enter the OI.
        """
        ser = self._require_open()
        log.info("Sending wakeup pulse (%.1fs LOW)", duration)
        ser.rts = False
        time.sleep(duration)
        ser.rts = True
        log.info("Wakeup pulse complete; send START next")
