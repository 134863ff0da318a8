"""
serial_port.py
==============
Transport seams used by the OI layer.

The codec never touches a device directly. It writes frames to a ByteSink and
reads stream bytes one at a time from a ByteSource, so the same code runs
against a real serial port (`pyserial_port.PySerialPort`) or an in-memory
buffer in tests and offline tools.

In-memory buffers follow the same rules as the real port: `read_byte` raises
EndOfStream once nothing more will arrive, and `read_exact` raises SerialError
when fewer than ``n`` bytes are available, like a timed-out reply.
"""

from __future__ import annotations

from typing import Iterable, Protocol, Union, runtime_checkable

from roomba_oi.l0_core.byte_io import ByteSink, ByteSource
from roomba_oi.l0_core.errors import EndOfStream


class SerialError(Exception):
    """Raised for any transport failure (open, close, read or write)."""


class BufferSource:
    """ByteSource over a fixed byte string. Raises EndOfStream once exhausted."""

    def __init__(self, data: Union[bytes, bytearray, Iterable[int]] = b"") -> None:
        self._data = bytes(data)
        self._pos = 0

    @property
    def remaining(self) -> int:
        return len(self._data) - self._pos

    def read_byte(self) -> int:
        if self._pos >= len(self._data):
            raise EndOfStream("buffer exhausted")
        byte = self._data[self._pos]
        self._pos += 1
        return byte

    def read_exact(self, n: int, timeout: float = 1.0) -> bytes:
        if self.remaining < n:
            raise SerialError(f"Timed out after {self.remaining}/{n} bytes")
        chunk = self._data[self._pos:self._pos + n]
        self._pos += n
        return chunk


class BufferSink:
    """ByteSink that keeps every write, in order."""

    def __init__(self) -> None:
        self.writes: list[bytes] = []

    def write(self, data: bytes) -> None:
        self.writes.append(bytes(data))

    @property
    def data(self) -> bytes:
        return b"".join(self.writes)

    def clear(self) -> None:
        self.writes.clear()


@runtime_checkable
class SerialLink(ByteSink, ByteSource, Protocol):
    """Full-duplex link used by OIService."""

    def open(self) -> None: ...

    def close(self) -> None: ...

    def read_exact(self, n: int, timeout: float = 1.0) -> bytes: ...


class BufferPort(BufferSink):
    """
    In-memory SerialLink: writes are recorded, reads are served from bytes
    queued with `feed`.
    """

    def __init__(self, incoming: bytes = b"") -> None:
        super().__init__()
        self._rx = bytearray(incoming)
        self._pos = 0

    def open(self) -> None:
        pass

    def close(self) -> None:
        pass

    @property
    def pending(self) -> int:
        return len(self._rx) - self._pos

    def feed(self, data: bytes) -> None:
        # compact the consumed prefix
        del self._rx[:self._pos]
        self._pos = 0
        self._rx += data

    def read_byte(self) -> int:
        if self._pos >= len(self._rx):
            raise EndOfStream("no queued bytes")
        byte = self._rx[self._pos]
        self._pos += 1
        return byte

    def read_exact(self, n: int, timeout: float = 1.0) -> bytes:
        if self.pending < n:
            raise SerialError(f"Timed out after {self.pending}/{n} bytes")
        chunk = bytes(self._rx[self._pos:self._pos + n])
        self._pos += n
        return chunk


__all__ = [
    "SerialError", "EndOfStream",
    "ByteSink", "ByteSource", "SerialLink",
    "BufferSource", "BufferSink", "BufferPort",
]
