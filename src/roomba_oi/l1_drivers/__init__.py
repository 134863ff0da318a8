"""
roomba_oi.l1_drivers
Byte transports: the ByteSink/ByteSource seams, in-memory buffers and the
pyserial-backed port.
"""

from .serial_port import (  # noqa: F401
    SerialError, ByteSink, ByteSource, SerialLink, BufferSource, BufferSink, BufferPort,
)
from .pyserial_port import PySerialPort  # noqa: F401

__all__ = [
    "SerialError", "ByteSink", "ByteSource", "SerialLink",
    "BufferSource", "BufferSink", "BufferPort",
    "PySerialPort",
]
