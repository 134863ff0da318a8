"""
roomba_oi.l0_core
Foundational layer shared by the drivers and the OI codec:
error kinds, the byte I/O protocols, event value objects and the
in-process event bus.
"""

from .errors import (  # noqa: F401
    ErrorKind, OIDecodeError, UnknownPacketError, LengthMismatchError,
    FramingDesyncError, EndOfStream,
)
from .byte_io import ByteSink, ByteSource  # noqa: F401
from .events import now_ms, Severity, SensorUpdate, Fault  # noqa: F401
from .bus import EventBus  # noqa: F401

__all__ = [
    "ErrorKind", "OIDecodeError", "UnknownPacketError", "LengthMismatchError",
    "FramingDesyncError", "EndOfStream",
    "ByteSink", "ByteSource",
    "now_ms", "Severity", "SensorUpdate", "Fault",
    "EventBus",
]
