"""
byte_io.py
==========
Byte-level seams between the OI codec and whatever carries the bytes.

The codec writes frames to a ByteSink and reads stream bytes one at a time
from a ByteSource. Concrete transports live in `roomba_oi.l1_drivers`.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class ByteSink(Protocol):
    def write(self, data: bytes) -> None: ...


@runtime_checkable
class ByteSource(Protocol):
    def read_byte(self) -> int:
        """
        Return the next byte (0..255), blocking until one is available.

        Raises EndOfStream when no further bytes will arrive, or SerialError
        on a transport failure.
        """
        ...
