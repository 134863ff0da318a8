from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    """Stable codes for every way a command or sensor buffer can be rejected."""
    UNKNOWN_OPCODE = "unknown_opcode"
    UNKNOWN_PACKET = "unknown_packet"
    STRUCTURAL_LENGTH_MISMATCH = "structural_length_mismatch"
    FIELD_OUT_OF_RANGE = "field_out_of_range"
    CHECKSUM_FAILURE = "checksum_failure"
    FRAMING_DESYNC = "framing_desync"


class OIDecodeError(ValueError):
    """
    Base class for sensor decoding failures.

    Attributes
    ----------
    kind : ErrorKind
        Programmatic reason code.
    packet_id : int | None
        Packet the failure refers to, when known.
    """

    kind: ErrorKind = ErrorKind.UNKNOWN_PACKET

    def __init__(self, message: str, packet_id: int | None = None) -> None:
        super().__init__(message)
        self.packet_id = packet_id


class UnknownPacketError(OIDecodeError):
    kind = ErrorKind.UNKNOWN_PACKET


class LengthMismatchError(OIDecodeError):
    kind = ErrorKind.STRUCTURAL_LENGTH_MISMATCH

    def __init__(self, message: str, packet_id: int | None = None,
                 expected: int = 0, actual: int = 0) -> None:
        super().__init__(message, packet_id)
        self.expected = expected
        self.actual = actual


class FramingDesyncError(OIDecodeError):
    """A stream payload could not be split exactly into [id][data] packets."""
    kind = ErrorKind.FRAMING_DESYNC


class EndOfStream(Exception):
    """Raised by a byte source when no further bytes will ever arrive."""
