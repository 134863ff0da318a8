"""
oi_stream.py
============
Decoder for the OI sensor stream (reply to opcode 148).

Format:
    [19][N][packet ID 1][data...][packet ID 2][data...]...[checksum]

N counts the bytes between the length byte and the checksum. A frame is valid
when the low byte of the sum of every byte, header through checksum, is 0.

The decoder is a byte-at-a-time state machine:

    SEEKING_HEADER -> READING_LENGTH -> ACCUMULATING_PAYLOAD -> READING_CHECKSUM
          ^                                                            |
          +----------------------- emit frame / drop frame ------------+

A frame that fails its checksum, or whose payload cannot be split exactly into
[id][data] packets, is dropped and reported as a FrameError; scanning resumes
with the next byte from the source. Consumed bytes are never re-examined.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
import logging
from typing import Callable, Iterable, Iterator, Mapping, Optional, Union

from roomba_oi.l0_core.errors import EndOfStream, ErrorKind, FramingDesyncError
from roomba_oi.l0_core.byte_io import ByteSource
from .oi_decode import SensorRecord, decode_packet, encode_packet
from .oi_protocol import STREAM_HEADER, lookup_packet

log = logging.getLogger(__name__)


class StreamState(Enum):
    SEEKING_HEADER = "seeking_header"
    READING_LENGTH = "reading_length"
    ACCUMULATING_PAYLOAD = "accumulating_payload"
    READING_CHECKSUM = "reading_checksum"


@dataclass(frozen=True, slots=True)
class StreamFrame:
    """One checksum-verified stream frame, demultiplexed into records."""
    records: tuple[SensorRecord, ...]

    def pairs(self) -> list[tuple[int, Union[int, SensorRecord]]]:
        """(packet id, value) per packet; group packets yield their whole record."""
        return [(r.packet_id, r if r.is_group else r.value) for r in self.records]

    def get(self, packet_id: int) -> Optional[SensorRecord]:
        for record in self.records:
            if record.packet_id == packet_id:
                return record
        return None


@dataclass(frozen=True, slots=True)
class FrameError:
    """A dropped frame: CHECKSUM_FAILURE or FRAMING_DESYNC."""
    kind: ErrorKind
    detail: str
    length: int
    payload: bytes = b""


@dataclass(slots=True)
class StreamStats:
    frames: int = 0
    checksum_failures: int = 0
    desyncs: int = 0
    skipped_bytes: int = 0     # bytes discarded while seeking a header


def checksum(data: Iterable[int]) -> int:
    """Checksum byte that makes the 8-bit sum of ``data`` plus itself equal 0."""
    return -sum(data) & 0xFF


def demultiplex(payload: bytes) -> tuple[SensorRecord, ...]:
    """
    Split a stream payload into records: repeatedly one packet-ID byte followed
    by that packet's catalog width, until the payload is exactly consumed.

    Raises:
        FramingDesyncError: unknown packet ID or a packet running past the end.
    """
    records = []
    at = 0
    while at < len(payload):
        packet_id = payload[at]
        spec = lookup_packet(packet_id)
        if spec is None:
            raise FramingDesyncError(f"unknown packet ID {packet_id} at offset {at}", packet_id)
        at += 1
        end = at + spec.width
        if end > len(payload):
            raise FramingDesyncError(
                f"packet {packet_id} needs {spec.width} bytes, {len(payload) - at} left", packet_id
            )
        records.append(decode_packet(packet_id, payload[at:end]))
        at = end
    return tuple(records)


def build_stream_frame(packets: Iterable[tuple[int, Union[Mapping[str, int], int]]]) -> bytes:
    """
    Build one complete stream frame (header, length, packets, checksum).

    Example:
        >>> build_stream_frame([(29, 537), (13, 0)])
        b'\\x13\\x05\\x1d\\x02\\x19\\x0d\\x00\\xa3'
    """
    payload = bytearray()
    for packet_id, fields in packets:
        payload.append(packet_id)
        payload += encode_packet(packet_id, fields)
    if len(payload) > 255:
        raise ValueError(f"stream payload of {len(payload)} bytes does not fit a length byte")
    body = bytes([STREAM_HEADER, len(payload)]) + bytes(payload)
    return body + bytes([checksum(body)])


class StreamDecoder:
    """
    Incremental decoder for one sensor stream.

    Each stream needs its own instance; the decoder holds no locks and performs
    no I/O except reading from the source handed to `read_frame`/`frames`.

    Parameters
    ----------
    max_payload : int | None
        When set, a length byte above this value is treated as a desync and
        the decoder goes straight back to seeking a header.
    on_error : Callable[[FrameError], None] | None
        Invoked for every dropped frame.
    """

    def __init__(self, max_payload: Optional[int] = None,
                 on_error: Optional[Callable[[FrameError], None]] = None) -> None:
        if max_payload is not None and not 0 <= max_payload <= 255:
            raise ValueError("max_payload must be within 0..255")
        self._max_payload = max_payload
        self._on_error = on_error
        self._stats = StreamStats()
        self._state = StreamState.SEEKING_HEADER
        self._length = 0
        self._payload = bytearray()
        self._sum = 0

    @property
    def state(self) -> StreamState:
        return self._state

    @property
    def stats(self) -> StreamStats:
        return self._stats

    def reset(self) -> None:
        """Drop any partial frame and go back to seeking a header."""
        self._state = StreamState.SEEKING_HEADER
        self._length = 0
        self._payload = bytearray()
        self._sum = 0

    # -------------------------------------------------------------------------
    # Push API
    # -------------------------------------------------------------------------
    def push(self, byte: int) -> Union[StreamFrame, FrameError, None]:
        """
        Advance the state machine by one byte.

        Returns a StreamFrame when a valid frame completes, a FrameError when a
        frame is dropped, otherwise None.
        """
        state = self._state

        if state is StreamState.SEEKING_HEADER:
            if byte == STREAM_HEADER:
                self._state = StreamState.READING_LENGTH
                self._sum = byte
            else:
                self._stats.skipped_bytes += 1
            return None

        self._sum += byte

        if state is StreamState.READING_LENGTH:
            self._length = byte
            self._payload = bytearray()
            if self._max_payload is not None and byte > self._max_payload:
                return self._fail(ErrorKind.FRAMING_DESYNC,
                                  f"length {byte} exceeds max payload {self._max_payload}")
            self._state = (StreamState.ACCUMULATING_PAYLOAD if byte
                           else StreamState.READING_CHECKSUM)
            return None

        if state is StreamState.ACCUMULATING_PAYLOAD:
            self._payload.append(byte)
            if len(self._payload) == self._length:
                self._state = StreamState.READING_CHECKSUM
            return None

        # READING_CHECKSUM
        if self._sum & 0xFF:
            return self._fail(ErrorKind.CHECKSUM_FAILURE,
                              f"checksum mismatch (sum low byte {self._sum & 0xFF:#04x})")
        try:
            records = demultiplex(bytes(self._payload))
        except FramingDesyncError as exc:
            return self._fail(ErrorKind.FRAMING_DESYNC, str(exc))
        self._stats.frames += 1
        self.reset()
        return StreamFrame(records)

    def feed(self, data: bytes) -> list[Union[StreamFrame, FrameError]]:
        """Push every byte of ``data``; return the frames and errors produced, in order."""
        out = []
        for byte in data:
            result = self.push(byte)
            if result is not None:
                out.append(result)
        return out

    # -------------------------------------------------------------------------
    # Pull API
    # -------------------------------------------------------------------------
    def read_frame(self, source: ByteSource) -> StreamFrame:
        """
        Read from ``source`` until one valid frame is decoded.

        Dropped frames are recovered here (logged, counted, passed to
        ``on_error``). EndOfStream and transport errors propagate.
        """
        while True:
            result = self.push(source.read_byte())
            if isinstance(result, StreamFrame):
                return result

    def frames(self, source: ByteSource) -> Iterator[StreamFrame]:
        """Yield valid frames from ``source`` until it reports EndOfStream."""
        while True:
            try:
                frame = self.read_frame(source)
            except EndOfStream:
                return
            yield frame

    # -------------------------------------------------------------------------
    # helpers
    # -------------------------------------------------------------------------
    def _fail(self, kind: ErrorKind, detail: str) -> FrameError:
        err = FrameError(kind, detail, self._length, bytes(self._payload))
        if kind is ErrorKind.CHECKSUM_FAILURE:
            self._stats.checksum_failures += 1
        else:
            self._stats.desyncs += 1
        log.warning("RX resync: dropped stream frame (%s): %s", kind.value, detail)
        self.reset()
        if self._on_error:
            self._on_error(err)
        return err
