"""
oi_service.py
=============
High-level service layer for the Roomba Open Interface (OI).

This class wraps:
- L1 link (`PySerialPort`, or any SerialLink such as `BufferPort`).
- L2 codec (`oi_codec`) to build outgoing command frames (TX).
- L2 decode (`oi_decode`, `oi_stream`) to parse incoming sensor data (RX).

Design:
- Every outgoing frame passes through the validator before it is written.
- Convenience methods: start(), safe(), drive(), dock(), etc.
- Sensor queries: get_sensor(id), query_list(ids), start_stream(ids) + frames().
- Reads happen on the caller's thread. Decoded records are published as
  SensorUpdate on topic "sensors" and dropped stream frames as Fault on
  topic "faults" when an EventBus is attached.

Usage:
    from roomba_oi.l2_oi.oi_service import OIService
    from roomba_oi.l1_drivers import PySerialPort

    svc = OIService(PySerialPort("/dev/ttyUSB0"))
    svc.open()
    svc.start()
    svc.safe()
    print(svc.get_sensor(7))  # bumps & wheel drops
"""

from __future__ import annotations

import time
import logging
from typing import TYPE_CHECKING, Iterable, Iterator, Optional, Sequence
import threading

from roomba_oi.l0_core import EventBus
from roomba_oi.l0_core.events import Fault, SensorUpdate, Severity, now_ms
from . import oi_codec
from . import oi_decode
from . import oi_protocol
from .oi_decode import SensorRecord
from .oi_stream import FrameError, StreamDecoder, StreamFrame
from .oi_validate import require_valid

if TYPE_CHECKING:
    from roomba_oi.l1_drivers.serial_port import SerialLink

log = logging.getLogger(__name__)


class OIService:
    """
    High-level service for controlling a Roomba via OI.

    Parameters
    ----------
    port : SerialLink
        Transport used for both directions.
    eventbus : EventBus | None
        Where decoded records and stream faults are published.
    max_payload : int | None
        Passed to the stream decoder.
    inter_command_delay : float
        Seconds to wait after each written frame.
    """

    def __init__(self, port: SerialLink, eventbus: Optional[EventBus] = None, *,
                 max_payload: Optional[int] = None, inter_command_delay: float = 0.0) -> None:
        self._port = port
        self._eventbus = eventbus
        self._inter_command_delay = inter_command_delay
        self._tx_lock = threading.Lock()
        self._latest: dict[int, SensorRecord] = {}
        self._decoder = StreamDecoder(max_payload=max_payload, on_error=self._on_frame_error)
        self._streaming: tuple[int, ...] = ()

    @classmethod
    def from_config(cls, config, eventbus: Optional[EventBus] = None) -> "OIService":
        """Build a service over a PySerialPort described by a LinkConfig."""
        from roomba_oi.l1_drivers.pyserial_port import PySerialPort

        port = PySerialPort(config.device, config.baudrate, config.timeout,
                            idle_timeout=config.idle_timeout)
        return cls(port, eventbus, max_payload=config.max_payload,
                   inter_command_delay=config.inter_command_delay)

    @property
    def port(self) -> SerialLink:
        return self._port

    @property
    def decoder(self) -> StreamDecoder:
        return self._decoder

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------
    def open(self) -> None:
        self._port.open()

    def close(self) -> None:
        """Close the link. Streaming state is forgotten."""
        self._streaming = ()
        self._decoder.reset()
        self._port.close()

    def __enter__(self) -> "OIService":
        self.open()
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    # -------------------------------------------------------------------------
    # TX
    # -------------------------------------------------------------------------
    def send(self, frame: bytes) -> None:
        """
        Validate ``frame`` and write it to the link.

        Raises:
            CommandRejected: the frame is not a valid command; nothing is written.
            SerialError: the transport failed.
        """
        frame = require_valid(frame)
        with self._tx_lock:
            log.debug("TX %s", frame.hex(" "))
            self._port.write(frame)
            if self._inter_command_delay:
                time.sleep(self._inter_command_delay)

    # -------------------------------------------------------------------------
    # Control Commands
    # -------------------------------------------------------------------------
    def reset(self) -> None:        self.send(oi_codec.encode_reset())
    def start(self) -> None:        self.send(oi_codec.encode_start())
    def safe(self) -> None:         self.send(oi_codec.encode_safe())
    def full(self) -> None:         self.send(oi_codec.encode_full())
    def clean(self) -> None:        self.send(oi_codec.encode_clean())
    def spot(self) -> None:         self.send(oi_codec.encode_spot())
    def max_clean(self) -> None:    self.send(oi_codec.encode_max())
    def dock(self) -> None:         self.send(oi_codec.encode_dock())
    def power_off(self) -> None:    self.send(oi_codec.encode_power())
    def stop(self) -> None:         self.send(oi_codec.encode_stop())
    def drive(self, velocity: int, radius: int) -> None:
        self.send(oi_codec.encode_drive(velocity, radius))
    def drive_direct(self, right: int, left: int) -> None:
        self.send(oi_codec.encode_drive_direct(right, left))

    def drive_pwm(self, right_pwm: int, left_pwm: int) -> None:
        """Drive wheels using raw PWM values (-255..255), right then left."""
        self.send(oi_codec.encode_drive_pwm(right_pwm, left_pwm))

    def halt(self) -> None:
        """Stop both wheels (DRIVE_DIRECT 0, 0)."""
        self.send(oi_codec.encode_drive_direct(0, 0))

    def motors(
        self,
        *,
        main_on: bool,
        vacuum_on: bool,
        side_on: bool,
        main_reverse: bool = False,
        side_reverse: bool = False,
    ) -> None:
        """Control main, vacuum, and side brushes; optional direction flips."""
        self.send(
            oi_codec.encode_motors(
                main_on=main_on,
                vacuum_on=vacuum_on,
                side_on=side_on,
                main_reverse=main_reverse,
                side_reverse=side_reverse,
            )
        )

    def pwm_motors(self, main_pwm: int, side_pwm: int, vacuum_pwm: int) -> None:
        """Set PWM for main/side (±127) and vacuum (0..127)."""
        self.send(oi_codec.encode_pwm_motors(main_pwm, side_pwm, vacuum_pwm))

    def leds(self, *, debris: bool = False, spot: bool = False, dock: bool = False,
             check_robot: bool = False, power_color: int = 0, power_intensity: int = 0) -> None:
        self.send(oi_codec.encode_leds(debris, spot, dock, check_robot, power_color, power_intensity))

    def display(self, text: str) -> None:
        """Show up to four characters on the digit LEDs."""
        self.send(oi_codec.encode_digit_leds_ascii(text))

    def song(self, song_number: int, notes: Sequence[tuple[int, int]]) -> None:
        self.send(oi_codec.encode_song(song_number, notes))

    def play(self, song_number: int) -> None:
        self.send(oi_codec.encode_play(song_number))

    def set_day_time(self, day: int, hour: int, minute: int) -> None:
        self.send(oi_codec.encode_set_day_time(day, hour, minute))

    # -------------------------------------------------------------------------
    # Sensor Queries
    # -------------------------------------------------------------------------
    def get_sensor(self, packet_id: int, timeout: float = 1.0) -> SensorRecord:
        """
        Query a single sensor packet in polled mode (OI opcode 142: SENSORS).

        Raises:
            CommandRejected: ``packet_id`` is not a valid packet id.
            SerialError: the reply did not arrive within ``timeout``.
        """
        frame = oi_codec.encode_sensors(packet_id)
        expected_len = oi_protocol.packet_length(packet_id)
        log.debug("packet_length(%d) = %d", packet_id, expected_len)
        self.send(frame)
        raw = self._port.read_exact(expected_len, timeout)
        record = oi_decode.decode_packet(packet_id, raw)
        self._deliver(record, "query")
        return record

    def query_list(self, packet_ids: Iterable[int], timeout: float = 1.0) -> list[SensorRecord]:
        """
        Query multiple sensor packets in one request (OI opcode 149).
        Records come back in request order.
        """
        packet_ids = list(packet_ids)
        self.send(oi_codec.encode_query_list(packet_ids))
        total = sum(oi_protocol.packet_length(pid) for pid in packet_ids)
        raw = self._port.read_exact(total, timeout)
        records = oi_decode.decode_query_list(packet_ids, raw)
        for record in records:
            self._deliver(record, "query")
        return records

    def latest(self, packet_id: int) -> Optional[SensorRecord]:
        """Most recent record seen for ``packet_id`` from any source."""
        return self._latest.get(packet_id)

    # -------------------------------------------------------------------------
    # Streaming
    # -------------------------------------------------------------------------
    def start_stream(self, packet_ids: Iterable[int]) -> None:
        """
        Start continuous sensor streaming (OI opcode 148: STREAM).
        Consume the frames with `frames()`.
        """
        packet_ids = tuple(packet_ids)
        self.send(oi_codec.encode_stream(packet_ids))
        self._decoder.reset()
        self._streaming = packet_ids
        log.info("Stream started for packets %s", list(packet_ids))

    def pause_stream(self) -> None:
        """Pause sensor streaming (STREAM_CTRL=0)."""
        self.send(oi_codec.encode_pause_stream())

    def resume_stream(self) -> None:
        """Resume sensor streaming (STREAM_CTRL=1)."""
        self.send(oi_codec.encode_resume_stream())

    @property
    def streaming(self) -> tuple[int, ...]:
        return self._streaming

    def frames(self) -> Iterator[StreamFrame]:
        """
        Yield decoded stream frames read from the link until it reports
        EndOfStream. Dropped frames are published as faults and skipped.
        """
        for frame in self._decoder.frames(self._port):
            for record in frame.records:
                self._deliver(record, "stream")
            yield frame

    # -------------------------------------------------------------------------
    # Publishing
    # -------------------------------------------------------------------------
    def _deliver(self, record: SensorRecord, source: str) -> None:
        self._latest[record.packet_id] = record
        if self._eventbus is None:
            return
        evt = SensorUpdate(
            timestamp_millis=now_ms(),
            packet_id=record.packet_id,
            source=source,
            fields=record.fields,
        )
        self._eventbus.publish("sensors", evt)

    def _on_frame_error(self, err: FrameError) -> None:
        if self._eventbus is None:
            return
        fault = Fault(
            timestamp_millis=now_ms(),
            severity=Severity.WARN,
            code=err.kind.value,
            message=err.detail,
            context={"length": err.length},
        )
        self._eventbus.publish("faults", fault)
