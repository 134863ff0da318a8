"""
oi_codec.py
===========
Encoders for Roomba Open Interface (OI) commands (TX path).

Design philosophy:
- This module ONLY builds outgoing command frames (bytes to send).
- Field layouts and numeric domains come from the command catalog in
  `oi_protocol.py`; every frame built here is checked by `oi_validate.py`
  before it is returned, so an encoder can never hand out a frame the
  validator would reject.
- Decoding of sensor data is handled separately in `oi_decode.py` and
  `oi_stream.py`.

Usage:
    from roomba_oi.l2_oi.oi_codec import encode_drive, encode_sensors
    port.write(encode_drive(200, RADIUS_STRAIGHT))   # Drive forward
    port.write(encode_sensors(19))                    # Request distance packet

Out-of-domain arguments raise CommandRejected (a ValueError).
"""

from __future__ import annotations

from typing import Iterable, Mapping, Optional, Sequence

from construct import ConstructError

from roomba_oi.l0_core.errors import ErrorKind
from .oi_protocol import (
    COMMANDS, BaudCode, FieldDomain, Opcode, field_format,
    RADIUS_STRAIGHT, RADIUS_STRAIGHT_NEGATIVE, RADIUS_CLOCKWISE, RADIUS_COUNTER_CLOCKWISE,
)
from .oi_validate import CommandCheck, CommandRejected, require_valid

__all__ = [
    "CommandRejected", "BaudCode",
    "RADIUS_STRAIGHT", "RADIUS_STRAIGHT_NEGATIVE", "RADIUS_CLOCKWISE", "RADIUS_COUNTER_CLOCKWISE",
]


# ============================================================
# Packing helpers
# ============================================================

def _pack_field(domain: FieldDomain, value: int, opcode: int) -> bytes:
    try:
        return field_format(domain.width, domain.signed).build(int(value))
    except ConstructError as exc:
        check = CommandCheck(
            False, ErrorKind.FIELD_OUT_OF_RANGE,
            f"{domain.name}={value} does not fit in {domain.width} byte(s)",
            domain.name, opcode,
        )
        raise CommandRejected(check) from exc


def _build(opcode: Opcode, *values: int, items: Optional[Sequence[Sequence[int]]] = None) -> bytes:
    """
    Pack ``values`` into the fixed fields of ``opcode`` (and, for SONG, STREAM
    and QUERY_LIST, the count byte plus ``items``), then validate the frame.
    """
    spec = COMMANDS[opcode]
    if len(values) != len(spec.fields):
        raise TypeError(f"{spec.name} takes {len(spec.fields)} field(s), got {len(values)}")

    frame = bytearray([opcode])
    for domain, value in zip(spec.fields, values):
        frame += _pack_field(domain, value, opcode)

    if spec.prefix is not None:
        items = list(items or ())
        frame += _pack_field(spec.prefix.count, len(items), opcode)
        for item in items:
            if len(item) != len(spec.prefix.items):
                raise TypeError(f"{spec.name} items have {len(spec.prefix.items)} field(s)")
            for domain, value in zip(spec.prefix.items, item):
                frame += _pack_field(domain, value, opcode)

    return require_valid(bytes(frame))


def _bits(*flags: bool) -> int:
    """Pack flags into an int, first flag in bit 0."""
    return sum(1 << i for i, flag in enumerate(flags) if flag)


# ============================================================
# Mode and cleaning commands (no data bytes)
# ============================================================

def encode_reset() -> bytes:   return _build(Opcode.RESET)
def encode_start() -> bytes:   return _build(Opcode.START)
def encode_control() -> bytes: return _build(Opcode.CONTROL)
def encode_safe() -> bytes:    return _build(Opcode.SAFE)
def encode_full() -> bytes:    return _build(Opcode.FULL)
def encode_power() -> bytes:   return _build(Opcode.POWER)
def encode_spot() -> bytes:    return _build(Opcode.SPOT)
def encode_clean() -> bytes:   return _build(Opcode.CLEAN)
def encode_max() -> bytes:     return _build(Opcode.MAX)
def encode_dock() -> bytes:    return _build(Opcode.DOCK)
def encode_stop() -> bytes:    return _build(Opcode.STOP)


def encode_baud(code: int) -> bytes:
    """
    BAUD (opcode 129). ``code`` is a BaudCode (0..11).

    Example:
        >>> encode_baud(BaudCode.BPS_19200)
        b'\\x81\\x07'
    """
    return _build(Opcode.BAUD, code)


# ============================================================
# Movement Commands
# ============================================================

def encode_drive(velocity_mm_s: int, radius_mm: int) -> bytes:
    """
    Build a DRIVE command frame (opcode 137).

    Purpose
    -------
    Command the robot to drive using an **average velocity** and a **turning radius**.
    Use `encode_drive_direct` for per-wheel control.

    Frame Format
    ------------
        [137][Velocity hi][Velocity lo][Radius hi][Radius lo]
    Both fields are **signed 16-bit**, **big-endian**.

    Parameters
    ----------
    velocity_mm_s : int
        Average wheel velocity in mm/s, **-500..+500** (negative = backward).
    radius_mm : int
        Turning radius in mm, **-2000..+2000**. Positive radii turn **left**,
        negative radii turn **right**.
        **Special radius values:**
          • **Straight**: `RADIUS_STRAIGHT` (0x7FFF) or `RADIUS_STRAIGHT_NEGATIVE` (0x8000)
          • **Turn in place (CW)**: `RADIUS_CLOCKWISE` (-1)
          • **Turn in place (CCW)**: `RADIUS_COUNTER_CLOCKWISE` (+1)

    Returns
    -------
    bytes
        The encoded command frame ready to write to the serial port.

    Raises
    ------
    CommandRejected
        If either value is outside its domain.

    Behavior Notes
    --------------
    • Accepted in **SAFE** or **FULL** mode.
    • Speed resolution is ~28.5 mm/s; actual motion quantizes to that step size.

    Examples
    --------
    Straight forward @ 200 mm/s:
        >>> encode_drive(200, RADIUS_STRAIGHT_NEGATIVE)
        b'\\x89\\x00\\xc8\\x80\\x00'      # 89 00 C8 80 00

    Reverse @ -200 mm/s with radius 500 mm:
        >>> encode_drive(-200, 500)
        b'\\x89\\xff\\x38\\x01\\xf4'      # 89 FF 38 01 F4

    Turn in place clockwise @ 100 mm/s:
        >>> encode_drive(100, RADIUS_CLOCKWISE)
        b'\\x89\\x00\\x64\\xff\\xff'      # 89 00 64 FF FF
    """
    return _build(Opcode.DRIVE, velocity_mm_s, radius_mm)


def encode_drive_direct(right_mm_s: int, left_mm_s: int) -> bytes:
    """
    Build a DRIVE_DIRECT command frame (opcode 145).

    Frame Format
    ------------
        [145][Right hi][Right lo][Left hi][Left lo]
    Right/Left are **signed 16-bit** mm/s, each within **-500..+500**.

    Behavior Notes
    --------------
    • R == L → straight line; R == -L → spin in place.
    • The robot must be in SAFE or FULL mode.

    Examples
    --------
        >>> encode_drive_direct(200, 200)
        b'\\x91\\x00\\xc8\\x00\\xc8'   # Hex: 91 00 C8 00 C8
        >>> encode_drive_direct(-300, 300)
        b'\\x91\\xfe\\xd4\\x01\\x2c'   # Hex: 91 FE D4 01 2C
    """
    return _build(Opcode.DRIVE_DIRECT, right_mm_s, left_mm_s)


def encode_drive_pwm(right_pwm: int, left_pwm: int) -> bytes:
    """
    Build a DRIVE_PWM command frame (opcode 146).

    Drives the wheels with raw motor effort instead of closed-loop speed.
    Each PWM is a signed 16-bit value within **-255..+255**.

    Example:
        >>> encode_drive_pwm(200, -100)
        b'\\x92\\x00\\xc8\\xff\\x9c'
    """
    return _build(Opcode.DRIVE_PWM, right_pwm, left_pwm)


# ============================================================
# Cleaning motors
# ============================================================

def encode_motors(
    main_on: bool,
    vacuum_on: bool,
    side_on: bool,
    *,
    main_reverse: bool = False,
    side_reverse: bool = False,
) -> bytes:
    """
    Build a MOTORS command frame (opcode 138).

    Bits:
      - 0..2: main brush, vacuum, side brush on/off.
      - 3: side brush clockwise.
      - 4: main brush outward.

    Example:
        >>> encode_motors(True, False, True, side_reverse=True)
        b'\\x8a\\x0d'
    """
    return _build(Opcode.MOTORS, _bits(main_on, vacuum_on, side_on, side_reverse, main_reverse))


def encode_pwm_motors(main_pwm: int, side_pwm: int, vacuum_pwm: int) -> bytes:
    """
    PWM MOTORS (opcode 144). Format: [144][main][side][vacuum]

    main/side are signed 8-bit (-127..+127, negative reverses), vacuum is
    0..127.
    """
    return _build(Opcode.PWM_MOTORS, main_pwm, side_pwm, vacuum_pwm)


# ============================================================
# LEDs, buttons and audio
# ============================================================

def encode_leds(
    debris: bool,
    spot: bool,
    dock: bool,
    check_robot: bool,
    power_color: int,
    power_intensity: int,
) -> bytes:
    """
    Build a LEDS command frame (opcode 139).

    Format:
        [139][led_bits][power_color][power_intensity]

    Args:
        debris, spot, dock, check_robot (bool): LED states.
        power_color (int): 0..255 (0 = green, 255 = red).
        power_intensity (int): 0..255 (0 = off, 255 = full bright).

    Example:
        >>> encode_leds(False, False, True, True, 128, 255)
        b'\\x8b\\x0c\\x80\\xff'
    """
    return _build(Opcode.LEDS, _bits(debris, spot, dock, check_robot), power_color, power_intensity)


def encode_scheduling_leds(weekday_bits: int, scheduling_bits: int) -> bytes:
    """SCHEDULING LEDS (opcode 162). Bit 0 of ``weekday_bits`` is Sunday."""
    return _build(Opcode.SCHEDULING_LEDS, weekday_bits, scheduling_bits)


def encode_digit_leds_raw(digit_3: int, digit_2: int, digit_1: int, digit_0: int) -> bytes:
    """DIGIT LEDS RAW (opcode 163). Each byte is a 7-segment bitmask, leftmost digit first."""
    return _build(Opcode.DIGIT_LEDS_RAW, digit_3, digit_2, digit_1, digit_0)


def encode_digit_leds_ascii(text: str) -> bytes:
    """
    DIGIT LEDS ASCII (opcode 164). ``text`` is padded with spaces to four
    characters; each must be printable ASCII (32..126).

    Example:
        >>> encode_digit_leds_ascii("HI")
        b'\\xa4HI  '
    """
    if len(text) > 4:
        raise ValueError(f"at most 4 characters fit the display, got {text!r}")
    return _build(Opcode.DIGIT_LEDS_ASCII, *(ord(c) for c in text.ljust(4)))


def encode_buttons(
    *,
    clean: bool = False,
    spot: bool = False,
    dock: bool = False,
    minute: bool = False,
    hour: bool = False,
    day: bool = False,
    schedule: bool = False,
    clock: bool = False,
) -> bytes:
    """BUTTONS (opcode 165): push the selected buttons for 1/6 s."""
    return _build(Opcode.BUTTONS, _bits(clean, spot, dock, minute, hour, day, schedule, clock))


def encode_song(song_number: int, notes: Sequence[tuple[int, int]]) -> bytes:
    """
    Build a SONG definition frame (opcode 140).

    Args:
        song_number (int): Song slot (0–4).
        notes: 1–16 (note, duration) pairs. ``note`` is a MIDI number
            (31–127 are audible), ``duration`` is in 1/64 s.

    Example:
        >>> encode_song(0, [(60, 64)])
        b'\\x8c\\x00\\x01\\x3c\\x40'
    """
    return _build(Opcode.SONG, song_number, items=notes)


def encode_play(song_number: int) -> bytes:
    """
    Build a PLAY command frame (opcode 141) for a previously defined song (0–4).

    Example:
        >>> encode_play(0)
        b'\\x8d\\x00'
    """
    return _build(Opcode.PLAY, song_number)


# ============================================================
# Sensor Query Commands
# ============================================================

def encode_sensors(packet_id: int) -> bytes:
    """
    Build a SENSORS command frame (opcode 142).

    ``packet_id`` is 0..58 or one of the groups 100, 101, 106, 107.

    Example:
        >>> encode_sensors(7)
        b'\\x8e\\x07'
    """
    return _build(Opcode.SENSORS, packet_id)


def encode_query_list(packet_ids: Iterable[int]) -> bytes:
    """
    Build a QUERY_LIST command frame (opcode 149).

    Format:
        [149][N][id1][id2]...[idN]

    Example:
        >>> encode_query_list([7, 13])
        b'\\x95\\x02\\x07\\x0d'
    """
    return _build(Opcode.QUERY_LIST, items=[(pid,) for pid in packet_ids])


def encode_stream(packet_ids: Iterable[int]) -> bytes:
    """
    Build a STREAM command frame (opcode 148). The robot then sends a frame
    with the requested packets every 15 ms.

    Example:
        >>> encode_stream([29, 13])
        b'\\x94\\x02\\x1d\\x0d'
    """
    return _build(Opcode.STREAM, items=[(pid,) for pid in packet_ids])


def encode_stream_ctrl(state: int) -> bytes:
    """
    STREAM control (opcode 150).
    state: 0 = pause, 1 = resume
    """
    return _build(Opcode.STREAM_CTRL, state)

def encode_pause_stream() -> bytes:
    """[150][0]"""
    return encode_stream_ctrl(0)

def encode_resume_stream() -> bytes:
    """[150][1]"""
    return encode_stream_ctrl(1)


# ============================================================
# Clock and schedule
# ============================================================

def encode_set_day_time(day: int, hour: int, minute: int) -> bytes:
    """SET DAY/TIME (opcode 168). ``day`` 0 = Sunday .. 6 = Saturday, 24-hour clock."""
    return _build(Opcode.SET_DAY_TIME, day, hour, minute)


def encode_schedule(times: Mapping[int, tuple[int, int]]) -> bytes:
    """
    SCHEDULE (opcode 167).

    Args:
        times: weekday (0 = Sunday .. 6) → (hour, minute) of the cleaning
            start. Days not present are not scheduled.

    Example:
        >>> encode_schedule({3: (15, 0)})[:4]
        b'\\xa7\\x08\\x00\\x00'
    """
    unknown = set(times) - set(range(7))
    if unknown:
        raise ValueError(f"weekdays must be 0..6, got {sorted(unknown)}")
    days = _bits(*(d in times for d in range(7)))
    flat: list[int] = []
    for d in range(7):
        flat.extend(times.get(d, (0, 0)))
    return _build(Opcode.SCHEDULE, days, *flat)


def encode_disable_schedule() -> bytes:
    """SCHEDULE with every day cleared."""
    return encode_schedule({})
