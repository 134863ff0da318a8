"""
oi_protocol.py
==============
Central definitions of the iRobot Roomba Open Interface (OI) protocol.

This file is the single source of truth for:
- OI command opcodes and the numeric domain of every command argument (TX side).
- OI sensor packet widths, signedness and group membership (RX side).

Both catalogs are read-only tables built once at import time and safe to share
between threads. Other modules import from here:
- oi_validate.py → structural/range checks of outgoing command frames.
- oi_codec.py    → building outgoing commands.
- oi_decode.py   → parsing query responses.
- oi_stream.py   → parsing the checksummed sensor stream.

Reference: iRobot Create 2 / Roomba 600 Open Interface Specification
(interface version 2).
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from types import MappingProxyType
from typing import Mapping, Optional

from construct import FormatField, Int8sb, Int8ub, Int16sb, Int16ub

# ============================================================
# Byte formats
# ============================================================

_FORMATS: Mapping[tuple[int, bool], FormatField] = MappingProxyType({
    (1, False): Int8ub,
    (1, True):  Int8sb,
    (2, False): Int16ub,
    (2, True):  Int16sb,
})


def field_format(width: int, signed: bool) -> FormatField:
    """Return the big-endian construct format for a 1- or 2-byte field."""
    try:
        return _FORMATS[(width, signed)]
    except KeyError:
        raise ValueError(f"unsupported field width {width}") from None


# ============================================================
# OI Command Opcodes (TX)
# ============================================================

class Opcode(IntEnum):
    """Enumeration of Roomba Open Interface command opcodes."""

    RESET            = 7      # Reset robot (as if the battery was reinserted)
    START            = 128    # Start OI (Passive mode)
    BAUD             = 129    # Change baud rate
    CONTROL          = 130    # Enter Control mode (same as Safe)
    SAFE             = 131    # Enter Safe mode
    FULL             = 132    # Enter Full mode
    POWER            = 133    # Power down
    SPOT             = 134    # Spot cleaning
    CLEAN            = 135    # Standard clean
    MAX              = 136    # Max clean (until battery empty)
    DRIVE            = 137    # Drive with velocity + radius
    MOTORS           = 138    # Turn main brush, side brush, vacuum on/off
    LEDS             = 139    # Control LEDs
    SONG             = 140    # Define song
    PLAY             = 141    # Play song
    SENSORS          = 142    # Query one sensor packet
    DOCK             = 143    # Seek dock (same as pressing dock button)
    PWM_MOTORS       = 144    # Brush/vacuum duty cycles
    DRIVE_DIRECT     = 145    # Drive wheels independently
    DRIVE_PWM        = 146    # Drive wheels with raw PWM values
    STREAM           = 148    # Start continuous streaming of sensor packets
    QUERY_LIST       = 149    # Query multiple packets once
    STREAM_CTRL      = 150    # Pause/resume streaming
    SCHEDULING_LEDS  = 162    # Weekday + scheduling LEDs
    DIGIT_LEDS_RAW   = 163    # 7-segment digits, raw segment bits
    DIGIT_LEDS_ASCII = 164    # 7-segment digits, ASCII codes
    BUTTONS          = 165    # Push buttons
    SCHEDULE         = 167    # Cleaning schedule
    SET_DAY_TIME     = 168    # Set clock
    STOP             = 173    # Stop OI and exit to Off


class BaudCode(IntEnum):
    """Data byte of the BAUD command."""
    BPS_300    = 0
    BPS_600    = 1
    BPS_1200   = 2
    BPS_2400   = 3
    BPS_4800   = 4
    BPS_9600   = 5
    BPS_14400  = 6
    BPS_19200  = 7
    BPS_28800  = 8
    BPS_38400  = 9
    BPS_57600  = 10
    BPS_115200 = 11


BAUD_RATES: Mapping[BaudCode, int] = MappingProxyType({
    code: int(code.name.split("_")[1]) for code in BaudCode
})
"""Baud code → bits per second."""

DEFAULT_BAUD_RATE = 115200

# Special DRIVE radius values
RADIUS_STRAIGHT           = 32767    # 0x7FFF
RADIUS_STRAIGHT_NEGATIVE  = -32768   # 0x8000
RADIUS_CLOCKWISE          = -1       # 0xFFFF, turn in place
RADIUS_COUNTER_CLOCKWISE  = 1        # 0x0001, turn in place


# ============================================================
# Command catalog
# ============================================================

@dataclass(frozen=True, slots=True)
class FieldDomain:
    """
    Numeric domain of one command argument.

    ``offset`` is the index of the field's first byte in the command buffer
    (1 = first data byte). Inside a LengthPrefix item it is relative to the
    start of the item.
    """
    name: str
    offset: int
    width: int = 1
    signed: bool = False
    minimum: int = 0
    maximum: int = 255
    sentinels: tuple[int, ...] = ()

    def read(self, buffer: bytes, base: int = 0) -> int:
        """Reassemble the field value (big-endian, two's complement if signed)."""
        start = base + self.offset
        return field_format(self.width, self.signed).parse(bytes(buffer[start:start + self.width]))

    def accepts(self, value: int) -> bool:
        return self.minimum <= value <= self.maximum or value in self.sentinels


@dataclass(frozen=True, slots=True)
class LengthPrefix:
    """
    Layout of a variable-length command: a count byte followed by ``count``
    repeated items of ``item_size`` bytes each.
    """
    count: FieldDomain
    item_size: int
    items: tuple[FieldDomain, ...]

    @property
    def first_item(self) -> int:
        return self.count.offset + 1

    def data_bytes(self, count: int) -> int:
        return self.count.offset + count * self.item_size


@dataclass(frozen=True, slots=True)
class CommandSpec:
    """Catalog entry for one opcode."""
    opcode: Opcode
    data_bytes: Optional[int]
    fields: tuple[FieldDomain, ...] = ()
    prefix: Optional[LengthPrefix] = None

    @property
    def name(self) -> str:
        return self.opcode.name

    @property
    def variable(self) -> bool:
        return self.prefix is not None


def _u8(name: str, offset: int, lo: int = 0, hi: int = 255, sentinels: tuple[int, ...] = ()) -> FieldDomain:
    return FieldDomain(name, offset, 1, False, lo, hi, sentinels)


def _s8(name: str, offset: int, lo: int, hi: int) -> FieldDomain:
    return FieldDomain(name, offset, 1, True, lo, hi)


def _s16(name: str, offset: int, lo: int, hi: int, sentinels: tuple[int, ...] = ()) -> FieldDomain:
    return FieldDomain(name, offset, 2, True, lo, hi, sentinels)


# Packet ids accepted by SENSORS / QUERY_LIST / STREAM
_GROUP_IDS = (100, 101, 106, 107)


def _packet_id_field(name: str, offset: int) -> FieldDomain:
    return _u8(name, offset, 0, 58, _GROUP_IDS)


def _schedule_fields() -> tuple[FieldDomain, ...]:
    days = ("sun", "mon", "tue", "wed", "thu", "fri", "sat")
    out = [_u8("days", 1)]
    for i, day in enumerate(days):
        out.append(_u8(f"{day}_hour", 2 + 2 * i, 0, 23))
        out.append(_u8(f"{day}_minute", 3 + 2 * i, 0, 59))
    return tuple(out)


_ZERO_DATA = (
    Opcode.RESET, Opcode.START, Opcode.CONTROL, Opcode.SAFE, Opcode.FULL,
    Opcode.POWER, Opcode.SPOT, Opcode.CLEAN, Opcode.MAX, Opcode.DOCK, Opcode.STOP,
)

_PACKET_LIST = LengthPrefix(
    count=_u8("count", 1, 1, 255),
    item_size=1,
    items=(_packet_id_field("packet_id", 0),),
)

_SPECS: tuple[CommandSpec, ...] = (
    *(CommandSpec(op, 0) for op in _ZERO_DATA),
    CommandSpec(Opcode.BAUD, 1, (_u8("baud_code", 1, 0, 11),)),
    CommandSpec(Opcode.DRIVE, 4, (
        _s16("velocity", 1, -500, 500),
        _s16("radius", 3, -2000, 2000, (RADIUS_STRAIGHT, RADIUS_STRAIGHT_NEGATIVE)),
    )),
    CommandSpec(Opcode.MOTORS, 1, (_u8("motors", 1),)),
    CommandSpec(Opcode.LEDS, 3, (
        _u8("led_bits", 1),
        _u8("power_color", 2),
        _u8("power_intensity", 3),
    )),
    CommandSpec(Opcode.SONG, None, (_u8("song_number", 1, 0, 4),), LengthPrefix(
        count=_u8("song_length", 2, 1, 16),
        item_size=2,
        items=(_u8("note", 0), _u8("duration", 1)),
    )),
    CommandSpec(Opcode.PLAY, 1, (_u8("song_number", 1, 0, 4),)),
    CommandSpec(Opcode.SENSORS, 1, (_packet_id_field("packet_id", 1),)),
    CommandSpec(Opcode.PWM_MOTORS, 3, (
        _s8("main_brush", 1, -127, 127),
        _s8("side_brush", 2, -127, 127),
        _u8("vacuum", 3, 0, 127),
    )),
    CommandSpec(Opcode.DRIVE_DIRECT, 4, (
        _s16("right_velocity", 1, -500, 500),
        _s16("left_velocity", 3, -500, 500),
    )),
    CommandSpec(Opcode.DRIVE_PWM, 4, (
        _s16("right_pwm", 1, -255, 255),
        _s16("left_pwm", 3, -255, 255),
    )),
    CommandSpec(Opcode.STREAM, None, (), _PACKET_LIST),
    CommandSpec(Opcode.QUERY_LIST, None, (), _PACKET_LIST),
    CommandSpec(Opcode.STREAM_CTRL, 1, (_u8("state", 1, 0, 1),)),
    CommandSpec(Opcode.SCHEDULING_LEDS, 2, (
        _u8("weekday_bits", 1),
        _u8("scheduling_bits", 2),
    )),
    CommandSpec(Opcode.DIGIT_LEDS_RAW, 4, tuple(
        _u8(f"digit_{3 - i}", 1 + i) for i in range(4)
    )),
    CommandSpec(Opcode.DIGIT_LEDS_ASCII, 4, tuple(
        _u8(f"digit_{3 - i}", 1 + i, 32, 126) for i in range(4)
    )),
    CommandSpec(Opcode.BUTTONS, 1, (_u8("buttons", 1),)),
    CommandSpec(Opcode.SCHEDULE, 15, _schedule_fields()),
    CommandSpec(Opcode.SET_DAY_TIME, 3, (
        _u8("day", 1, 0, 6),
        _u8("hour", 2, 0, 23),
        _u8("minute", 3, 0, 59),
    )),
)

COMMANDS: Mapping[int, CommandSpec] = MappingProxyType({int(s.opcode): s for s in _SPECS})
"""Mapping of opcode → CommandSpec for every supported command."""


def lookup_command(opcode: int) -> Optional[CommandSpec]:
    """Return the catalog entry for ``opcode`` or None if it is not supported."""
    return COMMANDS.get(opcode)


# ============================================================
# Sensor packet IDs (RX)
# ============================================================

class PacketId(IntEnum):
    """Sensor packet identifiers. Member names (lower-cased) are the decoded field names."""

    GROUP_0                  = 0      # 7–26
    GROUP_1                  = 1      # 7–16
    GROUP_2                  = 2      # 17–20
    GROUP_3                  = 3      # 21–26
    GROUP_4                  = 4      # 27–34
    GROUP_5                  = 5      # 35–42
    GROUP_6                  = 6      # 7–42
    BUMPS_WHEEL_DROPS        = 7
    WALL                     = 8
    CLIFF_LEFT               = 9
    CLIFF_FRONT_LEFT         = 10
    CLIFF_FRONT_RIGHT        = 11
    CLIFF_RIGHT              = 12
    VIRTUAL_WALL             = 13
    WHEEL_OVERCURRENTS       = 14
    DIRT_DETECT              = 15
    UNUSED_16                = 16     # always 0
    IR_CHAR_OMNI             = 17
    BUTTONS                  = 18
    DISTANCE_MM              = 19
    ANGLE_DEG                = 20
    CHARGING_STATE           = 21
    VOLTAGE_MV               = 22
    CURRENT_MA               = 23
    TEMPERATURE_C            = 24
    CHARGE_MAH               = 25
    CAPACITY_MAH             = 26
    WALL_SIGNAL              = 27
    CLIFF_LEFT_SIGNAL        = 28
    CLIFF_FRONT_LEFT_SIGNAL  = 29
    CLIFF_FRONT_RIGHT_SIGNAL = 30
    CLIFF_RIGHT_SIGNAL       = 31
    UNUSED_32                = 32
    UNUSED_33                = 33
    CHARGING_SOURCES         = 34
    OI_MODE                  = 35
    SONG_NUMBER              = 36
    SONG_PLAYING             = 37
    NUM_STREAM_PACKETS       = 38
    REQUESTED_VELOCITY       = 39
    REQUESTED_RADIUS         = 40
    REQUESTED_RIGHT_VELOCITY = 41
    REQUESTED_LEFT_VELOCITY  = 42
    ENCODER_COUNTS_LEFT      = 43
    ENCODER_COUNTS_RIGHT     = 44
    LIGHT_BUMPER             = 45
    LIGHT_BUMP_LEFT          = 46
    LIGHT_BUMP_FRONT_LEFT    = 47
    LIGHT_BUMP_CENTER_LEFT   = 48
    LIGHT_BUMP_CENTER_RIGHT  = 49
    LIGHT_BUMP_FRONT_RIGHT   = 50
    LIGHT_BUMP_RIGHT         = 51
    IR_CHAR_LEFT             = 52
    IR_CHAR_RIGHT            = 53
    LEFT_MOTOR_CURRENT       = 54
    RIGHT_MOTOR_CURRENT      = 55
    MAIN_BRUSH_CURRENT       = 56
    SIDE_BRUSH_CURRENT       = 57
    STASIS                   = 58
    GROUP_100                = 100    # 7–58, every leaf packet
    GROUP_101                = 101    # 43–58
    GROUP_106                = 106    # 46–51
    GROUP_107                = 107    # 54–58


STREAM_HEADER = 19


# ============================================================
# Packet catalog
# ============================================================

@dataclass(frozen=True, slots=True)
class PacketSpec:
    """
    Catalog entry for one sensor packet.

    Leaf packets carry a single field of ``width`` bytes. Group packets carry
    the ordered ``members`` (leaf ids) and ``width`` is the sum of their widths.
    """
    packet_id: int
    name: str
    width: int
    signed: bool = False
    members: tuple[int, ...] = ()

    @property
    def is_group(self) -> bool:
        return bool(self.members)


# (leaf, width, signed)
_LEAVES: tuple[tuple[PacketId, int, bool], ...] = (
    (PacketId.BUMPS_WHEEL_DROPS,        1, False),
    (PacketId.WALL,                     1, False),
    (PacketId.CLIFF_LEFT,               1, False),
    (PacketId.CLIFF_FRONT_LEFT,         1, False),
    (PacketId.CLIFF_FRONT_RIGHT,        1, False),
    (PacketId.CLIFF_RIGHT,              1, False),
    (PacketId.VIRTUAL_WALL,             1, False),
    (PacketId.WHEEL_OVERCURRENTS,       1, False),
    (PacketId.DIRT_DETECT,              1, False),
    (PacketId.UNUSED_16,                1, False),
    (PacketId.IR_CHAR_OMNI,             1, False),
    (PacketId.BUTTONS,                  1, False),
    (PacketId.DISTANCE_MM,              2, True),
    (PacketId.ANGLE_DEG,                2, True),
    (PacketId.CHARGING_STATE,           1, False),
    (PacketId.VOLTAGE_MV,               2, False),
    (PacketId.CURRENT_MA,               2, True),
    (PacketId.TEMPERATURE_C,            1, True),
    (PacketId.CHARGE_MAH,               2, False),
    (PacketId.CAPACITY_MAH,             2, False),
    (PacketId.WALL_SIGNAL,              2, False),
    (PacketId.CLIFF_LEFT_SIGNAL,        2, False),
    (PacketId.CLIFF_FRONT_LEFT_SIGNAL,  2, False),
    (PacketId.CLIFF_FRONT_RIGHT_SIGNAL, 2, False),
    (PacketId.CLIFF_RIGHT_SIGNAL,       2, False),
    (PacketId.UNUSED_32,                1, False),
    (PacketId.UNUSED_33,                2, False),
    (PacketId.CHARGING_SOURCES,         1, False),
    (PacketId.OI_MODE,                  1, False),
    (PacketId.SONG_NUMBER,              1, False),
    (PacketId.SONG_PLAYING,             1, False),
    (PacketId.NUM_STREAM_PACKETS,       1, False),
    (PacketId.REQUESTED_VELOCITY,       2, True),
    (PacketId.REQUESTED_RADIUS,         2, True),
    (PacketId.REQUESTED_RIGHT_VELOCITY, 2, True),
    (PacketId.REQUESTED_LEFT_VELOCITY,  2, True),
    (PacketId.ENCODER_COUNTS_LEFT,      2, False),   # rolls over after 65535
    (PacketId.ENCODER_COUNTS_RIGHT,     2, False),
    (PacketId.LIGHT_BUMPER,             1, False),
    (PacketId.LIGHT_BUMP_LEFT,          2, False),
    (PacketId.LIGHT_BUMP_FRONT_LEFT,    2, False),
    (PacketId.LIGHT_BUMP_CENTER_LEFT,   2, False),
    (PacketId.LIGHT_BUMP_CENTER_RIGHT,  2, False),
    (PacketId.LIGHT_BUMP_FRONT_RIGHT,   2, False),
    (PacketId.LIGHT_BUMP_RIGHT,         2, False),
    (PacketId.IR_CHAR_LEFT,             1, False),
    (PacketId.IR_CHAR_RIGHT,            1, False),
    (PacketId.LEFT_MOTOR_CURRENT,       2, True),
    (PacketId.RIGHT_MOTOR_CURRENT,      2, True),
    (PacketId.MAIN_BRUSH_CURRENT,       2, True),
    (PacketId.SIDE_BRUSH_CURRENT,       2, True),
    (PacketId.STASIS,                   1, False),
)

# (group, first member, last member, documented size in bytes)
_GROUPS: tuple[tuple[PacketId, int, int, int], ...] = (
    (PacketId.GROUP_0,   7,  26, 26),
    (PacketId.GROUP_1,   7,  16, 10),
    (PacketId.GROUP_2,   17, 20, 6),
    (PacketId.GROUP_3,   21, 26, 10),
    (PacketId.GROUP_4,   27, 34, 14),
    (PacketId.GROUP_5,   35, 42, 12),
    (PacketId.GROUP_6,   7,  42, 52),
    (PacketId.GROUP_100, 7,  58, 80),
    (PacketId.GROUP_101, 43, 58, 28),
    (PacketId.GROUP_106, 46, 51, 12),
    (PacketId.GROUP_107, 54, 58, 9),
)

GROUP_SIZES: Mapping[int, int] = MappingProxyType({int(g): size for g, _, _, size in _GROUPS})
"""Documented byte size of every group packet."""


def _build_packet_catalog() -> Mapping[int, PacketSpec]:
    packets: dict[int, PacketSpec] = {}
    for pid, width, signed in _LEAVES:
        packets[int(pid)] = PacketSpec(int(pid), pid.name.lower(), width, signed)
    for gid, first, last, size in _GROUPS:
        members = tuple(range(first, last + 1))
        width = sum(packets[m].width for m in members)
        if width != size:
            raise RuntimeError(f"group {int(gid)} members sum to {width} bytes, documented {size}")
        packets[int(gid)] = PacketSpec(int(gid), gid.name.lower(), width, False, members)
    return MappingProxyType(packets)


PACKETS: Mapping[int, PacketSpec] = _build_packet_catalog()
"""Mapping of packet id → PacketSpec for every leaf and group packet."""


def lookup_packet(packet_id: int) -> Optional[PacketSpec]:
    """Return the catalog entry for ``packet_id`` or None if it is unknown."""
    return PACKETS.get(packet_id)


def packet_length(packet_id: int) -> int:
    """
    Return expected data length (in bytes) for a given sensor packet ID.

    Returns 0 when the packet is unknown.
    """
    spec = PACKETS.get(packet_id)
    return spec.width if spec else 0
