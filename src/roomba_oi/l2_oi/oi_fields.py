"""
oi_fields.py
============
Interpretation of decoded sensor values: bit tables and code tables.

`oi_decode` yields plain integers. This module maps the packets that carry
flags (7, 14, 18, 34, 45) to named booleans and the packets that carry codes
(17, 21, 35, 52, 53) to enums, for logging, CLIs and higher layers.
"""

from __future__ import annotations

from enum import IntEnum
from types import MappingProxyType
from typing import Any, Mapping, Optional, Type

from construct import Adapter, Enum, EnumIntegerString

from .oi_decode import SensorRecord
from .oi_protocol import PACKETS, PacketId, field_format

_BYTE = field_format(1, False)


class ChargingState(IntEnum):
    NOT_CHARGING = 0
    RECONDITIONING = 1
    FULL_CHARGING = 2
    TRICKLE_CHARGING = 3
    WAITING = 4
    FAULT = 5


class OIMode(IntEnum):
    OFF = 0
    PASSIVE = 1
    SAFE = 2
    FULL = 3


class IRCharacter(IntEnum):
    """Characters seen by the IR receivers (packets 17, 52, 53)."""
    NONE = 0
    LEFT = 129
    FORWARD = 130
    RIGHT = 131
    SPOT = 132
    MAX = 133
    SMALL = 134
    MEDIUM = 135
    LARGE_CLEAN = 136
    STOP = 137
    POWER = 138
    ARC_LEFT = 139
    ARC_RIGHT = 140
    STOP_2 = 141
    DOWNLOAD = 142
    SEEK_DOCK = 143
    RESERVED = 160
    VIRTUAL_WALL = 162
    DOCK_RESERVED = 240
    FORCE_FIELD = 242
    GREEN_BUOY = 244
    GREEN_BUOY_AND_FORCE_FIELD = 246
    RED_BUOY = 248
    RED_BUOY_AND_FORCE_FIELD = 250
    RED_AND_GREEN_BUOY = 252
    RED_GREEN_BUOY_AND_FORCE_FIELD = 254


class FlagsAdapter(Adapter):
    """
    Adapter that decodes a flag byte into named booleans.

    ``names`` maps bit index → flag name, bit 0 first. Unlisted bits are
    reserved: ignored when parsing and left clear when building.
    """

    def __init__(self, subcon, names: Mapping[int, str]) -> None:
        super().__init__(subcon)
        self.names = MappingProxyType(dict(names))

    def _decode(self, obj, ctx, path):
        return {name: bool(obj & (1 << bit)) for bit, name in self.names.items()}

    def _encode(self, obj, ctx, path):
        v = 0
        for bit, name in self.names.items():
            if obj.get(name):
                v |= 1 << bit
        return v


BITFIELDS: Mapping[int, FlagsAdapter] = MappingProxyType({
    PacketId.BUMPS_WHEEL_DROPS: FlagsAdapter(_BYTE, {
        0: "bump_right", 1: "bump_left", 2: "wheel_drop_right", 3: "wheel_drop_left",
    }),
    PacketId.WHEEL_OVERCURRENTS: FlagsAdapter(_BYTE, {
        0: "side_brush", 2: "main_brush", 3: "right_wheel", 4: "left_wheel",
    }),
    PacketId.BUTTONS: FlagsAdapter(_BYTE, {
        0: "clean", 1: "spot", 2: "dock", 3: "minute",
        4: "hour", 5: "day", 6: "schedule", 7: "clock",
    }),
    PacketId.CHARGING_SOURCES: FlagsAdapter(_BYTE, {
        0: "internal_charger", 1: "home_base",
    }),
    PacketId.LIGHT_BUMPER: FlagsAdapter(_BYTE, {
        0: "left", 1: "front_left", 2: "center_left",
        3: "center_right", 4: "front_right", 5: "right",
    }),
})
"""Construct schema of every flag packet."""

_CODE_TYPES: Mapping[int, Type[IntEnum]] = MappingProxyType({
    PacketId.IR_CHAR_OMNI: IRCharacter,
    PacketId.CHARGING_STATE: ChargingState,
    PacketId.OI_MODE: OIMode,
    PacketId.IR_CHAR_LEFT: IRCharacter,
    PacketId.IR_CHAR_RIGHT: IRCharacter,
})

CODES: Mapping[int, Enum] = MappingProxyType({
    pid: Enum(_BYTE, enum) for pid, enum in _CODE_TYPES.items()
})
"""Construct schema of every coded packet; undocumented codes parse as plain ints."""

_ID_BY_NAME: Mapping[str, int] = MappingProxyType({
    spec.name: pid for pid, spec in PACKETS.items() if not spec.is_group
})


def expand_bits(packet_id: int, value: int) -> dict[str, bool]:
    """
    Split a flag packet into named booleans.

    Raises:
        KeyError: ``packet_id`` carries no flags.

    Example:
        >>> expand_bits(7, 0b0101)
        {'bump_right': True, 'bump_left': False, 'wheel_drop_right': True, 'wheel_drop_left': False}
    """
    return BITFIELDS[packet_id].parse(_BYTE.build(value))


def pack_bits(packet_id: int, flags: Mapping[str, bool]) -> int:
    """Inverse of `expand_bits`; missing flags count as False."""
    return _BYTE.parse(BITFIELDS[packet_id].build(flags))


def _label(packet_id: int, value: int) -> Optional[EnumIntegerString]:
    label = CODES[packet_id].parse(_BYTE.build(value))
    return label if isinstance(label, EnumIntegerString) else None


def decode_code(packet_id: int, value: int) -> Optional[IntEnum]:
    """Enum member for a coded packet value, or None if the code is undocumented."""
    label = _label(packet_id, value)
    return None if label is None else _CODE_TYPES[packet_id][label]


def interpret(packet_id: int, value: int) -> Any:
    """Flags → dict, codes → enum name, anything else unchanged."""
    if packet_id in BITFIELDS:
        return expand_bits(packet_id, value)
    if packet_id in CODES:
        label = _label(packet_id, value)
        return str(label) if label is not None else value
    return value


def describe(record: SensorRecord) -> dict[str, Any]:
    """Human-oriented view of a record: field name → interpreted value."""
    return {name: interpret(_ID_BY_NAME[name], value) for name, value in record.fields.items()}
