"""
oi_decode.py
============
RX helpers for the Roomba Open Interface (OI).

This module focuses ONLY on the query-response path:
- Decoding raw sensor packets (leaf or group) into typed records.
- Decoding QUERY_LIST replies (concatenated packets, no framing).
- Building packet payloads (the inverse), for simulators and tests.

Group packets are composed from the leaf catalog in `oi_protocol.py`, so a
group's construct schema is the concatenation of its members' schemas and can
never drift from them. The checksummed stream lives in `oi_stream.py`.
"""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Iterable, Mapping, Union

from construct import ConstructError, Struct

from roomba_oi.l0_core.errors import LengthMismatchError, UnknownPacketError
from .oi_protocol import PACKETS, PacketSpec, field_format, lookup_packet


def _member_specs(spec: PacketSpec) -> tuple[PacketSpec, ...]:
    return tuple(PACKETS[m] for m in spec.members) if spec.is_group else (spec,)


def _schema(spec: PacketSpec) -> Struct:
    return Struct(*[m.name / field_format(m.width, m.signed) for m in _member_specs(spec)])


SCHEMAS: Mapping[int, Struct] = MappingProxyType({pid: _schema(s) for pid, s in PACKETS.items()})
"""Construct schema of every packet (a one-field Struct for leaf packets)."""

_FIELD_NAMES: Mapping[int, tuple[str, ...]] = MappingProxyType({
    pid: tuple(m.name for m in _member_specs(s)) for pid, s in PACKETS.items()
})


@dataclass(frozen=True, slots=True)
class SensorRecord:
    """
    Decoded value set for one packet or packet group.

    ``fields`` preserves the protocol's member order and is read-only.
    """
    packet_id: int
    fields: Mapping[str, int]

    def __getitem__(self, name: str) -> int:
        return self.fields[name]

    @property
    def is_group(self) -> bool:
        return PACKETS[self.packet_id].is_group

    @property
    def value(self) -> int:
        """The single value of a leaf packet."""
        if self.is_group:
            raise ValueError(f"packet {self.packet_id} is a group; use .fields")
        return next(iter(self.fields.values()))

    def as_dict(self) -> dict[str, int]:
        return dict(self.fields)


def _spec_or_raise(packet_id: int) -> PacketSpec:
    spec = lookup_packet(packet_id)
    if spec is None:
        raise UnknownPacketError(f"Unknown sensor packet ID {packet_id}", packet_id)
    return spec


def decode_packet(packet_id: int, raw: bytes) -> SensorRecord:
    """
    Decode a sensor packet or packet group into a typed record.

    Args:
        packet_id: Numeric packet identifier defined by the OI spec.
        raw: Raw payload bytes (no leading packet ID).

    Returns:
        SensorRecord with one entry per member, in protocol order.

    Raises:
        UnknownPacketError: ``packet_id`` is not in the catalog.
        LengthMismatchError: ``raw`` is not exactly the packet's size.

    Example:
        >>> decode_packet(29, b"\\x02\\x25").value
        549
    """
    spec = _spec_or_raise(packet_id)
    if len(raw) != spec.width:
        raise LengthMismatchError(
            f"packet {packet_id} needs {spec.width} bytes, got {len(raw)}",
            packet_id, expected=spec.width, actual=len(raw),
        )
    parsed = SCHEMAS[packet_id].parse(bytes(raw))
    fields = {name: int(parsed[name]) for name in _FIELD_NAMES[packet_id]}
    return SensorRecord(packet_id, MappingProxyType(fields))


def decode_query_list(packet_ids: Iterable[int], raw: bytes) -> list[SensorRecord]:
    """
    Decode a QUERY_LIST (opcode 149) reply: the requested packets back to back,
    in request order, with no IDs or checksum.
    """
    specs = [_spec_or_raise(pid) for pid in packet_ids]
    total = sum(s.width for s in specs)
    if len(raw) != total:
        raise LengthMismatchError(
            f"query list reply needs {total} bytes, got {len(raw)}",
            expected=total, actual=len(raw),
        )
    records = []
    at = 0
    for spec in specs:
        records.append(decode_packet(spec.packet_id, raw[at:at + spec.width]))
        at += spec.width
    return records


def encode_packet(packet_id: int, fields: Union[Mapping[str, int], int]) -> bytes:
    """
    Build raw payload bytes for a sensor packet.

    Args:
        packet_id: Numeric packet identifier defined by the OI spec.
        fields: Mapping of field names to values; a bare int is accepted for
            leaf packets.

    Returns:
        Raw payload bytes (no leading packet ID).
    """
    spec = _spec_or_raise(packet_id)
    if isinstance(fields, int):
        if spec.is_group:
            raise ValueError(f"packet {packet_id} is a group; pass a mapping of fields")
        fields = {spec.name: fields}
    try:
        return SCHEMAS[packet_id].build(dict(fields))
    except (ConstructError, KeyError, TypeError) as exc:
        raise ValueError(
            f"Failed to build sensor packet {packet_id} with payload {dict(fields)}: {exc}"
        ) from exc
