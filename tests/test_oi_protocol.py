import pytest

from roomba_oi.l2_oi.oi_protocol import (
    BAUD_RATES, COMMANDS, GROUP_SIZES, PACKETS, BaudCode, Opcode, PacketId,
    lookup_command, lookup_packet, packet_length,
)


def test_group_sizes_match_documented_sizes():
    expected = {0: 26, 1: 10, 2: 6, 3: 10, 4: 14, 5: 12, 6: 52, 100: 80, 101: 28, 106: 12, 107: 9}
    assert dict(GROUP_SIZES) == expected
    for gid, size in expected.items():
        assert PACKETS[gid].width == size
        assert packet_length(gid) == size


def test_group_width_is_sum_of_members():
    for spec in PACKETS.values():
        if spec.is_group:
            assert spec.width == sum(PACKETS[m].width for m in spec.members)


def test_group_members_are_contiguous_leaf_ranges():
    assert PACKETS[0].members == tuple(range(7, 27))
    assert PACKETS[100].members == tuple(range(7, 59))
    assert PACKETS[107].members == (54, 55, 56, 57, 58)
    for spec in PACKETS.values():
        for member in spec.members:
            assert not PACKETS[member].is_group


def test_catalog_covers_every_leaf_and_group():
    assert set(PACKETS) == set(range(0, 59)) | {100, 101, 106, 107}


@pytest.mark.parametrize("pid, width, signed", [
    (19, 2, True),    # distance
    (20, 2, True),    # angle
    (22, 2, False),   # voltage
    (23, 2, True),    # current
    (24, 1, True),    # temperature
    (25, 2, False),   # charge
    (33, 2, False),   # unused
    (39, 2, True),    # requested velocity
    (43, 2, False),   # left encoder counts
    (44, 2, False),
    (46, 2, False),   # light bump left
    (54, 2, True),    # left motor current
    (58, 1, False),
])
def test_leaf_widths_and_signedness(pid, width, signed):
    spec = PACKETS[pid]
    assert (spec.width, spec.signed) == (width, signed)


def test_leaf_names_follow_packet_ids():
    assert PACKETS[PacketId.VOLTAGE_MV].name == "voltage_mv"
    assert PACKETS[PacketId.GROUP_106].name == "group_106"


def test_unknown_packet_lookup():
    assert lookup_packet(59) is None
    assert lookup_packet(99) is None
    assert packet_length(200) == 0


def test_command_catalog_lengths():
    assert COMMANDS[Opcode.START].data_bytes == 0
    assert COMMANDS[Opcode.DRIVE].data_bytes == 4
    assert COMMANDS[Opcode.LEDS].data_bytes == 3
    assert COMMANDS[Opcode.SCHEDULE].data_bytes == 15
    assert COMMANDS[Opcode.SET_DAY_TIME].data_bytes == 3
    for op in (Opcode.SONG, Opcode.STREAM, Opcode.QUERY_LIST):
        assert COMMANDS[op].variable


def test_schedule_field_offsets_cover_every_data_byte():
    offsets = [d.offset for d in COMMANDS[Opcode.SCHEDULE].fields]
    assert offsets == list(range(1, 16))


def test_drive_radius_sentinels():
    radius = COMMANDS[Opcode.DRIVE].fields[1]
    assert radius.accepts(32767)
    assert radius.accepts(-32768)
    assert radius.accepts(-2000) and radius.accepts(2000)
    assert not radius.accepts(2001)


def test_unknown_opcode_lookup():
    assert lookup_command(0) is None
    assert lookup_command(147) is None
    assert lookup_command(255) is None


def test_baud_rates():
    assert BAUD_RATES[BaudCode.BPS_115200] == 115200
    assert BAUD_RATES[BaudCode.BPS_300] == 300
    assert len(BAUD_RATES) == 12
