import pytest

from roomba_oi.l0_core.errors import ErrorKind
from roomba_oi.l2_oi.oi_protocol import COMMANDS, field_format
from roomba_oi.l2_oi.oi_validate import CommandRejected, check_command, require_valid, validate


def test_drive_within_domains():
    assert validate(bytes([137, 0x00, 0xC8, 0x01, 0xF4]))       # 200 mm/s, 500 mm
    assert validate(bytes([137, 0xFE, 0x0C, 0xF8, 0x30]))       # -500, -2000


@pytest.mark.parametrize("radius", [b"\x7f\xff", b"\x80\x00"])
def test_drive_straight_sentinels_are_valid(radius):
    assert validate(bytes([137, 0x00, 0xC8]) + radius)


def test_drive_velocity_out_of_range():
    check = check_command(bytes([137, 0x01, 0xF5, 0x00, 0x00]))   # 501
    assert not check
    assert check.kind is ErrorKind.FIELD_OUT_OF_RANGE
    assert check.field == "velocity"


def test_drive_radius_out_of_range():
    check = check_command(bytes([137, 0x00, 0x00, 0x07, 0xD1]))   # 2001
    assert check.kind is ErrorKind.FIELD_OUT_OF_RANGE
    assert check.field == "radius"


def test_drive_wrong_length():
    check = check_command(bytes([137, 0x00, 0xC8, 0x80]))
    assert check.kind is ErrorKind.STRUCTURAL_LENGTH_MISMATCH


def test_reset_is_exactly_one_byte():
    assert validate(b"\x07")
    assert check_command(b"\x07\x00").kind is ErrorKind.STRUCTURAL_LENGTH_MISMATCH


@pytest.mark.parametrize("buffer", [b"", b"\x00", b"\x93", b"\xff\x01"])
def test_unknown_or_empty_opcode(buffer):
    check = check_command(buffer)
    assert not check
    assert check.kind is ErrorKind.UNKNOWN_OPCODE


def test_song_length_comes_from_length_byte():
    assert validate(bytes([140, 0, 2, 60, 32, 62, 32]))
    assert check_command(bytes([140, 0, 2, 60, 32])).kind is ErrorKind.STRUCTURAL_LENGTH_MISMATCH
    assert check_command(bytes([140, 0])).kind is ErrorKind.STRUCTURAL_LENGTH_MISMATCH


def test_song_number_and_length_domains():
    assert check_command(bytes([140, 5, 1, 60, 32])).field == "song_number"
    assert check_command(bytes([140, 0, 17] + [60, 8] * 17)).field == "song_length"
    assert check_command(bytes([140, 0, 0])).field == "song_length"


def test_stream_packet_ids():
    assert validate(bytes([148, 2, 29, 13]))
    assert validate(bytes([148, 1, 100]))
    check = check_command(bytes([148, 2, 29, 59]))
    assert check.kind is ErrorKind.FIELD_OUT_OF_RANGE
    assert check.field == "packet_id"


def test_query_list_needs_at_least_one_packet():
    assert check_command(bytes([149, 0])).kind is ErrorKind.FIELD_OUT_OF_RANGE


def test_sensors_accepts_groups_only_from_catalog():
    assert validate(bytes([142, 106]))
    assert not validate(bytes([142, 102]))


def test_pwm_motors_signed_bytes():
    assert validate(bytes([144, 0x81, 0x7F, 127]))                # -127, 127, 127
    assert check_command(bytes([144, 0x80, 0, 0])).field == "main_brush"
    assert check_command(bytes([144, 0, 0, 128])).field == "vacuum"


def test_set_day_time_domains():
    assert validate(bytes([168, 6, 23, 59]))
    assert check_command(bytes([168, 7, 0, 0])).field == "day"
    assert check_command(bytes([168, 0, 24, 0])).field == "hour"
    assert check_command(bytes([168, 0, 0, 60])).field == "minute"


def test_schedule_hours_checked():
    frame = bytearray([167, 0x7F] + [10, 30] * 7)
    assert validate(bytes(frame))
    frame[6] = 24    # tuesday hour
    assert check_command(bytes(frame)).field == "tue_hour"


def test_stream_ctrl_and_baud():
    assert validate(b"\x96\x00") and validate(b"\x96\x01")
    assert not validate(b"\x96\x02")
    assert validate(b"\x81\x0b")
    assert not validate(b"\x81\x0c")


def test_first_failure_wins_length_before_range():
    check = check_command(bytes([137, 0x7F, 0xFF]))
    assert check.kind is ErrorKind.STRUCTURAL_LENGTH_MISMATCH


def test_validate_is_pure():
    frame = bytes([137, 0x00, 0xC8, 0x80, 0x00])
    assert [validate(frame) for _ in range(3)] == [True, True, True]


def test_require_valid_raises_with_check():
    with pytest.raises(CommandRejected) as excinfo:
        require_valid(bytes([141, 9]))
    assert excinfo.value.kind is ErrorKind.FIELD_OUT_OF_RANGE
    assert excinfo.value.check.opcode == 141
    assert isinstance(excinfo.value, ValueError)


# ---- catalog-wide properties ----

def _span(domain):
    bits = 8 * domain.width
    if domain.signed:
        return -(1 << (bits - 1)), (1 << (bits - 1)) - 1
    return 0, (1 << bits) - 1


def _put(frame, domain, value, base=0):
    start = base + domain.offset
    frame[start:start + domain.width] = field_format(domain.width, domain.signed).build(value)


def _frame(spec, pick="minimum", count=None, override=None):
    """Frame for ``spec`` with every field at its ``pick`` bound; ``override`` is (domain, base, value)."""
    prefix = spec.prefix
    if prefix is not None and count is None:
        count = getattr(prefix.count, pick)
    frame = bytearray(1 + (spec.data_bytes if prefix is None else prefix.data_bytes(count)))
    frame[0] = spec.opcode
    for domain in spec.fields:
        _put(frame, domain, getattr(domain, pick))
    if prefix is not None:
        frame[prefix.count.offset] = count
        for i in range(count):
            for domain in prefix.items:
                _put(frame, domain, getattr(domain, pick), prefix.first_item + i * prefix.item_size)
    if override is not None:
        domain, base, value = override
        _put(frame, domain, value, base)
    return bytes(frame)


def _item_domains(spec):
    out = [(d, 0) for d in spec.fields]
    if spec.prefix is not None:
        out += [(d, spec.prefix.first_item) for d in spec.prefix.items]
    return out


def _out_of_range_cases():
    for spec in COMMANDS.values():
        for domain, base in _item_domains(spec):
            lo, hi = _span(domain)
            for value in (domain.minimum - 1, domain.maximum + 1):
                if lo <= value <= hi and value not in domain.sentinels:
                    yield pytest.param(spec, domain, base, value, id=f"{spec.name}-{domain.name}={value}")


def _sentinel_cases():
    for spec in COMMANDS.values():
        for domain, base in _item_domains(spec):
            for value in domain.sentinels:
                yield pytest.param(spec, domain, base, value, id=f"{spec.name}-{domain.name}={value}")


SPECS = [pytest.param(spec, id=spec.name) for spec in COMMANDS.values()]


@pytest.mark.parametrize("pick", ["minimum", "maximum"])
@pytest.mark.parametrize("spec", SPECS)
def test_every_opcode_accepts_its_bounds(spec, pick):
    check = check_command(_frame(spec, pick))
    assert check, check.detail
    assert check.opcode == spec.opcode


@pytest.mark.parametrize("spec, domain, base, value", list(_out_of_range_cases()))
def test_every_field_rejects_one_past_its_bounds(spec, domain, base, value):
    check = check_command(_frame(spec, override=(domain, base, value)))
    assert check.kind is ErrorKind.FIELD_OUT_OF_RANGE
    assert check.field == domain.name
    assert check.opcode == spec.opcode


@pytest.mark.parametrize("spec, domain, base, value", list(_sentinel_cases()))
def test_every_sentinel_is_accepted(spec, domain, base, value):
    assert validate(_frame(spec, override=(domain, base, value)))


@pytest.mark.parametrize("spec", [s for s in SPECS if s.values[0].prefix is not None])
def test_every_count_byte_is_range_checked(spec):
    count = spec.prefix.count
    below = check_command(_frame(spec, count=count.minimum - 1))
    assert below.kind is ErrorKind.FIELD_OUT_OF_RANGE
    assert below.field == count.name
    if count.maximum < 255:
        above = check_command(_frame(spec, count=count.maximum + 1))
        assert above.field == count.name


@pytest.mark.parametrize("spec", SPECS)
def test_every_opcode_rejects_one_byte_more_or_less(spec):
    frame = _frame(spec)
    assert check_command(frame + b"\x00").kind is ErrorKind.STRUCTURAL_LENGTH_MISMATCH
    if len(frame) > 1:
        assert check_command(frame[:-1]).kind is ErrorKind.STRUCTURAL_LENGTH_MISMATCH
