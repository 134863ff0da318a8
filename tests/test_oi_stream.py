import os
import subprocess
import sys
from pathlib import Path

import pytest

from roomba_oi.l0_core.errors import ErrorKind, FramingDesyncError
from roomba_oi.l1_drivers.serial_port import BufferSource
from roomba_oi.l2_oi.oi_stream import (
    FrameError, StreamDecoder, StreamFrame, StreamState, build_stream_frame, checksum, demultiplex,
)

# Cliff front left signal = 0x0219 = 537, virtual wall = 0
FRAME = bytes([19, 5, 29, 2, 25, 13, 0, 163])


def test_checksum_of_reference_frame():
    assert sum(FRAME) & 0xFF == 0
    assert checksum(FRAME[:-1]) == 163


def test_decodes_reference_frame():
    frame = StreamDecoder().read_frame(BufferSource(FRAME))
    assert isinstance(frame, StreamFrame)
    assert frame.pairs() == [(29, 537), (13, 0)]
    assert frame.get(29).value == 537
    assert frame.get(7) is None


def test_build_stream_frame_matches_reference():
    assert build_stream_frame([(29, 537), (13, 0)]) == FRAME


def test_push_walks_the_states():
    decoder = StreamDecoder()
    states = []
    for byte in FRAME[:-1]:
        assert decoder.push(byte) is None
        states.append(decoder.state)
    assert states[0] is StreamState.READING_LENGTH
    assert states[1] is StreamState.ACCUMULATING_PAYLOAD
    assert states[-1] is StreamState.READING_CHECKSUM
    assert isinstance(decoder.push(FRAME[-1]), StreamFrame)
    assert decoder.state is StreamState.SEEKING_HEADER


def test_leading_noise_is_skipped():
    decoder = StreamDecoder()
    results = decoder.feed(b"\x00\xaa\x55" + FRAME)
    assert len(results) == 1 and isinstance(results[0], StreamFrame)
    assert decoder.stats.skipped_bytes == 3


@pytest.mark.parametrize("index", range(2, 8))
def test_corrupted_byte_fails_checksum_then_resyncs(index):
    bad = bytearray(FRAME)
    bad[index] = (bad[index] + 1) & 0xFF
    errors = []
    decoder = StreamDecoder(on_error=errors.append)
    frames = list(decoder.frames(BufferSource(bytes(bad) + FRAME)))
    assert [f.pairs() for f in frames] == [[(29, 537), (13, 0)]]
    assert decoder.stats.checksum_failures == 1
    assert [e.kind for e in errors] == [ErrorKind.CHECKSUM_FAILURE]


def test_shortened_length_fails_checksum():
    bad = bytearray(FRAME)
    bad[1] = 4
    results = StreamDecoder().feed(bytes(bad) + FRAME)
    assert isinstance(results[0], FrameError)
    assert results[0].kind is ErrorKind.CHECKSUM_FAILURE
    assert isinstance(results[-1], StreamFrame)


def test_corrupted_header_is_skipped():
    bad = bytearray(FRAME)
    bad[0] = 0x12
    decoder = StreamDecoder()
    frames = list(decoder.frames(BufferSource(bytes(bad) + FRAME)))
    assert len(frames) == 1
    assert decoder.stats.checksum_failures == 0


def test_valid_checksum_but_unknown_packet_is_desync():
    payload = bytes([29, 2, 25, 60])            # 60 is not a packet
    frame = build_frame_raw(payload)
    results = StreamDecoder().feed(frame)
    assert len(results) == 1
    assert results[0].kind is ErrorKind.FRAMING_DESYNC


def test_valid_checksum_but_truncated_packet_is_desync():
    frame = build_frame_raw(bytes([29, 2]))     # packet 29 needs two bytes
    decoder = StreamDecoder()
    assert decoder.feed(frame)[0].kind is ErrorKind.FRAMING_DESYNC
    assert decoder.stats.desyncs == 1


def test_empty_frame_has_no_records():
    frame = build_frame_raw(b"")
    results = StreamDecoder().feed(frame)
    assert len(results) == 1
    assert results[0].records == ()


def test_group_packet_inside_stream():
    frame = build_stream_frame([(107, {
        "left_motor_current": -10, "right_motor_current": 12,
        "main_brush_current": 300, "side_brush_current": 40, "stasis": 1,
    }), (35, 2)])
    decoded = StreamDecoder().read_frame(BufferSource(frame))
    group = decoded.get(107)
    assert group.is_group
    assert group["left_motor_current"] == -10
    assert decoded.get(35).value == 2


def test_max_payload_rejects_insane_length():
    decoder = StreamDecoder(max_payload=10)
    results = decoder.feed(bytes([19, 200]) + FRAME)
    assert results[0].kind is ErrorKind.FRAMING_DESYNC
    assert isinstance(results[1], StreamFrame)
    assert decoder.stats.desyncs == 1


def test_max_payload_must_fit_a_byte():
    with pytest.raises(ValueError):
        StreamDecoder(max_payload=256)


def test_frames_stops_at_end_of_stream():
    frames = list(StreamDecoder().frames(BufferSource(FRAME * 3 + FRAME[:4])))
    assert len(frames) == 3


def test_reset_discards_partial_frame():
    decoder = StreamDecoder()
    decoder.feed(FRAME[:4])
    decoder.reset()
    assert decoder.state is StreamState.SEEKING_HEADER
    assert len(decoder.feed(FRAME)) == 1


def test_demultiplex_raises_desync():
    with pytest.raises(FramingDesyncError):
        demultiplex(bytes([7]))


def build_frame_raw(payload: bytes) -> bytes:
    body = bytes([19, len(payload)]) + payload
    return body + bytes([checksum(body)])


def test_stream_decoder_does_not_load_the_serial_driver():
    src = Path(__file__).resolve().parents[1] / "src"
    env = {**os.environ, "PYTHONPATH": os.pathsep.join(filter(None, [str(src), os.environ.get("PYTHONPATH")]))}
    code = (
        "import sys\n"
        "import roomba_oi.l2_oi.oi_stream\n"
        "import roomba_oi.l2_oi.oi_service\n"
        "assert 'serial' not in sys.modules, 'pyserial was imported'\n"
        "assert 'roomba_oi.l1_drivers' not in sys.modules\n"
    )
    result = subprocess.run([sys.executable, "-c", code], env=env, capture_output=True, text=True)
    assert result.returncode == 0, result.stderr
