"""
roomba_oi.l2_oi
Open Interface protocol layer: catalogs, command validation and encoding,
sensor decoding, the stream decoder and the service facade.
"""

from .oi_protocol import Opcode, PacketId, BaudCode, lookup_command, lookup_packet, packet_length  # noqa: F401
from .oi_validate import CommandCheck, CommandRejected, check_command, validate  # noqa: F401
from .oi_decode import SensorRecord, decode_packet, decode_query_list, encode_packet  # noqa: F401
from .oi_stream import (  # noqa: F401
    StreamDecoder, StreamFrame, StreamState, StreamStats, FrameError, build_stream_frame,
)
from .oi_fields import describe, expand_bits, pack_bits  # noqa: F401
from .oi_service import OIService  # noqa: F401

__all__ = [
    "Opcode", "PacketId", "BaudCode", "lookup_command", "lookup_packet", "packet_length",
    "CommandCheck", "CommandRejected", "check_command", "validate",
    "SensorRecord", "decode_packet", "decode_query_list", "encode_packet",
    "StreamDecoder", "StreamFrame", "StreamState", "StreamStats", "FrameError",
    "build_stream_frame",
    "describe", "expand_bits", "pack_bits",
    "OIService",
]
