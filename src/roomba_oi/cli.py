"""
Roomba OI CLI
=============

Offline and live tooling for the Roomba Open Interface (OI).

Offline (no robot needed):
  roomba-oi validate 89 00 c8 80 00      check a command frame
  roomba-oi decode 22 3a 98              decode one sensor packet
  roomba-oi stream 13 05 1d 02 19 0d 00 a3
  roomba-oi stream --file capture.bin    decode a captured stream

Live (serial port):
  roomba-oi send 80 83                   validate and write frames
  roomba-oi sensors 7 35                 query packets once
  roomba-oi watch 7 19 20                stream packets until idle or Ctrl-C
"""

from __future__ import annotations

import argparse
import dataclasses
import logging
from pathlib import Path
from typing import Optional, Sequence

from roomba_oi.config import LinkConfig, configure_logging, load_config
from roomba_oi.l0_core import EventBus
from roomba_oi.l0_core.errors import OIDecodeError
from roomba_oi.l0_core.events import Fault
from roomba_oi.l1_drivers.serial_port import SerialError
from roomba_oi.l2_oi.oi_decode import decode_packet
from roomba_oi.l2_oi.oi_fields import describe
from roomba_oi.l2_oi.oi_protocol import lookup_command
from roomba_oi.l2_oi.oi_service import OIService
from roomba_oi.l2_oi.oi_stream import StreamDecoder, StreamFrame
from roomba_oi.l2_oi.oi_validate import CommandRejected, check_command

log = logging.getLogger(__name__)


def parse_hex(parts: Sequence[str]) -> bytes:
    """'89 00c8' / '0x89 0x00' → bytes. Raises ValueError on bad input."""
    cleaned = [p[2:] if p.lower().startswith("0x") else p for p in parts]
    return bytes.fromhex("".join(cleaned))


def split_frames(data: bytes) -> list[bytes]:
    """
    Split concatenated command frames using the catalog lengths. The tail that
    cannot be sized (unknown opcode, missing length byte) is returned as-is.
    """
    frames = []
    at = 0
    while at < len(data):
        spec = lookup_command(data[at])
        if spec is None:
            break
        if spec.prefix is None:
            size = 1 + spec.data_bytes
        else:
            count_at = at + spec.prefix.count.offset
            if count_at >= len(data):
                break
            size = 1 + spec.prefix.data_bytes(data[count_at])
        frames.append(data[at:at + size])
        at += size
    if at < len(data):
        frames.append(data[at:])
    return frames


def _format_frame(frame: StreamFrame) -> str:
    return " ".join(f"[{r.packet_id}] {describe(r)}" for r in frame.records) or "(empty)"


# ============================================================
# Offline commands
# ============================================================

def cmd_validate(args: argparse.Namespace) -> int:
    data = parse_hex(args.hex)
    ok = True
    for frame in split_frames(data):
        check = check_command(frame)
        if check:
            print(f"OK       {frame.hex(' ')}")
        else:
            ok = False
            print(f"REJECTED {frame.hex(' ')}  {check.kind.value}: {check.detail}")
    return 0 if ok else 1


def cmd_decode(args: argparse.Namespace) -> int:
    record = decode_packet(args.packet_id, parse_hex(args.hex))
    values = record.as_dict() if args.raw else describe(record)
    for name, value in values.items():
        print(f"{name:26s} {value}")
    return 0


def cmd_stream(args: argparse.Namespace) -> int:
    if args.file:
        data = Path(args.file).read_bytes()
    else:
        data = parse_hex(args.hex)
    decoder = StreamDecoder(max_payload=args.max_payload)
    for result in decoder.feed(data):
        if isinstance(result, StreamFrame):
            print(f"frame    {_format_frame(result)}")
        else:
            print(f"dropped  {result.kind.value}: {result.detail}")
    s = decoder.stats
    print(f"frames={s.frames} checksum_failures={s.checksum_failures} "
          f"desyncs={s.desyncs} skipped_bytes={s.skipped_bytes}")
    return 0 if s.checksum_failures == 0 and s.desyncs == 0 else 1


# ============================================================
# Live commands
# ============================================================

def _link_config(args: argparse.Namespace) -> LinkConfig:
    cfg = load_config(args.config) if args.config else LinkConfig()
    overrides = {}
    if args.device:
        overrides["device"] = args.device
    if args.baud:
        overrides["baudrate"] = args.baud
    return dataclasses.replace(cfg, **overrides) if overrides else cfg


def cmd_send(args: argparse.Namespace, svc: OIService) -> int:
    for frame in split_frames(parse_hex(args.hex)):
        svc.send(frame)
        print(f"[TX] {frame.hex(' ')}")
    return 0


def cmd_sensors(args: argparse.Namespace, svc: OIService) -> int:
    for record in svc.query_list(args.packet_ids):
        print(f"[RX] Packet {record.packet_id}: {describe(record)}")
    return 0


def cmd_watch(args: argparse.Namespace, svc: OIService) -> int:
    svc.start_stream(args.packet_ids)
    try:
        for frame in svc.frames():
            print(f"[RX] {_format_frame(frame)}")
    except KeyboardInterrupt:
        pass
    finally:
        try:
            svc.pause_stream()
        except SerialError as exc:
            log.warning("Could not pause stream: %s", exc)
    s = svc.decoder.stats
    print(f"frames={s.frames} checksum_failures={s.checksum_failures} desyncs={s.desyncs}")
    return 0


def _log_fault(fault: Fault) -> None:
    log.warning("stream fault %s: %s", fault.code, fault.message)


def _run_live(args: argparse.Namespace, cfg: LinkConfig) -> int:
    bus = EventBus(capacity=cfg.bus_capacity)
    bus.subscribe("faults", _log_fault)
    svc = OIService.from_config(cfg, bus)
    svc.open()
    try:
        if args.wakeup:
            svc.port.pulse_wakeup()
        return args.live(args, svc)
    finally:
        svc.close()
        bus.drain()
        bus.close()


# ============================================================
# Entry point
# ============================================================

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="roomba-oi", description="Roomba Open Interface tool")
    parser.add_argument("--config", help="YAML or JSON link config")
    parser.add_argument("--log-level", default=None, help="Logging level (default from config)")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("validate", help="Validate command frames given as hex")
    p.add_argument("hex", nargs="+")
    p.set_defaults(func=cmd_validate)

    p = sub.add_parser("decode", help="Decode one sensor packet payload given as hex")
    p.add_argument("packet_id", type=int)
    p.add_argument("hex", nargs="+")
    p.add_argument("--raw", action="store_true", help="Print integers only")
    p.set_defaults(func=cmd_decode)

    p = sub.add_parser("stream", help="Decode stream bytes given as hex or a capture file")
    p.add_argument("hex", nargs="*")
    p.add_argument("--file", help="Binary capture of stream bytes")
    p.add_argument("--max-payload", type=int, default=None)
    p.set_defaults(func=cmd_stream)

    for name, handler, helptext in (
        ("send", cmd_send, "Validate and write command frames given as hex"),
        ("sensors", cmd_sensors, "Query sensor packets once"),
        ("watch", cmd_watch, "Stream sensor packets"),
    ):
        p = sub.add_parser(name, help=helptext)
        if name == "send":
            p.add_argument("hex", nargs="+")
        else:
            p.add_argument("packet_ids", type=int, nargs="+")
        p.add_argument("--device", help="Serial device path")
        p.add_argument("--baud", type=int, help="Baud rate")
        p.add_argument("--wakeup", action="store_true", help="Pulse BRC before sending")
        p.set_defaults(func=None, live=handler)

    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        cfg = _link_config(args) if args.func is None else (
            load_config(args.config) if args.config else LinkConfig())
    except (OSError, ValueError) as exc:
        print(f"error: {exc}")
        return 2
    configure_logging(args.log_level or cfg.log_level)

    try:
        if args.func is not None:
            return args.func(args)
        return _run_live(args, cfg)
    except CommandRejected as exc:
        print(f"REJECTED {exc}")
        return 1
    except OIDecodeError as exc:
        print(f"error: {exc.kind.value}: {exc}")
        return 1
    except SerialError as exc:
        print(f"serial error: {exc}")
        return 1
    except (OSError, ValueError) as exc:
        print(f"error: {exc}")
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
