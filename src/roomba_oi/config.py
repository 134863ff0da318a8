from __future__ import annotations
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Mapping, Optional
import json
import logging

import yaml

from roomba_oi.l2_oi.oi_protocol import BAUD_RATES, DEFAULT_BAUD_RATE

LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"


@dataclass(frozen=True, slots=True)
class LinkConfig:
    """
    Immutable settings for one serial link to the robot.

    Fields
    ------
    device : str
        Serial device path.
    baudrate : int
        One of the OI baud rates (115200 after a power cycle).
    timeout : float
        pyserial read timeout in seconds.
    idle_timeout : float | None
        Stop reading a stream after this many silent seconds; None waits forever.
    inter_command_delay : float
        Pause after each written command, in seconds.
    max_payload : int | None
        Stream length bytes above this are treated as a desync.
    bus_capacity : int
        EventBus queue size.
    log_level : str
        Root logging level name.
    """
    device: str = "/dev/ttyUSB0"
    baudrate: int = DEFAULT_BAUD_RATE
    timeout: float = 0.05
    idle_timeout: Optional[float] = None
    inter_command_delay: float = 0.02
    max_payload: Optional[int] = None
    bus_capacity: int = 1024
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        if self.baudrate not in BAUD_RATES.values():
            raise ValueError(f"baudrate {self.baudrate} is not an OI baud rate")
        if self.timeout <= 0:
            raise ValueError("timeout must be positive")
        if self.idle_timeout is not None and self.idle_timeout <= 0:
            raise ValueError("idle_timeout must be positive")
        if self.inter_command_delay < 0:
            raise ValueError("inter_command_delay must not be negative")
        if self.max_payload is not None and not 0 <= self.max_payload <= 255:
            raise ValueError("max_payload must be within 0..255")
        if self.bus_capacity < 1:
            raise ValueError("bus_capacity must be at least 1")
        if not isinstance(logging.getLevelName(self.log_level.upper()), int):
            raise ValueError(f"unknown log level {self.log_level!r}")


_COERCE = {
    "device": str,
    "baudrate": int,
    "timeout": float,
    "idle_timeout": float,
    "inter_command_delay": float,
    "max_payload": int,
    "bus_capacity": int,
    "log_level": str,
}


def config_from_mapping(data: Mapping[str, Any]) -> LinkConfig:
    """Build a LinkConfig from a plain mapping; unknown keys raise ValueError."""
    known = {f.name for f in fields(LinkConfig)}
    unknown = set(data) - known
    if unknown:
        raise ValueError(f"unknown config keys: {sorted(unknown)}")
    kwargs = {}
    for key, value in data.items():
        try:
            kwargs[key] = None if value is None else _COERCE[key](value)
        except (TypeError, ValueError) as exc:
            raise ValueError(f"bad value for {key}: {value!r}") from exc
    return LinkConfig(**kwargs)


def load_config(path: str | Path) -> LinkConfig:
    """
    Load link config from a YAML or JSON file.

    Supported shapes:
      YAML:
        device: /dev/ttyUSB0
        baudrate: 115200
        max_payload: 80

      JSON:
        {"device": "/dev/ttyUSB0", "baudrate": 115200}

    A top-level ``link:`` section is also accepted.

    Raises FileNotFoundError / ValueError on bad input.
    """
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(p)

    text = p.read_text(encoding="utf-8")
    data: Any
    if p.suffix.lower() in {".yml", ".yaml"}:
        try:
            data = yaml.safe_load(text) or {}
        except yaml.YAMLError as exc:
            raise ValueError(f"invalid YAML in {p}: {exc}") from exc
    else:
        try:
            data = json.loads(text or "{}")
        except json.JSONDecodeError as exc:
            raise ValueError(f"invalid JSON in {p}: {exc}") from exc

    if not isinstance(data, dict):
        raise ValueError(f"{p} must contain a mapping")
    if isinstance(data.get("link"), dict):
        data = data["link"]
    return config_from_mapping(data)


def configure_logging(level: str | int = "INFO") -> None:
    """Configure root logging the way the CLI uses it."""
    if isinstance(level, str):
        level = level.upper()
    logging.basicConfig(level=level, format=LOG_FORMAT)
