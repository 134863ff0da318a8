from __future__ import annotations

from enum import Enum
import time
from dataclasses import dataclass
from typing import Mapping, Union

Number = Union[int, float]
Value = Union[Number, bool, str]


class Severity(str, Enum):
    INFO = "info"
    WARN = "warn"
    ERROR = "error"
    CRITICAL = "critical"


def now_ms() -> int:
    """Gives a steady (monotonic) clock for event timing in milliseconds
        for timestamps in logs/events (steady, not wall-clock).
    """
    return time.monotonic_ns() // 1_000_000


@dataclass(frozen=True, slots=True)
class SensorUpdate:
    """
    Immutable sensor event produced by the RX/decoder path.

    Fields:
      - timestamp_millis: monotonic timestamp in milliseconds (use now_ms())
      - packet_id: Open Interface packet id (leaf or group)
      - source: "query" for SENSORS/QUERY_LIST replies, "stream" for stream frames
      - fields: decoded field name -> integer value
    """
    timestamp_millis: int
    packet_id: int
    source: str
    fields: Mapping[str, Value]


@dataclass(frozen=True, slots=True)
class Fault:
    """
    Immutable fault record used for reporting errors with a severity level.
    Example:
      Fault(timestamp_millis=..., severity=Severity.WARN, code="checksum_failure",
            message="stream frame dropped", context={"length": 5})
    """
    timestamp_millis: int
    severity: Severity
    code: str               # stable programmatic code (ErrorKind value)
    message: str            # human-readable explanation
    context: Mapping[str, Value]  # small scalar extras (never mutate)
