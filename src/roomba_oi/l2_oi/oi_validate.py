"""
oi_validate.py
==============
Structural and numeric validation of outgoing OI command frames.

A frame is valid when:
- its first byte is a supported opcode,
- its length is exactly 1 + the opcode's data-byte count (for SONG, STREAM and
  QUERY_LIST the count is derived from the length byte inside the frame),
- every argument, reassembled big-endian (two's complement when signed), lies
  within its catalog domain or equals one of the domain's sentinel values.

Validation is a pure function of the input bytes: no I/O, no state.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Optional

from roomba_oi.l0_core.errors import ErrorKind
from .oi_protocol import CommandSpec, FieldDomain, lookup_command

log = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class CommandCheck:
    """
    Outcome of validating one command frame.

    ``kind`` is None when the frame is valid; otherwise it names the first
    failed check, with ``field`` set for FIELD_OUT_OF_RANGE.
    """
    ok: bool
    kind: Optional[ErrorKind] = None
    detail: str = ""
    field: Optional[str] = None
    opcode: Optional[int] = None

    def __bool__(self) -> bool:
        return self.ok


def _reject(kind: ErrorKind, detail: str, opcode: Optional[int] = None,
            field: Optional[str] = None) -> CommandCheck:
    log.debug("command rejected (%s): %s", kind.value, detail)
    return CommandCheck(False, kind, detail, field, opcode)


def _check_field(domain: FieldDomain, buffer: bytes, opcode: int, base: int = 0) -> Optional[CommandCheck]:
    value = domain.read(buffer, base)
    if domain.accepts(value):
        return None
    return _reject(
        ErrorKind.FIELD_OUT_OF_RANGE,
        f"{domain.name}={value} outside [{domain.minimum}, {domain.maximum}]",
        opcode,
        domain.name,
    )


def expected_length(spec: CommandSpec, buffer: bytes) -> Optional[int]:
    """
    Total frame length required by ``spec`` for this buffer.

    Returns None for a variable-length command whose length byte is missing.
    """
    if spec.prefix is None:
        return 1 + spec.data_bytes
    at = spec.prefix.count.offset
    if len(buffer) <= at:
        return None
    return 1 + spec.prefix.data_bytes(buffer[at])


def check_command(buffer: bytes) -> CommandCheck:
    """
    Validate ``buffer`` as one complete OI command frame.

    Returns:
        CommandCheck: ``ok`` is True only if every check passes.
    """
    if not buffer:
        return _reject(ErrorKind.UNKNOWN_OPCODE, "empty command buffer")

    opcode = buffer[0]
    spec = lookup_command(opcode)
    if spec is None:
        return _reject(ErrorKind.UNKNOWN_OPCODE, f"unsupported opcode {opcode}", opcode)

    expected = expected_length(spec, buffer)
    if expected is None:
        return _reject(
            ErrorKind.STRUCTURAL_LENGTH_MISMATCH,
            f"{spec.name} frame of {len(buffer)} bytes ends before its length byte",
            opcode,
        )
    if len(buffer) != expected:
        return _reject(
            ErrorKind.STRUCTURAL_LENGTH_MISMATCH,
            f"{spec.name} needs {expected} bytes, got {len(buffer)}",
            opcode,
        )

    for domain in spec.fields:
        failed = _check_field(domain, buffer, opcode)
        if failed is not None:
            return failed

    prefix = spec.prefix
    if prefix is not None:
        failed = _check_field(prefix.count, buffer, opcode)
        if failed is not None:
            return failed
        for i in range(buffer[prefix.count.offset]):
            base = prefix.first_item + i * prefix.item_size
            for domain in prefix.items:
                failed = _check_field(domain, buffer, opcode, base)
                if failed is not None:
                    return failed

    return CommandCheck(True, opcode=opcode)


def validate(buffer: bytes) -> bool:
    """Return True if ``buffer`` is a well-formed instance of a supported command."""
    return check_command(buffer).ok


class CommandRejected(ValueError):
    """
    Raised by the encoders and `OIService.send` when a frame fails validation.

    Attributes
    ----------
    check : CommandCheck
        The failed check, with its ErrorKind and offending field.
    """

    def __init__(self, check: CommandCheck) -> None:
        kind = check.kind.value if check.kind else "invalid"
        super().__init__(f"{kind}: {check.detail}")
        self.check = check

    @property
    def kind(self) -> Optional[ErrorKind]:
        return self.check.kind


def require_valid(buffer: bytes) -> bytes:
    """Return ``buffer`` unchanged if it validates, otherwise raise CommandRejected."""
    check = check_command(buffer)
    if not check:
        raise CommandRejected(check)
    return bytes(buffer)
