"""Command frame builder and response classifier.

Frame layout::

    +---------------------------+----------+
    |       Opcode bytes        | Checksum |
    |      variable length      |  1 byte  |
    +---------------------------+----------+

- Checksum: two's complement of the byte sum, so that the sum of every
  byte in the frame (checksum included) is 0 modulo 256.

Responses are not framed the same way. They are classified by their
leading bytes against a set of :class:`ResponsePattern` rules.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


@dataclass(frozen=True)
class CommandFrame:
    """An outgoing request: opcode bytes followed by the checksum byte."""

    data: bytes

    @property
    def opcode(self) -> bytes:
        return self.data[:-1]

    @property
    def checksum(self) -> int:
        return self.data[-1]

    def __bytes__(self) -> bytes:
        return self.data

    def __len__(self) -> int:
        return len(self.data)

    def __repr__(self) -> str:
        return f"CommandFrame({self.data.hex(' ')})"


class Classification(Enum):
    """Outcome of matching a response against its patterns."""

    ACK = "ack"
    NAK = "nak"
    UNRECOGNIZED = "unrecognized"
    INCOMPLETE = "incomplete"


@dataclass(frozen=True)
class ResponsePattern:
    """A response rule: a minimum length plus fixed bytes at fixed offsets.

    Offsets not listed in ``expected`` are wildcards.
    """

    kind: Classification
    min_length: int
    expected: tuple[tuple[int, int], ...] = ()

    @classmethod
    def header(cls, kind: Classification, header: bytes, min_length: int) -> ResponsePattern:
        """Build a pattern matching ``header`` at offset 0."""
        return cls(
            kind=kind,
            min_length=min_length,
            expected=tuple(enumerate(header)),
        )

    def matches(self, response: bytes) -> bool:
        if len(response) < self.min_length:
            return False
        return self.consistent_with(response)

    def consistent_with(self, response: bytes) -> bool:
        """True if no received byte contradicts the pattern."""
        return all(
            response[offset] == value
            for offset, value in self.expected
            if offset < len(response)
        )


def checksum(data: bytes) -> int:
    """Return the byte that brings ``sum(data)`` to 0 modulo 256."""
    return (256 - (sum(data) % 256)) % 256


def build_frame(opcode: bytes) -> CommandFrame:
    """Append the checksum byte to ``opcode`` bytes.

    Args:
        opcode: Request bytes without the checksum.

    Returns:
        An immutable ``CommandFrame`` ready to transmit.

    Raises:
        ValueError: If ``opcode`` is empty.
    """
    opcode = bytes(opcode)
    if not opcode:
        raise ValueError("Opcode must contain at least one byte")
    return CommandFrame(opcode + bytes([checksum(opcode)]))


def verify_checksum(frame: bytes | CommandFrame) -> bool:
    """Check the sum invariant for a complete frame."""
    data = bytes(frame)
    return len(data) > 0 and sum(data) % 256 == 0


def classify(response: bytes, *patterns: ResponsePattern) -> Classification:
    """Classify ``response`` against ``patterns`` in order.

    The first fully matching pattern wins. If none match but some pattern
    is only missing bytes (every received byte agrees with it), the
    response is ``INCOMPLETE``: the read most likely woke up early. An
    empty response is always ``INCOMPLETE``.
    """
    response = bytes(response)
    if not response:
        return Classification.INCOMPLETE

    for pattern in patterns:
        if pattern.matches(response):
            return pattern.kind

    for pattern in patterns:
        if len(response) < pattern.min_length and pattern.consistent_with(response):
            return Classification.INCOMPLETE

    return Classification.UNRECOGNIZED
