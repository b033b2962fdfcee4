"""Tests for frame building, the checksum rule and response classification."""

import pytest

from device_identity_mcp.protocol.framing import (
    Classification,
    CommandFrame,
    ResponsePattern,
    build_frame,
    checksum,
    classify,
    verify_checksum,
)
from device_identity_mcp.protocol.states import FRAMES


def test_checksum_empty():
    """Nothing to balance: the checksum of no bytes is 0."""
    assert checksum(b"") == 0


def test_checksum_wraps():
    """A sum that is already a multiple of 256 needs a zero checksum."""
    assert checksum(bytes([0x80, 0x80])) == 0


def test_build_frame_appends_checksum():
    """GetInterval frame: 10 02 02 FF sums to 0x113, checksum 0xED."""
    frame = build_frame(bytes([0x10, 0x02, 0x02, 0xFF]))
    assert frame.data == bytes([0x10, 0x02, 0x02, 0xFF, 0xED])
    assert frame.opcode == bytes([0x10, 0x02, 0x02, 0xFF])
    assert frame.checksum == 0xED
    assert len(frame) == 5


def test_build_frame_halt_stream():
    """The deployed stop-stream frame 10 01 19 D6 is reproduced."""
    assert bytes(build_frame(bytes([0x10, 0x01, 0x19]))) == bytes([0x10, 0x01, 0x19, 0xD6])


def test_build_frame_rejects_empty():
    with pytest.raises(ValueError):
        build_frame(b"")


def test_build_frame_rejects_out_of_range():
    """Opcode values outside 0-255 cannot form a byte frame."""
    with pytest.raises(ValueError):
        build_frame([0x10, 0x100])


def test_every_frame_sums_to_zero():
    """Every pipeline frame satisfies sum(frame) mod 256 == 0."""
    for state, frame in FRAMES.items():
        assert sum(frame.data) % 256 == 0, state
        assert verify_checksum(frame)


def test_arbitrary_opcodes_sum_to_zero():
    for opcode in (b"\x00", b"\xff", b"\xff\xff\xff", bytes(range(40))):
        assert sum(bytes(build_frame(opcode))) % 256 == 0


def test_verify_checksum_detects_corruption():
    frame = bytearray(build_frame(bytes([0x10, 0x0A, 0x0A])).data)
    frame[-1] ^= 0x01
    assert not verify_checksum(bytes(frame))


def test_verify_checksum_empty():
    assert not verify_checksum(b"")


def test_frame_is_immutable():
    frame = build_frame(b"\x10\x01")
    with pytest.raises(AttributeError):
        frame.data = b"\x00"


def test_frame_repr():
    r = repr(CommandFrame(bytes([0x10, 0xF0])))
    assert "10 f0" in r


ACK = ResponsePattern.header(Classification.ACK, bytes([0x06, 0x0A, 0x14]), 12)
NAK = ResponsePattern.header(Classification.NAK, bytes([0x15, 0x0A, 0x01]), 3)


def test_classify_ack():
    response = bytes([0x06, 0x0A, 0x14]) + bytes(9)
    assert classify(response, NAK, ACK) is Classification.ACK


def test_classify_nak():
    assert classify(bytes([0x15, 0x0A, 0x01]), NAK, ACK) is Classification.NAK


def test_classify_empty_is_incomplete():
    assert classify(b"", NAK, ACK) is Classification.INCOMPLETE


def test_classify_partial_ack_is_incomplete():
    """A correct header with missing payload is a short read, not a mismatch."""
    assert classify(bytes([0x06, 0x0A, 0x14, 0x41]), NAK, ACK) is Classification.INCOMPLETE


def test_classify_partial_header_is_incomplete():
    assert classify(bytes([0x15, 0x0A]), NAK, ACK) is Classification.INCOMPLETE


def test_classify_mismatch_is_unrecognized():
    assert classify(bytes([0x06, 0x0B, 0x14]) + bytes(9), NAK, ACK) is Classification.UNRECOGNIZED


def test_classify_short_mismatch_is_unrecognized():
    """A short read that already contradicts every pattern is a mismatch."""
    assert classify(bytes([0x99]), NAK, ACK) is Classification.UNRECOGNIZED


def test_wildcard_offsets():
    """Offsets not listed in the pattern accept any byte."""
    pattern = ResponsePattern(Classification.ACK, 3, ((0, 0x06), (2, 0x14)))
    assert pattern.matches(bytes([0x06, 0xEE, 0x14]))
    assert not pattern.matches(bytes([0x06, 0xEE, 0x15]))


def test_pattern_without_constraints_accepts_any_byte():
    anything = ResponsePattern(Classification.ACK, 1)
    assert classify(b"\x42", anything) is Classification.ACK
    assert classify(b"", anything) is Classification.INCOMPLETE
