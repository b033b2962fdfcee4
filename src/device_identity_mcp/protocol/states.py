"""Protocol states of the identity query pipeline and their transitions.

The pipeline is a fixed linear chain::

    HaltStream -> GetInterval -> VendorCode -> SerialNumber
        -> HardwareRevision -> SoftwareRevision -> ProductName -> PartNumber

with three kinds of back-edge:

- GetInterval remains in place until byte 0 of the answer is ACK (0x06).
- VendorCode retries itself on anything but its vendor acknowledgement.
- Every component query (SerialNumber..PartNumber) resets the whole
  pipeline to HaltStream on an explicit NAK header.

Each state is a plain enum member. What it sends, how much it reads and
how the answer is judged live in the tables below; :func:`decide` is the
single place where the next state is chosen.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from .framing import Classification, CommandFrame, ResponsePattern, build_frame

ACK = 0x06
ACK_HEADER = bytes([0x06, 0x0A, 0x14])
NAK_HEADER = bytes([0x15, 0x0A, 0x01])
VENDOR_ACK_HEADER = bytes([0x5B, 0x06, 0x0A, 0x14])

COMPONENT_RESPONSE_LENGTH = 12
VENDOR_RESPONSE_LENGTH = 23

# Transmit Device Component Information, followed by the component index
COMPONENT_QUERY_PREFIX = bytes([0x10, 0x0A, 0x0A]) + bytes(7)


class ProtocolState(Enum):
    """Pipeline steps, in order."""

    HALT_STREAM = "HaltStream"
    GET_INTERVAL = "GetInterval"
    VENDOR_CODE = "VendorCode"
    SERIAL_NUMBER = "SerialNumber"
    HARDWARE_REVISION = "HardwareRevision"
    SOFTWARE_REVISION = "SoftwareRevision"
    PRODUCT_NAME = "ProductName"
    PART_NUMBER = "PartNumber"

    def __str__(self) -> str:
        return self.value


class Outcome(Enum):
    """What a transition did to the pipeline."""

    ADVANCE = "advance"
    REMAIN = "remain"
    RETRY = "retry"
    RESET = "reset"
    COMPLETE = "complete"


@dataclass(frozen=True)
class Transition:
    """The decision taken after classifying one response."""

    next_state: ProtocolState
    outcome: Outcome


PIPELINE: tuple[ProtocolState, ...] = tuple(ProtocolState)

COMPONENT_QUERIES: tuple[ProtocolState, ...] = (
    ProtocolState.SERIAL_NUMBER,
    ProtocolState.HARDWARE_REVISION,
    ProtocolState.SOFTWARE_REVISION,
    ProtocolState.PRODUCT_NAME,
    ProtocolState.PART_NUMBER,
)

# Component index sent as the last opcode byte of each identity query
COMPONENT_INDEX: dict[ProtocolState, int] = {
    ProtocolState.VENDOR_CODE: 0x00,
    ProtocolState.SERIAL_NUMBER: 0x01,
    ProtocolState.HARDWARE_REVISION: 0x02,
    ProtocolState.SOFTWARE_REVISION: 0x03,
    ProtocolState.PRODUCT_NAME: 0x04,
    ProtocolState.PART_NUMBER: 0x05,
}

OPCODES: dict[ProtocolState, bytes] = {
    ProtocolState.HALT_STREAM: bytes([0x10, 0x01, 0x19]),
    ProtocolState.GET_INTERVAL: bytes([0x10, 0x02, 0x02, 0xFF]),
    **{
        state: COMPONENT_QUERY_PREFIX + bytes([index])
        for state, index in COMPONENT_INDEX.items()
    },
}

FRAMES: dict[ProtocolState, CommandFrame] = {
    state: build_frame(opcode) for state, opcode in OPCODES.items()
}

RESPONSE_LENGTHS: dict[ProtocolState, int] = {
    ProtocolState.HALT_STREAM: len(FRAMES[ProtocolState.HALT_STREAM]),
    ProtocolState.GET_INTERVAL: len(FRAMES[ProtocolState.GET_INTERVAL]),
    ProtocolState.VENDOR_CODE: VENDOR_RESPONSE_LENGTH,
    **{state: COMPONENT_RESPONSE_LENGTH for state in COMPONENT_QUERIES},
}

_COMPONENT_PATTERNS = (
    ResponsePattern.header(Classification.NAK, NAK_HEADER, len(NAK_HEADER)),
    ResponsePattern.header(Classification.ACK, ACK_HEADER, COMPONENT_RESPONSE_LENGTH),
)

PATTERNS: dict[ProtocolState, tuple[ResponsePattern, ...]] = {
    # Any byte at all means the stream stopped talking over us.
    ProtocolState.HALT_STREAM: (ResponsePattern(Classification.ACK, 1),),
    ProtocolState.GET_INTERVAL: (ResponsePattern(Classification.ACK, 1, ((0, ACK),)),),
    ProtocolState.VENDOR_CODE: (
        ResponsePattern.header(Classification.ACK, VENDOR_ACK_HEADER, VENDOR_RESPONSE_LENGTH),
        ResponsePattern.header(Classification.ACK, ACK_HEADER, COMPONENT_RESPONSE_LENGTH),
    ),
    **{state: _COMPONENT_PATTERNS for state in COMPONENT_QUERIES},
}


def command_frame(state: ProtocolState) -> CommandFrame:
    """Return the frame ``state`` transmits."""
    return FRAMES[state]


def response_length(state: ProtocolState) -> int:
    """Return how many bytes ``state`` reads back."""
    return RESPONSE_LENGTHS[state]


def response_patterns(state: ProtocolState) -> tuple[ResponsePattern, ...]:
    return PATTERNS[state]


def next_in_pipeline(state: ProtocolState) -> ProtocolState:
    """Return the step after ``state``; PartNumber has no successor."""
    index = PIPELINE.index(state)
    if index + 1 >= len(PIPELINE):
        raise ValueError(f"{state} is the last step of the pipeline")
    return PIPELINE[index + 1]


def decide(state: ProtocolState, classification: Classification) -> Transition:
    """Map a classified response at ``state`` to the next transition.

    Only an explicit NAK from a component query resets the pipeline. Short
    reads and unrecognised answers keep the current step so that it is
    asked again on the next tick.
    """
    if state is ProtocolState.HALT_STREAM or state is ProtocolState.GET_INTERVAL:
        if classification is Classification.ACK:
            return Transition(next_in_pipeline(state), Outcome.ADVANCE)
        return Transition(state, Outcome.REMAIN)

    if state is ProtocolState.VENDOR_CODE:
        if classification is Classification.ACK:
            return Transition(next_in_pipeline(state), Outcome.ADVANCE)
        return Transition(state, Outcome.RETRY)

    if classification is Classification.NAK:
        return Transition(ProtocolState.HALT_STREAM, Outcome.RESET)
    if classification is Classification.ACK:
        if state is ProtocolState.PART_NUMBER:
            return Transition(state, Outcome.COMPLETE)
        return Transition(next_in_pipeline(state), Outcome.ADVANCE)
    return Transition(state, Outcome.REMAIN)
