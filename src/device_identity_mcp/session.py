"""Session driver: one transmit/receive/transition cycle per tick.

The driver owns the transport port and the single current
:class:`~device_identity_mcp.protocol.states.ProtocolState`. It never
retries on its own; a retry is a self-transition chosen by
:func:`~device_identity_mcp.protocol.states.decide`.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Callable

from . import config
from .models.identity import DeviceIdentity
from .protocol.framing import Classification, CommandFrame, classify
from .protocol.parser import IDENTITY_FIELDS, parse_identity_field
from .protocol.states import (
    Outcome,
    ProtocolState,
    command_frame,
    decide,
    response_length,
    response_patterns,
)
from .transport.port import TransportPort

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TickResult:
    """Everything that happened during one tick."""

    state: ProtocolState
    next_state: ProtocolState
    outcome: Outcome
    classification: Classification
    sent: CommandFrame
    received: bytes

    @property
    def changed(self) -> bool:
        return self.next_state is not self.state

    def to_dict(self) -> dict:
        return {
            "state": str(self.state),
            "next_state": str(self.next_state),
            "outcome": self.outcome.value,
            "classification": self.classification.value,
            "sent": bytes(self.sent).hex(" "),
            "received": self.received.hex(" "),
        }


class SessionDriver:
    """Drives the identity query pipeline over an exclusively owned port.

    Usage::

        driver = SessionDriver(conn)
        while not driver.complete:
            driver.tick()
        print(driver.identity.to_dict())
    """

    def __init__(
        self,
        port: TransportPort,
        timeout_ms: int = config.TIMEOUT_MS,
        initial_state: ProtocolState = ProtocolState.HALT_STREAM,
    ) -> None:
        self._port = port
        self._timeout_ms = timeout_ms
        self._state = initial_state
        self._identity = DeviceIdentity()
        self._complete = False
        self._ticks = 0
        self._resets = 0
        self._busy = threading.Lock()

    @property
    def state(self) -> ProtocolState:
        return self._state

    @property
    def identity(self) -> DeviceIdentity:
        return self._identity

    @property
    def complete(self) -> bool:
        """True once PartNumber has been acknowledged."""
        return self._complete

    @property
    def ticks(self) -> int:
        return self._ticks

    @property
    def resets(self) -> int:
        """Number of NAK-triggered restarts from HaltStream."""
        return self._resets

    def tick(self) -> TickResult:
        """Run one full request/response cycle and apply the transition.

        Raises:
            TransportError: If the port fails; the state is left unchanged.
            RuntimeError: If called while another tick is in flight.
        """
        if not self._busy.acquire(blocking=False):
            raise RuntimeError("A tick is already in progress on this session")
        try:
            return self._tick()
        finally:
            self._busy.release()

    def _tick(self) -> TickResult:
        state = self._state
        frame = command_frame(state)

        logger.debug("%s -> %s", state, frame.data.hex(" "))
        self._port.transmit(frame.data)
        count, received = self._port.receive(response_length(state), self._timeout_ms)
        received = bytes(received[:count])
        logger.debug("%s <- %s", state, received.hex(" ") or "(nothing)")

        classification = classify(received, *response_patterns(state))
        transition = decide(state, classification)
        self._ticks += 1

        self._log_response(state, classification, received)
        self._apply(state, transition.next_state, transition.outcome, received)

        return TickResult(
            state=state,
            next_state=transition.next_state,
            outcome=transition.outcome,
            classification=classification,
            sent=frame,
            received=received,
        )

    def _log_response(
        self,
        state: ProtocolState,
        classification: Classification,
        received: bytes,
    ) -> None:
        if classification is Classification.INCOMPLETE:
            # a silent HaltStream just means the stream is still draining
            level = logging.DEBUG if state is ProtocolState.HALT_STREAM else logging.WARNING
            logger.log(
                level,
                "%s: short read, %d of %d bytes",
                state,
                len(received),
                response_length(state),
            )
        elif classification is Classification.UNRECOGNIZED:
            logger.warning("%s: unrecognized response %s", state, received.hex(" "))
        elif classification is Classification.NAK:
            logger.warning("%s: device answered NAK", state)

    def _apply(
        self,
        state: ProtocolState,
        next_state: ProtocolState,
        outcome: Outcome,
        received: bytes,
    ) -> None:
        if outcome in (Outcome.ADVANCE, Outcome.COMPLETE) and state in IDENTITY_FIELDS:
            value = parse_identity_field(state, received)
            if value is not None:
                self._identity.set(IDENTITY_FIELDS[state], value)

        if outcome is Outcome.COMPLETE:
            if not self._complete:
                logger.info("Identity pipeline complete at %s", state)
            self._complete = True
        elif outcome is Outcome.RESET:
            self._resets += 1
            logger.warning("Reset to %s (reset #%d)", next_state, self._resets)

        if next_state is not state:
            self.transition_to(next_state)

    def transition_to(self, state: ProtocolState) -> None:
        """Make ``state`` current. Moving to HaltStream starts a fresh pipeline."""
        logger.info("Transition to %s", state)
        if state is ProtocolState.HALT_STREAM:
            self._identity.clear()
            self._complete = False
        self._state = state

    def reset(self) -> None:
        """Restart the pipeline from HaltStream without touching the port."""
        self.transition_to(ProtocolState.HALT_STREAM)

    def status(self) -> dict:
        return {
            "state": str(self._state),
            "complete": self._complete,
            "ticks": self._ticks,
            "resets": self._resets,
        }


def run(
    driver: SessionDriver,
    max_ticks: int | None = None,
    stop_when_complete: bool = False,
    stop_event: threading.Event | None = None,
    on_tick: Callable[[TickResult], None] | None = None,
) -> int:
    """Tick ``driver`` repeatedly.

    Stops after ``max_ticks`` ticks, once the pipeline completes if
    ``stop_when_complete`` is set, or when ``stop_event`` is set. Without
    any of these it runs until interrupted. Transport errors propagate.

    Returns:
        Number of ticks run.
    """
    ticks = 0
    while max_ticks is None or ticks < max_ticks:
        if stop_event is not None and stop_event.is_set():
            break
        result = driver.tick()
        ticks += 1
        if on_tick is not None:
            on_tick(result)
        if stop_when_complete and driver.complete:
            break
    return ticks
