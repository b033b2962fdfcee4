"""Transport interface consumed by the session driver."""

from __future__ import annotations

from typing import Protocol, runtime_checkable


class TransportError(IOError):
    """The channel to the device failed; no protocol retry can fix it."""


@runtime_checkable
class TransportPort(Protocol):
    """Anything that can send a frame and read back a bounded answer.

    :class:`~device_identity_mcp.transport.serial_connection.SerialConnection`
    implements it over pyserial; tests use in-memory fakes.
    """

    def transmit(self, frame: bytes) -> int:
        """Write ``frame`` and return the number of bytes written.

        Raises:
            TransportError: If the write fails.
        """
        ...

    def receive(self, max_bytes: int, timeout_ms: int) -> tuple[int, bytes]:
        """Read up to ``max_bytes`` within ``timeout_ms``.

        A timeout with zero or partial bytes is not an error; whatever
        arrived is returned.

        Raises:
            TransportError: If the read fails.
        """
        ...
