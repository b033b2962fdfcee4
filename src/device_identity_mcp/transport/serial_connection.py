"""Serial connection to the identity-reporting device.

The device talks 8N1 at 19200 baud. Each request is written in one go and
the answer is read back with a per-call timeout; a short answer is handed
to the protocol layer as-is.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import serial

from .. import config
from .port import TransportError

logger = logging.getLogger(__name__)


@dataclass
class PortInfo:
    """Settings of the opened serial port."""

    port: str = ""
    baudrate: int = config.BAUDRATE
    timeout_ms: int = config.TIMEOUT_MS


class SerialConnection:
    """Manages the serial link to the device.

    Usage::

        conn = SerialConnection("/dev/ttyUSB0")
        conn.open()
        conn.transmit(frame_bytes)
        count, data = conn.receive(12, 1000)
        conn.close()
    """

    def __init__(
        self,
        port: str = config.PORT,
        baudrate: int = config.BAUDRATE,
        timeout_ms: int = config.TIMEOUT_MS,
    ) -> None:
        self._info = PortInfo(port=port, baudrate=baudrate, timeout_ms=timeout_ms)
        self._serial: serial.Serial | None = None

    @property
    def connected(self) -> bool:
        return self._serial is not None and self._serial.is_open

    @property
    def info(self) -> PortInfo:
        return self._info

    def open(self) -> PortInfo:
        """Open the serial port.

        Raises:
            ConnectionError: If the port cannot be opened.
        """
        if self.connected:
            return self._info

        try:
            self._serial = serial.Serial(
                port=self._info.port,
                baudrate=self._info.baudrate,
                bytesize=serial.EIGHTBITS,
                parity=serial.PARITY_NONE,
                stopbits=serial.STOPBITS_ONE,
                timeout=self._info.timeout_ms / 1000,
            )
        except serial.SerialException as e:
            raise ConnectionError(
                f"Could not open serial port {self._info.port!r} "
                f"at {self._info.baudrate} baud. "
                f"Ensure the device is connected and you have permissions. "
                f"Last error: {e}"
            ) from e

        logger.info("Opened %s at %d baud", self._info.port, self._info.baudrate)
        return self._info

    def close(self) -> None:
        """Close the serial port."""
        if self._serial is None:
            return

        try:
            self._serial.close()
        except serial.SerialException as e:
            logger.warning("Error closing port: %s", e)
        finally:
            self._serial = None
            logger.info("Disconnected")

    def __enter__(self) -> SerialConnection:
        self.open()
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _port(self) -> serial.Serial:
        if not self.connected:
            raise TransportError(f"Serial port {self._info.port!r} is not open")
        return self._serial

    def transmit(self, frame: bytes) -> int:
        """Write a complete command frame.

        Returns:
            Number of bytes written.

        Raises:
            TransportError: If not connected or the write fails.
        """
        port = self._port()
        try:
            written = port.write(bytes(frame))
            port.flush()
        except serial.SerialException as e:
            raise TransportError(f"Write to {self._info.port!r} failed: {e}") from e
        return written or 0

    def receive(self, max_bytes: int, timeout_ms: int | None = None) -> tuple[int, bytes]:
        """Read up to ``max_bytes`` from the device.

        Args:
            max_bytes: Expected answer length.
            timeout_ms: Read timeout; defaults to the port's configured one.

        Returns:
            ``(count, data)``; ``data`` may be shorter than ``max_bytes``
            or empty if the timeout expired first.

        Raises:
            TransportError: If not connected or the read fails.
        """
        port = self._port()
        if timeout_ms is None:
            timeout_ms = self._info.timeout_ms
        try:
            port.timeout = timeout_ms / 1000
            data = bytes(port.read(max_bytes))
        except serial.SerialException as e:
            raise TransportError(f"Read from {self._info.port!r} failed: {e}") from e
        return len(data), data
