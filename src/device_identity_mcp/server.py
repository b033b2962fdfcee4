"""MCP server entry point for the device identity probe.

Exposes the query pipeline as tools, resources, and prompts via the Model
Context Protocol using the official Python MCP SDK with stdio transport.
"""

from __future__ import annotations

import json
import logging
import threading
from typing import Any

from mcp.server.fastmcp import FastMCP

from . import config
from .protocol.states import (
    PIPELINE,
    command_frame,
    response_length,
)
from .session import SessionDriver, TickResult, run
from .transport.serial_connection import SerialConnection

logger = logging.getLogger(__name__)

mcp = FastMCP(
    "device-identity",
    instructions=(
        "Reads vendor code, serial number, hardware/software revision, "
        "product name and part number from a serial-attached device."
    ),
)

# Global connection state
_connection: SerialConnection | None = None
_driver: SessionDriver | None = None
# one request/response cycle at a time on the shared port
_lock = threading.Lock()


def _get_driver() -> SessionDriver:
    """Get the active session, raising if not connected."""
    if _connection is None or not _connection.connected or _driver is None:
        raise RuntimeError(
            "Not connected to device. Use the 'connect' tool first."
        )
    return _driver


# ─── CONNECTION TOOLS ─────────────────────────────────────────────────

@mcp.tool()
def connect(port: str | None = None) -> dict[str, Any]:
    """Open the serial port and start a session at HaltStream.

    Args:
        port: Serial device path. Defaults to DEVICE_IDENTITY_PORT.
    """
    global _connection, _driver
    if _connection is not None and _connection.connected:
        return {
            "connected": True,
            "message": "Already connected",
            "port": _connection.info.port,
        }

    _connection = SerialConnection(port or config.PORT, config.BAUDRATE, config.TIMEOUT_MS)
    info = _connection.open()
    _driver = SessionDriver(_connection, timeout_ms=info.timeout_ms)

    return {
        "connected": True,
        "port": info.port,
        "baudrate": info.baudrate,
        "state": str(_driver.state),
    }


@mcp.tool()
def disconnect() -> dict[str, bool]:
    """Close the serial port and drop the session."""
    global _connection, _driver
    if _connection is None:
        return {"disconnected": True}
    with _lock:
        _connection.close()
        _connection = None
        _driver = None
    return {"disconnected": True}


# ─── SESSION TOOLS ────────────────────────────────────────────────────

@mcp.tool()
def tick() -> dict[str, Any]:
    """Run one request/response cycle of the identity pipeline."""
    driver = _get_driver()
    with _lock:
        result = driver.tick()
    return result.to_dict()


@mcp.tool()
def run_pipeline(max_ticks: int | None = None) -> dict[str, Any]:
    """Tick until the identity pipeline completes or the tick budget runs out.

    Args:
        max_ticks: Tick budget (default DEVICE_IDENTITY_MAX_TICKS).
    """
    if max_ticks is None:
        max_ticks = config.MAX_TICKS
    if max_ticks < 1:
        return {"error": "max_ticks must be at least 1"}

    driver = _get_driver()
    transitions: list[str] = []

    def record(result: TickResult) -> None:
        if result.changed:
            transitions.append(str(result.next_state))

    with _lock:
        ticks = run(driver, max_ticks=max_ticks, stop_when_complete=True, on_tick=record)

    return {
        "complete": driver.complete,
        "ticks": ticks,
        "transitions": transitions,
        "status": driver.status(),
        "identity": driver.identity.to_dict(),
    }


@mcp.tool()
def reset_session() -> dict[str, Any]:
    """Restart the pipeline from HaltStream and forget the identity read so far."""
    driver = _get_driver()
    with _lock:
        driver.reset()
    return driver.status()


@mcp.tool()
def get_session_status() -> dict[str, Any]:
    """Current state, completion flag, tick and reset counters."""
    return _get_driver().status()


@mcp.tool()
def get_identity() -> dict[str, Any]:
    """Identity fields collected so far."""
    return _get_driver().identity.to_dict()


@mcp.tool()
def get_command_table() -> dict[str, Any]:
    """List the frame each pipeline step sends and how many bytes it reads."""
    return {"commands": _command_table()}


def _command_table() -> list[dict[str, Any]]:
    return [
        {
            "state": str(state),
            "frame": command_frame(state).data.hex(" "),
            "response_length": response_length(state),
        }
        for state in PIPELINE
    ]


# ─── MCP RESOURCES ───────────────────────────────────────────────────

@mcp.resource("devident://session/state")
def resource_session_state() -> str:
    """Session status."""
    if _driver is None:
        return json.dumps({"connected": False})
    status = _driver.status()
    status["connected"] = _connection is not None and _connection.connected
    return json.dumps(status)


@mcp.resource("devident://device/identity")
def resource_device_identity() -> str:
    """Identity fields read from the device."""
    if _driver is None:
        return json.dumps({"error": "Not connected"})
    return json.dumps(_driver.identity.to_dict())


@mcp.resource("devident://protocol/commands")
def resource_command_table() -> str:
    """Command frames of the pipeline."""
    return json.dumps({"commands": _command_table()})


# ─── MCP PROMPTS ─────────────────────────────────────────────────────

@mcp.prompt()
def diagnose_reset_loop() -> str:
    """Guide the AI through a session that keeps resetting to HaltStream."""
    return """Call get_session_status and note the reset counter.
Run tick a few times and watch which step answers with NAK.

Consider:
- A NAK at the same component query every time points at that query
- Resets after VendorCode succeeded mean the device dropped the session
- Short reads at every step suggest a wrong port, baud rate or timeout

Use reset_session to start over, then run_pipeline to read the identity."""


# ─── ENTRY POINT ─────────────────────────────────────────────────────

def main():
    """Run the MCP server with stdio transport."""
    logging.basicConfig(level=config.LOG_LEVEL)
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
