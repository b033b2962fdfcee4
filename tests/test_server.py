"""Tests for the MCP tools, with FastMCP and the serial port mocked out."""

from __future__ import annotations

import json
import sys
from unittest.mock import MagicMock, patch

import pytest

from device_identity_mcp.protocol.states import ProtocolState
from device_identity_mcp.session import SessionDriver


class ScriptedPort:
    def __init__(self, responses: list[bytes]) -> None:
        self.responses = list(responses)

    def transmit(self, frame: bytes) -> int:
        return len(frame)

    def receive(self, max_bytes: int, timeout_ms: int) -> tuple[int, bytes]:
        data = self.responses.pop(0) if self.responses else b""
        return len(data), data


def _ack(payload: bytes) -> bytes:
    return (bytes([0x06, 0x0A, 0x14]) + payload + bytes(9))[:12]


HAPPY_PATH = [
    b"\x01",
    bytes([0x06, 0, 0, 0, 0]),
    bytes([0x5B, 0x06, 0x0A, 0x14]) + b"ACME" + bytes(15),
    _ack(b"SN1"),
    _ack(b"HW1"),
    _ack(b"SW1"),
    _ack(b"GAUGE"),
    _ack(b"PN1"),
]


def _get_server_module():
    """Import server module with FastMCP mocked to avoid init issues."""
    mock_fastmcp_cls = MagicMock()
    mock_fastmcp_instance = MagicMock()
    # Make the @mcp.tool() decorator a no-op that returns the function unchanged
    mock_fastmcp_instance.tool.return_value = lambda fn: fn
    mock_fastmcp_instance.resource.return_value = lambda fn: fn
    mock_fastmcp_instance.prompt.return_value = lambda fn: fn
    mock_fastmcp_cls.return_value = mock_fastmcp_instance

    with patch("mcp.server.fastmcp.FastMCP", mock_fastmcp_cls):
        sys.modules.pop("device_identity_mcp.server", None)
        import device_identity_mcp.server as server_mod

    return server_mod


def _attach(server, responses: list[bytes]) -> SessionDriver:
    conn = MagicMock()
    conn.connected = True
    driver = SessionDriver(ScriptedPort(responses))
    server._connection = conn
    server._driver = driver
    return driver


def test_tools_require_connection():
    server = _get_server_module()
    with pytest.raises(RuntimeError, match="connect"):
        server.tick()
    with pytest.raises(RuntimeError):
        server.get_identity()


def test_connect_opens_port_and_starts_at_halt_stream():
    server = _get_server_module()
    conn = MagicMock()
    conn.connected = True
    conn.open.return_value = MagicMock(port="/dev/ttyTEST", baudrate=19200, timeout_ms=1000)

    with patch.object(server, "SerialConnection", return_value=conn) as cls:
        result = server.connect("/dev/ttyTEST")

    assert cls.call_args.args[0] == "/dev/ttyTEST"
    assert result["connected"] is True
    assert result["state"] == "HaltStream"
    assert server.get_session_status()["state"] == "HaltStream"


def test_disconnect_closes_port():
    server = _get_server_module()
    _attach(server, [])
    conn = server._connection
    assert server.disconnect() == {"disconnected": True}
    conn.close.assert_called_once()
    assert server._driver is None


def test_tick_tool():
    server = _get_server_module()
    _attach(server, [b"\x01"])
    result = server.tick()
    assert result["state"] == "HaltStream"
    assert result["next_state"] == "GetInterval"


def test_run_pipeline_reads_identity():
    server = _get_server_module()
    _attach(server, HAPPY_PATH)
    result = server.run_pipeline(max_ticks=20)

    assert result["complete"] is True
    assert result["ticks"] == 8
    assert result["transitions"] == [
        "GetInterval",
        "VendorCode",
        "SerialNumber",
        "HardwareRevision",
        "SoftwareRevision",
        "ProductName",
        "PartNumber",
    ]
    assert result["identity"]["vendor_code"]["text"] == "ACME"
    assert result["identity"]["product_name"]["text"] == "GAUGE"


def test_run_pipeline_budget_exhausted():
    server = _get_server_module()
    _attach(server, [b"\x01"])
    result = server.run_pipeline(max_ticks=3)
    assert result["complete"] is False
    assert result["ticks"] == 3
    assert result["status"]["state"] == "GetInterval"


def test_run_pipeline_rejects_bad_budget():
    server = _get_server_module()
    _attach(server, [])
    assert "error" in server.run_pipeline(max_ticks=0)


def test_reset_session():
    server = _get_server_module()
    driver = _attach(server, [b"\x01"])
    server.tick()
    assert server.reset_session()["state"] == "HaltStream"
    assert driver.state is ProtocolState.HALT_STREAM


def test_command_table():
    server = _get_server_module()
    commands = server.get_command_table()["commands"]
    assert len(commands) == 8
    assert commands[0] == {
        "state": "HaltStream",
        "frame": "10 01 19 d6",
        "response_length": 4,
    }
    assert commands[2]["response_length"] == 23


def test_resources():
    server = _get_server_module()
    assert json.loads(server.resource_session_state()) == {"connected": False}
    _attach(server, [b"\x01"])
    server.tick()
    state = json.loads(server.resource_session_state())
    assert state["state"] == "GetInterval"
    assert state["connected"] is True
    identity = json.loads(server.resource_device_identity())
    assert identity["complete"] is False
    assert len(json.loads(server.resource_command_table())["commands"]) == 8


def test_prompt_mentions_tools():
    server = _get_server_module()
    text = server.diagnose_reset_loop()
    assert "get_session_status" in text
    assert "reset_session" in text
