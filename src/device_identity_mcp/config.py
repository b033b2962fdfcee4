from __future__ import annotations
import os

# Serial device the identity probe talks to
PORT = os.getenv("DEVICE_IDENTITY_PORT", "/dev/ttyUSB0")

# Line settings of the reference deployment
BAUDRATE = int(os.getenv("DEVICE_IDENTITY_BAUDRATE", "19200"))
TIMEOUT_MS = int(os.getenv("DEVICE_IDENTITY_TIMEOUT_MS", "1000"))

LOG_LEVEL = os.getenv("DEVICE_IDENTITY_LOG_LEVEL", "INFO").upper()

# Tick budget for a single run_pipeline call from the MCP server
MAX_TICKS = int(os.getenv("DEVICE_IDENTITY_MAX_TICKS", "64"))
