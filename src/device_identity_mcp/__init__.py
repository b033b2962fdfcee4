"""Identity query client for a serial-attached device, with an MCP server front end."""

__version__ = "0.1.0"
