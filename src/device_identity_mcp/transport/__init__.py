"""Transport layer: the port interface and its pyserial implementation."""

from .port import TransportError, TransportPort
