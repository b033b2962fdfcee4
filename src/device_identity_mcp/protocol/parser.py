"""Response parsing for identity query answers."""

from __future__ import annotations

from ..models.identity import IdentityField
from .states import ACK_HEADER, VENDOR_ACK_HEADER, ProtocolState

# Which DeviceIdentity attribute each query fills in
IDENTITY_FIELDS: dict[ProtocolState, str] = {
    ProtocolState.VENDOR_CODE: "vendor_code",
    ProtocolState.SERIAL_NUMBER: "serial_number",
    ProtocolState.HARDWARE_REVISION: "hardware_revision",
    ProtocolState.SOFTWARE_REVISION: "software_revision",
    ProtocolState.PRODUCT_NAME: "product_name",
    ProtocolState.PART_NUMBER: "part_number",
}


def ack_payload(response: bytes) -> bytes | None:
    """Strip the acknowledgement header from an identity answer.

    The vendor query may answer with the longer ``5B 06 0A 14`` header;
    every other query uses ``06 0A 14``. Returns ``None`` if neither
    header is present.
    """
    response = bytes(response)
    if response.startswith(VENDOR_ACK_HEADER):
        return response[len(VENDOR_ACK_HEADER):]
    if response.startswith(ACK_HEADER):
        return response[len(ACK_HEADER):]
    return None


def parse_identity_field(state: ProtocolState, response: bytes) -> IdentityField | None:
    """Parse an acknowledged answer to an identity query.

    Returns ``None`` for states that do not query an identity field or
    for answers without an ACK header.
    """
    if state not in IDENTITY_FIELDS:
        return None
    payload = ack_payload(response)
    if payload is None:
        return None
    return IdentityField(raw=payload)
