"""Device identity model filled in by the query pipeline."""

from __future__ import annotations

from dataclasses import dataclass, fields


@dataclass(frozen=True)
class IdentityField:
    """One identity answer: the payload that followed the ACK header."""

    raw: bytes

    @property
    def text(self) -> str:
        """Printable ASCII of the payload, NUL padding stripped."""
        value = self.raw.split(b"\x00")[0].decode("ascii", errors="replace")
        return value.strip()

    def to_dict(self) -> dict:
        return {
            "hex": self.raw.hex(" "),
            "text": self.text,
            "length": len(self.raw),
        }


@dataclass
class DeviceIdentity:
    """Identity fields read from the device, in query order."""

    vendor_code: IdentityField | None = None
    serial_number: IdentityField | None = None
    hardware_revision: IdentityField | None = None
    software_revision: IdentityField | None = None
    product_name: IdentityField | None = None
    part_number: IdentityField | None = None

    @classmethod
    def field_names(cls) -> list[str]:
        return [f.name for f in fields(cls)]

    @property
    def complete(self) -> bool:
        return all(getattr(self, name) is not None for name in self.field_names())

    def set(self, name: str, value: IdentityField) -> None:
        if name not in self.field_names():
            raise ValueError(f"Unknown identity field '{name}'")
        setattr(self, name, value)

    def clear(self) -> None:
        for name in self.field_names():
            setattr(self, name, None)

    def to_dict(self) -> dict:
        result: dict = {}
        for name in self.field_names():
            value = getattr(self, name)
            result[name] = value.to_dict() if value is not None else None
        result["complete"] = self.complete
        return result
