"""Data models for the device identity read by the query pipeline."""

from .identity import DeviceIdentity, IdentityField
