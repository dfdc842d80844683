"""Bluetooth adapter device record."""

from __future__ import annotations

from pydantic import AliasChoices, Field, field_validator

from dashpilot.models._base import DashPilotBaseModel


class Device(DashPilotBaseModel):
    """A paired or discovered serial adapter.

    Parameters
    ----------
    id : str
        Driver-level identifier used to connect (port path or address).
    name : str
        Human readable name as advertised by the adapter.
    address : str or None
        Hardware (MAC) address, when the driver reports one.
    """

    id: str = Field(validation_alias=AliasChoices("id", "device_id", "port"))
    name: str = ""
    address: str | None = None

    @field_validator("id")
    @classmethod
    def _require_id(cls, value: str) -> str:
        if not value:
            raise ValueError("device id must be non-empty")
        return value

    @property
    def label(self) -> str:
        """Name to show in a device picker."""
        return self.name or self.address or self.id
