"""Persisted dashboard preferences."""

from __future__ import annotations

from typing import Any

from pydantic import Field

from dashpilot._constants import PREF_AUTO_CONNECT, PREF_DARK_MODE, PREF_KEEP_SCREEN_ON, PREF_LAST_DEVICE
from dashpilot.models._base import DashPilotBaseModel


class Preferences(DashPilotBaseModel):
    """The single keyed preference record.

    Field aliases match the keys of the stored JSON object.  Keys this
    model does not know about are kept in ``extra`` and written back
    untouched.
    """

    dark_mode: bool = Field(default=True, alias=PREF_DARK_MODE)
    keep_screen_on: bool = Field(default=True, alias=PREF_KEEP_SCREEN_ON)
    auto_connect: bool = Field(default=False, alias=PREF_AUTO_CONNECT)
    last_device_id: str | None = Field(default=None, alias=PREF_LAST_DEVICE)
    extra: dict[str, Any] = Field(default_factory=dict, exclude=True)

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> Preferences:
        known = {PREF_DARK_MODE, PREF_KEEP_SCREEN_ON, PREF_AUTO_CONNECT, PREF_LAST_DEVICE}
        # A null toggle (older app builds wrote these) falls back to the default.
        values = {k: v for k, v in record.items() if k in known and (v is not None or k == PREF_LAST_DEVICE)}
        extra = {k: v for k, v in record.items() if k not in known}
        return cls.model_validate({**values, "extra": extra})

    def to_record(self) -> dict[str, Any]:
        record = dict(self.extra)
        record.update(self.model_dump(by_alias=True))
        return record
