"""Base model shared by dashpilot data records.

Every record is an immutable pydantic model.  Consumers get a fresh
instance on each update instead of a mutated one, so a reading or a
device handed to a listener never changes underneath it.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class DashPilotBaseModel(BaseModel):
    """Frozen base for dashpilot models."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
        str_strip_whitespace=True,
    )
