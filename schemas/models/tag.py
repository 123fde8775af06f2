"""
Tag document model.

Maps to the tags collection (``uids`` by default), keyed by the tag's hex
identifier. ``scan_count`` always equals ``len(history)`` and ``last_seen``
equals the timestamp of the final history entry; both are maintained by
the registry transaction, never by this model.
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from schemas.models.base import IsoDatetime, StoreBaseModel


class ScanEntry(BaseModel):
    """One immutable element of a tag's scan history."""

    model_config = ConfigDict(populate_by_name=True)

    timestamp: IsoDatetime
    device_id: str = Field(alias="deviceId")
    scan_type: str = Field(alias="scanType")
    location: Optional[Any] = None


class TagDoc(StoreBaseModel):
    uid: str
    accessed_url: Optional[str] = Field(default=None, alias="accessedUrl")
    scan_count: int = Field(default=0, alias="scanCount")
    first_seen: Optional[IsoDatetime] = Field(default=None, alias="firstSeen")
    last_seen: Optional[IsoDatetime] = Field(default=None, alias="lastSeen")
    history: list[ScanEntry] = Field(default_factory=list)
    last_device: Optional[str] = Field(default=None, alias="lastDevice")
    last_scan_type: Optional[str] = Field(default=None, alias="lastScanType")
    last_location: Optional[Any] = Field(default=None, alias="lastLocation")
