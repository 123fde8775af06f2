"""
Response DTOs for tag endpoints.

SaveTagResponse — POST /api/v1/tags        (201, or 200 when deduplicated)
TagEnvelope     — GET  /api/v1/tags/{uid}
TagListResponse — GET  /api/v1/tags
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from schemas.dto.responses.common import CursorPage


class ScanEntryResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    timestamp: Optional[str] = None  # ISO 8601 string
    device_id: Optional[str] = Field(default=None, alias="deviceId")
    scan_type: Optional[str] = Field(default=None, alias="scanType")
    location: Optional[Any] = None


class TagResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    uid: str
    accessed_url: Optional[str] = Field(default=None, alias="accessedUrl")
    scan_count: int = Field(alias="scanCount")
    first_seen: Optional[str] = Field(default=None, alias="firstSeen")
    last_seen: Optional[str] = Field(default=None, alias="lastSeen")
    history: list[ScanEntryResponse] = Field(default_factory=list)
    last_device: Optional[str] = Field(default=None, alias="lastDevice")
    last_scan_type: Optional[str] = Field(default=None, alias="lastScanType")
    last_location: Optional[Any] = Field(default=None, alias="lastLocation")


class SavedTag(BaseModel):
    uid: str


class SaveTagResponse(BaseModel):
    message: str
    data: SavedTag


class TagEnvelope(BaseModel):
    message: Optional[str] = None
    data: TagResponse


class TagListResponse(CursorPage):
    data: list[TagResponse]
