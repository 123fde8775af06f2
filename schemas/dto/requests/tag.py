"""
Request DTOs for tag endpoints.

SaveTagRequest — POST /api/v1/tags   (JSON body)
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from shared.validators import validate_tag_uid, validate_url

ALLOWED_SCAN_TYPES = frozenset({"nfc"})


class SaveTagRequest(BaseModel):
    """Body of a tag scan report.

    ``location`` is free-form (coordinates object, place name, ...) and is
    stored exactly as sent.
    """

    model_config = ConfigDict(populate_by_name=True)

    uid: str
    url: str
    device_id: str = Field(alias="deviceId", min_length=1)
    scan_type: str = Field(alias="scanType")
    location: Optional[Any] = None

    @field_validator("uid")
    @classmethod
    def _check_uid(cls, v: str) -> str:
        if not validate_tag_uid(v):
            raise ValueError("uid must be a hexadecimal string of 4-32 characters")
        return v

    @field_validator("url")
    @classmethod
    def _check_url(cls, v: str) -> str:
        if not validate_url(v):
            raise ValueError("url must be a valid http(s) URL")
        return v

    @field_validator("device_id")
    @classmethod
    def _check_device_id(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("deviceId is required")
        return v

    @field_validator("scan_type")
    @classmethod
    def _check_scan_type(cls, v: str) -> str:
        if v not in ALLOWED_SCAN_TYPES:
            raise ValueError(
                f"scanType must be one of: {', '.join(sorted(ALLOWED_SCAN_TYPES))}"
            )
        return v
