"""
Stats document model.

Maps to the stats collection (``stats_web`` by default), keyed by subject
uid. Created lazily by the first event for a uid and only ever merge-updated
afterwards. ``history`` is append-only and unbounded.
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import Field, field_validator

from schemas.models.base import IsoDatetime, StoreBaseModel


class StatsDoc(StoreBaseModel):
    uid: str
    last_seen: Optional[IsoDatetime] = Field(default=None, alias="lastSeen")
    last_page: Optional[str] = Field(default=None, alias="lastPage")
    platform: Optional[str] = None
    source: Optional[str] = None
    last_session_id: Optional[str] = Field(default=None, alias="lastSessionId")
    history: list[IsoDatetime] = Field(default_factory=list)
    page_views: int = Field(default=0, alias="pageViews")
    total_clicks: int = Field(default=0, alias="totalClicks")

    @field_validator("last_page", "platform", "source", "last_session_id", mode="before")
    @classmethod
    def _stringify(cls, v: Any) -> Any:
        # records written by older clients may hold numbers or objects here
        if v is None or isinstance(v, str):
            return v
        return str(v)
