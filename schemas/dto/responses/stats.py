"""
Response DTOs for the statistics endpoints.

StatsRecordResponse — GET /api/v1/stats/{uid}
StatsListResponse   — GET /api/v1/stats
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from schemas.dto.responses.common import CursorPage


class StatsRecordResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    uid: str
    last_seen: Optional[str] = Field(default=None, alias="lastSeen")
    last_page: Optional[str] = Field(default=None, alias="lastPage")
    platform: Optional[str] = None
    source: Optional[str] = None
    last_session_id: Optional[str] = Field(default=None, alias="lastSessionId")
    history: list[str] = Field(default_factory=list)
    page_views: int = Field(default=0, alias="pageViews")
    total_clicks: int = Field(default=0, alias="totalClicks")


class StatsListResponse(CursorPage):
    data: list[StatsRecordResponse]
