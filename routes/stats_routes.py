"""
Statistics endpoints.

GET /stats/{uid} — one subject's engagement statistics
GET /stats       — all subjects, most recently active first, cursor-paginated
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query

from dependencies import get_cache, get_stats_service
from infrastructure.cache.protocol import TTLCache
from schemas.dto.responses.common import ErrorResponse
from schemas.dto.responses.stats import StatsListResponse, StatsRecordResponse
from services.stats_service import StatsService

router = APIRouter(prefix="/stats", tags=["stats"])


@router.get(
    "/{uid}",
    response_model=StatsRecordResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def get_stats(
    uid: str,
    service: StatsService = Depends(get_stats_service),
    cache: TTLCache = Depends(get_cache),
):
    return await service.get_stats(uid, cache=cache)


@router.get(
    "",
    response_model=StatsListResponse,
    responses={400: {"model": ErrorResponse}},
)
async def list_stats(
    limit: Optional[str] = Query(default=None),
    start_after: Optional[str] = Query(default=None, alias="startAfter"),
    start_after_id: Optional[str] = Query(default=None, alias="startAfterId"),
    service: StatsService = Depends(get_stats_service),
    cache: TTLCache = Depends(get_cache),
):
    return await service.list_stats(limit, start_after, start_after_id, cache=cache)
