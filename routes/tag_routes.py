"""
Tag endpoints.

POST /tags          — record a scan (deduplicated per uid within a short window)
GET  /tags/{uid}    — one tag record
GET  /tags          — tag records, newest scan first, cursor-paginated
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from config import AppSettings
from dependencies import get_cache, get_settings, get_tag_service
from errors import ValidationError
from infrastructure.cache.protocol import TTLCache
from schemas.dto.requests.tag import SaveTagRequest
from schemas.dto.responses.common import ErrorResponse
from schemas.dto.responses.tag import SaveTagResponse, TagEnvelope, TagListResponse
from services.tag_service import TagService
from shared.logging import get_logger
from shared.validators import validate_tag_uid

log = get_logger(__name__)

router = APIRouter(prefix="/tags", tags=["tags"])


@router.post(
    "",
    status_code=201,
    response_model=SaveTagResponse,
    responses={200: {"model": SaveTagResponse}, 400: {"model": ErrorResponse}},
)
async def save_tag(
    body: SaveTagRequest,
    service: TagService = Depends(get_tag_service),
    cache: TTLCache = Depends(get_cache),
    settings: AppSettings = Depends(get_settings),
):
    dedupe_ttl = settings.cache.scan_dedupe_ttl_seconds
    dedupe_key = f"scan:{body.uid}"

    if dedupe_ttl > 0 and await cache.has(dedupe_key):
        log.info("tag_scan_deduplicated", uid=body.uid)
        return JSONResponse(
            status_code=200,
            content={"message": "UID recently processed", "data": {"uid": body.uid}},
        )

    saved = await service.save(
        body.uid, body.url, body.device_id, body.scan_type, body.location
    )
    if dedupe_ttl > 0:
        await cache.set(dedupe_key, True, dedupe_ttl)
    return {"message": "UID processed", "data": saved}


@router.get(
    "/{uid}",
    response_model=TagEnvelope,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def get_tag(
    uid: str,
    service: TagService = Depends(get_tag_service),
    cache: TTLCache = Depends(get_cache),
):
    if not validate_tag_uid(uid):
        raise ValidationError(
            "uid must be a hexadecimal string of 4-32 characters", field="uid"
        )
    tag, from_cache = await service.lookup_tag(uid, cache)
    return {"message": "cached" if from_cache else None, "data": tag}


@router.get(
    "",
    response_model=TagListResponse,
    responses={400: {"model": ErrorResponse}},
)
async def list_tags(
    limit: Optional[str] = Query(default=None),
    start_after: Optional[str] = Query(default=None, alias="startAfter"),
    start_after_id: Optional[str] = Query(default=None, alias="startAfterId"),
    service: TagService = Depends(get_tag_service),
    cache: TTLCache = Depends(get_cache),
):
    return await service.list_tags(limit, start_after, start_after_id, cache=cache)
