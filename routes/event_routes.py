"""
Event ingestion endpoint.

POST /events — body is a JSON array of events (at most 500).
"""

from __future__ import annotations

from fastapi import APIRouter, Body, Depends

from dependencies import get_event_service
from schemas.dto.requests.event import EventIn
from schemas.dto.responses.common import ErrorResponse
from schemas.dto.responses.event import BatchInsertResponse
from services.event_service import EventService

router = APIRouter(prefix="/events", tags=["events"])


@router.post(
    "",
    response_model=BatchInsertResponse,
    responses={400: {"model": ErrorResponse}},
)
async def batch_insert_events(
    events: list[EventIn] = Body(...),
    service: EventService = Depends(get_event_service),
):
    inserted = await service.batch_insert([event.to_document() for event in events])
    return {"insertedCount": inserted}
