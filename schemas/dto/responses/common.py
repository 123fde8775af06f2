"""
Common response DTOs shared across multiple endpoints.

ErrorResponse    — standard error shape from AppError.to_dict()
HealthResponse   — GET /health
CursorPage       — base for cursor-paginated listings
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class ErrorResponse(BaseModel):
    """Standard error JSON body produced by the AppError exception handler."""

    model_config = ConfigDict(populate_by_name=True)

    error: str
    code: str
    field: Optional[str] = None
    details: Optional[Any] = None


class HealthResponse(BaseModel):
    """Response body for GET /health."""

    model_config = ConfigDict(populate_by_name=True)

    status: str
    checks: dict[str, str]


class CursorPage(BaseModel):
    """Pagination fields of every listing.

    ``next_cursor`` is the ISO ``lastSeen`` of the last item and is null on
    the final page; send it back as ``startAfter``. ``next_cursor_id`` is the
    id of that same item; sending it as ``startAfterId`` resumes exactly even
    when several records share the cursor timestamp.
    """

    model_config = ConfigDict(populate_by_name=True)

    next_cursor: Optional[str] = Field(default=None, alias="nextCursor")
    next_cursor_id: Optional[str] = Field(default=None, alias="nextCursorId")
