"""
Request DTO for the batch event endpoint.

EventIn — one element of the POST /api/v1/events JSON array.

Every field is optional at this layer: events without ``id`` are skipped by
the pipeline and events without ``uid`` produce no statistics, but neither
invalidates the batch. Unknown fields are kept and stored with the event,
as long as their names are storable (no leading ``$``, no ``.``).
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from shared.validators import validate_field_name


class EventIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: Optional[str] = None
    uid: Optional[str] = None
    event_type: Optional[str] = Field(default=None, alias="eventType")
    # ISO 8601 string or epoch milliseconds; parsed by the pipeline
    timestamp: Optional[Any] = None
    page: Optional[str] = None
    url: Optional[str] = None
    metadata: Optional[dict[str, Any]] = None
    source: Optional[str] = None
    session_id: Optional[str] = Field(default=None, alias="sessionId")

    @model_validator(mode="before")
    @classmethod
    def _check_field_names(cls, data: Any) -> Any:
        if isinstance(data, dict):
            for key in data:
                if not validate_field_name(key):
                    raise ValueError(f"Field name {key!r} is not allowed")
        return data

    @field_validator("id", "uid", "session_id", mode="before")
    @classmethod
    def _coerce_identifier(cls, v: Any) -> Any:
        # Browser clients sometimes send numeric ids
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return str(v)
        return v

    def to_document(self) -> dict[str, Any]:
        """Fields the client actually sent, camelCase, extras included."""
        return self.model_dump(by_alias=True, exclude_unset=True)
