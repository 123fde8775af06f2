"""
Response DTO for the batch event endpoint.

BatchInsertResponse — POST /api/v1/events (200)

``inserted_count`` reflects the durable write only; statistics folding
failures are not reported here.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class BatchInsertResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    inserted_count: int = Field(alias="insertedCount")
