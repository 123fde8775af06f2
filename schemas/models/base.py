"""
Base model for all stored document models.

Documents are keyed by an opaque string id (tag uid, subject uid) and use
camelCase field names in storage. Models expose snake_case attributes with
camelCase aliases.

IsoDatetime — datetime that renders as ``...T..:..:..mmmZ`` in JSON mode
from_store() — builds a model from a DocumentSnapshot (None when absent)
to_public()  — JSON-ready dict with camelCase keys and ISO timestamps
"""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, PlainSerializer

from infrastructure.store.protocol import DocumentSnapshot
from shared.datetime_utils import to_iso

M = TypeVar("M", bound="StoreBaseModel")

IsoDatetime = Annotated[datetime, PlainSerializer(to_iso, return_type=str, when_used="json")]


class StoreBaseModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_store(cls: type[M], snapshot: DocumentSnapshot, id_field: str = "uid") -> Optional[M]:
        """Build a model from a snapshot; the document id fills *id_field*.

        Returns None when the snapshot does not exist.
        """
        if not snapshot.exists:
            return None
        return cls.model_validate({**snapshot.data, id_field: snapshot.id})

    def to_public(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)
