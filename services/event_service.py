"""
Event batch ingestion.

batch_insert() runs in two phases:

1. Durable write: every event with an ``id`` is upserted (merge) into the
   events collection in one batched store call, stamped with ``receivedAt``.
   A failure here fails the whole call.
2. Aggregation: every event with a ``uid`` becomes an independent merge
   write against that subject's stats record. The writes run concurrently
   and are awaited together with ``return_exceptions=True``; a failing
   subject is logged and dropped without cancelling or failing the others.

Counters are only ever touched through Increment, so two events for the same
uid in the same or concurrent batches each count exactly once.
"""

from __future__ import annotations

import asyncio
from typing import Any, Mapping, Optional, Sequence

from errors import AggregationError, ValidationError
from infrastructure.store.protocol import (
    ArrayAppend,
    DocumentStore,
    Increment,
    ServerTimestamp,
)
from shared.datetime_utils import parse_datetime, truncate_to_millis
from shared.logging import get_logger
from shared.validators import validate_field_name

log = get_logger(__name__)

BATCH_LIMIT = 500

PAGE_VIEW = "pageView"
BUTTON_CLICK = "buttonClick"

DEFAULT_PLATFORM = "unknown"
DEFAULT_SOURCE = "NFC"


def _as_text(value: Any) -> Optional[str]:
    """Stats fields are strings; numbers are stringified, anything else dropped."""
    if isinstance(value, str):
        return value or None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return None


def build_stats_delta(event: Mapping[str, Any]) -> dict[str, Any]:
    """Merge-update for the stats record of ``event["uid"]``.

    Raises AggregationError when the event timestamp cannot be parsed.
    """
    seen_at = parse_datetime(event.get("timestamp"), epoch_millis=True)
    if seen_at is None:
        raise AggregationError(
            "Event timestamp is missing or invalid",
            field="timestamp",
            details={"uid": event.get("uid"), "id": event.get("id")},
        )
    seen_at = truncate_to_millis(seen_at)

    metadata = event.get("metadata") or {}
    platform = metadata.get("platform") if isinstance(metadata, Mapping) else None

    delta: dict[str, Any] = {
        "lastSeen": seen_at,
        "lastPage": _as_text(event.get("page")) or _as_text(event.get("url")),
        "platform": _as_text(platform) or DEFAULT_PLATFORM,
        "source": _as_text(event.get("source")) or DEFAULT_SOURCE,
        "lastSessionId": _as_text(event.get("sessionId")),
        "history": ArrayAppend(seen_at),
    }

    event_type = event.get("eventType")
    if event_type == PAGE_VIEW:
        delta["pageViews"] = Increment(1)
    elif event_type == BUTTON_CLICK:
        delta["totalClicks"] = Increment(1)
    return delta


class EventService:
    def __init__(
        self,
        store: DocumentStore,
        events_collection: str = "nfc_events",
        stats_collection: str = "stats_web",
    ) -> None:
        self._store = store
        self._events_collection = events_collection
        self._stats_collection = stats_collection

    async def batch_insert(self, events: Sequence[Mapping[str, Any]]) -> int:
        """Store *events* and fold them into per-uid stats.

        Returns the number of events written in the durable phase.
        """
        if not events:
            raise ValidationError("No events to process")
        if len(events) > BATCH_LIMIT:
            raise ValidationError(
                f"Batch exceeds the limit of {BATCH_LIMIT} events",
                details={"limit": BATCH_LIMIT, "received": len(events)},
            )
        for position, event in enumerate(events):
            bad = [key for key in event if not validate_field_name(key)]
            if bad:
                raise ValidationError(
                    f"Event field name {bad[0]!r} is not allowed",
                    field=bad[0],
                    details={"position": position},
                )

        documents: list[tuple[str, dict[str, Any]]] = []
        for position, event in enumerate(events):
            event_id = event.get("id")
            if not event_id:
                log.warning("event_missing_id", position=position, uid=event.get("uid"))
                continue
            documents.append((str(event_id), {**event, "receivedAt": ServerTimestamp()}))

        inserted = await self._store.set_many(
            self._events_collection, documents, merge=True
        )
        log.info("events_stored", inserted=inserted, received=len(events))

        tracked = [event for event in events if event.get("uid")]
        results = await asyncio.gather(
            *(self._fold_into_stats(event) for event in tracked),
            return_exceptions=True,
        )
        failures = 0
        for event, outcome in zip(tracked, results):
            if isinstance(outcome, BaseException):
                failures += 1
                log.warning(
                    "stats_update_failed",
                    uid=event.get("uid"),
                    event_id=event.get("id"),
                    error=str(outcome),
                    error_type=type(outcome).__name__,
                )
        if failures:
            log.warning("stats_updates_partially_failed", failed=failures, total=len(tracked))

        return inserted

    async def _fold_into_stats(self, event: Mapping[str, Any]) -> None:
        delta = build_stats_delta(event)
        try:
            await self._store.set(self._stats_collection, str(event["uid"]), delta, merge=True)
        except Exception as exc:
            raise AggregationError(
                f"Failed to update stats for uid {event['uid']}",
                details={"uid": event["uid"]},
            ) from exc
