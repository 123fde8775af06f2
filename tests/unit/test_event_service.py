"""Unit tests for the event ingestion pipeline (services.event_service)."""

import asyncio
from datetime import datetime, timezone

import pytest

from errors import AggregationError, ValidationError
from infrastructure.store.protocol import ArrayAppend, Increment, ServerTimestamp
from services.event_service import BATCH_LIMIT, EventService, build_stats_delta
from services.stats_service import StatsService

EVENTS = "nfc_events"
STATS = "stats_web"

T0 = "2024-05-01T12:00:00.000Z"


def _event(i: int = 1, uid: str = "u1", event_type: str = "pageView", **overrides) -> dict:
    event = {
        "id": f"e{i}",
        "uid": uid,
        "eventType": event_type,
        "timestamp": T0,
        "page": "/home",
        "metadata": {"platform": "android"},
        "source": "web",
        "sessionId": "s1",
    }
    event.update(overrides)
    return event


@pytest.fixture
def service(store) -> EventService:
    return EventService(store, EVENTS, STATS)


@pytest.fixture
def stats(store) -> StatsService:
    return StatsService(store, STATS)


# ── build_stats_delta ─────────────────────────────────────────────────────────


class TestBuildStatsDelta:
    def test_page_view(self):
        delta = build_stats_delta(_event())
        seen = datetime(2024, 5, 1, 12, tzinfo=timezone.utc)
        assert delta["lastSeen"] == seen
        assert delta["history"] == ArrayAppend(seen)
        assert delta["pageViews"] == Increment(1)
        assert "totalClicks" not in delta
        assert delta["lastPage"] == "/home"
        assert delta["platform"] == "android"
        assert delta["source"] == "web"
        assert delta["lastSessionId"] == "s1"

    def test_button_click(self):
        delta = build_stats_delta(_event(event_type="buttonClick"))
        assert delta["totalClicks"] == Increment(1)
        assert "pageViews" not in delta

    def test_other_event_types_only_refresh(self):
        delta = build_stats_delta(_event(event_type="formSubmit"))
        assert "pageViews" not in delta
        assert "totalClicks" not in delta
        assert isinstance(delta["history"], ArrayAppend)

    def test_defaults(self):
        delta = build_stats_delta(
            {"uid": "u1", "eventType": "pageView", "timestamp": T0, "url": "https://x.test"}
        )
        assert delta["lastPage"] == "https://x.test"
        assert delta["platform"] == "unknown"
        assert delta["source"] == "NFC"
        assert delta["lastSessionId"] is None

    def test_numeric_platform_is_stringified(self):
        delta = build_stats_delta(_event(metadata={"platform": 7}, sessionId=12))
        assert delta["platform"] == "7"
        assert delta["lastSessionId"] == "12"

    @pytest.mark.parametrize("platform", [{"os": "ios"}, ["ios"], True, ""])
    def test_unusable_platform_falls_back_to_default(self, platform):
        assert build_stats_delta(_event(metadata={"platform": platform}))["platform"] == "unknown"

    def test_epoch_millis_timestamp(self):
        delta = build_stats_delta(_event(timestamp=1714564800123))
        assert delta["lastSeen"] == datetime(2024, 5, 1, 12, 0, 0, 123000, tzinfo=timezone.utc)

    @pytest.mark.parametrize("timestamp", [None, "not-a-date", ""])
    def test_bad_timestamp_raises_aggregation_error(self, timestamp):
        with pytest.raises(AggregationError):
            build_stats_delta(_event(timestamp=timestamp))


# ── batch_insert ──────────────────────────────────────────────────────────────


class TestBatchInsertValidation:
    async def test_empty_batch_rejected(self, service, store):
        with pytest.raises(ValidationError):
            await service.batch_insert([])
        assert store.writes == 0

    async def test_oversized_batch_rejected_before_any_write(self, service, store):
        events = [_event(i) for i in range(BATCH_LIMIT + 1)]
        with pytest.raises(ValidationError) as exc:
            await service.batch_insert(events)
        assert exc.value.details == {"limit": 500, "received": 501}
        assert store.writes == 0
        assert store.set_many_calls == 0

    @pytest.mark.parametrize("key", ["$set", "$inc", "a.b", ""])
    async def test_unstorable_field_name_rejected_before_any_write(self, service, store, key):
        events = [_event(1), {**_event(2), key: 1}]
        with pytest.raises(ValidationError) as exc:
            await service.batch_insert(events)
        assert exc.value.field == key
        assert exc.value.details == {"position": 1}
        assert store.writes == 0
        assert store.set_many_calls == 0

    async def test_batch_at_limit_accepted(self, service):
        events = [_event(i, uid=f"u{i % 7}") for i in range(BATCH_LIMIT)]
        assert await service.batch_insert(events) == BATCH_LIMIT


class TestBatchInsertDurableWrite:
    async def test_events_are_stored_with_receipt_timestamp(self, service, store):
        await service.batch_insert([_event(1), _event(2)])
        stored = store.collections[EVENTS]
        assert set(stored) == {"e1", "e2"}
        assert stored["e1"]["eventType"] == "pageView"
        assert isinstance(stored["e1"]["receivedAt"], datetime)
        assert store.set_many_calls == 1

    async def test_events_without_id_are_skipped(self, service, store):
        count = await service.batch_insert([_event(1), _event(2, id=None), _event(3, id="")])
        assert count == 1
        assert set(store.collections[EVENTS]) == {"e1"}

    async def test_events_without_id_still_update_stats(self, service, stats):
        await service.batch_insert([_event(1, id=None)])
        assert (await stats.get_stats("u1"))["pageViews"] == 1

    async def test_resend_merges_instead_of_overwriting(self, service, store):
        await service.batch_insert([_event(1, extra="keep")])
        resend = _event(1)
        await service.batch_insert([resend])
        assert store.collections[EVENTS]["e1"]["extra"] == "keep"

    async def test_durable_failure_fails_call(self, service, store):
        store.failing_docs.add((EVENTS, "e1"))
        with pytest.raises(RuntimeError):
            await service.batch_insert([_event(1)])


class TestBatchInsertAggregation:
    async def test_button_click_counts(self, service, stats):
        await service.batch_insert(
            [{"id": "e1", "uid": "u1", "eventType": "buttonClick", "timestamp": T0}]
        )
        record = await stats.get_stats("u1")
        assert record["totalClicks"] == 1
        assert record["pageViews"] == 0
        assert record["history"] == [T0]

    async def test_two_page_views_same_batch(self, service, stats):
        await service.batch_insert([_event(1), _event(2)])
        record = await stats.get_stats("u1")
        assert record["pageViews"] == 2
        assert len(record["history"]) == 2

    async def test_concurrent_batches_count_exactly_once(self, service, stats):
        await asyncio.gather(
            service.batch_insert([_event(1)]),
            service.batch_insert([_event(2)]),
        )
        assert (await stats.get_stats("u1"))["pageViews"] == 2

    async def test_merge_keeps_unrelated_fields(self, service, store):
        store.put(STATS, "u1", {"nickname": "ana", "pageViews": 4})
        await service.batch_insert([_event(1)])
        doc = store.collections[STATS]["u1"]
        assert doc["nickname"] == "ana"
        assert doc["pageViews"] == 5

    async def test_failed_stats_update_does_not_fail_call(self, service, store, stats):
        store.failing_docs.add((STATS, "u1"))
        count = await service.batch_insert([_event(1, uid="u1"), _event(2, uid="u2")])

        assert count == 2
        assert set(store.collections[EVENTS]) == {"e1", "e2"}
        assert "u1" not in store.collections[STATS]
        assert (await stats.get_stats("u2"))["pageViews"] == 1

    async def test_bad_timestamp_isolated_to_its_event(self, service, stats):
        count = await service.batch_insert(
            [_event(1, uid="u1", timestamp="garbage"), _event(2, uid="u2")]
        )
        assert count == 2
        assert (await stats.get_stats("u2"))["pageViews"] == 1

    async def test_numeric_platform_readable_through_stats(self, service, stats):
        await service.batch_insert([_event(1, metadata={"platform": 7})])
        record = await stats.get_stats("u1")
        assert record["platform"] == "7"
        assert record["pageViews"] == 1

    async def test_events_without_uid_produce_no_stats(self, service, store):
        await service.batch_insert([_event(1, uid=None)])
        assert dict(store.collections[STATS]) == {}

    async def test_event_document_has_server_timestamp_sentinel(self, store, mocker):
        spy = mocker.spy(store, "set_many")
        await EventService(store, EVENTS, STATS).batch_insert([_event(1)])
        (collection, documents), kwargs = spy.call_args
        assert collection == EVENTS
        assert kwargs == {"merge": True}
        assert documents[0][0] == "e1"
        assert isinstance(documents[0][1]["receivedAt"], ServerTimestamp)
