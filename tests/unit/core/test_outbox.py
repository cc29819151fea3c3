"""Unit tests for the transactional outbox.

Covers:
- OutboxEvent defaults and status transitions.
- ``core.publish_outbox_events`` draining rows through the event bus.
"""

from __future__ import annotations

import uuid

import pytest

from modules.core.models import EventStatus, OutboxEvent
from modules.core.tasks import publish_outbox_events
from modules.orders.events import OrderCreated
from shared.infrastructure.bus import event_bus

pytestmark = pytest.mark.unit


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _make_event(**overrides) -> OutboxEvent:
    """Create and persist an OutboxEvent with sensible defaults."""
    aggregate_id = str(uuid.uuid4())
    defaults = {
        "event_type": "OrderCreated",
        "payload": {
            "aggregate_id": aggregate_id,
            "payload": {"order_number": "CW2406150001", "total": "99.90"},
        },
        "aggregate_id": aggregate_id,
        "topic": "orders",
    }
    defaults.update(overrides)
    return OutboxEvent.objects.create(**defaults)


# ===========================================================================
# Model
# ===========================================================================


class TestOutboxEventModel:
    def test_defaults(self):
        event = _make_event()
        event.refresh_from_db()
        assert event.status == EventStatus.PENDING
        assert event.processed_at is None
        assert event.error_message is None
        assert event.retry_count == 0

    def test_id_is_uuid7(self):
        assert _make_event().id.version == 7

    def test_mark_as_published(self):
        event = _make_event()
        event.mark_as_published()
        event.refresh_from_db()
        assert event.status == EventStatus.PUBLISHED
        assert event.processed_at is not None

    def test_mark_as_failed_counts_retries(self):
        event = _make_event()
        event.mark_as_failed("boom")
        event.mark_as_failed("boom again")
        event.refresh_from_db()
        assert event.status == EventStatus.FAILED
        assert event.error_message == "boom again"
        assert event.retry_count == 2

    def test_pending_excludes_processed_rows(self):
        first = _make_event()
        second = _make_event()
        _make_event(status=EventStatus.PUBLISHED)
        _make_event(status=EventStatus.FAILED)
        assert set(OutboxEvent.objects.pending()) == {first, second}


# ===========================================================================
# Publisher task
# ===========================================================================


class TestPublishOutboxEvents:
    def test_publishes_pending_rows(self):
        received = []

        class CapturingHandler:
            def handle(self, event) -> None:
                received.append(event)

        handler = CapturingHandler()
        event_bus.subscribe(OrderCreated, handler)
        try:
            row = _make_event()
            result = publish_outbox_events()
        finally:
            event_bus._handlers[OrderCreated].remove(handler)

        row.refresh_from_db()
        assert result == {"published": 1, "failed": 0}
        assert row.status == EventStatus.PUBLISHED
        assert received[0].aggregate_id == uuid.UUID(row.aggregate_id)
        assert received[0].payload["order_number"] == "CW2406150001"

    def test_unknown_event_type_is_marked_failed(self):
        row = _make_event(event_type="SomethingElse")

        result = publish_outbox_events()

        row.refresh_from_db()
        assert result == {"published": 0, "failed": 1}
        assert row.status == EventStatus.FAILED
        assert "SomethingElse" in row.error_message

    def test_failing_handler_does_not_block_batch(self):
        class ExplodingHandler:
            def handle(self, event) -> None:
                if event.payload.get("explode"):
                    raise RuntimeError("handler down")

        handler = ExplodingHandler()
        event_bus.subscribe(OrderCreated, handler)
        try:
            bad = _make_event(payload={"payload": {"explode": True}})
            good = _make_event()
            result = publish_outbox_events()
        finally:
            event_bus._handlers[OrderCreated].remove(handler)

        bad.refresh_from_db()
        good.refresh_from_db()
        assert result == {"published": 1, "failed": 1}
        assert bad.status == EventStatus.FAILED
        assert bad.error_message == "handler down"
        assert good.status == EventStatus.PUBLISHED
