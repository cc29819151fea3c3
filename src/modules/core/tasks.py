"""Celery tasks for the core module."""

from __future__ import annotations

from uuid import UUID

import structlog
from celery import shared_task

from modules.core.models import OutboxEvent
from shared.infrastructure.bus import event_bus

logger = structlog.get_logger(__name__)


@shared_task(name="core.publish_outbox_events")
def publish_outbox_events(batch_size: int = 100) -> dict:
    """Drain pending outbox rows through the in-process event bus.

    Rows whose ``event_type`` has no subscriber, or whose handler raises,
    are marked ``FAILED`` with the error so they can be inspected and
    retried; the rest of the batch still goes through.
    """
    published = 0
    failed = 0

    for outbox in OutboxEvent.objects.pending()[:batch_size]:
        log = logger.bind(outbox_id=str(outbox.id), event_type=outbox.event_type)
        event_class = event_bus.event_class_for(outbox.event_type)
        if event_class is None:
            log.warning("outbox.no_subscriber")
            outbox.mark_as_failed(f"No subscriber for {outbox.event_type}.")
            failed += 1
            continue

        event = event_class(
            aggregate_id=UUID(outbox.aggregate_id),
            payload=outbox.payload.get("payload", {}),
        )
        try:
            event_bus.publish(event)
        except Exception as exc:
            log.exception("outbox.publish_failed")
            outbox.mark_as_failed(str(exc))
            failed += 1
            continue

        outbox.mark_as_published()
        published += 1

    logger.info("outbox.drained", published=published, failed=failed)
    return {"published": published, "failed": failed}
