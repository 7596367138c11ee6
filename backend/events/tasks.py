"""
Celery tasks for event delivery.

publish_event fans an envelope out to the subscribers configured in
settings.EVENT_SUBSCRIBERS (dotted paths to callables taking the envelope).

Usage:
    from events.tasks import publish_event
    publish_event.apply_async(args=[envelope], retry=False)
"""
import logging

from celery import shared_task
from django.conf import settings
from django.utils.module_loading import import_string

logger = logging.getLogger(__name__)


def get_subscribers() -> list:
    return [import_string(path) for path in getattr(settings, "EVENT_SUBSCRIBERS", [])]


@shared_task(ignore_result=True)
def publish_event(envelope: dict) -> int:
    """
    Deliver one event envelope to every subscriber.

    A failing subscriber is logged and skipped so the others still
    receive the event.

    Returns:
        Number of subscribers that accepted the event
    """
    delivered = 0
    for subscriber in get_subscribers():
        try:
            subscriber(envelope)
        except Exception:
            logger.exception(
                "Event subscriber failed",
                extra={
                    "event_type": envelope.get("event_type"),
                    "event_id": envelope.get("event_id"),
                    "subscriber": getattr(subscriber, "__name__", repr(subscriber)),
                },
            )
            continue
        delivered += 1

    logger.info(
        "Published event",
        extra={
            "event_type": envelope.get("event_type"),
            "event_id": envelope.get("event_id"),
            "tenant": envelope.get("tenant_slug"),
            "subscribers": delivered,
        },
    )
    return delivered
