# events/emitter.py
"""
Event emission.

emit_event() validates the payload, wraps it in an envelope and schedules
publication for when the surrounding transaction commits:

- If the transaction rolls back, the event is discarded with it.
- Publication hands the envelope to a Celery task. If the broker is
  unreachable the failure is logged and ignored; the ledger change has
  already committed and the caller is never blocked on the bus.
"""

from __future__ import annotations

import logging
import uuid
from typing import Any, Dict, Union

from django.db import transaction
from django.utils import timezone

from events.types import BaseEventData, validate_event_payload

logger = logging.getLogger(__name__)

ENVELOPE_VERSION = 1


def build_envelope(
    *,
    tenant,
    event_type: str,
    aggregate_type: str,
    aggregate_id: Any,
    data: Dict[str, Any],
) -> Dict[str, Any]:
    return {
        "event_id": str(uuid.uuid4()),
        "event_type": event_type,
        "version": ENVELOPE_VERSION,
        "tenant_id": str(tenant.public_id),
        "tenant_slug": tenant.slug,
        "aggregate_type": aggregate_type,
        "aggregate_id": str(aggregate_id),
        "occurred_at": timezone.now().isoformat(),
        "data": data,
    }


def emit_event(
    *,
    tenant,
    event_type: str,
    aggregate_type: str,
    aggregate_id: Any,
    data: Union[Dict[str, Any], BaseEventData],
) -> Dict[str, Any]:
    """
    Validate and schedule an event for publication after commit.

    Args:
        tenant: The tenant whose books changed
        event_type: One of events.types.EventTypes
        aggregate_type: e.g. "account", "journal_entry", "fiscal_year"
        aggregate_id: Identifier of the aggregate instance
        data: Payload dataclass (preferred) or dict

    Returns:
        The envelope that will be published.

    Raises:
        InvalidEventPayload: If the payload does not match its schema
    """
    payload = data.to_dict() if isinstance(data, BaseEventData) else dict(data)
    validate_event_payload(event_type, payload)

    envelope = build_envelope(
        tenant=tenant,
        event_type=event_type,
        aggregate_type=aggregate_type,
        aggregate_id=aggregate_id,
        data=payload,
    )
    transaction.on_commit(lambda: publish_envelope(envelope))
    return envelope


def publish_envelope(envelope: Dict[str, Any]) -> None:
    """Hand an envelope to the bus. Never raises."""
    # Deferred so importing the emitter does not pull in the Celery app.
    from events.tasks import publish_event

    try:
        # Fail fast when the broker is down.
        publish_event.apply_async(args=[envelope], retry=False)
    except Exception:
        logger.exception(
            "Event publish failed; ignoring",
            extra={
                "event_type": envelope["event_type"],
                "event_id": envelope["event_id"],
                "tenant": envelope["tenant_slug"],
            },
        )
