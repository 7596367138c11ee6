# events/__init__.py
"""
Events app - fire-and-forget notifications for ledger changes.

Other modules learn that "a posting happened" through these events.
They are published only after the accounting transaction commits, and a
publishing failure never affects the transaction that produced it.

Usage:
    from events.emitter import emit_event
    from events.types import EventTypes, LedgerPostedData

    emit_event(
        tenant=tenant,
        event_type=EventTypes.LEDGER_POSTED,
        aggregate_type="journal_entry",
        aggregate_id=entry.public_id,
        data=LedgerPostedData(...),
    )
"""
