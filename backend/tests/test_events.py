# tests/test_events.py
"""
Tests for event emission and delivery.

Events are scheduled with transaction.on_commit, so each test flushes
the callbacks with django_capture_on_commit_callbacks(execute=True).
Celery runs eagerly in tests; delivery lands in tests.event_sink.
"""

from datetime import date

import pytest
from django.db import transaction

from accounting import commands, journal, periods, registry
from accounting.exceptions import NotFoundError
from events import emitter
from events.emitter import build_envelope, emit_event, publish_envelope
from events.tasks import publish_event
from events.types import EventTypes, InvalidEventPayload, LedgerPostedData
from tests import event_sink


# =============================================================================
# Envelopes
# =============================================================================

@pytest.mark.django_db
class TestEventEnvelope:
    """Every event is wrapped in the same envelope."""

    def test_envelope_fields(self, tenant):
        envelope = build_envelope(
            tenant=tenant,
            event_type=EventTypes.PERIOD_REOPENED,
            aggregate_type="fiscal_period",
            aggregate_id=7,
            data={"period_id": 7, "fiscal_year_id": 1, "name": "January 2024"},
        )

        assert envelope["event_type"] == "period.reopened"
        assert envelope["version"] == 1
        assert envelope["tenant_id"] == str(tenant.public_id)
        assert envelope["tenant_slug"] == "acme"
        assert envelope["aggregate_id"] == "7"
        assert envelope["event_id"]
        assert envelope["occurred_at"]

    def test_dataclass_payload_is_json_safe(self):
        payload = LedgerPostedData(
            entry_public_id="abc",
            entry_number="JE-000001",
            entry_date=date(2024, 1, 15),
            total_amount="10.00",
            line_count=2,
        ).to_dict()

        assert payload["entry_date"] == "2024-01-15"
        assert payload["account_codes"] == []

    def test_unknown_event_type_rejected(self, tenant):
        with pytest.raises(InvalidEventPayload):
            emit_event(
                tenant=tenant,
                event_type="account.exploded",
                aggregate_type="account",
                aggregate_id=1,
                data={},
            )

    def test_missing_field_rejected(self, tenant):
        with pytest.raises(InvalidEventPayload) as exc_info:
            emit_event(
                tenant=tenant,
                event_type=EventTypes.PERIOD_REOPENED,
                aggregate_type="fiscal_period",
                aggregate_id=1,
                data={"period_id": 1, "name": "January 2024", "colour": "red"},
            )
        assert "Missing required field 'fiscal_year_id'" in exc_info.value.errors
        assert "Unexpected field 'colour'" in exc_info.value.errors


# =============================================================================
# Delivery
# =============================================================================

@pytest.mark.django_db
class TestEventDelivery:
    """Events reach subscribers only after the transaction commits."""

    def test_posting_publishes_after_commit(
        self, tenant, fiscal_year, cash_account, revenue_account, make_entry,
        published_events, django_capture_on_commit_callbacks,
    ):
        with django_capture_on_commit_callbacks(execute=True) as callbacks:
            entry = make_entry(cash_account, revenue_account, "125.00")
            assert published_events == []

        assert len(callbacks) == 2
        types = [envelope["event_type"] for envelope in published_events]
        assert types == [EventTypes.JOURNAL_ENTRY_CREATED, EventTypes.LEDGER_POSTED]

        posted = published_events[1]
        assert posted["aggregate_id"] == str(entry.public_id)
        assert posted["data"]["entry_number"] == entry.entry_number
        assert posted["data"]["total_amount"] == "125.00"
        assert posted["data"]["account_codes"] == ["1000", "4000"]

    def test_rollback_discards_events(
        self, tenant, account_types, published_events, django_capture_on_commit_callbacks,
    ):
        with django_capture_on_commit_callbacks(execute=True) as callbacks:
            with pytest.raises(RuntimeError):
                with transaction.atomic():
                    registry.create_account(tenant, code="1300", name="Doomed")
                    raise RuntimeError("abort")

        assert callbacks == []
        assert published_events == []

    def test_rejected_operation_emits_nothing(
        self, tenant, published_events, django_capture_on_commit_callbacks,
    ):
        with django_capture_on_commit_callbacks(execute=True) as callbacks:
            with pytest.raises(NotFoundError):
                journal.post_entry(tenant, 31337)

        assert callbacks == []

    def test_calendar_events(
        self, tenant, published_events, django_capture_on_commit_callbacks,
    ):
        with django_capture_on_commit_callbacks(execute=True):
            fy = periods.create_fiscal_year(tenant, start_date="2024-01-01", end_date="2024-12-31")
            january = fy.periods.get(period_number=1)
            periods.close_period(tenant, january.id)
            periods.reopen_period(tenant, january.id)

        assert [e["event_type"] for e in published_events] == [
            EventTypes.FISCAL_YEAR_CREATED,
            EventTypes.PERIOD_CLOSED,
            EventTypes.PERIOD_REOPENED,
        ]
        assert published_events[0]["data"]["period_count"] == 12

    def test_failing_subscriber_is_skipped(self, tenant, settings):
        settings.EVENT_SUBSCRIBERS = ["tests.event_sink.explode", "tests.event_sink.record"]
        event_sink.received.clear()
        envelope = build_envelope(
            tenant=tenant,
            event_type=EventTypes.PERIOD_REOPENED,
            aggregate_type="fiscal_period",
            aggregate_id=1,
            data={"period_id": 1, "fiscal_year_id": 1, "name": "January 2024"},
        )

        delivered = publish_event(envelope)

        assert delivered == 1
        assert event_sink.received == [envelope]
        event_sink.received.clear()

    def test_publish_does_not_retry_broker(self, tenant, monkeypatch):
        calls = []
        monkeypatch.setattr(publish_event, "apply_async", lambda *args, **kwargs: calls.append(kwargs))

        envelope = build_envelope(
            tenant=tenant,
            event_type=EventTypes.PERIOD_REOPENED,
            aggregate_type="fiscal_period",
            aggregate_id=1,
            data={"period_id": 1, "fiscal_year_id": 1, "name": "January 2024"},
        )
        publish_envelope(envelope)

        assert calls == [{"args": [envelope], "retry": False}]

    def test_broker_failure_is_logged_not_raised(self, tenant, monkeypatch):
        def broker_down(*args, **kwargs):
            raise ConnectionError("broker unreachable")

        logged = []
        monkeypatch.setattr(publish_event, "apply_async", broker_down)
        monkeypatch.setattr(emitter.logger, "exception", lambda message, **kwargs: logged.append(message))
        envelope = build_envelope(
            tenant=tenant,
            event_type=EventTypes.PERIOD_REOPENED,
            aggregate_type="fiscal_period",
            aggregate_id=1,
            data={"period_id": 1, "fiscal_year_id": 1, "name": "January 2024"},
        )

        publish_envelope(envelope)

        assert logged == ["Event publish failed; ignoring"]


# =============================================================================
# Command Results
# =============================================================================

@pytest.mark.django_db
class TestCommandResult:
    """Commands convert domain errors into results."""

    def test_success_result(self, tenant, account_types):
        result = commands.create_account(tenant, code="1000", name="Cash")
        assert result.success is True
        assert result.status_code == 201
        assert result.data.code == "1000"

    def test_failure_result(self, tenant, posted_entry):
        result = commands.post_journal_entry(tenant, posted_entry.id)

        assert result.success is False
        assert result.status_code == 409
        assert result.to_error_dict() == {
            "error": {
                "kind": "invalid_state",
                "message": result.error,
                "details": {"status": "posted"},
            }
        }

    def test_not_found_result(self, tenant):
        result = commands.query_journal_entry(tenant, entry_id=123456)
        assert result.success is False
        assert result.status_code == 404
        assert result.error_kind == "not_found"
