"""
Directive compliance pipeline: events, summary recompute, history,
notification advance and directive completion.
"""

import asyncio
from datetime import date

import pytest

from models.counters import CounterType, CounterUpdate
from models.directive import (
    ComplianceEventCreate,
    ComplianceEventStatus,
    ComplianceSaveRequest,
    ComplianceScope,
    DirectiveCreate,
    DirectiveStatus,
    HistoryAction,
    InitialDueType,
    SummaryComplianceStatus,
)
from models.notification import NotificationBasis, NotificationUpdate
from services.directive_compliance import DirectiveComplianceService
from services.directive_lifecycle import DirectiveLifecycle
from services.errors import RecordNotFoundError, StoreWriteError
from services.notification_service import NotificationService

from tests.conftest import TEST_AIRCRAFT_ID, TEST_USER_ID

TODAY = date(2024, 2, 1)


def directive_data(**overrides) -> DirectiveCreate:
    data = dict(
        aircraft_id=TEST_AIRCRAFT_ID,
        directive_code="CF-2023-17",
        title="Seat rail inspection",
        compliance_scope=ComplianceScope.ONE_TIME,
        initial_due_type=InitialDueType.BY_DATE,
        initial_due_date=date(2024, 3, 1),
    )
    data.update(overrides)
    return DirectiveCreate(**data)


def complied(directive_id: str, on: date, **overrides) -> ComplianceSaveRequest:
    event = dict(directive_id=directive_id, compliance_date=on)
    event.update(overrides)
    return ComplianceSaveRequest(event=ComplianceEventCreate(**event))


async def create(store, **overrides):
    result = await DirectiveLifecycle(store).create_directive(TEST_USER_ID, directive_data(**overrides), TODAY)
    return result.directive


class TestOneTimeDirective:

    def test_compliance_completes_directive_and_clears_notifications(self, store):
        async def run():
            directive = await create(store)
            before = await store.list_notifications(TEST_USER_ID, directive_id=directive.id)
            result = await DirectiveComplianceService(store).save_compliance(
                TEST_USER_ID, directive.id, complied(directive.id, date(2024, 2, 20)), TODAY
            )
            after = await store.list_notifications(TEST_USER_ID, directive_id=directive.id)
            reloaded = await store.get_directive(TEST_USER_ID, directive.id)
            return before, result, after, reloaded

        before, result, after, reloaded = asyncio.run(run())

        assert len(before) == 1
        assert before[0].initial_date == date(2024, 3, 1)
        assert result.directive_completed is True
        assert result.warnings == []
        assert reloaded.directive_status == DirectiveStatus.COMPLETED
        assert after == []
        assert result.summary.compliance_status == SummaryComplianceStatus.COMPLIED_ONCE

    def test_completion_removes_frozen_rows_too(self, store):
        async def run():
            directive = await create(store)
            row = (await store.list_notifications(TEST_USER_ID, directive_id=directive.id))[0]
            await NotificationService(store).update_notification(
                TEST_USER_ID, row.id, NotificationUpdate(notes="Booked with AME")
            )
            await DirectiveComplianceService(store).save_compliance(
                TEST_USER_ID, directive.id, complied(directive.id, date(2024, 2, 20)), TODAY
            )
            return await store.list_notifications(TEST_USER_ID, directive_id=directive.id)

        assert asyncio.run(run()) == []

    def test_not_complied_event_changes_nothing_downstream(self, store):
        async def run():
            directive = await create(store)
            result = await DirectiveComplianceService(store).save_compliance(
                TEST_USER_ID,
                directive.id,
                complied(directive.id, date(2024, 2, 20), compliance_status=ComplianceEventStatus.NOT_COMPLIED),
                TODAY,
            )
            history = await store.list_history(TEST_USER_ID, action_type=HistoryAction.COMPLIANCE)
            open_rows = await store.list_notifications(TEST_USER_ID, directive_id=directive.id, is_completed=False)
            return result, history, open_rows

        result, history, open_rows = asyncio.run(run())

        assert result.directive_completed is False
        assert result.history_entry_id is None
        assert history == []
        assert len(open_rows) == 1
        assert result.summary.compliance_status == SummaryComplianceStatus.NOT_COMPLIED


class TestRecurringDirective:

    def test_next_notification_anchors_on_compliance_date(self, store):
        async def run():
            directive = await create(
                store,
                compliance_scope=ComplianceScope.RECURRING,
                initial_due_date=date(2024, 1, 1),
                repeat_months=12,
            )
            result = await DirectiveComplianceService(store).save_compliance(
                TEST_USER_ID, directive.id, complied(directive.id, date(2024, 3, 1)), TODAY
            )
            rows = await store.list_notifications(TEST_USER_ID, sort="initial_date", directive_id=directive.id)
            return result, rows

        result, rows = asyncio.run(run())

        assert result.directive_completed is False
        assert [(r.initial_date, r.is_completed) for r in rows] == [
            (date(2024, 1, 1), True),
            (date(2025, 3, 1), False),
        ]
        assert result.completed_notification_id == rows[0].id
        assert result.next_notification_id == rows[1].id
        assert result.summary.compliance_status == SummaryComplianceStatus.RECURRING_CURRENT
        assert result.summary.next_due_date == date(2025, 3, 1)

    def test_withdrawn_compliance_drops_anchored_notification(self, store):
        async def run():
            directive = await create(
                store,
                compliance_scope=ComplianceScope.RECURRING,
                initial_due_date=date(2024, 1, 1),
                repeat_months=12,
            )
            service = DirectiveComplianceService(store)
            saved = await service.save_compliance(
                TEST_USER_ID, directive.id, complied(directive.id, date(2024, 3, 1)), TODAY
            )
            withdraw = complied(
                directive.id, date(2024, 3, 1), compliance_status=ComplianceEventStatus.NOT_COMPLIED
            )
            withdraw.event_id = saved.event.id
            result = await service.save_compliance(TEST_USER_ID, directive.id, withdraw, TODAY)
            open_rows = await store.list_notifications(
                TEST_USER_ID, directive_id=directive.id, is_completed=False
            )
            return result, open_rows

        result, open_rows = asyncio.run(run())

        assert result.warnings == []
        assert result.summary.compliance_status == SummaryComplianceStatus.NOT_COMPLIED
        assert [r.initial_date for r in open_rows] == [date(2024, 1, 1)]

    def test_counter_directive_uses_current_reading(self, store):
        async def run():
            await store.update_counters(TEST_USER_ID, TEST_AIRCRAFT_ID, CounterUpdate(tach=1200))
            directive = await create(
                store,
                compliance_scope=ComplianceScope.RECURRING,
                initial_due_type=InitialDueType.BY_TOTAL_TIME,
                initial_due_date=None,
                initial_due_hours=50,
                counter_type=CounterType.TACH,
                repeat_hours=100,
            )
            await store.update_counters(TEST_USER_ID, TEST_AIRCRAFT_ID, CounterUpdate(tach=1248))
            result = await DirectiveComplianceService(store).save_compliance(
                TEST_USER_ID, directive.id, complied(directive.id, date(2024, 2, 1)), TODAY
            )
            rows = await store.list_notifications(TEST_USER_ID, directive_id=directive.id, is_completed=False)
            return directive, result, rows

        directive, result, rows = asyncio.run(run())

        assert directive.initial_due_counter_value == 1250
        assert result.event.counter_value == 1248
        assert result.event.counter_type == CounterType.TACH
        assert len(rows) == 1
        assert rows[0].notification_basis == NotificationBasis.COUNTER
        assert rows[0].initial_counter_value == 1348

    def test_explicit_completion_request(self, store):
        async def run():
            directive = await create(
                store, compliance_scope=ComplianceScope.RECURRING, repeat_months=6
            )
            request = complied(directive.id, date(2024, 2, 10))
            request.mark_directive_completed = True
            result = await DirectiveComplianceService(store).save_compliance(
                TEST_USER_ID, directive.id, request, TODAY
            )
            rows = await store.list_notifications(TEST_USER_ID, directive_id=directive.id)
            return result, rows

        result, rows = asyncio.run(run())
        assert result.directive_completed is True
        assert rows == []

    def test_informational_directive_ignores_completion_request(self, store):
        async def run():
            directive = await create(store, compliance_scope=ComplianceScope.INFORMATIONAL_ONLY)
            request = complied(directive.id, date(2024, 2, 10))
            request.mark_directive_completed = True
            result = await DirectiveComplianceService(store).save_compliance(
                TEST_USER_ID, directive.id, request, TODAY
            )
            return result, await store.get_directive(TEST_USER_ID, directive.id)

        result, directive = asyncio.run(run())
        assert result.directive_completed is False
        assert directive.directive_status == DirectiveStatus.ACTIVE


class TestSecondaryFailures:

    def test_failed_history_and_summary_keep_event(self, store, monkeypatch):
        async def failing_history(entry):
            raise StoreWriteError("Failed to insert into directive_history")

        async def failing_recompute(user_id, directive):
            raise StoreWriteError("Failed to write directive summary")

        async def run():
            directive = await create(
                store,
                compliance_scope=ComplianceScope.RECURRING,
                initial_due_date=date(2024, 1, 1),
                repeat_months=12,
            )
            monkeypatch.setattr(store, "append_history", failing_history)
            monkeypatch.setattr(store, "with_consistency_recompute", failing_recompute)
            result = await DirectiveComplianceService(store).save_compliance(
                TEST_USER_ID, directive.id, complied(directive.id, date(2024, 3, 1)), TODAY
            )
            stored = await store.get_compliance_event(TEST_USER_ID, result.event.id)
            open_rows = await store.list_notifications(
                TEST_USER_ID, directive_id=directive.id, is_completed=False
            )
            return result, stored, open_rows

        result, stored, open_rows = asyncio.run(run())

        assert stored is not None
        assert stored.compliance_date == date(2024, 3, 1)
        assert result.summary is None
        assert result.history_entry_id is None
        assert len(result.warnings) == 2
        assert [r.initial_date for r in open_rows] == [date(2025, 3, 1)]

    def test_failed_notification_step_still_returns_event(self, store, monkeypatch):
        async def failing_close(user_id, notification_id, completed_at):
            raise StoreWriteError("Failed to update notifications")

        async def run():
            directive = await create(store, compliance_scope=ComplianceScope.CONDITIONAL)
            monkeypatch.setattr(store, "mark_notification_completed", failing_close)
            result = await DirectiveComplianceService(store).save_compliance(
                TEST_USER_ID, directive.id, complied(directive.id, date(2024, 2, 10)), TODAY
            )
            return result, await store.list_compliance_events(TEST_USER_ID, directive_id=directive.id)

        result, events = asyncio.run(run())

        assert [e.id for e in events] == [result.event.id]
        assert result.summary.compliance_status == SummaryComplianceStatus.COMPLIED_ONCE
        assert result.warnings == ["Compliance saved but linked notifications could not be updated"]


class TestSummaryRecompute:

    def test_first_and_last_follow_surviving_events(self, store):
        async def run():
            directive = await create(store, compliance_scope=ComplianceScope.CONDITIONAL)
            service = DirectiveComplianceService(store)
            saved = []
            for day in (date(2024, 1, 1), date(2024, 6, 1), date(2024, 9, 1)):
                saved.append(await service.save_compliance(
                    TEST_USER_ID, directive.id, complied(directive.id, day), TODAY
                ))
            middle_summary = saved[-1].summary
            deleted = await service.delete_compliance_event(TEST_USER_ID, saved[-1].event.id)
            return middle_summary, deleted

        middle_summary, deleted = asyncio.run(run())

        assert middle_summary.first_compliance_date == date(2024, 1, 1)
        assert middle_summary.last_compliance_date == date(2024, 9, 1)
        assert deleted.summary.first_compliance_date == date(2024, 1, 1)
        assert deleted.summary.last_compliance_date == date(2024, 6, 1)

    def test_deleting_last_event_resets_summary(self, store):
        async def run():
            directive = await create(store, compliance_scope=ComplianceScope.CONDITIONAL)
            service = DirectiveComplianceService(store)
            saved = await service.save_compliance(
                TEST_USER_ID, directive.id, complied(directive.id, date(2024, 1, 5)), TODAY
            )
            return await service.delete_compliance_event(TEST_USER_ID, saved.event.id)

        result = asyncio.run(run())

        assert result.deleted is True
        assert result.summary.compliance_status == SummaryComplianceStatus.NOT_COMPLIED
        assert result.summary.first_compliance_date is None
        assert result.summary.last_compliance_date is None

    def test_editing_event_date_rewrites_summary_and_history(self, store):
        async def run():
            directive = await create(store, compliance_scope=ComplianceScope.CONDITIONAL)
            service = DirectiveComplianceService(store)
            first = await service.save_compliance(
                TEST_USER_ID, directive.id, complied(directive.id, date(2024, 1, 5)), TODAY
            )
            edit = complied(directive.id, date(2024, 1, 2))
            edit.event_id = first.event.id
            second = await service.save_compliance(TEST_USER_ID, directive.id, edit, TODAY)
            history = await store.list_history(TEST_USER_ID, action_type=HistoryAction.COMPLIANCE)
            events = await store.list_compliance_events(TEST_USER_ID, directive_id=directive.id)
            return second, history, events

        second, history, events = asyncio.run(run())

        assert len(events) == 1
        assert second.summary.first_compliance_date == date(2024, 1, 2)
        assert len(history) == 2

    def test_unknown_event(self, store):
        with pytest.raises(RecordNotFoundError):
            asyncio.run(DirectiveComplianceService(store).delete_compliance_event(TEST_USER_ID, "missing"))
