"""
Maintenance log reminders and embedded directive compliance.
"""

import asyncio
from datetime import date

from models.counters import CounterType
from models.directive import ComplianceScope, DirectiveCreate, InitialDueType, SummaryComplianceStatus
from models.maintenance import DirectiveComplianceLink, IntervalType, MaintenanceLogCreate
from models.notification import NotificationBasis, NotificationUpdate, Recurrence
from services.completion import CompletionOrchestrator
from services.directive_lifecycle import DirectiveLifecycle
from services.maintenance_sync import MaintenanceLogService
from services.notification_service import NotificationService

from tests.conftest import TEST_AIRCRAFT_ID, TEST_USER_ID


def log_data(**overrides) -> MaintenanceLogCreate:
    data = dict(
        aircraft_id=TEST_AIRCRAFT_ID,
        entry_title="Annual inspection",
        date_performed=date(2024, 4, 10),
        hobbs_at_event=812.4,
        tach_at_event=1502.0,
        airframe_total_time=3210.0,
        engine_total_time=640.0,
        prop_total_time=640.0,
    )
    data.update(overrides)
    return MaintenanceLogCreate(**data)


def open_rows(store, log_id):
    return store.list_notifications(TEST_USER_ID, maintenance_log_id=log_id, is_completed=False)


class TestReminderSync:

    def test_mixed_interval_creates_date_and_counter_rows(self, store):
        async def run():
            result = await MaintenanceLogService(store).create_log(TEST_USER_ID, log_data(
                is_recurring_task=True,
                interval_type=IntervalType.MIXED,
                interval_months=12,
                interval_hours=100,
            ))
            return await open_rows(store, result.log.id)

        rows = {n.notification_basis: n for n in asyncio.run(run())}

        assert rows[NotificationBasis.DATE].initial_date == date(2025, 4, 10)
        assert rows[NotificationBasis.DATE].recurrence == Recurrence.YEARLY
        assert rows[NotificationBasis.COUNTER].counter_type == CounterType.TACH
        assert rows[NotificationBasis.COUNTER].initial_counter_value == 1602.0
        assert rows[NotificationBasis.COUNTER].counter_step == 100

    def test_explicit_next_due_values_win(self, store):
        async def run():
            result = await MaintenanceLogService(store).create_log(TEST_USER_ID, log_data(
                is_recurring_task=True,
                interval_type=IntervalType.MIXED,
                next_due_date=date(2024, 12, 31),
                next_due_hours=1550,
            ))
            return await open_rows(store, result.log.id)

        rows = {n.notification_basis: n for n in asyncio.run(run())}
        assert rows[NotificationBasis.DATE].initial_date == date(2024, 12, 31)
        assert rows[NotificationBasis.COUNTER].initial_counter_value == 1550

    def test_switching_interval_type_updates_in_place(self, store):
        async def run():
            service = MaintenanceLogService(store)
            created = await service.create_log(TEST_USER_ID, log_data(
                is_recurring_task=True, interval_type=IntervalType.MIXED, interval_months=6, interval_hours=50,
            ))
            before = {n.notification_basis: n.id for n in await open_rows(store, created.log.id)}
            updated = await service.update_log(TEST_USER_ID, created.log.id, log_data(
                is_recurring_task=True, interval_type=IntervalType.CALENDAR, interval_months=3,
            ))
            after = await open_rows(store, created.log.id)
            return before, updated, after

        before, updated, after = asyncio.run(run())

        assert len(after) == 1
        assert after[0].id == before[NotificationBasis.DATE]
        assert after[0].initial_date == date(2024, 7, 10)
        assert after[0].recurrence == Recurrence.QUARTERLY
        assert updated.sync.deleted == 1

    def test_frozen_rows_survive_sync_and_delete(self, store):
        async def run():
            service = MaintenanceLogService(store)
            created = await service.create_log(TEST_USER_ID, log_data(
                is_recurring_task=True, interval_type=IntervalType.CALENDAR, interval_months=12,
            ))
            row = (await open_rows(store, created.log.id))[0]
            frozen = await NotificationService(store).update_notification(
                TEST_USER_ID, row.id, NotificationUpdate(initial_date=date(2025, 1, 1))
            )
            updated = await service.update_log(TEST_USER_ID, created.log.id, log_data(
                is_recurring_task=False,
            ))
            after_update = await store.get_notification(TEST_USER_ID, row.id)
            await service.delete_log(TEST_USER_ID, created.log.id)
            after_delete = await store.get_notification(TEST_USER_ID, row.id)
            return frozen, updated, after_update, after_delete

        frozen, updated, after_update, after_delete = asyncio.run(run())

        assert updated.sync.skipped_frozen == [frozen.id]
        assert after_update.initial_date == frozen.initial_date
        assert after_update.user_modified is True
        assert after_update.description == frozen.description
        assert after_delete is not None
        assert after_delete.initial_date == date(2025, 1, 1)

    def test_notes_edit_keeps_completed_cycle(self, store):
        async def run():
            service = MaintenanceLogService(store)
            fields = dict(is_recurring_task=True, interval_type=IntervalType.CALENDAR, interval_months=12)
            created = await service.create_log(TEST_USER_ID, log_data(**fields))
            first = (await open_rows(store, created.log.id))[0]
            completion = await CompletionOrchestrator(store).complete_notification(TEST_USER_ID, first.id)
            await service.update_log(TEST_USER_ID, created.log.id, log_data(
                internal_notes="Torqued spinner bolts", **fields
            ))
            after = await open_rows(store, created.log.id)
            closed = await store.get_notification(TEST_USER_ID, first.id)
            return first, completion, after, closed

        first, completion, after, closed = asyncio.run(run())

        assert first.initial_date == date(2025, 4, 10)
        assert completion.successor.initial_date == date(2026, 4, 10)
        assert [n.initial_date for n in after] == [date(2026, 4, 10)]
        assert after[0].id == completion.successor.id
        assert closed.is_completed is True

    def test_edit_does_not_reopen_completed_one_shot_reminder(self, store):
        async def run():
            service = MaintenanceLogService(store)
            fields = dict(is_recurring_task=True, interval_type=IntervalType.CALENDAR, interval_months=4)
            created = await service.create_log(TEST_USER_ID, log_data(**fields))
            first = (await open_rows(store, created.log.id))[0]
            completion = await CompletionOrchestrator(store).complete_notification(TEST_USER_ID, first.id)
            updated = await service.update_log(TEST_USER_ID, created.log.id, log_data(
                internal_notes="Cleaned battery terminals", **fields
            ))
            after = await open_rows(store, created.log.id)
            return first, completion, updated, after

        first, completion, updated, after = asyncio.run(run())

        assert first.initial_date == date(2024, 8, 10)
        assert first.recurrence == Recurrence.NONE
        assert completion.successor is None
        assert updated.sync.inserted == []
        assert after == []

    def test_changing_due_fields_rederives_reminder(self, store):
        async def run():
            service = MaintenanceLogService(store)
            created = await service.create_log(TEST_USER_ID, log_data(
                is_recurring_task=True, interval_type=IntervalType.CALENDAR, interval_months=4,
            ))
            first = (await open_rows(store, created.log.id))[0]
            await CompletionOrchestrator(store).complete_notification(TEST_USER_ID, first.id)
            await service.update_log(TEST_USER_ID, created.log.id, log_data(
                is_recurring_task=True, interval_type=IntervalType.CALENDAR, interval_months=6,
            ))
            return await open_rows(store, created.log.id)

        after = asyncio.run(run())

        assert [n.initial_date for n in after] == [date(2024, 10, 10)]

    def test_non_recurring_log_has_no_reminders(self, store):
        async def run():
            result = await MaintenanceLogService(store).create_log(TEST_USER_ID, log_data())
            return await open_rows(store, result.log.id)

        assert asyncio.run(run()) == []


class TestDirectiveLinks:

    def test_log_records_compliance_and_delete_recomputes(self, store):
        async def run():
            directive = (await DirectiveLifecycle(store).create_directive(TEST_USER_ID, DirectiveCreate(
                aircraft_id=TEST_AIRCRAFT_ID,
                directive_code="CF-2022-05",
                title="ELT battery",
                compliance_scope=ComplianceScope.CONDITIONAL,
                initial_due_type=InitialDueType.BY_DATE,
                initial_due_date=date(2024, 5, 1),
            ))).directive
            service = MaintenanceLogService(store)
            link = DirectiveComplianceLink(directive_id=directive.id)

            logs = []
            for day in (date(2024, 1, 1), date(2024, 6, 1), date(2024, 8, 1)):
                saved = await service.create_log(
                    TEST_USER_ID, log_data(date_performed=day, directive_compliance=[link])
                )
                logs.append(saved)

            await service.delete_log(TEST_USER_ID, logs[-1].log.id)
            summary = await store.get_directive_status(TEST_USER_ID, directive.id)
            events = await store.list_compliance_events(TEST_USER_ID, directive_id=directive.id)
            return logs, summary, events

        logs, summary, events = asyncio.run(run())

        assert all(saved.warnings == [] for saved in logs)
        assert logs[0].compliance[0].event.maintenance_log_id == logs[0].log.id
        assert len(events) == 2
        assert summary.compliance_status == SummaryComplianceStatus.COMPLIED_ONCE
        assert summary.first_compliance_date == date(2024, 1, 1)
        assert summary.last_compliance_date == date(2024, 6, 1)

    def test_removing_link_on_edit_deletes_event(self, store):
        async def run():
            directive = (await DirectiveLifecycle(store).create_directive(TEST_USER_ID, DirectiveCreate(
                aircraft_id=TEST_AIRCRAFT_ID,
                directive_code="CF-2021-02",
                title="Aileron hinge",
                compliance_scope=ComplianceScope.CONDITIONAL,
                initial_due_type=InitialDueType.AT_NEXT_INSPECTION,
            ))).directive
            service = MaintenanceLogService(store)
            created = await service.create_log(TEST_USER_ID, log_data(
                directive_compliance=[DirectiveComplianceLink(directive_id=directive.id)]
            ))
            updated = await service.update_log(TEST_USER_ID, created.log.id, log_data())
            events = await store.list_compliance_events(TEST_USER_ID, directive_id=directive.id)
            summary = await store.get_directive_status(TEST_USER_ID, directive.id)
            return updated, events, summary

        updated, events, summary = asyncio.run(run())

        assert updated.warnings == []
        assert events == []
        assert summary.compliance_status == SummaryComplianceStatus.NOT_COMPLIED

    def test_relinking_same_log_edits_existing_event(self, store):
        async def run():
            directive = (await DirectiveLifecycle(store).create_directive(TEST_USER_ID, DirectiveCreate(
                aircraft_id=TEST_AIRCRAFT_ID,
                directive_code="CF-2020-11",
                title="Oil cooler hose",
                compliance_scope=ComplianceScope.CONDITIONAL,
                initial_due_type=InitialDueType.BEFORE_NEXT_FLIGHT,
            ))).directive
            service = MaintenanceLogService(store)
            links = [DirectiveComplianceLink(directive_id=directive.id, counter_type=CounterType.TACH)]
            created = await service.create_log(TEST_USER_ID, log_data(directive_compliance=links))
            await service.update_log(TEST_USER_ID, created.log.id, log_data(
                date_performed=date(2024, 4, 12), directive_compliance=links
            ))
            return await store.list_compliance_events(TEST_USER_ID, directive_id=directive.id)

        events = asyncio.run(run())

        assert len(events) == 1
        assert events[0].compliance_date == date(2024, 4, 12)
        assert events[0].counter_value == 1502.0
