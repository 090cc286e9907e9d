"""Tests for the notification scheduler."""

import asyncio
import json
from datetime import datetime, timedelta, timezone

import pytest

from conftest import (
    NOW,
    FailingKeyValueStore,
    FakeNotificationSink,
    YieldingNotificationSink,
    frozen_clock,
)
from propertysnap.models.enums import (
    InspectionType,
    NotificationKind,
    ReminderTiming,
    SignatureParty,
)
from propertysnap.schemas.notification import NotificationPreferences
from propertysnap.services.notifications import (
    NotificationScheduler,
    due_alert_fire_time,
    reminder_fire_time,
)
from propertysnap.services.persistence import MemoryKeyValueStore, SqlKeyValueStore

DUE = datetime(2024, 3, 25, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def scheduler(notification_sink, kv, settings) -> NotificationScheduler:
    return NotificationScheduler(notification_sink, kv, settings, frozen_clock)


class TestFireTimes:
    def test_reminder_leads(self):
        assert reminder_fire_time(DUE, ReminderTiming.ONE_DAY) == DUE - timedelta(days=1)
        assert reminder_fire_time(DUE, ReminderTiming.THREE_DAYS) == DUE - timedelta(days=3)
        assert reminder_fire_time(DUE, ReminderTiming.ONE_WEEK) == DUE - timedelta(days=7)

    def test_due_alert_is_morning_of_due_day(self):
        assert due_alert_fire_time(DUE, 9, "UTC") == datetime(2024, 3, 25, 9, 0, tzinfo=timezone.utc)

    def test_due_alert_in_local_zone(self):
        fire_at = due_alert_fire_time(DUE, 9, "Australia/Melbourne")
        # 12:00 UTC on the 25th is 23:00 on the 25th in Melbourne
        assert (fire_at.year, fire_at.month, fire_at.day, fire_at.hour) == (2024, 3, 25, 9)
        assert fire_at.utcoffset() == timedelta(hours=11)


class TestScheduling:
    """Reminder and due alert for an inspection."""

    async def test_week_ahead(self, scheduler, notification_sink):
        await scheduler.save_preferences(reminder_timing=ReminderTiming.ONE_WEEK)

        ids = await scheduler.schedule_for_inspection(
            "insp-1", DUE, address="12 High St", inspection_type=InspectionType.MOVE_IN
        )

        assert ids == ["notif-1", "notif-2"]
        reminder, due = notification_sink.requests
        assert reminder.trigger == datetime(2024, 3, 18, 12, 0, tzinfo=timezone.utc)
        assert reminder.title == "Inspection Reminder"
        assert reminder.body == "Your Move-In inspection for 12 High St is coming up soon."
        assert reminder.data == {
            "type": "inspection_reminder",
            "inspectionId": "insp-1",
            "propertyAddress": "12 High St",
        }
        assert due.trigger == datetime(2024, 3, 25, 9, 0, tzinfo=timezone.utc)
        assert due.title == "Inspection Due Today"

        index = await scheduler.scheduled_for("insp-1")
        assert [e.kind for e in index] == [NotificationKind.REMINDER, NotificationKind.DUE]
        assert all(e.scheduled_at == NOW for e in index)

    async def test_past_due_date_schedules_nothing(self, scheduler, notification_sink):
        ids = await scheduler.schedule_for_inspection("insp-1", NOW - timedelta(days=1))
        assert ids == []
        assert notification_sink.requests == []

    async def test_due_today_after_alert_hour(self, scheduler, notification_sink):
        ids = await scheduler.schedule_for_inspection("insp-1", NOW + timedelta(hours=6))
        assert ids == []

    async def test_no_due_date(self, scheduler, notification_sink):
        assert await scheduler.schedule_for_inspection("insp-1", None) == []

    async def test_disabled_preferences(self, scheduler, notification_sink):
        await scheduler.save_preferences(enabled=False)
        assert await scheduler.schedule_for_inspection("insp-1", DUE) == []
        assert await scheduler.send_completion("insp-1", SignatureParty.LANDLORD) is None

    async def test_reminders_off_due_alerts_on(self, scheduler, notification_sink):
        await scheduler.save_preferences(inspection_reminders=False)
        ids = await scheduler.schedule_for_inspection("insp-1", DUE)
        assert len(ids) == 1
        assert notification_sink.requests[0].data["type"] == "inspection_due"

    async def test_sink_failure_is_logged_not_raised(self, kv, settings):
        scheduler = NotificationScheduler(FakeNotificationSink(fail=True), kv, settings, frozen_clock)
        assert await scheduler.schedule_for_inspection("insp-1", DUE) == []
        assert await scheduler.scheduled() == []


class TestCancellation:
    async def test_cancel_for_inspection(self, scheduler, notification_sink):
        await scheduler.schedule_for_inspection("insp-1", DUE)
        await scheduler.schedule_for_inspection("insp-2", DUE)

        assert await scheduler.cancel_for_inspection("insp-1") == 2
        assert notification_sink.cancelled == ["notif-1", "notif-2"]
        assert await scheduler.scheduled_for("insp-1") == []
        assert len(await scheduler.scheduled_for("insp-2")) == 2

    async def test_cancel_is_idempotent(self, scheduler, notification_sink):
        await scheduler.schedule_for_inspection("insp-1", DUE)
        await scheduler.cancel_for_inspection("insp-1")
        assert await scheduler.cancel_for_inspection("insp-1") == 0
        assert len(notification_sink.cancelled) == 2

    async def test_cancel_single(self, scheduler, notification_sink):
        await scheduler.schedule_for_inspection("insp-1", DUE)
        await scheduler.cancel("notif-1")
        assert [e.notification_id for e in await scheduler.scheduled()] == ["notif-2"]

    async def test_reschedule(self, scheduler, notification_sink):
        await scheduler.schedule_for_inspection("insp-1", DUE)
        new_ids = await scheduler.reschedule("insp-1", DUE + timedelta(days=7))

        assert notification_sink.cancelled == ["notif-1", "notif-2"]
        assert new_ids == ["notif-3", "notif-4"]
        index = await scheduler.scheduled_for("insp-1")
        assert {e.notification_id for e in index} == {"notif-3", "notif-4"}


class TestImmediate:
    """Completion and tenant-action notifications are not indexed."""

    async def test_completion_by_tenant(self, scheduler, notification_sink):
        notification_id = await scheduler.send_completion(
            "insp-1", SignatureParty.TENANT, address="12 High St"
        )
        assert notification_id == "notif-1"
        request = notification_sink.requests[0]
        assert request.trigger is None
        assert request.title == "Tenant Completed Inspection"
        assert request.data["completedBy"] == "tenant"
        assert await scheduler.scheduled() == []

    async def test_completion_by_landlord(self, scheduler, notification_sink):
        await scheduler.send_completion("insp-1", SignatureParty.LANDLORD, address="12 High St")
        assert notification_sink.requests[0].body == "Your inspection for 12 High St has been completed and signed."

    async def test_tenant_action_ignores_preferences(self, scheduler, notification_sink):
        await scheduler.save_preferences(enabled=False)
        notification_id = await scheduler.send_tenant_action_required("insp-1", address="12 High St")
        assert notification_id == "notif-1"
        assert notification_sink.requests[0].body == "Please complete your inspection for 12 High St."


class TestStorage:
    async def test_preferences_default(self, scheduler):
        assert await scheduler.load_preferences() == NotificationPreferences()
        assert (await scheduler.load_preferences()).reminder_timing == ReminderTiming.ONE_DAY

    async def test_preferences_document(self, scheduler, kv):
        await scheduler.save_preferences(due_date_alerts=False)
        document = json.loads(kv.data["@notification_preferences"])
        assert document["dueDateAlerts"] is False
        assert document["reminderTiming"] == "1_day"

    async def test_invalid_preferences_fall_back(self, scheduler, kv):
        kv.data["@notification_preferences"] = b"[]"
        assert await scheduler.load_preferences() == NotificationPreferences()

    async def test_index_document(self, scheduler, kv):
        await scheduler.schedule_for_inspection("insp-1", DUE)
        document = json.loads(kv.data["@scheduled_notifications"])
        assert set(document[0]) == {"notificationId", "inspectionId", "kind", "scheduledAt", "fireAt"}
        assert document[0]["kind"] == "inspection_reminder"

    async def test_legacy_index_type_key(self, scheduler, kv):
        kv.data["@scheduled_notifications"] = json.dumps([{
            "notificationId": "old-1",
            "inspectionId": "insp-9",
            "type": "inspection_due",
            "scheduledAt": "2024-03-01T00:00:00Z",
        }]).encode()
        assert await scheduler.cancel_for_inspection("insp-9") == 1


class TestConcurrentIndexUpdates:
    """Interleaved scheduling against a database-backed index."""

    @pytest.fixture
    def sink(self) -> YieldingNotificationSink:
        return YieldingNotificationSink()

    @pytest.fixture
    def sql_scheduler(self, sink, session_factory, settings) -> NotificationScheduler:
        return NotificationScheduler(sink, SqlKeyValueStore(session_factory), settings, frozen_clock)

    async def test_parallel_reminders_on_empty_index(self, sql_scheduler, sink):
        ids = await asyncio.gather(
            sql_scheduler.schedule_reminder("insp-1", DUE),
            sql_scheduler.schedule_reminder("insp-2", DUE),
        )

        assert sorted(ids) == ["notif-1", "notif-2"]
        indexed = {e.notification_id for e in await sql_scheduler.scheduled()}
        assert indexed == set(sink.ids)

        assert await sql_scheduler.cancel_for_inspection("insp-1") == 1
        assert await sql_scheduler.cancel_for_inspection("insp-2") == 1
        assert sorted(sink.cancelled) == ["notif-1", "notif-2"]
        assert await sql_scheduler.scheduled() == []

    async def test_parallel_schedules_on_existing_index(self, sql_scheduler, sink):
        await sql_scheduler.schedule_for_inspection("insp-0", DUE)

        await asyncio.gather(
            sql_scheduler.schedule_for_inspection("insp-1", DUE),
            sql_scheduler.schedule_for_inspection("insp-2", DUE),
        )

        index = await sql_scheduler.scheduled()
        assert len(index) == 6
        assert {e.notification_id for e in index} == set(sink.ids)
        for inspection_id in ("insp-0", "insp-1", "insp-2"):
            assert len(await sql_scheduler.scheduled_for(inspection_id)) == 2

    async def test_cancel_while_scheduling(self, sql_scheduler, sink):
        await sql_scheduler.schedule_for_inspection("insp-1", DUE)

        await asyncio.gather(
            sql_scheduler.schedule_for_inspection("insp-2", DUE),
            sql_scheduler.cancel_for_inspection("insp-1"),
        )

        index = await sql_scheduler.scheduled()
        assert {e.inspection_id for e in index} == {"insp-2"}
        assert len(index) == 2
        assert sorted(sink.cancelled) == ["notif-1", "notif-2"]

    async def test_index_write_failure_withdraws_notification(self, sink, settings):
        kv = FailingKeyValueStore(MemoryKeyValueStore(), settings.scheduled_notifications_key)
        scheduler = NotificationScheduler(sink, kv, settings, frozen_clock)

        assert await scheduler.schedule_reminder("insp-1", DUE) is None
        assert sink.ids == ["notif-1"]
        assert sink.cancelled == ["notif-1"]
        assert await scheduler.scheduled() == []
