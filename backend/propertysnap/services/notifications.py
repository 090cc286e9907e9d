"""Notification scheduler.

Computes fire-times for inspection reminders and due-date alerts, posts
immediate completion and tenant-action notifications, and keeps an index of
scheduled notification ids per inspection so they can be cancelled.
"""

import asyncio
import logging
from datetime import datetime
from typing import Any, Callable, Optional

from pydantic import TypeAdapter, ValidationError

from propertysnap.core.config import Settings, get_settings
from propertysnap.core.exceptions import CollaboratorError
from propertysnap.models.enums import (
    InspectionType,
    NotificationKind,
    ReminderTiming,
    SignatureParty,
)
from propertysnap.schemas.base import utcnow
from propertysnap.schemas.notification import (
    NotificationPreferences,
    NotificationRequest,
    ScheduledNotification,
)
from propertysnap.services.formatting import report_zone
from propertysnap.services.interfaces import KeyValueStore, NotificationSink

logger = logging.getLogger(__name__)

_index_adapter = TypeAdapter(list[ScheduledNotification])


def reminder_fire_time(due_date: datetime, timing: ReminderTiming) -> datetime:
    return due_date - timing.lead


def due_alert_fire_time(due_date: datetime, hour: int = 9, zone_name: Optional[str] = None) -> datetime:
    """``hour``:00 local time on the calendar day of ``due_date``."""
    local = due_date.astimezone(report_zone(zone_name))
    return local.replace(hour=hour, minute=0, second=0, microsecond=0)


def reminder_content(address: str, inspection_type: InspectionType) -> tuple[str, str]:
    return (
        "Inspection Reminder",
        f"Your {inspection_type.label} inspection for {address} is coming up soon.",
    )


def due_content(address: str, inspection_type: InspectionType) -> tuple[str, str]:
    return (
        "Inspection Due Today",
        f"Your {inspection_type.label} inspection for {address} is due today. "
        "Don't forget to complete it!",
    )


def completion_content(address: str, completed_by: SignatureParty) -> tuple[str, str]:
    if completed_by == SignatureParty.TENANT:
        return (
            "Tenant Completed Inspection",
            f"The tenant has completed their portion of the inspection for {address}. "
            "Please review and sign.",
        )
    return (
        "Inspection Completed",
        f"Your inspection for {address} has been completed and signed.",
    )


def tenant_action_content(address: str, message: Optional[str] = None) -> tuple[str, str]:
    return (
        "Inspection Action Required",
        message or f"Please complete your inspection for {address}.",
    )


class NotificationScheduler:
    """Schedules and cancels inspection notifications through a sink."""

    def __init__(
        self,
        sink: NotificationSink,
        kv: KeyValueStore,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.sink = sink
        self.kv = kv
        self.settings = settings or get_settings()
        self.clock = clock
        # Serialises every read-modify-write of the scheduled index
        self._index_lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Preferences
    # ------------------------------------------------------------------

    async def load_preferences(self) -> NotificationPreferences:
        """Stored preferences merged over the defaults."""
        try:
            raw = await self.kv.get(self.settings.notification_preferences_key)
        except CollaboratorError as e:
            logger.warning("Failed to read notification preferences: %s", e.message)
            return NotificationPreferences()
        if raw is None:
            return NotificationPreferences()
        try:
            return NotificationPreferences.model_validate_json(raw)
        except ValidationError as e:
            logger.warning("Ignoring invalid notification preferences: %s", e)
            return NotificationPreferences()

    async def save_preferences(self, **changes: Any) -> NotificationPreferences:
        preferences = (await self.load_preferences()).evolve(**changes)
        await self.kv.put(
            self.settings.notification_preferences_key,
            preferences.model_dump_json(by_alias=True).encode("utf-8"),
        )
        return preferences

    # ------------------------------------------------------------------
    # Index
    # ------------------------------------------------------------------

    async def _load_index(self) -> list[ScheduledNotification]:
        raw = await self.kv.get(self.settings.scheduled_notifications_key)
        if raw is None:
            return []
        try:
            return _index_adapter.validate_json(raw)
        except ValidationError as e:
            logger.warning("Discarding invalid notification index: %s", e)
            return []

    async def _save_index(self, entries: list[ScheduledNotification]) -> None:
        await self.kv.put(
            self.settings.scheduled_notifications_key,
            _index_adapter.dump_json(entries, by_alias=True),
        )

    async def scheduled(self) -> list[ScheduledNotification]:
        return await self._load_index()

    async def scheduled_for(self, inspection_id: str) -> list[ScheduledNotification]:
        return [e for e in await self._load_index() if e.inspection_id == inspection_id]

    # ------------------------------------------------------------------
    # Sink calls
    # ------------------------------------------------------------------

    async def _post(
        self,
        inspection_id: str,
        kind: NotificationKind,
        title: str,
        body: str,
        trigger: Optional[datetime] = None,
        **data: Any,
    ) -> Optional[str]:
        request = NotificationRequest(
            title=title,
            body=body,
            data={"type": kind.value, "inspectionId": inspection_id, **data},
            trigger=trigger,
        )
        try:
            notification_id = await self.sink.schedule(request)
        except Exception:
            logger.exception(
                "Notification sink failed to schedule %s",
                kind.value,
                extra={"inspection_id": inspection_id},
            )
            return None

        if trigger is not None:
            entry = ScheduledNotification(
                notification_id=notification_id,
                inspection_id=inspection_id,
                kind=kind,
                scheduled_at=self.clock(),
                fire_at=trigger,
            )
            try:
                async with self._index_lock:
                    entries = await self._load_index()
                    entries.append(entry)
                    await self._save_index(entries)
            except CollaboratorError as e:
                # An unindexed notification could never be cancelled
                logger.error(
                    "Failed to index %s notification, withdrawing it: %s",
                    kind.value,
                    e.message,
                    extra={"inspection_id": inspection_id, "notification_id": notification_id},
                )
                await self._cancel_at_sink(notification_id)
                return None

        logger.info(
            "Posted %s notification",
            kind.value,
            extra={"inspection_id": inspection_id, "notification_id": notification_id},
        )
        return notification_id

    async def schedule_reminder(
        self,
        inspection_id: str,
        due_date: datetime,
        timing: Optional[ReminderTiming] = None,
        *,
        address: str = "",
        inspection_type: InspectionType = InspectionType.ROUTINE,
    ) -> Optional[str]:
        """Schedule the pre-due reminder. Returns ``None`` if it would fire now or earlier."""
        preferences = await self.load_preferences()
        if not preferences.allows(NotificationKind.REMINDER):
            return None
        fire_at = reminder_fire_time(due_date, timing or preferences.reminder_timing)
        if fire_at <= self.clock():
            logger.debug("Reminder for %s is in the past", inspection_id)
            return None
        title, body = reminder_content(address, inspection_type)
        return await self._post(
            inspection_id, NotificationKind.REMINDER, title, body, fire_at,
            propertyAddress=address,
        )

    async def schedule_due_date_alert(
        self,
        inspection_id: str,
        due_date: datetime,
        *,
        address: str = "",
        inspection_type: InspectionType = InspectionType.ROUTINE,
    ) -> Optional[str]:
        """Schedule the morning-of alert on the due date."""
        preferences = await self.load_preferences()
        if not preferences.allows(NotificationKind.DUE):
            return None
        fire_at = due_alert_fire_time(
            due_date,
            self.settings.due_alert_hour,
            self.settings.notification_timezone or self.settings.report_timezone,
        )
        if fire_at <= self.clock():
            logger.debug("Due alert for %s is in the past", inspection_id)
            return None
        title, body = due_content(address, inspection_type)
        return await self._post(
            inspection_id, NotificationKind.DUE, title, body, fire_at,
            propertyAddress=address,
        )

    async def send_completion(
        self,
        inspection_id: str,
        completed_by: SignatureParty,
        *,
        address: str = "",
    ) -> Optional[str]:
        preferences = await self.load_preferences()
        if not preferences.allows(NotificationKind.COMPLETED):
            return None
        title, body = completion_content(address, completed_by)
        return await self._post(
            inspection_id, NotificationKind.COMPLETED, title, body,
            propertyAddress=address, completedBy=completed_by.value,
        )

    async def send_tenant_action_required(
        self,
        inspection_id: str,
        message: Optional[str] = None,
        *,
        address: str = "",
    ) -> Optional[str]:
        """Always sent, regardless of preferences."""
        title, body = tenant_action_content(address, message)
        return await self._post(
            inspection_id, NotificationKind.TENANT_ACTION, title, body,
            propertyAddress=address,
        )

    async def _cancel_at_sink(self, notification_id: str) -> None:
        try:
            await self.sink.cancel(notification_id)
        except Exception:
            logger.exception(
                "Notification sink failed to cancel",
                extra={"notification_id": notification_id},
            )

    async def cancel(self, notification_id: str) -> None:
        """Cancel one notification. Unknown ids are ignored."""
        await self._cancel_at_sink(notification_id)
        async with self._index_lock:
            entries = await self._load_index()
            remaining = [e for e in entries if e.notification_id != notification_id]
            if len(remaining) != len(entries):
                await self._save_index(remaining)

    async def cancel_for_inspection(self, inspection_id: str) -> int:
        """Cancel every scheduled notification of one inspection. Idempotent."""
        async with self._index_lock:
            entries = await self._load_index()
            doomed = [e for e in entries if e.inspection_id == inspection_id]
            if doomed:
                await self._save_index([e for e in entries if e.inspection_id != inspection_id])
        for entry in doomed:
            await self._cancel_at_sink(entry.notification_id)
        if doomed:
            logger.info(
                "Cancelled %d notifications",
                len(doomed),
                extra={"inspection_id": inspection_id},
            )
        return len(doomed)

    async def schedule_for_inspection(
        self,
        inspection_id: str,
        due_date: Optional[datetime],
        *,
        address: str = "",
        inspection_type: InspectionType = InspectionType.ROUTINE,
    ) -> list[str]:
        """Reminder plus due alert for a due date; nothing when there is none."""
        if due_date is None:
            return []
        ids = [
            await self.schedule_reminder(
                inspection_id, due_date, address=address, inspection_type=inspection_type
            ),
            await self.schedule_due_date_alert(
                inspection_id, due_date, address=address, inspection_type=inspection_type
            ),
        ]
        return [i for i in ids if i is not None]

    async def reschedule(
        self,
        inspection_id: str,
        due_date: Optional[datetime],
        *,
        address: str = "",
        inspection_type: InspectionType = InspectionType.ROUTINE,
    ) -> list[str]:
        """Cancel then schedule again after a due-date change."""
        await self.cancel_for_inspection(inspection_id)
        return await self.schedule_for_inspection(
            inspection_id, due_date, address=address, inspection_type=inspection_type
        )
