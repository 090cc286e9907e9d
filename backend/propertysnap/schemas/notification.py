"""Notification preference and index schemas."""

from datetime import datetime
from typing import Any, Optional

from pydantic import AliasChoices, Field

from propertysnap.schemas.base import BaseSchema, UtcDatetime
from propertysnap.models.enums import NotificationKind, ReminderTiming


class NotificationPreferences(BaseSchema):
    """Stored under ``@notification_preferences``. Default is all-on, 1-day lead."""

    enabled: bool = True
    inspection_reminders: bool = True
    due_date_alerts: bool = True
    completion_notifications: bool = True
    reminder_timing: ReminderTiming = ReminderTiming.ONE_DAY

    def allows(self, kind: NotificationKind) -> bool:
        if kind == NotificationKind.TENANT_ACTION:
            return True
        if not self.enabled:
            return False
        if kind == NotificationKind.REMINDER:
            return self.inspection_reminders
        if kind == NotificationKind.DUE:
            return self.due_date_alerts
        return self.completion_notifications


class ScheduledNotification(BaseSchema):
    """One entry of the ``@scheduled_notifications`` index."""

    notification_id: str
    inspection_id: str
    kind: NotificationKind = Field(
        ..., validation_alias=AliasChoices("kind", "type")
    )
    scheduled_at: UtcDatetime
    fire_at: Optional[UtcDatetime] = None


class NotificationRequest(BaseSchema):
    """Payload handed to the notification sink.

    ``trigger`` is ``None`` for an immediate notification, otherwise the
    absolute fire time.
    """

    title: str
    body: str
    data: dict[str, Any] = Field(default_factory=dict)
    trigger: Optional[datetime] = None
