"""Audit trail of accepted store mutations."""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from propertysnap.models.enums import StoreEventType
from propertysnap.schemas.base import utcnow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StoreEvent:
    """Emitted by the store after every accepted mutation."""

    type: StoreEventType
    inspection_id: Optional[str] = None
    property_id: Optional[str] = None
    payload: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=utcnow)


@dataclass(frozen=True)
class AuditEntry:
    """One line of the audit trail."""

    sequence: int
    event: StoreEvent
    actor_id: Optional[str] = None


class AuditService:
    """Service for recording audit entries from store events."""

    def __init__(self, actor_id_provider=None):
        self._entries: list[AuditEntry] = []
        self._actor_id_provider = actor_id_provider

    def __call__(self, event: StoreEvent) -> None:
        self.log(event)

    def log(self, event: StoreEvent) -> AuditEntry:
        """Create an audit entry."""
        actor_id = self._actor_id_provider() if self._actor_id_provider else None
        entry = AuditEntry(
            sequence=len(self._entries) + 1,
            event=event,
            actor_id=actor_id,
        )
        self._entries.append(entry)
        logger.info(
            "audit %s",
            event.type.value,
            extra={
                "event_type": event.type.value,
                "inspection_id": event.inspection_id,
                "property_id": event.property_id,
            },
        )
        return entry

    @property
    def entries(self) -> list[AuditEntry]:
        return list(self._entries)

    def entries_for(self, inspection_id: str) -> list[AuditEntry]:
        """Entries touching one inspection, oldest first."""
        return [e for e in self._entries if e.event.inspection_id == inspection_id]

    def entries_for_property(self, property_id: str) -> list[AuditEntry]:
        return [e for e in self._entries if e.event.property_id == property_id]
