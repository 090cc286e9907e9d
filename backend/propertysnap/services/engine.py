"""
PropertySnap engine.

Wires the store to its persistence, audit trail and notification lifecycle,
and exposes the capture, geocoding and export flows that need more than one
service. The host shell owns one engine per signed-in device.
"""

import asyncio
import logging
from datetime import datetime
from typing import Callable, Optional

from propertysnap.core.config import Settings, get_settings
from propertysnap.core.env_validation import validate_environment
from propertysnap.models.enums import (
    CompositionGuide,
    InspectionType,
    PhotoSlot,
    ReportEntryPoint,
    SignatureParty,
    StoreEventType,
)
from propertysnap.schemas.base import utcnow
from propertysnap.schemas.results import ReportResult, StoreResult
from propertysnap.schemas.team import Branding
from propertysnap.services.audit import AuditService, StoreEvent
from propertysnap.services.capture import CaptureService
from propertysnap.services.evidence_bundle import EvidenceBundleService
from propertysnap.services.formatting import parse_iso
from propertysnap.services.interfaces import (
    CaptureSource,
    Geocoder,
    KeyValueStore,
    NotificationSink,
    PdfRenderer,
    ShareSink,
)
from propertysnap.services.notifications import NotificationScheduler
from propertysnap.services.persistence import StatePersister
from propertysnap.services.photo_verification import PhotoVerificationService
from propertysnap.services.report_compiler import ReportCompiler
from propertysnap.services.store import InspectionStore

logger = logging.getLogger(__name__)


class NotificationLifecycle:
    """Keeps scheduled notifications in step with inspection changes.

    Store listeners are synchronous, so events are queued and handled by a
    single worker task in the order the store emitted them. ``drain()``
    waits until the queue is empty.
    """

    def __init__(self, store: InspectionStore, scheduler: NotificationScheduler):
        self.store = store
        self.scheduler = scheduler
        self._queue: Optional[asyncio.Queue[StoreEvent]] = None
        self._worker: Optional[asyncio.Task] = None
        self._unsubscribe = None

    def attach(self) -> None:
        if self._unsubscribe is None:
            self._unsubscribe = self.store.subscribe(self)

    def detach(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def __call__(self, event: StoreEvent) -> None:
        if event.type not in (
            StoreEventType.INSPECTION_ADDED,
            StoreEventType.INSPECTION_UPDATED,
            StoreEventType.INSPECTION_COMPLETED,
            StoreEventType.INSPECTION_DELETED,
            StoreEventType.PROPERTY_DELETED,
        ):
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning(
                "No event loop; notifications not updated for %s",
                event.type.value,
                extra={"inspection_id": event.inspection_id},
            )
            return
        if self._worker is None or self._worker.done():
            self._queue = asyncio.Queue()
            self._worker = loop.create_task(self._run(self._queue))
        self._queue.put_nowait(event)

    async def _run(self, queue: "asyncio.Queue[StoreEvent]") -> None:
        while True:
            event = await queue.get()
            try:
                await self.handle(event)
            except Exception:
                logger.exception(
                    "Notification update failed for %s",
                    event.type.value,
                    extra={"inspection_id": event.inspection_id},
                )
            finally:
                queue.task_done()

    def _address(self, property_id: Optional[str]) -> str:
        prop = self.store.state.get_property(property_id) if property_id else None
        return prop.address if prop else ""

    async def handle(self, event: StoreEvent) -> None:
        address = self._address(event.property_id)
        payload = event.payload

        if event.type == StoreEventType.INSPECTION_ADDED:
            await self.scheduler.schedule_for_inspection(
                event.inspection_id,
                parse_iso(payload.get("due_date")),
                address=address,
                inspection_type=InspectionType(payload["type"]),
            )

        elif event.type == StoreEventType.INSPECTION_UPDATED:
            if "due_date" not in payload:
                return
            found = self.store.state.find_inspection(event.inspection_id)
            if found is None:
                return
            await self.scheduler.reschedule(
                event.inspection_id,
                parse_iso(payload["due_date"]),
                address=address,
                inspection_type=found[1].type,
            )

        elif event.type == StoreEventType.INSPECTION_COMPLETED:
            await self.scheduler.cancel_for_inspection(event.inspection_id)
            await self.scheduler.send_completion(
                event.inspection_id,
                SignatureParty(payload["completed_by"]),
                address=address,
            )

        elif event.type == StoreEventType.INSPECTION_DELETED:
            await self.scheduler.cancel_for_inspection(event.inspection_id)

        elif event.type == StoreEventType.PROPERTY_DELETED:
            for inspection_id in payload.get("inspection_ids", []):
                await self.scheduler.cancel_for_inspection(inspection_id)

    async def drain(self) -> None:
        if self._queue is not None and self._worker is not None and not self._worker.done():
            await self._queue.join()

    async def stop(self) -> None:
        """Finish queued events, then stop the worker."""
        await self.drain()
        worker, self._worker = self._worker, None
        if worker is not None and not worker.done():
            worker.cancel()
            try:
                await worker
            except asyncio.CancelledError:
                pass


class PropertySnapEngine:
    """One store with its collaborators."""

    def __init__(
        self,
        kv: KeyValueStore,
        renderer: PdfRenderer,
        notification_sink: NotificationSink,
        *,
        share_sink: Optional[ShareSink] = None,
        capture_source: Optional[CaptureSource] = None,
        geocoder: Optional[Geocoder] = None,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.settings = settings or get_settings()
        self.store = InspectionStore(clock=clock)
        self.audit = AuditService(actor_id_provider=self._actor_id)
        self.persister = StatePersister(self.store, kv, self.settings)
        self.scheduler = NotificationScheduler(notification_sink, kv, self.settings, clock)
        self.lifecycle = NotificationLifecycle(self.store, self.scheduler)
        self.verifier = PhotoVerificationService(self.settings, clock)
        self.compiler = ReportCompiler(renderer, share_sink, self.settings, clock)
        self.bundles = EvidenceBundleService(clock=clock)
        self.capture = (
            CaptureService(capture_source, self.verifier, self.store, self.settings)
            if capture_source is not None
            else None
        )
        self.geocoder = geocoder
        self._started = False

    def _actor_id(self) -> Optional[str]:
        user = self.store.state.user
        return user.id if user else None

    @property
    def branding(self) -> Optional[Branding]:
        team = self.store.state.team
        return team.branding if team else None

    async def start(self) -> list[str]:
        """Validate settings, load persisted state and start listening.

        Returns the configuration problems found (empty when none).
        """
        problems = validate_environment(self.settings)
        if self._started:
            return problems
        await self.persister.load()
        self.store.subscribe(self.audit)
        self.persister.attach()
        self.lifecycle.attach()
        self._started = True
        return problems

    async def drain(self) -> None:
        """Wait for notification updates triggered by earlier store changes."""
        await self.lifecycle.drain()

    async def close(self) -> None:
        self.lifecycle.detach()
        await self.lifecycle.stop()
        await self.persister.close()
        self._started = False

    # ------------------------------------------------------------------
    # Multi-service flows
    # ------------------------------------------------------------------

    async def geocode_property(self, property_id: str) -> StoreResult:
        """Look up the property's address and record its coordinates."""
        found = self.store.get_property(property_id)
        if not found.ok:
            return found
        if self.geocoder is None:
            return StoreResult(ok=False, error="No geocoder configured", error_code="collaborator_error")
        coordinates = await self.geocoder.geocode(found.value.address)
        if coordinates is None:
            return StoreResult(
                ok=False,
                error=f"Unable to locate {found.value.address}",
                error_code="collaborator_error",
            )
        return self.store.set_property_coordinates(property_id, coordinates)

    async def capture_photo(
        self,
        inspection_id: str,
        checkpoint_id: str,
        slot: PhotoSlot,
        guide: Optional[CompositionGuide] = None,
    ):
        """Capture, verify and attach a photo to a checkpoint slot."""
        if self.capture is None:
            return StoreResult(ok=False, error="No capture source configured", error_code="collaborator_error")
        found = self.store.get_inspection(inspection_id)
        if not found.ok:
            return found
        checkpoint = found.value.checkpoint(checkpoint_id)
        room_name = checkpoint.room_name if checkpoint else "General"
        return await self.capture.capture_to_checkpoint(
            inspection_id, checkpoint_id, slot, room_name, guide
        )

    async def export_report(
        self,
        inspection_id: str,
        entry_point: ReportEntryPoint = ReportEntryPoint.FILE,
    ) -> ReportResult:
        found = self.store.get_inspection(inspection_id)
        if not found.ok:
            return ReportResult.failed(found.error)
        prop = self.store.state.find_inspection(inspection_id)[0]
        return await self.compiler.export(entry_point, prop, found.value, self.branding)

    async def export_history(
        self,
        property_id: str,
        entry_point: ReportEntryPoint = ReportEntryPoint.FILE,
    ) -> ReportResult:
        found = self.store.get_property(property_id)
        if not found.ok:
            return ReportResult.failed(found.error)
        return await self.compiler.export_history(entry_point, found.value, branding=self.branding)

    async def evidence_bundle(
        self,
        inspection_id: str,
        report_pdf_uri: Optional[str] = None,
    ) -> Optional[tuple[bytes, str]]:
        """Evidence ZIP for one inspection, or ``None`` when it is not accessible."""
        found = self.store.get_inspection(inspection_id)
        if not found.ok:
            logger.info("Evidence bundle refused: %s", found.error)
            return None
        prop = self.store.state.find_inspection(inspection_id)[0]
        return await self.bundles.build(prop, found.value, report_pdf_uri, self.branding)
