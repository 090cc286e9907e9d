"""Capture flow: camera/gallery -> verification -> checkpoint slot."""

import asyncio
import logging
from typing import Optional, Union

from propertysnap.core.config import Settings, get_settings
from propertysnap.models.enums import CompositionGuide, PhotoSlot
from propertysnap.schemas.photo import CaptureRequest, GpsReading
from propertysnap.schemas.results import StoreResult, VerificationResult
from propertysnap.services.interfaces import CaptureSource
from propertysnap.services.photo_verification import PhotoVerificationService
from propertysnap.services.store import InspectionStore

logger = logging.getLogger(__name__)

CAPTURE_CANCELLED = "Capture cancelled"


class CaptureService:
    """Drive one capture into a checkpoint slot."""

    def __init__(
        self,
        source: CaptureSource,
        verifier: PhotoVerificationService,
        store: InspectionStore,
        settings: Optional[Settings] = None,
    ):
        self.source = source
        self.verifier = verifier
        self.store = store
        self.settings = settings or get_settings()

    async def read_gps(self) -> Optional[GpsReading]:
        """Device GPS fix, or ``None`` on timeout or failure."""
        try:
            return await asyncio.wait_for(self.source.read_gps(), self.settings.gps_timeout_s)
        except asyncio.TimeoutError:
            logger.info("GPS read timed out after %.1fs", self.settings.gps_timeout_s)
        except Exception as e:
            logger.info("GPS unavailable: %s", e)
        return None

    async def capture_to_checkpoint(
        self,
        inspection_id: str,
        checkpoint_id: str,
        slot: PhotoSlot,
        room_name: str,
        guide: Optional[CompositionGuide] = None,
    ) -> Union[StoreResult, VerificationResult]:
        """
        Capture a photo and attach it to ``slot`` of a checkpoint.

        Returns the store's result on success. A cancelled capture or a
        photo that cannot be hashed comes back as a failed
        ``VerificationResult``; nothing is written to the store.
        """
        found = self.store.state.find_inspection(inspection_id)
        prop = found[0] if found else None

        request = CaptureRequest(room_name=room_name, checkpoint_id=checkpoint_id, guide_type=guide)
        try:
            captured = await self.source.capture_verified(request)
        except Exception:
            logger.exception("Capture source failed", extra={"inspection_id": inspection_id})
            return VerificationResult(success=False, error="Unable to capture photo")
        if captured is None:
            return VerificationResult(success=False, error=CAPTURE_CANCELLED)

        gps = captured.gps_reading or await self.read_gps()
        verified = await self.verifier.create_verified(
            captured.uri,
            captured.method,
            gps=gps,
            prop=prop,
            raw_exif=captured.exif,
            composition_guide=guide,
        )
        if not verified.success:
            return verified
        return self.store.set_checkpoint_photo(inspection_id, checkpoint_id, slot, verified.photo)
