"""Photo verification service.

Turns a raw capture into a ``VerifiedPhotoData`` envelope:
- SHA-256 over the file's content bytes (never the URI)
- EXIF capture date with upload-date fallback
- GPS attestation against the property's geocoded location

EXIF and GPS problems only lower the verification tier. A photo whose
content cannot be hashed is rejected.
"""

import logging
from datetime import datetime, timedelta
from typing import Callable, Optional

from propertysnap.core.config import Settings, get_settings
from propertysnap.core.exceptions import IntegrityDegradation, PhotoRejected
from propertysnap.models.enums import CompositionGuide, VerificationMethod
from propertysnap.schemas.base import utcnow
from propertysnap.schemas.photo import (
    DistanceCheck,
    GpsReading,
    PhotoIntegrityResult,
    PhotoTimestamp,
    TimestampDisplay,
    VerifiedPhotoData,
)
from propertysnap.schemas.property import Property
from propertysnap.schemas.results import VerificationResult
from propertysnap.services import files
from propertysnap.services.exif import UNAVAILABLE_WARNING, RawExif, extract_timestamp
from propertysnap.services.formatting import format_timestamp, parse_iso, report_zone
from propertysnap.services.location import distance_to_property

logger = logging.getLogger(__name__)

CLOCK_SKEW_TOLERANCE = timedelta(minutes=1)


def capture_after_upload(timestamp: PhotoTimestamp, zone_name: Optional[str] = None) -> bool:
    """True when the EXIF capture date is later than the upload date."""
    capture = parse_iso(timestamp.capture_date)
    if capture is None:
        return False
    upload = timestamp.upload_date
    if capture.tzinfo is None:
        # EXIF dates are camera wall-clock time
        upload = upload.astimezone(report_zone(zone_name)).replace(tzinfo=None)
    return capture - upload > CLOCK_SKEW_TOLERANCE


class PhotoVerificationService:
    """Build and check integrity envelopes for inspection photos."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.settings = settings or get_settings()
        self.clock = clock

    async def hash(self, photo_uri: str) -> str:
        """SHA-256 hex digest of the bytes at ``photo_uri``.

        Raises:
            PhotoRejected: the file cannot be read.
        """
        if not photo_uri:
            raise PhotoRejected("Photo URI is empty")
        try:
            return await files.hash_file(photo_uri)
        except (OSError, ValueError) as e:
            raise PhotoRejected(f"Unable to hash photo {photo_uri}: {e}") from e

    async def extract_timestamp(
        self,
        photo_uri: str,
        raw_exif: Optional[RawExif] = None,
    ) -> PhotoTimestamp:
        return await extract_timestamp(
            photo_uri,
            raw_exif,
            timeout=self.settings.exif_timeout_s,
            clock=self.clock,
        )

    def attest_location(
        self,
        gps: Optional[GpsReading],
        prop: Optional[Property],
    ) -> DistanceCheck:
        """Distance of ``gps`` from ``prop`` and whether it is within the threshold."""
        check = distance_to_property(gps, prop, self.settings.gps_threshold_m)
        if check.distance_m is None:
            logger.info(
                "Location not attested: %s",
                check.message,
                extra={"property_id": prop.id if prop else None},
            )
        return check

    async def create_verified(
        self,
        photo_uri: str,
        method: VerificationMethod,
        gps: Optional[GpsReading] = None,
        prop: Optional[Property] = None,
        raw_exif: Optional[RawExif] = None,
        composition_guide: Optional[CompositionGuide] = None,
    ) -> VerificationResult:
        """Compose hash, timestamp and location into a verified envelope."""
        try:
            photo_hash = await self.hash(photo_uri)
        except PhotoRejected as e:
            logger.error("Photo rejected: %s", e.message)
            return VerificationResult(success=False, error=e.message)

        degradations: list[IntegrityDegradation] = []
        timestamp = await self.extract_timestamp(photo_uri, raw_exif)
        if not timestamp.is_exif_available:
            degradations.append(IntegrityDegradation(UNAVAILABLE_WARNING, code="exif_unavailable"))

        check = self.attest_location(gps, prop)
        if not check.within_threshold:
            degradations.append(IntegrityDegradation(check.message, code="location_unverified"))

        skewed = capture_after_upload(timestamp, self.settings.report_timezone)
        if skewed:
            logger.warning(
                "Capture date %s is later than upload date %s",
                timestamp.capture_date,
                timestamp.upload_date.isoformat(),
            )
            degradations.append(
                IntegrityDegradation("Capture date is later than upload date", code="clock_skew")
            )

        photo = VerifiedPhotoData(
            uri=photo_uri,
            capture_date=timestamp.capture_date,
            is_exif_available=timestamp.is_exif_available,
            upload_date=timestamp.upload_date,
            verification_method=method,
            photo_hash=photo_hash,
            gps_coordinates=gps,
            location_verified=check.within_threshold,
            distance_m=check.distance_m,
            composition_guide=composition_guide,
            clock_skew_suspected=skewed,
        )
        logger.info(
            "Verified photo %s (%s)",
            photo_uri,
            photo.tier.value,
            extra={"property_id": prop.id if prop else None},
        )
        return VerificationResult(success=True, photo=photo, degradations=tuple(degradations))

    async def verify_integrity(self, photo_uri: str, original_hash: Optional[str]) -> PhotoIntegrityResult:
        """Re-hash ``photo_uri`` and compare with the recorded hash."""
        try:
            current_hash = await self.hash(photo_uri)
        except PhotoRejected:
            return PhotoIntegrityResult(
                is_valid=False,
                original_hash=original_hash,
                tamper_detected=False,
                message="Unable to verify photo integrity",
            )

        is_valid = current_hash == original_hash
        if is_valid:
            message = "Photo integrity verified"
        elif not original_hash:
            message = "No original hash available"
        else:
            message = "Warning: Photo may have been modified"
            logger.warning("Hash mismatch for %s", photo_uri)

        return PhotoIntegrityResult(
            is_valid=is_valid,
            current_hash=current_hash,
            original_hash=original_hash,
            tamper_detected=not is_valid and bool(original_hash),
            message=message,
        )


def verification_status_text(photo: VerifiedPhotoData) -> str:
    if photo.verification_method == VerificationMethod.CAMERA_CAPTURE:
        return "Verified - Captured in app"
    if photo.verification_method == VerificationMethod.GALLERY_IMPORT:
        return "Unverified - Imported from gallery"
    return "Unverified"


def timestamp_display(timestamp: PhotoTimestamp) -> TimestampDisplay:
    """Capture date when EXIF was read, otherwise the upload date with a warning."""
    if timestamp.is_exif_available and timestamp.capture_date:
        return TimestampDisplay(
            date_text=f"Captured: {format_timestamp(timestamp.capture_date)}",
            is_verified=True,
        )
    return TimestampDisplay(
        date_text=f"Uploaded: {format_timestamp(timestamp.upload_date)}",
        is_verified=False,
        warning_text=UNAVAILABLE_WARNING,
    )
