"""Photo integrity envelope schemas."""

from typing import Any, Optional, Union

from pydantic import Field, field_validator, model_validator

from propertysnap.schemas.base import BaseSchema, UtcDatetime
from propertysnap.models.enums import (
    CompositionGuide,
    VerificationMethod,
    VerificationTier,
)


class GpsReading(BaseSchema):
    """A device GPS fix."""

    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    accuracy: Optional[float] = Field(None, ge=0)


class PhotoTimestamp(BaseSchema):
    """Timestamp provenance for one photo slot."""

    capture_date: Optional[str] = None
    is_exif_available: bool = False
    upload_date: UtcDatetime

    @model_validator(mode="after")
    def validate_exif_flag(self):
        """A capture date is only meaningful when EXIF was read."""
        if self.is_exif_available and not self.capture_date:
            raise ValueError("capture_date is required when is_exif_available is set")
        return self


class VerifiedPhotoData(BaseSchema):
    """The integrity envelope of one photograph."""

    uri: str = Field(..., min_length=1)
    capture_date: Optional[str] = None
    is_exif_available: bool = False
    upload_date: UtcDatetime
    verification_method: VerificationMethod = VerificationMethod.UNKNOWN
    photo_hash: str = Field(..., pattern=r"^[0-9a-f]{64}$")
    gps_coordinates: Optional[GpsReading] = None
    location_verified: bool = False
    distance_m: Optional[float] = Field(None, ge=0)
    composition_guide: Optional[CompositionGuide] = None
    clock_skew_suspected: bool = False

    @field_validator("composition_guide", mode="before")
    @classmethod
    def normalize_guide(cls, value):
        if value in (None, ""):
            return None
        try:
            return CompositionGuide(value)
        except ValueError:
            return CompositionGuide.NONE

    @field_validator("verification_method", mode="before")
    @classmethod
    def normalize_method(cls, value):
        if value in (None, ""):
            return VerificationMethod.UNKNOWN
        return value

    @model_validator(mode="after")
    def validate_location(self):
        """locationVerified can only hold when a GPS fix was recorded."""
        if self.location_verified and self.gps_coordinates is None:
            raise ValueError("location_verified requires gps_coordinates")
        return self

    @property
    def tier(self) -> VerificationTier:
        camera = self.verification_method == VerificationMethod.CAMERA_CAPTURE
        if camera and self.location_verified:
            return VerificationTier.VERIFIED_GPS
        if camera or self.is_exif_available:
            return VerificationTier.VERIFIED
        return VerificationTier.UNVERIFIED

    @property
    def timestamp(self) -> PhotoTimestamp:
        return PhotoTimestamp(
            capture_date=self.capture_date,
            is_exif_available=self.is_exif_available,
            upload_date=self.upload_date,
        )


class CaptureRequest(BaseSchema):
    """Parameters handed to the camera/gallery collaborator."""

    room_name: str = Field(..., min_length=1)
    checkpoint_id: Optional[str] = None
    guide_type: Optional[CompositionGuide] = None


class CaptureResult(BaseSchema):
    """What the camera/gallery collaborator returns."""

    uri: str = Field(..., min_length=1)
    method: VerificationMethod
    exif: Optional[Union[bytes, dict[str, Any]]] = None
    gps_reading: Optional[GpsReading] = None

    @field_validator("method")
    @classmethod
    def validate_method(cls, value: VerificationMethod) -> VerificationMethod:
        if value == VerificationMethod.UNKNOWN:
            raise ValueError("capture method must be camera-capture or gallery-import")
        return value


class PhotoIntegrityResult(BaseSchema):
    """Outcome of re-hashing a photo against its recorded hash."""

    is_valid: bool
    current_hash: Optional[str] = None
    original_hash: Optional[str] = None
    tamper_detected: bool = False
    message: str


class DistanceCheck(BaseSchema):
    """Distance of a photo from its property."""

    distance_m: Optional[float] = None
    within_threshold: bool = False
    message: str



class TimestampDisplay(BaseSchema):
    """Display text for a photo timestamp."""

    date_text: str
    is_verified: bool
    warning_text: Optional[str] = None
