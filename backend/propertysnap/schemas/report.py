"""Materialised report model consumed by the HTML composer."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import Field

from propertysnap.schemas.base import BaseSchema
from propertysnap.schemas.team import Branding
from propertysnap.models.enums import (
    ConditionRating,
    InspectionStatus,
    InspectionType,
    PhotoSlot,
    PropertyType,
    SignatureParty,
    VerificationTier,
)


class TimestampSource(str, Enum):
    """Where a checkpoint's displayed timestamp came from."""
    CAPTURE = "capture"
    UPLOAD = "upload"
    LEGACY = "legacy"


class EmbeddedImage(BaseSchema):
    """A photo or signature transcoded to a data URI.

    ``data_uri`` is ``None`` when the file could not be read; the composer
    renders a placeholder instead.
    """

    source_uri: str
    data_uri: Optional[str] = None
    mime_type: Optional[str] = None

    @property
    def available(self) -> bool:
        return self.data_uri is not None


class ReportCheckpoint(BaseSchema):
    """One checkpoint card."""

    checkpoint_id: str
    title: str
    label: str
    slot: Optional[PhotoSlot] = None
    image: Optional[EmbeddedImage] = None
    tier: VerificationTier = VerificationTier.UNVERIFIED
    timestamp: Optional[datetime] = None
    timestamp_source: Optional[TimestampSource] = None
    condition: Optional[ConditionRating] = None
    notes: str = ""
    photo_hash: Optional[str] = None
    distance_m: Optional[float] = None
    is_inspected: bool = False


class ReportRoom(BaseSchema):
    """Checkpoints grouped under one room name."""

    name: str
    checkpoints: tuple[ReportCheckpoint, ...] = ()

    @property
    def not_inspected(self) -> bool:
        return all(not checkpoint.is_inspected for checkpoint in self.checkpoints)


class ReportSignature(BaseSchema):
    """One signature slot on the report."""

    party: SignatureParty
    label: str
    image: Optional[EmbeddedImage] = None
    printed_name: Optional[str] = None
    signed_at: Optional[datetime] = None


class PropertySummary(BaseSchema):
    """Property facts shown on the cover."""

    property_id: str
    address: str
    property_type: PropertyType
    bedrooms: int
    bathrooms: int
    tenant_name: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None


class InspectionReportModel(BaseSchema):
    """Everything the composer needs for one inspection."""

    report_id: str
    generated_at: datetime
    summary: PropertySummary
    cover_photo: Optional[EmbeddedImage] = None
    branding: Optional[Branding] = None
    inspection_id: str
    inspection_type: InspectionType
    status: InspectionStatus
    created_at: datetime
    completed_at: Optional[datetime] = None
    due_date: Optional[datetime] = None
    inspector_name: Optional[str] = None
    rooms: tuple[ReportRoom, ...] = ()
    signatures: tuple[ReportSignature, ...] = ()

    @property
    def checkpoint_count(self) -> int:
        return sum(len(room.checkpoints) for room in self.rooms)

    @property
    def inspected_count(self) -> int:
        return sum(
            1 for room in self.rooms for checkpoint in room.checkpoints
            if checkpoint.is_inspected
        )

    def tier_counts(self) -> dict[VerificationTier, int]:
        counts = {tier: 0 for tier in VerificationTier}
        for room in self.rooms:
            for checkpoint in room.checkpoints:
                if checkpoint.image is not None:
                    counts[checkpoint.tier] += 1
        return counts


class HistoryReportModel(BaseSchema):
    """A property's inspections in chronological order."""

    report_id: str
    generated_at: datetime
    summary: PropertySummary
    cover_photo: Optional[EmbeddedImage] = None
    branding: Optional[Branding] = None
    sections: tuple[InspectionReportModel, ...] = ()

    def counts_by_type(self) -> dict[InspectionType, int]:
        counts = {kind: 0 for kind in InspectionType}
        for section in self.sections:
            counts[section.inspection_type] += 1
        return counts

    def counts_by_status(self) -> dict[InspectionStatus, int]:
        counts = {status: 0 for status in InspectionStatus}
        for section in self.sections:
            counts[section.status] += 1
        return counts

    @property
    def date_range(self) -> Optional[tuple[datetime, datetime]]:
        if not self.sections:
            return None
        dates = [section.created_at for section in self.sections]
        return min(dates), max(dates)


class RenderOptions(BaseSchema):
    """Options passed to the HTML-to-PDF renderer."""

    page_size: str = "A4"
    margin: str = "25mm 30mm"
    base64: bool = False
    filename: Optional[str] = None


class RenderedFile(BaseSchema):
    """The renderer's output."""

    uri: str = Field(..., min_length=1)
