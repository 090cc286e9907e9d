"""Materialise inspections into report models.

Groups checkpoints into rooms, transcodes photos and signatures to data
URIs, and selects each checkpoint's verification tier and timestamp. An
unreadable file degrades to a placeholder; nothing here touches the store.
"""

import asyncio
import logging
from datetime import datetime
from typing import Optional, Sequence

from propertysnap.core.exceptions import PreconditionViolation
from propertysnap.models.enums import SignatureParty
from propertysnap.schemas.inspection import Checkpoint, Inspection
from propertysnap.schemas.property import Property
from propertysnap.schemas.report import (
    EmbeddedImage,
    HistoryReportModel,
    InspectionReportModel,
    PropertySummary,
    ReportCheckpoint,
    ReportRoom,
    ReportSignature,
    TimestampSource,
)
from propertysnap.schemas.results import NO_INSPECTIONS_MESSAGE
from propertysnap.schemas.team import Branding
from propertysnap.services import files
from propertysnap.services.formatting import parse_iso

logger = logging.getLogger(__name__)

SIGNATURE_LABELS = {
    SignatureParty.LANDLORD: "Landlord / Property Manager",
    SignatureParty.TENANT: "Tenant",
}


def _data_uri_mime(uri: str) -> str:
    header = uri[len(files.DATA_URI_PREFIX):].split(",", 1)[0]
    return header.split(";", 1)[0] or "image/jpeg"


async def embed_image(uri: Optional[str]) -> Optional[EmbeddedImage]:
    """Transcode ``uri`` to a data URI. Unreadable files keep only the source."""
    if not uri:
        return None
    if uri.startswith(files.DATA_URI_PREFIX):
        return EmbeddedImage(source_uri=uri, data_uri=uri, mime_type=_data_uri_mime(uri))
    mime_type = files.mime_type_for(uri)
    try:
        data_uri = await files.to_data_uri(uri, mime_type)
    except (OSError, ValueError) as e:
        logger.info("Image unreadable, using placeholder: %s (%s)", uri, e)
        return EmbeddedImage(source_uri=uri)
    return EmbeddedImage(source_uri=uri, data_uri=data_uri, mime_type=mime_type)


def select_timestamp(checkpoint: Checkpoint) -> tuple[Optional[datetime], Optional[TimestampSource]]:
    """EXIF capture date, else upload date, else the legacy checkpoint timestamp."""
    best = checkpoint.best_photo_data
    if best is not None:
        if best.is_exif_available:
            captured = parse_iso(best.capture_date)
            if captured is not None:
                return captured, TimestampSource.CAPTURE
        return best.upload_date, TimestampSource.UPLOAD
    if checkpoint.timestamp is not None:
        return checkpoint.timestamp, TimestampSource.LEGACY
    return None, None


def group_rooms(checkpoints: Sequence[Checkpoint]) -> list[tuple[str, list[Checkpoint]]]:
    """Group by room name in first-seen order, keeping checkpoint order."""
    rooms: dict[str, list[Checkpoint]] = {}
    for checkpoint in checkpoints:
        rooms.setdefault(checkpoint.room_name, []).append(checkpoint)
    return list(rooms.items())


def _report_checkpoint(
    checkpoint: Checkpoint, position: int, image: Optional[EmbeddedImage]
) -> ReportCheckpoint:
    primary = checkpoint.primary_photo
    best = checkpoint.best_photo_data
    timestamp, source = select_timestamp(checkpoint)
    return ReportCheckpoint(
        checkpoint_id=checkpoint.id,
        title=checkpoint.title,
        label=f"Photo {position}",
        slot=primary[0] if primary else None,
        image=image,
        tier=checkpoint.tier,
        timestamp=timestamp,
        timestamp_source=source,
        condition=checkpoint.primary_condition,
        notes=checkpoint.notes.strip(),
        photo_hash=best.photo_hash if best else None,
        distance_m=best.distance_m if best else None,
        is_inspected=checkpoint.is_inspected,
    )


async def _room(name: str, checkpoints: list[Checkpoint]) -> ReportRoom:
    images = await asyncio.gather(*(
        embed_image(checkpoint.primary_photo[1] if checkpoint.primary_photo else None)
        for checkpoint in checkpoints
    ))
    return ReportRoom(
        name=name,
        checkpoints=tuple(
            _report_checkpoint(checkpoint, position, image)
            for position, (checkpoint, image) in enumerate(zip(checkpoints, images), start=1)
        ),
    )


async def _signatures(inspection: Inspection) -> tuple[ReportSignature, ...]:
    signatures = []
    for party, label in SIGNATURE_LABELS.items():
        block = inspection.signature_for(party)
        signatures.append(ReportSignature(
            party=party,
            label=label,
            image=await embed_image(block.image) if block else None,
            printed_name=block.printed_name if block else None,
            signed_at=block.signed_at if block else None,
        ))
    return tuple(signatures)


async def embed_branding(branding: Optional[Branding]) -> Optional[Branding]:
    if branding is None or not (branding.company_name or branding.company_logo):
        return None
    logo = await embed_image(branding.company_logo)
    return branding.evolve(company_logo=logo.data_uri if logo else None)


def property_summary(prop: Property) -> PropertySummary:
    return PropertySummary(
        property_id=prop.id,
        address=prop.address,
        property_type=prop.property_type,
        bedrooms=prop.bedrooms,
        bathrooms=prop.bathrooms,
        tenant_name=prop.tenant.name if prop.tenant else None,
        latitude=prop.latitude,
        longitude=prop.longitude,
    )


async def build_inspection_model(
    prop: Property,
    inspection: Inspection,
    *,
    report_id: str,
    generated_at: datetime,
    branding: Optional[Branding] = None,
    embedded_branding: Optional[Branding] = None,
    cover_photo: Optional[EmbeddedImage] = None,
) -> InspectionReportModel:
    """Materialise one inspection: embedded images, tiers and timestamps."""
    rooms = [await _room(name, checkpoints) for name, checkpoints in group_rooms(inspection.checkpoints)]
    if embedded_branding is None:
        embedded_branding = await embed_branding(branding)
    if cover_photo is None:
        cover_photo = await embed_image(prop.profile_photo)
    return InspectionReportModel(
        report_id=report_id,
        generated_at=generated_at,
        summary=property_summary(prop),
        cover_photo=cover_photo,
        branding=embedded_branding,
        inspection_id=inspection.id,
        inspection_type=inspection.type,
        status=inspection.status,
        created_at=inspection.created_at,
        completed_at=inspection.completed_at,
        due_date=inspection.due_date,
        inspector_name=inspection.inspector_name,
        rooms=tuple(rooms),
        signatures=await _signatures(inspection),
    )


async def build_history_model(
    prop: Property,
    inspections: Sequence[Inspection],
    *,
    report_id: str,
    generated_at: datetime,
    branding: Optional[Branding] = None,
) -> HistoryReportModel:
    """Every inspection of ``prop``, oldest first.

    Raises:
        PreconditionViolation: there are no inspections to export.
    """
    if not inspections:
        raise PreconditionViolation(NO_INSPECTIONS_MESSAGE)
    embedded_branding = await embed_branding(branding)
    cover_photo = await embed_image(prop.profile_photo)
    sections = [
        await build_inspection_model(
            prop,
            inspection,
            report_id=report_id,
            generated_at=generated_at,
            embedded_branding=embedded_branding,
            cover_photo=cover_photo,
        )
        for inspection in sorted(inspections, key=lambda i: i.created_at)
    ]
    return HistoryReportModel(
        report_id=report_id,
        generated_at=generated_at,
        summary=property_summary(prop),
        cover_photo=cover_photo,
        branding=embedded_branding,
        sections=tuple(sections),
    )
