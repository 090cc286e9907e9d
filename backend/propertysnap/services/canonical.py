"""Canonical JSON manifest of an inspection and its SHA-256.

Deterministic serialization: whitelisted fields, nulls stripped, keys
sorted, compact separators, no floats. The manifest hash changes whenever a
photo's content hash, a condition or a signature changes.
"""

import hashlib
import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from propertysnap.models.enums import PHOTO_SLOT_ORDER, SignatureParty
from propertysnap.schemas.inspection import Checkpoint, Inspection
from propertysnap.schemas.photo import VerifiedPhotoData
from propertysnap.schemas.property import Property

MANIFEST_VERSION = 1

HEADER_FIELDS = [
    "inspection_id",
    "property_id",
    "address",
    "type",
    "status",
    "created_at",
    "completed_at",
    "due_date",
    "inspector_id",
]

CHECKPOINT_FIELDS = [
    "checkpoint_id",
    "ordinal",
    "room_name",
    "title",
    "notes",
]

PHOTO_FIELDS = [
    "slot",
    "condition",
    "photo_hash",
    "verification_method",
    "tier",
    "capture_date",
    "is_exif_available",
    "upload_date",
    "location_verified",
    "distance_m",
    "latitude",
    "longitude",
]

SIGNATURE_FIELDS = [
    "party",
    "printed_name",
    "signed_at",
    "image_sha256",
]


def _format_datetime(value: datetime) -> str:
    # UTC with Z suffix, second precision; naive values are wall-clock
    if value.tzinfo is None:
        return value.strftime("%Y-%m-%dT%H:%M:%S")
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def normalize_value(value: Any) -> Any:
    """Normalize a value for canonical JSON.

    - ``None`` and empty strings are stripped
    - datetimes become second-precision UTC strings
    - enums become their values
    - floats are rejected
    """
    if value is None:
        return None
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, str):
        return value or None
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        raise ValueError("Floats are not allowed in canonical JSON")
    if isinstance(value, datetime):
        return _format_datetime(value)
    return value


def extract_whitelist(data: dict, whitelist: list[str]) -> dict:
    """Extract only whitelisted, non-null fields from data."""
    result = {}
    for field in whitelist:
        if field in data:
            normalized = normalize_value(data[field])
            if normalized is not None:
                result[field] = normalized
    return result


def _coordinate(value: Optional[float]) -> Optional[str]:
    return None if value is None else f"{value:.7f}"


def build_canonical_photo(checkpoint: Checkpoint, slot, photo: Optional[VerifiedPhotoData]) -> dict:
    data = {
        "slot": slot,
        "condition": checkpoint.condition_for(slot),
    }
    if photo is not None:
        data.update({
            "photo_hash": photo.photo_hash,
            "verification_method": photo.verification_method,
            "tier": photo.tier,
            "capture_date": photo.capture_date,
            "is_exif_available": photo.is_exif_available,
            "upload_date": photo.upload_date,
            "location_verified": photo.location_verified,
            "distance_m": round(photo.distance_m) if photo.distance_m is not None else None,
            "latitude": _coordinate(photo.gps_coordinates.latitude if photo.gps_coordinates else None),
            "longitude": _coordinate(photo.gps_coordinates.longitude if photo.gps_coordinates else None),
        })
    return extract_whitelist(data, PHOTO_FIELDS)


def build_canonical_checkpoint(checkpoint: Checkpoint, ordinal: int) -> dict:
    item = extract_whitelist(
        {
            "checkpoint_id": checkpoint.id,
            "ordinal": ordinal,
            "room_name": checkpoint.room_name,
            "title": checkpoint.title,
            "notes": checkpoint.notes,
        },
        CHECKPOINT_FIELDS,
    )
    photos = []
    for slot in PHOTO_SLOT_ORDER:
        photo = checkpoint.photo_data_for(slot)
        if photo is None and checkpoint.condition_for(slot) is None:
            continue
        photos.append(build_canonical_photo(checkpoint, slot, photo))
    return {"item": item, "photos": photos}


def build_canonical_signature(inspection: Inspection, party: SignatureParty) -> Optional[dict]:
    block = inspection.signature_for(party)
    if block is None:
        return None
    return extract_whitelist(
        {
            "party": party,
            "printed_name": block.printed_name,
            "signed_at": block.signed_at,
            "image_sha256": hashlib.sha256(block.image.encode("utf-8")).hexdigest(),
        },
        SIGNATURE_FIELDS,
    )


def build_canonical_payload(prop: Property, inspection: Inspection) -> dict:
    """Full canonical payload.

    Structure::

        {
            "version": 1,
            "header": {...},
            "checkpoints": [{"item": {...}, "photos": [...]}],
            "signatures": [...]
        }

    Checkpoints keep insertion order, recorded as ``ordinal``.
    """
    header = extract_whitelist(
        {
            "inspection_id": inspection.id,
            "property_id": prop.id,
            "address": prop.address,
            "type": inspection.type,
            "status": inspection.status,
            "created_at": inspection.created_at,
            "completed_at": inspection.completed_at,
            "due_date": inspection.due_date,
            "inspector_id": inspection.inspector_id,
        },
        HEADER_FIELDS,
    )
    checkpoints = [
        build_canonical_checkpoint(checkpoint, ordinal)
        for ordinal, checkpoint in enumerate(inspection.checkpoints)
    ]
    signatures = [
        signature
        for signature in (build_canonical_signature(inspection, party) for party in SignatureParty)
        if signature is not None
    ]
    return {
        "version": MANIFEST_VERSION,
        "header": header,
        "checkpoints": checkpoints,
        "signatures": signatures,
    }


def serialize_canonical(payload: dict) -> str:
    """Sorted keys, no extra whitespace, UTF-8."""
    return json.dumps(
        payload,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
    )


def compute_manifest_hash(prop: Property, inspection: Inspection) -> tuple[dict, str, str]:
    """Returns ``(payload, canonical_json, sha256_hex)``."""
    payload = build_canonical_payload(prop, inspection)
    canonical_json = serialize_canonical(payload)
    return payload, canonical_json, hashlib.sha256(canonical_json.encode("utf-8")).hexdigest()


def verify_manifest_hash(canonical_json: str, expected_hash: str) -> bool:
    return hashlib.sha256(canonical_json.encode("utf-8")).hexdigest() == expected_hash
