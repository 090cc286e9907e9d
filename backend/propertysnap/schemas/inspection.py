"""Inspection, checkpoint and signature schemas."""

from typing import Any, Optional

from pydantic import Field, field_validator, model_validator

from propertysnap.schemas.base import BaseSchema, UtcDatetime
from propertysnap.schemas.photo import PhotoTimestamp, VerifiedPhotoData
from propertysnap.models.enums import (
    ConditionRating,
    InspectionStatus,
    InspectionType,
    PhotoSlot,
    PHOTO_SLOT_ORDER,
    SignatureParty,
    VerificationTier,
)

SLOT_FIELD_PREFIX = {
    PhotoSlot.LANDLORD: "landlord",
    PhotoSlot.TENANT: "tenant",
    PhotoSlot.MOVE_OUT: "move_out",
}

_SLOT_ALIAS_PREFIX = {
    PhotoSlot.LANDLORD: "landlord",
    PhotoSlot.TENANT: "tenant",
    PhotoSlot.MOVE_OUT: "moveOut",
}


def _first_present(data: dict, *keys: str) -> Any:
    for key in keys:
        if data.get(key) is not None:
            return data[key]
    return None


class Checkpoint(BaseSchema):
    """A photographed observation inside a room.

    Each of the three slots (landlord, tenant, move-out) carries its own
    photo URI, condition, timestamp provenance and integrity envelope.
    """

    id: str = Field(..., min_length=1)
    room_name: str = Field(..., min_length=1)
    title: str

    landlord_photo: Optional[str] = None
    tenant_photo: Optional[str] = None
    move_out_photo: Optional[str] = None

    landlord_condition: Optional[ConditionRating] = None
    tenant_condition: Optional[ConditionRating] = None
    move_out_condition: Optional[ConditionRating] = None

    notes: str = ""
    # Legacy upload timestamp
    timestamp: Optional[UtcDatetime] = None

    landlord_photo_timestamp: Optional[PhotoTimestamp] = None
    tenant_photo_timestamp: Optional[PhotoTimestamp] = None
    move_out_photo_timestamp: Optional[PhotoTimestamp] = None

    landlord_photo_data: Optional[VerifiedPhotoData] = None
    tenant_photo_data: Optional[VerifiedPhotoData] = None
    move_out_photo_data: Optional[VerifiedPhotoData] = None

    @model_validator(mode="before")
    @classmethod
    def migrate_single_envelope(cls, data: Any) -> Any:
        """Older documents stored one ``verifiedPhotoData`` per checkpoint.

        Attach it to the slot whose photo URI it describes, falling back to
        the first slot holding a photo.
        """
        if not isinstance(data, dict):
            return data
        legacy = data.get("verifiedPhotoData", data.get("verified_photo_data"))
        if legacy is None:
            return data
        data = {
            k: v for k, v in data.items()
            if k not in ("verifiedPhotoData", "verified_photo_data")
        }
        legacy_uri = legacy.get("uri") if isinstance(legacy, dict) else getattr(legacy, "uri", None)
        target = None
        for slot in PHOTO_SLOT_ORDER:
            uri = _first_present(
                data,
                f"{_SLOT_ALIAS_PREFIX[slot]}Photo",
                f"{SLOT_FIELD_PREFIX[slot]}_photo",
            )
            if uri and uri == legacy_uri:
                target = slot
                break
            if uri and target is None:
                target = slot
        if target is not None:
            alias = f"{_SLOT_ALIAS_PREFIX[target]}PhotoData"
            name = f"{SLOT_FIELD_PREFIX[target]}_photo_data"
            if data.get(alias) is None and data.get(name) is None:
                data[alias] = legacy
        return data

    @field_validator(
        "landlord_condition", "tenant_condition", "move_out_condition", mode="before"
    )
    @classmethod
    def normalize_condition(cls, value):
        return ConditionRating.normalize(value)

    @field_validator("notes", mode="before")
    @classmethod
    def default_notes(cls, value):
        return value or ""

    def photo_for(self, slot: PhotoSlot) -> Optional[str]:
        return getattr(self, f"{SLOT_FIELD_PREFIX[slot]}_photo")

    def condition_for(self, slot: PhotoSlot) -> Optional[ConditionRating]:
        return getattr(self, f"{SLOT_FIELD_PREFIX[slot]}_condition")

    def timestamp_for(self, slot: PhotoSlot) -> Optional[PhotoTimestamp]:
        return getattr(self, f"{SLOT_FIELD_PREFIX[slot]}_photo_timestamp")

    def photo_data_for(self, slot: PhotoSlot) -> Optional[VerifiedPhotoData]:
        return getattr(self, f"{SLOT_FIELD_PREFIX[slot]}_photo_data")

    @property
    def is_inspected(self) -> bool:
        return any(
            self.photo_for(slot) or self.condition_for(slot)
            for slot in PHOTO_SLOT_ORDER
        )

    @property
    def primary_photo(self) -> Optional[tuple[PhotoSlot, str]]:
        """First photo in landlord, tenant, move-out order."""
        for slot in PHOTO_SLOT_ORDER:
            uri = self.photo_for(slot)
            if uri:
                return slot, uri
        return None

    @property
    def primary_condition(self) -> Optional[ConditionRating]:
        for slot in PHOTO_SLOT_ORDER:
            condition = self.condition_for(slot)
            if condition is not None:
                return condition
        return None

    @property
    def best_photo_data(self) -> Optional[VerifiedPhotoData]:
        """Strongest envelope across the slots; ties keep slot order."""
        best: Optional[VerifiedPhotoData] = None
        for slot in PHOTO_SLOT_ORDER:
            data = self.photo_data_for(slot)
            if data is None:
                continue
            if best is None or data.tier.rank > best.tier.rank:
                best = data
        return best

    @property
    def tier(self) -> VerificationTier:
        best = self.best_photo_data
        return best.tier if best else VerificationTier.UNVERIFIED


class SignatureBlock(BaseSchema):
    """A raster signature with the signer's printed name."""

    image: str = Field(..., min_length=1)
    printed_name: str = ""
    signed_at: UtcDatetime


def _migrate_signature(data: dict, party: str) -> None:
    key = f"{party}Signature"
    value = data.get(key, data.get(f"{party}_signature"))
    if isinstance(value, str):
        data.pop(f"{party}_signature", None)
        if not value:
            data[key] = None
            return
        data[key] = {
            "image": value,
            "printedName": data.pop(f"{party}Name", None) or "",
            "signedAt": (
                data.pop(f"{party}SignedAt", None)
                or data.get("completedAt")
                or data.get("createdAt")
            ),
        }
    else:
        data.pop(f"{party}Name", None)
        data.pop(f"{party}SignedAt", None)


class Inspection(BaseSchema):
    """A single evidence-gathering event."""

    id: str = Field(..., min_length=1)
    property_id: str = Field(..., min_length=1)
    type: InspectionType
    status: InspectionStatus = InspectionStatus.PENDING
    created_at: UtcDatetime
    completed_at: Optional[UtcDatetime] = None
    due_date: Optional[UtcDatetime] = None
    checkpoints: tuple[Checkpoint, ...] = ()
    landlord_signature: Optional[SignatureBlock] = None
    tenant_signature: Optional[SignatureBlock] = None
    inspector_id: Optional[str] = None
    inspector_name: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def migrate_flat_signatures(cls, data: Any) -> Any:
        """Accept the older flat ``landlordSignature``/``landlordName`` layout."""
        if not isinstance(data, dict):
            return data
        data = dict(data)
        for party in ("landlord", "tenant"):
            _migrate_signature(data, party)
        return data

    @model_validator(mode="after")
    def validate_dates(self):
        """dueDate must not precede createdAt."""
        if self.due_date is not None and self.due_date < self.created_at:
            raise ValueError("due_date must not precede created_at")
        return self

    @model_validator(mode="after")
    def validate_completion(self):
        """A completed inspection carries at least one signature."""
        if self.status != InspectionStatus.PENDING and not self.is_signed:
            raise ValueError(f"{self.status.value} inspection requires a signature")
        return self

    @property
    def is_signed(self) -> bool:
        return self.landlord_signature is not None or self.tenant_signature is not None

    @property
    def is_editable(self) -> bool:
        return self.status == InspectionStatus.PENDING

    def signature_for(self, party: SignatureParty) -> Optional[SignatureBlock]:
        return getattr(self, f"{party.value}_signature")

    def checkpoint(self, checkpoint_id: str) -> Optional[Checkpoint]:
        for checkpoint in self.checkpoints:
            if checkpoint.id == checkpoint_id:
                return checkpoint
        return None

    def room_names(self) -> list[str]:
        """Room names in first-seen order."""
        seen: dict[str, None] = {}
        for checkpoint in self.checkpoints:
            seen.setdefault(checkpoint.room_name, None)
        return list(seen)
