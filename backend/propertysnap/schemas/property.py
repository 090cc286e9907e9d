"""Property and tenant schemas."""

from typing import Any, Optional

from pydantic import Field, field_validator, model_validator

from propertysnap.schemas.base import BaseSchema, UtcDatetime
from propertysnap.schemas.inspection import Inspection
from propertysnap.models.enums import PropertyType


class Coordinates(BaseSchema):
    """A geocoded point."""

    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)


class TenantContact(BaseSchema):
    """The tenant assigned to a property."""

    id: Optional[str] = None
    name: str = Field(..., min_length=1)
    email: Optional[str] = None
    phone: Optional[str] = None

    @field_validator("email", "phone", mode="before")
    @classmethod
    def empty_to_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value


class Property(BaseSchema):
    """Physical unit under inspection. Owns its inspections."""

    id: str = Field(..., min_length=1)
    address: str = Field(..., min_length=1)
    property_type: PropertyType
    bedrooms: int = Field(0, ge=0)
    bathrooms: int = Field(1, ge=1)
    # Report cover image, never an inspection photo
    profile_photo: Optional[str] = None
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    tenant: Optional[TenantContact] = None
    inspections: tuple[Inspection, ...] = ()
    created_at: UtcDatetime
    assigned_to: tuple[str, ...] = ()

    @model_validator(mode="before")
    @classmethod
    def migrate_legacy_fields(cls, data: Any) -> Any:
        """Older documents used ``photo`` and flat ``tenantName`` fields."""
        if not isinstance(data, dict):
            return data
        data = dict(data)
        legacy_photo = data.pop("photo", None)
        if legacy_photo and not (data.get("profilePhoto") or data.get("profile_photo")):
            data["profilePhoto"] = legacy_photo

        tenant_name = data.pop("tenantName", None)
        tenant_fields = {
            "id": data.pop("tenantId", None),
            "email": data.pop("tenantEmail", None),
            "phone": data.pop("tenantPhone", None),
        }
        if data.get("tenant") is None and tenant_name:
            data["tenant"] = {"name": tenant_name, **tenant_fields}
        for key in ("assignedTo", "assigned_to"):
            if key in data and data[key] is None:
                del data[key]
        return data

    @model_validator(mode="after")
    def validate_coordinates(self):
        """Latitude and longitude are set together or not at all."""
        if (self.latitude is None) != (self.longitude is None):
            raise ValueError("latitude and longitude must both be set or both be empty")
        return self

    @model_validator(mode="after")
    def validate_ownership(self):
        """Every inspection must belong to this property."""
        for inspection in self.inspections:
            if inspection.property_id != self.id:
                raise ValueError(
                    f"inspection {inspection.id} belongs to {inspection.property_id}, not {self.id}"
                )
        return self

    @property
    def coordinates(self) -> Optional[Coordinates]:
        if self.latitude is None or self.longitude is None:
            return None
        return Coordinates(latitude=self.latitude, longitude=self.longitude)

    def inspection(self, inspection_id: str) -> Optional[Inspection]:
        for inspection in self.inspections:
            if inspection.id == inspection_id:
                return inspection
        return None


class PropertyCreate(BaseSchema):
    """Create a new property."""

    address: str = Field(..., min_length=1, max_length=500)
    property_type: PropertyType
    bedrooms: int = Field(0, ge=0)
    bathrooms: int = Field(1, ge=1)
    profile_photo: Optional[str] = None
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    assigned_to: tuple[str, ...] = ()


class PropertyUpdate(BaseSchema):
    """Update property. Unset fields are left unchanged."""

    address: Optional[str] = Field(None, min_length=1, max_length=500)
    property_type: Optional[PropertyType] = None
    bedrooms: Optional[int] = Field(None, ge=0)
    bathrooms: Optional[int] = Field(None, ge=1)
    profile_photo: Optional[str] = None
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    assigned_to: Optional[tuple[str, ...]] = None
