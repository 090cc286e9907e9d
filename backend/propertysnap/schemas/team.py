"""User, team and branding schemas."""

from typing import Optional

from pydantic import Field, model_validator

from propertysnap.schemas.base import BaseSchema, UtcDatetime
from propertysnap.models.enums import (
    MemberStatus,
    PropertyAccess,
    SubscriptionTier,
    TeamRole,
    UserType,
)


class User(BaseSchema):
    """The device owner."""

    id: str = Field(..., min_length=1)
    email: str
    name: Optional[str] = None
    user_type: Optional[UserType] = None
    subscription_tier: SubscriptionTier = SubscriptionTier.FREE
    inspections_used: int = Field(0, ge=0)
    team_id: Optional[str] = None
    team_role: Optional[TeamRole] = None


class TeamMember(BaseSchema):
    """A member of a team with a role and property access mode."""

    id: str = Field(..., min_length=1)
    email: str
    name: str
    role: TeamRole
    property_access: PropertyAccess = PropertyAccess.ALL
    assigned_property_ids: tuple[str, ...] = ()
    invited_at: UtcDatetime
    accepted_at: Optional[UtcDatetime] = None
    status: MemberStatus = MemberStatus.PENDING

    def can_access(self, property_id: str) -> bool:
        if self.property_access == PropertyAccess.ALL:
            return True
        return property_id in self.assigned_property_ids


class TeamMemberCreate(BaseSchema):
    """Invite a member."""

    email: str = Field(..., min_length=3)
    name: str = Field(..., min_length=1)
    role: TeamRole
    property_access: PropertyAccess = PropertyAccess.ALL
    assigned_property_ids: tuple[str, ...] = ()

    @model_validator(mode="after")
    def validate_specific_access(self):
        """Specific access needs at least one assigned property."""
        if self.property_access == PropertyAccess.SPECIFIC and not self.assigned_property_ids:
            raise ValueError("assigned_property_ids is required for specific property access")
        return self


class Branding(BaseSchema):
    """White-label branding used on reports."""

    company_name: Optional[str] = None
    company_logo: Optional[str] = None


class Team(BaseSchema):
    """Optional grouping of actors with white-label branding."""

    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    owner_id: str
    members: tuple[TeamMember, ...] = ()
    created_at: UtcDatetime
    company_logo: Optional[str] = None
    company_name: Optional[str] = None

    @property
    def branding(self) -> Branding:
        return Branding(company_name=self.company_name, company_logo=self.company_logo)

    def member(self, member_id: str) -> Optional[TeamMember]:
        for member in self.members:
            if member.id == member_id:
                return member
        return None
