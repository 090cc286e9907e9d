"""Team roles, the capability matrix, and the property access resolver."""

from typing import Optional, Sequence

from propertysnap.core.exceptions import AccessDenied
from propertysnap.models.enums import Capability, TeamRole
from propertysnap.schemas.property import Property
from propertysnap.schemas.team import Team, TeamMember, User

CAPABILITIES: dict[TeamRole, frozenset[Capability]] = {
    TeamRole.ADMIN: frozenset(Capability),
    TeamRole.MANAGER: frozenset({
        Capability.MANAGE_PROPERTIES,
        Capability.CONDUCT_INSPECTIONS,
        Capability.VIEW_REPORTS,
    }),
    TeamRole.INSPECTOR: frozenset({
        Capability.CONDUCT_INSPECTIONS,
        Capability.VIEW_REPORTS,
    }),
    TeamRole.VIEWER: frozenset({Capability.VIEW_REPORTS}),
}

ROLE_LABELS = {
    TeamRole.ADMIN: "Administrator",
    TeamRole.MANAGER: "Property Manager",
    TeamRole.INSPECTOR: "Inspector",
    TeamRole.VIEWER: "View Only",
}

ROLE_DESCRIPTIONS = {
    TeamRole.ADMIN: "Full access to all properties, team management, and billing",
    TeamRole.MANAGER: "Can manage assigned properties and conduct inspections",
    TeamRole.INSPECTOR: "Can conduct inspections on assigned properties only",
    TeamRole.VIEWER: "Can view inspection reports and archives only",
}


def role_label(role: TeamRole) -> str:
    return ROLE_LABELS[role]


def role_description(role: TeamRole) -> str:
    return ROLE_DESCRIPTIONS[role]


def has_capability(role: Optional[TeamRole], capability: Capability) -> bool:
    if role is None:
        return capability == Capability.VIEW_REPORTS
    return capability in CAPABILITIES[role]


def can_manage_team(role: Optional[TeamRole]) -> bool:
    return has_capability(role, Capability.MANAGE_TEAM)


def can_manage_properties(role: Optional[TeamRole]) -> bool:
    return has_capability(role, Capability.MANAGE_PROPERTIES)


def can_conduct_inspections(role: Optional[TeamRole]) -> bool:
    return has_capability(role, Capability.CONDUCT_INSPECTIONS)


def can_view_reports(role: Optional[TeamRole]) -> bool:
    return has_capability(role, Capability.VIEW_REPORTS)


def _member_for(user: User, team: Team) -> Optional[TeamMember]:
    return team.member(user.id)


def effective_role(user: Optional[User], team: Optional[Team]) -> Optional[TeamRole]:
    """The role that governs ``user``.

    An unaffiliated user owns everything on the device and acts as admin.
    """
    if user is None:
        return None
    if team is None or user.team_role == TeamRole.ADMIN or team.owner_id == user.id:
        return TeamRole.ADMIN
    member = _member_for(user, team)
    if member is None:
        return None
    return member.role


def accessible_properties(
    user: Optional[User],
    team: Optional[Team],
    properties: Sequence[Property],
) -> list[Property]:
    """Properties ``user`` may read.

    Unaffiliated users and admins see everything. Team members see all or
    their assigned subset according to their access mode; anyone else sees
    nothing.
    """
    if user is None:
        return []
    if team is None or user.team_role == TeamRole.ADMIN or team.owner_id == user.id:
        return list(properties)

    member = _member_for(user, team)
    if member is None:
        return []
    return [prop for prop in properties if member.can_access(prop.id)]


def can_access_property(user: Optional[User], team: Optional[Team], prop: Property) -> bool:
    return any(p.id == prop.id for p in accessible_properties(user, team, [prop]))


def require(
    user: Optional[User],
    team: Optional[Team],
    capability: Capability,
    prop: Optional[Property] = None,
) -> None:
    """Raise ``AccessDenied`` unless ``user`` holds ``capability`` (on ``prop``)."""
    if user is None:
        raise AccessDenied("Not signed in")
    role = effective_role(user, team)
    if not has_capability(role, capability):
        raise AccessDenied(
            f"Role {role.value if role else 'none'} cannot {capability.value.replace('_', ' ')}"
        )
    if prop is not None and not can_access_property(user, team, prop):
        raise AccessDenied(f"No access to property {prop.id}")
