"""Enumeration types for the PropertySnap domain model."""

from datetime import timedelta
from enum import Enum
from typing import Optional


class PropertyType(str, Enum):
    """Type of property."""
    APARTMENT = "apartment"
    HOUSE = "house"
    TOWNHOUSE = "townhouse"
    STUDIO = "studio"


class InspectionType(str, Enum):
    """Type of inspection."""
    MOVE_IN = "move-in"
    MOVE_OUT = "move-out"
    ROUTINE = "routine"

    @property
    def label(self) -> str:
        return _INSPECTION_TYPE_LABELS[self]


_INSPECTION_TYPE_LABELS = {
    InspectionType.MOVE_IN: "Move-In",
    InspectionType.MOVE_OUT: "Move-Out",
    InspectionType.ROUTINE: "Routine",
}


class InspectionStatus(str, Enum):
    """Lifecycle status of an inspection. Transitions only move forward."""
    PENDING = "pending"
    COMPLETED = "completed"
    ARCHIVED = "archived"

    @property
    def order(self) -> int:
        return _STATUS_ORDER[self]

    def can_advance_to(self, target: "InspectionStatus") -> bool:
        return target.order == self.order + 1


_STATUS_ORDER = {
    InspectionStatus.PENDING: 0,
    InspectionStatus.COMPLETED: 1,
    InspectionStatus.ARCHIVED: 2,
}


class ConditionRating(str, Enum):
    """Checkpoint condition on the three-value scale."""
    PASS = "pass"
    PASS_ATTENTION = "pass-attention"
    FAIL = "fail"

    @classmethod
    def normalize(cls, value) -> Optional["ConditionRating"]:
        """Map current and legacy condition words onto the three-value scale."""
        if value is None or value == "":
            return None
        if isinstance(value, cls):
            return value
        key = str(value).strip().lower()
        if key in LEGACY_CONDITIONS:
            return LEGACY_CONDITIONS[key]
        return cls(key)

    @property
    def label(self) -> str:
        return _CONDITION_LABELS[self]

    @property
    def glyph(self) -> str:
        return _CONDITION_GLYPHS[self]


LEGACY_CONDITIONS = {
    "excellent": ConditionRating.PASS,
    "good": ConditionRating.PASS,
    "fair": ConditionRating.PASS_ATTENTION,
    "poor": ConditionRating.FAIL,
    "damaged": ConditionRating.FAIL,
}

_CONDITION_LABELS = {
    ConditionRating.PASS: "Pass",
    ConditionRating.PASS_ATTENTION: "Pass - Needs Attention",
    ConditionRating.FAIL: "Fail - Action Required",
}

_CONDITION_GLYPHS = {
    ConditionRating.PASS: "[PASS]",
    ConditionRating.PASS_ATTENTION: "[ATTN]",
    ConditionRating.FAIL: "[FAIL]",
}


class VerificationMethod(str, Enum):
    """How the photo entered the system. Authoritative for tier."""
    CAMERA_CAPTURE = "camera-capture"
    GALLERY_IMPORT = "gallery-import"
    UNKNOWN = "unknown"


class VerificationTier(str, Enum):
    """Evidentiary confidence of a photo."""
    UNVERIFIED = "unverified"
    VERIFIED = "verified"
    VERIFIED_GPS = "verified-gps"

    @property
    def rank(self) -> int:
        return _TIER_RANK[self]

    @property
    def glyph(self) -> str:
        return _TIER_GLYPHS[self]

    @property
    def label(self) -> str:
        return _TIER_LABELS[self]

    @property
    def color(self) -> str:
        return "#D97706" if self is VerificationTier.UNVERIFIED else "#2D5C3F"


_TIER_RANK = {
    VerificationTier.UNVERIFIED: 0,
    VerificationTier.VERIFIED: 1,
    VerificationTier.VERIFIED_GPS: 2,
}

_TIER_GLYPHS = {
    VerificationTier.UNVERIFIED: "[!]",
    VerificationTier.VERIFIED: "[OK]",
    VerificationTier.VERIFIED_GPS: "[OK+GPS]",
}

_TIER_LABELS = {
    VerificationTier.UNVERIFIED: "Unverified",
    VerificationTier.VERIFIED: "Verified",
    VerificationTier.VERIFIED_GPS: "Verified + GPS",
}


class CompositionGuide(str, Enum):
    """Framing hint used at capture time. Recorded, never validated."""
    ROOM_OVERVIEW = "room-overview"
    WALL = "wall"
    CORNER = "corner"
    FLOOR = "floor"
    CEILING = "ceiling"
    FIXTURE = "fixture"
    NONE = "none"


class PhotoSlot(str, Enum):
    """Checkpoint photo slot, in rendering preference order."""
    LANDLORD = "landlord"
    TENANT = "tenant"
    MOVE_OUT = "move-out"


PHOTO_SLOT_ORDER = (PhotoSlot.LANDLORD, PhotoSlot.TENANT, PhotoSlot.MOVE_OUT)


class SignatureParty(str, Enum):
    """Who signed an inspection."""
    LANDLORD = "landlord"
    TENANT = "tenant"


class TeamRole(str, Enum):
    """Role of a team member."""
    ADMIN = "admin"
    MANAGER = "manager"
    INSPECTOR = "inspector"
    VIEWER = "viewer"


class PropertyAccess(str, Enum):
    """Which properties a team member may see."""
    ALL = "all"
    SPECIFIC = "specific"


class MemberStatus(str, Enum):
    """Invitation state of a team member."""
    PENDING = "pending"
    ACTIVE = "active"
    DISABLED = "disabled"


class UserType(str, Enum):
    """Whether the device owner acts as landlord or tenant."""
    LANDLORD = "landlord"
    TENANT = "tenant"
    MANAGER = "manager"


class SubscriptionTier(str, Enum):
    """Account subscription tier."""
    FREE = "free"
    PER_INSPECTION = "per-inspection"
    UNLIMITED = "unlimited"
    ENTERPRISE = "enterprise"


class Capability(str, Enum):
    """Actions gated by the role capability matrix."""
    MANAGE_TEAM = "manage_team"
    MANAGE_PROPERTIES = "manage_properties"
    CONDUCT_INSPECTIONS = "conduct_inspections"
    VIEW_REPORTS = "view_reports"


class NotificationKind(str, Enum):
    """Kind of scheduled or immediate notification."""
    REMINDER = "inspection_reminder"
    DUE = "inspection_due"
    COMPLETED = "inspection_completed"
    TENANT_ACTION = "tenant_action_required"


class ReminderTiming(str, Enum):
    """Lead time before the due date for reminders."""
    ONE_DAY = "1_day"
    THREE_DAYS = "3_days"
    ONE_WEEK = "1_week"

    @property
    def lead(self) -> timedelta:
        return _REMINDER_LEADS[self]

    @property
    def phrase(self) -> str:
        return _REMINDER_PHRASES[self]


_REMINDER_LEADS = {
    ReminderTiming.ONE_DAY: timedelta(days=1),
    ReminderTiming.THREE_DAYS: timedelta(days=3),
    ReminderTiming.ONE_WEEK: timedelta(weeks=1),
}

_REMINDER_PHRASES = {
    ReminderTiming.ONE_DAY: "tomorrow",
    ReminderTiming.THREE_DAYS: "in 3 days",
    ReminderTiming.ONE_WEEK: "in 1 week",
}


class StoreEventType(str, Enum):
    """Change events emitted by the inspection store."""
    SESSION_CHANGED = "session_changed"
    PROPERTY_ADDED = "property_added"
    PROPERTY_UPDATED = "property_updated"
    PROPERTY_DELETED = "property_deleted"
    INSPECTION_ADDED = "inspection_added"
    INSPECTION_UPDATED = "inspection_updated"
    INSPECTION_DELETED = "inspection_deleted"
    CHECKPOINT_ADDED = "checkpoint_added"
    CHECKPOINT_UPDATED = "checkpoint_updated"
    ROOM_RENAMED = "room_renamed"
    ROOM_DELETED = "room_deleted"
    INSPECTION_SIGNED = "inspection_signed"
    INSPECTION_COMPLETED = "inspection_completed"
    INSPECTION_ARCHIVED = "inspection_archived"
    TEAM_CREATED = "team_created"
    MEMBER_ADDED = "member_added"
    MEMBER_UPDATED = "member_updated"
    MEMBER_REMOVED = "member_removed"
    BRANDING_UPDATED = "branding_updated"
    TENANT_ASSIGNED = "tenant_assigned"
    TENANT_UNASSIGNED = "tenant_unassigned"


class ReportEntryPoint(str, Enum):
    """Where the rendered PDF goes."""
    SHARE = "share"
    PRINT = "print"
    FILE = "file"


class Platform(str, Enum):
    """Host platform, for SMS URL formatting."""
    IOS = "ios"
    ANDROID = "android"
