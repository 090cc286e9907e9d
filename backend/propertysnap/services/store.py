"""Checkpoint and inspection store.

One owner of the Property -> Inspection -> Checkpoint tree. Every public
operation is a single reducer step over an immutable ``AppState`` snapshot:
it either commits a new snapshot and emits change events, or it returns a
rejection and leaves the stored value untouched. Rejections are returned as
``StoreResult`` values and never raised.
"""

import functools
import logging
from datetime import datetime
from typing import Any, Callable, Optional, Sequence

from pydantic import ValidationError

from propertysnap.core.exceptions import (
    NotFound,
    PreconditionViolation,
    PropertySnapError,
)
from propertysnap.models.enums import (
    Capability,
    ConditionRating,
    InspectionStatus,
    InspectionType,
    MemberStatus,
    PhotoSlot,
    PropertyAccess,
    SignatureParty,
    StoreEventType,
    SubscriptionTier,
    TeamRole,
    UserType,
)
from propertysnap.schemas.base import utcnow
from propertysnap.schemas.inspection import (
    SLOT_FIELD_PREFIX,
    Checkpoint,
    Inspection,
    SignatureBlock,
)
from propertysnap.schemas.photo import VerifiedPhotoData
from propertysnap.schemas.property import (
    Coordinates,
    Property,
    PropertyCreate,
    PropertyUpdate,
    TenantContact,
)
from propertysnap.schemas.results import StoreResult
from propertysnap.schemas.state import AppState
from propertysnap.schemas.team import Team, TeamMember, TeamMemberCreate, User
from propertysnap.services import access
from propertysnap.services.audit import StoreEvent
from propertysnap.services.factories import (
    create_default_checkpoints,
    default_rooms,
    generate_id,
    new_checkpoint,
)

logger = logging.getLogger(__name__)

Listener = Callable[[StoreEvent], None]

_UNSET: Any = object()


def store_operation(fn):
    """Run ``fn`` as one reducer step and return its outcome as a ``StoreResult``."""

    @functools.wraps(fn)
    def wrapper(self, *args, **kwargs) -> StoreResult:
        try:
            value = fn(self, *args, **kwargs)
        except PropertySnapError as e:
            logger.info("%s rejected: %s", fn.__name__, e.message)
            return StoreResult.failure(e)
        except ValidationError as e:
            error = e.errors()[0]
            message = str(error.get("msg", "invalid value"))
            logger.info("%s rejected: %s", fn.__name__, message)
            return StoreResult.failure(PreconditionViolation(message))
        return StoreResult.success(value)

    return wrapper


def keep_earliest_upload(
    previous: Optional[VerifiedPhotoData],
    incoming: VerifiedPhotoData,
) -> VerifiedPhotoData:
    """Re-ingesting the same content keeps the first observed upload date."""
    if (
        previous is not None
        and previous.photo_hash == incoming.photo_hash
        and previous.upload_date < incoming.upload_date
    ):
        return incoming.evolve(upload_date=previous.upload_date)
    return incoming


class SignatureInput:
    """One party's signature for :meth:`InspectionStore.sign_inspection_jointly`."""

    __slots__ = ("party", "image", "printed_name")

    def __init__(self, party: SignatureParty, image: str, printed_name: str):
        self.party = party
        self.image = image
        self.printed_name = printed_name


class InspectionStore:
    """Reducer over the application state tree."""

    def __init__(
        self,
        state: Optional[AppState] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._state = state or AppState()
        self._clock = clock
        self._listeners: list[Listener] = []

    # ------------------------------------------------------------------
    # State plumbing
    # ------------------------------------------------------------------

    @property
    def state(self) -> AppState:
        """Current immutable snapshot."""
        return self._state

    def hydrate(self, state: AppState) -> None:
        """Replace the tree with a loaded snapshot. Emits no events."""
        self._state = state

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _commit(self, state: AppState, *events: StoreEvent) -> None:
        self._state = state
        for event in events:
            for listener in list(self._listeners):
                try:
                    listener(event)
                except Exception:
                    logger.exception(
                        "Store listener failed for %s",
                        event.type.value,
                        extra={"inspection_id": event.inspection_id},
                    )

    def _event(self, event_type: StoreEventType, **kwargs) -> StoreEvent:
        return StoreEvent(type=event_type, timestamp=self._clock(), **kwargs)

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def _require(self, capability: Capability, prop: Optional[Property] = None) -> None:
        access.require(self._state.user, self._state.team, capability, prop)

    def _property(self, property_id: str) -> Property:
        prop = self._state.get_property(property_id)
        if prop is None:
            raise NotFound("Property", property_id)
        return prop

    def _locate(self, inspection_id: str) -> tuple[Property, Inspection]:
        found = self._state.find_inspection(inspection_id)
        if found is None:
            raise NotFound("Inspection", inspection_id)
        return found

    def _editable(self, inspection_id: str) -> tuple[Property, Inspection]:
        prop, inspection = self._locate(inspection_id)
        self._require(Capability.CONDUCT_INSPECTIONS, prop)
        if not inspection.is_editable:
            raise PreconditionViolation(
                f"Inspection {inspection_id} is {inspection.status.value} and can no longer be modified"
            )
        return prop, inspection

    def _checkpoint(self, inspection: Inspection, checkpoint_id: str) -> Checkpoint:
        checkpoint = inspection.checkpoint(checkpoint_id)
        if checkpoint is None:
            raise NotFound("Checkpoint", checkpoint_id)
        return checkpoint

    def _with_property(self, prop: Property) -> AppState:
        return self._state.evolve(
            properties=tuple(prop if p.id == prop.id else p for p in self._state.properties)
        )

    def _with_inspection(self, prop: Property, inspection: Inspection) -> tuple[AppState, Property]:
        updated = prop.evolve(
            inspections=tuple(
                inspection if i.id == inspection.id else i for i in prop.inspections
            )
        )
        return self._with_property(updated), updated

    def _with_checkpoint(
        self, prop: Property, inspection: Inspection, checkpoint: Checkpoint
    ) -> tuple[AppState, Inspection]:
        updated = inspection.evolve(
            checkpoints=tuple(
                checkpoint if c.id == checkpoint.id else c for c in inspection.checkpoints
            )
        )
        state, _ = self._with_inspection(prop, updated)
        return state, updated

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def accessible_properties(self, user: Optional[User] = None) -> list[Property]:
        """Properties visible to ``user`` (default: the signed-in user)."""
        return access.accessible_properties(
            user or self._state.user, self._state.team, self._state.properties
        )

    @store_operation
    def get_property(self, property_id: str) -> Property:
        prop = self._property(property_id)
        self._require(Capability.VIEW_REPORTS, prop)
        return prop

    @store_operation
    def get_inspection(self, inspection_id: str) -> Inspection:
        prop, inspection = self._locate(inspection_id)
        self._require(Capability.VIEW_REPORTS, prop)
        return inspection

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------

    @store_operation
    def login(self, user: User) -> User:
        self._commit(
            self._state.evolve(user=user, is_authenticated=True),
            self._event(StoreEventType.SESSION_CHANGED, payload={"user_id": user.id}),
        )
        return user

    @store_operation
    def logout(self) -> None:
        self._commit(
            self._state.evolve(user=None, is_authenticated=False, properties=(), team=None),
            self._event(StoreEventType.SESSION_CHANGED, payload={"user_id": None}),
        )

    @store_operation
    def set_onboarded(self, onboarded: bool) -> bool:
        self._commit(
            self._state.evolve(is_onboarded=onboarded),
            self._event(StoreEventType.SESSION_CHANGED, payload={"is_onboarded": onboarded}),
        )
        return onboarded

    @store_operation
    def set_user_type(self, user_type: UserType) -> User:
        user = self._state.user
        if user is None:
            raise PreconditionViolation("No user is signed in")
        user = user.evolve(user_type=user_type)
        self._commit(
            self._state.evolve(user=user),
            self._event(StoreEventType.SESSION_CHANGED, payload={"user_type": user_type.value}),
        )
        return user

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @store_operation
    def add_property(self, data: PropertyCreate) -> Property:
        self._require(Capability.MANAGE_PROPERTIES)
        prop = Property(
            id=generate_id(),
            created_at=self._clock(),
            **data.model_dump(),
        )
        self._commit(
            self._state.evolve(properties=self._state.properties + (prop,)),
            self._event(StoreEventType.PROPERTY_ADDED, property_id=prop.id),
        )
        return prop

    @store_operation
    def update_property(self, property_id: str, changes: PropertyUpdate) -> Property:
        prop = self._property(property_id)
        self._require(Capability.MANAGE_PROPERTIES, prop)
        updates = changes.model_dump(exclude_unset=True)
        for required in ("address", "property_type", "bedrooms", "bathrooms"):
            if required in updates and updates[required] is None:
                del updates[required]
        prop = prop.evolve(**updates)
        self._commit(
            self._with_property(prop),
            self._event(
                StoreEventType.PROPERTY_UPDATED,
                property_id=prop.id,
                payload={"fields": sorted(updates)},
            ),
        )
        return prop

    @store_operation
    def delete_property(self, property_id: str) -> Property:
        """Remove a property and, with it, all of its inspections."""
        prop = self._property(property_id)
        self._require(Capability.MANAGE_PROPERTIES, prop)
        self._commit(
            self._state.evolve(
                properties=tuple(p for p in self._state.properties if p.id != property_id)
            ),
            self._event(
                StoreEventType.PROPERTY_DELETED,
                property_id=property_id,
                payload={"inspection_ids": [i.id for i in prop.inspections]},
            ),
        )
        return prop

    @store_operation
    def set_property_coordinates(
        self, property_id: str, coordinates: Optional[Coordinates]
    ) -> Property:
        prop = self._property(property_id)
        self._require(Capability.MANAGE_PROPERTIES, prop)
        prop = prop.evolve(
            latitude=coordinates.latitude if coordinates else None,
            longitude=coordinates.longitude if coordinates else None,
        )
        self._commit(
            self._with_property(prop),
            self._event(
                StoreEventType.PROPERTY_UPDATED,
                property_id=prop.id,
                payload={"fields": ["latitude", "longitude"]},
            ),
        )
        return prop

    @store_operation
    def assign_tenant(
        self,
        property_id: str,
        name: str,
        email: Optional[str] = None,
        phone: Optional[str] = None,
    ) -> Property:
        prop = self._property(property_id)
        self._require(Capability.MANAGE_PROPERTIES, prop)
        name = (name or "").strip()
        if not name:
            raise PreconditionViolation("Tenant name is required")
        tenant = TenantContact(
            id=prop.tenant.id if prop.tenant and prop.tenant.id else generate_id(),
            name=name,
            email=(email or "").strip() or None,
            phone=(phone or "").strip() or None,
        )
        prop = prop.evolve(tenant=tenant)
        self._commit(
            self._with_property(prop),
            self._event(StoreEventType.TENANT_ASSIGNED, property_id=prop.id),
        )
        return prop

    @store_operation
    def unassign_tenant(self, property_id: str) -> Property:
        prop = self._property(property_id)
        self._require(Capability.MANAGE_PROPERTIES, prop)
        prop = prop.evolve(tenant=None)
        self._commit(
            self._with_property(prop),
            self._event(StoreEventType.TENANT_UNASSIGNED, property_id=prop.id),
        )
        return prop

    # ------------------------------------------------------------------
    # Inspection lifecycle
    # ------------------------------------------------------------------

    @store_operation
    def add_inspection(
        self,
        property_id: str,
        inspection_type: InspectionType,
        due_date: Optional[datetime] = None,
        rooms: Optional[Sequence[str]] = None,
    ) -> Inspection:
        """Create a pending inspection seeded with one checkpoint per room."""
        prop = self._property(property_id)
        self._require(Capability.CONDUCT_INSPECTIONS, prop)
        now = self._clock()
        user = self._state.user
        inspection = Inspection(
            id=generate_id(),
            property_id=prop.id,
            type=inspection_type,
            status=InspectionStatus.PENDING,
            created_at=now,
            due_date=due_date,
            checkpoints=tuple(create_default_checkpoints(list(rooms or default_rooms()))),
            inspector_id=user.id if user else None,
            inspector_name=(user.name or user.email) if user else None,
        )
        prop = prop.evolve(inspections=prop.inspections + (inspection,))
        self._commit(
            self._with_property(prop),
            self._event(
                StoreEventType.INSPECTION_ADDED,
                inspection_id=inspection.id,
                property_id=prop.id,
                payload={
                    "type": inspection_type.value,
                    "due_date": due_date.isoformat() if due_date else None,
                },
            ),
        )
        return inspection

    @store_operation
    def set_due_date(self, inspection_id: str, due_date: Optional[datetime]) -> Inspection:
        prop, inspection = self._editable(inspection_id)
        inspection = inspection.evolve(due_date=due_date)
        state, _ = self._with_inspection(prop, inspection)
        self._commit(
            state,
            self._event(
                StoreEventType.INSPECTION_UPDATED,
                inspection_id=inspection.id,
                property_id=prop.id,
                payload={"due_date": due_date.isoformat() if due_date else None},
            ),
        )
        return inspection

    @store_operation
    def set_inspection_type(self, inspection_id: str, inspection_type: InspectionType) -> Inspection:
        prop, inspection = self._editable(inspection_id)
        inspection = inspection.evolve(type=inspection_type)
        state, _ = self._with_inspection(prop, inspection)
        self._commit(
            state,
            self._event(
                StoreEventType.INSPECTION_UPDATED,
                inspection_id=inspection.id,
                property_id=prop.id,
                payload={"type": inspection_type.value},
            ),
        )
        return inspection

    def _signature(self, image: str, printed_name: str, signed_at: datetime) -> SignatureBlock:
        printed_name = (printed_name or "").strip()
        if not printed_name:
            raise PreconditionViolation("A printed name is required to sign")
        if not image:
            raise PreconditionViolation("A signature image is required to sign")
        return SignatureBlock(image=image, printed_name=printed_name, signed_at=signed_at)

    def _sign(self, inspection_id: str, signatures: Sequence[SignatureInput]) -> Inspection:
        prop, inspection = self._editable(inspection_id)
        if not signatures:
            raise PreconditionViolation("At least one signature is required")
        parties = [s.party for s in signatures]
        if len(set(parties)) != len(parties):
            raise PreconditionViolation("Each party may sign only once")

        now = self._clock()
        changes: dict[str, Any] = {}
        for sig in signatures:
            changes[f"{sig.party.value}_signature"] = self._signature(sig.image, sig.printed_name, now)
        changes["status"] = InspectionStatus.COMPLETED
        changes["completed_at"] = now
        inspection = inspection.evolve(**changes)

        state, _ = self._with_inspection(prop, inspection)
        events = [
            self._event(
                StoreEventType.INSPECTION_SIGNED,
                inspection_id=inspection.id,
                property_id=prop.id,
                payload={"party": sig.party.value},
            )
            for sig in signatures
        ]
        events.append(
            self._event(
                StoreEventType.INSPECTION_COMPLETED,
                inspection_id=inspection.id,
                property_id=prop.id,
                payload={"completed_by": signatures[0].party.value},
            )
        )
        self._commit(state, *events)
        return inspection

    @store_operation
    def sign_inspection(
        self,
        inspection_id: str,
        party: SignatureParty,
        signature_image: str,
        printed_name: str,
    ) -> Inspection:
        """Record a signature; the first signature completes the inspection."""
        return self._sign(inspection_id, [SignatureInput(party, signature_image, printed_name)])

    @store_operation
    def sign_inspection_jointly(
        self, inspection_id: str, signatures: Sequence[SignatureInput]
    ) -> Inspection:
        """Record landlord and tenant signatures in one step."""
        return self._sign(inspection_id, list(signatures))

    @store_operation
    def archive_inspection(self, inspection_id: str) -> Inspection:
        prop, inspection = self._locate(inspection_id)
        self._require(Capability.CONDUCT_INSPECTIONS, prop)
        if not inspection.status.can_advance_to(InspectionStatus.ARCHIVED):
            raise PreconditionViolation(
                f"Only completed inspections can be archived (status is {inspection.status.value})"
            )
        inspection = inspection.evolve(status=InspectionStatus.ARCHIVED)
        state, _ = self._with_inspection(prop, inspection)
        self._commit(
            state,
            self._event(
                StoreEventType.INSPECTION_ARCHIVED,
                inspection_id=inspection.id,
                property_id=prop.id,
            ),
        )
        return inspection

    @store_operation
    def delete_inspection(self, inspection_id: str) -> Inspection:
        """Discard a pending inspection. Signed evidence is never deleted."""
        prop, inspection = self._editable(inspection_id)
        prop = prop.evolve(
            inspections=tuple(i for i in prop.inspections if i.id != inspection_id)
        )
        self._commit(
            self._with_property(prop),
            self._event(
                StoreEventType.INSPECTION_DELETED,
                inspection_id=inspection_id,
                property_id=prop.id,
            ),
        )
        return inspection

    # ------------------------------------------------------------------
    # Rooms and checkpoints
    # ------------------------------------------------------------------

    def _checkpoint_event(
        self, event_type: StoreEventType, prop: Property, inspection: Inspection, checkpoint: Checkpoint, **payload
    ) -> StoreEvent:
        return self._event(
            event_type,
            inspection_id=inspection.id,
            property_id=prop.id,
            payload={"checkpoint_id": checkpoint.id, **payload},
        )

    @store_operation
    def update_checkpoint(self, inspection_id: str, checkpoint: Checkpoint) -> Checkpoint:
        """Replace a checkpoint of a pending inspection."""
        prop, inspection = self._editable(inspection_id)
        current = self._checkpoint(inspection, checkpoint.id)
        changes = {}
        for slot, prefix in SLOT_FIELD_PREFIX.items():
            incoming = checkpoint.photo_data_for(slot)
            if incoming is not None:
                kept = keep_earliest_upload(current.photo_data_for(slot), incoming)
                if kept is not incoming:
                    changes[f"{prefix}_photo_data"] = kept
                    changes[f"{prefix}_photo_timestamp"] = kept.timestamp
        if changes:
            checkpoint = checkpoint.evolve(**changes)
        state, _ = self._with_checkpoint(prop, inspection, checkpoint)
        self._commit(
            state,
            self._checkpoint_event(StoreEventType.CHECKPOINT_UPDATED, prop, inspection, checkpoint),
        )
        return checkpoint

    @store_operation
    def set_checkpoint_photo(
        self,
        inspection_id: str,
        checkpoint_id: str,
        slot: PhotoSlot,
        photo: VerifiedPhotoData,
    ) -> Checkpoint:
        """Attach a verified photo to one slot of a checkpoint."""
        prop, inspection = self._editable(inspection_id)
        checkpoint = self._checkpoint(inspection, checkpoint_id)
        photo = keep_earliest_upload(checkpoint.photo_data_for(slot), photo)
        prefix = SLOT_FIELD_PREFIX[slot]
        checkpoint = checkpoint.evolve(**{
            f"{prefix}_photo": photo.uri,
            f"{prefix}_photo_timestamp": photo.timestamp,
            f"{prefix}_photo_data": photo,
            "timestamp": photo.upload_date,
        })
        state, _ = self._with_checkpoint(prop, inspection, checkpoint)
        self._commit(
            state,
            self._checkpoint_event(
                StoreEventType.CHECKPOINT_UPDATED, prop, inspection, checkpoint,
                slot=slot.value, photo_hash=photo.photo_hash, tier=photo.tier.value,
            ),
        )
        return checkpoint

    @store_operation
    def set_checkpoint_condition(
        self,
        inspection_id: str,
        checkpoint_id: str,
        slot: PhotoSlot,
        condition: Optional[ConditionRating],
    ) -> Checkpoint:
        prop, inspection = self._editable(inspection_id)
        checkpoint = self._checkpoint(inspection, checkpoint_id)
        checkpoint = checkpoint.evolve(**{
            f"{SLOT_FIELD_PREFIX[slot]}_condition": ConditionRating.normalize(condition),
        })
        state, _ = self._with_checkpoint(prop, inspection, checkpoint)
        self._commit(
            state,
            self._checkpoint_event(
                StoreEventType.CHECKPOINT_UPDATED, prop, inspection, checkpoint,
                slot=slot.value, condition=condition.value if condition else None,
            ),
        )
        return checkpoint

    @store_operation
    def set_checkpoint_notes(self, inspection_id: str, checkpoint_id: str, notes: str) -> Checkpoint:
        prop, inspection = self._editable(inspection_id)
        checkpoint = self._checkpoint(inspection, checkpoint_id).evolve(notes=notes or "")
        state, _ = self._with_checkpoint(prop, inspection, checkpoint)
        self._commit(
            state,
            self._checkpoint_event(StoreEventType.CHECKPOINT_UPDATED, prop, inspection, checkpoint),
        )
        return checkpoint

    @store_operation
    def add_checkpoint(self, inspection_id: str, room_name: str, title: str) -> Checkpoint:
        prop, inspection = self._editable(inspection_id)
        room_name = (room_name or "").strip()
        title = (title or "").strip()
        if not room_name or not title:
            raise PreconditionViolation("Room name and title are required")
        checkpoint = new_checkpoint(room_name, title)
        inspection = inspection.evolve(checkpoints=inspection.checkpoints + (checkpoint,))
        state, _ = self._with_inspection(prop, inspection)
        self._commit(
            state,
            self._checkpoint_event(
                StoreEventType.CHECKPOINT_ADDED, prop, inspection, checkpoint, room_name=room_name
            ),
        )
        return checkpoint

    @store_operation
    def add_room(self, inspection_id: str, room_name: str) -> Checkpoint:
        """Add a room seeded with a "General" checkpoint."""
        prop, inspection = self._editable(inspection_id)
        room_name = (room_name or "").strip()
        if not room_name:
            raise PreconditionViolation("Room name is required")
        if room_name in inspection.room_names():
            raise PreconditionViolation(f"Room '{room_name}' already exists")
        checkpoint = create_default_checkpoints([room_name])[0]
        inspection = inspection.evolve(checkpoints=inspection.checkpoints + (checkpoint,))
        state, _ = self._with_inspection(prop, inspection)
        self._commit(
            state,
            self._checkpoint_event(
                StoreEventType.CHECKPOINT_ADDED, prop, inspection, checkpoint, room_name=room_name
            ),
        )
        return checkpoint

    @store_operation
    def rename_room(self, inspection_id: str, old_name: str, new_name: str) -> Inspection:
        """Rename every checkpoint in ``old_name``. Empty or unchanged names are a no-op."""
        prop, inspection = self._editable(inspection_id)
        new_name = (new_name or "").strip()
        if not new_name or new_name == old_name:
            return inspection
        if old_name not in inspection.room_names():
            raise NotFound("Room", old_name)
        inspection = inspection.evolve(
            checkpoints=tuple(
                c.evolve(room_name=new_name) if c.room_name == old_name else c
                for c in inspection.checkpoints
            )
        )
        state, _ = self._with_inspection(prop, inspection)
        self._commit(
            state,
            self._event(
                StoreEventType.ROOM_RENAMED,
                inspection_id=inspection.id,
                property_id=prop.id,
                payload={"old_name": old_name, "new_name": new_name},
            ),
        )
        return inspection

    @store_operation
    def delete_room(self, inspection_id: str, room_name: str) -> Inspection:
        """Remove every checkpoint in ``room_name`` in one step."""
        prop, inspection = self._editable(inspection_id)
        remaining = tuple(c for c in inspection.checkpoints if c.room_name != room_name)
        if len(remaining) == len(inspection.checkpoints):
            raise NotFound("Room", room_name)
        inspection = inspection.evolve(checkpoints=remaining)
        state, _ = self._with_inspection(prop, inspection)
        self._commit(
            state,
            self._event(
                StoreEventType.ROOM_DELETED,
                inspection_id=inspection.id,
                property_id=prop.id,
                payload={"room_name": room_name},
            ),
        )
        return inspection

    # ------------------------------------------------------------------
    # Team
    # ------------------------------------------------------------------

    @store_operation
    def create_team(self, name: str) -> Team:
        """Create a team owned by the signed-in user, who becomes its admin."""
        user = self._state.user
        if user is None:
            raise PreconditionViolation("No user is signed in")
        if self._state.team is not None:
            raise PreconditionViolation("A team already exists")
        name = (name or "").strip()
        if not name:
            raise PreconditionViolation("Team name is required")
        team = Team(id=generate_id(), name=name, owner_id=user.id, created_at=self._clock())
        user = user.evolve(
            team_id=team.id,
            team_role=TeamRole.ADMIN,
            subscription_tier=SubscriptionTier.ENTERPRISE,
        )
        self._commit(
            self._state.evolve(team=team, user=user),
            self._event(StoreEventType.TEAM_CREATED, payload={"team_id": team.id}),
        )
        return team

    def _team(self) -> Team:
        if self._state.team is None:
            raise PreconditionViolation("No team exists")
        return self._state.team

    @store_operation
    def add_team_member(self, data: TeamMemberCreate) -> TeamMember:
        self._require(Capability.MANAGE_TEAM)
        team = self._team()
        email = data.email.lower()
        if any(m.email.lower() == email for m in team.members):
            raise PreconditionViolation(f"{data.email} is already a team member")
        member = TeamMember(
            id=generate_id(),
            invited_at=self._clock(),
            status=MemberStatus.PENDING,
            **data.model_dump(),
        )
        self._commit(
            self._state.evolve(team=team.evolve(members=team.members + (member,))),
            self._event(StoreEventType.MEMBER_ADDED, payload={"member_id": member.id}),
        )
        return member

    @store_operation
    def update_team_member(
        self,
        member_id: str,
        role: Optional[TeamRole] = None,
        property_access: Optional[PropertyAccess] = None,
        assigned_property_ids: Optional[Sequence[str]] = None,
        status: Optional[MemberStatus] = None,
    ) -> TeamMember:
        self._require(Capability.MANAGE_TEAM)
        team = self._team()
        member = team.member(member_id)
        if member is None:
            raise NotFound("Team member", member_id)
        changes: dict[str, Any] = {}
        if role is not None:
            changes["role"] = role
        if property_access is not None:
            changes["property_access"] = property_access
        if assigned_property_ids is not None:
            changes["assigned_property_ids"] = tuple(assigned_property_ids)
        if status is not None:
            changes["status"] = status
            if status == MemberStatus.ACTIVE and member.accepted_at is None:
                changes["accepted_at"] = self._clock()
        member = member.evolve(**changes)
        if member.property_access == PropertyAccess.SPECIFIC and not member.assigned_property_ids:
            raise PreconditionViolation("Specific property access needs at least one property")
        team = team.evolve(
            members=tuple(member if m.id == member_id else m for m in team.members)
        )
        self._commit(
            self._state.evolve(team=team),
            self._event(
                StoreEventType.MEMBER_UPDATED,
                payload={"member_id": member_id, "fields": sorted(changes)},
            ),
        )
        return member

    @store_operation
    def remove_team_member(self, member_id: str) -> TeamMember:
        self._require(Capability.MANAGE_TEAM)
        team = self._team()
        member = team.member(member_id)
        if member is None:
            raise NotFound("Team member", member_id)
        team = team.evolve(members=tuple(m for m in team.members if m.id != member_id))
        self._commit(
            self._state.evolve(team=team),
            self._event(StoreEventType.MEMBER_REMOVED, payload={"member_id": member_id}),
        )
        return member

    @store_operation
    def update_branding(self, company_name: Any = _UNSET, company_logo: Any = _UNSET) -> Team:
        """Set or clear white-label branding. Omitted arguments are left as-is."""
        self._require(Capability.MANAGE_TEAM)
        team = self._team()
        changes = {}
        if company_name is not _UNSET:
            changes["company_name"] = (company_name or "").strip() or None
        if company_logo is not _UNSET:
            changes["company_logo"] = company_logo or None
        team = team.evolve(**changes)
        self._commit(
            self._state.evolve(team=team),
            self._event(StoreEventType.BRANDING_UPDATED, payload={"fields": sorted(changes)}),
        )
        return team
