"""Tests for the inspection store."""

from datetime import timedelta

import pytest

from conftest import NOW, SIGNATURE_IMAGE, make_photo
from propertysnap.models.enums import (
    ConditionRating,
    InspectionStatus,
    InspectionType,
    PhotoSlot,
    PropertyAccess,
    PropertyType,
    SignatureParty,
    StoreEventType,
    TeamRole,
)
from propertysnap.schemas.property import Coordinates, PropertyCreate, PropertyUpdate
from propertysnap.schemas.state import AppState
from propertysnap.schemas.team import TeamMemberCreate, User
from propertysnap.services.factories import DEFAULT_ROOMS
from propertysnap.services.store import InspectionStore, SignatureInput


class StepClock:
    """A clock the test can move in either direction."""

    def __init__(self, now=NOW):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture
def events(store):
    received = []
    store.subscribe(received.append)
    return received


@pytest.fixture
def inspection(store, prop):
    result = store.add_inspection(prop.id, InspectionType.MOVE_IN)
    assert result.ok
    return result.value


def _sign(store, inspection_id, party=SignatureParty.LANDLORD, name="Olivia Owner"):
    return store.sign_inspection(inspection_id, party, SIGNATURE_IMAGE, name)


class TestProperties:
    """Tests for property CRUD."""

    def test_add_property(self, store, prop):
        assert prop.address == "12 High St"
        assert prop.created_at == NOW
        assert prop.inspections == ()
        assert store.state.get_property(prop.id) == prop

    def test_update_property(self, store, prop):
        result = store.update_property(prop.id, PropertyUpdate(bedrooms=3))
        assert result.ok
        assert result.value.bedrooms == 3
        assert result.value.address == prop.address

    def test_update_cannot_unset_required_fields(self, store, prop):
        result = store.update_property(prop.id, PropertyUpdate(address=None))
        assert result.ok
        assert result.value.address == prop.address

    def test_update_unknown_property(self, store):
        result = store.update_property("missing", PropertyUpdate(bedrooms=1))
        assert not result.ok
        assert result.not_found

    def test_delete_cascades_inspections(self, store, prop, inspection, events):
        result = store.delete_property(prop.id)
        assert result.ok
        assert store.state.properties == ()
        assert store.state.find_inspection(inspection.id) is None
        assert events[-1].type == StoreEventType.PROPERTY_DELETED
        assert events[-1].payload["inspection_ids"] == [inspection.id]

    def test_set_coordinates(self, store, prop):
        result = store.set_property_coordinates(prop.id, Coordinates(latitude=1.5, longitude=2.5))
        assert result.value.coordinates == Coordinates(latitude=1.5, longitude=2.5)
        cleared = store.set_property_coordinates(prop.id, None)
        assert cleared.value.coordinates is None

    def test_half_coordinates_rejected(self, store, prop):
        result = store.update_property(prop.id, PropertyUpdate(latitude=None, longitude=None))
        assert result.ok
        bare = store.add_property(PropertyCreate(address="9 Low Rd", property_type=PropertyType.APARTMENT))
        half = store.update_property(bare.value.id, PropertyUpdate(latitude=10.0))
        assert not half.ok
        assert half.error_code == "precondition_violation"


class TestTenant:
    def test_assign_and_unassign(self, store, prop):
        result = store.assign_tenant(prop.id, "  Tara Tenant ", "tara@example.com", "")
        assert result.ok
        tenant = result.value.tenant
        assert tenant.name == "Tara Tenant"
        assert tenant.email == "tara@example.com"
        assert tenant.phone is None
        assert tenant.id

        reassigned = store.assign_tenant(prop.id, "Tara T", None, "0400 000 000")
        assert reassigned.value.tenant.id == tenant.id

        assert store.unassign_tenant(prop.id).value.tenant is None

    def test_name_required(self, store, prop):
        result = store.assign_tenant(prop.id, "   ")
        assert not result.ok
        assert result.error == "Tenant name is required"


class TestInspectionLifecycle:
    """Creation, signing, completion and archive."""

    def test_default_rooms(self, inspection):
        assert inspection.status == InspectionStatus.PENDING
        assert inspection.room_names() == list(DEFAULT_ROOMS)
        assert len(inspection.checkpoints) == 7
        assert inspection.checkpoints[0].title == "Living Room - General"
        assert inspection.inspector_id == "user-1"
        assert inspection.inspector_name == "Olivia Owner"

    def test_custom_rooms(self, store, prop):
        result = store.add_inspection(prop.id, InspectionType.ROUTINE, rooms=["Garage"])
        assert [c.title for c in result.value.checkpoints] == ["Garage - General"]

    def test_inspection_belongs_to_property(self, store, prop, inspection):
        owner, found = store.state.find_inspection(inspection.id)
        assert owner.id == prop.id
        assert found.property_id == prop.id

    def test_due_date_before_creation_rejected(self, store, prop):
        result = store.add_inspection(prop.id, InspectionType.MOVE_IN, due_date=NOW - timedelta(days=1))
        assert not result.ok
        assert result.error_code == "precondition_violation"
        assert store.state.get_property(prop.id).inspections == ()

    def test_set_due_date(self, store, inspection, events):
        due = NOW + timedelta(days=3)
        result = store.set_due_date(inspection.id, due)
        assert result.value.due_date == due
        assert events[-1].type == StoreEventType.INSPECTION_UPDATED
        assert events[-1].payload == {"due_date": due.isoformat()}

    def test_sign_completes(self, store, inspection, events):
        result = _sign(store, inspection.id)
        assert result.ok
        signed = result.value
        assert signed.status == InspectionStatus.COMPLETED
        assert signed.completed_at == NOW
        assert signed.landlord_signature.printed_name == "Olivia Owner"
        assert signed.tenant_signature is None
        assert [e.type for e in events[-2:]] == [
            StoreEventType.INSPECTION_SIGNED,
            StoreEventType.INSPECTION_COMPLETED,
        ]
        assert events[-1].payload == {"completed_by": "landlord"}

    def test_signature_needs_name_and_image(self, store, inspection):
        assert not store.sign_inspection(inspection.id, SignatureParty.LANDLORD, SIGNATURE_IMAGE, " ").ok
        assert not store.sign_inspection(inspection.id, SignatureParty.LANDLORD, "", "Olivia").ok
        assert store.state.find_inspection(inspection.id)[1].status == InspectionStatus.PENDING

    def test_joint_signing(self, store, inspection):
        result = store.sign_inspection_jointly(inspection.id, [
            SignatureInput(SignatureParty.LANDLORD, SIGNATURE_IMAGE, "Olivia Owner"),
            SignatureInput(SignatureParty.TENANT, SIGNATURE_IMAGE, "Tara Tenant"),
        ])
        assert result.ok
        assert result.value.landlord_signature is not None
        assert result.value.tenant_signature.printed_name == "Tara Tenant"

    def test_joint_signing_rejects_duplicate_party(self, store, inspection):
        result = store.sign_inspection_jointly(inspection.id, [
            SignatureInput(SignatureParty.TENANT, SIGNATURE_IMAGE, "A"),
            SignatureInput(SignatureParty.TENANT, SIGNATURE_IMAGE, "B"),
        ])
        assert not result.ok

    def test_completed_is_immutable(self, store, inspection):
        signed = _sign(store, inspection.id).value
        checkpoint_id = inspection.checkpoints[0].id

        attempts = [
            store.update_checkpoint(inspection.id, signed.checkpoints[0].evolve(notes="late edit")),
            store.set_checkpoint_notes(inspection.id, checkpoint_id, "late edit"),
            store.set_checkpoint_photo(inspection.id, checkpoint_id, PhotoSlot.LANDLORD, make_photo()),
            store.add_room(inspection.id, "Garage"),
            store.delete_room(inspection.id, "Kitchen"),
            store.set_due_date(inspection.id, NOW + timedelta(days=1)),
            _sign(store, inspection.id, SignatureParty.TENANT),
            store.delete_inspection(inspection.id),
        ]
        for attempt in attempts:
            assert not attempt.ok
            assert attempt.error_code == "precondition_violation"

        assert store.state.find_inspection(inspection.id)[1] == signed

    def test_archive_only_from_completed(self, store, inspection):
        pending = store.archive_inspection(inspection.id)
        assert not pending.ok

        _sign(store, inspection.id)
        archived = store.archive_inspection(inspection.id)
        assert archived.ok
        assert archived.value.status == InspectionStatus.ARCHIVED

        again = store.archive_inspection(inspection.id)
        assert not again.ok

    def test_delete_pending(self, store, prop, inspection):
        assert store.delete_inspection(inspection.id).ok
        assert store.state.get_property(prop.id).inspections == ()

    def test_unknown_inspection(self, store):
        result = store.sign_inspection("nope", SignatureParty.LANDLORD, SIGNATURE_IMAGE, "X")
        assert result.not_found

    def test_clock_reversal_does_not_break_signing(self, owner):
        clock = StepClock()
        store = InspectionStore(clock=clock)
        store.login(owner)
        prop = store.add_property(PropertyCreate(address="1 A St", property_type=PropertyType.HOUSE)).value
        inspection = store.add_inspection(prop.id, InspectionType.MOVE_OUT).value

        clock.now = NOW - timedelta(hours=2)
        result = _sign(store, inspection.id)
        assert result.ok
        assert result.value.created_at == NOW
        assert result.value.completed_at == NOW - timedelta(hours=2)


class TestCheckpoints:
    """Photos, conditions, notes and rooms."""

    def test_set_photo(self, store, inspection, events):
        checkpoint = inspection.checkpoints[1]
        photo = make_photo(uri="/tmp/kitchen.jpg")
        result = store.set_checkpoint_photo(inspection.id, checkpoint.id, PhotoSlot.TENANT, photo)

        assert result.ok
        updated = result.value
        assert updated.tenant_photo == "/tmp/kitchen.jpg"
        assert updated.tenant_photo_data == photo
        assert updated.tenant_photo_timestamp == photo.timestamp
        assert updated.landlord_photo is None
        assert events[-1].payload["slot"] == "tenant"
        assert events[-1].payload["photo_hash"] == "a" * 64

    def test_reingest_keeps_earliest_upload(self, store, inspection):
        checkpoint_id = inspection.checkpoints[0].id
        first = make_photo(upload_date=NOW)
        later = make_photo(upload_date=NOW + timedelta(hours=1))
        store.set_checkpoint_photo(inspection.id, checkpoint_id, PhotoSlot.LANDLORD, first)
        result = store.set_checkpoint_photo(inspection.id, checkpoint_id, PhotoSlot.LANDLORD, later)
        assert result.value.landlord_photo_data.upload_date == NOW

    def test_new_content_takes_new_upload(self, store, inspection):
        checkpoint_id = inspection.checkpoints[0].id
        store.set_checkpoint_photo(inspection.id, checkpoint_id, PhotoSlot.LANDLORD, make_photo())
        replacement = make_photo(photo_hash="b" * 64, upload_date=NOW + timedelta(hours=1))
        result = store.set_checkpoint_photo(inspection.id, checkpoint_id, PhotoSlot.LANDLORD, replacement)
        assert result.value.landlord_photo_data.upload_date == NOW + timedelta(hours=1)

    def test_update_checkpoint_keeps_earliest_upload(self, store, inspection):
        checkpoint_id = inspection.checkpoints[0].id
        current = store.set_checkpoint_photo(
            inspection.id, checkpoint_id, PhotoSlot.LANDLORD, make_photo()
        ).value
        later = make_photo(upload_date=NOW + timedelta(days=1))
        result = store.update_checkpoint(
            inspection.id,
            current.evolve(landlord_photo_data=later, notes="re-shot"),
        )
        assert result.value.notes == "re-shot"
        assert result.value.landlord_photo_data.upload_date == NOW

    def test_condition_and_notes(self, store, inspection):
        checkpoint_id = inspection.checkpoints[0].id
        condition = store.set_checkpoint_condition(
            inspection.id, checkpoint_id, PhotoSlot.LANDLORD, ConditionRating.PASS_ATTENTION
        )
        assert condition.value.landlord_condition == ConditionRating.PASS_ATTENTION
        notes = store.set_checkpoint_notes(inspection.id, checkpoint_id, "Scuff near door")
        assert notes.value.notes == "Scuff near door"
        assert notes.value.landlord_condition == ConditionRating.PASS_ATTENTION

    def test_unknown_checkpoint(self, store, inspection):
        result = store.set_checkpoint_notes(inspection.id, "missing", "x")
        assert result.not_found

    def test_add_checkpoint(self, store, inspection):
        result = store.add_checkpoint(inspection.id, "Kitchen", "Oven")
        assert result.ok
        stored = store.state.find_inspection(inspection.id)[1]
        assert stored.checkpoints[-1].title == "Oven"
        assert not store.add_checkpoint(inspection.id, "Kitchen", "  ").ok

    def test_add_room(self, store, inspection):
        result = store.add_room(inspection.id, "Garage")
        assert result.value.title == "Garage - General"
        duplicate = store.add_room(inspection.id, "Garage")
        assert not duplicate.ok

    def test_rename_room(self, store, inspection):
        store.add_checkpoint(inspection.id, "Kitchen", "Oven")
        result = store.rename_room(inspection.id, "Kitchen", "Kitchenette")
        names = [c.room_name for c in result.value.checkpoints]
        assert "Kitchen" not in names
        assert names.count("Kitchenette") == 2

    def test_rename_to_empty_is_noop(self, store, inspection, events):
        before = len(events)
        result = store.rename_room(inspection.id, "Kitchen", "   ")
        assert result.ok
        assert result.value == inspection
        assert len(events) == before

    def test_delete_room(self, store, inspection):
        store.add_checkpoint(inspection.id, "Kitchen", "Oven")
        result = store.delete_room(inspection.id, "Kitchen")
        assert "Kitchen" not in result.value.room_names()
        assert not store.delete_room(inspection.id, "Kitchen").ok


class TestSession:
    def test_logout_clears_tree(self, store, prop):
        assert store.logout().ok
        assert store.state.user is None
        assert store.state.properties == ()
        assert store.state.is_authenticated is False

    def test_signed_out_is_denied(self):
        store = InspectionStore()
        result = store.add_property(PropertyCreate(address="1 A St", property_type=PropertyType.HOUSE))
        assert not result.ok
        assert result.error_code == "access_denied"
        assert result.error == "Not signed in"

    def test_hydrate_emits_nothing(self, store, events):
        store.hydrate(AppState())
        assert events == []
        assert store.state == AppState()

    def test_failing_listener_does_not_block_commit(self, store, prop):
        def boom(event):
            raise RuntimeError("listener broke")

        store.subscribe(boom)
        result = store.update_property(prop.id, PropertyUpdate(bathrooms=2))
        assert result.ok
        assert store.state.get_property(prop.id).bathrooms == 2

    def test_unsubscribe(self, store, prop):
        received = []
        unsubscribe = store.subscribe(received.append)
        unsubscribe()
        store.update_property(prop.id, PropertyUpdate(bedrooms=4))
        assert received == []


class TestTeam:
    """Team roles gate store operations."""

    @pytest.fixture
    def team_store(self, store, prop):
        assert store.create_team("Acme Rentals").ok
        return store

    def _member_user(self, member) -> User:
        return User(id=member.id, email=member.email, name=member.name)

    def test_creator_is_admin(self, team_store):
        assert team_store.state.user.team_role == TeamRole.ADMIN
        assert team_store.state.team.owner_id == "user-1"
        assert not team_store.create_team("Second").ok

    def test_member_email_unique(self, team_store):
        data = TeamMemberCreate(email="ivy@example.com", name="Ivy", role=TeamRole.INSPECTOR)
        assert team_store.add_team_member(data).ok
        duplicate = team_store.add_team_member(data.evolve(email="IVY@example.com"))
        assert not duplicate.ok

    def test_inspector_with_specific_access(self, team_store, prop):
        other = team_store.add_property(
            PropertyCreate(address="99 Other Rd", property_type=PropertyType.HOUSE)
        ).value
        member = team_store.add_team_member(TeamMemberCreate(
            email="ivy@example.com",
            name="Ivy",
            role=TeamRole.INSPECTOR,
            property_access=PropertyAccess.SPECIFIC,
            assigned_property_ids=(prop.id,),
        )).value

        team_store.login(self._member_user(member))

        assert [p.id for p in team_store.accessible_properties()] == [prop.id]
        assert team_store.add_inspection(prop.id, InspectionType.ROUTINE).ok
        denied = team_store.add_inspection(other.id, InspectionType.ROUTINE)
        assert denied.error_code == "access_denied"
        cannot_manage = team_store.add_property(
            PropertyCreate(address="1 New St", property_type=PropertyType.STUDIO)
        )
        assert cannot_manage.error_code == "access_denied"

    def test_viewer_can_only_read(self, team_store, prop):
        member = team_store.add_team_member(
            TeamMemberCreate(email="vic@example.com", name="Vic", role=TeamRole.VIEWER)
        ).value
        team_store.login(self._member_user(member))
        assert team_store.get_property(prop.id).ok
        assert team_store.add_inspection(prop.id, InspectionType.ROUTINE).error_code == "access_denied"

    def test_update_member_requires_assignment_for_specific(self, team_store):
        member = team_store.add_team_member(
            TeamMemberCreate(email="max@example.com", name="Max", role=TeamRole.MANAGER)
        ).value
        result = team_store.update_team_member(member.id, property_access=PropertyAccess.SPECIFIC)
        assert not result.ok

    def test_remove_member(self, team_store):
        member = team_store.add_team_member(
            TeamMemberCreate(email="max@example.com", name="Max", role=TeamRole.MANAGER)
        ).value
        assert team_store.remove_team_member(member.id).ok
        assert team_store.state.team.members == ()
        assert team_store.remove_team_member(member.id).not_found

    def test_branding(self, team_store):
        result = team_store.update_branding(company_name="  Acme Rentals  ")
        assert result.value.branding.company_name == "Acme Rentals"
        cleared = team_store.update_branding(company_name="")
        assert cleared.value.company_name is None

    def test_branding_requires_team(self, store):
        assert not store.update_branding(company_name="Acme").ok
