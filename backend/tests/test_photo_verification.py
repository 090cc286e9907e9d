"""Tests for PhotoVerificationService."""

import hashlib

import pytest

from conftest import NEARBY_GPS, NOW, frozen_clock, make_photo, write_jpeg
from propertysnap.core.exceptions import IntegrityDegradation
from propertysnap.models.enums import CompositionGuide, PropertyType, VerificationMethod, VerificationTier
from propertysnap.schemas.photo import GpsReading, PhotoTimestamp
from propertysnap.schemas.property import PropertyCreate
from propertysnap.services.photo_verification import (
    PhotoVerificationService,
    timestamp_display,
    verification_status_text,
)


@pytest.fixture
def verifier(settings) -> PhotoVerificationService:
    return PhotoVerificationService(settings, clock=frozen_clock)


class TestCreateVerified:
    """End-to-end envelope creation."""

    async def test_verified_move_in_photo(self, verifier, prop, photo_file):
        """Camera capture with EXIF and nearby GPS is Verified + GPS."""
        result = await verifier.create_verified(
            str(photo_file),
            VerificationMethod.CAMERA_CAPTURE,
            gps=NEARBY_GPS,
            prop=prop,
            raw_exif={"DateTimeOriginal": "2024:03:15 10:20:30"},
        )

        assert result.success
        photo = result.photo
        assert photo.capture_date == "2024-03-15T10:20:30"
        assert photo.is_exif_available is True
        assert photo.location_verified is True
        assert photo.tier == VerificationTier.VERIFIED_GPS
        assert 10 < photo.distance_m < 20
        assert photo.clock_skew_suspected is False

    async def test_gallery_import_degrades_tier(self, verifier, prop, photo_file):
        result = await verifier.create_verified(
            str(photo_file), VerificationMethod.GALLERY_IMPORT, prop=prop
        )

        assert result.success
        photo = result.photo
        assert photo.is_exif_available is False
        assert photo.location_verified is False
        assert photo.tier == VerificationTier.UNVERIFIED
        assert photo.upload_date == NOW

    async def test_hash_covers_file_bytes(self, verifier, photo_file):
        result = await verifier.create_verified(str(photo_file), VerificationMethod.CAMERA_CAPTURE)
        assert result.photo.photo_hash == hashlib.sha256(photo_file.read_bytes()).hexdigest()

    async def test_unreadable_photo_is_rejected(self, verifier, tmp_path):
        result = await verifier.create_verified(
            str(tmp_path / "gone.jpg"), VerificationMethod.CAMERA_CAPTURE
        )
        assert result.success is False
        assert result.photo is None
        assert "Unable to hash" in result.error

    async def test_far_away_gps_not_verified(self, verifier, prop, photo_file):
        far = GpsReading(latitude=-37.9, longitude=144.9631)
        result = await verifier.create_verified(
            str(photo_file), VerificationMethod.CAMERA_CAPTURE, gps=far, prop=prop
        )
        assert result.photo.location_verified is False
        assert result.photo.distance_m > 100
        assert result.photo.tier == VerificationTier.VERIFIED

    async def test_property_without_coordinates(self, verifier, store, photo_file):
        bare = store.add_property(PropertyCreate(address="1 Nowhere Rd", property_type=PropertyType.STUDIO)).value
        result = await verifier.create_verified(
            str(photo_file), VerificationMethod.CAMERA_CAPTURE, gps=NEARBY_GPS, prop=bare
        )
        assert result.photo.location_verified is False
        assert result.photo.distance_m is None

    async def test_future_capture_date_flags_clock_skew(self, verifier, photo_file):
        result = await verifier.create_verified(
            str(photo_file),
            VerificationMethod.CAMERA_CAPTURE,
            raw_exif={"DateTimeOriginal": "2024:03:16 10:00:00"},
        )
        assert result.photo.clock_skew_suspected is True
        assert result.photo.tier == VerificationTier.VERIFIED

    async def test_composition_guide_recorded(self, verifier, photo_file):
        result = await verifier.create_verified(
            str(photo_file), VerificationMethod.CAMERA_CAPTURE, composition_guide=CompositionGuide.CORNER
        )
        assert result.photo.composition_guide == CompositionGuide.CORNER


class TestDegradations:
    """Tier-lowering problems are reported alongside the photo."""

    async def test_full_evidence_has_none(self, verifier, prop, photo_file):
        result = await verifier.create_verified(
            str(photo_file),
            VerificationMethod.CAMERA_CAPTURE,
            gps=NEARBY_GPS,
            prop=prop,
            raw_exif={"DateTimeOriginal": "2024:03:15 10:20:30"},
        )
        assert result.degradations == ()

    async def test_missing_exif_and_gps(self, verifier, prop, photo_file):
        result = await verifier.create_verified(str(photo_file), VerificationMethod.CAMERA_CAPTURE, prop=prop)

        assert result.success
        assert [d.code for d in result.degradations] == ["exif_unavailable", "location_unverified"]
        assert all(isinstance(d, IntegrityDegradation) for d in result.degradations)
        assert result.degradations[1].message == "Photo location not available"

    async def test_far_away_gps(self, verifier, prop, photo_file):
        far = GpsReading(latitude=-37.9, longitude=144.9631)
        result = await verifier.create_verified(
            str(photo_file),
            VerificationMethod.CAMERA_CAPTURE,
            gps=far,
            prop=prop,
            raw_exif={"DateTimeOriginal": "2024:03:15 10:20:30"},
        )
        (degradation,) = result.degradations
        assert degradation.code == "location_unverified"
        assert degradation.message.startswith("Warning: Photo taken")

    async def test_clock_skew(self, verifier, prop, photo_file):
        result = await verifier.create_verified(
            str(photo_file),
            VerificationMethod.CAMERA_CAPTURE,
            gps=NEARBY_GPS,
            prop=prop,
            raw_exif={"DateTimeOriginal": "2024:03:16 10:00:00"},
        )
        assert [d.code for d in result.degradations] == ["clock_skew"]

    async def test_rejected_photo_has_none(self, verifier, tmp_path):
        result = await verifier.create_verified(str(tmp_path / "gone.jpg"), VerificationMethod.CAMERA_CAPTURE)
        assert result.success is False
        assert result.degradations == ()


class TestHashStability:
    """The digest is a function of the bytes only."""

    async def test_identical_bytes_identical_digest(self, verifier, tmp_path, photo_file):
        copy = tmp_path / "copy.jpg"
        copy.write_bytes(photo_file.read_bytes())
        assert await verifier.hash(str(photo_file)) == await verifier.hash(str(copy))

    async def test_single_byte_change(self, verifier, tmp_path, photo_file):
        content = bytearray(photo_file.read_bytes())
        content[-3] ^= 0xFF
        changed = tmp_path / "changed.jpg"
        changed.write_bytes(bytes(content))
        assert await verifier.hash(str(photo_file)) != await verifier.hash(str(changed))

    async def test_uri_does_not_matter(self, verifier, photo_file):
        assert await verifier.hash(str(photo_file)) == await verifier.hash(photo_file.as_uri())


class TestVerifyIntegrity:
    async def test_untouched(self, verifier, photo_file):
        original = await verifier.hash(str(photo_file))
        result = await verifier.verify_integrity(str(photo_file), original)
        assert result.is_valid
        assert result.tamper_detected is False
        assert result.message == "Photo integrity verified"

    async def test_modified(self, verifier, tmp_path, photo_file):
        original = await verifier.hash(str(photo_file))
        write_jpeg(photo_file, color=(1, 2, 3))
        result = await verifier.verify_integrity(str(photo_file), original)
        assert result.is_valid is False
        assert result.tamper_detected is True
        assert result.message == "Warning: Photo may have been modified"

    async def test_no_original_hash(self, verifier, photo_file):
        result = await verifier.verify_integrity(str(photo_file), None)
        assert result.is_valid is False
        assert result.tamper_detected is False
        assert result.message == "No original hash available"

    async def test_missing_file(self, verifier, tmp_path):
        result = await verifier.verify_integrity(str(tmp_path / "gone.jpg"), "b" * 64)
        assert result.is_valid is False
        assert result.message == "Unable to verify photo integrity"


class TestTierMonotonicity:
    """GPS only raises tier; losing EXIF only lowers it."""

    def test_adding_gps_raises(self):
        without = make_photo()
        with_gps = make_photo(gps_coordinates=NEARBY_GPS, location_verified=True)
        assert with_gps.tier.rank >= without.tier.rank
        assert with_gps.tier == VerificationTier.VERIFIED_GPS

    def test_stripping_exif_lowers(self):
        with_exif = make_photo(
            method=VerificationMethod.GALLERY_IMPORT,
            capture_date="2024-01-01T00:00:00",
            is_exif_available=True,
        )
        without = make_photo(method=VerificationMethod.GALLERY_IMPORT)
        assert with_exif.tier == VerificationTier.VERIFIED
        assert without.tier == VerificationTier.UNVERIFIED

    def test_location_requires_gps(self):
        with pytest.raises(ValueError):
            make_photo(location_verified=True)


class TestDisplayHelpers:
    def test_captured_text(self):
        display = timestamp_display(PhotoTimestamp(
            capture_date="2024-03-15T10:20:30", is_exif_available=True, upload_date=NOW
        ))
        assert display.date_text == "Captured: 15 Mar 2024, 10:20"
        assert display.is_verified
        assert display.warning_text is None

    def test_uploaded_text(self):
        display = timestamp_display(PhotoTimestamp(upload_date=NOW))
        assert display.date_text == "Uploaded: 15 Mar 2024, 12:00"
        assert display.warning_text == "Upload date - original timestamp unavailable"

    def test_status_text(self):
        assert verification_status_text(make_photo()) == "Verified - Captured in app"
        assert (
            verification_status_text(make_photo(method=VerificationMethod.GALLERY_IMPORT))
            == "Unverified - Imported from gallery"
        )
        assert verification_status_text(make_photo(method=VerificationMethod.UNKNOWN)) == "Unverified"
