"""Pytest configuration and fixtures for PropertySnap tests."""

import asyncio
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import pytest
import pytest_asyncio
from PIL import Image

from propertysnap.core.config import Settings
from propertysnap.core.database import build_engine, build_session_factory, init_models
from propertysnap.core.exceptions import CollaboratorError
from propertysnap.models.enums import (
    PropertyType,
    VerificationMethod,
)
from propertysnap.schemas.notification import NotificationRequest
from propertysnap.schemas.photo import CaptureRequest, CaptureResult, GpsReading, VerifiedPhotoData
from propertysnap.schemas.property import PropertyCreate
from propertysnap.schemas.report import RenderedFile, RenderOptions
from propertysnap.schemas.team import User
from propertysnap.services.interfaces import (
    CaptureSource,
    KeyValueStore,
    NotificationSink,
    PdfRenderer,
    ShareSink,
)
from propertysnap.services.persistence import MemoryKeyValueStore
from propertysnap.services.store import InspectionStore

NOW = datetime(2024, 3, 15, 12, 0, 0, tzinfo=timezone.utc)

PROPERTY_ADDRESS = "12 High St"
PROPERTY_LAT = -37.8136
PROPERTY_LON = 144.9631
NEARBY_GPS = GpsReading(latitude=-37.8137, longitude=144.9632, accuracy=5.0)

SIGNATURE_IMAGE = "data:image/png;base64,iVBORw0KGgo="


def frozen_clock() -> datetime:
    return NOW


class FakeNotificationSink(NotificationSink):
    """Records scheduled and cancelled notifications."""

    def __init__(self, fail: bool = False):
        self.requests: list[NotificationRequest] = []
        self.ids: list[str] = []
        self.cancelled: list[str] = []
        self.fail = fail

    async def schedule(self, request: NotificationRequest) -> str:
        if self.fail:
            raise RuntimeError("notification service unavailable")
        notification_id = f"notif-{len(self.requests) + 1}"
        self.requests.append(request)
        self.ids.append(notification_id)
        return notification_id

    async def cancel(self, notification_id: str) -> None:
        self.cancelled.append(notification_id)


class YieldingNotificationSink(FakeNotificationSink):
    """Gives up the event loop inside every call, like a real platform service."""

    async def schedule(self, request: NotificationRequest) -> str:
        notification_id = await super().schedule(request)
        await asyncio.sleep(0)
        return notification_id

    async def cancel(self, notification_id: str) -> None:
        await asyncio.sleep(0)
        await super().cancel(notification_id)


class FailingKeyValueStore(KeyValueStore):
    """Delegates to ``inner`` but fails writes to the keys in ``failing``."""

    def __init__(self, inner: KeyValueStore, *failing: str):
        self.inner = inner
        self.failing = set(failing)

    async def get(self, key: str) -> Optional[bytes]:
        return await self.inner.get(key)

    async def put(self, key: str, value: bytes) -> None:
        if key in self.failing:
            raise CollaboratorError(f"Failed to write {key}: disk full")
        await self.inner.put(key, value)

    async def delete(self, key: str) -> None:
        await self.inner.delete(key)


class FakeRenderer(PdfRenderer):
    """Writes a stub PDF per render into a scratch directory."""

    def __init__(self, directory: Path, fail: bool = False):
        self.directory = directory
        self.directory.mkdir(parents=True, exist_ok=True)
        self.rendered: list[str] = []
        self.fail = fail

    async def render_html_to_file(self, html: str, options: RenderOptions) -> RenderedFile:
        if self.fail:
            raise RuntimeError("renderer crashed")
        self.rendered.append(html)
        path = self.directory / f"render-{len(self.rendered)}.pdf"
        path.write_bytes(b"%PDF-1.4\n% stub\n")
        return RenderedFile(uri=str(path))


class FakeShareSink(ShareSink):
    def __init__(self):
        self.shared: list[tuple[str, str, str]] = []
        self.printed: list[str] = []

    async def share(self, uri: str, mime_type: str, dialog_title: str) -> None:
        self.shared.append((uri, mime_type, dialog_title))

    async def print_html(self, html: str) -> None:
        self.printed.append(html)


class FakeCaptureSource(CaptureSource):
    """Returns a canned capture result; ``None`` simulates a cancelled capture."""

    def __init__(
        self,
        result: Optional[CaptureResult],
        gps: Optional[GpsReading] = None,
        gps_delay: float = 0.0,
    ):
        self.result = result
        self.gps = gps
        self.gps_delay = gps_delay
        self.requests: list[CaptureRequest] = []

    async def capture_verified(self, request: CaptureRequest) -> Optional[CaptureResult]:
        self.requests.append(request)
        return self.result

    async def read_gps(self) -> Optional[GpsReading]:
        if self.gps_delay:
            await asyncio.sleep(self.gps_delay)
        return self.gps


def write_jpeg(path: Path, color=(200, 120, 40), exif_datetime: Optional[str] = None) -> Path:
    """Write a small JPEG, optionally carrying an EXIF DateTime tag."""
    image = Image.new("RGB", (16, 16), color=color)
    if exif_datetime is not None:
        exif = Image.Exif()
        exif[0x0132] = exif_datetime
        image.save(path, format="JPEG", exif=exif)
    else:
        image.save(path, format="JPEG")
    return path


def make_photo(
    uri: str = "/tmp/photo.jpg",
    photo_hash: str = "a" * 64,
    upload_date: datetime = NOW,
    method: VerificationMethod = VerificationMethod.CAMERA_CAPTURE,
    **kwargs,
) -> VerifiedPhotoData:
    return VerifiedPhotoData(
        uri=uri,
        photo_hash=photo_hash,
        upload_date=upload_date,
        verification_method=method,
        **kwargs,
    )


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        report_output_dir=str(tmp_path / "reports"),
        persist_debounce_ms=10,
        report_timezone="UTC",
        gps_timeout_s=0.05,
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
    )


@pytest.fixture
def kv() -> MemoryKeyValueStore:
    return MemoryKeyValueStore()


@pytest.fixture
def notification_sink() -> FakeNotificationSink:
    return FakeNotificationSink()


@pytest.fixture
def renderer(tmp_path) -> FakeRenderer:
    return FakeRenderer(tmp_path / "render")


@pytest.fixture
def share_sink() -> FakeShareSink:
    return FakeShareSink()


@pytest.fixture
def owner() -> User:
    return User(id="user-1", email="owner@example.com", name="Olivia Owner")


@pytest.fixture
def store(owner) -> InspectionStore:
    store = InspectionStore(clock=frozen_clock)
    assert store.login(owner).ok
    return store


@pytest.fixture
def prop(store):
    result = store.add_property(PropertyCreate(
        address=PROPERTY_ADDRESS,
        property_type=PropertyType.HOUSE,
        bedrooms=2,
        bathrooms=1,
        latitude=PROPERTY_LAT,
        longitude=PROPERTY_LON,
    ))
    assert result.ok
    return result.value


@pytest.fixture
def photo_file(tmp_path) -> Path:
    return write_jpeg(tmp_path / "kitchen.jpg")


@pytest.fixture
def exif_photo_file(tmp_path) -> Path:
    return write_jpeg(tmp_path / "bathroom.jpg", color=(10, 80, 160), exif_datetime="2024:03:15 10:20:30")


@pytest_asyncio.fixture
async def session_factory(settings):
    engine = build_engine(settings.database_url)
    await init_models(engine)
    yield build_session_factory(engine)
    await engine.dispose()
