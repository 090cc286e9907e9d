"""Contracts for the external collaborators the engine depends on."""

from abc import ABC, abstractmethod
from typing import Optional

from propertysnap.schemas.notification import NotificationRequest
from propertysnap.schemas.photo import CaptureRequest, CaptureResult, GpsReading
from propertysnap.schemas.property import Coordinates
from propertysnap.schemas.report import RenderedFile, RenderOptions


class KeyValueStore(ABC):
    """Abstract interface for the persistent key-value store."""

    @abstractmethod
    async def get(self, key: str) -> Optional[bytes]:
        """Return the blob under ``key`` or ``None``."""
        pass

    @abstractmethod
    async def put(self, key: str, value: bytes) -> None:
        """Store ``value`` under ``key``, replacing any previous blob."""
        pass

    @abstractmethod
    async def delete(self, key: str) -> None:
        pass


class CaptureSource(ABC):
    """Abstract interface for the camera/gallery subsystem."""

    @abstractmethod
    async def capture_verified(self, request: CaptureRequest) -> Optional[CaptureResult]:
        """Capture or pick a photo. ``None`` when the user cancelled."""
        pass

    async def read_gps(self) -> Optional[GpsReading]:
        """Current device position, if the source can provide one."""
        return None


class PdfRenderer(ABC):
    """Abstract interface for the HTML-to-PDF renderer.

    Implementations must honour ``@page`` size/margin directives and CSS page
    breaks.
    """

    @abstractmethod
    async def render_html_to_file(self, html: str, options: RenderOptions) -> RenderedFile:
        pass


class ShareSink(ABC):
    """Abstract interface for the OS share sheet and print subsystem."""

    @abstractmethod
    async def share(self, uri: str, mime_type: str, dialog_title: str) -> None:
        pass

    @abstractmethod
    async def print_html(self, html: str) -> None:
        pass


class NotificationSink(ABC):
    """Abstract interface for the platform notification service."""

    @abstractmethod
    async def schedule(self, request: NotificationRequest) -> str:
        """Schedule (or immediately post) a notification; return its id."""
        pass

    @abstractmethod
    async def cancel(self, notification_id: str) -> None:
        pass


class Geocoder(ABC):
    """Abstract interface for address geocoding."""

    @abstractmethod
    async def geocode(self, address: str) -> Optional[Coordinates]:
        pass
