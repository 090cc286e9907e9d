"""EXIF timestamp extraction with upload-date fallback.

Capture dates come from DateTimeOriginal, DateTimeDigitized and DateTime, in
that order. Any failure degrades to ``captureDate = None`` with the upload
date populated; nothing here raises to the caller.
"""

import asyncio
import logging
import re
import struct
from datetime import datetime
from typing import Any, Callable, Mapping, Optional, Union

from PIL import Image, UnidentifiedImageError

from propertysnap.core.config import get_settings
from propertysnap.schemas.base import utcnow
from propertysnap.schemas.photo import PhotoTimestamp
from propertysnap.services.files import DATA_URI_PREFIX, uri_to_path

logger = logging.getLogger(__name__)

EXIF_IFD_POINTER = 0x8769
TAG_DATETIME_ORIGINAL = 0x9003
TAG_DATETIME_DIGITIZED = 0x9004
TAG_DATETIME = 0x0132

# Preference order
DATE_TAGS = (
    (TAG_DATETIME_ORIGINAL, "DateTimeOriginal"),
    (TAG_DATETIME_DIGITIZED, "DateTimeDigitized"),
    (TAG_DATETIME, "DateTime"),
)

UNAVAILABLE_WARNING = "Upload date - original timestamp unavailable"

_EXIF_DATE = re.compile(
    r"^(\d{4})([:-])(\d{2})\2(\d{2})\s+(\d{2}):(\d{2}):(\d{2})$"
)
_ISO_DATE = re.compile(
    r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}(\.\d+)?(Z|[+-]\d{2}:?\d{2})?$"
)

RawExif = Union[bytes, Mapping[Any, Any]]


def parse_exif_date(value: Any) -> Optional[str]:
    """Parse an EXIF date string to ISO-8601.

    Accepts ``YYYY:MM:DD HH:MM:SS``, ``YYYY-MM-DD HH:MM:SS`` and ISO-8601
    values (returned unchanged). Returns ``None`` for anything else,
    including impossible calendar dates. Never raises.
    """
    if isinstance(value, bytes):
        value = value.decode("ascii", errors="ignore")
    if not isinstance(value, str):
        return None
    text = value.strip().strip("\x00").strip()
    if not text:
        return None

    if "T" in text:
        if not _ISO_DATE.match(text):
            return None
        try:
            datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            return None
        return text

    match = _EXIF_DATE.match(text)
    if not match:
        return None
    year, _, month, day, hour, minute, second = match.groups()
    try:
        parsed = datetime(
            int(year), int(month), int(day), int(hour), int(minute), int(second)
        )
    except ValueError:
        return None
    return parsed.strftime("%Y-%m-%dT%H:%M:%S")


def _tags_from_exif(exif: Image.Exif) -> dict[Any, Any]:
    tags: dict[Any, Any] = dict(exif)
    try:
        tags.update(exif.get_ifd(EXIF_IFD_POINTER))
    except (KeyError, ValueError, TypeError):
        pass
    return tags


def _tags_from_bytes(raw: bytes) -> dict[Any, Any]:
    exif = Image.Exif()
    exif.load(raw)
    return _tags_from_exif(exif)


def _tags_from_file(uri: str) -> dict[Any, Any]:
    with Image.open(uri_to_path(uri)) as img:
        return _tags_from_exif(img.getexif())


def capture_date_from_tags(tags: Mapping[Any, Any]) -> Optional[str]:
    """First parseable date among the date tags, by preference."""
    for tag_id, tag_name in DATE_TAGS:
        for key in (tag_id, tag_name):
            if key in tags:
                parsed = parse_exif_date(tags[key])
                if parsed:
                    return parsed
    return None


def read_capture_date(photo_uri: Optional[str], raw_exif: Optional[RawExif] = None) -> Optional[str]:
    """Blocking EXIF read. Prefer ``raw_exif``; fall back to the file."""
    try:
        if isinstance(raw_exif, Mapping):
            return capture_date_from_tags(raw_exif)
        if raw_exif:
            return capture_date_from_tags(_tags_from_bytes(bytes(raw_exif)))
        if photo_uri and not photo_uri.startswith(DATA_URI_PREFIX):
            return capture_date_from_tags(_tags_from_file(photo_uri))
    except (OSError, UnidentifiedImageError, SyntaxError, ValueError, KeyError, TypeError, struct.error) as e:
        logger.info("EXIF unavailable for %s: %s", photo_uri, e)
    return None


async def extract_timestamp(
    photo_uri: Optional[str],
    raw_exif: Optional[RawExif] = None,
    *,
    timeout: Optional[float] = None,
    clock: Callable[[], datetime] = utcnow,
) -> PhotoTimestamp:
    """Capture date from EXIF with the upload date always populated."""
    upload_date = clock()
    if timeout is None:
        timeout = get_settings().exif_timeout_s

    try:
        capture_date = await asyncio.wait_for(
            asyncio.to_thread(read_capture_date, photo_uri, raw_exif),
            timeout,
        )
    except asyncio.TimeoutError:
        logger.info("EXIF read timed out after %.2fs for %s", timeout, photo_uri)
        capture_date = None

    if capture_date is None:
        logger.info("No EXIF capture date for %s; using upload date", photo_uri)

    return PhotoTimestamp(
        capture_date=capture_date,
        is_exif_available=capture_date is not None,
        upload_date=upload_date,
    )
