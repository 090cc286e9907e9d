"""Local file access for photo and signature URIs."""

import asyncio
import base64
import hashlib
from pathlib import Path
from typing import Optional
from urllib.parse import unquote, urlparse

DATA_URI_PREFIX = "data:"


def uri_to_path(uri: str) -> Path:
    """Resolve a ``file://`` URI or a plain filesystem path."""
    if uri.startswith("file://"):
        return Path(unquote(urlparse(uri).path))
    return Path(uri)


def mime_type_for(uri: str) -> str:
    """``image/png`` for .png files, ``image/jpeg`` for everything else."""
    suffix = uri_to_path(uri).suffix.lower() if not uri.startswith(DATA_URI_PREFIX) else ""
    if suffix == ".png":
        return "image/png"
    return "image/jpeg"


def _read(uri: str) -> bytes:
    if uri.startswith(DATA_URI_PREFIX):
        _, _, payload = uri.partition(",")
        return base64.b64decode(payload)
    return uri_to_path(uri).read_bytes()


async def read_bytes(uri: str) -> bytes:
    """Read the full byte stream behind ``uri`` off the event loop."""
    return await asyncio.to_thread(_read, uri)


def compute_file_hash(content: bytes) -> str:
    """SHA-256 hex digest of file content."""
    return hashlib.sha256(content).hexdigest()


def _hash_file(uri: str, chunk_size: int = 1024 * 1024) -> str:
    if uri.startswith(DATA_URI_PREFIX):
        return compute_file_hash(_read(uri))
    digest = hashlib.sha256()
    with uri_to_path(uri).open("rb") as fh:
        for chunk in iter(lambda: fh.read(chunk_size), b""):
            digest.update(chunk)
    return digest.hexdigest()


async def hash_file(uri: str) -> str:
    """SHA-256 over the full content of the file at ``uri``."""
    return await asyncio.to_thread(_hash_file, uri)


async def to_data_uri(uri: str, mime_type: Optional[str] = None) -> str:
    """Transcode the file at ``uri`` to a base64 data URI."""
    if uri.startswith(DATA_URI_PREFIX):
        return uri
    content = await read_bytes(uri)
    encoded = base64.b64encode(content).decode("ascii")
    return f"data:{mime_type or mime_type_for(uri)};base64,{encoded}"
