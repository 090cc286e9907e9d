"""Identifier and default-structure factories."""

import secrets
import time

from propertysnap.schemas.inspection import Checkpoint

_ALPHABET = "0123456789abcdefghijklmnopqrstuvwxyz"

DEFAULT_ROOMS = (
    "Living Room",
    "Kitchen",
    "Bathroom",
    "Bedroom 1",
    "Bedroom 2",
    "Laundry",
    "Outdoor Areas",
)


def _base36(value: int, width: int = 0) -> str:
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_ALPHABET[rem])
    text = "".join(reversed(digits)) or "0"
    return text.rjust(width, "0")


_last_ms = 0


def generate_id() -> str:
    """Time-prefixed identifier.

    The prefix is the base-36 millisecond clock, zero-padded so that
    lexicographic order of ids follows creation order; the prefix never
    goes backwards within a process.
    """
    global _last_ms
    now_ms = max(time.time_ns() // 1_000_000, _last_ms + 1)
    _last_ms = now_ms
    suffix = "".join(secrets.choice(_ALPHABET) for _ in range(10))
    return _base36(now_ms, 9) + suffix


def default_rooms() -> list[str]:
    return list(DEFAULT_ROOMS)


def new_checkpoint(room_name: str, title: str) -> Checkpoint:
    return Checkpoint(id=generate_id(), room_name=room_name, title=title)


def create_default_checkpoints(rooms: list[str]) -> list[Checkpoint]:
    """One "General" checkpoint per room."""
    return [new_checkpoint(room, f"{room} - General") for room in rooms]
