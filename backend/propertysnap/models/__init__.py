"""SQLAlchemy models and enumerations for PropertySnap."""

from propertysnap.models.kv_entry import KVEntry

__all__ = [
    "KVEntry",
]
