"""Base schema utilities."""

from datetime import datetime, timezone
from typing import Annotated, Any

from pydantic import AfterValidator, BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _assume_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# Persisted documents from older builds carry naive ISO strings
UtcDatetime = Annotated[datetime, AfterValidator(_assume_utc)]


class BaseSchema(BaseModel):
    """Base schema with common configuration.

    Domain records are immutable snapshots; the store produces new values
    with :meth:`evolve` instead of mutating in place. Documents are read and
    written with camelCase keys.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
        frozen=True,
        extra="ignore",
    )

    def evolve(self, **changes: Any):
        """Return a validated copy with ``changes`` applied."""
        data = dict(self)
        data.update(changes)
        return type(self).model_validate(data)

    def to_document(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)
