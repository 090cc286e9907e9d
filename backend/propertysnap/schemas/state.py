"""Persisted application state tree."""

from typing import Iterator, Optional

from propertysnap.schemas.base import BaseSchema
from propertysnap.schemas.inspection import Inspection
from propertysnap.schemas.property import Property
from propertysnap.schemas.team import Team, User


class AppState(BaseSchema):
    """The document stored under ``@propertysnap_state``."""

    is_onboarded: bool = False
    is_authenticated: bool = False
    user: Optional[User] = None
    properties: tuple[Property, ...] = ()
    team: Optional[Team] = None

    def get_property(self, property_id: str) -> Optional[Property]:
        for prop in self.properties:
            if prop.id == property_id:
                return prop
        return None

    def iter_inspections(self) -> Iterator[tuple[Property, Inspection]]:
        for prop in self.properties:
            for inspection in prop.inspections:
                yield prop, inspection

    def find_inspection(self, inspection_id: str) -> Optional[tuple[Property, Inspection]]:
        for prop, inspection in self.iter_inspections():
            if inspection.id == inspection_id:
                return prop, inspection
        return None
