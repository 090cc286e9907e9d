"""Pydantic schemas for PropertySnap documents and results."""

from propertysnap.schemas.photo import *
from propertysnap.schemas.inspection import *
from propertysnap.schemas.property import *
from propertysnap.schemas.team import *
from propertysnap.schemas.state import *
from propertysnap.schemas.notification import *
from propertysnap.schemas.report import *
from propertysnap.schemas.results import *
