"""Great-circle distance and GPS attestation against a property."""

import math
from typing import Optional

from propertysnap.schemas.photo import DistanceCheck, GpsReading
from propertysnap.schemas.property import Coordinates, Property

EARTH_RADIUS_M = 6371000
DEFAULT_THRESHOLD_M = 100.0


def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Distance in metres between two WGS-84 points."""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = (
        math.sin(d_phi / 2) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_M * c


def format_distance(meters: float) -> str:
    """``"50m"`` below a kilometre, ``"1.2km"`` above."""
    if meters < 1000:
        return f"{round(meters)}m"
    return f"{meters / 1000:.1f}km"


def distance_to_property(
    reading: Optional[GpsReading],
    prop: Optional[Property],
    threshold_m: float = DEFAULT_THRESHOLD_M,
) -> DistanceCheck:
    """Distance between a GPS fix and a property, with a display message."""
    if reading is None:
        return DistanceCheck(message="Photo location not available")

    target = prop.coordinates if prop is not None else None
    if target is None:
        return DistanceCheck(message="Property location not set")

    distance = haversine_distance(
        reading.latitude, reading.longitude, target.latitude, target.longitude
    )
    within = distance <= threshold_m
    shown = format_distance(distance)
    return DistanceCheck(
        distance_m=distance,
        within_threshold=within,
        message=(
            f"Photo taken {shown} from property"
            if within
            else f"Warning: Photo taken {shown} from property"
        ),
    )


def attest_location(
    reading: Optional[GpsReading],
    prop: Optional[Property],
    threshold_m: float = DEFAULT_THRESHOLD_M,
) -> bool:
    """True iff both endpoints are present and within ``threshold_m``."""
    return distance_to_property(reading, prop, threshold_m).within_threshold
