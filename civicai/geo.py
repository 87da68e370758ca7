import math

from .schemas import GeoLocation

EARTH_RADIUS_KM = 6371.0


def _to_radians(degrees: float) -> float:
    return degrees * (math.pi / 180)


def distance_km(a: GeoLocation, b: GeoLocation) -> float:
    """Great-circle distance between two points in kilometres (haversine)."""
    dlat = _to_radians(b.lat - a.lat)
    dlon = _to_radians(b.lng - a.lng)
    h = (math.sin(dlat / 2) ** 2 +
         math.cos(_to_radians(a.lat)) * math.cos(_to_radians(b.lat)) *
         math.sin(dlon / 2) ** 2)
    c = 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))
    return EARTH_RADIUS_KM * c


def is_within_radius(center: GeoLocation, point: GeoLocation, radius_km: float) -> bool:
    return distance_km(center, point) <= radius_km


def format_coordinates(geo: GeoLocation) -> str:
    return f"{geo.lat:.6f}, {geo.lng:.6f}"


def is_in_geofence(current: GeoLocation, target: GeoLocation, radius_meters: float = 100) -> bool:
    return distance_km(current, target) <= radius_meters / 1000
