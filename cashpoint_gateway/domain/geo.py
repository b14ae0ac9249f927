"""Great-circle distance for agent ranking"""

import math

EARTH_RADIUS_KM = 6371.0


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Compute distance between two coordinates using the Haversine formula."""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def bounding_box(lat: float, lon: float, radius_km: float) -> tuple[float, float, list[tuple[float, float]]]:
    """
    Lat/lon box enclosing a circle of radius_km, used as a cheap SQL prefilter.

    Returns: (min_lat, max_lat, lon_ranges). The longitude span is split in two
    when it crosses the antimeridian, and widened to the full range near the
    poles where the cosine collapses.
    """
    d_lat = math.degrees(radius_km / EARTH_RADIUS_KM)
    cos_lat = math.cos(math.radians(lat))
    if cos_lat < 1e-6:
        return lat - d_lat, lat + d_lat, [(-180.0, 180.0)]
    d_lon = math.degrees(radius_km / (EARTH_RADIUS_KM * cos_lat))
    if d_lon >= 180.0:
        return lat - d_lat, lat + d_lat, [(-180.0, 180.0)]

    min_lon, max_lon = lon - d_lon, lon + d_lon
    if min_lon < -180.0:
        return lat - d_lat, lat + d_lat, [(min_lon + 360.0, 180.0), (-180.0, max_lon)]
    if max_lon > 180.0:
        return lat - d_lat, lat + d_lat, [(min_lon, 180.0), (-180.0, max_lon - 360.0)]
    return lat - d_lat, lat + d_lat, [(min_lon, max_lon)]
