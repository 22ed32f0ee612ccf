"""Coordinate math: geodesic and grid distances, UTM conversion, bearings.

All distances are in meters, all angles in degrees.
"""

import math
import re
from typing import NamedTuple, Optional

EARTH_RADIUS_M = 6371000

# WGS84 ellipsoid
WGS84_A = 6378137.0
WGS84_F = 1 / 298.257223563
WGS84_E2 = 2 * WGS84_F - WGS84_F * WGS84_F
WGS84_EP2 = WGS84_E2 / (1 - WGS84_E2)

UTM_K0 = 0.9996
UTM_FALSE_EASTING = 500000.0
UTM_FALSE_NORTHING_SOUTH = 10000000.0
UTM_LATITUDE_BANDS = 'CDEFGHJKLMNPQRSTUVWX'

MAX_TARGET_DISTANCE_M = 100000

# German 8-point compass, clockwise from north
COMPASS_DIRECTIONS = (
    ('N', 'Nord'),
    ('NO', 'Nordost'),
    ('O', 'Ost'),
    ('SO', 'Suedost'),
    ('S', 'Sued'),
    ('SW', 'Suedwest'),
    ('W', 'West'),
    ('NW', 'Nordwest'),
)

_ZONE_RE = re.compile(r'^\s*(\d{1,2})\s*([A-Za-z]?)\s*$')


class UtmCoordinate(NamedTuple):
    zone: int
    hemisphere: str  # 'N' or 'S'
    easting: float
    northing: float
    zone_letter: Optional[str] = None


def haversine_distance(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance on a spherical earth."""
    d_lat = math.radians(lat2 - lat1)
    d_lng = math.radians(lng2 - lng1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lng / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_M * c


def planar_distance(e1: float, n1: float, e2: float, n2: float) -> float:
    """Euclidean distance between two grid points of the same UTM zone."""
    return math.hypot(e2 - e1, n2 - n1)


def utm_zone_number(longitude: float) -> int:
    return int(math.floor((longitude + 180) / 6)) + 1


def utm_zone_letter(latitude: float) -> str:
    if latitude < -80:
        return 'A'
    if latitude > 84:
        return 'Z'
    return UTM_LATITUDE_BANDS[min(int(math.floor((latitude + 80) / 8)), len(UTM_LATITUDE_BANDS) - 1)]


def parse_utm_zone(zone: str):
    """Split a zone designator like ``"32U"`` into ``(32, 'N')``.

    Bands N and above lie in the northern hemisphere. A bare number is
    taken as northern.
    """
    match = _ZONE_RE.match(zone or '')
    if not match:
        raise ValueError(f'Invalid UTM zone: {zone!r}')
    number = int(match.group(1))
    if not 1 <= number <= 60:
        raise ValueError(f'Invalid UTM zone: {zone!r}')
    letter = match.group(2).upper()
    hemisphere = 'S' if letter and letter < 'N' else 'N'
    return number, hemisphere


def _central_meridian(zone: int) -> float:
    return (zone - 1) * 6 - 180 + 3


def latlng_to_utm(lat: float, lng: float) -> UtmCoordinate:
    zone = utm_zone_number(lng)
    hemisphere = 'N' if lat >= 0 else 'S'
    lat_rad = math.radians(lat)
    lng_rad = math.radians(lng)
    cm_rad = math.radians(_central_meridian(zone))

    e2 = WGS84_E2
    n = WGS84_A / math.sqrt(1 - e2 * math.sin(lat_rad) ** 2)
    t = math.tan(lat_rad) ** 2
    c = WGS84_EP2 * math.cos(lat_rad) ** 2
    a = math.cos(lat_rad) * (lng_rad - cm_rad)

    m = WGS84_A * (
        (1 - e2 / 4 - 3 * e2 ** 2 / 64 - 5 * e2 ** 3 / 256) * lat_rad
        - (3 * e2 / 8 + 3 * e2 ** 2 / 32 + 45 * e2 ** 3 / 1024) * math.sin(2 * lat_rad)
        + (15 * e2 ** 2 / 256 + 45 * e2 ** 3 / 1024) * math.sin(4 * lat_rad)
        - (35 * e2 ** 3 / 3072) * math.sin(6 * lat_rad)
    )

    easting = UTM_K0 * n * (
        a
        + (1 - t + c) * a ** 3 / 6
        + (5 - 18 * t + t ** 2 + 72 * c - 58 * WGS84_EP2) * a ** 5 / 120
    ) + UTM_FALSE_EASTING

    northing = UTM_K0 * (
        m + n * math.tan(lat_rad) * (
            a ** 2 / 2
            + (5 - t + 9 * c + 4 * c ** 2) * a ** 4 / 24
            + (61 - 58 * t + t ** 2 + 600 * c - 330 * WGS84_EP2) * a ** 6 / 720
        )
    )
    if hemisphere == 'S':
        northing += UTM_FALSE_NORTHING_SOUTH

    return UtmCoordinate(
        zone=zone,
        hemisphere=hemisphere,
        easting=round(easting, 2),
        northing=round(northing, 2),
        zone_letter=utm_zone_letter(lat),
    )


def utm_to_latlng(utm: UtmCoordinate):
    """Inverse of :func:`latlng_to_utm`; returns ``(latitude, longitude)``."""
    x = utm.easting - UTM_FALSE_EASTING
    y = utm.northing
    if utm.hemisphere == 'S':
        y -= UTM_FALSE_NORTHING_SOUTH

    e2 = WGS84_E2
    m = y / UTM_K0
    mu = m / (WGS84_A * (1 - e2 / 4 - 3 * e2 ** 2 / 64 - 5 * e2 ** 3 / 256))
    e1 = (1 - math.sqrt(1 - e2)) / (1 + math.sqrt(1 - e2))

    phi1 = (
        mu
        + (3 * e1 / 2 - 27 * e1 ** 3 / 32) * math.sin(2 * mu)
        + (21 * e1 ** 2 / 16 - 55 * e1 ** 4 / 32) * math.sin(4 * mu)
        + (151 * e1 ** 3 / 96) * math.sin(6 * mu)
        + (1097 * e1 ** 4 / 512) * math.sin(8 * mu)
    )

    n1 = WGS84_A / math.sqrt(1 - e2 * math.sin(phi1) ** 2)
    t1 = math.tan(phi1) ** 2
    c1 = WGS84_EP2 * math.cos(phi1) ** 2
    r1 = WGS84_A * (1 - e2) / (1 - e2 * math.sin(phi1) ** 2) ** 1.5
    d = x / (n1 * UTM_K0)

    lat = phi1 - (n1 * math.tan(phi1) / r1) * (
        d ** 2 / 2
        - (5 + 3 * t1 + 10 * c1 - 4 * c1 ** 2 - 9 * WGS84_EP2) * d ** 4 / 24
        + (61 + 90 * t1 + 298 * c1 + 45 * t1 ** 2 - 252 * WGS84_EP2 - 3 * c1 ** 2) * d ** 6 / 720
    )
    lng = (
        d
        - (1 + 2 * t1 + c1) * d ** 3 / 6
        + (5 - 2 * c1 + 28 * t1 - 3 * c1 ** 2 + 8 * WGS84_EP2 + 24 * t1 ** 2) * d ** 5 / 120
    ) / math.cos(phi1)

    return round(math.degrees(lat), 8), round(math.degrees(lng) + _central_meridian(utm.zone), 8)


def utm_distance(a: UtmCoordinate, b: UtmCoordinate) -> float:
    """Planar distance inside one zone, great-circle distance across zones."""
    if a.zone == b.zone and a.hemisphere == b.hemisphere:
        return planar_distance(a.easting, a.northing, b.easting, b.northing)
    lat1, lng1 = utm_to_latlng(a)
    lat2, lng2 = utm_to_latlng(b)
    return haversine_distance(lat1, lng1, lat2, lng2)


def destination_point(lat: float, lng: float, bearing_degrees: float, distance_meters: float):
    """Point reached from ``(lat, lng)`` heading ``bearing_degrees`` for ``distance_meters``."""
    lat1 = math.radians(lat)
    lng1 = math.radians(lng)
    bearing = math.radians(bearing_degrees)
    angular = distance_meters / EARTH_RADIUS_M

    lat2 = math.asin(
        math.sin(lat1) * math.cos(angular)
        + math.cos(lat1) * math.sin(angular) * math.cos(bearing)
    )
    lng2 = lng1 + math.atan2(
        math.sin(bearing) * math.sin(angular) * math.cos(lat1),
        math.cos(angular) - math.sin(lat1) * math.sin(lat2),
    )
    return math.degrees(lat2), math.degrees(lng2)


def _compass_index(degrees: float) -> int:
    # Shift by half a sector so north is centred on 0
    normalized = degrees % 360
    return int(((normalized + 22.5) % 360) // 45)


def format_bearing(degrees: float) -> str:
    return COMPASS_DIRECTIONS[_compass_index(degrees)][0]


def format_bearing_full(degrees: float) -> str:
    return COMPASS_DIRECTIONS[_compass_index(degrees)][1]


def format_distance(meters: float) -> str:
    if meters < 1000:
        return f'{round(meters)}m'
    return f'{meters / 1000:.1f}km'


def is_valid_bearing(degrees: float) -> bool:
    return 0 <= degrees < 360


def is_valid_distance(meters: float) -> bool:
    return 0 < meters < MAX_TARGET_DISTANCE_M
