"""Conversions between WGS84 latitude/longitude and UTM coordinates."""

from __future__ import annotations

import math
import re
from dataclasses import dataclass

__all__ = ["UTMPoint", "GeoPoint", "utm", "utm_letter_designator", "ll_to_utm", "utm_to_ll"]

RADIANS_PER_DEGREE = math.pi / 180.0
DEGREES_PER_RADIAN = 180.0 / math.pi

GRID_SIZE = 100000.0

WGS84_A = 6378137.0
WGS84_B = 6356752.31424518
WGS84_F = 0.0033528107
WGS84_E = 0.0818191908
WGS84_EP = 0.0820944379

UTM_K0 = 0.9996
UTM_FE = 500000.0
UTM_FN_N = 0.0
UTM_FN_S = 10000000.0
UTM_E2 = WGS84_E * WGS84_E
UTM_E4 = UTM_E2 * UTM_E2
UTM_E6 = UTM_E4 * UTM_E2
UTM_EP2 = UTM_E2 / (1 - UTM_E2)

_ZONE_NUMBER = re.compile(r"\s*(\d+)")

_LETTER_BANDS = (
    (72, "X"), (64, "W"), (56, "V"), (48, "U"), (40, "T"), (32, "S"), (24, "R"),
    (16, "Q"), (8, "P"), (0, "N"), (-8, "M"), (-16, "L"), (-24, "K"), (-32, "J"),
    (-40, "H"), (-48, "G"), (-56, "F"), (-64, "E"), (-72, "D"), (-80, "C"),
)


@dataclass(frozen=True)
class UTMPoint:
    """A UTM position with its zone and meridian convergence (degrees)."""

    northing: float
    easting: float
    zone: str
    gamma: float


@dataclass(frozen=True)
class GeoPoint:
    """A geodetic position in degrees with meridian convergence (degrees)."""

    latitude: float
    longitude: float
    gamma: float


def utm(lat: float, lon: float) -> tuple[float, float]:
    """Convert latitude/longitude in degrees to UTM (easting, northing) in meters."""
    m0 = 1 - UTM_E2 / 4 - 3 * UTM_E4 / 64 - 5 * UTM_E6 / 256
    m1 = -(3 * UTM_E2 / 8 + 3 * UTM_E4 / 32 + 45 * UTM_E6 / 1024)
    m2 = 15 * UTM_E4 / 256 + 45 * UTM_E6 / 1024
    m3 = -(35 * UTM_E6 / 3072)

    whole = int(lon)
    remainder = int(math.fmod(whole, 6))
    cm = whole - remainder + 3 if lon >= 0.0 else whole - remainder - 3

    rlat = lat * RADIANS_PER_DEGREE
    rlon = lon * RADIANS_PER_DEGREE
    rlon0 = cm * RADIANS_PER_DEGREE

    slat = math.sin(rlat)
    clat = math.cos(rlat)
    tlat = math.tan(rlat)

    fn = UTM_FN_N if lat > 0 else UTM_FN_S

    t = tlat * tlat
    c = UTM_EP2 * clat * clat
    a = (rlon - rlon0) * clat
    m = WGS84_A * (
        m0 * rlat + m1 * math.sin(2 * rlat) + m2 * math.sin(4 * rlat) + m3 * math.sin(6 * rlat)
    )
    v = WGS84_A / math.sqrt(1 - UTM_E2 * slat * slat)

    x = UTM_FE + UTM_K0 * v * (
        a
        + (1 - t + c) * a**3 / 6
        + (5 - 18 * t + t * t + 72 * c - 58 * UTM_EP2) * a**5 / 120
    )
    y = fn + UTM_K0 * (
        m
        + v
        * tlat
        * (
            a * a / 2
            + (5 - t + 9 * c + 4 * c * c) * a**4 / 24
            + (61 - 58 * t + t * t + 600 * c - 330 * UTM_EP2) * a**6 / 720
        )
    )
    return x, y


def utm_letter_designator(lat: float) -> str:
    """UTM latitude band letter, or 'Z' outside the 80S..84N limits."""
    if 84 >= lat >= 72:
        return "X"
    for lower, letter in _LETTER_BANDS[1:]:
        if lower + 8 > lat >= lower:
            return letter
    return "Z"


def ll_to_utm(lat: float, lon: float) -> UTMPoint:
    """Convert latitude/longitude in degrees to a UTM point (USGS Bulletin 1532)."""
    a = WGS84_A
    ecc_squared = UTM_E2
    k0 = UTM_K0

    long_temp = (lon + 180) - int((lon + 180) / 360) * 360 - 180
    lat_rad = lat * RADIANS_PER_DEGREE
    long_rad = long_temp * RADIANS_PER_DEGREE

    zone_number = int((long_temp + 180) / 6) + 1
    if 56.0 <= lat < 64.0 and 3.0 <= long_temp < 12.0:
        zone_number = 32

    if 72.0 <= lat < 84.0:
        if 0.0 <= long_temp < 9.0:
            zone_number = 31
        elif 9.0 <= long_temp < 21.0:
            zone_number = 33
        elif 21.0 <= long_temp < 33.0:
            zone_number = 35
        elif 33.0 <= long_temp < 42.0:
            zone_number = 37

    long_origin = (zone_number - 1) * 6 - 180 + 3
    long_origin_rad = long_origin * RADIANS_PER_DEGREE

    zone = f"{zone_number & 0x3F}{utm_letter_designator(lat)}"[:3]

    ecc_prime_squared = ecc_squared / (1 - ecc_squared)
    sin_lat = math.sin(lat_rad)
    n = a / math.sqrt(1 - ecc_squared * sin_lat * sin_lat)
    t = math.tan(lat_rad) ** 2
    c = ecc_prime_squared * math.cos(lat_rad) ** 2
    aa = math.cos(lat_rad) * (long_rad - long_origin_rad)

    e2 = ecc_squared
    m = a * (
        (1 - e2 / 4 - 3 * e2 * e2 / 64 - 5 * e2 * e2 * e2 / 256) * lat_rad
        - (3 * e2 / 8 + 3 * e2 * e2 / 32 + 45 * e2 * e2 * e2 / 1024) * math.sin(2 * lat_rad)
        + (15 * e2 * e2 / 256 + 45 * e2 * e2 * e2 / 1024) * math.sin(4 * lat_rad)
        - (35 * e2 * e2 * e2 / 3072) * math.sin(6 * lat_rad)
    )

    easting = (
        k0
        * n
        * (
            aa
            + (1 - t + c) * aa**3 / 6
            + (5 - 18 * t + t * t + 72 * c - 58 * ecc_prime_squared) * aa**5 / 120
        )
        + 500000.0
    )
    northing = k0 * (
        m
        + n
        * math.tan(lat_rad)
        * (
            aa * aa / 2
            + (5 - t + 9 * c + 4 * c * c) * aa**4 / 24
            + (61 - 58 * t + t * t + 600 * c - 330 * ecc_prime_squared) * aa**6 / 720
        )
    )
    gamma = math.atan(math.tan(long_rad - long_origin_rad) * math.sin(lat_rad)) * DEGREES_PER_RADIAN

    if lat < 0:
        northing += 10000000.0
    return UTMPoint(northing=northing, easting=easting, zone=zone, gamma=gamma)


def _split_zone(zone: str) -> tuple[int, str]:
    match = _ZONE_NUMBER.match(zone)
    if match is None:
        return 0, zone[:1]
    rest = zone[match.end():]
    return int(match.group(1)), rest[:1]


def utm_to_ll(northing: float, easting: float, zone: str) -> GeoPoint:
    """Convert UTM coordinates in a zone such as '52S' to latitude/longitude in degrees."""
    k0 = UTM_K0
    a = WGS84_A
    ecc_squared = UTM_E2
    e1 = (1 - math.sqrt(1 - ecc_squared)) / (1 + math.sqrt(1 - ecc_squared))

    x = easting - 500000.0
    y = northing

    zone_number, zone_letter = _split_zone(zone)
    letter_code = ord(zone_letter) if zone_letter else 0
    if letter_code - ord("N") < 0:
        y -= 10000000.0

    long_origin = (zone_number - 1) * 6 - 180 + 3
    ecc_prime_squared = ecc_squared / (1 - ecc_squared)

    m = y / k0
    mu = m / (
        a * (1 - ecc_squared / 4 - 3 * ecc_squared**2 / 64 - 5 * ecc_squared**3 / 256)
    )
    phi1 = (
        mu
        + (3 * e1 / 2 - 27 * e1**3 / 32) * math.sin(2 * mu)
        + (21 * e1 * e1 / 16 - 55 * e1**4 / 32) * math.sin(4 * mu)
        + (151 * e1**3 / 96) * math.sin(6 * mu)
    )

    sin_phi = math.sin(phi1)
    n1 = a / math.sqrt(1 - ecc_squared * sin_phi * sin_phi)
    t1 = math.tan(phi1) ** 2
    c1 = ecc_prime_squared * math.cos(phi1) ** 2
    r1 = a * (1 - ecc_squared) / (1 - ecc_squared * sin_phi * sin_phi) ** 1.5
    d = x / (n1 * k0)

    lat = phi1 - (n1 * math.tan(phi1) / r1) * (
        d * d / 2
        - (5 + 3 * t1 + 10 * c1 - 4 * c1 * c1 - 9 * ecc_prime_squared) * d**4 / 24
        + (61 + 90 * t1 + 298 * c1 + 45 * t1 * t1 - 252 * ecc_prime_squared - 3 * c1 * c1)
        * d**6
        / 720
    )
    lat *= DEGREES_PER_RADIAN

    lon = (
        d
        - (1 + 2 * t1 + c1) * d**3 / 6
        + (5 - 2 * c1 + 28 * t1 - 3 * c1 * c1 + 8 * ecc_prime_squared + 24 * t1 * t1)
        * d**5
        / 120
    ) / math.cos(phi1)
    lon = long_origin + lon * DEGREES_PER_RADIAN

    gamma = math.atan(math.tanh(x / (k0 * a)) * math.tan(y / (k0 * a))) * DEGREES_PER_RADIAN
    return GeoPoint(latitude=lat, longitude=lon, gamma=gamma)