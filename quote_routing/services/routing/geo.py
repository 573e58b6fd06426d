"""Spherical distance helpers."""

import math

# Mean radius PostGIS uses for ST_DistanceSphere, so both code paths agree.
EARTH_RADIUS_KM = 6370.986


def sphere_distance_km(
    latitude_a: float, longitude_a: float, latitude_b: float, longitude_b: float
) -> float:
    """Great-circle distance between two points on a sphere (haversine)."""
    phi_a = math.radians(latitude_a)
    phi_b = math.radians(latitude_b)
    d_phi = phi_b - phi_a
    d_lambda = math.radians(longitude_b - longitude_a)

    h = (
        math.sin(d_phi / 2) ** 2
        + math.cos(phi_a) * math.cos(phi_b) * math.sin(d_lambda / 2) ** 2
    )
    return 2 * EARTH_RADIUS_KM * math.asin(min(1.0, math.sqrt(h)))


def round_distance_km(value: float) -> float:
    return round(value, 2)
