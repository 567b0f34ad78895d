"""Distance and time-difference kernel for sounding coincidence tests.

Both functions accept scalars or numpy arrays (broadcasting as usual), which
lets the matcher compare one sounding against every sounding of another set in
a single call.
"""

import numpy as np

from .constants import DEG2RAD, EARTH_RADIUS_KM


def great_circle_distance(lon1, lat1, lon2, lat2) -> np.ndarray:
    """Great-circle distance between two points on a spherical Earth.

    Uses the haversine identity with a fixed radius of 6378.137 km, evaluated
    in single precision.

    Parameters
    ----------
    lon1, lat1 : float or array_like
        Longitude and latitude of the first point(s), in degrees.
    lon2, lat2 : float or array_like
        Longitude and latitude of the second point(s), in degrees.

    Returns
    -------
    numpy.float32 or numpy.ndarray
        Distance in kilometers.

    """
    lon1 = np.asarray(lon1, dtype=np.float32) * DEG2RAD
    lat1 = np.asarray(lat1, dtype=np.float32) * DEG2RAD
    lon2 = np.asarray(lon2, dtype=np.float32) * DEG2RAD
    lat2 = np.asarray(lat2, dtype=np.float32) * DEG2RAD

    dlon = np.abs(lon2 - lon1)
    dlat = np.abs(lat2 - lat1)

    sin2_half_dlat = np.sin(dlat / np.float32(2.0)) ** 2
    sin2_mean_lat = np.sin((lat1 + lat2) / np.float32(2.0)) ** 2
    sin2_half_dlon = np.sin(dlon / np.float32(2.0)) ** 2
    inner = sin2_half_dlat + (np.float32(1.0) - sin2_half_dlat - sin2_mean_lat) * sin2_half_dlon

    # Rounding can push near-antipodal points a hair outside [0, 1].
    inner = np.clip(inner, np.float32(0.0), np.float32(1.0))
    central_angle = np.float32(2.0) * np.arcsin(np.sqrt(inner))
    return central_angle * EARTH_RADIUS_KM


def time_difference(ts_a, ts_b) -> np.ndarray:
    """Signed time difference `ts_a - ts_b`, in seconds (float64)."""
    return np.asarray(ts_a, dtype=np.float64) - np.asarray(ts_b, dtype=np.float64)
