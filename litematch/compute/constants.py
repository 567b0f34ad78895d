"""Physical constants and fixed values used by the matchup code."""

import numpy as np

# Equatorial Earth radius used for great-circle distances (spherical Earth).
#   Units: KM
EARTH_RADIUS_KM = np.float32(6378.137)

DEG2RAD = np.float32(np.pi / 180.0)

# Default coincidence criteria.
#   Units: KM and SECONDS
DEFAULT_MAX_DISTANCE_KM = 100.0
DEFAULT_MAX_DELTA_SECONDS = 43200.0  # 12 hours
NO_MIN_DELTA_SECONDS = -1.0  # Any |dt| is greater than this, i.e. disabled.
SELF_CROSSING_MIN_DELTA_SECONDS = 2787.0  # About half an orbit.

# File indices are persisted as a single byte, and 255 is reserved as the fill value.
MAX_SOURCE_FILES = 255

# "No data" values for the padded (rectangular) persisted form of match records.
FILL_U8 = np.uint8(np.iinfo(np.uint8).max)
FILL_U64 = np.uint64(np.iinfo(np.uint64).max)
FILL_F32 = np.float32(np.finfo(np.float32).max)

SOUNDING_ID_UNITS = "YYYYMMDDhhmmssmf"
TIME_UNITS = "seconds since 1970-01-01 00:00:00"
