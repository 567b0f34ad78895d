"""Match coincident satellite soundings between two instruments and group
them into clusters of mutually coincident observations.
"""

from . import compute, errors, matchup, utils

__all__ = ["compute", "errors", "matchup", "utils"]
