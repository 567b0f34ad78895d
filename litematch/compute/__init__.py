"""Numerical kernels shared by the matchup code."""

from . import constants, distance

__all__ = ["constants", "distance"]
