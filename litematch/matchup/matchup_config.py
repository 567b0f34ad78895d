"""Matchup and batch run configuration.

A batch is described by a JSON or TOML file with a top-level ``matchups``
array, each entry holding the arguments of one matchup, e.g.::

    nprocs = 8

    [[matchups]]
    output_file = "litematch_20200101.nc4"
    a_file = "a/2020/01/01/a_lite_20200101.nc4"
    b_files = ["b/2020/01/01/b_lite_20200101.nc4"]
    flag0_only = true

"""

from __future__ import annotations

import json
import logging
import tomllib
from dataclasses import dataclass, field, fields
from pathlib import Path

from ..compute.constants import (
    DEFAULT_MAX_DELTA_SECONDS,
    DEFAULT_MAX_DISTANCE_KM,
    NO_MIN_DELTA_SECONDS,
    SELF_CROSSING_MIN_DELTA_SECONDS,
)

logger = logging.getLogger(__name__)

_PATH_FIELDS = ("output_file", "a_file", "save_full_matches_as", "read_full_matches")


@dataclass
class MatchupConfig:
    """Arguments of one matchup between an A lite file and its B lite files.

    Parameters
    ----------
    output_file
        Match group netCDF file to write.
    a_file
        Instrument A lite file.
    b_files
        Instrument B lite file(s), at least one unless `self_crossing` is set.
    flag0_only
        Only match good quality (flag 0) soundings.
    self_crossing
        Match the A file against itself (B defaults to the A file) and use
        a minimum time difference that skips the same orbit.
    save_full_matches_as
        Optional path to save every pairwise match to (can be 100s of MB).
    read_full_matches
        Optional path to a file written with `save_full_matches_as` to reuse
        instead of matching the lite files again.
    max_distance_km, max_delta_seconds, min_delta_seconds
        Coincidence criteria. `min_delta_seconds` of None picks the default
        for the mode (see :meth:`effective_min_delta_seconds`).
    """

    output_file: Path
    a_file: Path
    b_files: list[Path] = field(default_factory=list)
    flag0_only: bool = False
    self_crossing: bool = False
    save_full_matches_as: Path | None = None
    read_full_matches: Path | None = None
    max_distance_km: float = DEFAULT_MAX_DISTANCE_KM
    max_delta_seconds: float = DEFAULT_MAX_DELTA_SECONDS
    min_delta_seconds: float | None = None

    def __post_init__(self):
        for name in _PATH_FIELDS:
            value = getattr(self, name)
            if value is not None:
                setattr(self, name, Path(value))
        self.b_files = [Path(fn) for fn in self.b_files]
        if self.self_crossing and not self.b_files:
            self.b_files = [self.a_file]
        self.max_distance_km = float(self.max_distance_km)
        self.max_delta_seconds = float(self.max_delta_seconds)
        if self.min_delta_seconds is not None:
            self.min_delta_seconds = float(self.min_delta_seconds)

    def effective_min_delta_seconds(self) -> float:
        """Minimum absolute time difference, resolving the mode default."""
        if self.min_delta_seconds is not None:
            return self.min_delta_seconds
        return SELF_CROSSING_MIN_DELTA_SECONDS if self.self_crossing else NO_MIN_DELTA_SECONDS

    def validate(self) -> None:
        """Check the configuration values.

        Raises
        ------
        ValueError
            If there are no B files (and no saved matches to read) or a
            threshold is out of range.

        """
        if not self.b_files and self.read_full_matches is None:
            raise ValueError(f"At least one B lite file is required for the matchup of {self.a_file}")
        if self.max_distance_km <= 0:
            raise ValueError(f"`max_distance_km` must be positive, not: {self.max_distance_km}")
        if self.max_delta_seconds <= 0:
            raise ValueError(f"`max_delta_seconds` must be positive, not: {self.max_delta_seconds}")
        if self.effective_min_delta_seconds() >= self.max_delta_seconds:
            raise ValueError(
                f"`min_delta_seconds` ({self.effective_min_delta_seconds()}) must be less than"
                f" `max_delta_seconds` ({self.max_delta_seconds})"
            )

    def describe(self) -> str:
        return f"{self.a_file.name} -> {self.output_file}"

    @classmethod
    def from_dict(cls, properties: dict) -> MatchupConfig:
        known = {fld.name for fld in fields(cls)}
        unknown = set(properties) - known
        if unknown:
            raise ValueError(f"Unknown matchup configuration key(s): {sorted(unknown)}")
        for name in ("output_file", "a_file"):
            if name not in properties:
                raise ValueError(f"Missing required matchup configuration key: {name!r}")
        return cls(**properties)

    def to_dict(self) -> dict:
        """Plain (JSON/TOML friendly) form, omitting unset optional values."""
        out = {}
        for fld in fields(self):
            value = getattr(self, fld.name)
            if value is None:
                continue
            if isinstance(value, Path):
                value = str(value)
            elif fld.name == "b_files":
                value = [str(fn) for fn in value]
            out[fld.name] = value
        return out


@dataclass
class RunConfig:
    """A batch of matchups and how to run them."""

    matchups: list[MatchupConfig] = field(default_factory=list)
    nprocs: int = 8
    parallel_matchups: int = 1

    def __post_init__(self):
        if self.nprocs < 1:
            raise ValueError(f"`nprocs` must be at least 1, not: {self.nprocs}")
        if self.parallel_matchups < 1:
            raise ValueError(f"`parallel_matchups` must be at least 1, not: {self.parallel_matchups}")

    @classmethod
    def from_dict(cls, properties: dict) -> RunConfig:
        properties = dict(properties)
        if "matchups" not in properties:
            raise ValueError("Missing required 'matchups' section in run configuration")
        properties["matchups"] = [MatchupConfig.from_dict(item) for item in properties["matchups"]]
        return cls(**properties)

    def to_dict(self) -> dict:
        return {
            "nprocs": self.nprocs,
            "parallel_matchups": self.parallel_matchups,
            "matchups": [item.to_dict() for item in self.matchups],
        }


def load_run_config(config_path: str | Path) -> RunConfig:
    """Load a batch run configuration from a JSON or TOML file.

    Raises
    ------
    FileNotFoundError
        If the file does not exist.
    ValueError
        If the file cannot be parsed or has invalid contents.

    """
    config_path = Path(config_path)
    if not config_path.is_file():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    txt = config_path.read_text()
    try:
        if config_path.suffix.lower() == ".toml":
            properties = tomllib.loads(txt)
        else:
            properties = json.loads(txt)
    except (json.JSONDecodeError, tomllib.TOMLDecodeError) as e:
        raise ValueError(f"Invalid configuration file {config_path}: {e}") from e

    config = RunConfig.from_dict(properties)
    logger.info("Loaded %i matchup(s) from %s", len(config.matchups), config_path)
    return config


def save_run_config(config_path: str | Path, config: RunConfig) -> Path:
    """Write a batch run configuration as JSON."""
    config_path = Path(config_path)
    config_path.write_text(json.dumps(config.to_dict(), indent=4))
    logger.info("Wrote %i matchup(s) to %s", len(config.matchups), config_path)
    return config_path
