from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

import numpy as np
import xarray as xr

from ..compute.constants import MAX_SOURCE_FILES, SOUNDING_ID_UNITS, TIME_UNITS
from ..errors import FileLimitError, ShapeOrTypeError

logger = logging.getLogger(__name__)

# Column name -> dtype, in the order they are stored.
SOUNDING_COLUMNS = {
    "file_index": np.uint8,
    "row_index": np.uint64,
    "sounding_id": np.uint64,
    "timestamp": np.float64,
    "longitude": np.float32,
    "latitude": np.float32,
    "quality": np.uint8,
}


@dataclass
class InstrumentSoundings:
    """Geolocation of the soundings from one or more files of one instrument.

    The per-sounding attributes are stored as parallel numpy columns of equal
    length. `file_index` points into `file_paths`, and `row_index` is the row
    of the sounding within that source file (unchanged by quality filtering or
    concatenation).
    """

    file_paths: list[Path] = field(default_factory=list)
    file_index: np.ndarray = field(default_factory=lambda: np.zeros(0, dtype=np.uint8))
    row_index: np.ndarray = field(default_factory=lambda: np.zeros(0, dtype=np.uint64))
    sounding_id: np.ndarray = field(default_factory=lambda: np.zeros(0, dtype=np.uint64))
    timestamp: np.ndarray = field(default_factory=lambda: np.zeros(0, dtype=np.float64))
    longitude: np.ndarray = field(default_factory=lambda: np.zeros(0, dtype=np.float32))
    latitude: np.ndarray = field(default_factory=lambda: np.zeros(0, dtype=np.float32))
    quality: np.ndarray = field(default_factory=lambda: np.zeros(0, dtype=np.uint8))

    def __post_init__(self) -> None:
        self.file_paths = [Path(fn) for fn in self.file_paths]
        for name, dtype in SOUNDING_COLUMNS.items():
            setattr(self, name, np.asarray(getattr(self, name), dtype=dtype))
        self._validate()

    def _validate(self) -> None:
        n = self.sounding_id.size
        for name in SOUNDING_COLUMNS:
            col = getattr(self, name)
            if col.ndim != 1:
                raise ShapeOrTypeError(f"Column '{name}' must be one-dimensional, got shape {col.shape}")
            if col.size != n:
                raise ShapeOrTypeError(f"Column '{name}' has {col.size} values, expected {n}")
        if len(self.file_paths) > MAX_SOURCE_FILES:
            raise FileLimitError(
                f"{len(self.file_paths)} source files given, at most {MAX_SOURCE_FILES} can be indexed"
            )
        if n and int(self.file_index.max()) >= len(self.file_paths):
            raise ShapeOrTypeError(
                f"File index {int(self.file_index.max())} out of range for {len(self.file_paths)} file(s)"
            )

    @classmethod
    def from_columns(
        cls,
        path: str | Path,
        sounding_id,
        timestamp,
        longitude,
        latitude,
        quality,
        flag0_only: bool = False,
    ) -> InstrumentSoundings:
        """Build the set for a single source file from its raw columns.

        Parameters
        ----------
        path : str or Path
            Source file the columns were read from.
        sounding_id, timestamp, longitude, latitude, quality : array_like
            Equal-length columns, in file order.
        flag0_only : bool, optional
            Keep only the rows with a quality flag of 0. Default is False.

        Returns
        -------
        InstrumentSoundings

        """
        quality = np.asarray(quality, dtype=np.uint8)
        n = quality.size
        columns = dict(
            file_index=np.zeros(n, dtype=np.uint8),
            row_index=np.arange(n, dtype=np.uint64),
            sounding_id=sounding_id,
            timestamp=timestamp,
            longitude=longitude,
            latitude=latitude,
            quality=quality,
        )
        sizes = {name: np.size(values) for name, values in columns.items()}
        if len(set(sizes.values())) != 1:
            raise ShapeOrTypeError(f"Columns have different lengths: {sizes}", file=path)

        soundings = cls(file_paths=[Path(path)], **columns)
        if flag0_only:
            soundings = soundings.select(soundings.quality == 0)
            logger.debug("Kept %i of %i soundings with quality flag 0 from %s", soundings.sounding_count(), n, path)
        return soundings

    def select(self, mask: np.ndarray) -> InstrumentSoundings:
        """Return a new set with only the rows where `mask` is true (all columns in lockstep)."""
        mask = np.asarray(mask, dtype=bool)
        return InstrumentSoundings(
            file_paths=list(self.file_paths), **{name: getattr(self, name)[mask] for name in SOUNDING_COLUMNS}
        )

    def extend(self, other: InstrumentSoundings) -> InstrumentSoundings:
        """Concatenate `other` after this set.

        The file indices of `other` are re-based by the current number of files
        and its file list is appended.

        Raises
        ------
        FileLimitError
            If the combined file list cannot be addressed with a one-byte index.

        """
        n_files = len(self.file_paths)
        if n_files + len(other.file_paths) > MAX_SOURCE_FILES:
            raise FileLimitError(
                f"Cannot combine {n_files} and {len(other.file_paths)} source files,"
                f" at most {MAX_SOURCE_FILES} can be indexed"
            )

        columns = {}
        for name in SOUNDING_COLUMNS:
            values = getattr(other, name)
            if name == "file_index":
                values = (values.astype(np.uint16) + n_files).astype(np.uint8)
            columns[name] = np.concatenate([getattr(self, name), values])
        return InstrumentSoundings(file_paths=self.file_paths + other.file_paths, **columns)

    def sounding_count(self) -> int:
        return int(self.sounding_id.size)

    def __len__(self):
        return self.sounding_count()

    def to_dataset(self) -> xr.Dataset:
        """Describe the soundings as an xarray Dataset (for the full-match file)."""
        ds = xr.Dataset(
            {
                "lite_file": (
                    ["lite_file"],
                    np.array([str(fn) for fn in self.file_paths], dtype=object),
                    {"description": "Source lite files that these soundings came from"},
                ),
                "file_index": (
                    ["sounding"],
                    self.file_index,
                    {"description": "Index of the lite_file variable that defines the path which this point came from"},
                ),
                "row_index": (
                    ["sounding"],
                    self.row_index,
                    {"description": "0-based index of the sounding within its lite file"},
                ),
                "sounding_id": (["sounding"], self.sounding_id, {"units": SOUNDING_ID_UNITS}),
                "time": (["sounding"], self.timestamp, {"units": TIME_UNITS}),
                "longitude": (["sounding"], self.longitude, {"units": "degrees_east"}),
                "latitude": (["sounding"], self.latitude, {"units": "degrees_north"}),
                "quality_flag": (["sounding"], self.quality, {"description": "0 = good, 1 = bad"}),
            }
        )
        return ds


@dataclass
class MatchRecord:
    """One A-side sounding and every B-side sounding coincident with it.

    The B-side attributes are parallel arrays of the same length (the fanout).
    `time_deltas` are signed, A time minus B time.
    """

    a_file_index: int
    a_row_index: int
    a_sounding_id: int
    b_file_indices: np.ndarray
    b_row_indices: np.ndarray
    b_sounding_ids: np.ndarray
    distances_km: np.ndarray
    time_deltas: np.ndarray

    def __post_init__(self) -> None:
        self.a_file_index = int(self.a_file_index)
        self.a_row_index = int(self.a_row_index)
        self.a_sounding_id = int(self.a_sounding_id)
        self.b_file_indices = np.asarray(self.b_file_indices, dtype=np.uint8)
        self.b_row_indices = np.asarray(self.b_row_indices, dtype=np.uint64)
        self.b_sounding_ids = np.asarray(self.b_sounding_ids, dtype=np.uint64)
        self.distances_km = np.asarray(self.distances_km, dtype=np.float32)
        self.time_deltas = np.asarray(self.time_deltas, dtype=np.float64)

    @property
    def fanout(self) -> int:
        return int(self.b_sounding_ids.size)

    def b_lengths(self) -> dict[str, int]:
        return {
            "b_file_index": self.b_file_indices.size,
            "b_sounding_index": self.b_row_indices.size,
            "b_sounding_id": self.b_sounding_ids.size,
            "distance": self.distances_km.size,
            "time_delta": self.time_deltas.size,
        }

    def mean_distance(self) -> float:
        return float(np.mean(self.distances_km, dtype=np.float64))

    def mean_time_delta(self) -> float:
        return float(np.mean(self.time_deltas, dtype=np.float64))
