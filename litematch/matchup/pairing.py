"""Brute-force matching of coincident soundings between two instruments.

Every sounding of instrument A is compared against every sounding of
instrument B. A B sounding is coincident with an A sounding when the
great-circle distance between them is at most `max_distance_km` and the
absolute time difference lies strictly between `min_delta_seconds` and
`max_delta_seconds`. The core entry point is :func:`match_all`, which runs the
comparison for blocks of A soundings on a thread pool and returns a
:class:`PairwiseMatches` ordered by A sounding ID.

Matching a sounding set against itself with a positive `min_delta_seconds`
("self-crossing" mode) finds where an instrument revisits the same place on a
later orbit, without matching a sounding to itself or to its neighbors along
the same ground track.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path

import numpy as np
import xarray as xr

from ..compute.constants import (
    DEFAULT_MAX_DELTA_SECONDS,
    DEFAULT_MAX_DISTANCE_KM,
    FILL_F32,
    FILL_U8,
    FILL_U64,
    NO_MIN_DELTA_SECONDS,
    SOUNDING_ID_UNITS,
)
from ..compute.distance import great_circle_distance, time_difference
from ..errors import InternalConsistencyError, MissingColumnError, ShapeOrTypeError
from .data_structures import InstrumentSoundings, MatchRecord

logger = logging.getLogger(__name__)

ProgressFunc = Callable[[int, int], None]

# Persisted variable name -> (MatchRecord attribute, dtype, fill value, units, description)
A_VARIABLES = {
    "a_file_index": (
        "a_file_index",
        np.uint8,
        FILL_U8,
        None,
        "0-based index of the file from the a_file variable that this sounding came from",
    ),
    "a_sounding_index": (
        "a_row_index",
        np.uint64,
        FILL_U64,
        None,
        "0-based index of the sounding within its lite file",
    ),
    "a_sounding_id": ("a_sounding_id", np.uint64, FILL_U64, SOUNDING_ID_UNITS, "Instrument A sounding ID"),
}
B_VARIABLES = {
    "b_file_index": (
        "b_file_indices",
        np.uint8,
        FILL_U8,
        None,
        "0-based index of the file from the b_file variable that this sounding came from",
    ),
    "b_sounding_index": (
        "b_row_indices",
        np.uint64,
        FILL_U64,
        None,
        "0-based index of the sounding within its lite file",
    ),
    "b_sounding_id": ("b_sounding_ids", np.uint64, FILL_U64, SOUNDING_ID_UNITS, "Instrument B sounding ID"),
    "distance": ("distances_km", np.float32, FILL_F32, "km", "Distance between the A and B sounding"),
    "time_delta": ("time_deltas", np.float32, FILL_F32, "s", "Time of the A sounding minus time of the B sounding"),
}


@dataclass
class PairwiseMatches:
    """Match records between two sounding sets, ordered by A sounding ID.

    Parameters
    ----------
    a_files, b_files
        The source file lists of the A and B sounding sets that the file
        indices in `records` refer to.
    records
        One :class:`MatchRecord` per A sounding with at least one match.

    Notes
    -----
    Build instances with :meth:`from_records` (or :meth:`deserialize`), which
    enforce the ascending A sounding ID order that grouping relies on.
    """

    a_files: list[Path] = field(default_factory=list)
    b_files: list[Path] = field(default_factory=list)
    records: list[MatchRecord] = field(default_factory=list)

    @classmethod
    def from_records(
        cls, records: Iterable[MatchRecord], a_files: Sequence[str | Path], b_files: Sequence[str | Path]
    ) -> PairwiseMatches:
        # Groups of matches get split up if they are examined out of A sounding ID order.
        ordered = sorted(records, key=lambda rec: rec.a_sounding_id)
        return cls(a_files=[Path(fn) for fn in a_files], b_files=[Path(fn) for fn in b_files], records=ordered)

    def __len__(self):
        return len(self.records)

    def __iter__(self):
        return iter(self.records)

    def max_fanout(self) -> int:
        """Largest number of B matches of any record.

        Raises
        ------
        InternalConsistencyError
            If the B-side arrays of a record differ in length.

        """
        max_n = 0
        for rec in self.records:
            lengths = rec.b_lengths()
            if len(set(lengths.values())) != 1:
                raise InternalConsistencyError(
                    f"Inconsistent lengths of B match values for A sounding {rec.a_sounding_id}: {lengths}"
                )
            max_n = max(max_n, rec.fanout)
        return max_n

    def serialize(self) -> xr.Dataset:
        """Convert to the persisted (sentinel padded) form.

        B-side values are stored in ``(a_match, b_match)`` arrays that are
        right-padded with each column's fill value.
        """
        n_rec = len(self.records)
        n_b = self.max_fanout()

        data_vars = {
            "a_file": (
                ["a_file"],
                np.array([str(fn) for fn in self.a_files], dtype=object),
                {"description": "Paths to the instrument A lite files used in this matchup"},
            ),
            "b_file": (
                ["b_file"],
                np.array([str(fn) for fn in self.b_files], dtype=object),
                {"description": "Paths to the instrument B lite files used in this matchup"},
            ),
        }
        for varname, (attr, dtype, fill, units, descr) in A_VARIABLES.items():
            arr = np.full(n_rec, fill, dtype=dtype)
            for i, rec in enumerate(self.records):
                arr[i] = getattr(rec, attr)
            data_vars[varname] = (["a_match"], arr, _var_attrs(units, descr))

        for varname, (attr, dtype, fill, units, descr) in B_VARIABLES.items():
            arr = np.full((n_rec, n_b), fill, dtype=dtype)
            for i, rec in enumerate(self.records):
                row = getattr(rec, attr)
                arr[i, : row.size] = row
            data_vars[varname] = (["a_match", "b_match"], arr, _var_attrs(units, descr))

        ds = xr.Dataset(data_vars)
        for varname, (_, _, fill, _, _) in (A_VARIABLES | B_VARIABLES).items():
            ds[varname].encoding.update({"_FillValue": fill, "zlib": True, "complevel": 9})
        return ds

    @classmethod
    def deserialize(cls, ds: xr.Dataset) -> PairwiseMatches:
        """Rebuild from the persisted form written by :meth:`serialize`.

        `ds` must have been opened without masking (``mask_and_scale=False``)
        so the fill values are still present in the data.

        Raises
        ------
        MissingColumnError
            If a variable or its fill value is missing.
        InternalConsistencyError
            If a 1-D column contains fill values, a record has no B matches,
            or the B-side columns of a record have different lengths.

        """
        a_files = [Path(str(fn)) for fn in _require(ds, "a_file").values]
        b_files = [Path(str(fn)) for fn in _require(ds, "b_file").values]

        a_columns = {varname: _load_1d_var(ds, varname, dtype) for varname, (_, dtype, *_) in A_VARIABLES.items()}
        b_columns = {varname: _load_2d_var(ds, varname, dtype) for varname, (_, dtype, *_) in B_VARIABLES.items()}

        n_rec = a_columns["a_sounding_id"].size
        for varname, values in list(a_columns.items()) + list(b_columns.items()):
            if len(values) != n_rec:
                raise InternalConsistencyError(f"Variable {varname} has {len(values)} records, expected {n_rec}")

        records = []
        for i in range(n_rec):
            lengths = {varname: rows[i].size for varname, rows in b_columns.items()}
            if len(set(lengths.values())) != 1:
                raise InternalConsistencyError(
                    f"Inconsistent lengths of B match values in record {i}: {lengths}"
                )
            if lengths["b_sounding_id"] == 0:
                raise InternalConsistencyError(f"Record {i} has no B matches")

            records.append(
                MatchRecord(
                    a_file_index=a_columns["a_file_index"][i],
                    a_row_index=a_columns["a_sounding_index"][i],
                    a_sounding_id=a_columns["a_sounding_id"][i],
                    b_file_indices=b_columns["b_file_index"][i],
                    b_row_indices=b_columns["b_sounding_index"][i],
                    b_sounding_ids=b_columns["b_sounding_id"][i],
                    distances_km=b_columns["distance"][i],
                    time_deltas=b_columns["time_delta"][i],
                )
            )

        return cls.from_records(records, a_files, b_files)


def _var_attrs(units: str | None, description: str | None) -> dict:
    attrs = {}
    if units is not None:
        attrs["units"] = units
    if description is not None:
        attrs["description"] = description
    return attrs


def _require(ds: xr.Dataset, varname: str) -> xr.DataArray:
    if varname not in ds.variables:
        raise MissingColumnError(varname)
    return ds[varname]


def _load_var(ds: xr.Dataset, varname: str, ndim: int, dtype) -> tuple[np.ndarray, object]:
    var = _require(ds, varname)
    if var.ndim != ndim:
        raise ShapeOrTypeError(f"Variable '{varname}' must have {ndim} dimension(s), got {var.ndim}")
    fill = var.attrs.get("_FillValue", var.encoding.get("_FillValue"))
    if fill is None:
        raise MissingColumnError(f"{varname} fill value")
    values = var.values
    if values.dtype != np.dtype(dtype):
        raise ShapeOrTypeError(f"Variable '{varname}' must have type {np.dtype(dtype)}, got {values.dtype}")
    return values, np.asarray(fill, dtype=dtype)


def _load_1d_var(ds: xr.Dataset, varname: str, dtype) -> np.ndarray:
    values, fill = _load_var(ds, varname, 1, dtype)
    if np.any(values == fill):
        raise InternalConsistencyError(f"1D variable {varname} has fill values")
    return values


def _load_2d_var(ds: xr.Dataset, varname: str, dtype) -> list[np.ndarray]:
    values, fill = _load_var(ds, varname, 2, dtype)
    rows = []
    for row in values:
        is_fill = row == fill
        n = int(np.argmax(is_fill)) if is_fill.any() else row.size
        rows.append(row[:n].copy())
    return rows


def match_one(
    a: InstrumentSoundings,
    i_a: int,
    b: InstrumentSoundings,
    max_distance_km: float = DEFAULT_MAX_DISTANCE_KM,
    min_delta_seconds: float = NO_MIN_DELTA_SECONDS,
    max_delta_seconds: float = DEFAULT_MAX_DELTA_SECONDS,
) -> MatchRecord | None:
    """Compare A sounding `i_a` against every sounding in `b`.

    Returns
    -------
    MatchRecord or None
        The record of coincident B soundings, or None if there are none.

    """
    dist = great_circle_distance(a.longitude[i_a], a.latitude[i_a], b.longitude, b.latitude)
    dt = time_difference(a.timestamp[i_a], b.timestamp)
    abs_dt = np.abs(dt)

    is_match = (dist <= np.float32(max_distance_km)) & (abs_dt < max_delta_seconds) & (abs_dt > min_delta_seconds)
    if not is_match.any():
        return None

    j_b = np.flatnonzero(is_match)
    return MatchRecord(
        a_file_index=a.file_index[i_a],
        a_row_index=a.row_index[i_a],
        a_sounding_id=a.sounding_id[i_a],
        b_file_indices=b.file_index[j_b],
        b_row_indices=b.row_index[j_b],
        b_sounding_ids=b.sounding_id[j_b],
        distances_km=dist[j_b],
        time_deltas=dt[j_b],
    )


def _match_block(a, rows, b, max_distance_km, min_delta_seconds, max_delta_seconds) -> list[MatchRecord]:
    records = []
    for i_a in rows:
        rec = match_one(a, i_a, b, max_distance_km, min_delta_seconds, max_delta_seconds)
        if rec is not None:
            records.append(rec)
    return records


def match_all(
    a: InstrumentSoundings,
    b: InstrumentSoundings,
    max_distance_km: float = DEFAULT_MAX_DISTANCE_KM,
    min_delta_seconds: float = NO_MIN_DELTA_SECONDS,
    max_delta_seconds: float = DEFAULT_MAX_DELTA_SECONDS,
    nprocs: int = 1,
    progress: ProgressFunc | None = None,
    chunk_size: int | None = None,
) -> PairwiseMatches:
    """Find the coincident B soundings of every A sounding.

    Parameters
    ----------
    a, b : InstrumentSoundings
        Sounding sets to match. Neither is modified.
    max_distance_km : float, optional
        Largest great-circle distance of a match (inclusive). Default=100.
    min_delta_seconds : float, optional
        Absolute time differences must be greater than this. The default (-1)
        disables the lower bound; use a positive value for self-crossings.
    max_delta_seconds : float, optional
        Absolute time differences must be less than this. Default=43200 (12h).
    nprocs : int, optional
        Number of worker threads. Default=1.
    progress : callable, optional
        Called as ``progress(n_done, n_total)`` (A soundings) as blocks finish.
    chunk_size : int, optional
        Number of A soundings per unit of work. Default splits A into about
        ten blocks per worker.

    Returns
    -------
    PairwiseMatches
        Records for the A soundings with at least one match, ordered by A
        sounding ID regardless of how the work was scheduled.

    """
    if nprocs < 1:
        raise ValueError(f"`nprocs` must be at least 1, not: {nprocs}")

    n_a = a.sounding_count()
    logger.info(
        "Comparing %i A soundings (%i file(s)) to %i B soundings (%i file(s)) using %i thread(s)",
        n_a,
        len(a.file_paths),
        b.sounding_count(),
        len(b.file_paths),
        nprocs,
    )

    if chunk_size is None:
        chunk_size = max(1, -(-n_a // (nprocs * 10)))
    blocks = [range(start, min(start + chunk_size, n_a)) for start in range(0, n_a, chunk_size)]

    records: list[MatchRecord] = []
    n_done = 0
    if nprocs == 1:
        for rows in blocks:
            records.extend(_match_block(a, rows, b, max_distance_km, min_delta_seconds, max_delta_seconds))
            n_done += len(rows)
            if progress is not None:
                progress(n_done, n_a)
    else:
        with ThreadPoolExecutor(max_workers=nprocs, thread_name_prefix="litematch") as pool:
            futures = [
                pool.submit(_match_block, a, rows, b, max_distance_km, min_delta_seconds, max_delta_seconds)
                for rows in blocks
            ]
            for rows, future in zip(blocks, futures):
                records.extend(future.result())
                n_done += len(rows)
                if progress is not None:
                    progress(n_done, n_a)

    logger.info("Number of matchups = %i", len(records))
    return PairwiseMatches.from_records(records, a.file_paths, b.file_paths)
