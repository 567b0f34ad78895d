"""Grouping of pairwise matches into clusters of coincident soundings.

Match records are consumed in ascending A sounding ID order. A record joins
the first existing group (in creation order) that shares at least one of its B
soundings, otherwise it starts a new group. A record that shares B soundings
with several existing groups only joins the first of them; the groups are not
merged. This only gives connected groups when the records are examined in A
sounding ID order, which :class:`PairwiseMatches` guarantees.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from pathlib import Path

import numpy as np
import pandas as pd
import xarray as xr

from ..compute.constants import FILL_F32, SOUNDING_ID_UNITS
from ..errors import InternalConsistencyError
from . import dataio
from .data_structures import MatchRecord
from .pairing import PairwiseMatches

logger = logging.getLogger(__name__)

MATCH_GROUP_DIM = "match_group"
START_END_DIM = "start_end"


@dataclass
class MatchGroup:
    """Sounding IDs of one cluster of coincident A and B soundings."""

    a_ids: set[int] = field(default_factory=set)
    b_ids: set[int] = field(default_factory=set)


@dataclass
class GroupSummary:
    """Per-group arrays describing a :class:`MatchGroupSet`.

    The ``*_sounding_id``, ``*_file_index`` and ``*_sounding_index`` arrays have
    shape ``(n_groups, 2)`` holding the values for the [min, max] sounding ID of
    each side.
    """

    a_sounding_id: np.ndarray
    a_file_index: np.ndarray
    a_sounding_index: np.ndarray
    b_sounding_id: np.ndarray
    b_file_index: np.ndarray
    b_sounding_index: np.ndarray
    mean_distance: np.ndarray
    mean_time_delta: np.ndarray

    def __len__(self):
        return self.a_sounding_id.shape[0]


@dataclass
class MatchGroupSet:
    """Groups of coincident soundings plus what is needed to describe them.

    Parameters
    ----------
    a_files, b_files
        Source file lists that the file indices refer to.
    groups
        The match groups, in creation order.
    a_locations, b_locations
        Sounding ID -> (file index, row index) lookup tables.
    a_means
        A sounding ID -> (mean distance, mean time delta) of its own record.
    """

    a_files: list[Path]
    b_files: list[Path]
    groups: list[MatchGroup] = field(default_factory=list)
    a_locations: dict[int, tuple[int, int]] = field(default_factory=dict, repr=False)
    b_locations: dict[int, tuple[int, int]] = field(default_factory=dict, repr=False)
    a_means: dict[int, tuple[float, float]] = field(default_factory=dict, repr=False)

    def __len__(self):
        return len(self.groups)

    def __iter__(self):
        return iter(self.groups)

    @staticmethod
    def _locate(table: dict[int, tuple[int, int]], sid: int, side: str) -> tuple[int, int]:
        try:
            return table[sid]
        except KeyError:
            raise InternalConsistencyError(f"{side} sounding ID {sid} not stored in the index lookup table") from None

    def summary(self) -> GroupSummary:
        """Compute the min/max IDs, their locations and the mean statistics of every group.

        The mean distance and time delta of a group are the unweighted means of
        the per-record means of its A soundings.
        """
        n = len(self.groups)
        out = {
            f"{side}_{name}": np.zeros((n, 2), dtype=dtype)
            for side in ("a", "b")
            for name, dtype in (("sounding_id", np.uint64), ("file_index", np.uint8), ("sounding_index", np.uint64))
        }
        mean_distance = np.zeros(n, dtype=np.float64)
        mean_time_delta = np.zeros(n, dtype=np.float64)

        for i, group in enumerate(self.groups):
            if not group.a_ids or not group.b_ids:
                raise InternalConsistencyError(f"Match group {i} has an empty side")

            for side, ids, table in (("a", group.a_ids, self.a_locations), ("b", group.b_ids, self.b_locations)):
                sid_min, sid_max = min(ids), max(ids)
                out[f"{side}_sounding_id"][i] = (sid_min, sid_max)
                for j, sid in enumerate((sid_min, sid_max)):
                    fid, idx = self._locate(table, sid, side.upper())
                    out[f"{side}_file_index"][i, j] = fid
                    out[f"{side}_sounding_index"][i, j] = idx

            means = np.array([self._mean_of(sid) for sid in group.a_ids])
            mean_distance[i], mean_time_delta[i] = means.mean(axis=0)

        return GroupSummary(**out, mean_distance=mean_distance, mean_time_delta=mean_time_delta)

    def _mean_of(self, a_sid: int) -> tuple[float, float]:
        try:
            return self.a_means[a_sid]
        except KeyError:
            raise InternalConsistencyError(f"A sounding ID {a_sid} has no stored mean statistics") from None

    def to_dataframe(self) -> pd.DataFrame:
        """One row per group, for inspection."""
        summ = self.summary()
        columns = {}
        for side in ("a", "b"):
            for name in ("sounding_id", "file_index", "sounding_index"):
                values = getattr(summ, f"{side}_{name}")
                columns[f"{side}_{name}_min"] = values[:, 0]
                columns[f"{side}_{name}_max"] = values[:, 1]
        columns["n_a"] = [len(group.a_ids) for group in self.groups]
        columns["n_b"] = [len(group.b_ids) for group in self.groups]
        columns["mean_distance_km"] = summ.mean_distance
        columns["mean_time_delta_s"] = summ.mean_time_delta
        return pd.DataFrame(columns, index=pd.RangeIndex(len(self.groups), name=MATCH_GROUP_DIM))

    def to_dataset(self, a_checksums: list[str], b_checksums: list[str], a_sid_attrs: dict, b_sid_attrs: dict):
        """Describe the groups as an xarray Dataset (the match output file layout)."""
        summ = self.summary()
        dims = [MATCH_GROUP_DIM, START_END_DIM]
        data_vars = {
            "a_sounding_id": (dims, summ.a_sounding_id, dict(a_sid_attrs)),
            "a_file_index": (
                dims,
                summ.a_file_index,
                {"description": "0-based index for the A lite file name variable"},
            ),
            "a_sounding_index": (
                dims,
                summ.a_sounding_index,
                {"description": "0-based index for the sounding in the A lite file"},
            ),
            "b_sounding_id": (dims, summ.b_sounding_id, dict(b_sid_attrs)),
            "b_file_index": (
                dims,
                summ.b_file_index,
                {"description": "0-based index for the B lite file name variable"},
            ),
            "b_sounding_index": (
                dims,
                summ.b_sounding_index,
                {"description": "0-based index for the sounding in the B lite file"},
            ),
            "mean_distance": (
                [MATCH_GROUP_DIM],
                summ.mean_distance.astype(np.float32),
                {"units": "km", "description": "Mean distance between the A and B soundings of the group"},
            ),
            "mean_time_delta": (
                [MATCH_GROUP_DIM],
                summ.mean_time_delta.astype(np.float32),
                {"units": "s", "description": "Mean time of A soundings minus time of B soundings in the group"},
            ),
            "a_lite_file": (
                ["a_lite_file"],
                np.array([str(fn) for fn in self.a_files], dtype=object),
                {"description": "Paths to A lite files"},
            ),
            "a_lite_file_sha256": (
                ["a_lite_file"],
                np.array(a_checksums, dtype=object),
                {"description": "SHA-256 checksums of A lite files"},
            ),
            "b_lite_file": (
                ["b_lite_file"],
                np.array([str(fn) for fn in self.b_files], dtype=object),
                {"description": "Paths to B lite files"},
            ),
            "b_lite_file_sha256": (
                ["b_lite_file"],
                np.array(b_checksums, dtype=object),
                {"description": "SHA-256 checksums of B lite files"},
            ),
        }
        ds = xr.Dataset(data_vars)
        for varname in ("mean_distance", "mean_time_delta"):
            ds[varname].encoding["_FillValue"] = FILL_F32
        return ds

    def write_netcdf(self, filepath: str | Path, group: str | None = None, attrs: dict | None = None) -> None:
        """Write the match output file, with checksums of every source file.

        Parameters
        ----------
        filepath : str or Path
            Output file, overwritten if it exists.
        group : str, optional
            Write into this group instead of the root group.
        attrs : dict, optional
            Extra global attributes (e.g., the matching thresholds).

        """
        filepath = Path(filepath)
        logger.info("Writing %i match groups to %s", len(self.groups), filepath)

        a_checksums = [dataio.file_sha256(fn) for fn in self.a_files]
        b_checksums = [dataio.file_sha256(fn) for fn in self.b_files]
        a_sid_attrs = self._sid_attrs(self.a_files, "A sounding ID from UTC time")
        b_sid_attrs = self._sid_attrs(self.b_files, "B sounding ID from UTC time")

        ds = self.to_dataset(a_checksums, b_checksums, a_sid_attrs, b_sid_attrs)
        if attrs:
            ds.attrs.update(attrs)
        dataio.write_netcdf(ds, filepath, group=group, mode="w")

    @staticmethod
    def _sid_attrs(files: list[Path], default_long_name: str) -> dict:
        if not files:
            return {"units": SOUNDING_ID_UNITS, "long_name": default_long_name}
        return dataio.sounding_id_attrs(files[0], default_long_name)


def group_matches(matches: PairwiseMatches, progress: Callable[[int, int], None] | None = None) -> MatchGroupSet:
    """Group pairwise matches into clusters of coincident soundings.

    Parameters
    ----------
    matches : PairwiseMatches
        Records ordered by A sounding ID.
    progress : callable, optional
        Called as ``progress(n_done, n_total)`` (records) while grouping.

    Returns
    -------
    MatchGroupSet

    Raises
    ------
    InternalConsistencyError
        If the records are not in ascending A sounding ID order.

    """
    prev_sid = None
    for rec in matches.records:
        if prev_sid is not None and rec.a_sounding_id < prev_sid:
            raise InternalConsistencyError(
                f"Matches are not ordered by A sounding ID ({rec.a_sounding_id} after {prev_sid})"
            )
        prev_sid = rec.a_sounding_id

    return group_records(matches.records, matches.a_files, matches.b_files, progress=progress)


def group_records(
    records: Sequence[MatchRecord],
    a_files: Sequence[Path],
    b_files: Sequence[Path],
    progress: Callable[[int, int], None] | None = None,
) -> MatchGroupSet:
    """Group match records in the order given.

    Unlike :func:`group_matches` the order is not checked, so examining the
    records out of A sounding ID order can split groups that should be one.
    """
    groups: list[MatchGroup] = []
    # B sounding ID -> indices of the groups containing it. A record joins the
    # lowest of these indices, i.e. the first intersecting group in creation order.
    b_membership: dict[int, set[int]] = {}
    a_locations: dict[int, tuple[int, int]] = {}
    b_locations: dict[int, tuple[int, int]] = {}
    a_means: dict[int, tuple[float, float]] = {}

    n_total = len(records)
    n_bridging = 0
    for n_done, rec in enumerate(records, start=1):
        b_ids = [int(sid) for sid in rec.b_sounding_ids]
        touched = set()
        for sid in b_ids:
            touched.update(b_membership.get(sid, ()))

        if touched:
            i_group = min(touched)
            if len(touched) > 1:
                n_bridging += 1
                logger.debug(
                    "A sounding %i shares B soundings with groups %s, adding it to group %i only",
                    rec.a_sounding_id,
                    sorted(touched),
                    i_group,
                )
            group = groups[i_group]
            group.a_ids.add(rec.a_sounding_id)
            group.b_ids.update(b_ids)
        else:
            i_group = len(groups)
            groups.append(MatchGroup(a_ids={rec.a_sounding_id}, b_ids=set(b_ids)))

        for sid in b_ids:
            b_membership.setdefault(sid, set()).add(i_group)

        a_locations[rec.a_sounding_id] = (rec.a_file_index, rec.a_row_index)
        for sid, fid, idx in zip(b_ids, rec.b_file_indices, rec.b_row_indices):
            b_locations[sid] = (int(fid), int(idx))
        a_means[rec.a_sounding_id] = (rec.mean_distance(), rec.mean_time_delta())

        if progress is not None:
            progress(n_done, n_total)

    if n_bridging:
        logger.warning("%i match record(s) shared B soundings with more than one existing group", n_bridging)
    logger.info("Grouped %i match records into %i groups", n_total, len(groups))

    return MatchGroupSet(
        a_files=[Path(fn) for fn in a_files],
        b_files=[Path(fn) for fn in b_files],
        groups=groups,
        a_locations=a_locations,
        b_locations=b_locations,
        a_means=a_means,
    )
