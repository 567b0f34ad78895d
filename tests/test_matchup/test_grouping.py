import logging
import unittest

import numpy as np
import numpy.testing as npt
import pandas as pd
from lite_file_fixtures import make_soundings

from litematch import errors, utils
from litematch.matchup import grouping, pairing
from litematch.matchup.data_structures import MatchRecord

logger = logging.getLogger(__name__)
utils.enable_logging(extra_loggers=[__name__])


def record(a_id, b_ids, distances=None, time_deltas=None, a_loc=(0, 0), b_locs=None):
    n = len(b_ids)
    if b_locs is None:
        b_locs = [(0, i) for i in range(n)]
    return MatchRecord(
        a_file_index=a_loc[0],
        a_row_index=a_loc[1],
        a_sounding_id=a_id,
        b_file_indices=[loc[0] for loc in b_locs],
        b_row_indices=[loc[1] for loc in b_locs],
        b_sounding_ids=b_ids,
        distances_km=[1.0] * n if distances is None else distances,
        time_deltas=[0.0] * n if time_deltas is None else time_deltas,
    )


def partition(groups):
    return sorted((sorted(grp.a_ids), sorted(grp.b_ids)) for grp in groups)


class GroupingTestCase(unittest.TestCase):
    def setUp(self) -> None:
        # A1 <-> B1, A2 <-> {B1, B2}, A3 <-> B2
        self.chain = [
            record(1, [11], distances=[1.0], time_deltas=[10.0], a_loc=(0, 5), b_locs=[(0, 2)]),
            record(
                2, [11, 12], distances=[3.0, 5.0], time_deltas=[-20.0, 40.0], a_loc=(0, 6), b_locs=[(0, 2), (1, 0)]
            ),
            record(3, [12], distances=[8.0], time_deltas=[-30.0], a_loc=(1, 0), b_locs=[(1, 0)]),
        ]
        self.a_files = ["a0.nc4", "a1.nc4"]
        self.b_files = ["b0.nc4", "b1.nc4"]

    def test_two_separate_matches(self):
        a = make_soundings("a.nc4", [100, 200], [0.0, 1000.0], [0.0, 10.0], [0.0, 10.0])
        b = make_soundings("b.nc4", [900, 901], [1.0, 999.0], [0.001, 10.001], [0.001, 10.001])
        matches = pairing.match_all(a, b, max_distance_km=50.0, max_delta_seconds=100.0)

        groups = grouping.group_matches(matches)
        self.assertEqual(partition(groups), [([100], [900]), ([200], [901])])

    def test_chain_in_order_is_one_group(self):
        matches = pairing.PairwiseMatches.from_records(self.chain, self.a_files, self.b_files)
        groups = grouping.group_matches(matches)
        self.assertEqual(partition(groups), [([1, 2, 3], [11, 12])])

    def test_chain_out_of_order_splits(self):
        out_of_order = [self.chain[0], self.chain[2], self.chain[1]]
        groups = grouping.group_records(out_of_order, self.a_files, self.b_files)
        self.assertEqual(len(groups), 2)
        self.assertEqual(sorted(groups.groups[0].a_ids), [1, 2])
        self.assertEqual(sorted(groups.groups[0].b_ids), [11, 12])
        self.assertEqual(sorted(groups.groups[1].a_ids), [3])
        self.assertEqual(sorted(groups.groups[1].b_ids), [12])

    def test_bridging_record_joins_first_group(self):
        # A3 shares B10 with the first group and B20 with the second.
        records = [record(1, [10]), record(2, [20]), record(3, [10, 20])]
        matches = pairing.PairwiseMatches.from_records(records, self.a_files, self.b_files)

        with self.assertLogs(grouping.logger, level="WARNING") as logs:
            groups = grouping.group_matches(matches)

        self.assertEqual(len(groups), 2)
        self.assertEqual(sorted(groups.groups[0].a_ids), [1, 3])
        self.assertEqual(sorted(groups.groups[0].b_ids), [10, 20])
        self.assertEqual(sorted(groups.groups[1].a_ids), [2])
        self.assertEqual(sorted(groups.groups[1].b_ids), [20])
        self.assertEqual(len(logs.records), 1)
        self.assertIn("1 match record(s) shared B soundings", logs.output[0])

    def test_no_bridging_no_warning(self):
        matches = pairing.PairwiseMatches.from_records(self.chain, self.a_files, self.b_files)
        with self.assertNoLogs(grouping.logger, level="WARNING"):
            grouping.group_matches(matches)

    def test_group_matches_requires_order(self):
        matches = pairing.PairwiseMatches(a_files=self.a_files, b_files=self.b_files, records=self.chain[::-1])
        with self.assertRaises(errors.InternalConsistencyError):
            grouping.group_matches(matches)

    def test_partition_invariants(self):
        # Three well separated clusters of coincident soundings.
        centers = [(-100.0, 30.0, 0.0), (0.0, 0.0, 5000.0), (120.0, -45.0, 20000.0)]
        rng = np.random.default_rng(7)
        a_cols, b_cols = [], []
        for cols, n, offset in ((a_cols, 8, 1000), (b_cols, 12, 9000)):
            for k, (lon, lat, t) in enumerate(centers):
                for j in range(n):
                    sid = offset + 100 * k + j
                    jitter = rng.uniform(-0.2, 0.2, 2)
                    cols.append((sid, t + rng.uniform(-60, 60), lon + jitter[0], lat + jitter[1]))
        a = make_soundings("a.nc4", *zip(*a_cols))
        b = make_soundings("b.nc4", *zip(*b_cols))
        matches = pairing.match_all(a, b, max_distance_km=100.0, max_delta_seconds=600.0, nprocs=2)

        groups = grouping.group_matches(matches)
        self.assertEqual(len(groups), 3)

        all_a = {rec.a_sounding_id for rec in matches}
        all_b = {int(sid) for rec in matches for sid in rec.b_sounding_ids}
        self.assertEqual(set().union(*(grp.a_ids for grp in groups)), all_a)
        self.assertEqual(set().union(*(grp.b_ids for grp in groups)), all_b)
        self.assertEqual(sum(len(grp.a_ids) for grp in groups), len(all_a))
        self.assertEqual(sum(len(grp.b_ids) for grp in groups), len(all_b))
        for grp in groups:
            self.assertTrue(grp.a_ids)
            self.assertTrue(grp.b_ids)

        # Deterministic for the same input.
        self.assertEqual(partition(grouping.group_matches(matches)), partition(groups))

    def test_summary(self):
        matches = pairing.PairwiseMatches.from_records(self.chain, self.a_files, self.b_files)
        summ = grouping.group_matches(matches).summary()

        self.assertEqual(len(summ), 1)
        npt.assert_array_equal(summ.a_sounding_id, [[1, 3]])
        npt.assert_array_equal(summ.a_file_index, [[0, 1]])
        npt.assert_array_equal(summ.a_sounding_index, [[5, 0]])
        npt.assert_array_equal(summ.b_sounding_id, [[11, 12]])
        npt.assert_array_equal(summ.b_file_index, [[0, 1]])
        npt.assert_array_equal(summ.b_sounding_index, [[2, 0]])

        # Mean of the per-record means: (1 + 4 + 8) / 3, not the pooled (1 + 3 + 5 + 8) / 4.
        npt.assert_allclose(summ.mean_distance, [13.0 / 3])
        npt.assert_allclose(summ.mean_time_delta, [(10.0 + 10.0 - 30.0) / 3])

    def test_summary_missing_location(self):
        groups = grouping.MatchGroupSet(
            a_files=[],
            b_files=[],
            groups=[grouping.MatchGroup(a_ids={1}, b_ids={2})],
            a_locations={1: (0, 0)},
            b_locations={},
            a_means={1: (1.0, 0.0)},
        )
        with self.assertRaises(errors.InternalConsistencyError):
            groups.summary()

    def test_to_dataframe(self):
        records = self.chain + [record(4, [20, 21], distances=[2.0, 4.0], a_loc=(1, 3), b_locs=[(1, 8), (1, 9)])]
        matches = pairing.PairwiseMatches.from_records(records, self.a_files, self.b_files)
        df = grouping.group_matches(matches).to_dataframe()

        self.assertIsInstance(df, pd.DataFrame)
        self.assertEqual(len(df), 2)
        self.assertEqual(df.index.name, "match_group")
        self.assertEqual(df["n_a"].tolist(), [3, 1])
        self.assertEqual(df["n_b"].tolist(), [2, 2])
        self.assertEqual(df["b_sounding_id_min"].tolist(), [11, 20])
        self.assertEqual(df["b_sounding_index_max"].tolist(), [0, 9])
        npt.assert_allclose(df["mean_distance_km"], [13.0 / 3, 3.0])

    def test_progress_callback(self):
        matches = pairing.PairwiseMatches.from_records(self.chain, self.a_files, self.b_files)
        calls = []
        grouping.group_matches(matches, progress=lambda n, total: calls.append((n, total)))
        self.assertEqual(calls, [(1, 3), (2, 3), (3, 3)])


if __name__ == "__main__":
    unittest.main()
