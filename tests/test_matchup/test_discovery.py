import datetime
import logging
import tempfile
import unittest
from pathlib import Path

from litematch import errors, utils
from litematch.matchup import discovery

logger = logging.getLogger(__name__)
utils.enable_logging(extra_loggers=[__name__])


class DiscoveryTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.__tmp_dir = tempfile.TemporaryDirectory()
        self.addCleanup(self.__tmp_dir.cleanup)
        self.tmp_dir = Path(self.__tmp_dir.name)

        self.a_dirs = discovery.DirStructure(str(self.tmp_dir / "a" / "%Y" / "%m" / "%d"))
        self.b_dirs = discovery.DirStructure(str(self.tmp_dir / "b" / "%Y%m%d" / "lite"))

    def _touch(self, dirs, date, name):
        directory = dirs.dir_for_date(date)
        directory.mkdir(parents=True, exist_ok=True)
        fn = directory / name
        fn.touch()
        return fn

    def test_matchup_dates(self):
        dates = list(discovery.MatchupDates(datetime.date(2020, 2, 28), datetime.date(2020, 3, 1), ndays_buffer=1))
        self.assertEqual(len(dates), 3)
        a_date, b_dates = dates[1]
        self.assertEqual(a_date, datetime.date(2020, 2, 29))
        self.assertEqual(b_dates, [datetime.date(2020, 2, 28), datetime.date(2020, 2, 29), datetime.date(2020, 3, 1)])

        dates = list(discovery.MatchupDates(datetime.date(2020, 1, 1), datetime.date(2020, 1, 1)))
        self.assertEqual(dates, [(datetime.date(2020, 1, 1), [datetime.date(2020, 1, 1)])])

        self.assertEqual(list(discovery.MatchupDates(datetime.date(2020, 1, 2), datetime.date(2020, 1, 1))), [])

        with self.assertRaises(ValueError):
            discovery.MatchupDates(datetime.date(2020, 1, 1), datetime.date(2020, 1, 2), ndays_buffer=-1)

    def test_dir_for_date(self):
        dirs = discovery.DirStructure("/data/%Y/%m/%d/lite")
        self.assertEqual(dirs.dir_for_date(datetime.date(2021, 7, 4)), Path("/data/2021/07/04/lite"))
        self.assertEqual(discovery.DirStructure().dir_for_date(datetime.date(2021, 7, 4)), Path("2021/07/04"))

    def test_find_nc4_file(self):
        date = datetime.date(2020, 1, 1)
        self.assertIsNone(discovery.find_nc4_file(self.a_dirs.dir_for_date(date)))

        self._touch(self.a_dirs, date, "notes.txt")
        self.assertIsNone(discovery.find_nc4_file(self.a_dirs.dir_for_date(date)))

        fn = self._touch(self.a_dirs, date, "a_lite_200101.nc4")
        self.assertEqual(discovery.find_nc4_file(self.a_dirs.dir_for_date(date)), fn)

        self._touch(self.a_dirs, date, "a_lite_200101_v2.nc4")
        with self.assertRaises(errors.InternalConsistencyError):
            discovery.find_nc4_file(self.a_dirs.dir_for_date(date))

    def test_build_matchup_configs(self):
        d1, d2, d3, d4 = (datetime.date(2020, 1, day) for day in range(1, 5))
        a1 = self._touch(self.a_dirs, d1, "a_lite_200101.nc4")
        a2 = self._touch(self.a_dirs, d2, "a_lite_200102.nc4")
        a3 = self._touch(self.a_dirs, d3, "a_lite_200103.nc4")
        b_files = {date: self._touch(self.b_dirs, date, f"b_lite_{date:%y%m%d}.nc4") for date in (d1, d2, d3)}

        # d1 lacks the B file of the day before, d3 the day after and d4 has no A file.
        configs = discovery.build_matchup_configs(
            self.a_dirs, self.b_dirs, d1, d4, ndays_buffer=0, outfile_format=str(self.tmp_dir / "out_%Y%m%d.nc4")
        )
        self.assertEqual([config.a_file for config in configs], [a1, a2, a3])

        configs = discovery.build_matchup_configs(self.a_dirs, self.b_dirs, d1, d4, ndays_buffer=1, flag0_only=True)
        self.assertEqual(len(configs), 1)
        config = configs[0]
        self.assertEqual(config.a_file, a2)
        self.assertEqual(config.b_files, [b_files[d1], b_files[d2], b_files[d3]])
        self.assertEqual(config.output_file, Path("litematch_20200102.nc4"))
        self.assertTrue(config.flag0_only)

    def test_build_run_config(self):
        date = datetime.date(2020, 1, 1)
        self._touch(self.a_dirs, date, "a.nc4")
        self._touch(self.b_dirs, date, "b.nc4")
        run_config = discovery.build_run_config(
            self.a_dirs, self.b_dirs, date, date, nprocs=3, self_crossing=False, max_distance_km=50.0
        )
        self.assertEqual(run_config.nprocs, 3)
        self.assertEqual(len(run_config.matchups), 1)
        self.assertEqual(run_config.matchups[0].max_distance_km, 50.0)


if __name__ == "__main__":
    unittest.main()
