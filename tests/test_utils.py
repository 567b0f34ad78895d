import logging
import unittest

from litematch import utils

logger = logging.getLogger(__name__)
utils.enable_logging(extra_loggers=[__name__])


class UtilsTestCase(unittest.TestCase):
    def test_log_progress_steps(self):
        lgr = logging.getLogger("litematch.test_utils")
        progress = utils.LogProgress("Testing", step_percent=25.0, lgr=lgr)
        with self.assertLogs(lgr, level="INFO") as logs:
            for n_done in range(1, 101):
                progress(n_done, 100)
        self.assertEqual(len(logs.records), 4)
        self.assertIn("Testing: 25/100 (25%)", logs.output[0])
        self.assertIn("100/100", logs.output[-1])

    def test_track_performance(self):
        metrics = {}

        def add(x, y):
            return x + y

        timed = utils.track_performance(add, metrics)
        self.assertEqual(timed(1, 2), 3)
        self.assertEqual(timed(2, 2), 4)
        self.assertEqual(timed.__name__, "add")

        stats = metrics[add.__qualname__]
        self.assertEqual(stats["count"], 2)
        self.assertGreaterEqual(stats["max"], stats["min"])
        self.assertGreaterEqual(stats["total"], stats["max"])

        utils.track_performance(add, metrics, label="second stage")(0, 0)
        lines = utils.format_performance(metrics).splitlines()
        self.assertEqual(len(lines), 3)
        self.assertTrue(lines[0].startswith("Stage timing ("))
        self.assertIn("count=2", lines[1])
        self.assertIn("second stage: count=1", lines[2])

    def test_track_performance_failed_call(self):
        metrics = {}

        def fail():
            raise ValueError("nope")

        with self.assertRaises(ValueError):
            utils.track_performance(fail, metrics, label="fail")()
        self.assertEqual(metrics, {})


if __name__ == "__main__":
    unittest.main()
