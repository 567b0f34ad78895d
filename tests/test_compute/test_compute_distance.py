import logging
import unittest

import numpy as np
import numpy.testing as npt

from litematch import utils
from litematch.compute import constants, distance

logger = logging.getLogger(__name__)
utils.enable_logging(extra_loggers=[__name__])


class DistanceTestCase(unittest.TestCase):
    def test_same_point_is_zero(self):
        dist = distance.great_circle_distance(-105.25, 40.0, -105.25, 40.0)
        self.assertEqual(dist.dtype, np.float32)
        self.assertEqual(float(dist), 0.0)

    def test_one_degree_of_latitude(self):
        expected = float(constants.EARTH_RADIUS_KM) * np.pi / 180.0
        dist = distance.great_circle_distance(0.0, 0.0, 0.0, 1.0)
        npt.assert_allclose(dist, expected, rtol=1e-5)
        self.assertAlmostEqual(float(dist), 111.32, places=1)

    def test_one_degree_of_longitude_shrinks_with_latitude(self):
        at_equator = distance.great_circle_distance(0.0, 0.0, 1.0, 0.0)
        at_60 = distance.great_circle_distance(0.0, 60.0, 1.0, 60.0)
        npt.assert_allclose(at_60, at_equator / 2, rtol=1e-3)

    def test_antipodal(self):
        dist = distance.great_circle_distance(0.0, 0.0, 180.0, 0.0)
        npt.assert_allclose(dist, np.pi * float(constants.EARTH_RADIUS_KM), rtol=1e-5)

        dist = distance.great_circle_distance(0.0, 90.0, 0.0, -90.0)
        npt.assert_allclose(dist, np.pi * float(constants.EARTH_RADIUS_KM), rtol=1e-5)

    def test_dateline(self):
        across = distance.great_circle_distance(179.0, 0.0, -179.0, 0.0)
        direct = distance.great_circle_distance(0.0, 0.0, 2.0, 0.0)
        npt.assert_allclose(across, direct, rtol=1e-4)

    def test_symmetric_and_vectorized(self):
        rng = np.random.default_rng(42)
        lon = rng.uniform(-180, 180, 50).astype(np.float32)
        lat = rng.uniform(-90, 90, 50).astype(np.float32)

        dist_ab = distance.great_circle_distance(lon[0], lat[0], lon, lat)
        dist_ba = distance.great_circle_distance(lon, lat, lon[0], lat[0])
        self.assertEqual(dist_ab.shape, (50,))
        self.assertEqual(dist_ab.dtype, np.float32)
        npt.assert_allclose(dist_ab, dist_ba, rtol=1e-5, atol=1e-3)
        self.assertTrue(np.all(dist_ab >= 0))
        self.assertTrue(np.all(dist_ab <= np.pi * float(constants.EARTH_RADIUS_KM) * 1.0001))

    def test_time_difference(self):
        dt = distance.time_difference(1000.0, np.array([400.0, 1000.0, 1600.5]))
        self.assertEqual(dt.dtype, np.float64)
        npt.assert_array_equal(dt, [600.0, 0.0, -600.5])


if __name__ == "__main__":
    unittest.main()
