import math

import numpy as np
import pytest

from selfcar.gnss_localizer import GNSSLocalizer, NavSatFix
from selfcar.navsat import ll_to_utm

LAT = 37.24
LON = 127.07


def test_first_fix_sets_position():
    loc = GNSSLocalizer(3)
    loc.on_fix(NavSatFix(LAT, LON))
    point = ll_to_utm(LAT, LON)
    state = loc.state()
    assert state[0] == pytest.approx(point.easting)
    assert state[1] == pytest.approx(point.northing)
    assert state[2] == 0.0
    assert state[3] == 0.0


def test_not_available_after_first_fix():
    loc = GNSSLocalizer(3)
    loc.on_fix(NavSatFix(LAT, LON))
    assert loc.is_gps_available() is False


def test_available_once_after_second_fix():
    loc = GNSSLocalizer(3)
    loc.on_fix(NavSatFix(LAT, LON))
    loc.on_fix(NavSatFix(LAT + 0.0001, LON))
    assert loc.is_gps_available() is True
    assert loc.is_gps_available() is False


def test_heading_north():
    loc = GNSSLocalizer(3)
    loc.on_fix(NavSatFix(LAT, LON))
    loc.on_fix(NavSatFix(LAT + 0.0001, LON))
    assert loc.state()[2] == pytest.approx(math.pi / 2, abs=0.05)


def test_heading_east():
    loc = GNSSLocalizer(3)
    loc.on_fix(NavSatFix(LAT, LON))
    loc.on_fix(NavSatFix(LAT, LON + 0.0001))
    assert loc.state()[2] == pytest.approx(0.0, abs=0.05)


def test_heading_west():
    loc = GNSSLocalizer(3)
    loc.on_fix(NavSatFix(LAT, LON))
    loc.on_fix(NavSatFix(LAT, LON - 0.0001))
    assert abs(loc.state()[2]) == pytest.approx(math.pi, abs=0.05)


def test_covariance_zero_after_initial_sample():
    loc = GNSSLocalizer(3)
    loc.on_fix(NavSatFix(LAT, LON))
    loc.on_velocity(2.0)
    loc.on_fix(NavSatFix(LAT + 0.0001, LON))
    cov = loc.state_covariance()
    assert cov.shape == (4, 4)
    assert np.allclose(cov, 0.0)


def test_covariance_grows_with_changing_motion():
    loc = GNSSLocalizer(3)
    loc.on_fix(NavSatFix(LAT, LON))
    loc.on_velocity(2.0)
    loc.on_velocity(4.0)
    loc.on_fix(NavSatFix(LAT + 0.0001, LON))
    loc.on_fix(NavSatFix(LAT + 0.0003, LON))
    cov = loc.state_covariance()
    assert cov[3, 3] > 0
    assert cov[1, 1] > 0
    assert np.allclose(cov, cov.T)


def test_velocity_and_stop():
    loc = GNSSLocalizer(3)
    loc.on_fix(NavSatFix(LAT, LON))
    loc.on_velocity(2.0)
    assert loc.state()[3] == 2.0
    assert loc.is_stop() is False
    loc.on_velocity(0.5)
    assert loc.is_stop() is True


def test_first_fix_resets_velocity():
    loc = GNSSLocalizer(3)
    loc.on_velocity(3.0)
    loc.on_fix(NavSatFix(LAT, LON))
    assert loc.state()[3] == 0.0
    assert loc.is_stop() is True


def test_state_is_a_copy():
    loc = GNSSLocalizer(3)
    loc.on_fix(NavSatFix(LAT, LON))
    state = loc.state()
    state[0] = -1.0
    assert loc.state()[0] == pytest.approx(ll_to_utm(LAT, LON).easting)


def test_invalid_sample_num():
    with pytest.raises(ValueError):
        GNSSLocalizer(0)