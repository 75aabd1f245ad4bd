import math

import numpy as np
import pytest

from selfcar.erp42 import ERP42
from selfcar.gnss_localizer import NavSatFix
from selfcar.kalman_filter import KalmanFilterError
from selfcar.localizer import Localizer, Pose
from selfcar.navsat import ll_to_utm
from selfcar.transform import Quaternion
from selfcar.trigonometric import normalize

LAT = 37.2
LON = 126.8
STEP = 0.0001
POS_COV = (1.0, 0.0, 0.0, 0.0, 1.0, 0.0, 0.0, 0.0, 1.0)
IMU_COV = (0.1, 0.0, 0.0, 0.0, 0.2, 0.0, 0.0, 0.0, 0.3)


def _fix(i):
    return NavSatFix(LAT + i * STEP, LON, position_covariance=POS_COV)


def _forward(erp):
    erp.on_encoder(5000)
    erp.on_encoder(5010)


def _backward(erp):
    erp.on_encoder(5000)
    erp.on_encoder(4990)


def _initialized():
    erp = ERP42()
    loc = Localizer(erp)
    loc.on_fix(_fix(0), 0.0)
    start = ll_to_utm(LAT, LON)
    loc.on_initial_pose(
        start.easting - loc.utm_offset_x, start.northing - loc.utm_offset_y, Quaternion()
    )
    return erp, loc


def test_first_fix_initializes_position():
    loc = Localizer()
    assert loc.on_fix(_fix(0), 0.0) is None
    point = ll_to_utm(LAT, LON)
    data = loc.gps_data
    assert data[0] == pytest.approx(point.easting)
    assert data[1] == pytest.approx(point.northing)
    assert data[2] == 0.0


def test_heading_follows_motion_without_filter():
    loc = Localizer()
    loc.on_fix(_fix(0), 0.0)
    assert loc.on_fix(_fix(1), 1.0) is None
    assert abs(loc.gps_data[2] - math.pi / 2) < 0.05


def test_backward_heading_is_flipped():
    erp = ERP42()
    _backward(erp)
    loc = Localizer(erp)
    loc.on_fix(_fix(0), 0.0)
    loc.on_fix(_fix(1), 1.0)
    assert abs(loc.gps_data[2] + math.pi / 2) < 0.05


def test_bestvel_signed_by_state():
    erp = ERP42()
    loc = Localizer(erp)
    loc.on_bestvel(3.0)
    assert loc.gps_data[3] == 0.0
    _forward(erp)
    loc.on_bestvel(3.0)
    assert loc.gps_data[3] == 3.0
    erp.on_encoder(5000)
    loc.on_bestvel(3.0)
    assert loc.gps_data[3] == -3.0


def test_bestpos_stores_position_type():
    loc = Localizer()
    loc.on_bestpos("NARROW_INT")
    assert loc.position_type == "NARROW_INT"


def test_imu_integrates_and_wraps_heading():
    loc = Localizer()
    loc.on_imu(0.5, IMU_COV, 0.0)
    assert loc.local_heading == 0.0
    loc.on_imu(0.5, IMU_COV, 1.0)
    assert loc.local_heading == pytest.approx(0.5)
    loc.on_imu(4.0, IMU_COV, 2.0)
    assert loc.local_heading == pytest.approx(normalize(4.5))
    assert loc.imu_available is True


def test_initial_pose_sets_filter_state():
    loc = Localizer(utm_offset_x=100.0, utm_offset_y=200.0)
    q = Quaternion(w=math.cos(0.25), z=math.sin(0.25))
    loc.on_initial_pose(1.0, 2.0, q)
    state = loc.kf.x.reshape(-1)
    assert state[0] == pytest.approx(101.0)
    assert state[1] == pytest.approx(202.0)
    assert state[2] == pytest.approx(0.5)
    assert loc.local_heading == pytest.approx(0.5)
    assert np.allclose(np.diag(loc.kf.P), [1.0, 1.0, 0.0, 0.0, 0.0])


def test_filter_requires_initial_pose():
    loc = Localizer()
    with pytest.raises(KalmanFilterError):
        loc.filter(1.0)


def test_invalid_sample_num():
    with pytest.raises(ValueError):
        Localizer(sample_num=0)


def test_filter_cycle_and_departure_stages():
    erp, loc = _initialized()
    loc.on_imu(0.0, IMU_COV, 0.5)
    pose = loc.on_fix(_fix(1), 1.0)
    assert isinstance(pose, Pose)
    assert len(pose.covariance) == 36
    assert pose.covariance[21] == 0.1
    assert pose.covariance[28] == 0.2
    assert pose.covariance[35] == 0.3
    assert pose.orientation.yaw() == pytest.approx(pose.yaw)
    assert all(math.isfinite(v) for v in (pose.x, pose.y, pose.yaw))
    assert loc.marker_color == (1.0, 0.0, 0.0, 1.0)
    assert loc.imu_available is False

    _forward(erp)
    loc.on_fix(_fix(2), 1.5)
    assert loc.marker_color == (0.0, 0.0, 1.0, 1.0)
    loc.on_fix(_fix(3), 2.6)
    assert loc.marker_color == (0.0, 1.0, 1.0, 1.0)
    loc.on_fix(_fix(4), 3.7)
    assert loc.marker_color == (1.0, 0.0, 1.0, 1.0)
    loc.on_fix(_fix(5), 5.0)
    assert loc.marker_color == (1.0, 0.0, 0.0, 1.0)
    assert loc.pose is not None and math.isfinite(loc.pose.x)


def test_filter_tracks_position_near_fixes():
    erp, loc = _initialized()
    _forward(erp)
    for i in range(1, 8):
        pose = loc.on_fix(_fix(i), float(i))
    point = ll_to_utm(LAT + 7 * STEP, LON)
    assert abs(pose.x - point.easting) < 20.0
    assert abs(pose.y - point.northing) < 20.0


def test_yaw_bias_from_stable_gps_heading():
    erp, loc = _initialized()
    _forward(erp)
    loc.local_heading = 0.3
    for i in range(1, 6):
        loc.on_fix(_fix(i), float(i))
    assert abs(loc.yaw_bias - math.pi / 2) < 0.05
    assert loc.local_heading == 0.0


def test_predict_and_update_report_success():
    _, loc = _initialized()
    assert loc.predict() is True
    assert loc.update(1.0) is True
    assert loc.kf.x.shape == (5, 1)