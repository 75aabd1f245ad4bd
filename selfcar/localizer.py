"""GNSS/IMU/odometry localization with an extended Kalman filter."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass

import numpy as np

from selfcar.covariance import sample_covariance, update_covariance, update_sample
from selfcar.erp42 import ERP42, DriveState
from selfcar.gnss_localizer import NavSatFix
from selfcar.kalman_filter import KalmanFilter, KalmanFilterError
from selfcar.localizer_model import (
    DIM_STATE,
    DYAW,
    VX,
    X,
    Y,
    YAW,
    measurement_matrix,
    measurement_noise,
    motion_jacobian,
    predict_state,
    process_noise,
    wrap_heading,
)
from selfcar.navsat import ll_to_utm
from selfcar.transform import Quaternion, to_euler_angle, to_quaternion
from selfcar.trigonometric import normalize, to_degree, to_radian

__all__ = ["Pose", "Localizer"]

log = logging.getLogger(__name__)

GPS_X, GPS_Y, GPS_YAW, GPS_V = 0, 1, 2, 3
_DIM_GPS = 4

DEFAULT_UTM_OFFSET_X = 361875.0
DEFAULT_UTM_OFFSET_Y = 4124215.34631

_WHEELBASE = 1.04
_STEER_CENTER = 75
_STEER_UNITS_PER_DEGREE = 71.0
_YAW_GATE = 0.025
_BIAS_FRAMES = 5

_RED = (1.0, 0.0, 0.0, 1.0)
_BLUE = (0.0, 0.0, 1.0, 1.0)
_CYAN = (0.0, 1.0, 1.0, 1.0)
_MAGENTA = (1.0, 0.0, 1.0, 1.0)

# (seconds since departure, position noise, marker colour)
_DEPARTURE_STAGES = ((1.0, 1000.0, _BLUE), (2.0, 100.0, _CYAN), (3.0, 10.0, _MAGENTA))
_STOPPED_POSITION_NOISE = 10000.0


@dataclass(frozen=True)
class Pose:
    """Filtered planar pose in UTM meters with a 6x6 covariance in row order."""

    x: float
    y: float
    yaw: float
    covariance: tuple[float, ...]

    @property
    def orientation(self) -> Quaternion:
        return to_quaternion(0.0, 0.0, self.yaw).normalized()


def _stable_covariance(P: np.ndarray) -> np.ndarray:
    """Mark negative variances as unconverged so the noise model uses its constant branch."""
    guarded = P.copy()
    for index in (VX, YAW):
        if not guarded[index, index] >= 0:
            guarded[index, index] = math.inf
    return guarded


class Localizer:
    """Fuses GNSS fixes, IMU yaw rate and vehicle feedback into a pose estimate."""

    def __init__(
        self,
        erp: ERP42 | None = None,
        sample_num: int = 3,
        utm_offset_x: float = DEFAULT_UTM_OFFSET_X,
        utm_offset_y: float = DEFAULT_UTM_OFFSET_Y,
    ):
        if sample_num < 1:
            raise ValueError("sample_num must be at least 1")
        self.erp = erp if erp is not None else ERP42()
        self.sample_num = sample_num
        self.utm_offset_x = float(utm_offset_x)
        self.utm_offset_y = float(utm_offset_y)

        self.local_heading = 0.0
        self.wz_dt = 0.0
        self._wzdt_sample = np.zeros((sample_num, 1))
        self._wzdt_cov = np.zeros((1, 1))
        self._headings = 0.0
        self._frame_count = 0
        self._imu_prev_time: float | None = None
        self._q_yaw_bias = to_quaternion(0.0, 0.0, 0.0)
        self._imu_orientation_covariance: tuple[float, ...] = (0.0,) * 9
        self.imu_available = False

        self._fix: NavSatFix | None = None
        self.position_type = ""
        self._gps_sample = np.zeros((sample_num, _DIM_GPS))
        self._gps_data = np.zeros(_DIM_GPS)
        self._gps_cov = np.zeros((_DIM_GPS, _DIM_GPS))
        self._gps_prev_time: float | None = None
        self._gps_elapsed = 0.0
        self._init_gps = True
        self._init_gps_sample = False
        self._init_vel_sample = False

        self.kf = KalmanFilter()
        self._kalman_ready = False
        self._stable: float | None = None
        self.marker_color = _RED
        self.pose: Pose | None = None

    @property
    def gps_data(self) -> np.ndarray:
        """Latest GNSS (x, y, heading, speed)."""
        return self._gps_data.copy()

    @property
    def gps_covariance(self) -> np.ndarray:
        return self._gps_cov.copy()

    @property
    def yaw_bias(self) -> float:
        """Yaw offset applied to the integrated IMU heading, in radians."""
        return self._q_yaw_bias.yaw()

    def _stopped(self) -> bool:
        return self.erp.state() is DriveState.STOP

    def on_imu(self, angular_z: float, orientation_covariance=(0.0,) * 9, now: float = 0.0) -> None:
        """Integrate the IMU yaw rate (rad/s) received at time ``now`` (seconds)."""
        dt = 0.0 if self._imu_prev_time is None else now - self._imu_prev_time
        self.local_heading = normalize(self.local_heading + angular_z * dt)
        self.wz_dt = normalize(self.wz_dt + angular_z * dt)
        self._wzdt_sample = update_sample(self._wzdt_sample, [[self.wz_dt]])
        self._imu_orientation_covariance = tuple(float(v) for v in orientation_covariance)
        self._imu_prev_time = now
        self.imu_available = True

    def on_fix(self, fix: NavSatFix, now: float) -> Pose | None:
        """Take a GNSS fix; returns the filtered pose once the filter is initialized."""
        self._fix = fix
        point = ll_to_utm(fix.latitude, fix.longitude)
        easting, northing = point.easting, point.northing

        if self._init_gps:
            self._gps_data[:] = (easting, northing, 0.0, 0.0)
            self._init_gps_sample = True
            self._init_vel_sample = True
            self._init_gps = False
            self._gps_prev_time = now
            return None

        theta = math.atan2(northing - self._gps_data[GPS_Y], easting - self._gps_data[GPS_X])
        if self.erp.state() is DriveState.BACKWARD:
            theta += math.pi
        theta = normalize(theta)
        self._gps_data[GPS_X] = easting
        self._gps_data[GPS_Y] = northing
        self._gps_data[GPS_YAW] = theta

        if self._init_gps_sample:
            self._gps_sample[:, GPS_X] = easting
            self._gps_sample[:, GPS_Y] = northing
            self._gps_sample[:, GPS_YAW] = theta
            self._init_gps_sample = False

        self._gps_sample, self._gps_cov = update_covariance(
            self._gps_sample, self._gps_data.reshape(1, -1)
        )

        pose = self.filter(now) if self._kalman_ready else None

        if self.erp.is_available():
            log.info(
                "ERP mode %s estop %s gear %s enc %d state %s steer %d vel %f",
                self.erp.mode(),
                self.erp.estop(),
                self.erp.gear(),
                self.erp.encoder(),
                self.erp.state().value,
                self.erp.steer(),
                self.erp.velocity(),
            )
        self.imu_available = False
        return pose

    def on_bestvel(self, horizontal_speed: float) -> None:
        """Take a GNSS speed report in m/s, signed by the direction of travel."""
        speed = float(horizontal_speed)
        state = self.erp.state()
        if state is DriveState.BACKWARD:
            speed = -speed
        elif state is DriveState.STOP:
            speed = 0.0
        self._gps_data[GPS_V] = speed

    def on_bestpos(self, position_type: str) -> None:
        self.position_type = position_type

    def on_initial_pose(self, x: float, y: float, orientation: Quaternion) -> None:
        """Start the filter at a map-frame position and orientation."""
        roll, pitch, yaw = to_euler_angle(orientation)
        log.info("initial pose RPY: %f %f %f", roll, pitch, yaw)
        state = np.zeros(DIM_STATE)
        state[X] = x + self.utm_offset_x
        state[Y] = y + self.utm_offset_y
        state[YAW] = yaw
        covariance = np.zeros((DIM_STATE, DIM_STATE))
        covariance[X, X] = 1.0
        covariance[Y, Y] = 1.0
        self.kf.init(state, covariance)
        self._kalman_ready = True
        self.local_heading = yaw
        log.info("Kalman filter initialized")

    def filter(self, now: float) -> Pose:
        """Run one predict/update cycle and return the filtered pose."""
        if not self._kalman_ready:
            raise KalmanFilterError("Kalman filter is not initialized")
        prev = self._gps_prev_time
        self._gps_elapsed = 0.0 if prev is None else now - prev
        log.info("time elapsed: %f", self._gps_elapsed)

        self.predict()
        self.update(now)

        result = self.kf.x.reshape(-1)
        gps_cov = self._gps_cov.ravel(order="F")
        imu_cov = self._imu_orientation_covariance
        covariance = [0.0] * 36
        covariance[0] = float(gps_cov[0])
        covariance[7] = float(gps_cov[1])
        covariance[21] = imu_cov[0]
        covariance[28] = imu_cov[4]
        covariance[35] = imu_cov[8]
        self.pose = Pose(
            x=float(result[X]),
            y=float(result[Y]),
            yaw=float(result[YAW]),
            covariance=tuple(covariance),
        )
        self._gps_prev_time = now
        return self.pose

    def predict(self) -> bool:
        """Propagate the filter over the last GNSS interval; False if it failed."""
        state = self.kf.x.reshape(-1)
        covariance = self.kf.P
        dt = self._gps_elapsed
        x_next = predict_state(state, dt, self._stopped())
        A = motion_jacobian(state, dt)
        Q = process_noise(state, _stable_covariance(covariance), dt)
        try:
            self.kf.predict(x_next, A, Q)
        except KalmanFilterError as exc:
            log.warning("predict failed: %s", exc)
            return False
        return True

    def update(self, now: float) -> bool:
        """Correct the filter with the current measurements; False if it failed."""
        x_next = self.kf.x.reshape(-1)
        dt = self._gps_elapsed

        heading = normalize(self.local_heading + self._q_yaw_bias.yaw())
        steer_angle = to_radian((-self.erp.steer() + _STEER_CENTER) / _STEER_UNITS_PER_DEGREE)
        erp_wzdt = self.erp.velocity() / _WHEELBASE * math.tan(steer_angle) * dt
        heading = wrap_heading(heading, x_next[YAW])
        gps_heading = wrap_heading(float(self._gps_data[GPS_YAW]), x_next[YAW])

        if self.wz_dt == 0:
            self.wz_dt = float(x_next[DYAW])

        z = np.array(
            [
                self._gps_data[GPS_X],
                self._gps_data[GPS_Y],
                gps_heading,
                heading,
                self.wz_dt,
                erp_wzdt,
                self._gps_data[GPS_V],
                self.erp.velocity(),
            ]
        )
        stopped = self._stopped()
        if stopped:
            z[4:8] = 0.0
        self.wz_dt = 0.0

        self._wzdt_cov = sample_covariance(self._wzdt_sample)
        position_cov = self._fix.position_covariance if self._fix is not None else (0.0,) * 9
        C = measurement_matrix()
        R = measurement_noise(
            position_cov,
            float(self._gps_cov[GPS_YAW, GPS_YAW]),
            float(self._gps_cov[GPS_V, GPS_V]),
            float(self._wzdt_cov[0, 0]),
            self.imu_available,
        )
        if not self.imu_available:
            log.error("IMU disabled")

        yaw_variance = float(self._gps_cov[GPS_YAW, GPS_YAW])
        if yaw_variance < _YAW_GATE * _YAW_GATE:
            self._headings += float(self._gps_data[GPS_YAW])
            self._frame_count += 1
            if self._frame_count >= _BIAS_FRAMES and self.erp.state() is DriveState.FORWARD:
                self._q_yaw_bias = to_quaternion(
                    0.0, 0.0, self._headings / _BIAS_FRAMES
                ).normalized()
                self._headings = 0.0
                self._frame_count = 0
                self.local_heading = 0.0
                log.warning("yaw bias set to %f deg", to_degree(self.yaw_bias))
        else:
            self._headings = 0.0
            self._frame_count = 0
            log.warning("unstable GPS yaw, variance %f", yaw_variance)

        self.marker_color = _RED
        if self._stable is None:
            self._stable = now
        if stopped:
            self._stable = now
            R[X, X] = _STOPPED_POSITION_NOISE
            R[Y, Y] = _STOPPED_POSITION_NOISE
        else:
            since_departure = now - self._stable
            for limit, noise, color in _DEPARTURE_STAGES:
                if since_departure < limit:
                    R[X, X] = noise
                    R[Y, Y] = noise
                    self.marker_color = color
                    break

        try:
            self.kf.update(z, C, R)
        except KalmanFilterError as exc:
            log.warning("update failed: %s", exc)
            return False
        return True