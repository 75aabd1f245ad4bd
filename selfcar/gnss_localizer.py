"""GNSS-only pose estimate: UTM position, heading from motion and speed."""

from __future__ import annotations

import math
from dataclasses import dataclass, field

import numpy as np

from selfcar.covariance import update_covariance
from selfcar.navsat import ll_to_utm

__all__ = ["NavSatFix", "GNSSLocalizer"]

X, Y, YAW, V = 0, 1, 2, 3
_DATA_NUM = 4
_STOP_SPEED = 0.6


@dataclass(frozen=True)
class NavSatFix:
    """A satellite fix in degrees, with its 3x3 position covariance in row order."""

    latitude: float
    longitude: float
    altitude: float = 0.0
    position_covariance: tuple[float, ...] = field(default=(0.0,) * 9)


class GNSSLocalizer:
    """Tracks x, y, heading and speed from GNSS fixes and velocity reports."""

    def __init__(self, sample_num: int = 3):
        if sample_num < 1:
            raise ValueError("sample_num must be at least 1")
        self.sample_num = sample_num
        self._sample = np.zeros((sample_num, _DATA_NUM))
        self._x = np.zeros(_DATA_NUM)
        self._cov = np.zeros((_DATA_NUM, _DATA_NUM))
        self._init_gps = True
        self._init_gps_sample = False
        self._init_vel_sample = False
        self._available = False

    def on_fix(self, fix: NavSatFix) -> None:
        """Take a fix; heading is the direction of travel from the previous one."""
        point = ll_to_utm(fix.latitude, fix.longitude)
        easting, northing = point.easting, point.northing

        if self._init_gps:
            self._x[:] = (easting, northing, 0.0, 0.0)
            self._init_gps_sample = True
            self._init_vel_sample = True
            self._init_gps = False
            return

        theta = math.atan2(northing - self._x[Y], easting - self._x[X])
        self._x[X] = easting
        self._x[Y] = northing
        self._x[YAW] = theta

        if self._init_gps_sample:
            self._sample[:, X] = self._x[X]
            self._sample[:, Y] = self._x[Y]
            self._sample[:, YAW] = self._x[YAW]
            self._init_gps_sample = False

        self._sample, self._cov = update_covariance(self._sample, self._x.reshape(1, -1))
        self._available = True

    def on_velocity(self, horizontal_speed: float) -> None:
        """Take a horizontal speed report in m/s."""
        self._x[V] = float(horizontal_speed)
        if self._init_vel_sample:
            self._sample[:, V] = self._x[V]
            self._init_vel_sample = False

    def state(self) -> np.ndarray:
        """Current (x, y, yaw, v)."""
        return self._x.copy()

    def state_covariance(self) -> np.ndarray:
        """Covariance of the state over the sample window."""
        return self._cov.copy()

    def is_gps_available(self) -> bool:
        """True once per new fix after initialisation; reading it clears the flag."""
        result = (not self._init_gps and not self._init_gps_sample) and self._available
        self._available = False
        return result

    def is_stop(self) -> bool:
        return not self._x[V] > _STOP_SPEED