"""Motion and measurement model of the GNSS/IMU/odometry localization filter.

The filter state is (x, y, yaw, yaw change per step, forward speed). The
measurement vector is (gps x, gps y, gps heading, imu heading, imu yaw change,
odometry yaw change, gps speed, odometry speed).
"""

from __future__ import annotations

import math

import numpy as np

from selfcar.trigonometric import normalize, to_degree

__all__ = [
    "X",
    "Y",
    "YAW",
    "DYAW",
    "VX",
    "DIM_STATE",
    "DIM_MEASUREMENT",
    "predict_state",
    "motion_jacobian",
    "process_noise",
    "measurement_matrix",
    "measurement_noise",
    "wrap_heading",
]

X, Y, YAW, DYAW, VX = 0, 1, 2, 3, 4
DIM_STATE = 5
DIM_MEASUREMENT = 8

_CONVERGED_SPEED_STD = 10.0
_CONVERGED_YAW_STD = 1.0
_UNCONVERGED_POSITION_NOISE = 0.05
_YAW_NOISE = 0.0005
_DYAW_NOISE = 0.1
_SPEED_NOISE = 0.1

_IMU_NOISE_SCALE = 50
_ODOMETRY_NOISE = 0.005
_IMU_DISABLED_NOISE = 10000.0
_HEADING_JUMP_DEGREES = 300


def _state(x) -> np.ndarray:
    state = np.asarray(x, dtype=float).reshape(-1)
    if state.shape != (DIM_STATE,):
        raise ValueError(f"state must have {DIM_STATE} elements, got {state.size}")
    return state


def _covariance(P) -> np.ndarray:
    matrix = np.asarray(P, dtype=float)
    if matrix.shape != (DIM_STATE, DIM_STATE):
        raise ValueError(f"covariance must be {DIM_STATE}x{DIM_STATE}, got {matrix.shape}")
    return matrix


def predict_state(x, dt: float, stopped: bool = False) -> np.ndarray:
    """Propagate the state over ``dt`` seconds with a constant-velocity model.

    While ``stopped`` the heading is held and yaw rate and speed are zeroed;
    the position step still uses the previous speed.
    """
    cur = _state(x)
    yaw, yaw_dt, vx = cur[YAW], cur[DYAW], cur[VX]
    nxt = np.empty(DIM_STATE)
    nxt[X] = cur[X] + vx * math.cos(yaw) * dt
    nxt[Y] = cur[Y] + vx * math.sin(yaw) * dt
    nxt[YAW] = yaw + yaw_dt
    nxt[DYAW] = yaw_dt
    nxt[VX] = vx
    if stopped:
        nxt[YAW] = yaw
        nxt[DYAW] = 0.0
        nxt[VX] = 0.0
    nxt[YAW] = normalize(nxt[YAW])
    return nxt


def motion_jacobian(x, dt: float) -> np.ndarray:
    """Jacobian of the motion model at state ``x``."""
    cur = _state(x)
    yaw, vx = cur[YAW], cur[VX]
    A = np.eye(DIM_STATE)
    A[X, YAW] = -vx * dt * math.sin(yaw)
    A[X, VX] = dt * math.cos(yaw)
    A[Y, YAW] = -vx * dt * math.cos(yaw)
    A[Y, VX] = dt * math.sin(yaw)
    A[YAW, DYAW] = 1.0
    return A


def process_noise(x, P, dt: float) -> np.ndarray:
    """Process noise covariance.

    Once the speed and yaw estimates have converged, the position noise is
    derived from their covariance; otherwise a constant is used.
    """
    cur = _state(x)
    cov = _covariance(P)
    yaw, vx = cur[YAW], cur[VX]
    Q = np.zeros((DIM_STATE, DIM_STATE))

    speed_std = math.sqrt(cov[VX, VX])
    yaw_std = math.sqrt(cov[YAW, YAW])
    if speed_std < _CONVERGED_SPEED_STD and yaw_std < _CONVERGED_YAW_STD:
        jp = np.array(
            [
                [math.cos(yaw), -vx * math.sin(yaw)],
                [math.sin(yaw), vx * math.cos(yaw)],
            ]
        )
        q_vx_yaw = np.array(
            [
                [cov[VX, VX] * dt, cov[VX, YAW] * dt],
                [cov[YAW, VX] * dt, cov[YAW, YAW] * dt],
            ]
        )
        Q[:2, :2] = jp @ q_vx_yaw @ jp.T
    else:
        Q[X, X] = _UNCONVERGED_POSITION_NOISE
        Q[Y, Y] = _UNCONVERGED_POSITION_NOISE

    Q[YAW, YAW] = _YAW_NOISE
    Q[DYAW, DYAW] = _DYAW_NOISE
    Q[VX, VX] = _SPEED_NOISE
    return Q


def measurement_matrix() -> np.ndarray:
    """Map from state to the eight-element measurement vector."""
    C = np.zeros((DIM_MEASUREMENT, DIM_STATE))
    for row, column in enumerate((X, Y, YAW, YAW, DYAW, DYAW, VX, VX)):
        C[row, column] = 1.0
    return C


def measurement_noise(
    position_covariance,
    gps_yaw_var: float,
    gps_vel_var: float,
    wzdt_var: float,
    imu_available: bool = True,
) -> np.ndarray:
    """Measurement noise covariance for one update.

    ``position_covariance`` is the fix's 3x3 covariance in row order. Without
    fresh IMU data the IMU rows are given a very large variance.
    """
    pos = np.asarray(position_covariance, dtype=float).reshape(-1)
    if pos.size < 5:
        raise ValueError("position covariance must hold a 3x3 matrix in row order")
    R = np.zeros((DIM_MEASUREMENT, DIM_MEASUREMENT))
    R[0, 0] = pos[0] / 10.0
    R[1, 1] = pos[4] / 10.0
    R[2, 2] = gps_yaw_var
    R[3, 3] = wzdt_var * _IMU_NOISE_SCALE
    R[4, 4] = wzdt_var * _IMU_NOISE_SCALE
    R[5, 5] = _ODOMETRY_NOISE
    R[6, 6] = gps_vel_var
    R[7, 7] = _ODOMETRY_NOISE
    if not imu_available:
        R[3, 3] = _IMU_DISABLED_NOISE
        R[4, 4] = _IMU_DISABLED_NOISE
    return R


def wrap_heading(heading: float, reference: float) -> float:
    """Shift ``heading`` by a full turn when it sits across the +/-pi seam from ``reference``."""
    error = to_degree(abs(heading - reference))
    if error > _HEADING_JUMP_DEGREES:
        if heading < 0:
            heading += 2 * math.pi
        elif heading > 0:
            heading -= 2 * math.pi
    return heading