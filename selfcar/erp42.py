"""Vehicle feedback state of the ERP42 platform."""

from __future__ import annotations

from enum import Enum

import numpy as np

from selfcar.covariance import update_covariance

__all__ = ["DriveState", "ERP42"]

_SAMPLE_SIZE = 10
_DEFAULT_COVARIANCE = 0.0005


class DriveState(str, Enum):
    """Direction of travel inferred from the feedback."""

    STOP = "STOP"
    FORWARD = "FORWARD"
    BACKWARD = "BACKWARD"
    GO = "GO"


def _cdiv(a: int, b: int) -> int:
    """Integer division truncating toward zero."""
    q = abs(a) // abs(b)
    return q if (a >= 0) == (b >= 0) else -q


def _first_code(data) -> int:
    if isinstance(data, int):
        return data
    if isinstance(data, (bytes, bytearray)):
        return data[0] if data else 0
    text = str(data)
    return ord(text[0]) if text else 0


class ERP42:
    """Collects mode, gear, speed, steering and encoder feedback."""

    def __init__(self):
        self._aorm: int | None = None
        self._estop: int | None = None
        self._gear: int | None = None
        self._brake: int | None = None
        self._velocity: int = 0
        self._velocity_enabled = False
        self._steer: int = 0
        self._steer_enabled = False
        self._encoder: int = 0
        self._encoder_enabled = False
        self._state = DriveState.STOP
        self._steer_sample = np.zeros((_SAMPLE_SIZE, 1))
        self._steer_cov = np.zeros((1, 1))
        self._velocity_sample = np.zeros((_SAMPLE_SIZE, 1))
        self._velocity_cov = np.zeros((1, 1))

    def on_aorm(self, data) -> None:
        self._aorm = _first_code(data)

    def on_estop(self, data) -> None:
        self._estop = _first_code(data)

    def on_gear(self, data) -> None:
        self._gear = _first_code(data)

    def on_brake(self, data: int) -> None:
        self._brake = int(data)

    def on_velocity(self, data: int) -> None:
        """Record speed feedback in km/h * 10."""
        self._velocity = int(data)
        kmh = _cdiv(self._velocity, 10)
        if not self._velocity_enabled:
            self._velocity_sample = np.full(
                (_SAMPLE_SIZE, 1), float(_cdiv(kmh * 1000, 3600))
            )
        if self._velocity == 0:
            self._state = DriveState.STOP
        self._velocity_sample, self._velocity_cov = update_covariance(
            self._velocity_sample, [[kmh * 1000.0 / 3600.0]]
        )
        self._velocity_enabled = True

    def on_steer(self, data: int) -> None:
        self._steer = int(data)
        degrees = float(_cdiv(self._steer, 71))
        if not self._steer_enabled:
            self._steer_sample = np.full((_SAMPLE_SIZE, 1), degrees)
        self._steer_sample, self._steer_cov = update_covariance(
            self._steer_sample, [[degrees]]
        )
        self._steer_enabled = True

    def on_encoder(self, data: int) -> None:
        """Record an encoder count and infer the direction of travel."""
        self._encoder_enabled = True
        count = int(data)
        if count > 3000:
            diff = count - self._encoder
            if 0 < diff < 100:
                self._state = DriveState.FORWARD
            elif -100 < diff < 0:
                self._state = DriveState.BACKWARD
        self._encoder = count

    def is_stop(self) -> bool:
        return self._velocity < 6

    def is_available(self) -> bool:
        return self._velocity_enabled

    @staticmethod
    def _describe(code: int | None, names: tuple[str, ...]) -> str:
        if code is None:
            return "NODATA"
        if 0 <= code < len(names):
            return names[code]
        return "INVALIDDATA"

    def mode(self) -> str:
        return self._describe(self._aorm, ("MANUAL", "AUTO"))

    def estop(self) -> str:
        return self._describe(self._estop, ("ESTOPOFF", "ESTOPON"))

    def gear(self) -> str:
        return self._describe(self._gear, ("FORWARD", "NEUTRAL", "BACKWARD"))

    def brake(self) -> int:
        return self._brake if self._brake is not None else 200

    def velocity(self) -> float:
        """Signed speed in m/s; zero while stopped or without feedback."""
        if not self._velocity_enabled or self._state is DriveState.STOP:
            return 0.0
        speed = self._velocity / 10.0 * 1000.0 / 3600.0
        return -speed if self._state is DriveState.BACKWARD else speed

    def velocity_covariance(self) -> float:
        value = float(self._velocity_cov[0, 0])
        return value if value != 0 else _DEFAULT_COVARIANCE

    def steer(self) -> int:
        return self._steer

    def steer_covariance(self) -> float:
        value = float(self._steer_cov[0, 0])
        return value if value != 0 else _DEFAULT_COVARIANCE

    def encoder(self) -> int:
        return self._encoder if self._encoder_enabled else 0

    def state(self) -> DriveState:
        return self._state