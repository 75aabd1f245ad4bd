"""Linear / extended Kalman filter with variable model matrices."""

from __future__ import annotations

import numpy as np

__all__ = ["KalmanFilterError", "KalmanFilter"]


class KalmanFilterError(ValueError):
    """Raised when matrices do not fit together or the gain is not finite."""


def _column(value) -> np.ndarray:
    arr = np.asarray(value, dtype=float)
    if arr.ndim == 0:
        return arr.reshape(1, 1)
    if arr.ndim == 1:
        return arr.reshape(-1, 1)
    if arr.ndim != 2:
        raise KalmanFilterError("vector must be one- or two-dimensional")
    return arr


def _matrix(value) -> np.ndarray:
    arr = np.atleast_2d(np.asarray(value, dtype=float))
    if arr.ndim != 2:
        raise KalmanFilterError("matrix must be two-dimensional")
    return arr


def _optional(value, convert):
    return None if value is None else convert(value)


def _require(matrix: np.ndarray | None, name: str) -> np.ndarray:
    if matrix is None:
        raise KalmanFilterError(f"{name} is not set")
    return matrix


class KalmanFilter:
    """Kalman filter holding state ``x``, covariance ``P`` and model matrices.

    ``A`` and ``B`` describe the process model x[k+1] = A x[k] + B u[k],
    ``C`` the measurement model y[k] = C x[k], and ``Q`` and ``R`` the
    process and measurement noise covariances.
    """

    def __init__(self, x=None, A=None, B=None, C=None, Q=None, R=None, P=None):
        self._x: np.ndarray | None = None
        self._P: np.ndarray | None = None
        self.A: np.ndarray | None = None
        self.B: np.ndarray | None = None
        self.C: np.ndarray | None = None
        self.Q: np.ndarray | None = None
        self.R: np.ndarray | None = None
        if x is not None or P is not None:
            self.init(x, P, A, B, C, Q, R)

    def init(self, x, P, A=None, B=None, C=None, Q=None, R=None) -> None:
        """Set the initial state and covariance, and any model matrices given."""
        if x is None or P is None:
            raise KalmanFilterError("initial state and covariance are required")
        x_col = _column(x)
        p_mat = _matrix(P)
        model = {
            "A": _optional(A, _matrix),
            "B": _optional(B, _matrix),
            "C": _optional(C, _matrix),
            "Q": _optional(Q, _matrix),
            "R": _optional(R, _matrix),
        }
        candidates = [x_col, p_mat, *(m for m in model.values() if m is not None)]
        if any(m.size == 0 for m in candidates):
            raise KalmanFilterError("matrices must not be empty")
        self._x = x_col
        self._P = p_mat
        for name, matrix in model.items():
            if matrix is not None:
                setattr(self, name, matrix)

    @property
    def x(self) -> np.ndarray:
        """Current estimated state as a column vector (copy)."""
        return _require(self._x, "state").copy()

    @property
    def P(self) -> np.ndarray:
        """Current state covariance (copy)."""
        return _require(self._P, "covariance").copy()

    def element(self, i: int) -> float:
        """Return component ``i`` of the state."""
        return float(_require(self._x, "state").reshape(-1)[i])

    def predict(self, x_next, A=None, Q=None) -> None:
        """Set the predicted state and propagate P = A P A' + Q."""
        x = _require(self._x, "state")
        P = _require(self._P, "covariance")
        x_next = _column(x_next)
        A = _matrix(_require(A if A is not None else self.A, "A"))
        Q = _matrix(_require(Q if Q is not None else self.Q, "Q"))
        if (
            x.shape[0] != x_next.shape[0]
            or A.shape[1] != P.shape[0]
            or Q.shape[1] != Q.shape[0]
            or A.shape[0] != Q.shape[1]
        ):
            raise KalmanFilterError("invalid matrix")
        self._x = x_next
        self._P = A @ P @ A.T + Q

    def predict_input(self, u, A=None, B=None, Q=None) -> None:
        """Predict with the linear model x = A x + B u."""
        x = _require(self._x, "state")
        u = _column(u)
        A = _matrix(_require(A if A is not None else self.A, "A"))
        B = _matrix(_require(B if B is not None else self.B, "B"))
        if A.shape[1] != x.shape[0] or B.shape[1] != u.shape[0]:
            raise KalmanFilterError("invalid matrix")
        self.predict(A @ x + B @ u, A, Q)

    def update(self, y, C=None, R=None, y_pred=None) -> None:
        """Correct the state with measurement ``y``; ``y_pred`` defaults to C x."""
        x = _require(self._x, "state")
        P = _require(self._P, "covariance")
        y = _column(y)
        C = _matrix(_require(C if C is not None else self.C, "C"))
        R = _matrix(_require(R if R is not None else self.R, "R"))
        if y_pred is None:
            if C.shape[1] != x.shape[0]:
                raise KalmanFilterError("invalid matrix")
            y_pred = C @ x
        else:
            y_pred = _column(y_pred)
        if (
            P.shape[1] != C.shape[1]
            or R.shape[0] != R.shape[1]
            or R.shape[0] != C.shape[0]
            or y.shape[0] != y_pred.shape[0]
            or y.shape[0] != C.shape[0]
        ):
            raise KalmanFilterError("invalid matrix")
        pct = P @ C.T
        try:
            with np.errstate(all="ignore"):
                gain = pct @ np.linalg.inv(R + C @ pct)
        except np.linalg.LinAlgError as exc:
            raise KalmanFilterError("invalid kalman gain") from exc
        if not np.all(np.isfinite(gain)):
            raise KalmanFilterError("invalid kalman gain")
        self._x = x + gain @ (y - y_pred)
        self._P = P - gain @ (C @ P)