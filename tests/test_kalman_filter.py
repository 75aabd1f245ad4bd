import numpy as np
import pytest

from selfcar.kalman_filter import KalmanFilter, KalmanFilterError


def make_filter():
    return KalmanFilter(
        x=[1.0, 2.0],
        A=np.eye(2),
        B=np.eye(2),
        C=np.eye(2),
        Q=0.1 * np.eye(2),
        R=np.eye(2),
        P=np.eye(2),
    )


def test_init_rejects_empty_matrices():
    kf = KalmanFilter()
    with pytest.raises(KalmanFilterError):
        kf.init(np.zeros((0, 1)), np.eye(2))


def test_uninitialized_filter_cannot_predict():
    kf = KalmanFilter()
    with pytest.raises(KalmanFilterError):
        kf.predict([0.0], np.eye(1), np.eye(1))


def test_element_reads_state():
    kf = make_filter()
    assert kf.element(0) == 1.0
    assert kf.element(1) == 2.0


def test_predict_propagates_covariance():
    kf = make_filter()
    A = np.array([[1.0, 0.5], [0.0, 1.0]])
    Q = 0.2 * np.eye(2)
    P0 = kf.P
    kf.predict([3.0, 4.0], A, Q)
    assert np.allclose(kf.x.ravel(), [3.0, 4.0])
    assert np.allclose(kf.P, A @ P0 @ A.T + Q)


def test_predict_uses_stored_q():
    kf = make_filter()
    kf.predict([1.0, 2.0], np.eye(2))
    assert np.allclose(kf.P, np.eye(2) + 0.1 * np.eye(2))


def test_predict_rejects_mismatched_dimensions():
    kf = make_filter()
    with pytest.raises(KalmanFilterError):
        kf.predict([1.0, 2.0, 3.0], np.eye(2), np.eye(2))
    with pytest.raises(KalmanFilterError):
        kf.predict([1.0, 2.0], np.eye(3), np.eye(3))


def test_predict_input_adds_control():
    kf = make_filter()
    kf.predict_input([0.5, -1.0])
    assert np.allclose(kf.x.ravel(), [1.5, 1.0])


def test_predict_input_rejects_bad_input_size():
    kf = make_filter()
    with pytest.raises(KalmanFilterError):
        kf.predict_input([1.0, 2.0, 3.0])


def test_scalar_update():
    kf = KalmanFilter()
    kf.init([0.0], [[1.0]])
    kf.update([2.0], [[1.0]], [[1.0]])
    assert kf.element(0) == pytest.approx(1.0)
    assert kf.P[0, 0] == pytest.approx(0.5)


def test_update_with_consistent_measurement_keeps_state_and_shrinks_covariance():
    kf = make_filter()
    x0 = kf.x
    P0 = kf.P
    kf.update(x0)
    assert np.allclose(kf.x, x0)
    assert kf.P[0, 0] < P0[0, 0]
    assert kf.P[1, 1] < P0[1, 1]


def test_update_with_explicit_prediction():
    kf = make_filter()
    x0 = kf.x
    kf.update([5.0, 5.0], y_pred=[5.0, 5.0])
    assert np.allclose(kf.x, x0)


def test_update_rejects_mismatched_dimensions():
    kf = make_filter()
    with pytest.raises(KalmanFilterError):
        kf.update([1.0, 2.0, 3.0])
    with pytest.raises(KalmanFilterError):
        kf.update([1.0, 2.0], np.eye(2), np.eye(3))


def test_update_rejects_singular_innovation():
    kf = KalmanFilter()
    kf.init([0.0], [[0.0]])
    with pytest.raises(KalmanFilterError):
        kf.update([1.0], [[1.0]], [[0.0]])