import numpy as np
import pytest

from selfcar.covariance import (
    column_mean,
    sample_covariance,
    update_covariance,
    update_sample,
)


def test_update_sample_shifts_and_appends():
    sample = np.array([[1.0], [2.0], [3.0]])
    result = update_sample(sample, [4.0])
    assert result.tolist() == [[2.0], [3.0], [4.0]]


def test_update_sample_leaves_input_untouched():
    sample = np.array([[1.0, 10.0], [2.0, 20.0]])
    update_sample(sample, np.array([[3.0, 30.0]]))
    assert sample.tolist() == [[1.0, 10.0], [2.0, 20.0]]


def test_update_sample_single_row_window():
    result = update_sample([[5.0, 6.0]], [7.0, 8.0])
    assert result.tolist() == [[7.0, 8.0]]


@pytest.mark.parametrize("data", [[1.0], [1.0, 2.0, 3.0], [[1.0, 2.0], [3.0, 4.0]]])
def test_update_sample_rejects_wrong_shape(data):
    with pytest.raises(ValueError):
        update_sample(np.zeros((3, 2)), data)


def test_empty_sample_is_rejected():
    with pytest.raises(ValueError):
        sample_covariance(np.zeros((0, 2)))


def test_constant_sample_has_zero_covariance():
    cov = sample_covariance(np.full((4, 3), 7.5))
    assert np.allclose(cov, np.zeros((3, 3)))


def test_covariance_matches_population_covariance():
    rng = np.random.default_rng(1)
    sample = rng.normal(size=(6, 3))
    cov = sample_covariance(sample)
    assert cov.shape == (3, 3)
    assert np.allclose(cov, cov.T)
    assert np.allclose(cov, np.cov(sample, rowvar=False, bias=True))


def test_two_point_variance():
    cov = sample_covariance([[0.0], [2.0]])
    assert cov[0, 0] == pytest.approx(1.0)


def test_update_covariance_returns_window_and_its_covariance():
    sample = np.array([[1.0, 1.0], [1.0, 1.0], [1.0, 1.0]])
    window, cov = update_covariance(sample, [4.0, -2.0])
    assert window[-1].tolist() == [4.0, -2.0]
    assert np.allclose(cov, sample_covariance(window))
    assert cov[0, 1] < 0


def test_column_mean():
    mean = column_mean([[1.0, 2.0], [3.0, 4.0]])
    assert mean.tolist() == [2.0, 3.0]