import math

import pytest

from selfcar.trigonometric import normalize, to_degree, to_radian


@pytest.mark.parametrize("angle", [0.0, 1.0, -2.5, 3 * math.pi, -7.0, 100.0, -100.0])
def test_normalize_stays_in_range(angle):
    wrapped = normalize(angle)
    assert -math.pi <= wrapped <= math.pi


@pytest.mark.parametrize("angle", [0.3, -1.2, 4.0, -4.0, 20.0, -33.3])
def test_normalize_preserves_direction(angle):
    wrapped = normalize(angle)
    assert math.sin(wrapped) == pytest.approx(math.sin(angle), abs=1e-12)
    assert math.cos(wrapped) == pytest.approx(math.cos(angle), abs=1e-12)


@pytest.mark.parametrize("angle", [0.0, 0.5, -1.5, 3.0, -3.0])
def test_normalize_is_identity_inside_range(angle):
    assert normalize(angle) == pytest.approx(angle, abs=1e-12)


def test_normalize_three_pi_is_half_turn():
    assert abs(normalize(3 * math.pi)) == pytest.approx(math.pi)


def test_half_turn_in_degrees():
    assert to_degree(math.pi) == pytest.approx(180.0)
    assert to_radian(180.0) == pytest.approx(math.pi)


@pytest.mark.parametrize("deg", [-720.0, -45.0, 0.0, 12.5, 90.0, 359.0])
def test_degree_radian_round_trip(deg):
    assert to_degree(to_radian(deg)) == pytest.approx(deg)