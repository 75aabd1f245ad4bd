"""Angle helpers: wrapping and degree/radian conversion."""

from __future__ import annotations

import math

__all__ = ["normalize", "to_radian", "to_degree"]


def normalize(rad: float) -> float:
    """Wrap an angle in radians into the range [-pi, pi]."""
    return math.atan2(math.sin(rad), math.cos(rad))


def to_radian(deg: float) -> float:
    """Convert degrees to radians."""
    return deg * math.pi / 180


def to_degree(rad: float) -> float:
    """Convert radians to degrees."""
    return rad * 180 / math.pi