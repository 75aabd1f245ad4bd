"""Quaternion type and roll/pitch/yaw conversions."""

from __future__ import annotations

import math
from dataclasses import dataclass

__all__ = ["Quaternion", "to_quaternion", "to_euler_angle"]


@dataclass(frozen=True)
class Quaternion:
    """A rotation quaternion with scalar part ``w``."""

    w: float = 1.0
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0

    def norm(self) -> float:
        return math.sqrt(self.w**2 + self.x**2 + self.y**2 + self.z**2)

    def normalized(self) -> "Quaternion":
        """Return this quaternion scaled to unit length."""
        length = self.norm()
        if length == 0.0:
            raise ValueError("cannot normalize a zero quaternion")
        return Quaternion(self.w / length, self.x / length, self.y / length, self.z / length)

    def yaw(self) -> float:
        """Rotation about the z axis, in radians."""
        return to_euler_angle(self)[2]

    def __mul__(self, other: "Quaternion") -> "Quaternion":
        if not isinstance(other, Quaternion):
            return NotImplemented
        return Quaternion(
            self.w * other.w - self.x * other.x - self.y * other.y - self.z * other.z,
            self.w * other.x + self.x * other.w + self.y * other.z - self.z * other.y,
            self.w * other.y - self.x * other.z + self.y * other.w + self.z * other.x,
            self.w * other.z + self.x * other.y - self.y * other.x + self.z * other.w,
        )


def to_quaternion(roll: float, pitch: float, yaw: float) -> Quaternion:
    """Build a quaternion from roll, pitch and yaw in radians."""
    cy = math.cos(yaw * 0.5)
    sy = math.sin(yaw * 0.5)
    cr = math.cos(roll * 0.5)
    sr = math.sin(roll * 0.5)
    cp = math.cos(pitch * 0.5)
    sp = math.sin(pitch * 0.5)
    return Quaternion(
        w=cy * cr * cp + sy * sr * sp,
        x=cy * sr * cp - sy * cr * sp,
        y=cy * cr * sp + sy * sr * cp,
        z=sy * cr * cp - cy * sr * sp,
    )


def to_euler_angle(q: Quaternion) -> tuple[float, float, float]:
    """Return (roll, pitch, yaw) in radians for a quaternion."""
    sinr_cosp = 2.0 * (q.w * q.x + q.y * q.z)
    cosr_cosp = 1.0 - 2.0 * (q.x * q.x + q.y * q.y)
    roll = math.atan2(sinr_cosp, cosr_cosp)

    sinp = 2.0 * (q.w * q.y - q.z * q.x)
    if abs(sinp) >= 1:
        pitch = math.copysign(math.pi / 2, sinp)
    else:
        pitch = math.asin(sinp)

    siny_cosp = 2.0 * (q.w * q.z + q.x * q.y)
    cosy_cosp = 1.0 - 2.0 * (q.y * q.y + q.z * q.z)
    yaw = math.atan2(siny_cosp, cosy_cosp)
    return roll, pitch, yaw