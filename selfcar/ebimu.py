"""Driver for the EBIMU wireless IMU receiver: configuration and binary packets."""

from __future__ import annotations

import argparse
import dataclasses
import struct
import sys
import time
from dataclasses import dataclass
from typing import Callable

import numpy as np
import serial

from selfcar.covariance import update_covariance
from selfcar.erp_serial import open_serial

__all__ = ["ImuReading", "Ebimu", "parse_packet", "configuration_commands", "main"]

# The device constants are single precision.
DEGREE_TO_RADIAN = float(np.float32(0.0174533))
G_TO_METER_PER_SEC2 = float(np.float32(9.81))

PACKET_HEADER = 0x55
PAYLOAD_LENGTH = 26
_PAYLOAD_FORMAT = ">bb11h"

# Column order of the sample window.
QUAT_W, QUAT_X, QUAT_Y, QUAT_Z = 0, 1, 2, 3
GYRO_X, GYRO_Y, GYRO_Z = 4, 5, 6
ACCEL_X, ACCEL_Y, ACCEL_Z = 7, 8, 9
_COLUMNS = 10

_ZERO_COVARIANCE = (0.0,) * 9


def _diagonal(values: tuple[float, float, float]) -> tuple[float, ...]:
    cov = [0.0] * 9
    cov[0], cov[4], cov[8] = values
    return tuple(cov)


@dataclass(frozen=True)
class ImuReading:
    """One IMU sample: orientation (w, x, y, z), rates in rad/s, accelerations in m/s^2."""

    channel: int
    device_id: int
    orientation: tuple[float, float, float, float]
    angular_velocity: tuple[float, float, float]
    linear_acceleration: tuple[float, float, float]
    battery: int
    orientation_covariance: tuple[float, ...] = _ZERO_COVARIANCE
    angular_velocity_covariance: tuple[float, ...] = _ZERO_COVARIANCE
    linear_acceleration_covariance: tuple[float, ...] = _ZERO_COVARIANCE

    @property
    def frame_id(self) -> str:
        return f"{self.channel}-{self.device_id}"

    def as_row(self) -> np.ndarray:
        """The ten measured values in sample-window column order."""
        return np.array(
            [[*self.orientation, *self.angular_velocity, *self.linear_acceleration]],
            dtype=float,
        )


def parse_packet(payload: bytes) -> ImuReading:
    """Decode the 26 bytes that follow the two 0x55 header bytes."""
    data = bytes(payload)
    if len(data) < PAYLOAD_LENGTH:
        raise ValueError(f"IMU payload too short: {len(data)} bytes, need {PAYLOAD_LENGTH}")
    (
        channel,
        device_id,
        quat_z,
        quat_y,
        quat_x,
        quat_w,
        gyro_x,
        gyro_y,
        gyro_z,
        accel_x,
        accel_y,
        accel_z,
        battery,
    ) = struct.unpack_from(_PAYLOAD_FORMAT, data)
    return ImuReading(
        channel=channel,
        device_id=device_id,
        orientation=(quat_w / 10000.0, quat_x / 10000.0, quat_y / 10000.0, quat_z / 10000.0),
        angular_velocity=tuple(g / 10.0 * DEGREE_TO_RADIAN for g in (gyro_x, gyro_y, gyro_z)),
        linear_acceleration=tuple(
            a / 1000.0 * G_TO_METER_PER_SEC2 for a in (accel_x, accel_y, accel_z)
        ),
        battery=battery,
    )


def configuration_commands(
    binary: bool = True,
    confirm_settings: bool = True,
    gyro_calibration: bool = True,
    accel_calibration: bool = True,
    mag_calibration: bool = True,
) -> list[str]:
    """Commands that set the output format and, optionally, sensor settings and calibration.

    Binary mode outputs hex quaternions with gravity-free global acceleration;
    otherwise ASCII roll/pitch/yaw with gravity-free local acceleration.
    """
    commands = ["<soc2>", "<sof2>"] if binary else ["<soc1>", "<sof1>"]
    if not confirm_settings:
        return commands
    commands += [
        "<sog1>",
        "<soa3>" if binary else "<soa2>",
        "<sem2>",
        "<rha_t0>",
        "<raa_t0>",
        "<acva_e0>",
        "<acvg_e0>",
        "<rha_l10>",
        "<posf_sl0.2>",
    ]
    if gyro_calibration:
        commands.append("<cg>")
    if accel_calibration:
        commands.append("<cas>")
    if mag_calibration:
        commands.append("<cmf>")
    return commands


class Ebimu:
    """Reads binary IMU packets from a port and attaches rolling covariances."""

    command_interval = 0.05

    def __init__(self, port, sample_num: int = 3):
        if sample_num < 1:
            raise ValueError("sample_num must be at least 1")
        self.port = port
        self.sample_num = sample_num
        self.sample = np.zeros((sample_num, _COLUMNS))
        self.covariance = np.zeros((_COLUMNS, _COLUMNS))
        self._init_sample = True
        self.echo: Callable[[bytes], object] | None = None

    def configure(
        self,
        confirm_settings: bool = True,
        gyro_calibration: bool = True,
        accel_calibration: bool = True,
        mag_calibration: bool = True,
    ) -> list[str]:
        """Send the binary-mode configuration to the device; return the commands sent."""
        commands = configuration_commands(
            True, confirm_settings, gyro_calibration, accel_calibration, mag_calibration
        )
        for command in commands:
            self.port.write(command.encode("ascii"))
            time.sleep(self.command_interval)
        if confirm_settings:
            time.sleep(2 * self.command_interval)
        return commands

    def feed(self, reading: ImuReading) -> ImuReading:
        """Add a reading to the sample window and return it with covariances filled in."""
        row = reading.as_row()
        if self._init_sample:
            self.sample = np.repeat(row, self.sample_num, axis=0)
            self._init_sample = False
        self.sample, self.covariance = update_covariance(self.sample, row)
        r = self.covariance
        return dataclasses.replace(
            reading,
            orientation_covariance=_diagonal(
                (r[QUAT_X, QUAT_X], r[QUAT_Y, QUAT_Y], r[QUAT_Z, QUAT_Z])
            ),
            angular_velocity_covariance=_diagonal(
                (r[GYRO_X, GYRO_X], r[GYRO_Y, GYRO_Y], r[GYRO_Z, GYRO_Z])
            ),
            linear_acceleration_covariance=_diagonal(
                (r[ACCEL_X, ACCEL_X], r[ACCEL_Y, ACCEL_Y], r[ACCEL_Z, ACCEL_Z])
            ),
        )

    def read(self) -> ImuReading | None:
        """Read one packet if data is waiting; return None when no packet was found."""
        if not self.port.in_waiting:
            return None
        byte = self.port.read(1)
        if byte[:1] != bytes([PACKET_HEADER]):
            self._echo(byte)
            return None
        byte = self.port.read(1)
        if byte[:1] != bytes([PACKET_HEADER]):
            self._echo(byte)
            return None
        payload = self.port.read(PAYLOAD_LENGTH)
        try:
            reading = parse_packet(payload)
        except ValueError:
            return None
        return self.feed(reading)

    def _echo(self, data: bytes) -> None:
        if self.echo is not None and data:
            self.echo(data)


def _format_reading(reading: ImuReading) -> str:
    w, x, y, z = reading.orientation
    gx, gy, gz = reading.angular_velocity
    ax, ay, az = reading.linear_acceleration
    return (
        f"\nchannel : {reading.channel} id : {reading.device_id}\n"
        f"quat(wxyz)\t: {w:.4f}\t{x:.4f}\t{y:.4f}\t{z:.4f}\n"
        f"gyro\t\t: {gx:.4f}\t{gy:.4f}\t{gz:.4f}\n"
        f"accel\t\t: {ax:.4f}\t{ay:.4f}\t{az:.4f}\n"
        f"battery\t\t: {reading.battery}"
    )


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Read the EBIMU wireless IMU.")
    parser.add_argument("--port-name", default="/dev/ttyUSB0")
    parser.add_argument("--baud-rate", type=int, default=921600)
    parser.add_argument("--covariance-sample-num", type=int, default=3)
    parser.add_argument("--ascii", action="store_true", help="dump raw ASCII output instead")
    parser.add_argument("--no-confirm-settings", action="store_true")
    parser.add_argument("--no-gyro-calibration", action="store_true")
    parser.add_argument("--no-accel-calibration", action="store_true")
    parser.add_argument("--no-mag-calibration", action="store_true")
    args = parser.parse_args(argv)

    try:
        port = open_serial(args.port_name, args.baud_rate)
    except serial.SerialException as exc:
        print(f"cannot connect to {args.port_name}: {exc}", file=sys.stderr)
        return 1

    flags = dict(
        confirm_settings=not args.no_confirm_settings,
        gyro_calibration=not args.no_gyro_calibration,
        accel_calibration=not args.no_accel_calibration,
        mag_calibration=not args.no_mag_calibration,
    )
    try:
        if args.ascii:
            for command in configuration_commands(False, **flags):
                port.write(command.encode("ascii"))
                time.sleep(Ebimu.command_interval)
            while True:
                if port.in_waiting:
                    sys.stdout.write(port.read(1).decode("latin-1"))
                    sys.stdout.flush()
        else:
            imu = Ebimu(port, args.covariance_sample_num)
            imu.echo = lambda data: sys.stdout.write(data.decode("latin-1"))
            imu.configure(**flags)
            print("IMU Ready", file=sys.stderr)
            while True:
                reading = imu.read()
                if reading is not None:
                    print(_format_reading(reading))
    except KeyboardInterrupt:
        pass
    finally:
        port.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())