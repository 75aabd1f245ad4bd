"""Speed and steering control loop for the ERP42 vehicle."""

from __future__ import annotations

import argparse
import math
import sys
import time

import serial

from selfcar.erp_serial import ErpSerial, open_serial

__all__ = ["Controller", "main"]

ENCODER_PER_METER = 1
ENCODER_RATE = 50
STEER_KP = 1
STEER_LIMIT = 2000
STEER_UNITS_PER_DEGREE = 71

GEAR_FORWARD = 0
GEAR_BACKWARD = 2
BRAKE_RELEASED = 1
BRAKE_FULL = 200


class Controller:
    """Turns velocity commands and feedback into vehicle commands."""

    def __init__(self):
        self.linear_x = 0.0
        self.angular_z = 0.0
        self.joy_brake = 0
        self._encoder_seen = False
        self._previous_encoder = 0
        self.encoder_velocity = 0.0
        self.pid_out = 0
        self.steering_out = 0
        self.brake = BRAKE_RELEASED
        self.gear = GEAR_FORWARD

    def on_cmd_vel(self, linear_x: float, angular_z: float) -> None:
        """Store a velocity command; angular_z in rad is scaled to steering units."""
        self.linear_x = float(linear_x)
        self.angular_z = angular_z / math.pi * 180 * STEER_UNITS_PER_DEGREE

    def on_joy(self, buttons) -> None:
        """Button 3 applies full brake, button 5 releases it."""
        if buttons[3] == 1:
            self.brake = BRAKE_FULL
            self.joy_brake = 1
        if buttons[5] == 1:
            self.brake = BRAKE_RELEASED
            self.joy_brake = 0

    def calculate_velocity(self, encoder: int) -> float:
        """Velocity estimate from the encoder change since the last reading."""
        delta = 0
        if not self._encoder_seen:
            self._previous_encoder = int(encoder)
            self._encoder_seen = True
        else:
            diff = self._previous_encoder - int(encoder)
            if -100 < diff < 100:
                delta = diff
                self._previous_encoder = int(encoder)
        self.encoder_velocity = float(delta * ENCODER_PER_METER * ENCODER_RATE)
        return self.encoder_velocity

    def linear_velocity_control(self, desired: float, current: float) -> tuple[int, int, int]:
        """Choose throttle, brake and gear; returns (pid_out, brake, gear)."""
        if desired > 0:
            self.gear = GEAR_FORWARD
            if current + 20 < desired:
                self.pid_out = 200
                self.brake = BRAKE_RELEASED
            elif current - 20 > desired:
                overshoot = int(current - desired)
                self.pid_out = 0
                self.brake = int(overshoot / 1.25)
            else:
                self.pid_out = int(desired)
                self.brake = BRAKE_RELEASED
        else:
            self.pid_out = int(-desired)
            self.brake = BRAKE_RELEASED
            self.gear = GEAR_BACKWARD

        if desired == 0:
            self.brake = 100 if current > 100 else BRAKE_FULL
        return self.pid_out, self.brake, self.gear

    def steering_control(self, desired_angle: float) -> int:
        """Proportional steering command clamped to the actuator limit."""
        out = int(STEER_KP * desired_angle)
        self.steering_out = max(-STEER_LIMIT, min(STEER_LIMIT, out))
        return self.steering_out

    def step(self, link: ErpSerial) -> None:
        """Run one control cycle over a serial link."""
        link.process(self.pid_out, self.steering_out, self.brake, self.gear)
        feedback = link.feedback
        self.calculate_velocity(feedback.encoder)
        self.linear_velocity_control(self.linear_x, feedback.velocity)
        self.steering_control(self.angular_z)


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Drive the ERP42 vehicle over a serial link.")
    parser.add_argument("--port-name", default="/dev/ttyUSB0")
    parser.add_argument("--baud-rate", type=int, default=115200)
    parser.add_argument("--rate", type=float, default=70.0, help="loop frequency in Hz")
    args = parser.parse_args(argv)

    try:
        port = open_serial(args.port_name, args.baud_rate)
    except serial.SerialException as exc:
        print(f"cannot open port {args.port_name}: {exc}", file=sys.stderr)
        return 1
    print("open port", file=sys.stderr)

    controller = Controller()
    period = 1.0 / args.rate
    with ErpSerial(port) as link:
        try:
            while True:
                started = time.monotonic()
                controller.step(link)
                remaining = period - (time.monotonic() - started)
                if remaining > 0:
                    time.sleep(remaining)
        except KeyboardInterrupt:
            pass
    return 0


if __name__ == "__main__":
    sys.exit(main())