"""Serial link to the ERP42 vehicle controller: command frames and feedback."""

from __future__ import annotations

from dataclasses import dataclass

import serial

__all__ = ["ErpFeedback", "ErpSerial", "open_serial", "encode_command", "decode_feedback"]

_STX = b"STX"
_ETX = b"\r\n"
_AUTO_MODE = 0x01
_ESTOP_OFF = 0x00
_FEEDBACK_LENGTH = 15
_ALIVE_PERIOD = 255


def _wrap(value: int, bits: int) -> int:
    """Reinterpret ``value`` as a signed two's-complement integer of ``bits`` bits."""
    mask = (1 << bits) - 1
    value &= mask
    return value - (1 << bits) if value >> (bits - 1) else value


@dataclass(frozen=True)
class ErpFeedback:
    """One feedback frame reported by the vehicle.

    ``velocity`` is in km/h * 10, ``steer`` has its sign flipped to match the
    command convention, and ``brake`` is stored as a signed byte.
    """

    mode: int = 0
    estop: int = 0
    gear: int = 0
    velocity: int = 0
    steer: int = 0
    brake: int = 0
    encoder: int = 0


def open_serial(port_name: str, baud_rate: int) -> serial.Serial:
    """Open a serial port with a one second timeout."""
    return serial.Serial(port=port_name, baudrate=baud_rate, timeout=1.0)


def encode_command(velocity: int, steer: int, brake: int, gear: int, alive: int) -> bytes:
    """Build the 14-byte command frame sent to the vehicle."""
    velocity = int(velocity)
    steer = int(steer)
    return bytes(
        [
            *_STX,
            _AUTO_MODE,
            _ESTOP_OFF,
            int(gear) & 0xFF,
            (velocity >> 8) & 0xFF,
            velocity & 0xFF,
            (steer >> 8) & 0xFF,
            steer & 0xFF,
            int(brake) & 0xFF,
            int(alive) & 0xFF,
            *_ETX,
        ]
    )


def decode_feedback(frame: bytes) -> ErpFeedback:
    """Parse a feedback frame; raise ValueError if it is not one."""
    data = bytes(frame)
    if not data or data[0] != ord("S"):
        raise ValueError("feedback frame must start with 'S'")
    if len(data) < _FEEDBACK_LENGTH:
        raise ValueError(
            f"feedback frame too short: {len(data)} bytes, need {_FEEDBACK_LENGTH}"
        )
    velocity = int.from_bytes(data[6:8], "little")
    steer = int.from_bytes(data[8:10], "little", signed=True)
    encoder = int.from_bytes(data[11:15], "little", signed=True)
    return ErpFeedback(
        mode=data[3],
        estop=data[4],
        gear=data[5],
        velocity=_wrap(velocity, 16),
        steer=_wrap(-steer, 16),
        brake=_wrap(data[10], 8),
        encoder=encoder,
    )


class ErpSerial:
    """Exchanges command and feedback frames over an open serial port."""

    def __init__(self, port):
        self.port = port
        self.alive = 0
        self.feedback = ErpFeedback()

    def process(self, velocity: int, steer: int, brake: int, gear: int) -> ErpFeedback | None:
        """Send one command if the vehicle has data waiting, then read its reply.

        Returns the decoded feedback, or None when nothing was exchanged or the
        reply was not a feedback frame.
        """
        if not self.port.in_waiting:
            return None
        self.port.write(encode_command(velocity, steer, brake, gear, self.alive))
        self.alive += 1
        if self.alive % _ALIVE_PERIOD == 0:
            self.alive = 0
        line = self.port.readline()
        try:
            feedback = decode_feedback(line)
        except ValueError:
            return None
        self.feedback = feedback
        return feedback

    def close(self) -> None:
        self.port.close()

    def __enter__(self) -> "ErpSerial":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()