# selfcar

Building blocks for a small autonomous vehicle: geometry helpers, a Kalman
filter, UTM conversions, the ERP42 platform's serial protocol and feedback
state, an EBIMU inertial sensor driver, and GNSS / IMU / odometry
localization.

## Modules

- `selfcar.trigonometric`: `normalize` wraps an angle into [-pi, pi];
  `to_radian` and `to_degree` convert between units.
- `selfcar.transform`: a frozen `Quaternion` dataclass (`normalized()`,
  `yaw()`, multiplication with `*`), plus `to_quaternion(roll, pitch, yaw)`
  and `to_euler_angle(q)`.
- `selfcar.covariance`: rolling sample windows as numpy matrices.
  `update_sample` drops the oldest row and appends a new one,
  `sample_covariance` gives the population covariance of the columns,
  `update_covariance` does both, and `column_mean` averages each column.
  A row of the wrong shape raises `ValueError`.
- `selfcar.navsat`: WGS84 latitude/longitude to UTM and back.
  `ll_to_utm` returns a `UTMPoint` (northing, easting, zone, gamma),
  `utm_to_ll` returns a `GeoPoint`, `utm_letter_designator` gives the
  latitude band letter (`'Z'` outside 80S..84N), and `utm` is a simpler
  conversion returning `(easting, northing)`.
- `selfcar.kalman_filter`: `KalmanFilter` with state `x`, covariance `P`
  and optional model matrices `A`, `B`, `C`, `Q`, `R`. `predict` takes a
  predicted state, `predict_input` uses x = A x + B u, and `update` corrects
  with a measurement. Mismatched matrices or a non-finite gain raise
  `KalmanFilterError`.
- `selfcar.erp42`: `ERP42` collects the vehicle's feedback through
  `on_aorm`, `on_estop`, `on_gear`, `on_brake`, `on_velocity`, `on_steer`
  and `on_encoder`, infers a `DriveState` (STOP, FORWARD, BACKWARD) from the
  encoder and speed, and reports `mode()`, `gear()`, `velocity()` in m/s,
  rolling `velocity_covariance()` and `steer_covariance()`, and so on.
- `selfcar.erp_serial`: the 14-byte command frame (`encode_command`),
  feedback frame parsing (`decode_feedback` into `ErpFeedback`),
  `open_serial` to open a port with a one-second timeout, and `ErpSerial`,
  which exchanges one command and one reply per `process` call and can be
  used as a context manager.
- `selfcar.controller`: `Controller` turns a commanded speed and yaw rate
  (`on_cmd_vel`) into throttle, brake, gear and a steering value clamped to
  +/-2000; joystick buttons 3 and 5 (`on_joy`) apply and release the brake.
  `step(link)` runs one cycle over an `ErpSerial`.
- `selfcar.ebimu`: `parse_packet` decodes the sensor's 26-byte binary
  payload into an `ImuReading`; `configuration_commands` lists the setup
  commands; `Ebimu` sends them (`configure`), reads packets from a port
  (`read`) and fills in rolling covariances (`feed`).
- `selfcar.gnss_localizer`: `GNSSLocalizer` tracks x, y, heading (from the
  direction of travel between fixes) and speed from `NavSatFix` fixes and
  speed reports, with a covariance over a sample window.
- `selfcar.localizer_model`: the motion model, its Jacobian, process and
  measurement noise, and the measurement matrix of the fused localizer.
- `selfcar.localizer`: `Localizer` fuses GNSS fixes, IMU yaw rate and ERP42
  feedback in an extended Kalman filter. Call `on_initial_pose` to start the
  filter; after that each `on_fix` returns a filtered `Pose`. It also learns
  a yaw bias for the IMU heading while GNSS heading is steady and the
  vehicle drives forward.

## Installation

```
pip install .
```

To run the test suite:

```
pip install ".[test]"
pytest
```

## Quick examples

```python
import math
from selfcar.trigonometric import normalize, to_degree

normalize(3 * math.pi)      # wrapped into [-pi, pi]
to_degree(math.pi)          # 180 degrees
```

```python
from selfcar.navsat import ll_to_utm, utm_letter_designator

utm_letter_designator(37.5)  # 'S'
point = ll_to_utm(37.5, 127.0)
point.zone                   # '52S'
```

```python
import numpy as np
from selfcar.covariance import update_covariance

sample = np.zeros((3, 2))
sample, cov = update_covariance(sample, np.array([[1.0, 2.0]]))
```

```python
from selfcar.erp_serial import encode_command, decode_feedback

frame = encode_command(velocity=100, steer=-200, brake=1, gear=0, alive=0)
len(frame)                   # 14
```

## Command-line tools

Two commands are installed with the package. Both talk to hardware over a
serial port; the default port is `/dev/ttyUSB0`. Stop them with Ctrl-C.

```
selfcar-control --port-name /dev/ttyUSB0 --baud-rate 115200 --rate 70
selfcar-ebimu --port-name /dev/ttyUSB0 --baud-rate 921600
```

- `selfcar-control` opens the ERP42 link and runs the control loop at
  `--rate` Hz (default 70), sending command frames and reading feedback.
- `selfcar-ebimu` configures the EBIMU sensor for binary quaternion output
  and prints each reading. Options: `--covariance-sample-num`, `--ascii`
  (configure ASCII output and dump the raw text instead),
  `--no-confirm-settings`, `--no-gyro-calibration`,
  `--no-accel-calibration` and `--no-mag-calibration`.

## What the package does not do

- It has no message bus. Readings, poses and commands are passed through
  method calls and return values; nothing is published or subscribed.
- `selfcar-control` takes no speed or steering commands from outside: with
  no caller of `Controller.on_cmd_vel`, it drives with a zero command, which
  keeps the vehicle braked. Feeding commands in needs your own code around
  `Controller`.
- The localizers have no command of their own; they are used as libraries.
- There is no visualization: no markers, no transform broadcasting, no
  display of the estimated pose.