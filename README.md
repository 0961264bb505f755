# robocup_vision

Building blocks for the perception stack of a RoboCup humanoid soccer robot.

## Modules

- `robocup_vision.protocol` – parse and build the binary UDP packets of the
  RoboCup GameController (`GameControlData`, `TeamInfo`, `RobotInfo`,
  `GameControlReturnData`), the SPL coach message (`CoachMessage`) and the SPL
  standard team message (`StandardMessage`). Every class has `from_bytes` and
  `to_bytes`; a packet of the wrong length or a field that does not fit raises
  `ProtocolError`. `GameState` and `SecondaryState` name the game states.
- `robocup_vision.game_controller` – `GameControllerListener` receives
  GameController broadcasts over UDP, drops packets of the wrong size or
  version, applies the optional IP white list of its `ListenerConfig`, and
  passes each accepted packet, converted to a dictionary by `to_message`, to a
  callback.
- `robocup_vision.intrinsics` – `Intrinsics`: pinhole camera parameters with
  the `DistortionModel` values `NONE`, `BROWN_CONRADY` and
  `INVERSE_BROWN_CONRADY`; `project`, `back_project`, `undistort`, `matrix`,
  and YAML round trips through `from_yaml` / `to_yaml`. `from_matrix` builds
  one from a 3×3 camera matrix.
- `robocup_vision.pose` – `Pose`: a rigid 4×4 transform. Build it with
  `from_euler`, `from_quaternion`, `from_rotation_translation` (rotation matrix
  or Rodrigues vector) or `from_yaml`; read it back with `rotation_matrix`,
  `translation`, `quaternion` (x, y, z, w) and `euler_angles` (roll, pitch,
  yaw). Poses compose with `@`, and `pose @ (x, y, z)` transforms a point.
  `rodrigues` converts a rotation vector to a matrix.
- `robocup_vision.config` – `merge_yaml` merges nested dictionaries,
  `as_or` converts a value or falls back to a default, and `time_string` gives
  a `YYYY-MM-DD-HH-MM-SS` stamp.
- `robocup_vision.data_syncer` – `DataSyncer` buffers depth images and head
  poses (`add_depth`, `add_pose`) and pairs each colour frame with the nearest
  ones in time (`sync`). `load_data` indexes a directory of recorded
  `color_<t>.jpg`, `depth_<t>.png` and `pose_<t>.yaml` files, and
  `next_recorded` replays them in a loop.
- `robocup_vision.image_bridge` – `to_array` turns an `ImageMessage` (height,
  width, encoding, byte order, step, data) into a NumPy array in native byte
  order; `bgra8` images lose their alpha channel. `cv_type` gives the matrix
  type code of an encoding; unknown encodings and malformed messages raise
  `ImageEncodingError`.
- `robocup_vision.pointcloud` – `create_point_cloud` back-projects a depth
  image (optionally within a box) into a coloured `PointCloud`; `downsample`,
  `remove_noise`, `cluster`, `fit_sphere` and `fit_plane` (RANSAC) work on it.
- `robocup_vision.calibration` – eye-in-hand calibration of a head camera from
  chessboard observations: `calibrate_hand_eye` solves AX = XB with one of the
  `HandEyeMethod` solvers, `compute_2d_error` measures reprojection error, and
  `eye_in_hand_calibration` tries every method, optionally refines the result by
  least squares over `ExtrinsicsResidual`, and returns the best
  `CalibrationResult`.
- `robocup_vision.models` – the result types `DetectionRes` and
  `SegmentationRes`, the abstract `Detector` and `Segmentor` interfaces, and the
  helpers `letterbox_layout`, `read_labels`, `trim_whitespace` and
  `format_precision`.

## Installation

```
pip install .
```

With the test dependencies:

```
pip install ".[test]"
pytest
```

## Listening to the GameController

```
robocup-game-controller --port 3838 --enable-ip-white-list --ip-white-list 192.168.1.10
```

The command binds the given port (3838 by default), logs to standard error and
prints every accepted packet as one JSON line on standard output. Without
`--enable-ip-white-list` packets from any sender are accepted.

From code, pass a `ListenerConfig` and a callback to a `GameControllerListener`
and run `serve` with a `threading.Event` that you set to stop it:

```python
import threading

from robocup_vision.game_controller import GameControllerListener, ListenerConfig

def publish(message):
    print(message["state"], message["secs_remaining"])

listener = GameControllerListener(ListenerConfig(), publish)
stop = threading.Event()
listener.serve(stop)
```

`handle_datagram(payload, remote_ip)` runs the same checks on a single
datagram and returns the message, or `None` if the packet was dropped.

## Decoding a packet

```python
from robocup_vision.protocol import GameControlData, GameState

data = GameControlData.from_bytes(payload)
if data.state == GameState.PLAYING:
    ...
assert GameControlData.from_bytes(data.to_bytes()) == data
```

## Camera geometry

```python
from robocup_vision.intrinsics import Intrinsics
from robocup_vision.pose import Pose

intr = Intrinsics(500.0, 500.0, 320.0, 240.0)
uv = intr.project((1.0, 1.0, 1.0))          # (820.0, 740.0)
xyz = intr.back_project(uv, 1.0)            # (1.0, 1.0, 1.0)

eye2head = Pose.from_euler(0.0, 0.0, 0.1, 0.0, 0.3, 0.0)
head2base = Pose.from_quaternion(0.0, 0.0, 0.5, 0.0, 0.0, 0.0, 1.0)
eye2base = head2base @ eye2head
point_in_base = eye2base.transform_point(xyz)
```

## Merging configuration

```python
from robocup_vision.config import merge_yaml

template = {"a": 1, "b": {"c": 2, "d": 3}}
local = {"b": {"c": 4}, "e": 5}
merge_yaml(template, local)
# template == {"a": 1, "b": {"c": 4, "d": 3}, "e": 5}
```

## What the package does not do

- It runs no neural networks: `Detector` and `Segmentor` are interfaces only,
  and no inference backend is included.
- It does not find chessboards in images. Hand-eye calibration takes the board
  corners and board poses as input.
- It has no vision or calibration command and does not subscribe to camera
  topics; the only command is `robocup-game-controller`, and accepted packets
  go to your callback or to standard output, not to a robot middleware.