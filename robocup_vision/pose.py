"""Rigid 4x4 homogeneous transforms."""

from __future__ import annotations

import math
from typing import Any, Sequence

import numpy as np

_SINGULAR_THRESHOLD = 1e-6


def rodrigues(vector: Sequence[float]) -> np.ndarray:
    """Convert an axis-angle rotation vector to a 3x3 rotation matrix."""
    r = np.asarray(vector, dtype=np.float64).reshape(-1)
    if r.size != 3:
        raise ValueError("rotation vector needs 3 components")
    theta = float(np.linalg.norm(r))
    if theta < np.finfo(np.float64).eps:
        return np.eye(3)
    k = r / theta
    skew = np.array([[0.0, -k[2], k[1]], [k[2], 0.0, -k[0]], [-k[1], k[0], 0.0]])
    c, s = math.cos(theta), math.sin(theta)
    return c * np.eye(3) + (1 - c) * np.outer(k, k) + s * skew


def _quaternion_to_matrix(qx: float, qy: float, qz: float, qw: float) -> np.ndarray:
    d = qx * qx + qy * qy + qz * qz + qw * qw
    if d == 0:
        raise ValueError("quaternion must not be zero")
    s = 2.0 / d
    xs, ys, zs = qx * s, qy * s, qz * s
    wx, wy, wz = qw * xs, qw * ys, qw * zs
    xx, xy, xz = qx * xs, qx * ys, qx * zs
    yy, yz, zz = qy * ys, qy * zs, qz * zs
    return np.array([
        [1.0 - (yy + zz), xy - wz, xz + wy],
        [xy + wz, 1.0 - (xx + zz), yz - wx],
        [xz - wy, yz + wx, 1.0 - (xx + yy)],
    ])


class Pose:
    """A rigid transform stored as a 4x4 single-precision matrix."""

    __slots__ = ("matrix",)

    def __init__(self, matrix: Any = None):
        if matrix is None:
            self.matrix = np.eye(4, dtype=np.float32)
            return
        arr = np.array(matrix, dtype=np.float32)
        if arr.shape != (4, 4):
            raise ValueError(f"pose matrix must be 4x4, got shape {arr.shape}")
        self.matrix = arr

    @classmethod
    def _from_parts(cls, rotation: Any, translation: Sequence[float]) -> "Pose":
        matrix = np.eye(4, dtype=np.float32)
        matrix[:3, :3] = rotation
        matrix[:3, 3] = translation
        return cls(matrix)

    @classmethod
    def from_euler(cls, x: float, y: float, z: float,
                   roll: float, pitch: float, yaw: float) -> "Pose":
        """Translation plus rotation R = Rz(yaw) Ry(pitch) Rx(roll)."""
        cr, sr = math.cos(roll), math.sin(roll)
        cp, sp = math.cos(pitch), math.sin(pitch)
        cy, sy = math.cos(yaw), math.sin(yaw)
        rx = np.array([[1, 0, 0], [0, cr, -sr], [0, sr, cr]])
        ry = np.array([[cp, 0, sp], [0, 1, 0], [-sp, 0, cp]])
        rz = np.array([[cy, -sy, 0], [sy, cy, 0], [0, 0, 1]])
        return cls._from_parts(rz @ ry @ rx, (x, y, z))

    @classmethod
    def from_rotation_translation(cls, rotation: Any, translation: Any) -> "Pose":
        """Build from a 3x3 rotation matrix or a 3-element rotation vector and a translation."""
        rot = np.asarray(rotation, dtype=np.float64)
        if rot.shape == (3, 3):
            matrix = rot
        elif rot.shape in ((3, 1), (3,)):
            matrix = rodrigues(rot)
        else:
            raise ValueError(f"invalid rotation matrix size {rot.shape}")
        trans = np.asarray(translation, dtype=np.float64).reshape(-1)
        if trans.size != 3:
            raise ValueError("translation needs 3 components")
        return cls._from_parts(matrix, trans)

    @classmethod
    def from_quaternion(cls, x: float, y: float, z: float,
                        qx: float, qy: float, qz: float, qw: float) -> "Pose":
        """Build from a translation and a (not necessarily unit) quaternion."""
        return cls._from_parts(_quaternion_to_matrix(qx, qy, qz, qw), (x, y, z))

    @classmethod
    def from_yaml(cls, node: Any) -> "Pose":
        """Build from four rows of four numbers."""
        if not isinstance(node, Sequence) or isinstance(node, str) or len(node) != 4:
            raise ValueError("pose needs 4 rows")
        rows = []
        for row in node:
            if not isinstance(row, Sequence) or isinstance(row, str) or len(row) != 4:
                raise ValueError("each pose row needs 4 values")
            try:
                rows.append([float(v) for v in row])
            except (TypeError, ValueError) as exc:
                raise ValueError(f"invalid pose value: {exc}") from exc
        return cls(rows)

    def to_yaml(self) -> list[list[float]]:
        return [[float(v) for v in row] for row in self.matrix]

    def inverse(self) -> "Pose":
        return Pose(np.linalg.inv(self.matrix))

    def rotation_matrix(self) -> np.ndarray:
        return self.matrix[:3, :3].copy()

    def translation(self) -> tuple[float, float, float]:
        x, y, z = (float(v) for v in self.matrix[:3, 3])
        return (x, y, z)

    def quaternion(self) -> tuple[float, float, float, float]:
        """The rotation as a quaternion (x, y, z, w)."""
        m = self.matrix[:3, :3].astype(np.float64)
        q = [0.0, 0.0, 0.0, 0.0]
        trace = m[0, 0] + m[1, 1] + m[2, 2]
        if trace > 0.0:
            s = math.sqrt(trace + 1.0)
            q[3] = s * 0.5
            s = 0.5 / s
            q[0] = (m[2, 1] - m[1, 2]) * s
            q[1] = (m[0, 2] - m[2, 0]) * s
            q[2] = (m[1, 0] - m[0, 1]) * s
        else:
            if m[0, 0] < m[1, 1]:
                i = 2 if m[1, 1] < m[2, 2] else 1
            else:
                i = 2 if m[0, 0] < m[2, 2] else 0
            j = (i + 1) % 3
            k = (i + 2) % 3
            s = math.sqrt(m[i, i] - m[j, j] - m[k, k] + 1.0)
            q[i] = s * 0.5
            s = 0.5 / s
            q[3] = (m[k, j] - m[j, k]) * s
            q[j] = (m[j, i] + m[i, j]) * s
            q[k] = (m[k, i] + m[i, k]) * s
        return (float(q[0]), float(q[1]), float(q[2]), float(q[3]))

    def euler_angles(self) -> tuple[float, float, float]:
        """The rotation as (roll, pitch, yaw)."""
        r = self.matrix[:3, :3].astype(np.float64)
        sy = math.sqrt(r[0, 0] * r[0, 0] + r[1, 0] * r[1, 0])
        if sy >= _SINGULAR_THRESHOLD:
            roll = math.atan2(r[2, 1], r[2, 2])
            pitch = math.atan2(-r[2, 0], sy)
            yaw = math.atan2(r[1, 0], r[0, 0])
        else:
            roll = math.atan2(-r[1, 2], r[1, 1])
            pitch = math.atan2(-r[2, 0], sy)
            yaw = 0.0
        return (roll, pitch, yaw)

    def transform_point(self, point: Sequence[float]) -> tuple[float, float, float]:
        x, y, z = (float(v) for v in point)
        result = self.matrix @ np.array([x, y, z, 1.0], dtype=np.float32)
        return (float(result[0]), float(result[1]), float(result[2]))

    def __matmul__(self, other: Any) -> Any:
        if isinstance(other, Pose):
            return Pose(self.matrix @ other.matrix)
        return self.transform_point(other)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Pose):
            return NotImplemented
        return bool(np.array_equal(self.matrix, other.matrix))

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"Pose({self.matrix.tolist()!r})"

    def __str__(self) -> str:
        rows = (", ".join(f"{v:g}" for v in row) for row in self.matrix)
        return "[" + ";\n ".join(rows) + "]"