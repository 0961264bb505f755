"""Pinhole camera intrinsics with optional lens distortion."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Mapping, Sequence

import numpy as np

# Iteration counts of the two undistortion schemes.
_BROWN_CONRADY_ITERATIONS = 5
_INVERSE_BROWN_CONRADY_ITERATIONS = 10


class DistortionModel(IntEnum):
    NONE = 0
    BROWN_CONRADY = 1
    INVERSE_BROWN_CONRADY = 2


@dataclass
class Intrinsics:
    """Focal lengths, principal point and distortion of a camera."""

    fx: float = 0.0
    fy: float = 0.0
    cx: float = 0.0
    cy: float = 0.0
    distortion_coeffs: list[float] = field(default_factory=list)
    model: DistortionModel = DistortionModel.NONE

    def __post_init__(self) -> None:
        self.fx = float(self.fx)
        self.fy = float(self.fy)
        self.cx = float(self.cx)
        self.cy = float(self.cy)
        self.distortion_coeffs = [float(c) for c in self.distortion_coeffs]
        self.model = DistortionModel(self.model)

    @classmethod
    def from_yaml(cls, node: Mapping[str, Any] | None) -> "Intrinsics":
        """Build from a mapping with fx, fy, cx, cy, distortion_model, distortion_coeffs."""
        if not node:
            raise ValueError("Intrinsics: Invalid YAML node")
        try:
            return cls(
                fx=node["fx"],
                fy=node["fy"],
                cx=node["cx"],
                cy=node["cy"],
                distortion_coeffs=node["distortion_coeffs"],
                model=int(node["distortion_model"]),
            )
        except (KeyError, TypeError) as exc:
            raise ValueError(f"Intrinsics: invalid YAML node: {exc}") from exc

    @classmethod
    def from_matrix(
        cls,
        matrix: Any,
        distortion_coeffs: Sequence[float] = (),
        model: DistortionModel = DistortionModel.NONE,
    ) -> "Intrinsics":
        """Build from a 3x3 camera matrix."""
        arr = np.asarray(matrix, dtype=np.float64)
        if arr.shape != (3, 3):
            raise ValueError("Intrinsics: Invalid intrinsics matrix")
        return cls(
            fx=arr[0, 0],
            fy=arr[1, 1],
            cx=arr[0, 2],
            cy=arr[1, 2],
            distortion_coeffs=list(distortion_coeffs),
            model=model,
        )

    def matrix(self) -> np.ndarray:
        """The 3x3 camera matrix."""
        return np.array(
            [[self.fx, 0.0, self.cx], [0.0, self.fy, self.cy], [0.0, 0.0, 1.0]],
            dtype=np.float32,
        )

    def project(self, point: Sequence[float]) -> tuple[float, float]:
        """Project a 3D camera-frame point to pixel coordinates (no distortion)."""
        x, y, z = (float(v) for v in point)
        return (self.fx * x / z + self.cx, self.fy * y / z + self.cy)

    def back_project(self, point: Sequence[float], depth: float = 1.0) -> tuple[float, float, float]:
        """Lift a pixel to a 3D camera-frame point at the given depth."""
        if self.model is DistortionModel.NONE:
            x, y = self._normalized(point)
        elif self.model is DistortionModel.BROWN_CONRADY:
            x, y = self._undistort_brown_conrady(point)
        else:
            x, y = self._undistort_inverse_brown_conrady(point)
        depth = float(depth)
        return (x * depth, y * depth, depth)

    def undistort(self, point: Sequence[float]) -> tuple[float, float]:
        """Remove lens distortion from a pixel position."""
        if self.model is DistortionModel.NONE:
            u, v = point
            return (float(u), float(v))
        return self.project(self.back_project(point))

    def to_yaml(self) -> dict[str, Any]:
        return {
            "fx": self.fx,
            "fy": self.fy,
            "cx": self.cx,
            "cy": self.cy,
            "distortion_model": int(self.model),
            "distortion_coeffs": list(self.distortion_coeffs),
        }

    def __str__(self) -> str:
        lines = [
            f"fx: {self.fx:g}",
            f"fy: {self.fy:g}",
            f"cx: {self.cx:g}",
            f"cy: {self.cy:g}",
            f"distortion_model: {int(self.model)}",
        ]
        if self.model is DistortionModel.NONE:
            lines.append("distortion_coeffs: none")
        elif self.model is DistortionModel.BROWN_CONRADY:
            coeffs = "".join(f"{c:g} " for c in self.distortion_coeffs)
            lines.append(f"distortion_coeffs: {coeffs}")
        return "\n".join(lines) + "\n"

    def _normalized(self, point: Sequence[float]) -> tuple[float, float]:
        u, v = (float(c) for c in point)
        return ((u - self.cx) / self.fx, (v - self.cy) / self.fy)

    def _undistort_brown_conrady(self, point: Sequence[float]) -> tuple[float, float]:
        k1, k2, p1, p2, k3, k4, k5, k6 = (list(self.distortion_coeffs) + [0.0] * 8)[:8]
        x0, y0 = self._normalized(point)
        x, y = x0, y0
        for _ in range(_BROWN_CONRADY_ITERATIONS):
            r2 = x * x + y * y
            icdist = (1 + ((k6 * r2 + k5) * r2 + k4) * r2) / (1 + ((k3 * r2 + k2) * r2 + k1) * r2)
            if icdist < 0:
                return (x0, y0)
            delta_x = 2 * p1 * x * y + p2 * (r2 + 2 * x * x)
            delta_y = p1 * (r2 + 2 * y * y) + 2 * p2 * x * y
            x = (x0 - delta_x) * icdist
            y = (y0 - delta_y) * icdist
        return (x, y)

    def _undistort_inverse_brown_conrady(self, point: Sequence[float]) -> tuple[float, float]:
        if len(self.distortion_coeffs) < 5:
            raise ValueError("inverse Brown-Conrady model needs 5 distortion coefficients")
        k1, k2, p1, p2, k3 = self.distortion_coeffs[:5]
        xo, yo = self._normalized(point)
        x, y = xo, yo
        for _ in range(_INVERSE_BROWN_CONRADY_ITERATIONS):
            r2 = x * x + y * y
            icdist = 1.0 / (1 + ((k3 * r2 + k2) * r2 + k1) * r2)
            xq = x / icdist
            yq = y / icdist
            delta_x = 2 * p1 * xq * yq + p2 * (r2 + 2 * xq * xq)
            delta_y = 2 * p2 * xq * yq + p1 * (r2 + 2 * yq * yq)
            x = (xo - delta_x) * icdist
            y = (yo - delta_y) * icdist
        return (x, y)