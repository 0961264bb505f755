"""Coloured point clouds built from depth images, with filtering and model fitting."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Sequence

import numpy as np
from scipy.sparse import coo_matrix
from scipy.sparse.csgraph import connected_components
from scipy.spatial import cKDTree

from robocup_vision.intrinsics import Intrinsics

MIN_CLUSTER_SIZE = 100
MAX_CLUSTER_SIZE = 125000
MIN_PLANE_INLIERS = 100
RADIUS_TOLERANCE = 0.02
_RANSAC_ITERATIONS = 50


def _empty_points() -> np.ndarray:
    return np.zeros((0, 3), dtype=np.float64)


def _empty_colors() -> np.ndarray:
    return np.zeros((0, 3), dtype=np.uint8)


@dataclass
class PointCloud:
    """Points (N x 3, metres) and their colours (N x 3, as r, g, b)."""

    points: np.ndarray = field(default_factory=_empty_points)
    colors: np.ndarray = field(default_factory=_empty_colors)

    def __post_init__(self) -> None:
        self.points = np.asarray(self.points, dtype=np.float64).reshape(-1, 3)
        self.colors = np.asarray(self.colors, dtype=np.uint8).reshape(-1, 3)
        if len(self.points) != len(self.colors):
            raise ValueError("points and colors must have the same length")

    def __len__(self) -> int:
        return len(self.points)

    def subset(self, indices: Sequence[int] | np.ndarray) -> "PointCloud":
        idx = np.asarray(indices, dtype=np.intp)
        return PointCloud(self.points[idx], self.colors[idx])


def create_point_cloud(
    depth: np.ndarray,
    rgb: np.ndarray,
    intrinsics: Intrinsics,
    bbox: tuple[int, int, int, int] | None = None,
) -> PointCloud:
    """Back-project the valid depth pixels inside ``bbox`` (x, y, w, h).

    ``rgb`` is in BGR channel order; pixels with NaN or non-positive depth are skipped.
    """
    depth = np.asarray(depth, dtype=np.float32)
    rgb = np.asarray(rgb)
    if bbox is None:
        bbox = (0, 0, depth.shape[1], depth.shape[0])
    x0, y0, w, h = bbox
    points = []
    colors = []
    for v in range(y0, y0 + h):
        for u in range(x0, x0 + w):
            d = float(depth[v, u])
            if np.isnan(d) or d <= 0:
                continue
            points.append(intrinsics.back_project((u, v), d))
            b, g, r = rgb[v, u][:3]
            colors.append((r, g, b))
    if not points:
        return PointCloud()
    return PointCloud(np.array(points), np.array(colors))


def downsample(cloud: PointCloud, leaf_size: float) -> PointCloud:
    """Replace the points of each cubic voxel by their centroid and mean colour."""
    if len(cloud) == 0:
        return PointCloud()
    if leaf_size <= 0:
        raise ValueError("leaf_size must be positive")
    keys = np.floor(cloud.points / leaf_size).astype(np.int64)
    _, inverse, counts = np.unique(keys, axis=0, return_inverse=True, return_counts=True)
    inverse = inverse.reshape(-1)
    sums = np.zeros((len(counts), 3))
    np.add.at(sums, inverse, cloud.points)
    color_sums = np.zeros((len(counts), 3))
    np.add.at(color_sums, inverse, cloud.colors.astype(np.float64))
    centroids = sums / counts[:, None]
    colors = np.round(color_sums / counts[:, None]).astype(np.uint8)
    return PointCloud(centroids, colors)


def remove_noise(cloud: PointCloud, neighbour_count: int, multiplier: float) -> PointCloud:
    """Drop points whose mean neighbour distance exceeds mean + multiplier * stddev."""
    n = len(cloud)
    if n < 2:
        return PointCloud(cloud.points.copy(), cloud.colors.copy())
    k = min(neighbour_count, n - 1)
    if k < 1:
        raise ValueError("neighbour_count must be at least 1")
    distances, _ = cKDTree(cloud.points).query(cloud.points, k=k + 1)
    mean_dist = distances[:, 1:].mean(axis=1)
    threshold = mean_dist.mean() + multiplier * mean_dist.std(ddof=1)
    return cloud.subset(np.flatnonzero(mean_dist <= threshold))


def cluster(cloud: PointCloud, distance_threshold: float) -> list[PointCloud]:
    """Euclidean clustering; clusters of 100 to 125000 points, largest first."""
    n = len(cloud)
    if n == 0:
        return []
    pairs = cKDTree(cloud.points).query_pairs(distance_threshold, output_type="ndarray")
    graph = coo_matrix(
        (np.ones(len(pairs)), (pairs[:, 0], pairs[:, 1])) if len(pairs) else ([], ([], [])),
        shape=(n, n),
    )
    _, labels = connected_components(graph, directed=False)
    groups = [np.flatnonzero(labels == label) for label in np.unique(labels)]
    groups = [g for g in groups if MIN_CLUSTER_SIZE <= len(g) <= MAX_CLUSTER_SIZE]
    groups.sort(key=len, reverse=True)
    return [cloud.subset(g) for g in groups]


def _sphere_from_points(p: np.ndarray) -> tuple[np.ndarray, float] | None:
    a = np.hstack([p, np.ones((4, 1))])
    b = -(p * p).sum(axis=1)
    try:
        d, e, f, g = np.linalg.solve(a, b)
    except np.linalg.LinAlgError:
        return None
    center = -0.5 * np.array([d, e, f])
    r2 = center @ center - g
    if r2 <= 0:
        return None
    return center, float(np.sqrt(r2))


def fit_sphere(
    cloud: PointCloud,
    dist_threshold: float,
    radius: float,
    rng: np.random.Generator | None = None,
) -> tuple[list[float], float]:
    """RANSAC sphere fit: ([cx, cy, cz, r], inlier fraction).

    The confidence is 0 if no sphere is found or its radius is more than
    2 cm off ``radius``.
    """
    rng = rng if rng is not None else np.random.default_rng()
    pts = cloud.points
    if len(pts) < 4:
        return [0.0, 0.0, 0.0, 0.0], 0.0
    best_inliers = np.zeros(0, dtype=np.intp)
    best_model = None
    for _ in range(_RANSAC_ITERATIONS):
        sample = pts[rng.choice(len(pts), 4, replace=False)]
        model = _sphere_from_points(sample)
        if model is None:
            continue
        center, r = model
        dist = np.abs(np.linalg.norm(pts - center, axis=1) - r)
        inliers = np.flatnonzero(dist <= dist_threshold)
        if len(inliers) > len(best_inliers):
            best_inliers, best_model = inliers, (center, r)
    if best_model is None or len(best_inliers) == 0:
        return [0.0, 0.0, 0.0, 0.0], 0.0
    center, r = best_model
    sphere = [float(center[0]), float(center[1]), float(center[2]), r]
    if abs(r - radius) > RADIUS_TOLERANCE:
        return sphere, 0.0
    return sphere, len(best_inliers) / len(pts)


def _refine_plane(points: np.ndarray) -> np.ndarray:
    centroid = points.mean(axis=0)
    _, _, vt = np.linalg.svd(points - centroid)
    normal = vt[-1]
    return np.append(normal, -normal @ centroid)


def fit_plane(
    cloud: PointCloud,
    dist_threshold: float,
    rng: np.random.Generator | None = None,
) -> tuple[list[float], float]:
    """RANSAC plane fit: ([a, b, c, d] with unit normal, inlier fraction).

    Fewer than 100 inliers gives zeros and confidence 0.
    """
    rng = rng if rng is not None else np.random.default_rng()
    pts = cloud.points
    zero = [0.0, 0.0, 0.0, 0.0]
    if len(pts) < 3:
        return zero, 0.0
    best_inliers = np.zeros(0, dtype=np.intp)
    for _ in range(_RANSAC_ITERATIONS):
        p0, p1, p2 = pts[rng.choice(len(pts), 3, replace=False)]
        normal = np.cross(p1 - p0, p2 - p0)
        norm = np.linalg.norm(normal)
        if norm == 0:
            continue
        normal /= norm
        dist = np.abs(pts @ normal - normal @ p0)
        inliers = np.flatnonzero(dist <= dist_threshold)
        if len(inliers) > len(best_inliers):
            best_inliers = inliers
    if len(best_inliers) < MIN_PLANE_INLIERS:
        return zero, 0.0
    plane = _refine_plane(pts[best_inliers])
    return [float(v) for v in plane], len(best_inliers) / len(pts)