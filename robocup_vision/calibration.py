"""Eye-in-hand extrinsic calibration of a head camera against a chessboard."""

from __future__ import annotations

import itertools
import logging
import math
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Sequence

import numpy as np
from scipy.optimize import least_squares
from scipy.spatial.transform import Rotation

from robocup_vision.intrinsics import Intrinsics
from robocup_vision.pose import Pose

logger = logging.getLogger(__name__)

MAX_INITIAL_ERROR = 250.0
_MAX_EVALUATIONS = 500


class HandEyeMethod(IntEnum):
    TSAI = 0
    PARK = 1
    HORAUD = 2
    ANDREFF = 3
    DANIILIDIS = 4


@dataclass
class CalibrationResult:
    """Best camera-to-head and board-to-base poses and their reprojection error."""

    reprojection_error: float = math.inf
    eye2head: Pose = field(default_factory=Pose)
    board2base: Pose = field(default_factory=Pose)


def _distortion(intrinsics: Intrinsics) -> np.ndarray:
    if not intrinsics.distortion_coeffs:
        return np.zeros(5)
    return np.asarray(intrinsics.distortion_coeffs[:5], dtype=np.float64)


def _project_batch(points: np.ndarray, intrinsics: Intrinsics) -> np.ndarray:
    d = _distortion(intrinsics)
    x = points[:, 0] / points[:, 2]
    y = points[:, 1] / points[:, 2]
    r2 = x * x + y * y
    r4 = r2 * r2
    r6 = r4 * r2
    radial = 1 + d[0] * r2 + d[1] * r4 + d[4] * r6
    xp = x * radial + 2 * d[2] * x * y + d[3] * (r2 + 2 * x * x)
    yp = y * radial + d[2] * (r2 + 2 * y * y) + 2 * d[3] * x * y
    return np.column_stack([intrinsics.fx * xp + intrinsics.cx, intrinsics.fy * yp + intrinsics.cy])


def project_distorted(point: Sequence[float], intrinsics: Intrinsics) -> tuple[float, float]:
    """Project a camera-frame point with the 5-coefficient Brown-Conrady model."""
    uv = _project_batch(np.asarray(point, dtype=np.float64).reshape(1, 3), intrinsics)[0]
    return (float(uv[0]), float(uv[1]))


def _residuals(q_head2cam, t_head2cam, q_board2base, t_board2base,
               r_base2head, t_base2head, objects, uvs, intrinsics) -> np.ndarray:
    r_h2c = Rotation.from_quat(q_head2cam).as_matrix()
    r_b2b = Rotation.from_quat(q_board2base).as_matrix()
    r_base2cam = r_h2c @ r_base2head
    t_base2cam = t_base2head @ r_h2c.T + t_head2cam
    r_board2cam = r_base2cam @ r_b2b
    t_board2cam = np.einsum("nij,j->ni", r_base2cam, t_board2base) + t_base2cam
    obj_cam = np.einsum("nij,nj->ni", r_board2cam, objects) + t_board2cam
    return (_project_batch(obj_cam, intrinsics) - uvs).reshape(-1)


class ExtrinsicsResidual:
    """Reprojection residual of one board corner for the joint optimisation.

    Quaternions are given as (x, y, z, w).
    """

    def __init__(self, object_point, uv, base2head: Pose, intrinsics: Intrinsics):
        self.object_point = np.asarray(object_point, dtype=np.float64).reshape(3)
        self.uv = np.asarray(uv, dtype=np.float64).reshape(2)
        self.base2head = base2head
        self.intrinsics = intrinsics

    def __call__(self, q_head2cam, t_head2cam, q_board2base, t_board2base) -> np.ndarray:
        rot = self.base2head.rotation_matrix().astype(np.float64)[None]
        trans = np.asarray(self.base2head.translation(), dtype=np.float64)[None]
        return _residuals(
            np.asarray(q_head2cam, float), np.asarray(t_head2cam, float),
            np.asarray(q_board2base, float), np.asarray(t_board2base, float),
            rot, trans, self.object_point[None], self.uv[None], self.intrinsics,
        )


def compute_2d_error(corners_3d, corners_2d, head2bases: Sequence[Pose], board2base: Pose,
                     eye2head: Pose, intrinsics: Intrinsics) -> float:
    """Mean over frames of the mean pixel distance between projected and detected corners."""
    if not corners_2d:
        raise ValueError("no frames given")
    total = 0.0
    for index, (frame_3d, frame_2d) in enumerate(zip(corners_3d, corners_2d)):
        base2eye = (head2bases[index] @ eye2head).inverse()
        board2eye = base2eye @ board2base
        error = 0.0
        for corner_3d, corner_2d in zip(frame_3d, frame_2d):
            u, v = intrinsics.project(board2eye.transform_point(corner_3d))
            error += math.hypot(u - corner_2d[0], v - corner_2d[1])
        error /= len(frame_2d)
        logger.info("frame %d error: %f", index, error)
        total += error
    return total / len(corners_2d)


def _skew(v: np.ndarray) -> np.ndarray:
    return np.array([[0.0, -v[2], v[1]], [v[2], 0.0, -v[0]], [-v[1], v[0], 0.0]])


def _motions(head2bases, board2cameras) -> list[tuple[np.ndarray, np.ndarray]]:
    if len(head2bases) != len(board2cameras):
        raise ValueError("pose lists differ in length")
    if len(head2bases) < 3:
        raise ValueError("hand-eye calibration needs at least 3 poses")
    g = [p.matrix.astype(np.float64) for p in head2bases]
    c = [p.matrix.astype(np.float64) for p in board2cameras]
    return [(np.linalg.inv(g[j]) @ g[i], c[j] @ np.linalg.inv(c[i]))
            for i, j in itertools.combinations(range(len(g)), 2)]


def _solve_translation(rx: np.ndarray, motions) -> np.ndarray:
    lhs = np.vstack([a[:3, :3] - np.eye(3) for a, _ in motions])
    rhs = np.concatenate([rx @ b[:3, 3] - a[:3, 3] for a, b in motions])
    return np.linalg.lstsq(lhs, rhs, rcond=None)[0]


def _orthonormal(m: np.ndarray) -> np.ndarray:
    u, _, vt = np.linalg.svd(m)
    r = u @ vt
    if np.linalg.det(r) < 0:
        u[:, -1] *= -1
        r = u @ vt
    return r


def _tsai(motions) -> np.ndarray:
    def modified(rotation):
        rv = Rotation.from_matrix(rotation).as_rotvec()
        theta = np.linalg.norm(rv)
        return np.zeros(3) if theta == 0 else 2 * math.sin(theta / 2) * rv / theta

    lhs, rhs = [], []
    for a, b in motions:
        pg, pc = modified(a[:3, :3]), modified(b[:3, :3])
        lhs.append(_skew(pg + pc))
        rhs.append(pc - pg)
    prime = np.linalg.lstsq(np.vstack(lhs), np.concatenate(rhs), rcond=None)[0]
    pcg = 2 * prime / math.sqrt(1 + prime @ prime)
    n2 = pcg @ pcg
    return (1 - n2 / 2) * np.eye(3) + 0.5 * (np.outer(pcg, pcg) + math.sqrt(4 - n2) * _skew(pcg))


def _park(motions) -> np.ndarray:
    m = np.zeros((3, 3))
    for a, b in motions:
        alpha = Rotation.from_matrix(a[:3, :3]).as_rotvec()
        beta = Rotation.from_matrix(b[:3, :3]).as_rotvec()
        m += np.outer(beta, alpha)
    w, v = np.linalg.eigh(m.T @ m)
    if np.any(w <= 0):
        raise np.linalg.LinAlgError("degenerate rotations")
    return v @ np.diag(1 / np.sqrt(w)) @ v.T @ m.T


def _wxyz(rotation: np.ndarray) -> np.ndarray:
    x, y, z, w = Rotation.from_matrix(rotation).as_quat()
    q = np.array([w, x, y, z])
    return -q if q[0] < 0 else q


def _left(q):
    a0, a1, a2, a3 = q
    return np.array([[a0, -a1, -a2, -a3], [a1, a0, -a3, a2], [a2, a3, a0, -a1], [a3, -a2, a1, a0]])


def _right(q):
    b0, b1, b2, b3 = q
    return np.array([[b0, -b1, -b2, -b3], [b1, b0, b3, -b2], [b2, -b3, b0, b1], [b3, b2, -b1, b0]])


def _matrix_from_wxyz(q: np.ndarray) -> np.ndarray:
    return Rotation.from_quat([q[1], q[2], q[3], q[0]]).as_matrix()


def _horaud(motions) -> np.ndarray:
    rows = [_left(_wxyz(a[:3, :3])) - _right(_wxyz(b[:3, :3])) for a, b in motions]
    _, _, vt = np.linalg.svd(np.vstack(rows))
    return _matrix_from_wxyz(vt[-1])


def _andreff(motions) -> tuple[np.ndarray, np.ndarray]:
    eye = np.eye(3)
    rows, rhs = [], []
    for a, b in motions:
        ra, rb = a[:3, :3], b[:3, :3]
        rows.append(np.hstack([np.kron(eye, ra) - np.kron(rb.T, eye), np.zeros((9, 3))]))
        rhs.append(np.zeros(9))
        rows.append(np.hstack([np.kron(b[:3, 3].reshape(1, 3), eye), eye - ra]))
        rhs.append(a[:3, 3])
    solution = np.linalg.lstsq(np.vstack(rows), np.concatenate(rhs), rcond=None)[0]
    rx = _orthonormal(solution[:9].reshape(3, 3, order="F"))
    return rx, _solve_translation(rx, motions)


def _dual(transform: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    q = _wxyz(transform[:3, :3])
    t = np.concatenate([[0.0], transform[:3, 3]])
    return q, 0.5 * _left(t) @ q


def _daniilidis(motions) -> tuple[np.ndarray, np.ndarray]:
    rows = []
    for a, b in motions:
        qa, qa_d = _dual(a)
        qb, qb_d = _dual(b)
        top = np.hstack([(qa[1:] - qb[1:])[:, None], _skew(qa[1:] + qb[1:]), np.zeros((3, 4))])
        bottom = np.hstack([(qa_d[1:] - qb_d[1:])[:, None], _skew(qa_d[1:] + qb_d[1:]),
                            (qa[1:] - qb[1:])[:, None], _skew(qa[1:] + qb[1:])])
        rows.extend([top, bottom])
    _, _, vt = np.linalg.svd(np.vstack(rows))
    v7, v8 = vt[-2], vt[-1]
    u1, w1, u2, w2 = v7[:4], v7[4:], v8[:4], v8[4:]
    qa_, qb_, qc_ = u1 @ w1, u1 @ w2 + u2 @ w1, u2 @ w2
    if abs(qa_) < 1e-12:
        if abs(qb_) < 1e-12:
            raise np.linalg.LinAlgError("degenerate dual-quaternion system")
        candidates = [-qc_ / qb_]
    else:
        disc = qb_ * qb_ - 4 * qa_ * qc_
        if disc < 0:
            disc = 0.0
        root = math.sqrt(disc)
        candidates = [(-qb_ + root) / (2 * qa_), (-qb_ - root) / (2 * qa_)]
    norms = [s * s * (u1 @ u1) + 2 * s * (u1 @ u2) + u2 @ u2 for s in candidates]
    best = int(np.argmax(norms))
    s = candidates[best]
    lambda2 = 1 / math.sqrt(norms[best])
    q = s * lambda2 * v7 + lambda2 * v8
    real, dual = q[:4], q[4:]
    conj = real * np.array([1, -1, -1, -1])
    t = 2 * (_left(dual) @ conj)[1:]
    return _matrix_from_wxyz(real), t


def calibrate_hand_eye(head2bases: Sequence[Pose], board2cameras: Sequence[Pose],
                       method: HandEyeMethod = HandEyeMethod.TSAI) -> Pose:
    """Solve AX = XB for the camera-to-head pose."""
    motions = _motions(head2bases, board2cameras)
    method = HandEyeMethod(method)
    if method is HandEyeMethod.ANDREFF:
        rx, tx = _andreff(motions)
    elif method is HandEyeMethod.DANIILIDIS:
        rx, tx = _daniilidis(motions)
    else:
        solver = {HandEyeMethod.TSAI: _tsai, HandEyeMethod.PARK: _park,
                  HandEyeMethod.HORAUD: _horaud}[method]
        rx = solver(motions)
        tx = _solve_translation(rx, motions)
    if not (np.all(np.isfinite(rx)) and np.all(np.isfinite(tx))):
        raise np.linalg.LinAlgError("hand-eye solution is not finite")
    return Pose.from_rotation_translation(rx, tx)


def _quat_translation(pose: Pose) -> tuple[np.ndarray, np.ndarray]:
    q = Rotation.from_matrix(pose.rotation_matrix().astype(np.float64)).as_quat()
    return q, np.asarray(pose.translation(), dtype=np.float64)


def _optimize(eye2head, board2base, head2bases, corners_3d, corners_2d, intrinsics):
    q_h2c, t_h2c = _quat_translation(eye2head.inverse())
    q_b2b, t_b2b = _quat_translation(board2base)
    rots, trans, objects, uvs = [], [], [], []
    for index, (frame_3d, frame_2d) in enumerate(zip(corners_3d, corners_2d)):
        base2head = head2bases[index].inverse()
        rot = base2head.rotation_matrix().astype(np.float64)
        tr = np.asarray(base2head.translation(), dtype=np.float64)
        for corner_3d, corner_2d in zip(frame_3d, frame_2d):
            rots.append(rot)
            trans.append(tr)
            objects.append(corner_3d)
            uvs.append(corner_2d)
    rots, trans = np.array(rots), np.array(trans)
    objects = np.asarray(objects, dtype=np.float64)
    uvs = np.asarray(uvs, dtype=np.float64)

    def fun(x):
        return _residuals(x[0:4], x[4:7], x[7:11], x[11:14], rots, trans, objects, uvs, intrinsics)

    x0 = np.concatenate([q_h2c, t_h2c, q_b2b, t_b2b])
    initial_cost = 0.5 * float(fun(x0) @ fun(x0))
    result = least_squares(fun, x0, max_nfev=_MAX_EVALUATIONS)
    x = result.x
    board_opt = Pose.from_quaternion(*x[11:14], *x[7:11])
    head2cam_opt = Pose.from_quaternion(*x[4:7], *x[0:4])
    return initial_cost, float(result.cost), head2cam_opt.inverse(), board_opt


def eye_in_hand_calibration(board2cameras: Sequence[Pose], head2bases: Sequence[Pose],
                            corners_3d, corners_2d, intrinsics: Intrinsics,
                            optimization: bool = True) -> CalibrationResult:
    """Try every hand-eye method, optionally refine, and keep the best result."""
    best = CalibrationResult()
    for method in HandEyeMethod:
        logger.info("calibrate round: %d", int(method))
        try:
            eye2head = calibrate_hand_eye(head2bases, board2cameras, method)
        except (ValueError, np.linalg.LinAlgError) as exc:
            logger.error("calibrateHandEye failed: %s", exc)
            continue
        board2base = head2bases[0] @ eye2head @ board2cameras[0]
        error = compute_2d_error(corners_3d, corners_2d, head2bases, board2base, eye2head, intrinsics)
        logger.info("reprojection error: %f", error)
        if not math.isfinite(error) or error > MAX_INITIAL_ERROR:
            logger.error("reprojection error too large, skip optimization")
            continue
        if not optimization:
            if best.reprojection_error > error:
                best = CalibrationResult(error, eye2head, board2base)
            continue

        initial_cost, final_cost, eye2head_opt, board2base_opt = _optimize(
            eye2head, board2base, head2bases, corners_3d, corners_2d, intrinsics)
        point_count = len(corners_2d) * len(corners_2d[0])
        initial_error = math.sqrt(2 * initial_cost / point_count)
        optimized_error = math.sqrt(2 * final_cost / point_count)
        if optimized_error < initial_error:
            error = compute_2d_error(corners_3d, corners_2d, head2bases,
                                     board2base_opt, eye2head_opt, intrinsics)
            logger.info("reprojection error after optimization: %f", error)
            if best.reprojection_error > optimized_error:
                best = CalibrationResult(error, eye2head_opt, board2base_opt)
    return best