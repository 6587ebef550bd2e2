"""Two-view and multi-view geometry: triangulation, epipolar estimation and pose."""

from __future__ import annotations

import math
from typing import Callable, Optional, Sequence

import numpy as np

_DEPTH_LIMIT = 50.0
_HZ_W = np.array([[0.0, -1.0, 0.0], [1.0, 0.0, 0.0], [0.0, 0.0, 1.0]])
_DECOMP_W = np.array([[0.0, 1.0, 0.0], [-1.0, 0.0, 0.0], [0.0, 0.0, 1.0]])
_EPS = np.finfo(float).eps


def _points(points, dims: int, name: str) -> np.ndarray:
    arr = np.asarray(points, dtype=float)
    if arr.size == 0:
        return arr.reshape(0, dims)
    if arr.ndim == 1 and arr.size == dims:
        arr = arr.reshape(1, dims)
    elif arr.ndim == 3 and arr.shape[1] == 1:
        arr = arr[:, 0, :]
    if arr.ndim != 2 or arr.shape[1] != dims:
        raise ValueError(f"{name} must be an array of {dims}-D points")
    return arr


def _pair(p1, p2, minimum: int) -> tuple[np.ndarray, np.ndarray]:
    x1 = _points(p1, 2, "p1")
    x2 = _points(p2, 2, "p2")
    if len(x1) != len(x2):
        raise ValueError("p1 and p2 must hold the same number of points")
    if len(x1) < minimum:
        raise ValueError(f"at least {minimum} point pairs are needed")
    return x1, x2


def _check_ransac_args(threshold: float, confidence: float) -> None:
    if threshold <= 0:
        raise ValueError("threshold must be positive")
    if not 0 < confidence < 1:
        raise ValueError("confidence must lie strictly between 0 and 1")


def _homogeneous(x: np.ndarray) -> np.ndarray:
    return np.hstack([x, np.ones((len(x), 1))])


def _normalize(x: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    centre = x.mean(axis=0)
    spread = np.linalg.norm(x - centre, axis=1).mean()
    scale = math.sqrt(2.0) / spread if spread > 0 else 1.0
    transform = np.array(
        [[scale, 0.0, -scale * centre[0]], [0.0, scale, -scale * centre[1]], [0.0, 0.0, 1.0]]
    )
    return (x - centre) * scale, transform


def _eight_point(x1: np.ndarray, x2: np.ndarray) -> np.ndarray:
    n1, t1 = _normalize(x1)
    n2, t2 = _normalize(x2)
    a = np.column_stack(
        [
            n2[:, 0] * n1[:, 0], n2[:, 0] * n1[:, 1], n2[:, 0],
            n2[:, 1] * n1[:, 0], n2[:, 1] * n1[:, 1], n2[:, 1],
            n1[:, 0], n1[:, 1], np.ones(len(n1)),
        ]
    )
    _, _, vt = np.linalg.svd(a)
    f = vt[-1].reshape(3, 3)
    u, s, vt = np.linalg.svd(f)
    s[2] = 0.0
    return t2.T @ (u @ np.diag(s) @ vt) @ t1


def _epipolar_distance(f: np.ndarray, x1: np.ndarray, x2: np.ndarray) -> np.ndarray:
    h1 = _homogeneous(x1)
    h2 = _homogeneous(x2)
    lines2 = h1 @ f.T
    lines1 = h2 @ f
    s = np.sum(h2 * lines2, axis=1) ** 2
    d2 = s / np.maximum(lines2[:, 0] ** 2 + lines2[:, 1] ** 2, _EPS)
    d1 = s / np.maximum(lines1[:, 0] ** 2 + lines1[:, 1] ** 2, _EPS)
    return np.maximum(d1, d2)


def _sampson_distance(e: np.ndarray, x1: np.ndarray, x2: np.ndarray) -> np.ndarray:
    h1 = _homogeneous(x1)
    h2 = _homogeneous(x2)
    ex1 = h1 @ e.T
    etx2 = h2 @ e
    num = np.sum(h2 * ex1, axis=1) ** 2
    den = ex1[:, 0] ** 2 + ex1[:, 1] ** 2 + etx2[:, 0] ** 2 + etx2[:, 1] ** 2
    return num / np.maximum(den, _EPS)


def _update_iterations(confidence: float, outlier_ratio: float, sample_size: int, max_iters: int) -> int:
    tiny = np.finfo(float).tiny
    num = max(1.0 - confidence, tiny)
    denom = 1.0 - (1.0 - outlier_ratio) ** sample_size
    if denom < tiny:
        return 0
    num = math.log(num)
    denom = math.log(denom)
    if denom >= 0 or -num >= max_iters * (-denom):
        return max_iters
    return round(num / denom)


def _ransac(
    count: int,
    sample_size: int,
    fit: Callable[[np.ndarray], Optional[object]],
    residuals: Callable[[object], np.ndarray],
    threshold_sq: float,
    confidence: float,
    max_iters: int,
    rng: np.random.Generator,
):
    def safe_fit(indices: np.ndarray):
        try:
            model = fit(indices)
        except np.linalg.LinAlgError:
            return None
        return model

    best_model = None
    best_mask = None
    best_count = -1
    limit = max_iters
    done = 0
    while done < limit:
        done += 1
        sample = rng.choice(count, sample_size, replace=False)
        model = safe_fit(sample)
        if model is None:
            continue
        mask = residuals(model) <= threshold_sq
        found = int(mask.sum())
        if found > best_count:
            best_model, best_mask, best_count = model, mask, found
            limit = min(limit, _update_iterations(confidence, 1.0 - found / count, sample_size, max_iters))
    if best_model is None:
        raise ValueError("no consistent model could be estimated")
    if best_count >= sample_size:
        refined = safe_fit(np.flatnonzero(best_mask))
        if refined is not None:
            mask = residuals(refined) <= threshold_sq
            if int(mask.sum()) >= best_count:
                best_model, best_mask = refined, mask
    return best_model, best_mask


def linear_ls_triangulation(u, p, u1, p1) -> np.ndarray:
    """Triangulate one point from homogeneous image points and two 3x4 cameras."""
    u = np.asarray(u, dtype=float).ravel()
    u1 = np.asarray(u1, dtype=float).ravel()
    p = np.asarray(p, dtype=float).reshape(3, 4)
    p1 = np.asarray(p1, dtype=float).reshape(3, 4)
    rows = [(u[0], p), (u[1], p), (u1[0], p1), (u1[1], p1)]
    a = np.array([coord * cam[2, :3] - cam[i % 2, :3] for i, (coord, cam) in enumerate(rows)])
    b = -np.array([coord * cam[2, 3] - cam[i % 2, 3] for i, (coord, cam) in enumerate(rows)])
    x, *_ = np.linalg.lstsq(a, b, rcond=None)
    return x


def check_coherent_rotation(r) -> bool:
    """Whether ``r`` has a determinant of magnitude one, as a rotation must."""
    det = float(np.linalg.det(np.asarray(r, dtype=float)))
    return float(np.float32(abs(det))) - 1.0 <= 1e-7


def essential_from_fundamental(k, f) -> np.ndarray:
    """Essential matrix K^T F K."""
    k = np.asarray(k, dtype=float)
    return k.T @ np.asarray(f, dtype=float) @ k


def camera_from_essential(e) -> tuple[np.ndarray, np.ndarray]:
    """One rotation and translation consistent with an essential matrix."""
    u, _, vt = np.linalg.svd(np.asarray(e, dtype=float))
    return u @ _HZ_W @ vt, u[:, 2].copy()


def find_fundamental_ransac(p1, p2, threshold=3.0, confidence=0.99, seed=None):
    """Estimate the fundamental matrix robustly; return it and an inlier mask."""
    _check_ransac_args(threshold, confidence)
    x1, x2 = _pair(p1, p2, 8)

    def fit(indices: np.ndarray):
        f = _eight_point(x1[indices], x2[indices])
        if abs(f[2, 2]) > _EPS:
            f = f / f[2, 2]
        return f if np.all(np.isfinite(f)) else None

    return _ransac(
        len(x1), 8, fit, lambda f: _epipolar_distance(f, x1, x2),
        threshold * threshold, confidence, 1000, np.random.default_rng(seed),
    )


def _to_camera(points: np.ndarray, focal: float, principal_point: Sequence[float]) -> np.ndarray:
    return (points - np.asarray(principal_point, dtype=float)) / focal


def find_essential_ransac(p1, p2, focal=1.0, principal_point=(0.0, 0.0), threshold=1.0, confidence=0.999, seed=None):
    """Estimate the essential matrix robustly; return it and an inlier mask."""
    _check_ransac_args(threshold, confidence)
    if focal <= 0:
        raise ValueError("focal length must be positive")
    x1, x2 = _pair(p1, p2, 8)
    n1 = _to_camera(x1, focal, principal_point)
    n2 = _to_camera(x2, focal, principal_point)
    limit = threshold / focal

    def fit(indices: np.ndarray):
        u, _, vt = np.linalg.svd(_eight_point(n1[indices], n2[indices]))
        e = u @ np.diag([1.0, 1.0, 0.0]) @ vt
        e /= np.linalg.norm(e)
        return e if np.all(np.isfinite(e)) else None

    return _ransac(
        len(x1), 8, fit, lambda e: _sampson_distance(e, n1, n2),
        limit * limit, confidence, 1000, np.random.default_rng(seed),
    )


def _decompose_essential(e: np.ndarray):
    u, _, vt = np.linalg.svd(e)
    if np.linalg.det(u) < 0:
        u = -u
    if np.linalg.det(vt) < 0:
        vt = -vt
    return u @ _DECOMP_W @ vt, u @ _DECOMP_W.T @ vt, u[:, 2].copy()


def _in_front(r: np.ndarray, t: np.ndarray, x1: np.ndarray, x2: np.ndarray) -> np.ndarray:
    first = np.hstack([np.eye(3), np.zeros((3, 1))])
    second = np.hstack([r, t[:, None]])
    q = triangulate_points(first, second, x1, x2)
    ok = q[2] * q[3] > 0
    with np.errstate(divide="ignore", invalid="ignore"):
        xyz = q[:3] / q[3]
    ok &= (xyz[2] > 0) & (xyz[2] < _DEPTH_LIMIT)
    moved = r @ xyz + t[:, None]
    ok &= (moved[2] > 0) & (moved[2] < _DEPTH_LIMIT)
    return ok


def recover_pose(e, p1, p2, focal=1.0, principal_point=(0.0, 0.0), mask=None):
    """Pick the pose from ``e`` that puts the most points in front of both cameras.

    Returns the count of such points, the rotation, the unit translation and
    the mask of those points.
    """
    x1, x2 = _pair(p1, p2, 0)
    n1 = _to_camera(x1, focal, principal_point)
    n2 = _to_camera(x2, focal, principal_point)
    allowed = np.ones(len(x1), dtype=bool) if mask is None else np.asarray(mask).ravel() > 0
    if len(allowed) != len(x1):
        raise ValueError("mask must have one entry per point")
    r1, r2, t = _decompose_essential(np.asarray(e, dtype=float))
    candidates = [(r1, t), (r2, t), (r1, -t), (r2, -t)]
    masks = [_in_front(r, tr, n1, n2) & allowed for r, tr in candidates]
    counts = [int(m.sum()) for m in masks]
    best = int(np.argmax(counts))
    r, tr = candidates[best]
    return counts[best], r, tr, masks[best]


def triangulate_points(proj1, proj2, p1, p2) -> np.ndarray:
    """Triangulate matched points; return 4xN homogeneous coordinates."""
    a1 = np.asarray(proj1, dtype=float).reshape(3, 4)
    a2 = np.asarray(proj2, dtype=float).reshape(3, 4)
    x1, x2 = _pair(p1, p2, 0)
    if len(x1) == 0:
        return np.zeros((4, 0))
    system = np.stack(
        [
            x1[:, 0, None] * a1[2] - a1[0],
            x1[:, 1, None] * a1[2] - a1[1],
            x2[:, 0, None] * a2[2] - a2[0],
            x2[:, 1, None] * a2[2] - a2[1],
        ],
        axis=1,
    )
    _, _, vt = np.linalg.svd(system)
    return vt[:, -1, :].T


def rodrigues(rvec) -> np.ndarray:
    """Rotation matrix for an axis-angle rotation vector."""
    r = np.asarray(rvec, dtype=float).ravel()
    if r.size != 3:
        raise ValueError("rotation vector must have three components")
    theta = float(np.linalg.norm(r))
    if theta < _EPS:
        return np.eye(3)
    kx, ky, kz = r / theta
    skew = np.array([[0.0, -kz, ky], [kz, 0.0, -kx], [-ky, kx, 0.0]])
    return np.eye(3) + math.sin(theta) * skew + (1.0 - math.cos(theta)) * (skew @ skew)


def _rotation_vector(r: np.ndarray) -> np.ndarray:
    diagonal_sum = float(r[0, 0] + r[1, 1] + r[2, 2])
    cos = float(np.clip((diagonal_sum - 1.0) / 2.0, -1.0, 1.0))
    theta = math.acos(cos)
    axis = np.array([r[2, 1] - r[1, 2], r[0, 2] - r[2, 0], r[1, 0] - r[0, 1]])
    sin = math.sin(theta)
    if sin > 1e-5:
        return axis / (2.0 * sin) * theta
    if cos > 0:
        return axis / 2.0
    sym = r + np.eye(3)
    column = sym[:, int(np.argmax(np.linalg.norm(sym, axis=0)))]
    return column / np.linalg.norm(column) * math.pi


def _pnp_dlt(world: np.ndarray, image: np.ndarray):
    centre = world.mean(axis=0)
    spread = np.linalg.norm(world - centre, axis=1).mean()
    if not spread > 0:
        return None
    scale = math.sqrt(3.0) / spread
    transform = np.eye(4)
    transform[:3, :3] *= scale
    transform[:3, 3] = -scale * centre
    xh = _homogeneous((world - centre) * scale)
    zero = np.zeros_like(xh)
    a = np.vstack(
        [
            np.hstack([xh, zero, -image[:, 0, None] * xh]),
            np.hstack([zero, xh, -image[:, 1, None] * xh]),
        ]
    )
    _, _, vt = np.linalg.svd(a)
    p = vt[-1].reshape(3, 4) @ transform
    if np.linalg.det(p[:, :3]) < 0:
        p = -p
    u, s, vt = np.linalg.svd(p[:, :3])
    if s.mean() <= _EPS:
        return None
    return u @ vt, p[:, 3] / s.mean()


def solve_pnp_ransac(object_points, image_points, k, threshold=8.0, seed=None):
    """Camera pose from 3-D/2-D correspondences; return rvec, tvec and an inlier mask."""
    _check_ransac_args(threshold, 0.99)
    world = _points(object_points, 3, "object_points")
    pixels = _points(image_points, 2, "image_points")
    if len(world) != len(pixels):
        raise ValueError("object and image points must correspond one to one")
    if len(world) < 6:
        raise ValueError("at least 6 correspondences are needed")
    k = np.asarray(k, dtype=float)
    rays = _homogeneous(pixels) @ np.linalg.inv(k).T
    image = rays[:, :2] / rays[:, 2:]

    def fit(indices: np.ndarray):
        return _pnp_dlt(world[indices], image[indices])

    def residuals(model) -> np.ndarray:
        r, t = model
        proj = (world @ r.T + t) @ k.T
        with np.errstate(divide="ignore", invalid="ignore"):
            err = np.sum((proj[:, :2] / proj[:, 2:] - pixels) ** 2, axis=1)
        return np.where(np.isfinite(err), err, np.inf)

    (r, t), mask = _ransac(
        len(world), 6, fit, residuals, threshold * threshold, 0.99, 100, np.random.default_rng(seed)
    )
    return _rotation_vector(r), t, mask