"""Incremental structure recovery: initial two-view reconstruction and view fusion."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Sequence

import numpy as np

from .geometry import (
    find_essential_ransac,
    recover_pose,
    rodrigues,
    solve_pnp_ransac,
    triangulate_points,
)
from .matching import Features, Match, get_matched_colors, get_matched_points, maskout

log = logging.getLogger(__name__)

_SEED = 0


class TransformError(ValueError):
    """Raised when no reliable relative transform exists between two views."""


def find_transform(k, p1, p2):
    """Relative rotation, translation and inlier mask between two views.

    Raises TransformError when too few matches survive RANSAC or too few
    points lie in front of both cameras.
    """
    k = np.asarray(k, dtype=float)
    focal = 0.5 * (k[0, 0] + k[1, 1])
    principal = (k[0, 2], k[1, 2])
    e, mask = find_essential_ransac(p1, p2, focal, principal, 1.0, 0.999, seed=_SEED)
    feasible = int(mask.sum())
    log.info("%d -in- %d", feasible, len(mask))
    if feasible <= 15 or feasible / len(mask) < 0.6:
        raise TransformError("too many outliers for a reliable transform")
    count, r, t, pose_mask = recover_pose(e, p1, p2, focal, principal, mask)
    if count / feasible < 0.7:
        raise TransformError("too few points lie in front of both cameras")
    return r, np.asarray(t, dtype=float).reshape(3, 1), pose_mask


def _projection(k, r, t) -> np.ndarray:
    rt = np.hstack(
        [np.asarray(r, dtype=np.float32).reshape(3, 3), np.asarray(t, dtype=np.float32).reshape(3, 1)]
    )
    return np.asarray(k, dtype=np.float32) @ rt


def reconstruct(k, r1, t1, r2, t2, p1, p2) -> np.ndarray:
    """Triangulate matched points seen by two posed cameras; return Nx3 float32."""
    s = triangulate_points(_projection(k, r1, t1), _projection(k, r2, t2), p1, p2)
    return (s[:3] / s[3]).T.astype(np.float32)


def get_objpoints_and_imgpoints(matches, struct_indices, structure, key_points):
    """Known 3-D points and the pixels where the next image sees them."""
    pairs = [
        (structure[idx], key_points[m.train_idx])
        for m in matches
        if (idx := struct_indices[m.query_idx]) >= 0
    ]
    objects = np.array([p for p, _ in pairs], dtype=float).reshape(-1, 3)
    pixels = np.array([q for _, q in pairs], dtype=float).reshape(-1, 2)
    return objects, pixels


def fusion_structure(matches, struct_indices, next_struct_indices, structure, next_structure, colors, next_colors) -> int:
    """Merge newly triangulated points into ``structure``; return how many were added."""
    added = 0
    for i, m in enumerate(matches):
        idx = struct_indices[m.query_idx]
        if idx >= 0:
            next_struct_indices[m.train_idx] = idx
            continue
        structure.append(next_structure[i])
        colors.append(next_colors[i])
        struct_indices[m.query_idx] = next_struct_indices[m.train_idx] = len(structure) - 1
        added += 1
    return added


@dataclass
class Reconstruction:
    """A growing point cloud with the camera poses that observe it."""

    structure: list = field(default_factory=list)
    colors: list = field(default_factory=list)
    rotations: list = field(default_factory=list)
    motions: list = field(default_factory=list)
    correspond_struct_idx: list = field(default_factory=list)

    @property
    def points(self) -> np.ndarray:
        return np.array(self.structure, dtype=np.float32).reshape(-1, 3)

    def add_view(self, index: int, k, features: Sequence[Features], matches_for_all: Sequence[Sequence[Match]]) -> None:
        """Pose image ``index + 1`` against the structure and fuse its new points."""
        matches = matches_for_all[index]
        current, following = features[index], features[index + 1]
        objects, pixels = get_objpoints_and_imgpoints(
            matches, self.correspond_struct_idx[index], self.structure, following.key_points
        )
        rvec, t, _ = solve_pnp_ransac(objects, pixels, k, seed=_SEED)
        r = rodrigues(rvec)
        t = np.asarray(t, dtype=float).reshape(3, 1)
        self.rotations.append(r)
        self.motions.append(t)

        p1, p2 = get_matched_points(current.key_points, following.key_points, matches)
        c1, _ = get_matched_colors(current.colors, following.colors, matches)
        next_structure = reconstruct(k, self.rotations[index], self.motions[index], r, t, p1, p2)
        fusion_structure(
            matches,
            self.correspond_struct_idx[index],
            self.correspond_struct_idx[index + 1],
            self.structure,
            list(next_structure),
            self.colors,
            list(c1),
        )


def init_structure(k, features: Sequence[Features], matches_for_all: Sequence[Sequence[Match]]) -> Reconstruction:
    """Reconstruct the first two images and index their key points into the cloud."""
    if len(features) < 2 or not matches_for_all:
        raise ValueError("at least two images with matches are needed")
    first, second = features[0], features[1]
    matches = matches_for_all[0]
    p1, p2 = get_matched_points(first.key_points, second.key_points, matches)
    c1, _ = get_matched_colors(first.colors, second.colors, matches)
    r, t, mask = find_transform(k, p1, p2)

    p1, p2, c1 = maskout(p1, mask), maskout(p2, mask), maskout(c1, mask)
    r0 = np.eye(3)
    t0 = np.zeros((3, 1))
    structure = reconstruct(k, r0, t0, r, t, p1, p2)

    indices = [[-1] * len(f) for f in features]
    next_idx = 0
    for m, keep in zip(matches, mask):
        if not keep:
            continue
        indices[0][m.query_idx] = next_idx
        indices[1][m.train_idx] = next_idx
        next_idx += 1

    return Reconstruction(
        structure=list(structure),
        colors=list(c1),
        rotations=[r0, r],
        motions=[t0, t],
        correspond_struct_idx=indices,
    )


def _yaml_matrix(m) -> str:
    arr = np.asarray(m, dtype=float)
    arr = arr.reshape(arr.shape[0], -1) if arr.ndim > 1 else arr.reshape(-1, 1)
    data = ", ".join(repr(float(v)) for v in arr.ravel())
    return (
        "   - !!opencv-matrix\n"
        f"      rows: {arr.shape[0]}\n"
        f"      cols: {arr.shape[1]}\n"
        "      dt: d\n"
        f"      data: [ {data} ]\n"
    )


def _yaml_seq(name: str, items: list[str]) -> str:
    if not items:
        return f"{name}: []\n"
    return f"{name}:\n" + "".join(items)


def save_structure(path, rotations, motions, structure, colors) -> None:
    """Write camera poses, points and colours as an OpenCV-style YAML file."""
    points = np.asarray(structure, dtype=np.float32).reshape(-1, 3)
    cols = np.asarray(colors, dtype=np.uint8).reshape(-1, 3)
    n = len(rotations)
    text = "%YAML:1.0\n---\n"
    text += f"Camera Count: {n}\n"
    text += f"Point Count: {len(points)}\n"
    text += _yaml_seq("Rotations", [_yaml_matrix(r) for r in rotations[:n]])
    text += _yaml_seq("Motions", [_yaml_matrix(t) for t in motions[:n]])
    text += _yaml_seq(
        "Points", [f"   - [ {float(x):.9g}, {float(y):.9g}, {float(z):.9g} ]\n" for x, y, z in points]
    )
    text += _yaml_seq("Colors", [f"   - [ {b}, {g}, {r} ]\n" for b, g, r in cols])
    Path(path).write_text(text, encoding="utf-8")