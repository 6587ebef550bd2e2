"""Feature containers and brute-force descriptor matching."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from itertools import pairwise
from typing import Sequence

import numpy as np

log = logging.getLogger(__name__)

_RATIO = 0.6
_FLT_MAX = float(np.finfo(np.float32).max)


@dataclass(frozen=True)
class Match:
    """A correspondence between a query descriptor and a train descriptor."""

    query_idx: int
    train_idx: int
    distance: float


@dataclass(eq=False)
class Features:
    """Key point positions, descriptors and colours of one image."""

    key_points: np.ndarray
    descriptors: np.ndarray
    colors: np.ndarray

    def __post_init__(self) -> None:
        self.key_points = np.asarray(self.key_points, dtype=float).reshape(-1, 2)
        self.descriptors = np.atleast_2d(np.asarray(self.descriptors, dtype=float))
        self.colors = np.asarray(self.colors, dtype=np.uint8).reshape(-1, 3)
        sizes = {len(self.key_points), len(self.descriptors), len(self.colors)}
        if len(sizes) != 1:
            raise ValueError("key points, descriptors and colours differ in count")

    def __len__(self) -> int:
        return len(self.key_points)


def _descriptors(values, name: str) -> np.ndarray:
    arr = np.asarray(values, dtype=float)
    if arr.ndim != 2:
        raise ValueError(f"{name} must be a two-dimensional array")
    return arr


def knn_match(query, train, k) -> list[list[Match]]:
    """For each query row, the ``k`` nearest train rows by Euclidean distance."""
    q = _descriptors(query, "query")
    t = _descriptors(train, "train")
    if q.shape[1] != t.shape[1]:
        raise ValueError("descriptor lengths differ")
    if k < 1:
        raise ValueError("k must be at least 1")
    if len(q) == 0 or len(t) == 0:
        return [[] for _ in range(len(q))]
    squared = (q**2).sum(axis=1)[:, None] + (t**2).sum(axis=1)[None, :] - 2.0 * q @ t.T
    dist = np.sqrt(np.maximum(squared, 0.0))
    order = np.argsort(dist, axis=1, kind="stable")[:, :k]
    return [
        [Match(qi, int(ti), float(dist[qi, ti])) for ti in row]
        for qi, row in enumerate(order)
    ]


def match_features(query, train) -> list[Match]:
    """Matches that pass the ratio test and are not far worse than the best one."""
    if len(_descriptors(train, "train")) < 2:
        raise ValueError("train needs at least two descriptors for the ratio test")
    pairs = knn_match(query, train, 2)
    passing = [best for best, second in pairs if best.distance <= _RATIO * second.distance]
    min_dist = min((m.distance for m in passing), default=_FLT_MAX)
    limit = 5.0 * max(min_dist, 10.0)
    return [m for m in passing if m.distance <= limit]


def match_sequence(descriptors: Sequence) -> list[list[Match]]:
    """Match each image's descriptors with those of the image after it."""
    result = []
    for i, (a, b) in enumerate(pairwise(descriptors)):
        log.info("Matching images %d - %d", i, i + 1)
        result.append(match_features(a, b))
    return result


def _indices(matches: Sequence[Match]) -> tuple[np.ndarray, np.ndarray]:
    query = np.fromiter((m.query_idx for m in matches), dtype=int, count=len(matches))
    train = np.fromiter((m.train_idx for m in matches), dtype=int, count=len(matches))
    return query, train


def get_matched_points(p1, p2, matches) -> tuple[np.ndarray, np.ndarray]:
    """Positions of matched key points in the query and train images."""
    query, train = _indices(matches)
    a = np.asarray(p1, dtype=float).reshape(-1, 2)
    b = np.asarray(p2, dtype=float).reshape(-1, 2)
    return a[query], b[train]


def get_matched_colors(c1, c2, matches) -> tuple[np.ndarray, np.ndarray]:
    """Colours of matched key points in the query and train images."""
    query, train = _indices(matches)
    a = np.asarray(c1, dtype=np.uint8).reshape(-1, 3)
    b = np.asarray(c2, dtype=np.uint8).reshape(-1, 3)
    return a[query], b[train]


def maskout(items, mask):
    """Keep the items whose mask entry is positive."""
    keep = np.asarray(mask).ravel() > 0
    if len(keep) != len(items):
        raise ValueError("mask and items differ in length")
    if isinstance(items, np.ndarray):
        return items[keep]
    return [item for item, kept in zip(items, keep) if kept]