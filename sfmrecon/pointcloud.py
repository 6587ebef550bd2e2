"""Two-view point clouds and their text and PCD file forms."""

from __future__ import annotations

import logging
from pathlib import Path

import numpy as np

from .geometry import (
    camera_from_essential,
    check_coherent_rotation,
    essential_from_fundamental,
    find_fundamental_ransac,
    linear_ls_triangulation,
)

log = logging.getLogger(__name__)

POINT_LIST_HEADER = "点云结果为："


def numbered_filename(prefix: str, index: int, suffix: str) -> str:
    """Join a prefix, a decimal index and a suffix."""
    return f"{prefix}{index}{suffix}"


def format_point_list(points) -> str:
    """Points as a bracketed matrix, one point per row."""
    arr = np.asarray(points, dtype=float).reshape(-1, 3)
    rows = [", ".join(f"{v:.16g}" for v in row) for row in arr]
    return "[" + ";\n ".join(rows) + "]"


def write_point_list(path, points) -> None:
    """Write a header line followed by the formatted point list."""
    Path(path).write_text(f"{POINT_LIST_HEADER}\n{format_point_list(points)}", encoding="utf-8")


def write_pcd_ascii(path, points) -> None:
    """Write points as an ASCII PCD v0.7 file of float x, y, z fields."""
    arr = np.asarray(points, dtype=np.float32).reshape(-1, 3)
    n = len(arr)
    header = (
        "# .PCD v0.7 - Point Cloud Data file format\n"
        "VERSION 0.7\n"
        "FIELDS x y z\n"
        "SIZE 4 4 4\n"
        "TYPE F F F\n"
        "COUNT 1 1 1\n"
        f"WIDTH {n}\n"
        "HEIGHT 1\n"
        "VIEWPOINT 0 0 0 1 0 0 0\n"
        f"POINTS {n}\n"
        "DATA ascii\n"
    )
    body = "".join(" ".join(f"{float(v):.8g}" for v in row) + "\n" for row in arr)
    Path(path).write_text(header + body, encoding="ascii")


def read_pcd(path) -> np.ndarray:
    """Read the x, y, z fields of an ASCII PCD file."""
    header: dict[str, str] = {}
    lines = Path(path).read_text(encoding="ascii").splitlines()
    body: list[str] = []
    for pos, line in enumerate(lines):
        if not line.strip() or line.startswith("#"):
            continue
        key, _, value = line.strip().partition(" ")
        header[key] = value.strip()
        if key == "DATA":
            body = lines[pos + 1:]
            break
    else:
        raise ValueError("PCD header has no DATA line")
    if header["DATA"] != "ascii":
        raise ValueError("only ASCII PCD data is supported")
    fields = header.get("FIELDS", "").split()
    try:
        columns = [fields.index(name) for name in ("x", "y", "z")]
    except ValueError:
        raise ValueError("PCD file lacks x, y or z fields") from None
    rows = [[float(v) for v in line.split()] for line in body if line.strip()]
    arr = np.array(rows, dtype=float).reshape(-1, len(fields))
    expected = int(header.get("POINTS", len(arr)))
    if len(arr) != expected:
        raise ValueError(f"PCD file declares {expected} points but holds {len(arr)}")
    return arr[:, columns]


def two_view_cloud(k, points1, points2, seed=None):
    """Triangulate matched pixels from a fundamental-matrix camera pair.

    Returns the Nx3 cloud and the fundamental matrix.
    """
    k = np.asarray(k, dtype=float)
    x1 = np.asarray(points1, dtype=float).reshape(-1, 2)
    x2 = np.asarray(points2, dtype=float).reshape(-1, 2)
    f, _ = find_fundamental_ransac(x1, x2, seed=seed)
    r, t = camera_from_essential(essential_from_fundamental(k, f))
    if not check_coherent_rotation(r):
        log.warning("resulting rotation is not coherent")
    first = np.hstack([np.eye(3), np.zeros((3, 1))])
    second = np.hstack([r, t.reshape(3, 1)])
    kinv = np.linalg.inv(k)
    u1 = np.hstack([x1, np.ones((len(x1), 1))]) @ kinv.T
    u2 = np.hstack([x2, np.ones((len(x2), 1))]) @ kinv.T
    cloud = np.array([linear_ls_triangulation(a, first, b, second) for a, b in zip(u1, u2)])
    return cloud.reshape(-1, 3), f