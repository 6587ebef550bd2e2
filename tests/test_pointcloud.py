import numpy as np
import pytest

from sfmrecon.geometry import rodrigues
from sfmrecon.pointcloud import (
    POINT_LIST_HEADER,
    format_point_list,
    numbered_filename,
    read_pcd,
    two_view_cloud,
    write_pcd_ascii,
    write_point_list,
)

K = np.array([[800.0, 0.0, 320.0], [0.0, 800.0, 240.0], [0.0, 0.0, 1.0]])


def _views(n=40):
    rng = np.random.default_rng(3)
    pts = np.column_stack([rng.uniform(-1, 1, n), rng.uniform(-1, 1, n), rng.uniform(4, 8, n)])
    out = []
    for r, t in [(np.eye(3), np.zeros(3)), (rodrigues([0, 0.1, 0]), np.array([-1.0, 0, 0]))]:
        pix = (pts @ r.T + t) @ K.T
        out.append(pix[:, :2] / pix[:, 2:])
    return out


def test_numbered_filename():
    assert numbered_filename("pointcloud", 3, ".txt") == "pointcloud3.txt"
    assert numbered_filename("cloud", 12, "") == "cloud12"


def test_format_point_list():
    assert format_point_list([[1, 2, 3], [4, 5, 6]]) == "[1, 2, 3;\n 4, 5, 6]"
    assert format_point_list([]) == "[]"


def test_write_point_list(tmp_path):
    path = tmp_path / "p.txt"
    write_point_list(path, [[1.5, 2, 3]])
    assert path.read_text(encoding="utf-8") == POINT_LIST_HEADER + "\n[1.5, 2, 3]"


def test_pcd_round_trip(tmp_path):
    path = tmp_path / "cloud.pcd"
    pts = np.array([[0.5, -1.25, 3.0], [2.0, 4.0, 8.5]])
    write_pcd_ascii(path, pts)
    text = path.read_text()
    assert "DATA ascii" in text
    assert "POINTS 2" in text
    assert np.allclose(read_pcd(path), pts)


def test_read_pcd_rejects_binary(tmp_path):
    path = tmp_path / "b.pcd"
    path.write_text("VERSION 0.7\nFIELDS x y z\nPOINTS 0\nDATA binary\n")
    with pytest.raises(ValueError):
        read_pcd(path)


def test_read_pcd_count_mismatch(tmp_path):
    path = tmp_path / "c.pcd"
    path.write_text("FIELDS x y z\nPOINTS 2\nDATA ascii\n1 2 3\n")
    with pytest.raises(ValueError):
        read_pcd(path)


def test_two_view_cloud_shape_and_epipolar():
    v1, v2 = _views()
    cloud, f = two_view_cloud(K, v1, v2, seed=0)
    assert cloud.shape == (40, 3)
    assert np.all(np.isfinite(cloud))
    h1 = np.hstack([v1, np.ones((40, 1))])
    h2 = np.hstack([v2, np.ones((40, 1))])
    res = np.abs(np.sum(h2 * (h1 @ f.T), axis=1))
    scale = np.linalg.norm(f) * np.linalg.norm(h1, axis=1) * np.linalg.norm(h2, axis=1)
    assert np.max(res / scale) < 1e-6