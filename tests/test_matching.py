import numpy as np
import pytest

from sfmrecon.matching import (
    Features,
    Match,
    get_matched_colors,
    get_matched_points,
    knn_match,
    maskout,
    match_features,
    match_sequence,
)


def test_knn_match_orders_by_distance():
    result = knn_match([[0.0, 0.0]], [[3.0, 4.0], [1.0, 0.0], [0.0, 2.0]], 3)
    assert [m.train_idx for m in result[0]] == [1, 2, 0]
    assert [m.distance for m in result[0]] == pytest.approx([1.0, 2.0, 5.0])
    assert all(m.query_idx == 0 for m in result[0])


def test_knn_match_caps_at_train_size():
    result = knn_match([[0.0], [1.0]], [[0.5], [2.0]], 5)
    assert [len(row) for row in result] == [2, 2]


def test_knn_match_rejects_mismatched_lengths():
    with pytest.raises(ValueError):
        knn_match([[0.0, 1.0]], [[0.0, 1.0, 2.0]], 2)


def test_match_features_ratio_test_rejects_ambiguous():
    train = [[0.0, 0.0], [100.0, 0.0], [0.0, 100.0]]
    query = [[1.0, 0.0], [50.0, 0.0]]
    matches = match_features(query, train)
    assert [(m.query_idx, m.train_idx) for m in matches] == [(0, 0)]
    assert matches[0].distance == pytest.approx(1.0)


def test_match_features_drops_distant_matches():
    train = [[0.0, 0.0], [1000.0, 0.0], [0.0, 1000.0]]
    query = [[1.0, 0.0], [300.0, 0.0]]
    matches = match_features(query, train)
    assert [m.query_idx for m in matches] == [0]


def test_match_features_needs_two_train_rows():
    with pytest.raises(ValueError):
        match_features([[0.0, 0.0]], [[1.0, 1.0]])


def test_match_sequence_pairs_consecutive_images():
    rng = np.random.default_rng(3)
    base = rng.uniform(0, 100, size=(6, 8))
    descriptors = [base, base + 0.01, base + 0.02]
    result = match_sequence(descriptors)
    assert len(result) == 2
    for matches in result:
        assert [(m.query_idx, m.train_idx) for m in matches] == [(i, i) for i in range(6)]


def test_match_sequence_short_input():
    assert match_sequence([]) == []
    assert match_sequence([np.zeros((3, 2))]) == []


def test_get_matched_points_and_colors():
    p1 = np.array([[1.0, 2.0], [3.0, 4.0], [5.0, 6.0]])
    p2 = np.array([[7.0, 8.0], [9.0, 10.0]])
    c1 = np.array([[1, 2, 3], [4, 5, 6], [7, 8, 9]])
    c2 = np.array([[10, 11, 12], [13, 14, 15]])
    matches = [Match(2, 0, 1.0), Match(0, 1, 2.0)]
    a, b = get_matched_points(p1, p2, matches)
    assert np.array_equal(a, p1[[2, 0]])
    assert np.array_equal(b, p2[[0, 1]])
    ca, cb = get_matched_colors(c1, c2, matches)
    assert np.array_equal(ca, c1[[2, 0]])
    assert np.array_equal(cb, c2[[0, 1]])


def test_get_matched_points_empty():
    a, b = get_matched_points(np.zeros((3, 2)), np.zeros((3, 2)), [])
    assert a.shape == (0, 2)
    assert b.shape == (0, 2)


def test_maskout_list_and_array():
    assert maskout(["a", "b", "c"], [1, 0, 2]) == ["a", "c"]
    arr = np.array([[1.0, 1.0], [2.0, 2.0], [3.0, 3.0]])
    assert np.array_equal(maskout(arr, np.array([0, 1, 1], dtype=np.uint8)), arr[1:])


def test_maskout_length_mismatch():
    with pytest.raises(ValueError):
        maskout([1, 2, 3], [1, 0])


def test_features_validates_counts():
    with pytest.raises(ValueError):
        Features(np.zeros((3, 2)), np.zeros((2, 4)), np.zeros((3, 3)))


def test_features_length():
    features = Features(np.zeros((4, 2)), np.zeros((4, 16)), np.zeros((4, 3)))
    assert len(features) == 4
    assert features.colors.dtype == np.uint8