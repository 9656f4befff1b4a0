import pytest

from orbfeatures.bow import search_by_bow, search_for_initialization
from orbfeatures.keypoint import KeyPoint
from orbfeatures.matching import TH_LOW


def desc(bits: int) -> bytes:
    return ((1 << bits) - 1).to_bytes(32, "little")


ZERO = desc(0)
FULL = desc(256)


def kps(n, angle=0.0):
    return [KeyPoint(x=float(10 * i), y=float(10 * i), angle=angle) for i in range(n)]


def test_bow_matches_identical_descriptor():
    result = search_by_bow(
        {1: [0]}, [ZERO], kps(1), [True],
        {1: [0, 1]}, [FULL, ZERO], kps(2), [True, True],
        0.6, False,
    )
    assert result == [1]


def test_bow_different_nodes_do_not_match():
    result = search_by_bow(
        {1: [0]}, [ZERO], kps(1), [True],
        {2: [0]}, [ZERO], kps(1), [True],
        0.6, False,
    )
    assert result == [None]


def test_bow_unusable_features_skipped():
    result = search_by_bow(
        {1: [0]}, [ZERO], kps(1), [True],
        {1: [0]}, [ZERO], kps(1), [False],
        0.6, False,
    )
    assert result == [None]
    result = search_by_bow(
        {1: [0]}, [ZERO], kps(1), [False],
        {1: [0]}, [ZERO], kps(1), [True],
        0.6, False,
    )
    assert result == [None]


def test_bow_threshold_is_strict():
    at_limit = search_by_bow(
        {1: [0]}, [desc(TH_LOW)], kps(1), [True],
        {1: [0]}, [ZERO], kps(1), [True],
        0.9, False,
    )
    below = search_by_bow(
        {1: [0]}, [desc(TH_LOW - 1)], kps(1), [True],
        {1: [0]}, [ZERO], kps(1), [True],
        0.9, False,
    )
    assert at_limit == [None]
    assert below == [0]


def test_bow_ambiguous_match_rejected():
    result = search_by_bow(
        {1: [0]}, [ZERO], kps(1), [True],
        {1: [0, 1]}, [ZERO, ZERO], kps(2), [True, True],
        0.6, False,
    )
    assert result == [None]


def test_bow_second_view_feature_used_once():
    result = search_by_bow(
        {1: [0, 1]}, [ZERO, ZERO], kps(2), [True, True],
        {1: [0]}, [ZERO], kps(1), [True],
        0.6, False,
    )
    assert result == [0, None]


def test_bow_orientation_rejects_outlier():
    n = 21
    feat1 = {node: [node] for node in range(n)}
    feat2 = {node: [node] for node in range(n)}
    keys1 = [KeyPoint(x=0.0, y=0.0, angle=0.0) for _ in range(n)]
    keys2 = [KeyPoint(x=0.0, y=0.0, angle=0.0) for _ in range(n - 1)]
    keys2.append(KeyPoint(x=0.0, y=0.0, angle=180.0))
    descs = [ZERO] * n
    flags = [True] * n
    with_check = search_by_bow(feat1, descs, keys1, flags, feat2, descs, keys2, flags, 0.6, True)
    without = search_by_bow(feat1, descs, keys1, flags, feat2, descs, keys2, flags, 0.6, False)
    assert with_check == list(range(n - 1)) + [None]
    assert without == list(range(n))


def test_bow_length_mismatch_raises():
    with pytest.raises(ValueError):
        search_by_bow({}, [ZERO], kps(2), [True, True], {}, [], [], [], 0.6, False)


def test_initialization_matches_and_updates_positions():
    keys1 = [KeyPoint(x=50.0, y=50.0)]
    keys2 = [KeyPoint(x=52.0, y=49.0), KeyPoint(x=300.0, y=300.0)]
    matches, positions = search_for_initialization(
        keys1, [ZERO], keys2, [ZERO, ZERO], [(50.0, 50.0)], 10, 0.9, False
    )
    assert matches == [0]
    assert positions == [(52.0, 49.0)]


def test_initialization_keeps_position_when_unmatched():
    keys1 = [KeyPoint(x=50.0, y=50.0)]
    keys2 = [KeyPoint(x=300.0, y=300.0)]
    matches, positions = search_for_initialization(
        keys1, [ZERO], keys2, [ZERO], [(50.0, 50.0)], 10, 0.9, False
    )
    assert matches == [None]
    assert positions == [(50.0, 50.0)]


def test_initialization_skips_coarse_levels():
    keys1 = [KeyPoint(x=50.0, y=50.0, octave=1)]
    keys2 = [KeyPoint(x=50.0, y=50.0, octave=1)]
    matches, _ = search_for_initialization(
        keys1, [ZERO], keys2, [ZERO], [(50.0, 50.0)], 10, 0.9, False
    )
    assert matches == [None]


def test_initialization_better_match_steals():
    keys1 = [KeyPoint(x=50.0, y=50.0), KeyPoint(x=51.0, y=50.0)]
    keys2 = [KeyPoint(x=50.0, y=50.0)]
    matches, positions = search_for_initialization(
        keys1, [desc(10), ZERO], keys2, [ZERO],
        [(50.0, 50.0), (51.0, 50.0)], 20, 0.9, False,
    )
    assert matches == [None, 0]
    assert positions == [(50.0, 50.0), (50.0, 50.0)]


def test_initialization_worse_match_does_not_steal():
    keys1 = [KeyPoint(x=50.0, y=50.0), KeyPoint(x=51.0, y=50.0)]
    keys2 = [KeyPoint(x=50.0, y=50.0)]
    matches, _ = search_for_initialization(
        keys1, [ZERO, desc(10)], keys2, [ZERO],
        [(50.0, 50.0), (51.0, 50.0)], 20, 0.9, False,
    )
    assert matches == [0, None]


def test_initialization_length_mismatch_raises():
    with pytest.raises(ValueError):
        search_for_initialization(kps(2), [ZERO], kps(1), [ZERO], [(0.0, 0.0)], 10, 0.9, False)