import math

import numpy as np
import pytest

from orbfeatures.keypoint import KeyPoint
from orbfeatures.projection import (
    Camera,
    Candidate,
    search_by_projection,
    search_tracked_points,
)


def descriptor(bits: int) -> bytes:
    return ((1 << bits) - 1).to_bytes(32, "little")


CAMERA = Camera(fx=100.0, fy=100.0, cx=50.0, cy=50.0, min_x=0.0, max_x=100.0, min_y=0.0, max_y=100.0)
IDENTITY = np.eye(3)
ZERO = np.zeros(3)
SCALES = [1.0, 1.2]


def point_candidate(**overrides) -> Candidate:
    fields = dict(
        descriptor=descriptor(0),
        position=(0.0, 0.0, 2.0),
        normal=(0.0, 0.0, 1.0),
        min_distance=1.0,
        max_distance=3.0,
        level_for_distance=lambda distance: 0,
    )
    fields.update(overrides)
    return Candidate(**fields)


def test_project_centre_maps_to_principal_point():
    assert CAMERA.project((0.0, 0.0, 2.0)) == pytest.approx((50.0, 50.0))


def test_project_is_invariant_to_depth_scaling():
    assert CAMERA.project((0.3, -0.2, 1.5)) == pytest.approx(CAMERA.project((0.6, -0.4, 3.0)))


def test_project_zero_depth_raises():
    with pytest.raises(ValueError):
        CAMERA.project((1.0, 1.0, 0.0))


def test_is_in_image_bounds_are_half_open():
    assert CAMERA.is_in_image(0.0, 0.0)
    assert not CAMERA.is_in_image(100.0, 50.0)
    assert not CAMERA.is_in_image(50.0, -0.1)


def test_search_by_projection_matches_projected_point():
    keypoints = [KeyPoint(x=50.0, y=50.0), KeyPoint(x=10.0, y=10.0)]
    descriptors = [descriptor(3), descriptor(0)]
    result = search_by_projection(
        CAMERA, IDENTITY, ZERO, [point_candidate()], keypoints, descriptors, SCALES, [None, None], 3.0
    )
    assert result == [0, None]


def test_search_by_projection_ignores_similarity_scale():
    keypoints = [KeyPoint(x=50.0, y=50.0)]
    descriptors = [descriptor(0)]
    candidates = [point_candidate(position=(0.1, 0.0, 2.0))]
    plain = search_by_projection(
        CAMERA, IDENTITY, ZERO, candidates, keypoints, descriptors, SCALES, [None], 10.0
    )
    scaled = search_by_projection(
        CAMERA, 2.0 * IDENTITY, ZERO, candidates, keypoints, descriptors, SCALES, [None], 10.0
    )
    assert plain == scaled == [0]


def test_search_by_projection_skips_point_behind_camera():
    result = search_by_projection(
        CAMERA,
        IDENTITY,
        ZERO,
        [point_candidate(position=(0.0, 0.0, -2.0))],
        [KeyPoint(x=50.0, y=50.0)],
        [descriptor(0)],
        SCALES,
        [None],
        3.0,
    )
    assert result == [None]


def test_search_by_projection_skips_already_found_candidate():
    keypoints = [KeyPoint(x=50.0, y=50.0), KeyPoint(x=51.0, y=50.0)]
    result = search_by_projection(
        CAMERA, IDENTITY, ZERO, [point_candidate()], keypoints,
        [descriptor(0), descriptor(0)], SCALES, [None, 0], 3.0,
    )
    assert result == [None, 0]


def test_search_by_projection_respects_distance_invariance():
    result = search_by_projection(
        CAMERA, IDENTITY, ZERO, [point_candidate(max_distance=1.5)],
        [KeyPoint(x=50.0, y=50.0)], [descriptor(0)], SCALES, [None], 3.0,
    )
    assert result == [None]


def test_search_by_projection_rejects_far_descriptor():
    result = search_by_projection(
        CAMERA, IDENTITY, ZERO, [point_candidate()],
        [KeyPoint(x=50.0, y=50.0)], [descriptor(60)], SCALES, [None], 3.0,
    )
    assert result == [None]


def test_search_by_projection_skips_bad_candidate():
    result = search_by_projection(
        CAMERA, IDENTITY, ZERO, [point_candidate(bad=True)],
        [KeyPoint(x=50.0, y=50.0)], [descriptor(0)], SCALES, [None], 3.0,
    )
    assert result == [None]


def test_search_by_projection_needs_level_prediction():
    with pytest.raises(ValueError):
        search_by_projection(
            CAMERA, IDENTITY, ZERO, [point_candidate(level_for_distance=None)],
            [KeyPoint(x=50.0, y=50.0)], [descriptor(0)], SCALES, [None], 3.0,
        )


def test_search_by_projection_length_mismatch_raises():
    with pytest.raises(ValueError):
        search_by_projection(
            CAMERA, IDENTITY, ZERO, [point_candidate()],
            [KeyPoint(x=50.0, y=50.0)], [], SCALES, [None], 3.0,
        )


def tracked(**overrides) -> Candidate:
    fields = dict(
        descriptor=descriptor(0),
        track_in_view=True,
        proj_x=50.0,
        proj_y=50.0,
        predicted_level=1,
        view_cos=1.0,
    )
    fields.update(overrides)
    return Candidate(**fields)


def test_search_tracked_points_matches_nearest_descriptor():
    keypoints = [KeyPoint(x=50.0, y=50.0, octave=1), KeyPoint(x=51.0, y=50.0, octave=0)]
    result = search_tracked_points(
        keypoints, [descriptor(40), descriptor(2)], [-1.0, -1.0], SCALES,
        [tracked()], [False, False], 0.8,
    )
    assert result == [None, 0]


def test_search_tracked_points_ratio_test_on_same_level():
    keypoints = [KeyPoint(x=50.0, y=50.0, octave=1), KeyPoint(x=50.0, y=50.0, octave=1)]
    result = search_tracked_points(
        keypoints, [descriptor(10), descriptor(11)], [-1.0, -1.0], SCALES,
        [tracked()], [False, False], 0.8,
    )
    assert result == [None, None]


def test_search_tracked_points_ratio_test_waived_across_levels():
    keypoints = [KeyPoint(x=50.0, y=50.0, octave=1), KeyPoint(x=50.0, y=50.0, octave=0)]
    result = search_tracked_points(
        keypoints, [descriptor(10), descriptor(11)], [-1.0, -1.0], SCALES,
        [tracked()], [False, False], 0.8,
    )
    assert result == [0, None]


def test_search_tracked_points_skips_occupied_features():
    result = search_tracked_points(
        [KeyPoint(x=50.0, y=50.0, octave=1)], [descriptor(0)], [-1.0], SCALES,
        [tracked()], [True], 0.8,
    )
    assert result == [None]


def test_search_tracked_points_checks_stereo_coordinate():
    keypoints = [KeyPoint(x=50.0, y=50.0, octave=1)]
    far = search_tracked_points(
        keypoints, [descriptor(0)], [30.0], SCALES, [tracked(proj_xr=40.0)], [False], 0.8
    )
    near = search_tracked_points(
        keypoints, [descriptor(0)], [40.5], SCALES, [tracked(proj_xr=40.0)], [False], 0.8
    )
    assert far == [None]
    assert near == [0]


def test_search_tracked_points_ignores_candidates_out_of_view():
    result = search_tracked_points(
        [KeyPoint(x=50.0, y=50.0, octave=1)], [descriptor(0)], [-1.0], SCALES,
        [tracked(track_in_view=False)], [False], 0.8,
    )
    assert result == [None]


def test_search_tracked_points_feature_used_once():
    candidates = [tracked(), tracked()]
    result = search_tracked_points(
        [KeyPoint(x=50.0, y=50.0, octave=1)], [descriptor(0)], [-1.0], SCALES,
        candidates, [False], 0.8,
    )
    assert result == [0]


def test_search_tracked_points_length_mismatch_raises():
    with pytest.raises(ValueError):
        search_tracked_points(
            [KeyPoint(x=50.0, y=50.0)], [descriptor(0)], [], SCALES, [tracked()], [False], 0.8
        )


def test_candidate_defaults_are_unbounded_distance():
    candidate = Candidate(descriptor=descriptor(0))
    assert math.isinf(candidate.max_distance)
    assert candidate.min_distance == 0.0