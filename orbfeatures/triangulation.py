"""Matching of untracked features between two views for triangulating new points."""

from __future__ import annotations

from collections.abc import Mapping, Sequence

import numpy as np

from .keypoint import KeyPoint
from .matching import TH_LOW, RotationHistogram, check_dist_epipolar_line, descriptor_distance

_EPIPOLE_RADIUS2 = 100.0


def search_for_triangulation(
    feat_vec1: Mapping[int, Sequence[int]],
    keypoints1: Sequence[KeyPoint],
    descriptors1,
    right1: Sequence[float],
    free1: Sequence[bool],
    feat_vec2: Mapping[int, Sequence[int]],
    keypoints2: Sequence[KeyPoint],
    descriptors2,
    right2: Sequence[float],
    free2: Sequence[bool],
    f12,
    epipole: tuple[float, float],
    scale_factors2: Sequence[float],
    level_sigma2: Sequence[float],
    only_stereo: bool,
    check_orientation: bool,
) -> list[tuple[int, int]]:
    """Pair free features of two views that agree in descriptor and epipolar geometry.

    Only features under the same vocabulary node are compared. A feature
    takes part only where its ``free`` flag is set; a non-negative ``right``
    entry marks it as stereo. Monocular pairs whose second feature lies near
    ``epipole`` (the first camera centre seen in the second image) are
    rejected. Returns ``(index1, index2)`` pairs ordered by ``index1``.
    """
    if not len(keypoints1) == len(descriptors1) == len(right1) == len(free1):
        raise ValueError("first view: keypoints, descriptors, right and free must have equal lengths")
    if not len(keypoints2) == len(descriptors2) == len(right2) == len(free2):
        raise ValueError("second view: keypoints, descriptors, right and free must have equal lengths")
    fundamental = np.asarray(f12, dtype=np.float64)
    if fundamental.shape != (3, 3):
        raise ValueError(f"fundamental matrix must be 3x3, got {fundamental.shape}")
    ex, ey = epipole

    matches12: list[int | None] = [None] * len(keypoints1)
    histogram = RotationHistogram()

    for node in sorted(feat_vec1.keys() & feat_vec2.keys()):
        candidates2 = feat_vec2[node]
        for idx1 in feat_vec1[node]:
            if not free1[idx1]:
                continue
            stereo1 = right1[idx1] >= 0
            if only_stereo and not stereo1:
                continue
            kp1 = keypoints1[idx1]
            d1 = descriptors1[idx1]

            best_dist = TH_LOW
            best_idx2 = -1
            for idx2 in candidates2:
                if not free2[idx2]:
                    continue
                stereo2 = right2[idx2] >= 0
                if only_stereo and not stereo2:
                    continue
                dist = descriptor_distance(d1, descriptors2[idx2])
                if dist > TH_LOW or dist > best_dist:
                    continue
                kp2 = keypoints2[idx2]
                if not stereo1 and not stereo2:
                    dx = ex - kp2.x
                    dy = ey - kp2.y
                    if dx * dx + dy * dy < _EPIPOLE_RADIUS2 * scale_factors2[kp2.octave]:
                        continue
                if check_dist_epipolar_line(kp1, kp2, fundamental, level_sigma2):
                    best_idx2 = idx2
                    best_dist = dist

            if best_idx2 >= 0:
                matches12[idx1] = best_idx2
                if check_orientation:
                    histogram.add(kp1.angle, keypoints2[best_idx2].angle, idx1)

    if check_orientation:
        for idx1 in histogram.inconsistent():
            matches12[idx1] = None

    return [(idx1, idx2) for idx1, idx2 in enumerate(matches12) if idx2 is not None]


def check_mutual_agreement(
    matches12: Sequence[int | None],
    matches21: Sequence[int | None],
) -> list[int | None]:
    """Keep only matches found in both directions.

    ``matches12`` gives, for each feature of the first view, its match in
    the second view or ``None``; ``matches21`` the reverse. Returns, for each
    feature of the first view, its match where both directions agree, else
    ``None``.
    """
    agreed: list[int | None] = []
    for idx1, idx2 in enumerate(matches12):
        if idx2 is None:
            agreed.append(None)
            continue
        if not 0 <= idx2 < len(matches21):
            raise ValueError(f"match {idx2} of feature {idx1} is outside the second view")
        agreed.append(idx2 if matches21[idx2] == idx1 else None)
    return agreed