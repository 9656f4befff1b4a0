"""Descriptor matching restricted to features that share a vocabulary node."""

from __future__ import annotations

from collections.abc import Mapping, Sequence

from .keypoint import KeyPoint
from .matching import TH_LOW, RotationHistogram, descriptor_distance, features_in_area

_INT_MAX = 2**31 - 1
_NO_DESCRIPTOR_MATCH = 256


def _check_lengths(name: str, *sizes: int) -> None:
    if len(set(sizes)) > 1:
        raise ValueError(f"{name}: keypoints, descriptors and flags must have equal lengths")


def search_by_bow(
    feat_vec1: Mapping[int, Sequence[int]],
    descriptors1,
    keypoints1: Sequence[KeyPoint],
    usable1: Sequence[bool],
    feat_vec2: Mapping[int, Sequence[int]],
    descriptors2,
    keypoints2: Sequence[KeyPoint],
    usable2: Sequence[bool],
    nn_ratio: float,
    check_orientation: bool,
) -> list[int | None]:
    """Match features of two views, comparing only those in the same vocabulary node.

    ``feat_vec1`` and ``feat_vec2`` map a node id to the feature indices
    under it. A feature takes part only where its ``usable`` flag is set.
    The result holds, for each feature of the first view, the index of its
    match in the second view or ``None``.
    """
    _check_lengths("first view", len(keypoints1), len(descriptors1), len(usable1))
    _check_lengths("second view", len(keypoints2), len(descriptors2), len(usable2))

    matches12: list[int | None] = [None] * len(keypoints1)
    matched2 = [False] * len(keypoints2)
    histogram = RotationHistogram()

    for node in sorted(feat_vec1.keys() & feat_vec2.keys()):
        candidates2 = feat_vec2[node]
        for idx1 in feat_vec1[node]:
            if not usable1[idx1]:
                continue
            d1 = descriptors1[idx1]

            best_dist1 = _NO_DESCRIPTOR_MATCH
            best_dist2 = _NO_DESCRIPTOR_MATCH
            best_idx2 = -1
            for idx2 in candidates2:
                if matched2[idx2] or not usable2[idx2]:
                    continue
                dist = descriptor_distance(d1, descriptors2[idx2])
                if dist < best_dist1:
                    best_dist2 = best_dist1
                    best_dist1 = dist
                    best_idx2 = idx2
                elif dist < best_dist2:
                    best_dist2 = dist

            if best_dist1 < TH_LOW and best_dist1 < nn_ratio * best_dist2:
                matches12[idx1] = best_idx2
                matched2[best_idx2] = True
                if check_orientation:
                    histogram.add(keypoints1[idx1].angle, keypoints2[best_idx2].angle, idx1)

    if check_orientation:
        for idx1 in histogram.inconsistent():
            matches12[idx1] = None
    return matches12


def search_for_initialization(
    keypoints1: Sequence[KeyPoint],
    descriptors1,
    keypoints2: Sequence[KeyPoint],
    descriptors2,
    prev_matched: Sequence[tuple[float, float]],
    window_size: float,
    nn_ratio: float,
    check_orientation: bool,
) -> tuple[list[int | None], list[tuple[float, float]]]:
    """Match finest-level features of two frames inside windows around their last positions.

    Returns the match index in the second frame for each feature of the
    first (or ``None``) and the updated positions: a matched feature takes
    the position of its match, the others keep their previous one.
    """
    _check_lengths("first frame", len(keypoints1), len(descriptors1), len(prev_matched))
    _check_lengths("second frame", len(keypoints2), len(descriptors2))

    matches12: list[int | None] = [None] * len(keypoints1)
    matches21: list[int | None] = [None] * len(keypoints2)
    matched_distance = [_INT_MAX] * len(keypoints2)
    histogram = RotationHistogram()

    for i1, kp1 in enumerate(keypoints1):
        level = kp1.octave
        if level > 0:
            continue
        px, py = prev_matched[i1]
        indices2 = features_in_area(keypoints2, px, py, window_size, level, level)
        if not indices2:
            continue
        d1 = descriptors1[i1]

        best_dist = _INT_MAX
        best_dist2 = _INT_MAX
        best_idx2 = -1
        for i2 in indices2:
            dist = descriptor_distance(d1, descriptors2[i2])
            if matched_distance[i2] <= dist:
                continue
            if dist < best_dist:
                best_dist2 = best_dist
                best_dist = dist
                best_idx2 = i2
            elif dist < best_dist2:
                best_dist2 = dist

        if best_dist <= TH_LOW and best_dist < best_dist2 * nn_ratio:
            previous = matches21[best_idx2]
            if previous is not None:
                matches12[previous] = None
            matches12[i1] = best_idx2
            matches21[best_idx2] = i1
            matched_distance[best_idx2] = best_dist
            if check_orientation:
                histogram.add(kp1.angle, keypoints2[best_idx2].angle, i1)

    if check_orientation:
        for i1 in histogram.inconsistent():
            matches12[i1] = None

    updated = [
        (keypoints2[match].x, keypoints2[match].y) if match is not None else tuple(position)
        for match, position in zip(matches12, prev_matched)
    ]
    return matches12, updated