"""Shared helpers for descriptor matching: distances, windows and rotation checks."""

from __future__ import annotations

import math
from collections.abc import Sequence

import numpy as np

from .keypoint import KeyPoint

TH_HIGH = 100
TH_LOW = 50
HISTO_LENGTH = 30

_BIN_FACTOR = np.float32(1.0 / HISTO_LENGTH)


def _as_bytes(descriptor) -> bytes:
    if isinstance(descriptor, (bytes, bytearray, memoryview)):
        return bytes(descriptor)
    return np.asarray(descriptor, dtype=np.uint8).tobytes()


def descriptor_distance(a, b) -> int:
    """Return the Hamming distance between two binary descriptors."""
    first, second = _as_bytes(a), _as_bytes(b)
    if len(first) != len(second):
        raise ValueError(f"descriptor lengths differ: {len(first)} and {len(second)}")
    return (int.from_bytes(first, "little") ^ int.from_bytes(second, "little")).bit_count()


def compute_three_maxima(histogram: Sequence[int]) -> tuple[int, ...]:
    """Return the indices of the up to three fullest bins, fullest first.

    The second and third bins are dropped when they hold less than a tenth
    of the fullest one; empty bins are never returned.
    """
    max1 = max2 = max3 = 0
    ind1 = ind2 = ind3 = -1
    for index, count in enumerate(histogram):
        if count > max1:
            max3, max2, max1 = max2, max1, count
            ind3, ind2, ind1 = ind2, ind1, index
        elif count > max2:
            max3, max2 = max2, count
            ind3, ind2 = ind2, index
        elif count > max3:
            max3, ind3 = count, index

    if max2 < 0.1 * max1:
        ind2 = ind3 = -1
    elif max3 < 0.1 * max1:
        ind3 = -1
    return tuple(index for index in (ind1, ind2, ind3) if index >= 0)


def radius_by_viewing_cos(view_cos: float) -> float:
    """Return the search window radius for a point seen at the given viewing cosine."""
    return 2.5 if view_cos > 0.998 else 4.0


def check_dist_epipolar_line(kp1: KeyPoint, kp2: KeyPoint, f12, level_sigma2) -> bool:
    """Tell whether ``kp2`` lies close enough to the epipolar line of ``kp1``.

    ``f12`` is the 3x3 fundamental matrix from image 1 to image 2 and
    ``level_sigma2`` the squared scale of each pyramid level of image 2.
    """
    f = np.asarray(f12, dtype=np.float64)
    if f.shape != (3, 3):
        raise ValueError(f"fundamental matrix must be 3x3, got {f.shape}")
    a = kp1.x * f[0, 0] + kp1.y * f[1, 0] + f[2, 0]
    b = kp1.x * f[0, 1] + kp1.y * f[1, 1] + f[2, 1]
    c = kp1.x * f[0, 2] + kp1.y * f[1, 2] + f[2, 2]

    num = a * kp2.x + b * kp2.y + c
    den = a * a + b * b
    if den == 0:
        return False
    return num * num / den < 3.84 * level_sigma2[kp2.octave]


def rotation_bin(angle1: float, angle2: float) -> int:
    """Return the rotation histogram bin for the angle difference of a match."""
    rot = np.float32(angle1) - np.float32(angle2)
    if rot < 0.0:
        rot += np.float32(360.0)
    scaled = float(rot * _BIN_FACTOR)
    index = math.floor(scaled + 0.5) if scaled >= 0 else -math.floor(-scaled + 0.5)
    if index == HISTO_LENGTH:
        index = 0
    if not 0 <= index < HISTO_LENGTH:
        raise ValueError(f"angles {angle1} and {angle2} give no valid rotation bin")
    return index


def features_in_area(
    keypoints: Sequence[KeyPoint],
    x: float,
    y: float,
    radius: float,
    min_level: int | None = None,
    max_level: int | None = None,
) -> list[int]:
    """Return indices of keypoints inside the square window of half-size ``radius``.

    Levels outside ``[min_level, max_level]`` are skipped; ``None`` leaves a
    side unbounded.
    """
    return [
        index
        for index, kp in enumerate(keypoints)
        if abs(kp.x - x) < radius
        and abs(kp.y - y) < radius
        and (min_level is None or kp.octave >= min_level)
        and (max_level is None or kp.octave <= max_level)
    ]


class RotationHistogram:
    """Collects matches by relative rotation to reject those with an unusual one."""

    def __init__(self) -> None:
        self.bins: list[list[int]] = [[] for _ in range(HISTO_LENGTH)]

    def add(self, angle1: float, angle2: float, index: int) -> None:
        """Record match ``index`` whose keypoints have the given angles."""
        self.bins[rotation_bin(angle1, angle2)].append(index)

    def inconsistent(self) -> list[int]:
        """Return the recorded indices outside the three dominant rotation bins."""
        keep = set(compute_three_maxima([len(entries) for entries in self.bins]))
        return [
            index
            for bin_index, entries in enumerate(self.bins)
            if bin_index not in keep
            for index in entries
        ]