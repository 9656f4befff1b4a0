"""Matching of 3-D points to image features by projecting them into a view."""

from __future__ import annotations

import math
from collections.abc import Callable, Sequence
from dataclasses import dataclass

import numpy as np

from .keypoint import KeyPoint
from .matching import (
    TH_HIGH,
    TH_LOW,
    descriptor_distance,
    features_in_area,
    radius_by_viewing_cos,
)

_NO_DESCRIPTOR_MATCH = 256


@dataclass(frozen=True)
class Camera:
    """Pinhole intrinsics and the pixel bounds of the image."""

    fx: float
    fy: float
    cx: float
    cy: float
    min_x: float
    max_x: float
    min_y: float
    max_y: float

    def project(self, point) -> tuple[float, float]:
        """Project a point given in camera coordinates to pixel coordinates."""
        x, y, z = (float(value) for value in np.asarray(point, dtype=np.float64).reshape(3))
        if z == 0.0:
            raise ValueError("cannot project a point with zero depth")
        inv_z = 1.0 / z
        return self.fx * x * inv_z + self.cx, self.fy * y * inv_z + self.cy

    def is_in_image(self, u: float, v: float) -> bool:
        """Tell whether pixel ``(u, v)`` lies inside the image bounds."""
        return self.min_x <= u < self.max_x and self.min_y <= v < self.max_y


@dataclass(eq=False)
class Candidate:
    """A 3-D point that may be matched to an image feature.

    The geometric fields serve projection searches; the ``track``/``proj``
    fields hold a projection already computed for the view being tracked.
    ``level_for_distance`` predicts the pyramid level at which the point is
    seen from a given distance.
    """

    descriptor: bytes
    position: tuple[float, float, float] = (0.0, 0.0, 0.0)
    normal: tuple[float, float, float] = (0.0, 0.0, 1.0)
    min_distance: float = 0.0
    max_distance: float = math.inf
    level_for_distance: Callable[[float], int] | None = None
    bad: bool = False
    track_in_view: bool = False
    proj_x: float = 0.0
    proj_y: float = 0.0
    proj_xr: float = -1.0
    predicted_level: int = 0
    view_cos: float = 1.0


def _decompose_similarity(rotation, translation) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    s_r = np.asarray(rotation, dtype=np.float64)
    s_t = np.asarray(translation, dtype=np.float64).reshape(-1)
    if s_r.shape != (3, 3):
        raise ValueError(f"rotation must be 3x3, got {s_r.shape}")
    if s_t.shape != (3,):
        raise ValueError(f"translation must have 3 entries, got {s_t.shape}")
    scale = math.sqrt(float(s_r[0] @ s_r[0]))
    if scale == 0.0:
        raise ValueError("rotation has zero scale")
    r_cw = s_r / scale
    t_cw = s_t / scale
    centre = -r_cw.T @ t_cw
    return r_cw, t_cw, centre


def search_by_projection(
    camera: Camera,
    rotation,
    translation,
    candidates: Sequence[Candidate],
    keypoints: Sequence[KeyPoint],
    descriptors,
    scale_factors: Sequence[float],
    matched: Sequence[int | None],
    th: float,
) -> list[int | None]:
    """Project candidates through a similarity transform and match them to features.

    ``rotation`` and ``translation`` form the world-to-camera similarity
    ``[sR | st]``; its scale is removed before projecting. ``matched`` holds,
    for each feature, the index of the candidate already matched to it or
    ``None``. Candidates already present in ``matched`` are skipped. Returns
    the updated per-feature list.
    """
    if not len(keypoints) == len(descriptors) == len(matched):
        raise ValueError("keypoints, descriptors and matched must have equal lengths")
    r_cw, t_cw, centre = _decompose_similarity(rotation, translation)

    result = list(matched)
    already_found = {index for index in result if index is not None}

    for index, candidate in enumerate(candidates):
        if candidate.bad or index in already_found:
            continue

        world = np.asarray(candidate.position, dtype=np.float64).reshape(3)
        in_camera = r_cw @ world + t_cw
        if in_camera[2] <= 0.0:
            continue

        u, v = camera.project(in_camera)
        if not camera.is_in_image(u, v):
            continue

        offset = world - centre
        dist = float(np.linalg.norm(offset))
        if dist < candidate.min_distance or dist > candidate.max_distance:
            continue

        normal = np.asarray(candidate.normal, dtype=np.float64).reshape(3)
        if float(offset @ normal) < 0.5 * dist:
            continue

        if candidate.level_for_distance is None:
            raise ValueError(f"candidate {index} cannot predict its pyramid level")
        level = candidate.level_for_distance(dist)
        radius = th * scale_factors[level]

        best_dist = _NO_DESCRIPTOR_MATCH
        best_idx = -1
        for idx in features_in_area(keypoints, u, v, radius):
            if result[idx] is not None:
                continue
            kp_level = keypoints[idx].octave
            if kp_level < level - 1 or kp_level > level:
                continue
            dist_desc = descriptor_distance(candidate.descriptor, descriptors[idx])
            if dist_desc < best_dist:
                best_dist = dist_desc
                best_idx = idx

        if best_idx >= 0 and best_dist <= TH_LOW:
            result[best_idx] = index

    return result


def search_tracked_points(
    keypoints: Sequence[KeyPoint],
    descriptors,
    right_coords: Sequence[float],
    scale_factors: Sequence[float],
    candidates: Sequence[Candidate],
    occupied: Sequence[bool],
    nn_ratio: float,
) -> list[int | None]:
    """Match candidates, already projected into the view, to nearby features.

    Only candidates flagged ``track_in_view`` take part. Features flagged in
    ``occupied``, or matched earlier in this search, are not considered.
    A positive ``right_coords`` entry marks a stereo feature, whose right
    coordinate must agree with the candidate's. Returns, for each feature,
    the index of the candidate matched to it or ``None``.
    """
    if not len(keypoints) == len(descriptors) == len(right_coords) == len(occupied):
        raise ValueError("keypoints, descriptors, right_coords and occupied must have equal lengths")

    taken = list(occupied)
    result: list[int | None] = [None] * len(keypoints)

    for index, candidate in enumerate(candidates):
        if not candidate.track_in_view or candidate.bad:
            continue

        level = candidate.predicted_level
        radius = radius_by_viewing_cos(candidate.view_cos) * scale_factors[level]
        indices = features_in_area(
            keypoints, candidate.proj_x, candidate.proj_y, radius, level - 1, level
        )
        if not indices:
            continue

        best_dist = best_dist2 = _NO_DESCRIPTOR_MATCH
        best_level = best_level2 = -1
        best_idx = -1
        for idx in indices:
            if taken[idx]:
                continue
            if right_coords[idx] > 0 and abs(candidate.proj_xr - right_coords[idx]) > radius:
                continue
            dist = descriptor_distance(candidate.descriptor, descriptors[idx])
            if dist < best_dist:
                best_dist2, best_dist = best_dist, dist
                best_level2, best_level = best_level, keypoints[idx].octave
                best_idx = idx
            elif dist < best_dist2:
                best_level2 = keypoints[idx].octave
                best_dist2 = dist

        if best_idx < 0 or best_dist > TH_HIGH:
            continue
        if best_level == best_level2 and best_dist > nn_ratio * best_dist2:
            continue
        result[best_idx] = index
        taken[best_idx] = True

    return result