"""Keypoint record and response-based filtering."""

from __future__ import annotations

from dataclasses import dataclass, replace


@dataclass(slots=True)
class KeyPoint:
    """A detected image feature.

    Coordinates are in pixels of the image the keypoint was found in, the
    angle is in degrees and ``octave`` is the pyramid level.
    """

    x: float
    y: float
    size: float = 0.0
    angle: float = -1.0
    response: float = 0.0
    octave: int = 0

    def scaled(self, factor: float) -> KeyPoint:
        """Return a copy whose position is multiplied by ``factor``."""
        return replace(self, x=self.x * factor, y=self.y * factor)

    def shifted(self, dx: float, dy: float) -> KeyPoint:
        """Return a copy whose position is moved by ``(dx, dy)``."""
        return replace(self, x=self.x + dx, y=self.y + dy)


def retain_best(keypoints: list[KeyPoint], count: int) -> list[KeyPoint]:
    """Return at most ``count`` keypoints with the strongest responses.

    Keypoints with equal responses keep their original relative order.
    """
    if count < 0:
        raise ValueError(f"count must not be negative, got {count}")
    if count >= len(keypoints):
        return list(keypoints)
    ranked = sorted(keypoints, key=lambda kp: kp.response, reverse=True)
    return ranked[:count]