"""ORB keypoint orientation, descriptors, oct-tree distribution and descriptor matching."""

__version__ = "0.1.0"

__all__ = [
    "bow",
    "keypoint",
    "matching",
    "octree",
    "orientation",
    "projection",
    "triangulation",
]