# orbfeatures

Building blocks for ORB features on 8-bit grayscale images, built on NumPy:
orientation and 256-bit rotated BRIEF descriptors for given keypoints, an
oct-tree that spreads keypoints evenly over an image region, and several
descriptor matching strategies.

## What it provides

- `orbfeatures.keypoint`: the `KeyPoint` dataclass (`x`, `y`, `size`,
  `angle` in degrees, `response`, `octave`) with `scaled()` and `shifted()`
  copies, and `retain_best(keypoints, count)` to keep the strongest responses.
- `orbfeatures.octree`: `ExtractorNode` quadtree cells and
  `distribute_oct_tree(keypoints, min_x, max_x, min_y, max_y, n)`, which
  subdivides the region until about `n` cells exist and keeps the strongest
  keypoint of each.
- `orbfeatures.orientation`: `pattern_pairs()` (the 256 sampling point pairs),
  `compute_umax()` (row half-widths of the circular patch),
  `ic_angle(image, x, y, umax)` (intensity-centroid orientation in degrees)
  and `compute_orb_descriptor(image, keypoint, pairs)` (32 bytes).
- `orbfeatures.matching`: `descriptor_distance` (Hamming distance),
  `compute_three_maxima`, `rotation_bin` and `RotationHistogram` for rotation
  consistency checks, `check_dist_epipolar_line`, `radius_by_viewing_cos` and
  `features_in_area` for square-window keypoint lookup.
- `orbfeatures.bow`: `search_by_bow` matches features that share a vocabulary
  node; `search_for_initialization` matches finest-level features of two
  frames inside windows around their previous positions.
- `orbfeatures.projection`: `Camera` (pinhole intrinsics and image bounds),
  `Candidate` (a 3-D point with its descriptor), `search_by_projection`
  through a similarity transform and `search_tracked_points` for candidates
  already projected into a view.
- `orbfeatures.triangulation`: `search_for_triangulation` pairs free features
  of two views that agree in descriptor and epipolar geometry;
  `check_mutual_agreement` keeps matches found in both directions.

## Installation

```
pip install .
```

## Describing a keypoint

```python
import numpy as np
from orbfeatures.keypoint import KeyPoint
from orbfeatures.orientation import (
    compute_orb_descriptor, compute_umax, ic_angle, pattern_pairs,
)
from orbfeatures.matching import descriptor_distance

image = np.random.default_rng(0).integers(0, 256, (64, 64), dtype=np.uint8)
umax = compute_umax()
pairs = pattern_pairs()

kp = KeyPoint(32.0, 32.0)
kp.angle = ic_angle(image, kp.x, kp.y, umax)
desc = compute_orb_descriptor(image, kp, pairs)   # 32 bytes

other = KeyPoint(30.0, 34.0)
other.angle = ic_angle(image, other.x, other.y, umax)
print(descriptor_distance(desc, compute_orb_descriptor(image, other, pairs)))  # 0..256
```

The orientation patch and the rotated sampling pattern must lie inside the
image; otherwise a `ValueError` is raised.

## Spreading keypoints

```python
from orbfeatures.keypoint import KeyPoint
from orbfeatures.octree import distribute_oct_tree

keys = [KeyPoint(x, y, response=r) for x, y, r in [(5, 5, 1.0), (6, 5, 3.0), (80, 40, 2.0)]]
chosen = distribute_oct_tree(keys, 0, 100, 0, 50, 2)
```

Keypoint coordinates are taken relative to `(min_x, min_y)`.

## What it does not do

The package works on keypoints you supply. It does not detect corners, build
a scale pyramid or blur and resize images, so it offers no single call that
turns an image into keypoints and descriptors. The matching functions take
plain sequences of keypoints, descriptors and flags; keeping track of frames,
map points and a vocabulary is left to the caller.

## Running the tests

```
pip install .[test]
pytest
```