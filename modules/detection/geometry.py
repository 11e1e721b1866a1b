"""
Stateless contour and intensity geometry used by the extractors.

OpenCV supplies the primitives (contours, hulls, convexity defects,
mean/stddev); this module holds the arithmetic layered on top of them.
"""

import math
import logging
from typing import Optional, Sequence, Tuple

import cv2
import numpy as np

logger = logging.getLogger(__name__)

# OpenCV convexity defect depth is fixed point with 8 fractional bits
DEFECT_DEPTH_SCALE = 256.0

MIN_FINGERS = 1
MAX_FINGERS = 5


def largest_contour(contours: Sequence[np.ndarray]) -> Optional[np.ndarray]:
    """Return the contour with the largest enclosed area.

    Ties keep the first contour in traversal order.
    """
    best = None
    best_area = -1.0
    for contour in contours:
        area = cv2.contourArea(contour)
        if area > best_area:
            best = contour
            best_area = area
    return best


def convex_hull_and_defects(contour: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """Compute hull points and convexity defects of a contour.

    Returns:
        (hull_points, defects) where defects is an (N, 4) int array of
        (start_idx, end_idx, far_idx, fixed_point_depth); N may be 0.
    """
    hull_points = cv2.convexHull(contour)
    hull_indices = cv2.convexHull(contour, returnPoints=False)

    defects = None
    if hull_indices is not None and len(hull_indices) >= 3:
        # OpenCV requires monotonic hull indices
        hull_indices = np.sort(hull_indices, axis=0)
        defects = cv2.convexityDefects(contour, hull_indices)

    if defects is None:
        return hull_points, np.empty((0, 4), dtype=np.int32)
    return hull_points, defects.reshape(-1, 4)


def angle_at_far(start, end, far) -> float:
    """Angle (degrees) at `far` in the triangle (start, end, far).

    Uses the law of cosines. Degenerate triangles return 180 so they
    never pass a "narrow gap" test.
    """
    a = math.dist(start, end)
    b = math.dist(far, start)
    c = math.dist(end, far)
    if b == 0 or c == 0:
        return 180.0

    cos_angle = (b * b + c * c - a * a) / (2 * b * c)
    cos_angle = max(-1.0, min(1.0, cos_angle))
    return math.degrees(math.acos(cos_angle))


def count_fingers(contour: np.ndarray, defects: np.ndarray,
                  depth_threshold: float = 10.0, max_angle: float = 90.0) -> int:
    """Estimate raised fingers from convexity defects.

    Starts at one (the thumb is never isolated by a defect); every defect
    deeper than `depth_threshold` pixels whose angle at the far point is
    at most `max_angle` adds a finger gap. Result is clamped to [1, 5].
    """
    points = contour.reshape(-1, 2)
    count = MIN_FINGERS

    for start_idx, end_idx, far_idx, depth in np.asarray(defects).reshape(-1, 4):
        if depth / DEFECT_DEPTH_SCALE <= depth_threshold:
            continue
        start = points[start_idx].astype(float)
        end = points[end_idx].astype(float)
        far = points[far_idx].astype(float)
        if angle_at_far(start, end, far) <= max_angle:
            count += 1

    return max(MIN_FINGERS, min(MAX_FINGERS, count))


def intensity_stats(region: np.ndarray) -> Tuple[float, float]:
    """Mean and standard deviation of a single-channel region."""
    mean, stddev = cv2.meanStdDev(region)
    return float(mean[0][0]), float(stddev[0][0])
