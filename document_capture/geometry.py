"""
Geometric value types shared by the detector, tracker and rectifier
"""

from dataclasses import dataclass
from typing import Iterator, NamedTuple, Optional, Tuple

import numpy as np

from .errors import InvalidQuadrilateralError


class Point2D(NamedTuple):
    """Floating-point (x, y) coordinate in frame pixel space."""
    x: float
    y: float


CORNER_NAMES = ("top-left", "top-right", "bottom-right", "bottom-left")


def polygon_area(points: np.ndarray) -> float:
    """Unsigned shoelace area of a closed polygon."""
    pts = np.asarray(points, dtype=np.float64).reshape(-1, 2)
    x, y = pts[:, 0], pts[:, 1]
    return float(abs(np.dot(x, np.roll(y, -1)) - np.dot(y, np.roll(x, -1))) / 2.0)


def _turn_signs(points: np.ndarray) -> np.ndarray:
    """Z component of the cross product at every vertex of a closed polygon."""
    edges = np.roll(points, -1, axis=0) - points
    nxt = np.roll(edges, -1, axis=0)
    return edges[:, 0] * nxt[:, 1] - edges[:, 1] * nxt[:, 0]


def is_convex(points: np.ndarray) -> bool:
    """
    Check that a polygon is strictly convex in its given vertex order.

    Collinear or coincident neighbours count as not convex.
    """
    pts = np.asarray(points, dtype=np.float64).reshape(-1, 2)
    if len(pts) < 3:
        return False
    turns = _turn_signs(pts)
    return bool(np.all(turns > 0) or np.all(turns < 0))


def order_corners(points: np.ndarray) -> np.ndarray:
    """
    Order 4 corners as top-left, top-right, bottom-right, bottom-left.

    Points above the centroid row are "top", the rest "bottom"; each half
    is then split by x. When that split is not two-and-two, or yields a
    self-intersecting outline (strongly rotated shapes), the corners are
    walked clockwise around the centroid starting from the smallest x+y.
    The result depends only on the point positions, not on their order.

    Args:
        points: Array-like of shape (4, 2)

    Returns:
        float64 array of shape (4, 2)
    """
    pts = np.asarray(points, dtype=np.float64).reshape(4, 2)
    center = pts.mean(axis=0)

    top = pts[pts[:, 1] < center[1]]
    bottom = pts[pts[:, 1] >= center[1]]

    if len(top) == 2:
        top = top[np.lexsort((top[:, 1], top[:, 0]))]
        bottom = bottom[np.lexsort((bottom[:, 1], bottom[:, 0]))]
        ordered = np.array([top[0], top[1], bottom[1], bottom[0]])
        if np.all(_turn_signs(ordered) > 0):
            return ordered

    # Image y grows downwards, so increasing angle is clockwise on screen
    angles = np.arctan2(pts[:, 1] - center[1], pts[:, 0] - center[0])
    cyclic = pts[np.lexsort((pts[:, 0], angles))]
    sums = cyclic.sum(axis=1)
    start = int(np.lexsort((cyclic[:, 1], sums))[0])
    return np.roll(cyclic, -start, axis=0)


@dataclass(frozen=True)
class Quadrilateral:
    """
    Four document corners in canonical order.

    Always convex and ordered top-left, top-right, bottom-right,
    bottom-left (clockwise on screen). Use :meth:`from_points` to build one
    from corners in arbitrary order.
    """
    top_left: Point2D
    top_right: Point2D
    bottom_right: Point2D
    bottom_left: Point2D

    def __post_init__(self):
        pts = self.as_array()
        if not np.all(np.isfinite(pts)):
            raise InvalidQuadrilateralError("Quadrilateral corners must be finite numbers")
        turns = _turn_signs(pts)
        if not np.all(turns > 0):
            raise InvalidQuadrilateralError(
                "Corners do not form a convex quadrilateral in top-left, top-right, "
                "bottom-right, bottom-left order",
                details={"corners": pts.tolist()},
            )

    @classmethod
    def from_points(cls, points) -> "Quadrilateral":
        """
        Build a quadrilateral from 4 points in any order.

        Raises:
            InvalidQuadrilateralError: wrong point count, non-finite values,
                degenerate or non-convex outline
        """
        try:
            pts = np.asarray(points, dtype=np.float64)
        except (TypeError, ValueError) as e:
            raise InvalidQuadrilateralError(f"Corners are not numeric: {e}")
        if pts.size != 8:
            raise InvalidQuadrilateralError(
                f"Expected exactly 4 corner points, got {pts.size // 2 if pts.ndim else 0}",
                details={"shape": list(pts.shape)},
            )
        pts = pts.reshape(4, 2)
        if not np.all(np.isfinite(pts)):
            raise InvalidQuadrilateralError("Quadrilateral corners must be finite numbers")

        ordered = order_corners(pts)
        return cls(*(Point2D(float(x), float(y)) for x, y in ordered))

    @property
    def points(self) -> Tuple[Point2D, Point2D, Point2D, Point2D]:
        return (self.top_left, self.top_right, self.bottom_right, self.bottom_left)

    def __iter__(self) -> Iterator[Point2D]:
        return iter(self.points)

    def __len__(self) -> int:
        return 4

    def as_array(self, dtype=np.float64) -> np.ndarray:
        """Corners as a (4, 2) array in canonical order."""
        return np.array(self.points, dtype=dtype)

    def area(self) -> float:
        return polygon_area(self.as_array())

    def centroid(self) -> Point2D:
        cx, cy = self.as_array().mean(axis=0)
        return Point2D(float(cx), float(cy))

    def edge_lengths(self) -> Tuple[float, float, float, float]:
        """Lengths of the top, right, bottom and left edges."""
        pts = self.as_array()
        lengths = np.linalg.norm(np.roll(pts, -1, axis=0) - pts, axis=1)
        return tuple(float(v) for v in lengths)

    def scaled(self, factor: float, factor_y: Optional[float] = None) -> "Quadrilateral":
        """Same outline in a frame resized by ``factor`` (``factor_y`` vertically, if given)."""
        if factor_y is None:
            factor_y = factor
        if factor <= 0 or factor_y <= 0:
            raise ValueError(f"Scale factors must be positive, got {factor}, {factor_y}")
        return Quadrilateral(*(Point2D(p.x * factor, p.y * factor_y) for p in self.points))

    def max_corner_distance(self, other: "Quadrilateral") -> float:
        """Largest distance between corresponding corners of two quads."""
        diff = self.as_array() - np.asarray(other.as_array(), dtype=np.float64)
        return float(np.max(np.linalg.norm(diff, axis=1)))

    def to_list(self):
        """JSON-friendly [[x, y], ...] in canonical order."""
        return [[p.x, p.y] for p in self.points]
