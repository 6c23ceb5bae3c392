"""
Perspective rectification of a detected document
"""

import itertools
import logging
from typing import Optional, Tuple

import numpy as np

from .backend import INTERPOLATIONS, OpenCVBackend, VisionBackend
from .edge_map import validate_frame
from .errors import InvalidQuadrilateralError
from .geometry import Quadrilateral

logger = logging.getLogger(__name__)

# Corners closer than this are treated as the same point
_COINCIDENT_PX = 1e-6


def _as_corner_array(quad) -> np.ndarray:
    """Canonical (4, 2) float64 corners from a Quadrilateral or array-like."""
    if quad is None:
        raise InvalidQuadrilateralError("Quadrilateral is None")
    if isinstance(quad, Quadrilateral):
        return quad.as_array()
    try:
        pts = np.asarray(quad, dtype=np.float64)
    except (TypeError, ValueError) as e:
        raise InvalidQuadrilateralError(f"Corners are not numeric: {e}")
    if pts.size != 8:
        raise InvalidQuadrilateralError(
            f"Expected exactly 4 corner points, got array of shape {pts.shape}",
            details={"shape": list(pts.shape)},
        )
    pts = pts.reshape(4, 2)
    if not np.all(np.isfinite(pts)):
        raise InvalidQuadrilateralError("Quadrilateral corners must be finite numbers")
    return pts


def _check_collinear(points: np.ndarray, label: str):
    scale = max(float(np.ptp(points[:, 0])), float(np.ptp(points[:, 1])), 1.0)
    for i, j, k in itertools.combinations(range(4), 3):
        a, b, c = points[i], points[j], points[k]
        cross = (b[0] - a[0]) * (c[1] - a[1]) - (c[0] - a[0]) * (b[1] - a[1])
        if abs(cross) < 1e-9 * scale * scale:
            raise InvalidQuadrilateralError(
                f"{label} points {i}, {j}, {k} are collinear - cannot compute perspective transform"
            )


def compute_homography(src: np.ndarray, dst: np.ndarray, backend: Optional[VisionBackend] = None) -> np.ndarray:
    """
    Projective transform mapping 4 source points onto 4 destination points.

    Args:
        src: (4, 2) source points
        dst: (4, 2) destination points
        backend: Image-processing backend (OpenCV by default)

    Returns:
        3x3 float64 matrix H with dst ~ H @ [x, y, 1]

    Raises:
        InvalidQuadrilateralError: three of the points are collinear
    """
    src = np.asarray(src, dtype=np.float64).reshape(4, 2)
    dst = np.asarray(dst, dtype=np.float64).reshape(4, 2)
    _check_collinear(src, "Source")
    _check_collinear(dst, "Destination")

    backend = backend or OpenCVBackend()
    return np.asarray(backend.perspective_transform(src, dst), dtype=np.float64)


def apply_homography(matrix: np.ndarray, points: np.ndarray) -> np.ndarray:
    """Map (N, 2) points through a 3x3 projective matrix."""
    pts = np.asarray(points, dtype=np.float64).reshape(-1, 2)
    homogeneous = np.hstack([pts, np.ones((len(pts), 1))]) @ np.asarray(matrix, dtype=np.float64).T
    return homogeneous[:, :2] / homogeneous[:, 2:3]


class PerspectiveRectifier:
    """
    Produces an undistorted, axis-aligned image of a photographed document.

    The output width is the longer of the top/bottom edges, the height the
    longer of the left/right edges. The source frame is only read; the
    result is a new array.
    """

    def __init__(self, interpolation: str = "linear", backend: Optional[VisionBackend] = None):
        """
        Initialize the rectifier.

        Args:
            interpolation: "linear" (bilinear) or "cubic"
            backend: Image-processing backend (OpenCV by default)
        """
        if interpolation not in INTERPOLATIONS:
            raise ValueError(f"Unknown interpolation '{interpolation}', "
                             f"expected one of {sorted(INTERPOLATIONS)}")
        self.interpolation = interpolation
        self.backend = backend or OpenCVBackend()

    def output_size(self, quad) -> Tuple[int, int]:
        """
        Rectified (width, height) for a quadrilateral.

        Raises:
            InvalidQuadrilateralError: wrong point count, coincident
                adjacent corners or a zero-sized result
        """
        pts = _as_corner_array(quad)
        tl, tr, br, bl = pts

        edges = np.linalg.norm(np.roll(pts, -1, axis=0) - pts, axis=1)
        if np.any(edges < _COINCIDENT_PX):
            raise InvalidQuadrilateralError(
                "Adjacent corners coincide - degenerate quadrilateral",
                details={"corners": pts.tolist()},
            )

        width = max(np.linalg.norm(tr - tl), np.linalg.norm(br - bl))
        height = max(np.linalg.norm(bl - tl), np.linalg.norm(br - tr))
        out_w, out_h = int(round(width)), int(round(height))
        if out_w < 1 or out_h < 1:
            raise InvalidQuadrilateralError(
                f"Quadrilateral rectifies to an empty {out_w}x{out_h} image",
                details={"corners": pts.tolist()},
            )
        return out_w, out_h

    def rectify(self, frame: np.ndarray, quad) -> np.ndarray:
        """
        Warp the quadrilateral region of ``frame`` into a rectangle.

        Args:
            frame: Source frame (not modified)
            quad: Quadrilateral or 4 points in top-left, top-right,
                bottom-right, bottom-left order

        Returns:
            New image of size output_size(quad)

        Raises:
            InvalidFrameError: frame is missing or malformed
            InvalidQuadrilateralError: degenerate or malformed corners
        """
        validate_frame(frame)
        src = _as_corner_array(quad)
        width, height = self.output_size(src)

        dst = np.array([
            [0, 0],
            [width, 0],
            [width, height],
            [0, height]
        ], dtype=np.float64)

        matrix = compute_homography(src, dst, self.backend)
        warped = self.backend.warp_perspective(frame, matrix, (width, height), self.interpolation)

        logger.debug("Rectified %dx%d region from %dx%d frame",
                     width, height, frame.shape[1], frame.shape[0])
        return warped
