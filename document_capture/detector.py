"""
Document boundary detector
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

import numpy as np

from .backend import OpenCVBackend, VisionBackend
from .edge_map import EdgeMapBuilder
from .errors import InvalidQuadrilateralError
from .geometry import Quadrilateral

logger = logging.getLogger(__name__)

# Corners closer than this to the image edge (fraction of the shorter side) lie on the border
BORDER_MARGIN_RATIO = 0.01
MIN_BORDER_MARGIN_PX = 4.0


@dataclass(frozen=True)
class QuadCandidate:
    """A 4-vertex convex contour that passed the size filter."""
    quad: Quadrilateral
    area: float
    contour_index: int


def hugs_frame_border(quad: Quadrilateral, width: int, height: int) -> bool:
    """
    Check whether every corner of ``quad`` lies on the frame border.

    Such an outline is the frame itself (texture or noise merged into one
    blob by the edge map), not a document inside it.
    """
    margin = max(MIN_BORDER_MARGIN_PX, BORDER_MARGIN_RATIO * min(width, height))
    pts = quad.as_array()
    distances = np.minimum.reduce([
        pts[:, 0],
        pts[:, 1],
        (width - 1) - pts[:, 0],
        (height - 1) - pts[:, 1],
    ])
    return bool(np.all(distances <= margin))


def select_largest(candidates: Sequence[QuadCandidate]) -> Optional[QuadCandidate]:
    """
    Pick the candidate with the largest enclosed area.

    Equal areas are not re-ranked: the first one in contour order wins.
    """
    best = None
    for candidate in candidates:
        if best is None or candidate.area > best.area:
            best = candidate
    return best


class QuadrilateralDetector:
    """
    Finds the quadrilateral boundary of a single document in a frame.

    Builds an edge map, simplifies every large external contour to its
    dominant vertices and keeps the largest convex 4-vertex outline.
    """

    def __init__(
        self,
        min_area_ratio: float = 0.10,
        approx_epsilon_factor: float = 0.02,
        edge_method: str = "canny",
        backend: Optional[VisionBackend] = None
    ):
        """
        Initialize the detector.

        Args:
            min_area_ratio: Minimum contour area as a fraction of the frame area
            approx_epsilon_factor: Polygon simplification tolerance as a fraction of the contour perimeter
            edge_method: Edge map method, "canny" or "adaptive"
            backend: Image-processing backend (OpenCV by default)
        """
        if not 0.0 < min_area_ratio < 1.0:
            raise ValueError(f"min_area_ratio must be in (0, 1), got {min_area_ratio}")
        if not 0.0 < approx_epsilon_factor < 1.0:
            raise ValueError(f"approx_epsilon_factor must be in (0, 1), got {approx_epsilon_factor}")

        self.min_area_ratio = min_area_ratio
        self.approx_epsilon_factor = approx_epsilon_factor
        self.backend = backend or OpenCVBackend()
        self.edge_builder = EdgeMapBuilder(edge_method, self.backend)

    @property
    def edge_method(self) -> str:
        return self.edge_builder.method

    def detect(self, frame: np.ndarray) -> Optional[Quadrilateral]:
        """
        Detect the document outline in a frame.

        Args:
            frame: Input frame (gray, BGR or BGRA)

        Returns:
            Quadrilateral in top-left, top-right, bottom-right, bottom-left
            order, or None if no acceptable outline was found

        Raises:
            InvalidFrameError: frame is missing, malformed or too small
            EdgeExtractionError: the backend failed on this frame
        """
        best = select_largest(self.detect_all_candidates(frame, sort=False))
        if best is None:
            logger.debug("No document quadrilateral found")
            return None

        logger.debug("Selected quadrilateral with area %.0f (contour #%d)", best.area, best.contour_index)
        return best.quad

    def detect_all_candidates(self, frame: np.ndarray, sort: bool = True) -> List[QuadCandidate]:
        """
        Every outline that would be eligible for :meth:`detect`.

        Args:
            frame: Input frame
            sort: Order by area, largest first (stable for equal areas)

        Returns:
            List of candidates
        """
        edge_map = self.edge_builder.build(frame)
        height, width = frame.shape[:2]
        min_area = width * height * self.min_area_ratio

        candidates = []
        contours = self.backend.find_contours(edge_map)
        for index, contour in enumerate(contours):
            area = self.backend.contour_area(contour)
            if area < min_area:
                continue

            peri = self.backend.perimeter(contour)
            approx = self.backend.simplify_polygon(contour, self.approx_epsilon_factor * peri)
            if len(approx) != 4 or not self.backend.is_convex(approx):
                continue

            try:
                quad = Quadrilateral.from_points(approx)
            except InvalidQuadrilateralError as e:
                logger.debug("Skipping contour #%d: %s", index, e)
                continue

            if hugs_frame_border(quad, width, height):
                logger.debug("Skipping contour #%d: outline is the frame border", index)
                continue

            candidates.append(QuadCandidate(quad=quad, area=quad.area(), contour_index=index))

        logger.debug("%d of %d contours are quadrilateral candidates", len(candidates), len(contours))

        if sort:
            candidates.sort(key=lambda c: c.area, reverse=True)
        return candidates
