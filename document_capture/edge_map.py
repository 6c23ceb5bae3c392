"""
Edge map construction for quadrilateral search
"""

import logging
from typing import Optional, Tuple

import numpy as np

from .backend import OpenCVBackend, VisionBackend
from .errors import FrameTooSmallError, InvalidFrameError

logger = logging.getLogger(__name__)

# Smallest width/height the pipeline will look at
MIN_FRAME_SIDE = 16

EDGE_METHODS = ("canny", "adaptive")


def validate_frame(frame, min_side: int = 1) -> Tuple[int, int]:
    """
    Check that ``frame`` is a usable raster.

    Args:
        frame: Gray (H, W), or (H, W, C) array with 1, 3 or 4 channels
        min_side: Minimum accepted width and height

    Returns:
        Tuple (width, height)

    Raises:
        InvalidFrameError: missing, empty or malformed frame
        FrameTooSmallError: width or height below ``min_side``
    """
    if frame is None:
        raise InvalidFrameError("Frame is None")
    if not isinstance(frame, np.ndarray):
        raise InvalidFrameError(f"Frame must be a numpy array, got {type(frame).__name__}")
    if frame.size == 0:
        raise InvalidFrameError("Frame is empty", details={"shape": list(frame.shape)})
    if frame.ndim not in (2, 3) or (frame.ndim == 3 and frame.shape[2] not in (1, 3, 4)):
        raise InvalidFrameError(
            f"Unsupported frame shape {frame.shape}; expected (H, W) or (H, W, 1|3|4)",
            details={"shape": list(frame.shape)},
        )

    height, width = frame.shape[:2]
    if width < min_side or height < min_side:
        raise FrameTooSmallError(width, height, min_side)
    return width, height


class EdgeMapBuilder:
    """
    Turns a raw frame into a binary map of edge candidates.

    Steps: grayscale, 5x5 Gaussian smoothing, then either Canny edges with a
    light dilation ("canny") or an inverted adaptive threshold with a
    morphological close ("adaptive").
    """

    def __init__(self, method: str = "canny", backend: Optional[VisionBackend] = None):
        """
        Initialize the builder.

        Args:
            method: "canny" or "adaptive"
            backend: Image-processing backend (OpenCV by default)
        """
        if method not in EDGE_METHODS:
            raise ValueError(f"Unknown edge method '{method}', expected one of {EDGE_METHODS}")
        self.method = method
        self.backend = backend or OpenCVBackend()

    def build(self, frame: np.ndarray) -> np.ndarray:
        """
        Build the edge map of a frame.

        Args:
            frame: Input frame (gray, BGR or BGRA)

        Returns:
            Single-channel uint8 map, non-zero pixels are edge candidates

        Raises:
            InvalidFrameError: frame is missing, malformed or too small
            EdgeExtractionError: the backend failed on this frame
        """
        width, height = validate_frame(frame, MIN_FRAME_SIDE)

        gray = self.backend.to_gray(frame)
        blurred = self.backend.smooth(gray, 5)

        if self.method == "adaptive":
            edge_map = self.backend.binarize(blurred)
        else:
            edge_map = self.backend.gradient_edges(blurred)

        logger.debug("Built %s edge map for %dx%d frame", self.method, width, height)
        return edge_map
