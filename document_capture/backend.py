"""
Image-processing primitives used by the pipeline.

Detection, stability and rectification logic only talk to a
:class:`VisionBackend`; :class:`OpenCVBackend` is the default one.
"""

import logging
from abc import ABC, abstractmethod
from typing import List, Tuple

import cv2
import numpy as np

from .errors import BackendError, EdgeExtractionError

logger = logging.getLogger(__name__)

INTERPOLATIONS = {
    "linear": cv2.INTER_LINEAR,
    "cubic": cv2.INTER_CUBIC,
}


class VisionBackend(ABC):
    """Minimal set of raster operations the pipeline depends on."""

    @abstractmethod
    def to_gray(self, frame: np.ndarray) -> np.ndarray:
        """Single-channel intensity image from a gray, BGR or BGRA frame."""

    @abstractmethod
    def smooth(self, gray: np.ndarray, ksize: int = 5) -> np.ndarray:
        """Suppress sensor noise with a fixed-size Gaussian kernel."""

    @abstractmethod
    def binarize(self, gray: np.ndarray, block_size: int = 11, offset: float = 2.0,
                 close_ksize: int = 5) -> np.ndarray:
        """Adaptive threshold (edges white) followed by a morphological close."""

    @abstractmethod
    def gradient_edges(self, gray: np.ndarray, low: float = 50, high: float = 150,
                       dilate_ksize: int = 3) -> np.ndarray:
        """Canny-style gradient edges, dilated to join small gaps."""

    @abstractmethod
    def find_contours(self, binary: np.ndarray) -> List[np.ndarray]:
        """External contours of a binary map."""

    @abstractmethod
    def contour_area(self, contour: np.ndarray) -> float:
        pass

    @abstractmethod
    def perimeter(self, contour: np.ndarray) -> float:
        pass

    @abstractmethod
    def simplify_polygon(self, contour: np.ndarray, epsilon: float) -> np.ndarray:
        """Dominant vertices of a closed contour as an (N, 2) array."""

    @abstractmethod
    def is_convex(self, polygon: np.ndarray) -> bool:
        pass

    @abstractmethod
    def perspective_transform(self, src: np.ndarray, dst: np.ndarray) -> np.ndarray:
        """3x3 projective matrix mapping 4 source points onto 4 destination points."""

    @abstractmethod
    def warp_perspective(self, image: np.ndarray, matrix: np.ndarray,
                         size: Tuple[int, int], interpolation: str = "linear") -> np.ndarray:
        """Resample ``image`` through ``matrix`` into a new (width, height) raster."""

    @abstractmethod
    def resize(self, image: np.ndarray, size: Tuple[int, int]) -> np.ndarray:
        pass


class OpenCVBackend(VisionBackend):
    """:class:`VisionBackend` on top of OpenCV."""

    def to_gray(self, frame: np.ndarray) -> np.ndarray:
        if frame.ndim == 2:
            return frame
        channels = frame.shape[2]
        try:
            if channels == 1:
                return frame[:, :, 0]
            if channels == 3:
                return cv2.cvtColor(frame, cv2.COLOR_BGR2GRAY)
            if channels == 4:
                return cv2.cvtColor(frame, cv2.COLOR_BGRA2GRAY)
        except cv2.error as e:
            raise EdgeExtractionError(f"Grayscale conversion failed: {e}",
                                      details={"dtype": str(frame.dtype)})
        raise EdgeExtractionError(f"Unsupported channel count: {channels}")

    def smooth(self, gray: np.ndarray, ksize: int = 5) -> np.ndarray:
        try:
            return cv2.GaussianBlur(gray, (ksize, ksize), 0)
        except cv2.error as e:
            raise EdgeExtractionError(f"Smoothing failed: {e}")

    def binarize(self, gray: np.ndarray, block_size: int = 11, offset: float = 2.0,
                 close_ksize: int = 5) -> np.ndarray:
        try:
            # Inverted so that the dark side of every edge turns white and flat areas stay black
            binary = cv2.adaptiveThreshold(
                gray,
                255,
                cv2.ADAPTIVE_THRESH_GAUSSIAN_C,
                cv2.THRESH_BINARY_INV,
                block_size,
                offset
            )
            kernel = cv2.getStructuringElement(cv2.MORPH_RECT, (close_ksize, close_ksize))
            return cv2.morphologyEx(binary, cv2.MORPH_CLOSE, kernel)
        except cv2.error as e:
            raise EdgeExtractionError(f"Adaptive threshold failed: {e}",
                                      details={"dtype": str(gray.dtype)})

    def gradient_edges(self, gray: np.ndarray, low: float = 50, high: float = 150,
                       dilate_ksize: int = 3) -> np.ndarray:
        try:
            edges = cv2.Canny(gray, low, high)
            kernel = np.ones((dilate_ksize, dilate_ksize), np.uint8)
            return cv2.dilate(edges, kernel, iterations=1)
        except cv2.error as e:
            raise EdgeExtractionError(f"Edge extraction failed: {e}",
                                      details={"dtype": str(gray.dtype)})

    def find_contours(self, binary: np.ndarray) -> List[np.ndarray]:
        try:
            contours, _ = cv2.findContours(
                binary,
                cv2.RETR_EXTERNAL,
                cv2.CHAIN_APPROX_SIMPLE
            )
        except cv2.error as e:
            raise EdgeExtractionError(f"Contour extraction failed: {e}")
        logger.debug("Found %d external contours", len(contours))
        return list(contours)

    def contour_area(self, contour: np.ndarray) -> float:
        return float(cv2.contourArea(contour))

    def perimeter(self, contour: np.ndarray) -> float:
        return float(cv2.arcLength(contour, True))

    def simplify_polygon(self, contour: np.ndarray, epsilon: float) -> np.ndarray:
        approx = cv2.approxPolyDP(contour, epsilon, True)
        return approx.reshape(-1, 2).astype(np.float64)

    def is_convex(self, polygon: np.ndarray) -> bool:
        pts = np.asarray(polygon, dtype=np.float32).reshape(-1, 1, 2)
        return bool(cv2.isContourConvex(pts))

    def perspective_transform(self, src: np.ndarray, dst: np.ndarray) -> np.ndarray:
        try:
            return cv2.getPerspectiveTransform(
                np.asarray(src, dtype=np.float32).reshape(4, 2),
                np.asarray(dst, dtype=np.float32).reshape(4, 2)
            )
        except cv2.error as e:
            raise BackendError(f"Perspective transform failed: {e}")

    def warp_perspective(self, image: np.ndarray, matrix: np.ndarray,
                         size: Tuple[int, int], interpolation: str = "linear") -> np.ndarray:
        try:
            flags = INTERPOLATIONS[interpolation]
        except KeyError:
            raise ValueError(f"Unknown interpolation '{interpolation}', "
                             f"expected one of {sorted(INTERPOLATIONS)}")
        try:
            return cv2.warpPerspective(
                image,
                np.asarray(matrix, dtype=np.float64),
                (int(size[0]), int(size[1])),
                flags=flags,
                borderMode=cv2.BORDER_REPLICATE
            )
        except cv2.error as e:
            raise BackendError(f"Perspective warp failed: {e}",
                               details={"size": list(size), "dtype": str(image.dtype)})

    def resize(self, image: np.ndarray, size: Tuple[int, int]) -> np.ndarray:
        try:
            return cv2.resize(image, (int(size[0]), int(size[1])), interpolation=cv2.INTER_AREA)
        except cv2.error as e:
            raise BackendError(f"Resize failed: {e}")
