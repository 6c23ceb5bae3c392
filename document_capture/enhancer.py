"""
Post-capture enhancement of a rectified page
"""

import logging
from enum import Enum

import cv2
import numpy as np

from .edge_map import validate_frame
from .errors import BackendError, InvalidEnhancementError

logger = logging.getLogger(__name__)


class EnhancementMode(Enum):
    """Look of the saved page"""
    ORIGINAL = "original"
    AUTO = "auto"
    BLACK_AND_WHITE = "black_and_white"
    GRAYSCALE = "grayscale"
    MAGIC_COLOR = "magic_color"

    @classmethod
    def parse(cls, value) -> "EnhancementMode":
        """Accept a mode, its value or its name (case-insensitive)."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            key = value.strip().lower().replace("-", "_")
            for mode in cls:
                if mode.value == key:
                    return mode
        raise InvalidEnhancementError(
            f"Unknown enhancement mode '{value}'",
            details={"expected": enhancement_names()},
        )


def enhancement_names():
    return [mode.value for mode in EnhancementMode]


class ImageEnhancer:
    """
    Contrast and color clean-up for rectified pages.

    Every mode except ORIGINAL returns a 3-channel BGR image. The input is
    never modified.
    """

    def __init__(self, clahe_clip_limit: float = 2.0, clahe_tile: int = 8,
                 bw_block_size: int = 15, bw_offset: float = 10.0,
                 saturation_gain: float = 1.25, value_gain: float = 1.08):
        if bw_block_size < 3 or bw_block_size % 2 == 0:
            raise ValueError(f"bw_block_size must be an odd number >= 3, got {bw_block_size}")
        self.clahe_clip_limit = clahe_clip_limit
        self.clahe_tile = clahe_tile
        self.bw_block_size = bw_block_size
        self.bw_offset = bw_offset
        self.saturation_gain = saturation_gain
        self.value_gain = value_gain

    def enhance(self, image: np.ndarray, mode="original") -> np.ndarray:
        """
        Apply an enhancement mode.

        Args:
            image: Gray, BGR or BGRA page
            mode: EnhancementMode or its string value

        Returns:
            New image

        Raises:
            InvalidFrameError: image is missing or malformed
            InvalidEnhancementError: unknown mode
            BackendError: OpenCV rejected the image (e.g. unsupported dtype)
        """
        mode = EnhancementMode.parse(mode)
        validate_frame(image)

        if mode is EnhancementMode.ORIGINAL:
            return image.copy()

        try:
            bgr = self._to_bgr(image)
            if mode is EnhancementMode.AUTO:
                return self._auto(bgr)
            if mode is EnhancementMode.BLACK_AND_WHITE:
                return self._black_and_white(bgr)
            if mode is EnhancementMode.GRAYSCALE:
                gray = cv2.cvtColor(bgr, cv2.COLOR_BGR2GRAY)
                return cv2.cvtColor(gray, cv2.COLOR_GRAY2BGR)
            return self._magic_color(bgr)
        except cv2.error as e:
            raise BackendError(f"Enhancement '{mode.value}' failed: {e}",
                               details={"dtype": str(image.dtype)})

    def _to_bgr(self, image: np.ndarray) -> np.ndarray:
        if image.ndim == 2:
            return cv2.cvtColor(image, cv2.COLOR_GRAY2BGR)
        channels = image.shape[2]
        if channels == 1:
            return cv2.cvtColor(image[:, :, 0], cv2.COLOR_GRAY2BGR)
        if channels == 4:
            return cv2.cvtColor(image, cv2.COLOR_BGRA2BGR)
        return image

    def _auto(self, bgr: np.ndarray) -> np.ndarray:
        gray = cv2.cvtColor(bgr, cv2.COLOR_BGR2GRAY)
        clahe = cv2.createCLAHE(clipLimit=self.clahe_clip_limit,
                                tileGridSize=(self.clahe_tile, self.clahe_tile))
        return cv2.cvtColor(clahe.apply(gray), cv2.COLOR_GRAY2BGR)

    def _black_and_white(self, bgr: np.ndarray) -> np.ndarray:
        gray = cv2.cvtColor(bgr, cv2.COLOR_BGR2GRAY)
        binary = cv2.adaptiveThreshold(
            gray,
            255,
            cv2.ADAPTIVE_THRESH_GAUSSIAN_C,
            cv2.THRESH_BINARY,
            self.bw_block_size,
            self.bw_offset
        )
        return cv2.cvtColor(binary, cv2.COLOR_GRAY2BGR)

    def _magic_color(self, bgr: np.ndarray) -> np.ndarray:
        hsv = cv2.cvtColor(bgr, cv2.COLOR_BGR2HSV).astype(np.float32)
        hsv[:, :, 1] *= self.saturation_gain
        hsv[:, :, 2] *= self.value_gain
        hsv = np.clip(hsv, 0, 255).astype(np.uint8)
        return cv2.cvtColor(hsv, cv2.COLOR_HSV2BGR)
