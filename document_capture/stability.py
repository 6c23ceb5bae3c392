"""
Capture stabilization: decides when a detected outline has held still
"""

import logging
from collections import deque
from enum import Enum
from typing import Optional, Sequence, Union

import numpy as np

from .geometry import Quadrilateral

logger = logging.getLogger(__name__)

QuadLike = Union[Quadrilateral, Sequence, np.ndarray]


class TrackerState(Enum):
    """Outcome of the most recent observation"""
    INSUFFICIENT_HISTORY = "insufficient_history"
    UNSTABLE = "unstable"
    STABLE = "stable"


def corner_spread(window: np.ndarray) -> np.ndarray:
    """
    Per-corner movement across a stack of observations.

    For each corner the spread is the diagonal of the bounding box that
    corner covered over all frames: hypot(max x - min x, max y - min y).

    Args:
        window: Array of shape (frames, 4, 2)

    Returns:
        Array of 4 spreads in pixels
    """
    ranges = window.max(axis=0) - window.min(axis=0)
    return np.hypot(ranges[:, 0], ranges[:, 1])


class StabilityTracker:
    """
    Tracks the last N detections of one scanning session.

    ``push`` returns True once N consecutive observations kept every corner
    within ``max_corner_movement_px``. The window slides: a corner that
    moves keeps the result False until the older observations have been
    evicted. A missing or malformed detection empties the window. One
    tracker belongs to exactly one session.
    """

    def __init__(self, required_stable_frames: int = 3, max_corner_movement_px: float = 8.0):
        """
        Initialize the tracker.

        Args:
            required_stable_frames: Consecutive still frames needed before reporting stable
            max_corner_movement_px: Largest allowed spread of any corner across the window
        """
        if int(required_stable_frames) < 1:
            raise ValueError(f"required_stable_frames must be >= 1, got {required_stable_frames}")
        if max_corner_movement_px < 0:
            raise ValueError(f"max_corner_movement_px must be >= 0, got {max_corner_movement_px}")

        self.required_stable_frames = int(required_stable_frames)
        self.max_corner_movement_px = float(max_corner_movement_px)
        self._window = deque(maxlen=self.required_stable_frames)
        self._state = TrackerState.INSUFFICIENT_HISTORY

    @property
    def state(self) -> TrackerState:
        return self._state

    @property
    def frame_count(self) -> int:
        """Observations currently in the window."""
        return len(self._window)

    @property
    def is_stable(self) -> bool:
        return self._state is TrackerState.STABLE

    def push(self, quad: Optional[QuadLike]) -> bool:
        """
        Feed the detection of the next frame.

        Args:
            quad: Quadrilateral (or 4 points in canonical order), None when
                nothing was detected

        Returns:
            True if the outline has been still for the required number of frames
        """
        corners = self._as_corners(quad)
        if corners is None:
            if self._window:
                logger.debug("Detection missing, stability window cleared")
            self._window.clear()
            self._state = TrackerState.INSUFFICIENT_HISTORY
            return False

        self._window.append(corners)

        if len(self._window) < self.required_stable_frames:
            self._state = TrackerState.INSUFFICIENT_HISTORY
            return False

        spread = corner_spread(np.stack(self._window))
        if np.any(spread > self.max_corner_movement_px):
            logger.debug("Corner moved %.1f px across the window (limit %.1f)",
                         float(spread.max()), self.max_corner_movement_px)
            self._state = TrackerState.UNSTABLE
            return False

        self._state = TrackerState.STABLE
        return True

    def reset(self):
        """Forget all observations (session restart, user cancel, resume)."""
        self._window.clear()
        self._state = TrackerState.INSUFFICIENT_HISTORY

    @staticmethod
    def _as_corners(quad: Optional[QuadLike]) -> Optional[np.ndarray]:
        if quad is None:
            return None
        if isinstance(quad, Quadrilateral):
            return quad.as_array()
        try:
            pts = np.asarray(quad, dtype=np.float64)
        except (TypeError, ValueError):
            return None
        if pts.shape != (4, 2) or not np.all(np.isfinite(pts)):
            return None
        return pts.copy()
