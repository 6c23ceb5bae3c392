"""
Live scanning session: detection, stabilization and auto-capture for one
camera preview
"""

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterable, Iterator, Optional, Tuple

import numpy as np

from .config import PipelineConfig
from .detector import QuadrilateralDetector
from .enhancer import ImageEnhancer
from .errors import BackendError, SessionClosedError
from .geometry import Quadrilateral
from .rectifier import PerspectiveRectifier
from .stability import StabilityTracker

logger = logging.getLogger(__name__)


class FrameStatus(Enum):
    SKIPPED = "skipped"            # arrived faster than the analysis rate
    DROPPED = "dropped"            # analysis ran over the frame budget
    NO_DOCUMENT = "no_document"
    TRACKING = "tracking"          # document found, not (yet) ready to capture
    READY = "ready"                # stable and outside the capture cooldown


@dataclass(frozen=True)
class FrameResult:
    status: FrameStatus
    quad: Optional[Quadrilateral] = None
    stable: bool = False
    elapsed_ms: float = 0.0
    error: Optional[str] = None

    @property
    def ready(self) -> bool:
        return self.status is FrameStatus.READY

    def to_dict(self):
        return {
            "status": self.status.value,
            "corners": self.quad.to_list() if self.quad is not None else None,
            "stable": self.stable,
            "elapsed_ms": round(self.elapsed_ms, 2),
            "error": self.error,
        }


class ScanSession:
    """
    One active scanning session (one camera preview lifetime).

    Owns its StabilityTracker; sessions never share state. Frames are
    analysed at most ``analysis_fps`` times per second, large frames are
    downscaled for detection and corners are reported in full-frame
    coordinates. Call :meth:`reset` when the preview pauses or resumes and
    :meth:`close` when it ends.
    """

    def __init__(
        self,
        config: Optional[PipelineConfig] = None,
        detector: Optional[QuadrilateralDetector] = None,
        tracker: Optional[StabilityTracker] = None,
        rectifier: Optional[PerspectiveRectifier] = None,
        enhancer: Optional[ImageEnhancer] = None,
        clock: Callable[[], float] = time.monotonic
    ):
        self.config = (config or PipelineConfig()).validate()
        cfg = self.config

        self.detector = detector or QuadrilateralDetector(
            min_area_ratio=cfg.min_area_ratio,
            approx_epsilon_factor=cfg.approx_epsilon_factor,
            edge_method=cfg.edge_method
        )
        self.tracker = tracker or StabilityTracker(
            required_stable_frames=cfg.required_stable_frames,
            max_corner_movement_px=cfg.max_corner_movement_px
        )
        self.rectifier = rectifier or PerspectiveRectifier()
        self.enhancer = enhancer or ImageEnhancer()

        self._clock = clock
        self._last_analyzed: Optional[float] = None
        self._last_capture: Optional[float] = None
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def process_frame(self, frame: np.ndarray, timestamp: Optional[float] = None) -> FrameResult:
        """
        Analyse the next preview frame.

        Args:
            frame: Preview frame (borrowed for the duration of the call)
            timestamp: Frame time in seconds; defaults to the session clock

        Returns:
            FrameResult

        Raises:
            InvalidFrameError: frame is missing, malformed or too small
            SessionClosedError: session was closed
        """
        self._ensure_open()
        now = self._clock() if timestamp is None else timestamp

        min_interval = 1.0 / self.config.analysis_fps
        if self._last_analyzed is not None and now - self._last_analyzed < min_interval:
            return FrameResult(FrameStatus.SKIPPED)
        self._last_analyzed = now

        started = self._clock()
        try:
            analysis, sx, sy = self._downscale(frame)
            quad = self.detector.detect(analysis)
        except BackendError as e:
            logger.warning("Frame skipped, image processing failed: %s", e)
            self.tracker.reset()
            return FrameResult(FrameStatus.NO_DOCUMENT, error=str(e),
                               elapsed_ms=(self._clock() - started) * 1000.0)
        elapsed_ms = (self._clock() - started) * 1000.0

        if elapsed_ms > self.config.frame_budget_ms:
            logger.warning("Frame dropped: analysis took %.1f ms (budget %.0f ms)",
                           elapsed_ms, self.config.frame_budget_ms)
            return FrameResult(FrameStatus.DROPPED, elapsed_ms=elapsed_ms)

        if quad is None:
            self.tracker.reset()
            return FrameResult(FrameStatus.NO_DOCUMENT, elapsed_ms=elapsed_ms)

        if sx != 1.0 or sy != 1.0:
            quad = quad.scaled(1.0 / sx, 1.0 / sy)

        stable = self.tracker.push(quad)
        if stable and self._cooldown_elapsed(now):
            logger.info("Document stable, ready to capture")
            return FrameResult(FrameStatus.READY, quad=quad, stable=True, elapsed_ms=elapsed_ms)

        return FrameResult(FrameStatus.TRACKING, quad=quad, stable=stable, elapsed_ms=elapsed_ms)

    def capture(self, frame: np.ndarray, quad, timestamp: Optional[float] = None,
                enhancement=None) -> np.ndarray:
        """
        Rectify a confirmed capture and start a new stability window.

        Args:
            frame: Full-resolution frame
            quad: Corners in that frame's coordinates
            timestamp: Capture time in seconds; defaults to the session clock
            enhancement: EnhancementMode or its value; defaults to ``config.enhancement``

        Returns:
            Rectified (and enhanced) image, independent of ``frame``
        """
        self._ensure_open()
        mode = self.config.enhancement if enhancement is None else enhancement
        rectified = self.enhancer.enhance(self.rectifier.rectify(frame, quad), mode)
        self._last_capture = self._clock() if timestamp is None else timestamp
        self.tracker.reset()
        logger.info("Captured %dx%d document", rectified.shape[1], rectified.shape[0])
        return rectified

    def run(self, frames: Iterable[Tuple[float, np.ndarray]],
            enhancement=None) -> Iterator[Tuple[FrameResult, Optional[np.ndarray]]]:
        """
        Drive the session over timestamped frames, capturing automatically.

        Args:
            frames: Iterable of (timestamp_s, frame)
            enhancement: Applied to every capture; defaults to ``config.enhancement``

        Yields:
            (FrameResult, rectified image or None) for every frame
        """
        for timestamp, frame in frames:
            result = self.process_frame(frame, timestamp=timestamp)
            captured = None
            if result.ready:
                captured = self.capture(frame, result.quad, timestamp=timestamp,
                                        enhancement=enhancement)
            yield result, captured

    def reset(self):
        """Drop stability and throttling state (pause/resume, user re-aims)."""
        self.tracker.reset()
        self._last_analyzed = None

    def close(self):
        self.tracker.reset()
        self._closed = True

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

    def _ensure_open(self):
        if self._closed:
            raise SessionClosedError()

    def _cooldown_elapsed(self, now: float) -> bool:
        if self._last_capture is None:
            return True
        return now - self._last_capture >= self.config.capture_cooldown_s

    def _downscale(self, frame: np.ndarray) -> Tuple[np.ndarray, float, float]:
        """Frame for detection plus the effective x and y scale factors."""
        if not isinstance(frame, np.ndarray) or frame.ndim < 2:
            return frame, 1.0, 1.0
        height, width = frame.shape[:2]
        longest = max(width, height)
        if longest <= self.config.analysis_max_dim:
            return frame, 1.0, 1.0

        scale = self.config.analysis_max_dim / float(longest)
        size = (max(1, int(round(width * scale))), max(1, int(round(height * scale))))
        resized = self.detector.backend.resize(frame, size)
        # Rounding makes the two axes differ slightly
        return resized, size[0] / float(width), size[1] / float(height)
