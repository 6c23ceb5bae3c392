"""
Tests for ScanSession
"""

import numpy as np
import pytest

from document_capture.backend import OpenCVBackend
from document_capture.config import PipelineConfig
from document_capture.errors import (
    BackendError,
    EdgeExtractionError,
    InvalidEnhancementError,
    InvalidFrameError,
    SessionClosedError,
)
from document_capture.geometry import Quadrilateral
from document_capture.session import FrameStatus, ScanSession

from conftest import PAGE_CORNERS

# Timestamps 0.25 s apart pass the default 5 fps analysis throttle
STEP = 0.25


class FakeClock:
    def __init__(self, now=0.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class ScriptedDetector:
    """Returns queued detections; exceptions in the queue are raised."""

    def __init__(self, outcomes, clock=None, delay_s=0.0):
        self.outcomes = list(outcomes)
        self.backend = OpenCVBackend()
        self.clock = clock
        self.delay_s = delay_s
        self.calls = 0

    def detect(self, frame):
        self.calls += 1
        if self.clock is not None:
            self.clock.advance(self.delay_s)
        outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class FailingResizeBackend(OpenCVBackend):
    def resize(self, image, size):
        raise BackendError("resize failed")


QUAD = Quadrilateral.from_points([(10, 10), (90, 10), (90, 90), (10, 90)])
SMALL_FRAME = np.zeros((100, 100, 3), dtype=np.uint8)


def make_session(outcomes, clock=None, delay_s=0.0, **config):
    clock = clock or FakeClock()
    detector = ScriptedDetector(outcomes, clock=clock, delay_s=delay_s)
    return ScanSession(PipelineConfig(**config), detector=detector, clock=clock)


class TestScanSession:
    """Tests for ScanSession"""

    def test_ready_after_stable_frames(self, document_frame, page_corners):
        session = ScanSession(clock=FakeClock())
        statuses = [session.process_frame(document_frame, timestamp=i * STEP).status for i in range(3)]
        assert statuses == [FrameStatus.TRACKING, FrameStatus.TRACKING, FrameStatus.READY]

    def test_corners_in_full_frame_coordinates(self, document_frame, page_corners):
        """1400 px frames are analysed downscaled to 1024 px"""
        session = ScanSession(clock=FakeClock())
        result = session.process_frame(document_frame, timestamp=0.0)
        np.testing.assert_allclose(result.quad.as_array(), page_corners, atol=8.0)

    def test_no_downscale_when_disabled_by_size(self, document_frame, page_corners):
        session = ScanSession(PipelineConfig(analysis_max_dim=2000), clock=FakeClock())
        result = session.process_frame(document_frame, timestamp=0.0)
        np.testing.assert_allclose(result.quad.as_array(), page_corners, atol=5.0)

    def test_throttled_frames_skipped(self):
        session = make_session([QUAD])
        assert session.process_frame(SMALL_FRAME, timestamp=0.0).status is FrameStatus.TRACKING
        assert session.process_frame(SMALL_FRAME, timestamp=0.1).status is FrameStatus.SKIPPED
        assert session.process_frame(SMALL_FRAME, timestamp=0.2).status is FrameStatus.TRACKING
        assert session.detector.calls == 2

    def test_reset_clears_throttle(self):
        session = make_session([QUAD])
        session.process_frame(SMALL_FRAME, timestamp=0.0)
        session.reset()
        assert session.process_frame(SMALL_FRAME, timestamp=0.1).status is FrameStatus.TRACKING
        assert session.tracker.frame_count == 1

    def test_missing_document_resets_tracker(self):
        session = make_session([QUAD, QUAD, None, QUAD])
        statuses = [session.process_frame(SMALL_FRAME, timestamp=i * STEP).status for i in range(4)]
        assert statuses == [FrameStatus.TRACKING, FrameStatus.TRACKING,
                            FrameStatus.NO_DOCUMENT, FrameStatus.TRACKING]
        assert session.tracker.frame_count == 1

    def test_edge_extraction_failure_skips_frame(self):
        session = make_session([QUAD, EdgeExtractionError("boom"), QUAD])
        results = [session.process_frame(SMALL_FRAME, timestamp=i * STEP) for i in range(3)]
        assert results[1].status is FrameStatus.NO_DOCUMENT
        assert results[1].error == "boom"
        assert results[2].status is FrameStatus.TRACKING
        assert session.tracker.frame_count == 1

    def test_over_budget_frame_dropped(self):
        clock = FakeClock()
        session = make_session([QUAD], clock=clock, delay_s=0.1)
        result = session.process_frame(SMALL_FRAME, timestamp=0.0)
        assert result.status is FrameStatus.DROPPED
        assert result.elapsed_ms == pytest.approx(100.0)
        assert session.tracker.frame_count == 0

    def test_invalid_frame_propagates(self):
        session = ScanSession(clock=FakeClock())
        with pytest.raises(InvalidFrameError):
            session.process_frame(None, timestamp=0.0)

    def test_capture_cooldown(self):
        session = make_session([QUAD], capture_cooldown_s=2.0)
        t = 0.0
        result = None
        for _ in range(3):
            result = session.process_frame(SMALL_FRAME, timestamp=t)
            t += STEP
        assert result.ready

        session.capture(SMALL_FRAME, result.quad, timestamp=t - STEP)
        assert session.tracker.frame_count == 0

        # Stable again after three frames but still inside the cooldown
        statuses = []
        while t < 2.5:
            statuses.append(session.process_frame(SMALL_FRAME, timestamp=t).status)
            t += STEP
        assert FrameStatus.READY not in statuses
        assert statuses[-1] is FrameStatus.TRACKING
        assert session.process_frame(SMALL_FRAME, timestamp=2.5).status is FrameStatus.READY

    def test_run_captures_rectified_page(self, document_frame):
        frames = [(i * STEP, document_frame) for i in range(4)]
        with ScanSession(clock=FakeClock()) as session:
            outputs = list(session.run(frames))

        captured = [page for _, page in outputs if page is not None]
        assert len(captured) == 1
        height, width = captured[0].shape[:2]
        assert abs(width - 800) <= 12
        assert abs(height - 1100) <= 12
        # Capture restarted the stability window
        assert outputs[3][0].status is FrameStatus.TRACKING

    def test_closed_session(self):
        session = make_session([QUAD])
        session.close()
        assert session.closed
        with pytest.raises(SessionClosedError):
            session.process_frame(SMALL_FRAME, timestamp=0.0)
        with pytest.raises(SessionClosedError):
            session.capture(SMALL_FRAME, QUAD)

    def test_context_manager_closes(self):
        with make_session([QUAD]) as session:
            session.process_frame(SMALL_FRAME, timestamp=0.0)
        assert session.closed

    def test_frame_result_to_dict(self):
        session = make_session([QUAD])
        data = session.process_frame(SMALL_FRAME, timestamp=0.0).to_dict()
        assert data["status"] == "tracking"
        assert data["corners"] == QUAD.to_list()
        assert data["stable"] is False
        assert data["error"] is None

    def test_sessions_do_not_share_tracker(self):
        first = make_session([QUAD])
        second = make_session([QUAD])
        for i in range(3):
            first.process_frame(SMALL_FRAME, timestamp=i * STEP)
        assert first.tracker.is_stable
        assert second.tracker.frame_count == 0

    def test_capture_accepts_page_corners(self, document_frame):
        session = ScanSession(clock=FakeClock())
        page = session.capture(document_frame, PAGE_CORNERS, timestamp=0.0)
        assert page.shape == (1100, 800, 3)

    def test_downscale_factors_per_axis(self):
        session = make_session([QUAD])
        analysis, sx, sy = session._downscale(np.zeros((1001, 1500, 3), dtype=np.uint8))
        assert analysis.shape[:2] == (683, 1024)
        assert sx == 1024 / 1500
        assert sy == 683 / 1001

    def test_corners_mapped_back_per_axis(self):
        found = Quadrilateral.from_points([(10, 10), (1013, 10), (1013, 682), (10, 682)])
        session = make_session([found])
        result = session.process_frame(np.zeros((1001, 1500, 3), dtype=np.uint8), timestamp=0.0)
        expected = found.as_array() * [1500 / 1024, 1001 / 683]
        np.testing.assert_allclose(result.quad.as_array(), expected, atol=1e-6)
        # Bottom edge lands on the last full-resolution rows
        assert result.quad.bottom_left.y == pytest.approx(999.53, abs=0.01)

    def test_resize_failure_skips_frame(self):
        clock = FakeClock()
        detector = ScriptedDetector([QUAD], clock=clock)
        detector.backend = FailingResizeBackend()
        session = ScanSession(detector=detector, clock=clock)

        assert session.process_frame(SMALL_FRAME, timestamp=0.0).status is FrameStatus.TRACKING
        result = session.process_frame(np.zeros((1400, 1000, 3), dtype=np.uint8), timestamp=STEP)
        assert result.status is FrameStatus.NO_DOCUMENT
        assert result.error == "resize failed"
        assert session.tracker.frame_count == 0
        assert detector.calls == 1

    def test_capture_with_enhancement(self, document_frame):
        session = ScanSession(clock=FakeClock())
        page = session.capture(document_frame, PAGE_CORNERS, timestamp=0.0, enhancement="grayscale")
        assert page.shape == (1100, 800, 3)
        np.testing.assert_array_equal(page[:, :, 0], page[:, :, 2])

    def test_configured_enhancement_used_by_run(self, document_frame):
        frames = [(i * STEP, document_frame) for i in range(3)]
        config = PipelineConfig(enhancement="black_and_white")
        with ScanSession(config, clock=FakeClock()) as session:
            captured = [page for _, page in session.run(frames) if page is not None]
        assert len(captured) == 1
        assert set(np.unique(captured[0])) <= {0, 255}

    def test_unknown_enhancement(self, document_frame):
        session = ScanSession(clock=FakeClock())
        with pytest.raises(InvalidEnhancementError):
            session.capture(document_frame, PAGE_CORNERS, enhancement="sepia")
