"""
Shared fixtures: synthetic photos drawn with OpenCV
"""

import cv2
import numpy as np
import pytest

# Axis-aligned page used by most detection and rectification tests
PAGE_CORNERS = [(100, 150), (900, 150), (900, 1250), (100, 1250)]
FRAME_SIZE = (1000, 1400)  # (width, height)


def draw_document(corners=PAGE_CORNERS, size=FRAME_SIZE, background=30, paper=235):
    """Dark background with a filled light polygon, BGR uint8."""
    width, height = size
    frame = np.full((height, width, 3), background, dtype=np.uint8)
    pts = np.array(corners, dtype=np.int32).reshape(-1, 1, 2)
    cv2.fillPoly(frame, [pts], (paper, paper, paper))
    return frame


def textured_frame(width, height):
    """Deterministic non-uniform BGR image for pixel comparisons."""
    ys, xs = np.mgrid[0:height, 0:width]
    frame = np.empty((height, width, 3), dtype=np.uint8)
    frame[:, :, 0] = (xs * 7 + ys * 3) % 256
    frame[:, :, 1] = (xs * 2 + ys * 5) % 256
    frame[:, :, 2] = (xs + ys) % 256
    return frame


@pytest.fixture
def document_frame():
    """1000x1400 photo of an 800x1100 page"""
    return draw_document()


@pytest.fixture
def draw():
    """Factory for custom synthetic photos"""
    return draw_document


@pytest.fixture
def blank_frame():
    return np.full((FRAME_SIZE[1], FRAME_SIZE[0], 3), 30, dtype=np.uint8)


@pytest.fixture
def page_corners():
    return np.array(PAGE_CORNERS, dtype=np.float64)
