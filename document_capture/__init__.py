"""
Document Capture Module

Finds the outline of a document in camera frames, waits until the outline
holds still and produces a flat, rectangular image of the page.
"""

from .backend import OpenCVBackend, VisionBackend
from .config import PipelineConfig
from .detector import QuadCandidate, QuadrilateralDetector
from .edge_map import EdgeMapBuilder
from .enhancer import EnhancementMode, ImageEnhancer
from .errors import (
    BackendError,
    EdgeExtractionError,
    FrameTooSmallError,
    InvalidEnhancementError,
    InvalidFrameError,
    InvalidQuadrilateralError,
    ScannerError,
    SessionClosedError,
)
from .geometry import Point2D, Quadrilateral
from .rectifier import PerspectiveRectifier
from .session import FrameResult, FrameStatus, ScanSession
from .stability import StabilityTracker, TrackerState
from .visualizer import QuadOverlay

__all__ = [
    'EdgeMapBuilder',
    'QuadrilateralDetector',
    'QuadCandidate',
    'StabilityTracker',
    'TrackerState',
    'PerspectiveRectifier',
    'ImageEnhancer',
    'EnhancementMode',
    'ScanSession',
    'FrameResult',
    'FrameStatus',
    'PipelineConfig',
    'Point2D',
    'Quadrilateral',
    'QuadOverlay',
    'VisionBackend',
    'OpenCVBackend',
    'ScannerError',
    'InvalidFrameError',
    'FrameTooSmallError',
    'InvalidQuadrilateralError',
    'InvalidEnhancementError',
    'BackendError',
    'EdgeExtractionError',
    'SessionClosedError',
]
