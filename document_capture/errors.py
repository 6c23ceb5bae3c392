"""
Error types raised by the document capture pipeline.

"Nothing found" outcomes (no quadrilateral, not yet stable) are never
errors; they are returned as ``None`` / ``False``.
"""


class ScannerError(Exception):
    """Base exception for pipeline errors"""

    error_code = "SCANNER_ERROR"

    def __init__(self, message, details=None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self):
        """Convert error to JSON-serializable dict"""
        return {
            "success": False,
            "message": self.message,
            "error_code": self.error_code,
            "details": self.details,
        }


class InvalidFrameError(ScannerError, ValueError):
    """Frame is missing, empty or has an unsupported layout"""

    error_code = "INVALID_FRAME"


class FrameTooSmallError(InvalidFrameError):
    """Frame is below the minimum processable size"""

    error_code = "FRAME_TOO_SMALL"

    def __init__(self, width, height, min_side):
        super().__init__(
            message=f"Frame {width}x{height} px is smaller than the {min_side} px minimum",
            details={"width": width, "height": height, "min_side": min_side},
        )


class InvalidQuadrilateralError(ScannerError, ValueError):
    """Corner set is not a usable convex quadrilateral"""

    error_code = "INVALID_QUADRILATERAL"


class BackendError(ScannerError):
    """The image-processing library rejected an operation"""

    error_code = "BACKEND_FAILED"


class EdgeExtractionError(BackendError):
    """
    The vision backend failed while building edges or contours for a frame.

    Recoverable: the pipeline keeps no state from the failed frame.
    """

    error_code = "EDGE_EXTRACTION_FAILED"


class SessionClosedError(ScannerError, RuntimeError):
    """Scan session used after it was closed"""

    error_code = "SESSION_CLOSED"

    def __init__(self):
        super().__init__(message="Scan session is closed. Start a new session first.")


class InvalidEnhancementError(ScannerError, ValueError):
    """Unknown post-capture enhancement mode"""

    error_code = "INVALID_ENHANCEMENT"
