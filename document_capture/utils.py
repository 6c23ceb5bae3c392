"""
Helpers for the command line and HTTP front ends
"""

import logging
from pathlib import Path
from typing import Iterator, Optional, Tuple, Union

import cv2
import numpy as np

from .errors import InvalidFrameError


def setup_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )


def load_image(path: Union[str, Path]) -> np.ndarray:
    """
    Read an image file as a BGR frame.

    Raises:
        InvalidFrameError: file is missing or not a readable image
    """
    image = cv2.imread(str(path), cv2.IMREAD_COLOR)
    if image is None:
        raise InvalidFrameError(f"Failed to load image: {path}", details={"path": str(path)})
    return image


def decode_image(data: bytes) -> np.ndarray:
    """
    Decode an encoded image (PNG, JPEG, ...) held in memory.

    Raises:
        InvalidFrameError: bytes are empty or not a decodable image
    """
    if not data:
        raise InvalidFrameError("Image data is empty")
    buffer = np.frombuffer(data, dtype=np.uint8)
    image = cv2.imdecode(buffer, cv2.IMREAD_COLOR)
    if image is None:
        raise InvalidFrameError("Image data could not be decoded")
    return image


def encode_png(image: np.ndarray) -> bytes:
    ok, buffer = cv2.imencode(".png", image)
    if not ok:
        raise InvalidFrameError("Failed to encode image as PNG")
    return buffer.tobytes()


def iter_video_frames(video_path: Union[str, Path], max_frames: Optional[int] = None) -> Iterator[Tuple[float, np.ndarray]]:
    """
    Yield (timestamp_s, frame) pairs from a video file.

    Raises:
        RuntimeError: the video cannot be opened
    """
    cap = cv2.VideoCapture(str(video_path))
    if not cap.isOpened():
        raise RuntimeError(f"Could not open video: {video_path}")

    fps = cap.get(cv2.CAP_PROP_FPS) or 25.0

    idx = 0
    try:
        while max_frames is None or idx < max_frames:
            ok, frame = cap.read()
            if not ok:
                break
            yield idx / fps, frame
            idx += 1
    finally:
        cap.release()
