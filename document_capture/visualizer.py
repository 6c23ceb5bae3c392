"""
Overlay drawing for detected document outlines
"""

from typing import Tuple

import cv2
import numpy as np

from .geometry import CORNER_NAMES, Quadrilateral


class QuadOverlay:
    """
    Draws a detected outline on a copy of the frame.

    The border follows the quadrilateral, the enclosed area gets a
    translucent fill and every corner is marked and optionally labelled.
    """

    def __init__(
        self,
        border_color: Tuple[int, int, int] = (255, 100, 0),  # Blue in BGR
        border_thickness: int = 3,
        fill_color: Tuple[int, int, int] = (255, 200, 100),  # Light blue in BGR
        fill_alpha: float = 0.3,
        stable_color: Tuple[int, int, int] = (0, 200, 0)  # Green in BGR
    ):
        """
        Initialize the overlay.

        Args:
            border_color: Outline color in BGR format
            border_thickness: Outline thickness in pixels
            fill_color: Translucent fill color in BGR format
            fill_alpha: Fill opacity (0.0 = invisible, 1.0 = opaque)
            stable_color: Outline color used once the outline is stable
        """
        if not 0.0 <= fill_alpha <= 1.0:
            raise ValueError(f"fill_alpha must be in [0, 1], got {fill_alpha}")
        self.border_color = border_color
        self.border_thickness = border_thickness
        self.fill_color = fill_color
        self.fill_alpha = fill_alpha
        self.stable_color = stable_color

    def draw(
        self,
        image: np.ndarray,
        quad: Quadrilateral,
        stable: bool = False,
        label_corners: bool = True
    ) -> np.ndarray:
        """
        Draw ``quad`` over ``image``.

        Args:
            image: BGR frame (not modified)
            quad: Detected outline, None draws nothing
            stable: Use the stable outline color
            label_corners: Write the corner names next to each corner

        Returns:
            New annotated image
        """
        result = image.copy()
        if quad is None:
            return result

        corners = np.round(quad.as_array()).astype(np.int32)
        color = self.stable_color if stable else self.border_color

        if self.fill_alpha > 0:
            overlay = result.copy()
            cv2.fillPoly(overlay, [corners], self.fill_color)
            result = cv2.addWeighted(overlay, self.fill_alpha, result, 1 - self.fill_alpha, 0)

        cv2.polylines(result, [corners], isClosed=True, color=color,
                      thickness=self.border_thickness, lineType=cv2.LINE_AA)

        for name, (x, y) in zip(CORNER_NAMES, corners):
            cv2.circle(result, (int(x), int(y)), radius=5, color=color, thickness=-1)
            if label_corners:
                cv2.putText(result, name, (int(x) + 8, int(y) - 8),
                            cv2.FONT_HERSHEY_SIMPLEX, 0.5, color, 1, cv2.LINE_AA)

        return result
