"""
Visualization for detected objects.

Responsibility:
    Draw a marker and an optional "label confidence" caption at each
    detected object's position. This is a pure rendering module — it
    produces an annotated copy of the image and performs no I/O.

Non-goals:
    - No file writing, window management, or display logic.
    - No detection or model logic.
"""

from typing import List

import cv2
import numpy as np

from ar_detection.config import VisualizationConfig
from ar_detection.detection import DetectedObject

# Hard-coded rendering constants (cosmetic internals, not user-facing)
_FONT = cv2.FONT_HERSHEY_SIMPLEX
_FONT_SCALE = 0.5
_FONT_THICKNESS = 1
_LABEL_PADDING = 4


def draw_detections(
    image: np.ndarray,
    objects: List[DetectedObject],
    config: VisualizationConfig,
) -> np.ndarray:
    """Draw object markers and labels onto an image.

    Positions are expected in the image's own orientation. Markers that
    fall outside the image are clipped by OpenCV.

    Args:
        image: Input BGR image (not modified — a copy is returned).
        objects: DetectedObjects to render.
        config: Visualization parameters.

    Returns:
        A new BGR numpy array with markers drawn.
    """
    annotated = image.copy()

    for obj in objects:
        cv2.circle(
            annotated,
            obj.position,
            config.marker_radius,
            color=config.marker_color,
            thickness=config.thickness,
        )

        if config.show_label:
            caption = f"{obj.label} {obj.confidence:.2f}"
            (text_w, text_h), _ = cv2.getTextSize(
                caption, _FONT, _FONT_SCALE, _FONT_THICKNESS
            )

            # Caption above the marker, or below if too close to the top
            text_x = obj.x - text_w // 2
            text_y = obj.y - config.marker_radius - _LABEL_PADDING
            if text_y - text_h - _LABEL_PADDING < 0:
                text_y = obj.y + config.marker_radius + text_h + _LABEL_PADDING

            cv2.rectangle(
                annotated,
                (text_x - _LABEL_PADDING // 2, text_y - text_h - _LABEL_PADDING),
                (text_x + text_w + _LABEL_PADDING // 2, text_y + _LABEL_PADDING),
                color=config.marker_color,
                thickness=cv2.FILLED,
            )

            cv2.putText(
                annotated,
                caption,
                (text_x, text_y),
                _FONT,
                _FONT_SCALE,
                (0, 0, 0),
                _FONT_THICKNESS,
                cv2.LINE_AA,
            )

    return annotated


def show_frame(
    image: np.ndarray,
    objects: List[DetectedObject],
    config: VisualizationConfig,
) -> int:
    """Show annotated image in a window and return key press."""
    annotated = draw_detections(image, objects, config)
    cv2.imshow("AR Detection", annotated)
    return cv2.waitKey(1) & 0xFF
