"""
Postprocessing for the frame classification pipeline.

Responsibility:
    Map raw detector output into DetectedObjects located in the display
    orientation of the originating frame.

    For each raw detection:
        1. centroid of the bounding polygon (normalized),
        2. absolute pixels in the rotated (upright) image that the
           detector saw,
        3. rotation by the frame's original rotation over the same
           rotated extent, which lands the point in the un-rotated frame.

Non-goals:
    - No drawing, saving, or display logic.
    - No filtering, clamping or re-sorting. Detector order is preserved.
"""

from typing import List, Sequence

from ar_detection.coordinates import (
    calculate_average,
    rotate_coordinates,
    to_absolute_coordinates,
)
from ar_detection.detection import DetectedObject, RawDetection


def postprocess(
    raw_detections: Sequence[RawDetection],
    rotated_width: int,
    rotated_height: int,
    rotation: int,
) -> List[DetectedObject]:
    """Convert raw detections into positioned DetectedObjects.

    Args:
        raw_detections: Detector output, normalized to the rotated image.
        rotated_width: Width of the image submitted to the detector.
        rotated_height: Height of the image submitted to the detector.
        rotation: The frame's rotation in degrees.

    Returns:
        One DetectedObject per raw detection, in the same order.

    Raises:
        InvalidArgument: If a detection has an empty bounding polygon or
                         rotation is unsupported.
    """
    objects: List[DetectedObject] = []

    for raw in raw_detections:
        center = calculate_average(raw.bounding_polygon)
        absolute = to_absolute_coordinates(center, rotated_width, rotated_height)
        position = rotate_coordinates(absolute, rotated_width, rotated_height, rotation)
        objects.append(DetectedObject(
            confidence=float(raw.score),
            label=raw.label,
            position=position,
        ))

    return objects
