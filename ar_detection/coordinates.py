"""
Coordinate transforms for detection results.

Responsibility:
    Map normalized detector coordinates to absolute pixels and rotate
    pixel coordinates between image orientations.

All functions are pure: no I/O, no shared state, same input → same output.

Non-goals:
    - No clamping. Out-of-range vertices produce out-of-image pixels and
      callers decide what to do with them.
"""

import math
from typing import Sequence, Tuple

from ar_detection.detection import NormalizedVertex
from ar_detection.errors import InvalidArgument


def to_absolute_coordinates(
    vertex: NormalizedVertex,
    image_width: int,
    image_height: int,
) -> Tuple[int, int]:
    """Convert a normalized vertex to an absolute (x, y) pixel pair."""
    return (
        math.floor(vertex.x * image_width),
        math.floor(vertex.y * image_height),
    )


def rotate_coordinates(
    point: Tuple[int, int],
    image_width: int,
    image_height: int,
    rotation: int,
) -> Tuple[int, int]:
    """Rotate a pixel coordinate pair according to ``rotation``.

    Args:
        point: (x, y) in absolute pixels.
        image_width: Width used as the horizontal extent of the rotation.
        image_height: Height used as the vertical extent of the rotation.
        rotation: Degrees, one of 0, 90, 180, 270.

    Returns:
        The rotated (x, y) pair.

    Raises:
        InvalidArgument: If rotation is not one of the supported values.
    """
    x, y = point
    if rotation == 0:
        return x, y
    if rotation == 180:
        return image_width - x, image_height - y
    if rotation == 90:
        return y, image_width - x
    if rotation == 270:
        return image_height - y, x
    raise InvalidArgument(f"Invalid rotation {rotation!r}. Must be 0, 90, 180 or 270.")


def calculate_average(vertices: Sequence[NormalizedVertex]) -> NormalizedVertex:
    """Return the mean point of a bounding polygon.

    Raises:
        InvalidArgument: If ``vertices`` is empty.
    """
    size = len(vertices)
    if size == 0:
        raise InvalidArgument("Cannot average an empty bounding polygon.")

    average_x = 0.0
    average_y = 0.0
    for vertex in vertices:
        average_x += vertex.x / size
        average_y += vertex.y / size
    return NormalizedVertex(x=average_x, y=average_y)
