"""
Detection data transfer objects.

This module defines the value types that cross the detector boundary and
the final output type returned by FramePipeline.classify(). They are
frozen, serializable containers with no behavior beyond data access.

Non-goals:
    - No rendering logic.
    - No file I/O.
    - No coordinate transformation methods (that belongs in coordinates).
"""

from dataclasses import dataclass
from typing import Tuple


@dataclass(frozen=True, slots=True)
class NormalizedVertex:
    """A point expressed as a fraction of image width and height.

    Values are nominally in [0.0, 1.0] but are not validated: a
    misbehaving detector may report points outside the image.
    """

    x: float
    y: float


@dataclass(frozen=True, slots=True)
class RawDetection:
    """One result as reported by a detector, before coordinate mapping.

    Attributes:
        score: Detector confidence in [0.0, 1.0].
        label: Human-readable class name.
        bounding_polygon: Vertices outlining the object, normalized to the
                          dimensions of the image the detector was given.
    """

    score: float
    label: str
    bounding_polygon: Tuple[NormalizedVertex, ...]


@dataclass(frozen=True, slots=True)
class DetectedObject:
    """A detected object located at a single pixel position.

    Attributes:
        confidence: Detection confidence score in [0.0, 1.0].
        label: Human-readable class name.
        position: (x, y) in absolute pixels, in the display orientation
                  of the originating frame.
    """

    confidence: float
    label: str
    position: Tuple[int, int]

    @property
    def x(self) -> int:
        return self.position[0]

    @property
    def y(self) -> int:
        return self.position[1]

    def to_dict(self) -> dict:
        """Return a plain dict suitable for JSON serialization."""
        return {
            "label": self.label,
            "confidence": round(self.confidence, 4),
            "x": self.x,
            "y": self.y,
        }
