"""
Frame value type.

A Frame is the unit of work handed to the pipeline: one captured image
plus the metadata needed to interpret it. It is immutable once built and
is never modified by the pipeline (conversions always produce copies).
"""

from dataclasses import dataclass

import numpy as np

from ar_detection.errors import InvalidArgument

VALID_ROTATIONS = (0, 90, 180, 270)
VALID_ENCODINGS = ("bgr", "rgb", "nv21")


@dataclass(frozen=True, eq=False)
class Frame:
    """A captured camera image and its orientation metadata.

    Attributes:
        image: Pixel buffer. (H, W, 3) uint8 for 'bgr' and 'rgb';
               (H * 3 / 2, W) uint8 for 'nv21' (YUV 4:2:0 semi-planar,
               as delivered by most mobile camera stacks).
        rotation: Clockwise degrees needed to turn the sensor image
                  upright for display. One of 0, 90, 180, 270.
        encoding: Pixel encoding of ``image``.
        frame_id: Monotonic index assigned by the frame source.
    """

    image: np.ndarray
    rotation: int = 0
    encoding: str = "bgr"
    frame_id: int = 0

    def __post_init__(self) -> None:
        if self.rotation not in VALID_ROTATIONS:
            raise InvalidArgument(
                f"Invalid rotation {self.rotation}. "
                f"Must be one of {VALID_ROTATIONS}."
            )
        if self.encoding not in VALID_ENCODINGS:
            raise InvalidArgument(
                f"Invalid encoding '{self.encoding}'. "
                f"Must be one of {VALID_ENCODINGS}."
            )

    @property
    def width(self) -> int:
        """Width of the decoded image in pixels."""
        return int(self.image.shape[1])

    @property
    def height(self) -> int:
        """Height of the decoded image in pixels."""
        if self.encoding == "nv21":
            # Luma plane is the first two thirds of the rows.
            return int(self.image.shape[0] * 2 // 3)
        return int(self.image.shape[0])
