"""
Preprocessing for the frame classification pipeline.

Responsibility:
    Turn a captured Frame into the image a detector consumes: convert the
    pixel encoding to BGR, rotate it upright, and encode or blob it for
    the specific detector backend.

Non-goals:
    - No frame acquisition or I/O.
    - No inference or coordinate mapping.

Invariant:
    The caller's frame buffer is never modified. Every function returns a
    new array.
"""

import numpy as np
import cv2

from ar_detection.config import ModelConfig
from ar_detection.errors import DetectionServiceError, InvalidArgument
from ar_detection.frame import Frame

_ROTATE_FLAGS = {
    90: cv2.ROTATE_90_CLOCKWISE,
    180: cv2.ROTATE_180,
    270: cv2.ROTATE_90_COUNTERCLOCKWISE,
}


def convert_to_bgr(frame: Frame) -> np.ndarray:
    """Convert a frame's pixel buffer into a BGR image.

    Args:
        frame: Captured frame in 'bgr', 'rgb' or 'nv21' encoding.

    Returns:
        A new (H, W, 3) uint8 BGR array.

    Raises:
        InvalidArgument: If the pixel buffer is empty.
    """
    image = frame.image
    if image is None or image.size == 0:
        raise InvalidArgument(
            "Cannot convert an empty frame. "
            "Ensure the frame source is providing valid frames."
        )

    if frame.encoding == "nv21":
        return cv2.cvtColor(image, cv2.COLOR_YUV2BGR_NV21)
    if frame.encoding == "rgb":
        return cv2.cvtColor(image, cv2.COLOR_RGB2BGR)
    return image.copy()


def rotate_upright(image: np.ndarray, rotation: int) -> np.ndarray:
    """Rotate an image clockwise by ``rotation`` degrees.

    Detection models perform best on upright imagery, so the sensor image
    is turned before it is submitted.

    Raises:
        InvalidArgument: If rotation is not 0, 90, 180 or 270.
    """
    if rotation == 0:
        return image
    flag = _ROTATE_FLAGS.get(rotation)
    if flag is None:
        raise InvalidArgument(f"Invalid rotation {rotation!r}. Must be 0, 90, 180 or 270.")
    return cv2.rotate(image, flag)


def encode_jpeg(image: np.ndarray, quality: int = 90) -> bytes:
    """Encode a BGR image as JPEG bytes for upload.

    Raises:
        DetectionServiceError: If OpenCV fails to encode the image.
    """
    ok, buffer = cv2.imencode(".jpg", image, [cv2.IMWRITE_JPEG_QUALITY, int(quality)])
    if not ok:
        raise DetectionServiceError("Failed to JPEG-encode frame for upload.")
    return buffer.tobytes()


def make_blob(image: np.ndarray, config: ModelConfig) -> np.ndarray:
    """Convert a BGR image into a 4D DNN input blob.

    Args:
        image: Upright BGR image (H, W, 3).
        config: ModelConfig providing input_size, scale_factor, mean_values
                and swap_rb.

    Returns:
        A 4D numpy array of shape (1, 3, H, W) with dtype float32,
        ready to be passed to net.setInput().
    """
    return cv2.dnn.blobFromImage(
        image=image,
        scalefactor=config.scale_factor,
        size=config.input_size,
        mean=config.mean_values,
        swapRB=config.swap_rb,
        crop=False,
    )
