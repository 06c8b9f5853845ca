"""
Tests for the preprocessing module and the Frame value type.
"""

import cv2
import numpy as np
import pytest

from ar_detection.config import ModelConfig
from ar_detection.errors import InvalidArgument
from ar_detection.frame import Frame
from ar_detection.preprocessor import (
    convert_to_bgr,
    encode_jpeg,
    make_blob,
    rotate_upright,
)


def test_frame_rejects_invalid_rotation():
    """Test that frames only accept the four right-angle rotations."""
    with pytest.raises(InvalidArgument):
        Frame(image=np.zeros((4, 4, 3), dtype=np.uint8), rotation=45)


def test_frame_rejects_unknown_encoding():
    """Test that frames only accept known pixel encodings."""
    with pytest.raises(InvalidArgument):
        Frame(image=np.zeros((4, 4, 3), dtype=np.uint8), encoding="yuv444")


def test_convert_bgr_returns_copy():
    """Test that BGR conversion never aliases the caller's buffer."""
    image = np.zeros((10, 20, 3), dtype=np.uint8)
    frame = Frame(image=image)

    converted = convert_to_bgr(frame)
    converted[:] = 255

    assert image.max() == 0


def test_convert_rgb_swaps_channels():
    """Test RGB to BGR conversion."""
    image = np.zeros((2, 2, 3), dtype=np.uint8)
    image[:, :, 0] = 255  # red in RGB
    frame = Frame(image=image, encoding="rgb")

    converted = convert_to_bgr(frame)

    assert converted[0, 0, 2] == 255
    assert converted[0, 0, 0] == 0


def test_convert_nv21_shape():
    """Test that an NV21 buffer decodes to a full-size BGR image."""
    height, width = 8, 12
    nv21 = np.full((height * 3 // 2, width), 128, dtype=np.uint8)
    frame = Frame(image=nv21, encoding="nv21")

    converted = convert_to_bgr(frame)

    assert frame.width == width
    assert frame.height == height
    assert converted.shape == (height, width, 3)


def test_convert_empty_frame():
    """Test that conversion rejects empty frames."""
    with pytest.raises(InvalidArgument):
        convert_to_bgr(Frame(image=np.array([], dtype=np.uint8)))


@pytest.mark.parametrize("rotation,expected_shape", [
    (0, (100, 200, 3)),
    (90, (200, 100, 3)),
    (180, (100, 200, 3)),
    (270, (200, 100, 3)),
])
def test_rotate_upright_dimensions(rotation, expected_shape):
    """Test that quarter turns swap width and height."""
    image = np.zeros((100, 200, 3), dtype=np.uint8)
    assert rotate_upright(image, rotation).shape == expected_shape


def test_rotate_upright_is_clockwise():
    """Test that a 90 degree rotation turns the image clockwise."""
    image = np.zeros((2, 3, 3), dtype=np.uint8)
    image[0, 0] = 255  # top-left

    rotated = rotate_upright(image, 90)

    # Top-left moves to top-right after a clockwise quarter turn.
    assert rotated[0, rotated.shape[1] - 1, 0] == 255


def test_rotate_upright_invalid():
    """Test that unsupported rotations are rejected."""
    with pytest.raises(InvalidArgument):
        rotate_upright(np.zeros((2, 2, 3), dtype=np.uint8), 45)


def test_encode_jpeg():
    """Test that encoding produces decodable JPEG bytes."""
    image = np.zeros((32, 48, 3), dtype=np.uint8)
    data = encode_jpeg(image, quality=80)

    assert data[:2] == b"\xff\xd8"
    decoded = cv2.imdecode(np.frombuffer(data, dtype=np.uint8), cv2.IMREAD_COLOR)
    assert decoded.shape == (32, 48, 3)


def test_make_blob_shape():
    """Test blob creation for the local detector."""
    config = ModelConfig(input_size=(300, 300))
    blob = make_blob(np.zeros((480, 640, 3), dtype=np.uint8), config)

    assert blob.shape == (1, 3, 300, 300)
    assert blob.dtype == np.float32
