"""
Frame source for the classification pipeline.

Responsibility:
    Abstract away frame acquisition from images, video files, image
    directories, and webcam streams. Provides a uniform iterator
    interface yielding Frame objects stamped with the configured
    rotation.

Non-goals:
    - No detection, drawing, or output writing.
    - No infinite retry on bad sources.
    - No implicit fallback between source types.

Robustness:
    - Validates the source at initialization time.
    - Logs and skips unreadable frames (never crashes the pipeline).
    - Releases resources on cleanup.
"""

import logging
import os
from pathlib import Path
from typing import Iterator, Optional, Union

import cv2
import numpy as np

from ar_detection.errors import CapabilityUnavailable
from ar_detection.frame import Frame

logger = logging.getLogger(__name__)

# Image extensions recognized by this handler
_IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png", ".bmp", ".tiff", ".tif", ".webp"}

# Video extensions recognized by this handler
_VIDEO_EXTENSIONS = {".mp4", ".avi", ".mov", ".mkv", ".wmv", ".flv"}


class InputHandler:
    """Uniform Frame iterator for images, videos, and webcam streams.

    The source type is auto-detected at initialization:
        - Integer or digit string  → webcam device index
        - File with image extension → single image
        - File with video extension → video file
        - Directory path → all images in directory (sorted)

    Usage:
        handler = InputHandler(source="path/to/video.mp4", rotation=90)
        for frame in handler:
            # process frame
        handler.release()

    Invalid frames are logged and skipped. The iterator never raises
    on a single bad frame.
    """

    def __init__(
        self,
        source: Union[str, int],
        resize_width: Optional[int] = None,
        rotation: int = 0,
    ) -> None:
        """Initialize the input handler and validate the source.

        Args:
            source: Input source — file path, directory path, video path,
                    or integer device index (or digit string like "0").
            resize_width: Optional width to downscale frames. Aspect ratio
                          is preserved. None means no resizing.
            rotation: Clockwise rotation stamped on every frame.

        Raises:
            FileNotFoundError: If a file/directory source does not exist.
            ValueError: If the source type cannot be determined.
            CapabilityUnavailable: If a video/webcam source cannot be opened.
        """
        self._resize_width = resize_width
        self._rotation = rotation
        self._cap: Optional[cv2.VideoCapture] = None

        source_str = str(source).strip()

        if source_str.isdigit():
            self._mode = "webcam"
            self._open_video_capture(int(source_str))
        elif os.path.isfile(source_str):
            ext = Path(source_str).suffix.lower()
            if ext in _IMAGE_EXTENSIONS:
                self._mode = "image"
                self._image_paths = [source_str]
            elif ext in _VIDEO_EXTENSIONS:
                self._mode = "video"
                self._open_video_capture(source_str)
            else:
                raise ValueError(
                    f"Unrecognized file extension: '{ext}' for source '{source_str}'. "
                    f"Supported images: {_IMAGE_EXTENSIONS}. "
                    f"Supported videos: {_VIDEO_EXTENSIONS}."
                )
        elif os.path.isdir(source_str):
            self._mode = "directory"
            self._image_paths = sorted(
                str(p)
                for p in Path(source_str).iterdir()
                if p.suffix.lower() in _IMAGE_EXTENSIONS
            )
            if not self._image_paths:
                raise ValueError(
                    f"No image files found in directory: '{source_str}'. "
                    f"Supported extensions: {_IMAGE_EXTENSIONS}."
                )
            logger.info("Found %d images in directory: %s", len(self._image_paths), source_str)
        else:
            raise FileNotFoundError(
                f"Input source not found: '{source_str}'. "
                f"Provide a valid file path, directory, or device index."
            )

        logger.info(
            "InputHandler initialized: mode=%s, source=%s, rotation=%d",
            self._mode, source_str, rotation,
        )

    @property
    def mode(self) -> str:
        return self._mode

    def _open_video_capture(self, source: Union[str, int]) -> None:
        """Open a VideoCapture and validate it.

        Raises:
            CapabilityUnavailable: If the source cannot be opened.
        """
        self._cap = cv2.VideoCapture(source)
        if not self._cap.isOpened():
            self._cap.release()
            self._cap = None
            source_desc = (
                f"webcam device {source}" if isinstance(source, int)
                else f"video file '{source}'"
            )
            raise CapabilityUnavailable(
                f"Failed to open {source_desc}. "
                f"Ensure the source exists and camera access is granted."
            )

    def __iter__(self) -> Iterator[Frame]:
        """Iterate over frames from the configured source.

        Yields:
            Frame objects with 0-based frame_id, BGR encoding and the
            configured rotation.

        Invalid frames are logged and skipped (never raises mid-iteration).
        """
        if self._mode in ("image", "directory"):
            yield from self._iterate_images()
        elif self._mode in ("video", "webcam"):
            yield from self._iterate_video()

    def _iterate_images(self) -> Iterator[Frame]:
        """Yield frames from a list of image file paths."""
        for idx, path in enumerate(self._image_paths):
            image = cv2.imread(path)
            if image is None:
                logger.warning(
                    "Skipping unreadable image (frame_id=%d): %s", idx, path
                )
                continue

            yield self._make_frame(idx, image)

    def _iterate_video(self) -> Iterator[Frame]:
        """Yield frames from a video file or webcam stream."""
        frame_id = 0
        consecutive_failures = 0
        max_consecutive_failures = 30  # Safety valve for dead streams

        while self._cap is not None:
            ret, image = self._cap.read()

            if not ret or image is None:
                consecutive_failures += 1
                if self._mode == "video":
                    logger.info("End of video reached at frame %d.", frame_id)
                    break
                if consecutive_failures >= max_consecutive_failures:
                    logger.error(
                        "Webcam produced %d consecutive failed reads. "
                        "Stopping to avoid infinite loop.",
                        max_consecutive_failures,
                    )
                    break
                logger.warning(
                    "Failed to read frame %d from webcam, skipping.", frame_id
                )
                frame_id += 1
                continue

            consecutive_failures = 0
            yield self._make_frame(frame_id, image)
            frame_id += 1

    def _make_frame(self, frame_id: int, image: np.ndarray) -> Frame:
        return Frame(
            image=self._maybe_resize(image),
            rotation=self._rotation,
            encoding="bgr",
            frame_id=frame_id,
        )

    def _maybe_resize(self, image: np.ndarray) -> np.ndarray:
        """Resize image if resize_width is configured, preserving aspect ratio."""
        if self._resize_width is None:
            return image

        h, w = image.shape[:2]
        if w <= self._resize_width:
            return image

        scale = self._resize_width / w
        new_w = self._resize_width
        new_h = int(h * scale)
        return cv2.resize(image, (new_w, new_h), interpolation=cv2.INTER_AREA)

    def release(self) -> None:
        """Release any held resources (video capture handles)."""
        if self._cap is not None:
            self._cap.release()
            self._cap = None
            logger.debug("VideoCapture released.")

    def __del__(self) -> None:
        """Safety net: release resources if not explicitly released."""
        self.release()
