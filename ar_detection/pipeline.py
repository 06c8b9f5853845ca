"""
FramePipeline — the single public API for classifying camera frames.

Public contract:
    await FramePipeline.classify(frame: Frame) -> list[DetectedObject]

One call drives one detection cycle:
    frame → BGR conversion → upright rotation → detector → coordinate mapping

Constraints:
    - At most one classify call is in flight per pipeline. A second call
      either raises Busy ('reject') or waits its turn in FIFO order
      ('queue'). Frames are never dropped silently.
    - Cancelling a classify task frees the slot for the next frame.
    - No retries and no partial results. A failed call raises exactly one
      DetectionError subclass.

Non-goals:
    - No frame acquisition, rendering, or output writing.
    - No tracking or temporal state between frames.
"""

import asyncio
import logging
from typing import List, Optional

from ar_detection.config import AppConfig, load_config
from ar_detection.detection import DetectedObject
from ar_detection.detector import Detector
from ar_detection.errors import Busy, DetectionError, DetectionServiceError
from ar_detection.frame import Frame
from ar_detection.postprocessor import postprocess
from ar_detection.preprocessor import convert_to_bgr, rotate_upright

logger = logging.getLogger(__name__)

ADMISSION_REJECT = "reject"
ADMISSION_QUEUE = "queue"


class FramePipeline:
    """Coordinates frames, a detector and coordinate normalization.

    Usage:
        pipeline = FramePipeline(detector)
        objects = await pipeline.classify(frame)
        ...
        pipeline.close()
    """

    def __init__(
        self,
        detector: Detector,
        config: Optional[AppConfig] = None,
        admission: Optional[str] = None,
    ) -> None:
        """
        Args:
            detector: Backend used for every frame.
            config: Application configuration. If None, safe defaults
                    are used.
            admission: Overrides config.pipeline.admission.

        Raises:
            ValueError: If the admission policy is unknown.
        """
        if config is None:
            config = load_config()

        self._detector = detector
        self._admission = admission or config.pipeline.admission
        if self._admission not in (ADMISSION_REJECT, ADMISSION_QUEUE):
            raise ValueError(
                f"Invalid admission policy '{self._admission}'. "
                f"Must be '{ADMISSION_REJECT}' or '{ADMISSION_QUEUE}'."
            )
        self._lock = asyncio.Lock()

        logger.info(
            "FramePipeline initialized (detector=%s, admission=%s)",
            detector.name,
            self._admission,
        )

    @property
    def busy(self) -> bool:
        """True while a classify call holds the pipeline."""
        return self._lock.locked()

    @property
    def detector(self) -> Detector:
        return self._detector

    async def classify(self, frame: Frame) -> List[DetectedObject]:
        """Detect objects in one frame.

        Args:
            frame: Captured frame with rotation metadata.

        Returns:
            DetectedObjects in detector order, positioned in the frame's
            display orientation.

        Raises:
            Busy: Admission is 'reject' and another call is in flight.
            ConfigurationError: The detector is disabled.
            InvalidArgument: The frame or a detector polygon is unusable.
            DetectionServiceError: The detector call failed.
        """
        if self._admission == ADMISSION_REJECT and self._lock.locked():
            raise Busy(f"Frame {frame.frame_id} rejected: a classify call is in flight.")

        async with self._lock:
            return await self._run(frame)

    async def _run(self, frame: Frame) -> List[DetectedObject]:
        image = convert_to_bgr(frame)
        upright = rotate_upright(image, frame.rotation)
        rotated_height, rotated_width = upright.shape[:2]

        try:
            raw = await self._detector.detect(upright, frame.rotation)
        except DetectionError:
            raise
        except Exception as e:
            raise DetectionServiceError(
                f"Detector '{self._detector.name}' failed: {e}"
            ) from e

        objects = postprocess(
            raw,
            rotated_width=rotated_width,
            rotated_height=rotated_height,
            rotation=frame.rotation,
        )
        logger.debug("Frame %d: %d objects", frame.frame_id, len(objects))
        return objects

    def close(self) -> None:
        """Release the detector's resources."""
        self._detector.close()
