"""
Detector capability — the pluggable backend behind the frame pipeline.

Public contract:
    await Detector.detect(image: np.ndarray, rotation: int) -> list[RawDetection]

    ``image`` is the upright BGR image prepared by the pipeline and
    ``rotation`` the rotation that was applied to make it upright. Results
    are normalized to ``image``'s dimensions.

Variants:
    - DisabledDetector: chosen when a backend could not be configured.
      Always fails fast with ConfigurationError.
    - NoOpDetector: reports nothing. Useful for dry runs.
    - LocalDnnDetector: SSD model through OpenCV DNN.
    - CloudVisionDetector (cloud_vision module): remote object localization.

Constraints:
    - A detector instance is not assumed safe for concurrent use. The
      pipeline admits one call at a time.
    - Blocking work (inference, HTTP) runs in a worker thread so the event
      loop is never blocked.
"""

import abc
import asyncio
import logging
from typing import List, Optional, Sequence

import cv2
import numpy as np

from ar_detection.config import AppConfig
from ar_detection.detection import NormalizedVertex, RawDetection
from ar_detection.errors import ConfigurationError, DetectionServiceError
from ar_detection.model_loader import load_labels, load_model
from ar_detection.preprocessor import make_blob

logger = logging.getLogger(__name__)


class Detector(abc.ABC):
    """Base class for every detector backend."""

    name: str = "detector"

    @abc.abstractmethod
    async def detect(self, image: np.ndarray, rotation: int) -> List[RawDetection]:
        """Detect objects in an upright BGR image."""

    def close(self) -> None:
        """Release backend resources. Safe to call more than once."""


class DisabledDetector(Detector):
    """Stand-in for a backend that could not be configured."""

    name = "disabled"

    def __init__(self, reason: str) -> None:
        self.reason = reason

    async def detect(self, image: np.ndarray, rotation: int) -> List[RawDetection]:
        raise ConfigurationError(f"Detector disabled: {self.reason}")


class NoOpDetector(Detector):
    """Detector that never finds anything."""

    name = "noop"

    async def detect(self, image: np.ndarray, rotation: int) -> List[RawDetection]:
        return []


def parse_ssd_output(
    network_output: np.ndarray,
    labels: Sequence[str],
    confidence_threshold: float,
) -> List[RawDetection]:
    """Parse raw SSD output into RawDetections.

    Each row of the (1, 1, N, 7) tensor is
    [batch_id, class_id, confidence, x1, y1, x2, y2] with coordinates
    normalized to [0, 1]. The box becomes a four-vertex polygon
    (clockwise from the top-left corner). Network order is preserved.
    """
    detections: List[RawDetection] = []
    raw = network_output[0, 0]  # Shape: (N, 7)

    for i in range(raw.shape[0]):
        confidence = float(raw[i, 2])
        if confidence < confidence_threshold:
            continue

        class_id = int(raw[i, 1])
        if 0 <= class_id < len(labels):
            label = labels[class_id]
        else:
            label = f"class_{class_id}"

        x1, y1, x2, y2 = (float(v) for v in raw[i, 3:7])
        polygon = (
            NormalizedVertex(x1, y1),
            NormalizedVertex(x2, y1),
            NormalizedVertex(x2, y2),
            NormalizedVertex(x1, y2),
        )
        detections.append(RawDetection(score=confidence, label=label, bounding_polygon=polygon))

    return detections


class LocalDnnDetector(Detector):
    """Object detector using an SSD model via OpenCV DNN.

    The constructor loads the model once. Subsequent detect() calls
    reuse the loaded network.
    """

    name = "local_dnn"

    def __init__(
        self,
        config: AppConfig,
        net=None,
        labels: Optional[Sequence[str]] = None,
    ) -> None:
        """Initialize the detector and load the model.

        Args:
            config: Application configuration.
            net: Pre-built network (skips loading from disk).
            labels: Class labels (skips reading the labels file).

        Raises:
            FileNotFoundError: If model files are missing.
            RuntimeError: If the requested backend is unavailable.
        """
        self._config = config
        self._net = net if net is not None else load_model(config.model)
        self._labels = list(labels) if labels is not None else load_labels(config.model)

        logger.info(
            "LocalDnnDetector initialized (backend=%s, confidence_threshold=%.2f, labels=%d)",
            config.model.backend,
            config.detection.confidence_threshold,
            len(self._labels),
        )

    async def detect(self, image: np.ndarray, rotation: int) -> List[RawDetection]:
        return await asyncio.to_thread(self._infer, image)

    def _infer(self, image: np.ndarray) -> List[RawDetection]:
        blob = make_blob(image, self._config.model)
        try:
            self._net.setInput(blob)
            output = self._net.forward()
        except cv2.error as e:
            raise DetectionServiceError(f"Local inference failed: {e}") from e

        detections = parse_ssd_output(
            output,
            self._labels,
            self._config.detection.confidence_threshold,
        )
        logger.debug("Local inference produced %d detections", len(detections))
        return detections
