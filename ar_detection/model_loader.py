"""
Model loading for the local DNN detector.

Responsibility:
    Load an SSD-style Caffe model from disk, configure the compute
    backend, and return a ready-to-infer cv2.dnn.Net object together with
    its class labels.

Non-goals:
    - No preprocessing, inference, or frame-level logic.
    - No automatic model downloading.
    - No fallback to alternative models.

Failure behavior:
    - Missing model files raise FileNotFoundError with the exact
      missing path and expected location.
    - Incompatible backend raises RuntimeError.
    - A missing labels file is not an error: labels fall back to
      "class_<id>".
"""

import logging
from typing import List

import cv2

from ar_detection.config import ModelConfig, resolve_path

logger = logging.getLogger(__name__)


def load_model(config: ModelConfig) -> cv2.dnn.Net:
    """Load and configure the SSD detection model.

    Args:
        config: ModelConfig containing file paths and backend preference.

    Returns:
        A configured cv2.dnn.Net ready for inference.

    Raises:
        FileNotFoundError: If prototxt or weights file does not exist.
        RuntimeError: If the requested backend is unavailable.
    """
    prototxt = resolve_path(config.prototxt_path)
    weights = resolve_path(config.weights_path)

    # Validate file existence — fail fast with actionable messages
    if not prototxt.is_file():
        raise FileNotFoundError(
            f"Model prototxt not found.\n"
            f"  Expected: {prototxt}\n"
            f"  Provide the file or update 'model.prototxt_path' in your config."
        )

    if not weights.is_file():
        raise FileNotFoundError(
            f"Model weights not found.\n"
            f"  Expected: {weights}\n"
            f"  Download the weights file and place it at the path above,\n"
            f"  or update 'model.weights_path' in your config."
        )

    logger.info("Loading model: prototxt=%s, weights=%s", prototxt, weights)
    net = cv2.dnn.readNetFromCaffe(str(prototxt), str(weights))

    if config.backend == "cuda":
        logger.info("Setting CUDA backend and target.")
        try:
            net.setPreferableBackend(cv2.dnn.DNN_BACKEND_CUDA)
            net.setPreferableTarget(cv2.dnn.DNN_TARGET_CUDA)
        except cv2.error as e:
            raise RuntimeError(
                f"Failed to set CUDA backend. Ensure OpenCV was built with "
                f"CUDA support (opencv-contrib-python or custom build).\n"
                f"  OpenCV error: {e}"
            ) from e
    else:
        logger.info("Using CPU backend.")
        net.setPreferableBackend(cv2.dnn.DNN_BACKEND_OPENCV)
        net.setPreferableTarget(cv2.dnn.DNN_TARGET_CPU)

    logger.info("Model loaded successfully.")
    return net


def load_labels(config: ModelConfig) -> List[str]:
    """Read class labels, one per line. Returns [] if no file is configured or found."""
    if not config.labels_path:
        return []

    path = resolve_path(config.labels_path)
    if not path.is_file():
        logger.warning("Labels file not found: %s. Using numeric class names.", path)
        return []

    with open(path, "r", encoding="utf-8") as f:
        labels = [line.strip() for line in f if line.strip()]
    logger.info("Loaded %d labels from %s", len(labels), path)
    return labels
