"""
AR Detection — forwards camera frames to an object detector and maps the
results back into display coordinates.

Public API:
    - FramePipeline: The single entry point for classifying frames.
    - create_detector: Builds the configured detector backend.
    - Frame, DetectedObject, NormalizedVertex, RawDetection: Value types.
    - DetectionError and subclasses: Failure types.

Usage:
    from ar_detection import FramePipeline, Frame, create_detector, load_config

    config = load_config()
    pipeline = FramePipeline(create_detector(config), config)
    objects = await pipeline.classify(Frame(image, rotation=90))
"""

from ar_detection.config import AppConfig, load_config
from ar_detection.detection import DetectedObject, NormalizedVertex, RawDetection
from ar_detection.errors import (
    Busy,
    CapabilityUnavailable,
    ConfigurationError,
    DetectionError,
    DetectionServiceError,
    InvalidArgument,
)
from ar_detection.factory import create_detector
from ar_detection.frame import Frame
from ar_detection.pipeline import FramePipeline

__all__ = [
    "AppConfig",
    "Busy",
    "CapabilityUnavailable",
    "ConfigurationError",
    "DetectedObject",
    "DetectionError",
    "DetectionServiceError",
    "Frame",
    "FramePipeline",
    "InvalidArgument",
    "NormalizedVertex",
    "RawDetection",
    "create_detector",
    "load_config",
]
