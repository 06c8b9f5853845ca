"""
Detector selection.

The detector variant is chosen once at startup from the configuration.
Credential problems never crash the process: they are logged and the
remote backend is replaced by a DisabledDetector, whose detect() fails
fast with ConfigurationError on every frame.
"""

import logging
from typing import Optional

import requests

from ar_detection.cloud_vision import CloudVisionDetector, load_api_key
from ar_detection.config import AppConfig
from ar_detection.detector import (
    Detector,
    DisabledDetector,
    LocalDnnDetector,
    NoOpDetector,
)
from ar_detection.errors import ConfigurationError

logger = logging.getLogger(__name__)


def create_detector(
    config: AppConfig,
    session: Optional[requests.Session] = None,
) -> Detector:
    """Build the configured detector.

    Args:
        config: Validated application configuration.
        session: HTTP session for the cloud backend (a new one by default).

    Raises:
        FileNotFoundError: If the local model files are missing.
        RuntimeError: If the local model backend is unavailable.
    """
    backend = config.detector.backend

    if backend == "noop":
        return NoOpDetector()

    if backend == "local_dnn":
        return LocalDnnDetector(config)

    try:
        api_key = load_api_key(config)
    except ConfigurationError as e:
        logger.error("Unable to load Cloud Vision credentials. Cloud ML will be disabled. %s", e)
        return DisabledDetector(str(e))

    return CloudVisionDetector(config, api_key=api_key, session=session)
