"""
Remote detector backed by the Google Cloud Vision object localizer.

https://cloud.google.com/vision/docs/object-localizer

Responsibility:
    Upload one upright frame per call to the ``images:annotate`` REST
    endpoint with the OBJECT_LOCALIZATION feature and translate the
    localized object annotations into RawDetections.

Credentials:
    An API key, given inline in the config or read from a JSON file
    (``{"api_key": "..."}``). Loaded once at construction and read-only
    afterwards. Missing credentials are handled by the detector factory,
    which disables this backend instead of crashing.

Failure behavior:
    Every transport error, non-2xx status, per-image error object and
    malformed payload surfaces as DetectionServiceError. There is no
    retry here; the caller decides whether to try the next frame.
"""

import asyncio
import base64
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import numpy as np
import requests

from ar_detection.config import AppConfig, resolve_path
from ar_detection.detection import NormalizedVertex, RawDetection
from ar_detection.detector import Detector
from ar_detection.errors import ConfigurationError, DetectionServiceError
from ar_detection.preprocessor import encode_jpeg

logger = logging.getLogger(__name__)


def load_api_key(config: AppConfig) -> str:
    """Resolve the Vision API key from the inline value or the credentials file.

    Raises:
        ConfigurationError: If no usable key can be found.
    """
    if config.detector.api_key:
        return config.detector.api_key

    path: Path = resolve_path(config.detector.credentials_path)
    if not path.is_file():
        raise ConfigurationError(
            f"Missing Cloud Vision credentials at {path}. "
            f"Set 'detector.api_key' or AR_DETECT_DETECTOR_API_KEY, or "
            f"provide the credentials file."
        )

    try:
        with open(path, "r", encoding="utf-8") as f:
            payload = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigurationError(f"Unable to read credentials from {path}: {e}") from e

    api_key = payload.get("api_key") if isinstance(payload, dict) else None
    if not isinstance(api_key, str) or not api_key.strip():
        raise ConfigurationError(f"Credentials file {path} has no 'api_key' entry.")
    return api_key.strip()


def parse_annotate_response(payload: Any) -> List[RawDetection]:
    """Translate an ``images:annotate`` response body into RawDetections.

    Only the first image response is read, since one image is sent per
    request. Vertex components omitted by the JSON encoding mean 0.0.

    Raises:
        DetectionServiceError: If the payload reports an error or does not
                               have the expected shape.
    """
    try:
        responses = payload.get("responses") or []
        first: Dict[str, Any] = responses[0] if responses else {}

        error = first.get("error")
        if error:
            raise DetectionServiceError(
                f"Vision API error {error.get('code', '?')}: {error.get('message', 'unknown')}"
            )

        detections: List[RawDetection] = []
        for annotation in first.get("localizedObjectAnnotations") or []:
            vertices = (annotation.get("boundingPoly") or {}).get("normalizedVertices") or []
            polygon = tuple(
                NormalizedVertex(float(v.get("x", 0.0)), float(v.get("y", 0.0)))
                for v in vertices
            )
            detections.append(RawDetection(
                score=float(annotation.get("score", 0.0)),
                label=str(annotation.get("name", "")),
                bounding_polygon=polygon,
            ))
    except (AttributeError, TypeError, ValueError) as e:
        raise DetectionServiceError(f"Malformed Vision API response: {e}") from e

    return detections


class CloudVisionDetector(Detector):
    """Finds objects in an image via the Cloud Vision REST API.

    One ``requests.Session`` is shared by all calls and closed by close().
    Requests run in a worker thread; the configured timeout bounds how
    long that thread can outlive a cancelled caller.
    """

    name = "cloud_vision"

    def __init__(
        self,
        config: AppConfig,
        api_key: str,
        session: Optional[requests.Session] = None,
    ) -> None:
        self._endpoint = config.detector.endpoint
        self._timeout_s = config.detector.timeout_s
        self._max_results = config.detector.max_results
        self._jpeg_quality = config.pipeline.jpeg_quality
        self._api_key = api_key
        self._session = session if session is not None else requests.Session()

        logger.info(
            "CloudVisionDetector initialized (endpoint=%s, timeout=%.1fs)",
            self._endpoint,
            self._timeout_s,
        )

    async def detect(self, image: np.ndarray, rotation: int) -> List[RawDetection]:
        return await asyncio.to_thread(self._annotate, image)

    def _build_request(self, content: bytes) -> dict:
        """Build the AnnotateImageRequest body for one image.

        https://cloud.google.com/vision/docs/reference/rest/v1/AnnotateImageRequest
        """
        return {
            "requests": [
                {
                    "image": {"content": base64.b64encode(content).decode("ascii")},
                    "features": [
                        {"type": "OBJECT_LOCALIZATION", "maxResults": self._max_results},
                    ],
                }
            ]
        }

    def _annotate(self, image: np.ndarray) -> List[RawDetection]:
        body = self._build_request(encode_jpeg(image, self._jpeg_quality))
        try:
            with self._session.post(
                self._endpoint,
                params={"key": self._api_key},
                json=body,
                timeout=self._timeout_s,
            ) as response:
                status = response.status_code
                if status >= 400:
                    raise DetectionServiceError(
                        f"Vision API request failed with HTTP {status}: {response.text[:200]}"
                    )
                payload = response.json()
        except requests.exceptions.Timeout as e:
            raise DetectionServiceError(
                f"Vision API request timed out after {self._timeout_s}s"
            ) from e
        except requests.exceptions.RequestException as e:
            raise DetectionServiceError(f"Vision API request failed: {e}") from e
        except ValueError as e:
            raise DetectionServiceError(f"Vision API returned invalid JSON: {e}") from e

        detections = parse_annotate_response(payload)
        logger.debug("Vision API returned %d objects", len(detections))
        return detections

    def close(self) -> None:
        self._session.close()
