"""
Tests for the Cloud Vision detector.
"""

import asyncio
import base64
import threading

import numpy as np
import pytest
import requests

import ar_detection.cloud_vision as cloud_vision
from ar_detection.cloud_vision import (
    CloudVisionDetector,
    load_api_key,
    parse_annotate_response,
)
from ar_detection.config import AppConfig, DetectorConfig
from ar_detection.errors import ConfigurationError, DetectionServiceError


class _FakeResponse:
    def __init__(self, status_code=200, payload=None, text=""):
        self.status_code = status_code
        self._payload = payload
        self.text = text
        self.closed = False

    def json(self):
        if self._payload is None:
            raise ValueError("no json")
        return self._payload

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.closed = True
        return False


class _FakeSession:
    """Records posts and replays a canned response or error."""

    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []
        self.closed = False

    def post(self, url, **kwargs):
        self.calls.append((url, kwargs))
        if self.error is not None:
            raise self.error
        return self.response

    def close(self):
        self.closed = True


_ANNOTATE_PAYLOAD = {
    "responses": [{
        "localizedObjectAnnotations": [
            {
                "name": "Chair",
                "score": 0.87,
                "boundingPoly": {"normalizedVertices": [
                    {"x": 0.25, "y": 0.25},
                    {"x": 0.75, "y": 0.25},
                    {"x": 0.75, "y": 0.75},
                    {"x": 0.25, "y": 0.75},
                ]},
            },
            {
                "name": "Table",
                "score": 0.5,
                "boundingPoly": {"normalizedVertices": [
                    {"y": 0.5},
                    {"x": 0.5, "y": 0.5},
                    {"x": 0.5, "y": 1.0},
                    {"y": 1.0},
                ]},
            },
        ]
    }]
}


def _image():
    return np.zeros((40, 30, 3), dtype=np.uint8)


def test_parse_annotate_response():
    """Test that annotations map to raw detections in order."""
    detections = parse_annotate_response(_ANNOTATE_PAYLOAD)

    assert [d.label for d in detections] == ["Chair", "Table"]
    assert detections[0].score == pytest.approx(0.87)
    # Missing components default to 0.0
    assert detections[1].bounding_polygon[0].x == 0.0
    assert detections[1].bounding_polygon[0].y == 0.5


def test_parse_annotate_response_empty():
    """Test that an image with no objects yields no detections."""
    assert parse_annotate_response({"responses": [{}]}) == []


def test_parse_annotate_response_error():
    """Test that a per-image error becomes DetectionServiceError."""
    payload = {"responses": [{"error": {"code": 7, "message": "PERMISSION_DENIED"}}]}
    with pytest.raises(DetectionServiceError, match="PERMISSION_DENIED"):
        parse_annotate_response(payload)


def test_parse_annotate_response_malformed():
    """Test that a payload of the wrong shape is rejected."""
    with pytest.raises(DetectionServiceError):
        parse_annotate_response({"responses": "nope"})


def test_load_api_key_inline_wins(tmp_path):
    """Test that an inline key needs no credentials file."""
    config = AppConfig(detector=DetectorConfig(
        api_key="inline",
        credentials_path=str(tmp_path / "missing.json"),
    ))
    assert load_api_key(config) == "inline"


def test_load_api_key_invalid_json(tmp_path):
    """Test that an unreadable credentials file is a configuration error."""
    credentials = tmp_path / "credentials.json"
    credentials.write_text("{not json", encoding="utf-8")
    config = AppConfig(detector=DetectorConfig(credentials_path=str(credentials)))

    with pytest.raises(ConfigurationError):
        load_api_key(config)


def test_detect_sends_object_localization_request():
    """Test the request body and the parsed result."""
    session = _FakeSession(response=_FakeResponse(payload=_ANNOTATE_PAYLOAD))
    config = AppConfig(detector=DetectorConfig(max_results=5, timeout_s=2.5))
    detector = CloudVisionDetector(config, api_key="k", session=session)

    detections = asyncio.run(detector.detect(_image(), 90))

    assert len(detections) == 2
    url, kwargs = session.calls[0]
    assert url == config.detector.endpoint
    assert kwargs["params"] == {"key": "k"}
    assert kwargs["timeout"] == 2.5
    request = kwargs["json"]["requests"][0]
    assert request["features"] == [{"type": "OBJECT_LOCALIZATION", "maxResults": 5}]
    content = base64.b64decode(request["image"]["content"])
    assert content[:2] == b"\xff\xd8"
    assert session.response.closed


def test_detect_http_error():
    """Test that non-2xx statuses raise DetectionServiceError."""
    session = _FakeSession(response=_FakeResponse(status_code=403, text="forbidden"))
    detector = CloudVisionDetector(AppConfig(), api_key="k", session=session)

    with pytest.raises(DetectionServiceError, match="403"):
        asyncio.run(detector.detect(_image(), 0))


def test_detect_timeout():
    """Test that transport timeouts raise DetectionServiceError."""
    session = _FakeSession(error=requests.exceptions.Timeout("slow"))
    detector = CloudVisionDetector(AppConfig(), api_key="k", session=session)

    with pytest.raises(DetectionServiceError, match="timed out"):
        asyncio.run(detector.detect(_image(), 0))


def test_detect_connection_error():
    """Test that connection failures raise DetectionServiceError."""
    session = _FakeSession(error=requests.exceptions.ConnectionError("offline"))
    detector = CloudVisionDetector(AppConfig(), api_key="k", session=session)

    with pytest.raises(DetectionServiceError):
        asyncio.run(detector.detect(_image(), 0))


def test_detect_invalid_json():
    """Test that a non-JSON body raises DetectionServiceError."""
    session = _FakeSession(response=_FakeResponse(payload=None))
    detector = CloudVisionDetector(AppConfig(), api_key="k", session=session)

    with pytest.raises(DetectionServiceError):
        asyncio.run(detector.detect(_image(), 0))


def test_close_closes_session():
    """Test that closing the detector closes the shared session."""
    session = _FakeSession()
    CloudVisionDetector(AppConfig(), api_key="k", session=session).close()
    assert session.closed


def test_detect_encodes_off_the_event_loop(monkeypatch):
    """Test that JPEG encoding runs in the worker thread, not the loop thread."""
    threads = []
    real_encode = cloud_vision.encode_jpeg

    def recording_encode(image, quality):
        threads.append(threading.get_ident())
        return real_encode(image, quality)

    monkeypatch.setattr(cloud_vision, "encode_jpeg", recording_encode)
    session = _FakeSession(response=_FakeResponse(payload={"responses": [{}]}))
    detector = CloudVisionDetector(AppConfig(), api_key="k", session=session)

    async def run():
        loop_thread = threading.get_ident()
        await detector.detect(_image(), 0)
        return loop_thread

    loop_thread = asyncio.run(run())

    assert len(threads) == 1
    assert threads[0] != loop_thread
