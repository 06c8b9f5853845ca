"""
Tests for the frame classification pipeline.
"""

import asyncio

import numpy as np
import pytest

from ar_detection.config import AppConfig
from ar_detection.detection import NormalizedVertex, RawDetection
from ar_detection.detector import Detector, DisabledDetector
from ar_detection.errors import Busy, ConfigurationError, DetectionServiceError
from ar_detection.frame import Frame
from ar_detection.pipeline import FramePipeline

_CENTER_POLYGON = (
    NormalizedVertex(0.25, 0.25),
    NormalizedVertex(0.75, 0.25),
    NormalizedVertex(0.75, 0.75),
    NormalizedVertex(0.25, 0.75),
)


class _StaticDetector(Detector):
    """Returns canned detections and records what it was given."""

    name = "static"

    def __init__(self, detections):
        self.detections = detections
        self.calls = []
        self.closed = False

    async def detect(self, image, rotation):
        self.calls.append((image.shape, rotation))
        return list(self.detections)

    def close(self):
        self.closed = True


class _BlockingDetector(Detector):
    """Suspends until released, to exercise admission and cancellation."""

    name = "blocking"

    def __init__(self):
        self.started = asyncio.Event()
        self.release = asyncio.Event()
        self.calls = []

    async def detect(self, image, rotation):
        self.calls.append(image.shape)
        self.started.set()
        await self.release.wait()
        return [RawDetection(score=0.5, label="thing", bounding_polygon=_CENTER_POLYGON)]


class _BrokenDetector(Detector):
    name = "broken"

    async def detect(self, image, rotation):
        raise RuntimeError("socket closed")


def _frame(height=100, width=200, rotation=0, frame_id=0):
    return Frame(
        image=np.zeros((height, width, 3), dtype=np.uint8),
        rotation=rotation,
        frame_id=frame_id,
    )


def test_classify_rotated_end_to_end():
    """Test a 2000x1000 frame at rotation 90 made upright to 1000x2000."""
    detector = _StaticDetector([
        RawDetection(score=0.8, label="chair", bounding_polygon=_CENTER_POLYGON),
    ])
    pipeline = FramePipeline(detector, AppConfig())
    frame = _frame(height=1000, width=2000, rotation=90)

    objects = asyncio.run(pipeline.classify(frame))

    # Detector saw the upright image with the original rotation value.
    assert detector.calls == [((2000, 1000, 3), 90)]
    assert len(objects) == 1
    assert objects[0].label == "chair"
    assert objects[0].confidence == pytest.approx(0.8)
    assert objects[0].position == (1000, 500)


@pytest.mark.parametrize("rotation, expected", [(90, (500, 750)), (270, (1500, 250))])
def test_classify_positions_fall_inside_sensor_frame(rotation, expected):
    """Test that quarter-turn results map back into a non-square frame."""
    polygon = (
        NormalizedVertex(0.125, 0.125),
        NormalizedVertex(0.375, 0.125),
        NormalizedVertex(0.375, 0.375),
        NormalizedVertex(0.125, 0.375),
    )
    detector = _StaticDetector([RawDetection(score=0.7, label="lamp", bounding_polygon=polygon)])
    pipeline = FramePipeline(detector, AppConfig())
    frame = _frame(height=1000, width=2000, rotation=rotation)

    objects = asyncio.run(pipeline.classify(frame))

    x, y = objects[0].position
    assert (x, y) == expected
    assert 0 <= x <= frame.width and 0 <= y <= frame.height


def test_classify_preserves_detector_order():
    """Test that results are not re-sorted."""
    detector = _StaticDetector([
        RawDetection(score=0.1, label="low", bounding_polygon=_CENTER_POLYGON),
        RawDetection(score=0.9, label="high", bounding_polygon=_CENTER_POLYGON),
    ])
    pipeline = FramePipeline(detector, AppConfig())

    objects = asyncio.run(pipeline.classify(_frame()))

    assert [o.label for o in objects] == ["low", "high"]


def test_classify_does_not_mutate_frame():
    """Test that the caller's pixel buffer is untouched."""
    frame = _frame(rotation=180)
    frame.image[0, 0] = 7
    before = frame.image.copy()
    pipeline = FramePipeline(_StaticDetector([]), AppConfig())

    asyncio.run(pipeline.classify(frame))

    assert np.array_equal(frame.image, before)


def test_classify_wraps_unexpected_detector_errors():
    """Test that foreign exceptions become one DetectionServiceError."""
    pipeline = FramePipeline(_BrokenDetector(), AppConfig())

    with pytest.raises(DetectionServiceError, match="socket closed"):
        asyncio.run(pipeline.classify(_frame()))


def test_classify_disabled_detector():
    """Test that a disabled detector surfaces ConfigurationError."""
    pipeline = FramePipeline(DisabledDetector("missing credentials"), AppConfig())

    with pytest.raises(ConfigurationError):
        asyncio.run(pipeline.classify(_frame()))


def test_invalid_admission_policy():
    """Test that unknown admission policies are rejected."""
    with pytest.raises(ValueError):
        FramePipeline(_StaticDetector([]), AppConfig(), admission="drop")


def test_second_call_rejected_with_busy():
    """Test that a concurrent call is rejected, not silently dropped."""

    async def scenario():
        detector = _BlockingDetector()
        pipeline = FramePipeline(detector, AppConfig(), admission="reject")

        first = asyncio.create_task(pipeline.classify(_frame(frame_id=1)))
        await detector.started.wait()
        assert pipeline.busy

        with pytest.raises(Busy):
            await pipeline.classify(_frame(frame_id=2))

        detector.release.set()
        result = await first
        return detector, pipeline, result

    detector, pipeline, result = asyncio.run(scenario())

    assert len(detector.calls) == 1
    assert len(result) == 1
    assert not pipeline.busy


def test_second_call_queued_in_order():
    """Test that queued calls run one at a time in arrival order."""

    async def scenario():
        detector = _BlockingDetector()
        pipeline = FramePipeline(detector, AppConfig(), admission="queue")

        first = asyncio.create_task(pipeline.classify(_frame(width=10, frame_id=1)))
        await detector.started.wait()
        second = asyncio.create_task(pipeline.classify(_frame(width=20, frame_id=2)))
        await asyncio.sleep(0)

        # Only the first call has reached the detector.
        assert detector.calls == [(100, 10, 3)]

        detector.release.set()
        results = await asyncio.gather(first, second)
        return detector, results

    detector, results = asyncio.run(scenario())

    assert detector.calls == [(100, 10, 3), (100, 20, 3)]
    assert all(len(r) == 1 for r in results)


def test_cancelled_call_frees_pipeline():
    """Test that cancelling an in-flight call releases the slot."""

    async def scenario():
        detector = _BlockingDetector()
        pipeline = FramePipeline(detector, AppConfig())

        task = asyncio.create_task(pipeline.classify(_frame()))
        await detector.started.wait()
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert not pipeline.busy
        detector.release.set()
        return await pipeline.classify(_frame())

    assert len(asyncio.run(scenario())) == 1


def test_close_closes_detector():
    """Test that closing the pipeline closes the detector."""
    detector = _StaticDetector([])
    FramePipeline(detector, AppConfig()).close()
    assert detector.closed
