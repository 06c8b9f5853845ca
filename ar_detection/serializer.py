"""
File export of classification results.

Results are held by the output handler as ``{frame_id: [DetectedObject]}``
and written once, when the run finishes. Frames are always written in
ascending frame_id order; objects keep detector order within a frame.
"""

import csv
import json
import logging
from pathlib import Path
from typing import Dict, Iterator, List, Tuple

from ar_detection.detection import DetectedObject

logger = logging.getLogger(__name__)

Results = Dict[int, List[DetectedObject]]

CSV_COLUMNS = ("frame_id", "label", "confidence", "x", "y")


def _by_frame(results: Results) -> Iterator[Tuple[int, List[DetectedObject]]]:
    for frame_id in sorted(results):
        yield frame_id, results[frame_id]


def _open_for_write(path: str, **kwargs):
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    return open(target, "w", encoding="utf-8", **kwargs)


def save_json(results: Results, output_path: str) -> None:
    """Write results as one JSON document.

    Every frame appears, including frames with no objects::

        {"frames": [{"frame_id": 0, "objects": [{"label", "confidence", "x", "y"}]}],
         "total_frames": N, "total_objects": M}
    """
    frames = [
        {"frame_id": frame_id, "objects": [obj.to_dict() for obj in objects]}
        for frame_id, objects in _by_frame(results)
    ]
    total_objects = sum(len(f["objects"]) for f in frames)

    with _open_for_write(output_path) as f:
        json.dump(
            {"frames": frames, "total_frames": len(frames), "total_objects": total_objects},
            f,
            indent=2,
        )

    logger.info("Wrote %s (%d frames, %d objects)", output_path, len(frames), total_objects)


def save_csv(results: Results, output_path: str) -> None:
    """Write one CSV row per detected object. Empty frames produce no rows."""
    rows = 0
    with _open_for_write(output_path, newline="") as f:
        writer = csv.writer(f)
        writer.writerow(CSV_COLUMNS)
        for frame_id, objects in _by_frame(results):
            for obj in objects:
                x, y = obj.position
                writer.writerow((frame_id, obj.label, round(obj.confidence, 4), x, y))
                rows += 1

    logger.info("Wrote %s (%d rows)", output_path, rows)
