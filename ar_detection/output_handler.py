"""
Output handling for classification results (the consumer side).

Responsibility:
    Route each frame's detected objects to configured output sinks:
    display window, saved images, JSON, or CSV. Supports multiple
    orthogonal outputs simultaneously.

Non-goals:
    - No detection logic.
    - No input acquisition.
"""

import logging
from typing import Dict, List, Set

import cv2

from ar_detection.config import AppConfig, resolve_path
from ar_detection.detection import DetectedObject
from ar_detection.frame import Frame
from ar_detection.preprocessor import convert_to_bgr
from ar_detection.serializer import save_csv, save_json
from ar_detection.visualizer import draw_detections, show_frame

logger = logging.getLogger(__name__)


class OutputHandler:
    """Routes classification results to configured output sinks.

    Supports orthogonal outputs - multiple modes can be active simultaneously:
        - 'display': Show annotated frames in an OpenCV window.
        - 'save_image': Write annotated frames to files.
        - 'save_json': Accumulate results, write JSON on finalize.
        - 'save_csv': Accumulate results, write CSV on finalize.

    A frame whose classification failed is recorded with no objects.

    Usage:
        handler = OutputHandler(config)
        handler.process_frame(frame, objects)
        ...
        handler.finalize()  # Flush any buffered output
    """

    def __init__(self, config: AppConfig) -> None:
        self._config = config
        self._modes: Set[str] = set(m.strip() for m in config.output.mode.split(','))
        self._results_buffer: Dict[int, List[DetectedObject]] = {}
        self._save_path = resolve_path(config.output.save_path)

        if self._modes & {'save_image', 'save_json', 'save_csv'}:
            self._save_path.mkdir(parents=True, exist_ok=True)

        logger.info("OutputHandler initialized: modes=%s, save_path=%s",
                    self._modes, self._save_path)

    def process_frame(self, frame: Frame, objects: List[DetectedObject]) -> bool:
        """Process a single frame's results through the output pipeline.

        Returns:
            True to continue processing, False to signal the caller
            should stop (e.g., user pressed 'q' in display mode).
        """
        should_continue = True

        if self._modes & {'display', 'save_image'}:
            image = convert_to_bgr(frame)

            if 'display' in self._modes:
                key = show_frame(image, objects, self._config.visualization)
                if key == ord("q") or key == 27:  # 'q' or ESC
                    logger.info("Quit signal received (key press).")
                    should_continue = False

            if 'save_image' in self._modes:
                annotated = draw_detections(image, objects, self._config.visualization)
                output_file = self._save_path / f"frame_{frame.frame_id:06d}.jpg"
                cv2.imwrite(str(output_file), annotated)
                logger.debug("Saved frame %d to %s", frame.frame_id, output_file)

        if 'save_json' in self._modes or 'save_csv' in self._modes:
            self._results_buffer[frame.frame_id] = list(objects)

        return should_continue

    def finalize(self) -> None:
        """Flush buffered output and release resources.

        Must be called after all frames have been processed.
        """
        if 'save_json' in self._modes and self._results_buffer:
            save_json(self._results_buffer, str(self._save_path / "detections.json"))

        if 'save_csv' in self._modes and self._results_buffer:
            save_csv(self._results_buffer, str(self._save_path / "detections.csv"))

        if 'display' in self._modes:
            cv2.destroyAllWindows()

        self._results_buffer.clear()
        logger.info("OutputHandler finalized.")
