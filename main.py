"""
AR Detection CLI Entrypoint.

Responsibility:
    Parse command-line arguments, configure the application, wire together
    the detector, pipeline, frame session and output handler, and run the
    main processing loop.

Usage:
    python main.py --source 0                              # Webcam
    python main.py --source images/ --detector local_dnn   # Directory of images
    python main.py --source clip.mp4 --rotation 90 --output-mode save_json
    python main.py --config my_config.yaml

This module is the executable entry point. It should not be imported
by other modules.
"""

import argparse
import asyncio
import logging
import sys
import time

# Configure logging before importing local modules
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("main")

from ar_detection.config import AppConfig, load_config
from ar_detection.errors import CapabilityUnavailable, DetectionError
from ar_detection.factory import create_detector
from ar_detection.input_handler import InputHandler
from ar_detection.output_handler import OutputHandler
from ar_detection.pipeline import FramePipeline
from ar_detection.session import SessionLifecycle


def parse_args() -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="AR Detection — classify camera frames with a cloud or local detector",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )

    parser.add_argument(
        "--source",
        type=str,
        help="Input source: '0' for webcam, path to image/video file, or directory.",
    )
    parser.add_argument(
        "--config",
        type=str,
        help="Path to YAML configuration file.",
    )
    parser.add_argument(
        "--detector",
        type=str,
        choices=["cloud_vision", "local_dnn", "noop"],
        help="Detector backend. Overrides config.",
    )
    parser.add_argument(
        "--credentials",
        type=str,
        help="Path to the Cloud Vision credentials JSON file. Overrides config.",
    )
    parser.add_argument(
        "--rotation",
        type=int,
        choices=[0, 90, 180, 270],
        help="Clockwise rotation that brings source frames upright. Overrides config.",
    )
    parser.add_argument(
        "--confidence",
        type=float,
        help="Local detector confidence threshold (0.0 - 1.0). Overrides config.",
    )
    parser.add_argument(
        "--output-mode",
        type=str,
        help="Output mode(s). Use comma-separated values for multiple outputs: "
             "display, save_image, save_json, save_csv. "
             "Example: 'save_image,save_json'. Overrides config.",
    )
    parser.add_argument(
        "--output-path",
        type=str,
        help="Path/directory for output artifacts. Overrides config.",
    )

    return parser.parse_args()


def apply_overrides(config: AppConfig, args: argparse.Namespace) -> None:
    """Apply CLI overrides in place.

    We must use object.__setattr__ because the dataclasses are frozen.
    """
    if args.source is not None:
        object.__setattr__(config.input, "source", args.source)
    if args.detector is not None:
        object.__setattr__(config.detector, "backend", args.detector)
    if args.credentials is not None:
        object.__setattr__(config.detector, "credentials_path", args.credentials)
    if args.rotation is not None:
        object.__setattr__(config.input, "rotation", args.rotation)
    if args.confidence is not None:
        object.__setattr__(config.detection, "confidence_threshold", args.confidence)
    if args.output_mode is not None:
        object.__setattr__(config.output, "mode", args.output_mode)
    if args.output_path is not None:
        object.__setattr__(config.output, "save_path", args.output_path)


async def run(
    session: SessionLifecycle,
    pipeline: FramePipeline,
    output_handler: OutputHandler,
) -> int:
    """Classify frames until the source is exhausted or the user quits.

    A frame whose classification fails is logged and recorded with no
    objects; the loop moves on to the next frame.

    Returns:
        Number of frames processed.
    """
    frame_count = 0
    failures = 0

    for frame in session.frames():
        frame_count += 1

        try:
            objects = await pipeline.classify(frame)
        except DetectionError as e:
            failures += 1
            logger.warning("Frame %d produced no results: %s", frame.frame_id, e)
            objects = []

        if frame_count % 30 == 0:
            logger.info("Processed %d frames (%d failed)...", frame_count, failures)

        if not output_handler.process_frame(frame, objects):
            logger.info("Stopping loop per user request.")
            break

    if failures:
        logger.warning("%d of %d frames failed classification.", failures, frame_count)
    return frame_count


def main() -> int:
    """Main execution loop."""
    args = parse_args()

    # 1. Load Configuration (CLI args > ENV > YAML > Defaults)
    try:
        config = load_config(args.config)
        apply_overrides(config, args)
        logger.info("Configuration active for this run.")
    except Exception as e:
        logger.error("Configuration error: %s", e)
        return 1

    # 2. Initialize Components
    try:
        detector = create_detector(config)
        pipeline = FramePipeline(detector, config)
        session = SessionLifecycle(
            lambda: InputHandler(
                source=config.input.source,
                resize_width=config.input.resize_width,
                rotation=config.input.rotation,
            )
        )
        output_handler = OutputHandler(config)
        session.start()

    except CapabilityUnavailable as e:
        logger.error("Camera unavailable: %s", e)
        return 1
    except (FileNotFoundError, ValueError, RuntimeError) as e:
        logger.error("Initialization failed: %s", e)
        return 1
    except Exception as e:
        logger.exception("Unexpected initialization error: %s", e)
        return 1

    # 3. Processing Loop
    logger.info("Starting processing loop. Press 'q' or ESC to quit in display mode.")

    frame_count = 0
    start_time = time.perf_counter()

    try:
        frame_count = asyncio.run(run(session, pipeline, output_handler))
    except KeyboardInterrupt:
        logger.info("Interrupted by user.")
    except Exception as e:
        logger.exception("Runtime error during processing: %s", e)
        return 1
    finally:
        # 4. Cleanup
        elapsed = time.perf_counter() - start_time
        fps = frame_count / elapsed if elapsed > 0 else 0.0

        session.shutdown()
        pipeline.close()
        output_handler.finalize()

        logger.info(
            "Processing finished. Total frames: %d. Avg FPS: %.2f.",
            frame_count, fps
        )

    return 0


if __name__ == "__main__":
    sys.exit(main())
