"""
Configuration management for the AR detection system.

Provides a layered configuration system with the following precedence
(highest to lowest):

    CLI arguments > Environment variables > YAML config file > Defaults

Design constraints:
    - The system MUST run with zero configuration (safe defaults only).
    - Missing or invalid values fail early and loudly.
    - No detection logic, I/O, or model loading belongs here.
    - Credentials are NOT validated here. A missing API key is not a
      configuration error: the detector factory logs it and disables the
      remote detector instead.

Non-goals:
    - No dynamic reloading.
    - No database-backed or remote configuration.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Tuple

import yaml

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Project root resolution
# ---------------------------------------------------------------------------
# Resolved relative to this file's location: ar_detection/config.py → project root
_PROJECT_ROOT = Path(__file__).resolve().parent.parent


# ---------------------------------------------------------------------------
# Configuration dataclasses
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class DetectorConfig:
    """Detector selection and remote service settings.

    Attributes:
        backend: Detector variant — 'cloud_vision', 'local_dnn' or 'noop'.
        credentials_path: JSON file holding {"api_key": "..."} for the
                          cloud detector (relative to project root).
        api_key: Inline API key. Takes precedence over credentials_path.
        endpoint: Vision API annotate endpoint.
        timeout_s: Per-request timeout in seconds. Bounds how long a
                   cancelled request can keep its worker thread busy.
        max_results: Maximum number of objects requested per image.
    """

    backend: str = "cloud_vision"
    credentials_path: str = "credentials.json"
    api_key: Optional[str] = None
    endpoint: str = "https://vision.googleapis.com/v1/images:annotate"
    timeout_s: float = 10.0
    max_results: int = 10


@dataclass(frozen=True)
class ModelConfig:
    """Local DNN model configuration (used by the 'local_dnn' backend).

    Attributes:
        prototxt_path: Path to the .prototxt network definition (relative to project root).
        weights_path: Path to the .caffemodel weights file (relative to project root).
        labels_path: Optional text file with one class label per line.
        backend: Compute backend — 'cpu' or 'cuda'.
        input_size: Spatial dimensions (width, height) for the DNN input blob.
        mean_values: Per-channel mean subtraction values (BGR order).
        scale_factor: Pixel value scale factor applied during blob creation.
        swap_rb: Whether the model expects RGB input.
    """

    prototxt_path: str = "models/MobileNetSSD_deploy.prototxt"
    weights_path: str = "models/MobileNetSSD_deploy.caffemodel"
    labels_path: Optional[str] = "models/labels.txt"
    backend: str = "cpu"
    input_size: Tuple[int, int] = (300, 300)
    mean_values: Tuple[float, float, float] = (127.5, 127.5, 127.5)
    scale_factor: float = 0.007843
    swap_rb: bool = False


@dataclass(frozen=True)
class DetectionConfig:
    """Detection thresholds.

    Attributes:
        confidence_threshold: Minimum confidence for the local detector to
                              report an object.
    """

    confidence_threshold: float = 0.5


@dataclass(frozen=True)
class PipelineConfig:
    """Frame pipeline behavior.

    Attributes:
        admission: What happens when a frame arrives while another is in
                   flight — 'reject' raises Busy, 'queue' waits in FIFO order.
        jpeg_quality: JPEG quality used when encoding frames for upload.
    """

    admission: str = "reject"
    jpeg_quality: int = 90


@dataclass(frozen=True)
class InputConfig:
    """Input source configuration.

    Attributes:
        source: Input source — file path, directory path, video path,
                or integer device index (as string or int).
        resize_width: Optional width to downscale input frames before detection.
                      None means no resizing.
        rotation: Clockwise rotation (0, 90, 180, 270) stamped on every frame
                  to bring the sensor image upright.
    """

    source: str = "0"
    resize_width: Optional[int] = None
    rotation: int = 0


@dataclass(frozen=True)
class OutputConfig:
    """Output behavior configuration.

    Attributes:
        mode: Output mode(s). Supports multiple comma-separated values:
              'display', 'save_image', 'save_json', 'save_csv'.
              Example: "display,save_json"
        save_path: Directory where output artifacts are written.
    """

    mode: str = "display"
    save_path: str = "output/"


@dataclass(frozen=True)
class VisualizationConfig:
    """Visualization rendering parameters.

    Attributes:
        marker_color: BGR color tuple for object markers.
        marker_radius: Marker circle radius in pixels.
        thickness: Line thickness in pixels.
        show_label: Whether to render the label and confidence.
    """

    marker_color: Tuple[int, int, int] = (0, 255, 0)
    marker_radius: int = 8
    thickness: int = 2
    show_label: bool = True


@dataclass(frozen=True)
class AppConfig:
    """Top-level application configuration.

    Aggregates all sub-configurations into a single, frozen object.
    """

    detector: DetectorConfig = field(default_factory=DetectorConfig)
    model: ModelConfig = field(default_factory=ModelConfig)
    detection: DetectionConfig = field(default_factory=DetectionConfig)
    pipeline: PipelineConfig = field(default_factory=PipelineConfig)
    input: InputConfig = field(default_factory=InputConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    visualization: VisualizationConfig = field(default_factory=VisualizationConfig)


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

_VALID_DETECTOR_BACKENDS = {"cloud_vision", "local_dnn", "noop"}
_VALID_MODEL_BACKENDS = {"cpu", "cuda"}
_VALID_ADMISSION = {"reject", "queue"}
_VALID_ROTATIONS = {0, 90, 180, 270}
_VALID_OUTPUT_MODES = {"display", "save_image", "save_json", "save_csv"}


def _validate(config: AppConfig) -> None:
    """Validate configuration values. Raises ValueError on invalid state."""

    if config.detector.backend not in _VALID_DETECTOR_BACKENDS:
        raise ValueError(
            f"Invalid detector.backend: '{config.detector.backend}'. "
            f"Must be one of {_VALID_DETECTOR_BACKENDS}."
        )

    if config.detector.timeout_s <= 0:
        raise ValueError(
            f"detector.timeout_s must be positive, got {config.detector.timeout_s}."
        )

    if config.detector.max_results <= 0:
        raise ValueError(
            f"detector.max_results must be positive, got {config.detector.max_results}."
        )

    if config.model.backend not in _VALID_MODEL_BACKENDS:
        raise ValueError(
            f"Invalid model.backend: '{config.model.backend}'. "
            f"Must be one of {_VALID_MODEL_BACKENDS}."
        )

    if config.pipeline.admission not in _VALID_ADMISSION:
        raise ValueError(
            f"Invalid pipeline.admission: '{config.pipeline.admission}'. "
            f"Must be one of {_VALID_ADMISSION}."
        )

    if not (1 <= config.pipeline.jpeg_quality <= 100):
        raise ValueError(
            f"pipeline.jpeg_quality must be in [1, 100], "
            f"got {config.pipeline.jpeg_quality}."
        )

    # Validate each mode in comma-separated list
    modes = set(m.strip() for m in config.output.mode.split(','))
    invalid_modes = modes - _VALID_OUTPUT_MODES
    if invalid_modes:
        raise ValueError(
            f"Invalid output.mode(s): {invalid_modes}. "
            f"Valid modes: {_VALID_OUTPUT_MODES}. "
            f"Use comma-separated values for multiple outputs."
        )

    if not (0.0 <= config.detection.confidence_threshold <= 1.0):
        raise ValueError(
            f"detection.confidence_threshold must be in [0.0, 1.0], "
            f"got {config.detection.confidence_threshold}."
        )

    if len(config.model.input_size) != 2:
        raise ValueError(
            f"model.input_size must be a (width, height) tuple, "
            f"got {config.model.input_size}."
        )

    if any(d <= 0 for d in config.model.input_size):
        raise ValueError(
            f"model.input_size dimensions must be positive, "
            f"got {config.model.input_size}."
        )

    if config.model.scale_factor <= 0:
        raise ValueError(
            f"model.scale_factor must be positive, "
            f"got {config.model.scale_factor}."
        )

    if config.input.rotation not in _VALID_ROTATIONS:
        raise ValueError(
            f"input.rotation must be one of {sorted(_VALID_ROTATIONS)}, "
            f"got {config.input.rotation}."
        )

    if config.input.resize_width is not None and config.input.resize_width <= 0:
        raise ValueError(
            f"input.resize_width must be positive or None, "
            f"got {config.input.resize_width}."
        )


# ---------------------------------------------------------------------------
# YAML loading
# ---------------------------------------------------------------------------

def _parse_tuple(value, expected_len: int, cast_type=float):
    """Convert a list from YAML into a tuple of the expected type and length."""
    if isinstance(value, (list, tuple)):
        if len(value) != expected_len:
            raise ValueError(
                f"Expected {expected_len} values, got {len(value)}: {value}"
            )
        return tuple(cast_type(v) for v in value)
    return value


def _parse_bool(value) -> bool:
    """Interpret YAML booleans and env-var strings alike."""
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return bool(value)


def _build_detector_config(raw: dict) -> DetectorConfig:
    """Build DetectorConfig from a raw YAML dict."""
    kwargs = {}
    if "backend" in raw:
        kwargs["backend"] = str(raw["backend"]).lower()
    if "credentials_path" in raw:
        kwargs["credentials_path"] = str(raw["credentials_path"])
    if "api_key" in raw:
        val = raw["api_key"]
        kwargs["api_key"] = str(val) if val else None
    if "endpoint" in raw:
        kwargs["endpoint"] = str(raw["endpoint"])
    if "timeout_s" in raw:
        kwargs["timeout_s"] = float(raw["timeout_s"])
    if "max_results" in raw:
        kwargs["max_results"] = int(raw["max_results"])
    return DetectorConfig(**kwargs)


def _build_model_config(raw: dict) -> ModelConfig:
    """Build ModelConfig from a raw YAML dict."""
    kwargs = {}
    if "prototxt_path" in raw:
        kwargs["prototxt_path"] = str(raw["prototxt_path"])
    if "weights_path" in raw:
        kwargs["weights_path"] = str(raw["weights_path"])
    if "labels_path" in raw:
        val = raw["labels_path"]
        kwargs["labels_path"] = str(val) if val else None
    if "backend" in raw:
        kwargs["backend"] = str(raw["backend"]).lower()
    if "input_size" in raw:
        kwargs["input_size"] = _parse_tuple(raw["input_size"], 2, int)
    if "mean_values" in raw:
        kwargs["mean_values"] = _parse_tuple(raw["mean_values"], 3, float)
    if "scale_factor" in raw:
        kwargs["scale_factor"] = float(raw["scale_factor"])
    if "swap_rb" in raw:
        kwargs["swap_rb"] = _parse_bool(raw["swap_rb"])
    return ModelConfig(**kwargs)


def _build_detection_config(raw: dict) -> DetectionConfig:
    """Build DetectionConfig from a raw YAML dict."""
    kwargs = {}
    if "confidence_threshold" in raw:
        kwargs["confidence_threshold"] = float(raw["confidence_threshold"])
    return DetectionConfig(**kwargs)


def _build_pipeline_config(raw: dict) -> PipelineConfig:
    """Build PipelineConfig from a raw YAML dict."""
    kwargs = {}
    if "admission" in raw:
        kwargs["admission"] = str(raw["admission"]).lower()
    if "jpeg_quality" in raw:
        kwargs["jpeg_quality"] = int(raw["jpeg_quality"])
    return PipelineConfig(**kwargs)


def _build_input_config(raw: dict) -> InputConfig:
    """Build InputConfig from a raw YAML dict."""
    kwargs = {}
    if "source" in raw:
        kwargs["source"] = str(raw["source"])
    if "resize_width" in raw:
        val = raw["resize_width"]
        kwargs["resize_width"] = int(val) if val is not None else None
    if "rotation" in raw:
        kwargs["rotation"] = int(raw["rotation"])
    return InputConfig(**kwargs)


def _build_output_config(raw: dict) -> OutputConfig:
    """Build OutputConfig from a raw YAML dict."""
    kwargs = {}
    if "mode" in raw:
        kwargs["mode"] = str(raw["mode"]).lower()
    if "save_path" in raw:
        kwargs["save_path"] = str(raw["save_path"])
    return OutputConfig(**kwargs)


def _build_visualization_config(raw: dict) -> VisualizationConfig:
    """Build VisualizationConfig from a raw YAML dict."""
    kwargs = {}
    if "marker_color" in raw:
        kwargs["marker_color"] = _parse_tuple(raw["marker_color"], 3, int)
    if "marker_radius" in raw:
        kwargs["marker_radius"] = int(raw["marker_radius"])
    if "thickness" in raw:
        kwargs["thickness"] = int(raw["thickness"])
    if "show_label" in raw:
        kwargs["show_label"] = _parse_bool(raw["show_label"])
    return VisualizationConfig(**kwargs)


# ---------------------------------------------------------------------------
# Environment variable overrides
# ---------------------------------------------------------------------------

_ENV_PREFIX = "AR_DETECT_"


def _apply_env_overrides(raw: dict) -> dict:
    """Apply environment variable overrides to the raw config dict.

    Environment variables follow the pattern:
        AR_DETECT_DETECTOR_BACKEND=local_dnn
        AR_DETECT_DETECTOR_API_KEY=...
        AR_DETECT_INPUT_ROTATION=90

    The variable name maps to the nested config key by replacing
    underscores after the section name with dots.
    """
    env_map = {
        f"{_ENV_PREFIX}DETECTOR_BACKEND": ("detector", "backend"),
        f"{_ENV_PREFIX}DETECTOR_CREDENTIALS_PATH": ("detector", "credentials_path"),
        f"{_ENV_PREFIX}DETECTOR_API_KEY": ("detector", "api_key"),
        f"{_ENV_PREFIX}DETECTOR_TIMEOUT_S": ("detector", "timeout_s"),
        f"{_ENV_PREFIX}MODEL_BACKEND": ("model", "backend"),
        f"{_ENV_PREFIX}DETECTION_CONFIDENCE_THRESHOLD": ("detection", "confidence_threshold"),
        f"{_ENV_PREFIX}PIPELINE_ADMISSION": ("pipeline", "admission"),
        f"{_ENV_PREFIX}INPUT_SOURCE": ("input", "source"),
        f"{_ENV_PREFIX}INPUT_RESIZE_WIDTH": ("input", "resize_width"),
        f"{_ENV_PREFIX}INPUT_ROTATION": ("input", "rotation"),
        f"{_ENV_PREFIX}OUTPUT_MODE": ("output", "mode"),
        f"{_ENV_PREFIX}OUTPUT_SAVE_PATH": ("output", "save_path"),
    }

    for env_var, (section, key) in env_map.items():
        value = os.environ.get(env_var)
        if value is not None:
            raw.setdefault(section, {})[key] = value
            # Never echo secrets into the log.
            shown = "***" if key == "api_key" else value
            logger.debug("Config override from env: %s=%s", env_var, shown)

    return raw


# ---------------------------------------------------------------------------
# Public loader
# ---------------------------------------------------------------------------

def resolve_path(path: str) -> Path:
    """Resolve a config path relative to the project root."""
    resolved = Path(path)
    if not resolved.is_absolute():
        resolved = _PROJECT_ROOT / resolved
    return resolved


def load_config(config_path: Optional[str] = None) -> AppConfig:
    """Load and validate application configuration.

    Precedence (highest → lowest):
        Environment variables > YAML file > Hard-coded defaults

    Args:
        config_path: Path to a YAML configuration file. If None,
                     the system runs entirely on defaults (safe for
                     programmatic usage).

    Returns:
        A validated, frozen AppConfig instance.

    Raises:
        FileNotFoundError: If config_path is provided but does not exist.
        ValueError: If any configuration value is invalid.
        yaml.YAMLError: If the YAML file is malformed.
    """
    raw: dict = {}

    # --- Layer 1: YAML file ---
    if config_path is not None:
        resolved = resolve_path(config_path)

        if not resolved.is_file():
            raise FileNotFoundError(
                f"Configuration file not found: {resolved}. "
                f"Provide a valid path or omit to use defaults."
            )

        logger.info("Loading config from: %s", resolved)
        with open(resolved, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}

    # --- Layer 2: Environment variable overrides ---
    raw = _apply_env_overrides(raw)

    # --- Build typed configs ---
    config = AppConfig(
        detector=_build_detector_config(raw.get("detector", {})),
        model=_build_model_config(raw.get("model", {})),
        detection=_build_detection_config(raw.get("detection", {})),
        pipeline=_build_pipeline_config(raw.get("pipeline", {})),
        input=_build_input_config(raw.get("input", {})),
        output=_build_output_config(raw.get("output", {})),
        visualization=_build_visualization_config(raw.get("visualization", {})),
    )

    # --- Validate ---
    _validate(config)

    logger.debug("Configuration loaded (detector=%s)", config.detector.backend)
    return config
