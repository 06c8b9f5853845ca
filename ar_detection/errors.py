"""
Error types for the AR detection library.

Every failure raised by this package derives from DetectionError so that
callers can handle "this frame produced no results" with a single except
clause, while still distinguishing the cause when they need to.

Kinds:
    - ConfigurationError: credentials or detector settings are missing or
      invalid. Raised at startup (and by the disabled detector variant).
    - InvalidArgument: a contract violation by the caller (unsupported
      rotation, empty polygon). Not retried.
    - DetectionServiceError: the backing detector call failed.
    - CapabilityUnavailable: a host capability (camera) cannot be used.
    - Busy: admission rejected because a classify call is still in flight.
"""


class DetectionError(Exception):
    """Base class for all errors raised by ar_detection."""


class ConfigurationError(DetectionError):
    """Detector configuration or credentials are missing or invalid."""


class InvalidArgument(DetectionError, ValueError):
    """A caller passed a value outside the supported contract."""


class DetectionServiceError(DetectionError):
    """The detector (remote service or local model) failed to answer."""


class CapabilityUnavailable(DetectionError, RuntimeError):
    """A required host capability, such as camera access, is unavailable."""


class Busy(DetectionError):
    """A classify call is already in flight on this pipeline."""
