"""
Lifecycle holder for a frame source.

Responsibility:
    Own a frame source across explicit start / stop / shutdown calls so
    that the host (CLI, service, UI) decides when camera resources are
    held. Creating the source may fail, for example when camera access is
    denied; the failure is reported through ``exception_callback`` and
    the session stays stopped.

    start()     create the source once (cached) and begin yielding frames
    stop()      pause; the source stays open, frames() yields nothing
    shutdown()  release the source and forget it

Non-goals:
    - No permission prompts, installs or UI.
"""

import logging
from typing import Callable, Iterator, Optional

from ar_detection.frame import Frame
from ar_detection.input_handler import InputHandler

logger = logging.getLogger(__name__)


class SessionLifecycle:
    """Start/stop/shutdown wrapper around an InputHandler factory.

    Attributes:
        before_start: Called with the source after creation and before the
                      session starts running. Use it to configure the source.
        exception_callback: Receives exceptions raised while creating or
                            starting the source. When unset they propagate.
    """

    def __init__(self, source_factory: Callable[[], InputHandler]) -> None:
        self._source_factory = source_factory
        self._source: Optional[InputHandler] = None
        self._running = False
        self.before_start: Optional[Callable[[InputHandler], None]] = None
        self.exception_callback: Optional[Callable[[Exception], None]] = None

    @property
    def source(self) -> Optional[InputHandler]:
        return self._source

    @property
    def running(self) -> bool:
        return self._running

    def _try_create_source(self) -> Optional[InputHandler]:
        try:
            return self._source_factory()
        except Exception as e:
            if self.exception_callback is None:
                raise
            logger.error("Failed to create frame source: %s", e)
            self.exception_callback(e)
            return None

    def start(self) -> bool:
        """Create (if needed) and resume the frame source.

        Returns:
            True if the session is running afterwards.
        """
        if self._running:
            return True

        source = self._source or self._try_create_source()
        if source is None:
            return False

        try:
            if self.before_start is not None:
                self.before_start(source)
        except Exception as e:
            source.release()
            self._source = None
            if self.exception_callback is None:
                raise
            logger.error("Frame source setup failed: %s", e)
            self.exception_callback(e)
            return False

        self._source = source
        self._running = True
        logger.info("Session started (mode=%s).", source.mode)
        return True

    def stop(self) -> None:
        """Pause the session. The source is kept for a later start()."""
        if self._running:
            self._running = False
            logger.info("Session paused.")

    def shutdown(self) -> None:
        """Release the frame source."""
        self._running = False
        if self._source is not None:
            self._source.release()
            self._source = None
            logger.info("Session shut down.")

    def frames(self) -> Iterator[Frame]:
        """Yield frames while the session is running."""
        if self._source is None:
            return
        frames = iter(self._source)
        while self._running:
            frame = next(frames, None)
            if frame is None:
                return
            yield frame
