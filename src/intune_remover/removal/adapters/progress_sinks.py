"""Progress sink adapters.

The removal workflow reports each record (and each skipped Autopilot stage)
as a ProgressEvent. Sinks decide what to do with them: the CLI logs them, a
UI would forward them to its window, tests collect them.
"""

import logging
from typing import Callable, Optional

from ..domain.entities import SKIPPED, ProgressEvent, RecordStatus
from ..domain.ports import IProgressSink

logger = logging.getLogger(__name__)


class LoggingProgressSink(IProgressSink):
    """Writes progress events to the ``intune_remover.progress`` logger."""

    _LEVELS = {
        RecordStatus.FAILURE.value: logging.WARNING,
        RecordStatus.ERROR.value: logging.WARNING,
    }

    def __init__(self, log: Optional[logging.Logger] = None):
        self.log = log or logging.getLogger("intune_remover.progress")

    def emit(self, event: ProgressEvent) -> None:
        level = self._LEVELS.get(event.status, logging.INFO)
        if event.status == SKIPPED:
            message = f"{event.serial}: skipping {event.stage.value}"
        elif event.device_id:
            message = f"{event.serial}: {event.stage.value} device {event.device_id} -> {event.status}"
        else:
            message = f"{event.serial}: {event.stage.value} -> {event.status}"
        if event.detail:
            message = f"{message} ({event.detail})"
        self.log.log(level, message)


class CollectingProgressSink(IProgressSink):
    """Keeps every event in memory, optionally forwarding to a callback."""

    def __init__(self, callback: Optional[Callable[[ProgressEvent], None]] = None):
        self.events: list[ProgressEvent] = []
        self.callback = callback

    def emit(self, event: ProgressEvent) -> None:
        self.events.append(event)
        if self.callback is not None:
            try:
                self.callback(event)
            except Exception as e:
                logger.warning(f"Progress callback failed: {e}")


class NullProgressSink(IProgressSink):
    """Discards every event."""

    def emit(self, event: ProgressEvent) -> None:
        pass
