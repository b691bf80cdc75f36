"""
Progress events and observers for batch transfers.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional


class Severity(Enum):
    INFO = 'info'
    SUCCESS = 'success'
    ERROR = 'error'


@dataclass
class ProgressEvent:
    """
    One user-visible message from a batch run.

    Attributes:
        message: Human readable text
        severity: How the message should be rendered
        completed: Items finished so far (progress events only)
        total: Items in the batch (progress events only)
    """
    message: str
    severity: Severity = Severity.INFO
    completed: Optional[int] = None
    total: Optional[int] = None


class TransferObserver:
    """
    Receives events from the batch orchestrators. Subclass and override.
    """

    def on_progress(self, event: ProgressEvent) -> None:
        """Called for intermediate events."""

    def on_complete(self, event: ProgressEvent) -> None:
        """Called exactly once with the terminal summary."""

    def __call__(self, event: ProgressEvent) -> None:
        self.on_progress(event)


LEVELS = {
    Severity.INFO: logging.INFO,
    Severity.SUCCESS: logging.INFO,
    Severity.ERROR: logging.ERROR,
}


class LoggingObserver(TransferObserver):
    """Writes every event to a logger at the level matching its severity."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)

    def on_progress(self, event: ProgressEvent) -> None:
        self.logger.log(LEVELS[event.severity], event.message)

    def on_complete(self, event: ProgressEvent) -> None:
        self.logger.log(LEVELS[event.severity], event.message)
