"""
UploadStats / ExportStats - Counters for a single batch run.
"""

import time
from dataclasses import dataclass, field
from typing import List

from .progress import Severity

BYTES_PER_MB = 1024 * 1024


@dataclass
class UploadStats:
    """
    Statistics for a batch upload.

    Attributes:
        total: Files discovered
        succeeded: Files the server stored
        failed: Files that were not stored, duplicates included
        duplicates: Subset of failed rejected as duplicates
        total_bytes: Bytes of the files that succeeded
        start_time: Start timestamp
        error_details: One message per failure
    """
    total: int = 0
    succeeded: int = 0
    failed: int = 0
    duplicates: int = 0
    total_bytes: int = 0
    start_time: float = field(default_factory=time.time)
    error_details: List[str] = field(default_factory=list)

    @property
    def completed_count(self) -> int:
        return self.succeeded + self.failed

    @property
    def total_mb(self) -> float:
        return self.total_bytes / BYTES_PER_MB

    @property
    def elapsed_seconds(self) -> float:
        return time.time() - self.start_time

    @property
    def summary_message(self) -> str:
        return (
            f"Batch upload complete. Success: {self.succeeded}, "
            f"Failed: {self.failed}, Total Size: {self.total_mb:.2f} MB"
        )

    @property
    def severity(self) -> Severity:
        return Severity.ERROR if self.failed > 0 else Severity.SUCCESS


@dataclass
class ExportStats:
    """
    Statistics for a batch export.

    Attributes:
        total: Items requested
        succeeded: Files written to the destination
        failed: Items that could not be downloaded
        bytes_written: Bytes of the files written
        destination: Target directory
        start_time: Start timestamp
        error_details: One message per failure
    """
    total: int = 0
    succeeded: int = 0
    failed: int = 0
    bytes_written: int = 0
    destination: str = ''
    start_time: float = field(default_factory=time.time)
    error_details: List[str] = field(default_factory=list)

    @property
    def completed_count(self) -> int:
        return self.succeeded + self.failed

    @property
    def elapsed_seconds(self) -> float:
        return time.time() - self.start_time

    @property
    def summary_message(self) -> str:
        return f"Successfully downloaded {self.succeeded} images to {self.destination}"

    @property
    def severity(self) -> Severity:
        return Severity.ERROR if self.failed > 0 else Severity.SUCCESS
