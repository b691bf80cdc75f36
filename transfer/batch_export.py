"""
BatchExporter - Downloads a set of assets into a local directory.
"""

import logging
import os
import re
from dataclasses import dataclass
from typing import Iterable, Optional, Set

from .errors import TransferError
from .pool import run_bounded
from .progress import LoggingObserver, ProgressEvent, Severity, TransferObserver
from .transfer_stats import ExportStats

UNSAFE_CHARS = re.compile(r'[^A-Za-z0-9._-]')


@dataclass(frozen=True)
class ExportItem:
    """
    Descriptor of one asset to export.

    Attributes:
        id: Asset id
        folder: Server-side folder
        stored_filename: Name of the stored original
        display_name: User-facing name the file is saved under
    """
    id: str
    folder: str
    stored_filename: str
    display_name: str

    @classmethod
    def from_record(cls, record: dict) -> 'ExportItem':
        """Build from an asset record as returned by the listing API."""
        return cls(
            id=record['id'],
            folder=record['folder'],
            stored_filename=record['stored_filename'],
            display_name=record.get('original_name') or record.get('display_name') or '',
        )


def sanitize_filename(display_name: str, stored_filename: str) -> str:
    """
    Make a display name safe to use as a local filename.

    Every character outside [A-Za-z0-9._-] becomes an underscore. A name
    that is empty (or only dots) falls back to "default" plus the stored
    file's extension.
    """
    name = UNSAFE_CHARS.sub('_', display_name or '')
    if not name.strip('.'):
        name = 'default' + os.path.splitext(stored_filename)[1]
    return name


def reserve_destination(destination: str, filename: str, reserved: Set[str]) -> str:
    """
    Claim a path in ``destination`` that no other file or batch item uses.

    "photo.jpg" becomes "photo_1.jpg", "photo_2.jpg", ... until the name is
    free both on disk and in ``reserved``. The chosen name is added to
    ``reserved``.

    Returns:
        The reserved path
    """
    stem, ext = os.path.splitext(filename)
    candidate = filename
    counter = 1
    while candidate in reserved or os.path.exists(os.path.join(destination, candidate)):
        candidate = f"{stem}_{counter}{ext}"
        counter += 1
    reserved.add(candidate)
    return os.path.join(destination, candidate)


class BatchExporter:
    """
    Downloads assets concurrently with collision-safe local names.

    A failed download leaves no partial file and does not affect the other
    items of the batch.
    """

    def __init__(self, api, concurrency: int = 5, logger: Optional[logging.Logger] = None):
        self.api = api
        self.concurrency = concurrency
        self.logger = logger or logging.getLogger(__name__)

    async def run(
        self,
        items: Iterable[ExportItem],
        destination: str,
        observer: Optional[TransferObserver] = None
    ) -> ExportStats:
        """
        Export items into ``destination``.

        Args:
            items: Assets to download
            destination: Local directory, created if missing
            observer: Receives per-item events and the terminal summary

        Returns:
            ExportStats for this run
        """
        observer = observer or LoggingObserver(self.logger)
        items = list(items)
        stats = ExportStats(total=len(items), destination=destination)
        os.makedirs(destination, exist_ok=True)

        # names claimed by this batch, in addition to files already on disk
        reserved: Set[str] = set()

        async def export(item: ExportItem) -> None:
            await self._export_one(item, destination, reserved, stats, observer)

        await run_bounded(items, self.concurrency, export, self.logger)

        self.logger.info(
            f"Export complete: {stats.succeeded} downloaded, {stats.failed} failed "
            f"({stats.bytes_written} bytes) in {stats.elapsed_seconds:.1f}s"
        )
        observer.on_complete(ProgressEvent(stats.summary_message, stats.severity))
        return stats

    async def _export_one(
        self,
        item: ExportItem,
        destination: str,
        reserved: Set[str],
        stats: ExportStats,
        observer: TransferObserver
    ) -> None:
        dest_path = reserve_destination(destination, sanitize_filename(item.display_name, item.stored_filename), reserved)
        url = self.api.asset_url(item.folder, item.stored_filename)
        try:
            written = await self.api.download(url, dest_path)
        except (TransferError, OSError) as e:
            stats.failed += 1
            message = f"Failed {item.display_name}: {e}"
            stats.error_details.append(message)
            observer.on_progress(ProgressEvent(message, Severity.ERROR))
            return

        stats.succeeded += 1
        stats.bytes_written += written
        observer.on_progress(ProgressEvent(
            f"Downloaded {stats.completed_count}/{stats.total}: {os.path.basename(dest_path)}",
            completed=stats.completed_count,
            total=stats.total,
        ))
