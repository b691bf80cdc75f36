"""
BatchUploader - Discovers local image files and uploads them concurrently.
"""

import asyncio
import logging
import os
from dataclasses import dataclass
from typing import Iterable, List, Optional

from .errors import TransferError, UnsupportedFileTypeError
from .job_config import UploadJobEntry, normalize_extension
from .pool import run_bounded
from .progress import LoggingObserver, ProgressEvent, Severity, TransferObserver
from .transfer_stats import UploadStats

MIME_TYPES = {
    'jpg': 'image/jpeg',
    'jpeg': 'image/jpeg',
    'png': 'image/png',
    'tif': 'image/tiff',
    'tiff': 'image/tiff',
}


@dataclass(frozen=True)
class UploadItem:
    path: str
    display_name: str


def mime_type_for(filename: str) -> str:
    """Mime type from the file extension; anything unmapped is unsupported."""
    ext = normalize_extension(os.path.splitext(filename)[1])
    try:
        return MIME_TYPES[ext]
    except KeyError:
        raise UnsupportedFileTypeError(f"Unsupported file type: .{ext}" if ext else "File has no extension")


def read_file(path: str) -> bytes:
    with open(path, 'rb') as f:
        return f.read()


class BatchUploader:
    """
    Uploads every matching file of a job descriptor.

    Failures are isolated per file: they are counted, reported to the
    observer and never stop the other uploads.
    """

    def __init__(
        self,
        api,
        concurrency: int = 5,
        progress_interval: int = 5,
        folder: Optional[str] = None,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize uploader.

        Args:
            api: AssetApiClient (or compatible) used for the uploads
            concurrency: Maximum uploads in flight
            progress_interval: Emit a progress event every N completions
            folder: Server-side folder to upload into (server default if None)
            logger: Optional logger instance
        """
        self.api = api
        self.concurrency = concurrency
        self.progress_interval = progress_interval
        self.folder = folder
        self.logger = logger or logging.getLogger(__name__)

    def discover(self, entries: Iterable[UploadJobEntry], observer: TransferObserver) -> List[UploadItem]:
        """
        Expand job entries into upload items.

        Missing or unreadable folders are reported and skipped.
        """
        items: List[UploadItem] = []
        for entry in entries:
            folder = entry.folder_path
            if not os.path.isdir(folder):
                observer.on_progress(ProgressEvent(f"Skipping missing folder: {folder}", Severity.ERROR))
                continue

            try:
                names = sorted(os.listdir(folder))
            except OSError as e:
                observer.on_progress(ProgressEvent(f"Error reading folder {folder}: {e}", Severity.ERROR))
                continue

            for name in names:
                path = os.path.join(folder, name)
                if os.path.isfile(path) and entry.matches(name):
                    items.append(UploadItem(path=path, display_name=name))

        self.logger.debug(f"Discovered {len(items)} files")
        return items

    async def run(
        self,
        entries: Iterable[UploadJobEntry],
        observer: Optional[TransferObserver] = None
    ) -> UploadStats:
        """
        Discover and upload.

        Args:
            entries: Parsed job descriptor
            observer: Receives progress and the terminal summary

        Returns:
            UploadStats for this run
        """
        observer = observer or LoggingObserver(self.logger)
        items = self.discover(entries, observer)
        stats = UploadStats(total=len(items))

        if not items:
            observer.on_complete(ProgressEvent("No files to upload"))
            return stats

        observer.on_progress(ProgressEvent(f"Found {stats.total} files to upload. Starting..."))

        async def upload(item: UploadItem) -> None:
            await self._upload_one(item, stats, observer)

        await run_bounded(items, self.concurrency, upload, self.logger)

        self.logger.info(
            f"Upload complete: {stats.succeeded} stored, {stats.failed} failed "
            f"({stats.duplicates} duplicates) in {stats.elapsed_seconds:.1f}s"
        )
        observer.on_complete(ProgressEvent(stats.summary_message, stats.severity))
        return stats

    async def _upload_one(self, item: UploadItem, stats: UploadStats, observer: TransferObserver) -> None:
        try:
            mime_type = mime_type_for(item.display_name)
            data = await asyncio.to_thread(read_file, item.path)
            result = await self.api.upload(item.display_name, data, mime_type, folder=self.folder)

            if result.created:
                stats.succeeded += 1
                stats.total_bytes += len(data)
                self.logger.debug(f"Uploaded {item.display_name} ({len(data)} bytes)")
            else:
                if result.duplicate:
                    stats.duplicates += 1
                self._record_failure(stats, observer, f"Failed: {item.display_name} - {result.message}")
        except (TransferError, OSError) as e:
            self._record_failure(stats, observer, f"Error uploading {item.display_name}: {e}")
        except Exception as e:
            self._record_failure(stats, observer, f"Error uploading {item.display_name}: {e}")
            raise
        finally:
            self._report_progress(stats, observer)

    def _record_failure(self, stats: UploadStats, observer: TransferObserver, message: str) -> None:
        stats.failed += 1
        stats.error_details.append(message)
        observer.on_progress(ProgressEvent(message, Severity.ERROR))

    def _report_progress(self, stats: UploadStats, observer: TransferObserver) -> None:
        completed = stats.completed_count
        if completed % self.progress_interval == 0 or completed == stats.total:
            observer.on_progress(ProgressEvent(
                f"Processed {completed}/{stats.total}",
                completed=completed,
                total=stats.total,
            ))
