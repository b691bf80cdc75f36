"""
Batch transfer client for the image asset server.

    1. Upload: discover files from a JSON job file and upload them concurrently
    2. Export: download assets into a local directory with collision-safe names

Both run on a bounded asyncio worker pool and report through an observer.
"""

__version__ = "1.0.0"

from .errors import TransferError, NetworkError, HttpStatusError, UnsupportedFileTypeError, JobConfigError
from .config import TransferConfig
from .pool import run_bounded
from .progress import Severity, ProgressEvent, TransferObserver, LoggingObserver
from .transfer_stats import UploadStats, ExportStats
from .job_config import UploadJobEntry, load_job_config
from .api_client import AssetApiClient, UploadResult
from .batch_upload import BatchUploader, UploadItem
from .batch_export import BatchExporter, ExportItem

__all__ = [
    "TransferError",
    "NetworkError",
    "HttpStatusError",
    "UnsupportedFileTypeError",
    "JobConfigError",
    "TransferConfig",
    "run_bounded",
    "Severity",
    "ProgressEvent",
    "TransferObserver",
    "LoggingObserver",
    "UploadStats",
    "ExportStats",
    "UploadJobEntry",
    "load_job_config",
    "AssetApiClient",
    "UploadResult",
    "BatchUploader",
    "UploadItem",
    "BatchExporter",
    "ExportItem",
]
