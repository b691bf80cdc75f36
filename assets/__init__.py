"""
Asset pipelines for the image asset server.

    1. Ingest: validate, hash, name, thumbnail, relocate and record an upload
    2. Crop: derive a new, independent asset from a rectangle of an existing one
    3. Edit: metadata merge, folder moves, EXIF writes and soft deletion

Catalog access is injected; see asset_db.AssetDb for the MySQL implementation.
"""

__version__ = "1.0.0"

from .errors import (
    AssetError,
    ValidationError,
    InvalidFileTypeError,
    FileTooLargeError,
    InvalidImageError,
    DuplicateAssetError,
    ThumbnailGenerationError,
    RelocationError,
    CropError,
    InvalidCropRegionError,
    AssetNotFoundError,
    AlreadyDeletedError,
    InvalidExifValueError,
    ExifWriteError,
    CatalogError,
)
from .metadata import AssetMetadata
from .asset_record import AssetRecord
from .processor import AssetProcessor
from .ingest import IngestPipeline, IngestState
from .crop import CropBox, CropPipeline, CropState
from .editing import AssetEditor

__all__ = [
    "AssetError",
    "ValidationError",
    "InvalidFileTypeError",
    "FileTooLargeError",
    "InvalidImageError",
    "DuplicateAssetError",
    "ThumbnailGenerationError",
    "RelocationError",
    "CropError",
    "InvalidCropRegionError",
    "AssetNotFoundError",
    "AlreadyDeletedError",
    "InvalidExifValueError",
    "ExifWriteError",
    "CatalogError",
    "AssetMetadata",
    "AssetRecord",
    "AssetProcessor",
    "IngestPipeline",
    "IngestState",
    "CropBox",
    "CropPipeline",
    "CropState",
    "AssetEditor",
]
