"""
Error taxonomy for the asset pipelines.

Every error carries the HTTP status and machine-readable code the server
reports for it, so the route layer only has to translate, never classify.
"""

from typing import Any, Optional


class AssetError(Exception):
    """Base class for failures surfaced to API clients."""

    status = 500
    code = 'INTERNAL_ERROR'

    def __init__(self, message: str, code: Optional[str] = None, details: Any = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        self.details = details

    def to_dict(self) -> dict:
        payload = {'message': self.message, 'code': self.code}
        if self.details is not None:
            payload['details'] = self.details
        return payload


class ValidationError(AssetError):
    """Raised when a request is malformed, before any pipeline logic runs."""
    status = 400
    code = 'VALIDATION_ERROR'


class InvalidFileTypeError(AssetError):
    status = 400
    code = 'INVALID_FILE_TYPE'


class FileTooLargeError(AssetError):
    status = 413
    code = 'FILE_TOO_LARGE'


class InvalidImageError(AssetError):
    """Raised when the image codec cannot decode the staged file."""
    status = 400
    code = 'INVALID_IMAGE'


class DuplicateAssetError(AssetError):
    """Raised when a live asset with identical content already exists."""
    status = 409
    code = 'DUPLICATE_IMAGE'

    def __init__(self, existing_id: Optional[str], message: str = "Image already exists"):
        super().__init__(message, details={'existing_id': existing_id})
        self.existing_id = existing_id


class ThumbnailGenerationError(AssetError):
    status = 500
    code = 'THUMBNAIL_FAILED'


class RelocationError(AssetError):
    status = 500
    code = 'RELOCATION_FAILED'


class CropError(AssetError):
    status = 500
    code = 'CROP_FAILED'


class InvalidCropRegionError(CropError):
    """Raised when the crop rectangle does not fit inside the source image."""
    status = 400
    code = 'INVALID_CROP_REGION'


class AssetNotFoundError(AssetError):
    status = 404
    code = 'NOT_FOUND'

    def __init__(self, asset_id: str):
        super().__init__(f"Image not found: {asset_id}")
        self.asset_id = asset_id


class AlreadyDeletedError(AssetError):
    status = 400
    code = 'ALREADY_DELETED'


class InvalidExifValueError(AssetError):
    status = 400
    code = 'INVALID_EXIF_VALUE'


class ExifWriteError(AssetError):
    """Raised when tags cannot be written back into the image file."""
    status = 422
    code = 'EXIF_WRITE_FAILED'


class CatalogError(AssetError):
    status = 500
    code = 'DATABASE_ERROR'
