"""
AssetRecord - Catalog record for a single stored image.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from .metadata import AssetMetadata


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _parse_iso(value) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)


@dataclass
class AssetRecord:
    """
    Catalog record for one stored image, original or derived.

    Attributes:
        id: Opaque UUID, immutable
        stored_filename: "<hash>_<millis><ext>", unique within the folder
        absolute_path: Location of the stored original
        thumbnail_path: Location of the WebP thumbnail
        folder: Logical grouping
        size_bytes: Size of the stored file
        mime_type: Mime type of the upload
        content_hash: Digest of the file bytes (duplicate detection key)
        original_name: User-facing filename, used for exports
        metadata: Descriptive and EXIF attributes
        created_at, updated_at: Server-assigned timestamps
        deleted_at: Soft-delete marker
    """
    stored_filename: str
    absolute_path: str
    thumbnail_path: Optional[str]
    folder: str
    size_bytes: int
    mime_type: str
    content_hash: str
    original_name: str
    metadata: AssetMetadata = field(default_factory=AssetMetadata)
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)
    deleted_at: Optional[datetime] = None

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'stored_filename': self.stored_filename,
            'absolute_path': self.absolute_path,
            'thumbnail_path': self.thumbnail_path,
            'folder': self.folder,
            'size_bytes': self.size_bytes,
            'mime_type': self.mime_type,
            'content_hash': self.content_hash,
            'original_name': self.original_name,
            'metadata': self.metadata.to_dict(),
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at),
            'deleted_at': _iso(self.deleted_at),
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'AssetRecord':
        return cls(
            id=data['id'],
            stored_filename=data['stored_filename'],
            absolute_path=data['absolute_path'],
            thumbnail_path=data.get('thumbnail_path'),
            folder=data['folder'],
            size_bytes=data['size_bytes'],
            mime_type=data['mime_type'],
            content_hash=data['content_hash'],
            original_name=data['original_name'],
            metadata=AssetMetadata.from_dict(data.get('metadata')),
            created_at=_parse_iso(data.get('created_at')) or utcnow(),
            updated_at=_parse_iso(data.get('updated_at')) or utcnow(),
            deleted_at=_parse_iso(data.get('deleted_at')),
        )

    def to_export_item(self) -> dict:
        """Descriptor consumed by the batch export client."""
        return {
            'id': self.id,
            'folder': self.folder,
            'stored_filename': self.stored_filename,
            'display_name': self.original_name,
        }
