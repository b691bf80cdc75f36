"""
IngestPipeline - Turns a staged upload into a persisted asset.

The pipeline is a small state machine. Each completed step advances
``IngestState``; when a step fails, the files to delete are looked up from
the last completed state in ``ROLLBACK_ARTIFACTS``.
"""

import logging
import os
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .asset_record import AssetRecord
from .errors import DuplicateAssetError, RelocationError, ValidationError
from .hasher import hash_file
from .metadata import AssetMetadata
from .naming import DEFAULT_FOLDER, asset_path_for, is_valid_folder, thumbnail_path_for, unique_filename
from .storage import delete_if_exists, discard, move_file


class IngestState(Enum):
    STAGED = 'staged'
    VALIDATED = 'validated'
    HASHED = 'hashed'
    NAMES_ASSIGNED = 'names_assigned'
    THUMBNAIL_GENERATED = 'thumbnail_generated'
    RELOCATED = 'relocated'
    PERSISTED = 'persisted'


# last completed state -> artifacts the failing step leaves behind
ROLLBACK_ARTIFACTS = {
    IngestState.STAGED: ('staged',),
    IngestState.VALIDATED: ('staged',),
    IngestState.HASHED: ('staged',),
    IngestState.NAMES_ASSIGNED: ('staged', 'thumbnail'),
    IngestState.THUMBNAIL_GENERATED: ('staged', 'thumbnail', 'final'),
    IngestState.RELOCATED: ('final', 'thumbnail'),
    IngestState.PERSISTED: (),
}


@dataclass
class IngestRun:
    """Working state of one ingest."""
    staged_path: str
    original_name: str
    mime_type: str
    folder: str
    state: IngestState = IngestState.STAGED
    metadata: Optional[AssetMetadata] = None
    content_hash: Optional[str] = None
    stored_filename: Optional[str] = None
    final_path: Optional[str] = None
    thumbnail_path: Optional[str] = None

    def artifact(self, name: str) -> Optional[str]:
        return {
            'staged': self.staged_path,
            'thumbnail': self.thumbnail_path,
            'final': self.final_path,
        }[name]


class IngestPipeline:
    """
    Validates, hashes, names, thumbnails, relocates and records an upload.
    """

    def __init__(self, catalog, processor, storage_root: str, logger: Optional[logging.Logger] = None):
        """
        Args:
            catalog: Asset catalog (AssetDb or compatible)
            processor: AssetProcessor used for decoding and thumbnails
            storage_root: Root directory holding the folder tree
            logger: Optional logger instance
        """
        self.catalog = catalog
        self.processor = processor
        self.storage_root = storage_root
        self.logger = logger or logging.getLogger(__name__)

    def ingest(
        self,
        staged_path: str,
        original_name: str,
        mime_type: str,
        folder: str = DEFAULT_FOLDER
    ) -> AssetRecord:
        """
        Run an upload through the pipeline.

        Args:
            staged_path: The upload as saved in the staging area
            original_name: Filename supplied by the client
            mime_type: Mime type supplied by the client
            folder: Destination folder

        Returns:
            The persisted AssetRecord

        Raises:
            ValidationError: Invalid folder name
            InvalidImageError: The file does not decode
            DuplicateAssetError: A live asset already has the same content
            ThumbnailGenerationError, RelocationError: Storage failures
        """
        folder = folder or DEFAULT_FOLDER
        if not is_valid_folder(folder):
            delete_if_exists(staged_path)
            raise ValidationError(f"Invalid folder name: {folder!r}")

        run = IngestRun(staged_path, original_name, mime_type, folder)
        try:
            return self._run(run)
        except Exception as e:
            self.rollback(run)
            self.logger.warning(f"Ingest of {original_name} failed after {run.state.value}: {e}")
            raise

    def _run(self, run: IngestRun) -> AssetRecord:
        run.metadata = self.processor.validate_and_extract_metadata(run.staged_path)
        run.state = IngestState.VALIDATED

        run.content_hash = hash_file(run.staged_path)
        run.state = IngestState.HASHED

        existing = self.catalog.find_live_by_hash(run.content_hash)
        if existing is not None:
            raise DuplicateAssetError(existing.id)

        run.stored_filename = unique_filename(run.original_name, run.content_hash)
        run.final_path = asset_path_for(self.storage_root, run.folder, run.stored_filename)
        run.thumbnail_path = thumbnail_path_for(self.storage_root, run.folder, run.stored_filename)
        run.state = IngestState.NAMES_ASSIGNED

        self.processor.generate_thumbnail(run.staged_path, run.thumbnail_path)
        run.state = IngestState.THUMBNAIL_GENERATED

        try:
            move_file(run.staged_path, run.final_path)
        except OSError as e:
            self.logger.error(f"Failed to move {run.staged_path} to {run.final_path}: {e}")
            raise RelocationError("Failed to move upload into storage")
        run.state = IngestState.RELOCATED

        record = AssetRecord(
            stored_filename=run.stored_filename,
            absolute_path=run.final_path,
            thumbnail_path=run.thumbnail_path,
            folder=run.folder,
            size_bytes=os.path.getsize(run.final_path),
            mime_type=run.mime_type,
            content_hash=run.content_hash,
            original_name=run.original_name,
            metadata=run.metadata,
        )
        saved = self.catalog.create_asset(record)
        run.state = IngestState.PERSISTED

        self.logger.info(f"Ingested {run.original_name} as {saved.id} ({saved.folder}/{saved.stored_filename})")
        return saved

    def rollback(self, run: IngestRun) -> None:
        """Delete every artifact the failed run left behind."""
        discard(run.artifact(name) for name in ROLLBACK_ARTIFACTS[run.state])
