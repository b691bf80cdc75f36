"""
AssetEditor - Metadata, folder and EXIF edits plus soft deletion.
"""

import logging
import os
import secrets
import shutil
from typing import Iterable, List, Optional

from . import exif
from .asset_record import AssetRecord, utcnow
from .errors import AlreadyDeletedError, AssetNotFoundError, DuplicateAssetError, RelocationError, ValidationError
from .hasher import hash_file
from .metadata import AssetMetadata
from .naming import asset_path_for, is_valid_folder, preview_path_for, thumbnail_path_for
from .storage import delete_if_exists, discard, move_file

PREVIEW_MIME_TYPES = ('image/tiff',)


class AssetEditor:
    """
    Applies edits to existing assets.

    Every edit that touches files leaves the catalog and the filesystem
    consistent: file changes are undone if the catalog update fails.
    """

    def __init__(self, catalog, processor, storage_root: str, logger: Optional[logging.Logger] = None):
        self.catalog = catalog
        self.processor = processor
        self.storage_root = storage_root
        self.logger = logger or logging.getLogger(__name__)

    def get(self, asset_id: str) -> AssetRecord:
        record = self.catalog.get_asset(asset_id)
        if record is None:
            raise AssetNotFoundError(asset_id)
        return record

    def update(
        self,
        asset_id: str,
        metadata: Optional[dict] = None,
        folder: Optional[str] = None
    ) -> AssetRecord:
        """
        Merge metadata into an asset and/or move it to another folder.

        Args:
            asset_id: Asset to edit
            metadata: Keys to merge into the stored metadata
            folder: New folder name

        Returns:
            The updated record
        """
        if metadata is None and folder is None:
            raise ValidationError("Nothing to update: supply metadata and/or folder")
        if metadata is not None and not isinstance(metadata, dict):
            raise ValidationError("metadata must be an object")
        if folder is not None and not is_valid_folder(folder):
            raise ValidationError(f"Invalid folder name: {folder!r}")

        record = self.get(asset_id)
        if metadata:
            record.metadata = record.metadata.merged(AssetMetadata.from_dict(metadata))

        moves = []
        if folder is not None and folder != record.folder:
            moves = self._move_to_folder(record, folder)

        record.updated_at = utcnow()
        try:
            saved = self.catalog.update_asset(record)
        except Exception:
            self._undo_moves(moves)
            raise

        self.logger.info(f"Updated {asset_id}" + (f", moved to {folder}" if moves else ""))
        return saved

    def _move_to_folder(self, record: AssetRecord, folder: str) -> List[tuple]:
        new_path = asset_path_for(self.storage_root, folder, record.stored_filename)
        new_thumb = thumbnail_path_for(self.storage_root, folder, record.stored_filename)
        if os.path.exists(new_path):
            raise RelocationError(f"{record.stored_filename} already exists in folder {folder}")

        moves = []
        try:
            move_file(record.absolute_path, new_path)
            moves.append((record.absolute_path, new_path))
            if record.thumbnail_path and os.path.exists(record.thumbnail_path):
                move_file(record.thumbnail_path, new_thumb)
                moves.append((record.thumbnail_path, new_thumb))
        except OSError as e:
            self.logger.error(f"Failed to move {record.id} to folder {folder}: {e}")
            self._undo_moves(moves)
            raise RelocationError(f"Failed to move asset to folder {folder}")

        delete_if_exists(preview_path_for(record.absolute_path))
        record.folder = folder
        record.absolute_path = new_path
        record.thumbnail_path = new_thumb
        return moves

    def _undo_moves(self, moves: List[tuple]) -> None:
        for original, moved in reversed(moves):
            try:
                move_file(moved, original)
            except OSError as e:
                self.logger.error(f"Could not move {moved} back to {original}: {e}")

    def update_exif(self, asset_id: str, tags: dict) -> AssetRecord:
        """
        Write EXIF tags into the stored file and refresh the catalog.

        The edit is made on a working copy. The original is swapped out only
        once the new bytes are known not to collide with another live asset,
        and is restored if the catalog update fails.
        """
        exif.validate_tags(tags)
        record = self.get(asset_id)

        path = record.absolute_path
        stem, ext = os.path.splitext(path)
        token = secrets.token_hex(4)
        working = f"{stem}.edit-{token}{ext}"
        backup = f"{stem}.orig-{token}{ext}"

        try:
            shutil.copy2(path, working)
            written = exif.write_tags(working, tags)
            content_hash = hash_file(working)
            existing = self.catalog.find_live_by_hash(content_hash)
            if existing is not None and existing.id != record.id:
                raise DuplicateAssetError(existing.id, "Edited image duplicates an existing image")

            record.content_hash = content_hash
            record.size_bytes = os.path.getsize(working)
            record.metadata = record.metadata.with_exif(
                {name: written.get(name) for name in exif.EDITABLE_EXIF_FIELDS})
            record.updated_at = utcnow()

            os.replace(path, backup)
            os.replace(working, path)
            try:
                saved = self.catalog.update_asset(record)
            except Exception:
                os.replace(backup, path)
                raise
        finally:
            discard([working, backup])

        delete_if_exists(preview_path_for(path))
        self.logger.info(f"Updated EXIF of {asset_id}: {', '.join(sorted(tags))}")
        return saved

    def preview_for(self, record: AssetRecord) -> str:
        """
        Path of the file to serve for an asset.

        TIFF originals are served through a lossless WebP preview that is
        rendered on first request and cached beside the original.
        """
        if record.mime_type not in PREVIEW_MIME_TYPES:
            return record.absolute_path

        preview = preview_path_for(record.absolute_path)
        if not os.path.exists(preview):
            # rendered under a private name, then swapped in
            partial = f"{preview}.{secrets.token_hex(4)}.partial"
            self.processor.render_preview(record.absolute_path, partial)
            os.replace(partial, preview)
        return preview

    def delete(self, asset_id: str) -> AssetRecord:
        record = self.catalog.get_asset(asset_id, include_deleted=True)
        if record is None:
            raise AssetNotFoundError(asset_id)
        if record.is_deleted:
            raise AlreadyDeletedError(f"Image already deleted: {asset_id}")

        deleted = self.catalog.soft_delete(asset_id)
        self.logger.info(f"Soft-deleted {asset_id}")
        return deleted

    def delete_many(self, asset_ids: Iterable[str]) -> int:
        ids = list(dict.fromkeys(asset_ids))
        if not ids:
            raise ValidationError("ids must be a non-empty list")
        count = self.catalog.soft_delete_many(ids)
        self.logger.info(f"Soft-deleted {count} of {len(ids)} requested images")
        return count
