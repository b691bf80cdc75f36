"""
In-memory stand-ins used by the pipeline, server and end-to-end tests.
"""

import copy
import io
import os

from PIL import Image

from assets.asset_record import utcnow
from assets.errors import CatalogError, DuplicateAssetError


class InMemoryAssetDb:
    """
    Catalog double with the same interface as asset_db.AssetDb.

    Records are copied on the way in and out, like rows in a database, and
    the live-hash uniqueness rule is enforced on insert and update.
    """

    def __init__(self):
        self.records = {}
        self.fail_with = None

    def ping(self):
        return True

    def _check_live_hash(self, record):
        for other in self.records.values():
            if other.id != record.id and other.deleted_at is None and other.content_hash == record.content_hash:
                raise DuplicateAssetError(other.id)

    def create_asset(self, record):
        if self.fail_with is not None:
            raise self.fail_with
        self._check_live_hash(record)
        for other in self.records.values():
            if other.folder == record.folder and other.stored_filename == record.stored_filename:
                raise CatalogError(f"Duplicate stored filename {record.stored_filename}")
        self.records[record.id] = copy.deepcopy(record)
        return copy.deepcopy(record)

    def get_asset(self, asset_id, include_deleted=False):
        record = self.records.get(asset_id)
        if record is None or (record.deleted_at is not None and not include_deleted):
            return None
        return copy.deepcopy(record)

    def find_live_by_hash(self, content_hash):
        for record in self.records.values():
            if record.content_hash == content_hash and record.deleted_at is None:
                return copy.deepcopy(record)
        return None

    def list_assets(self, page=1, limit=20, folder=None, mime_type=None, include_deleted=False):
        matches = [
            r for r in self.records.values()
            if (include_deleted or r.deleted_at is None)
            and (folder is None or r.folder == folder)
            and (mime_type is None or r.mime_type == mime_type)
        ]
        matches.sort(key=lambda r: (r.created_at, r.id), reverse=True)
        start = (page - 1) * limit
        return [copy.deepcopy(r) for r in matches[start:start + limit]], len(matches)

    def update_asset(self, record):
        if self.fail_with is not None:
            raise self.fail_with
        if record.id not in self.records:
            raise CatalogError(f"Unknown asset {record.id}")
        self._check_live_hash(record)
        self.records[record.id] = copy.deepcopy(record)
        return copy.deepcopy(record)

    def soft_delete(self, asset_id):
        record = self.records[asset_id]
        if record.deleted_at is None:
            record.deleted_at = utcnow()
            record.updated_at = record.deleted_at
        return copy.deepcopy(record)

    def soft_delete_many(self, asset_ids):
        count = 0
        for asset_id in asset_ids:
            record = self.records.get(asset_id)
            if record is not None and record.deleted_at is None:
                record.deleted_at = utcnow()
                count += 1
        return count


def image_bytes(color='red', size=(100, 100), fmt='JPEG', mode='RGB') -> bytes:
    """Encode a solid-color image."""
    img = Image.new(mode, size, color=color)
    buffer = io.BytesIO()
    img.save(buffer, format=fmt)
    return buffer.getvalue()


def gradient_bytes(size=(120, 80), fmt='JPEG') -> bytes:
    """Encode an image whose pixels differ, so different crops differ."""
    img = Image.new('RGB', size)
    img.putdata([(x * 2 % 256, y * 3 % 256, (x + y) % 256) for y in range(size[1]) for x in range(size[0])])
    buffer = io.BytesIO()
    img.save(buffer, format=fmt)
    return buffer.getvalue()


def list_files(root):
    """All files below root, relative to it."""
    found = []
    for dirpath, _, filenames in os.walk(root):
        for name in filenames:
            found.append(os.path.relpath(os.path.join(dirpath, name), root))
    return sorted(found)
