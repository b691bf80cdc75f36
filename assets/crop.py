"""
CropPipeline - Creates a new asset from a rectangle of an existing one.
"""

import logging
import math
import os
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .asset_record import AssetRecord
from .errors import AssetNotFoundError, CropError, DuplicateAssetError, InvalidCropRegionError, ValidationError
from .hasher import hash_file
from .naming import TEMP_DIR, asset_path_for, crop_temp_filename, thumbnail_path_for, unique_filename
from .storage import discard, move_file

CROP_PREFIX = 'cropped_'


@dataclass(frozen=True)
class CropBox:
    """Integer crop rectangle in source pixel coordinates."""
    x: int
    y: int
    width: int
    height: int

    @classmethod
    def from_numbers(cls, x, y, width, height) -> 'CropBox':
        """
        Build a box from client-supplied numbers, rounding half-up.

        Raises:
            ValidationError: Non-numeric, negative or empty regions
        """
        values = {}
        for name, value in (('x', x), ('y', y), ('width', width), ('height', height)):
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ValidationError(f"Crop {name} must be a number")
            if math.isnan(value) or math.isinf(value):
                raise ValidationError(f"Crop {name} must be finite")
            if value < 0:
                raise ValidationError(f"Crop {name} must be non-negative")
            values[name] = int(math.floor(value + 0.5))

        if values['width'] == 0 or values['height'] == 0:
            raise ValidationError("Crop width and height must be at least 1 pixel")
        return cls(**values)


class CropState(Enum):
    STARTED = 'started'
    EXTRACTED = 'extracted'
    HASHED = 'hashed'
    NAMES_ASSIGNED = 'names_assigned'
    RELOCATED = 'relocated'
    THUMBNAIL_GENERATED = 'thumbnail_generated'
    PERSISTED = 'persisted'


ROLLBACK_ARTIFACTS = {
    CropState.STARTED: ('temp',),
    CropState.EXTRACTED: ('temp',),
    CropState.HASHED: ('temp',),
    CropState.NAMES_ASSIGNED: ('temp', 'final'),
    CropState.RELOCATED: ('final', 'thumbnail'),
    CropState.THUMBNAIL_GENERATED: ('final', 'thumbnail'),
    CropState.PERSISTED: (),
}

# surfaced unchanged; anything else becomes CropError
PASSTHROUGH_ERRORS = (DuplicateAssetError, InvalidCropRegionError, AssetNotFoundError, CropError)


@dataclass
class CropRun:
    parent: AssetRecord
    box: CropBox
    temp_path: str
    state: CropState = CropState.STARTED
    final_path: Optional[str] = None
    thumbnail_path: Optional[str] = None

    def artifact(self, name: str) -> Optional[str]:
        return {
            'temp': self.temp_path,
            'final': self.final_path,
            'thumbnail': self.thumbnail_path,
        }[name]


class CropPipeline:
    """
    Crops an asset into a new, independent asset.

    The parent record and its files are never modified. The only lineage
    kept is the ``cropped_`` prefix on the child's original name.
    """

    def __init__(self, catalog, processor, storage_root: str, logger: Optional[logging.Logger] = None):
        self.catalog = catalog
        self.processor = processor
        self.storage_root = storage_root
        self.logger = logger or logging.getLogger(__name__)

    def crop(self, asset_id: str, box: CropBox) -> AssetRecord:
        parent = self.catalog.get_asset(asset_id)
        if parent is None:
            raise AssetNotFoundError(asset_id)

        temp_path = os.path.join(self.storage_root, TEMP_DIR, crop_temp_filename(parent.stored_filename))
        run = CropRun(parent=parent, box=box, temp_path=temp_path)
        try:
            return self._run(run)
        except PASSTHROUGH_ERRORS:
            self.rollback(run)
            raise
        except Exception as e:
            self.rollback(run)
            self.logger.exception(f"Crop of {asset_id} failed after {run.state.value}")
            raise CropError("Failed to crop image")

    def _run(self, run: CropRun) -> AssetRecord:
        parent = run.parent

        self.processor.crop_to_file(parent.absolute_path, run.temp_path, run.box)
        metadata = self.processor.validate_and_extract_metadata(run.temp_path)
        run.state = CropState.EXTRACTED

        content_hash = hash_file(run.temp_path)
        run.state = CropState.HASHED

        existing = self.catalog.find_live_by_hash(content_hash)
        if existing is not None:
            raise DuplicateAssetError(existing.id)

        original_name = CROP_PREFIX + parent.original_name
        stored_filename = unique_filename(original_name, content_hash)
        run.final_path = asset_path_for(self.storage_root, parent.folder, stored_filename)
        run.thumbnail_path = thumbnail_path_for(self.storage_root, parent.folder, stored_filename)
        run.state = CropState.NAMES_ASSIGNED

        move_file(run.temp_path, run.final_path)
        run.state = CropState.RELOCATED

        self.processor.generate_thumbnail(run.final_path, run.thumbnail_path)
        run.state = CropState.THUMBNAIL_GENERATED

        record = AssetRecord(
            stored_filename=stored_filename,
            absolute_path=run.final_path,
            thumbnail_path=run.thumbnail_path,
            folder=parent.folder,
            size_bytes=os.path.getsize(run.final_path),
            mime_type=parent.mime_type,
            content_hash=content_hash,
            original_name=original_name,
            metadata=metadata,
        )
        saved = self.catalog.create_asset(record)
        run.state = CropState.PERSISTED

        self.logger.info(
            f"Cropped {parent.id} to {saved.id} "
            f"({run.box.width}x{run.box.height}+{run.box.x}+{run.box.y})")
        return saved

    def rollback(self, run: CropRun) -> None:
        discard(run.artifact(name) for name in ROLLBACK_ARTIFACTS[run.state])
