"""
Filename and path derivation for stored assets and their derived files.

All functions are pure apart from the wall-clock timestamp component.
"""

import os
import re
import secrets
import time
from typing import Optional

DEFAULT_FOLDER = 'default'
THUMBNAIL_DIR = 'thumbnails'
PREVIEW_DIR = 'previews'
TEMP_DIR = 'temp'

FOLDER_PATTERN = re.compile(r'^[A-Za-z0-9_-]{1,255}$')


def now_millis() -> int:
    return int(time.time() * 1000)


def is_valid_folder(name: str) -> bool:
    return isinstance(name, str) and FOLDER_PATTERN.match(name) is not None


def unique_filename(original_name: str, content_hash: str, now_ms: Optional[int] = None) -> str:
    """
    Build the stored filename for an asset.

    Args:
        original_name: User-facing filename, only its extension is kept
        content_hash: Hex digest of the file bytes
        now_ms: Creation time in milliseconds (defaults to now)

    Returns:
        "<hash>_<millis><ext>"
    """
    ext = os.path.splitext(original_name)[1]
    if now_ms is None:
        now_ms = now_millis()
    return f"{content_hash}_{now_ms}{ext}"


def asset_path_for(storage_root: str, folder: str, filename: str) -> str:
    return os.path.join(storage_root, folder, filename)


def thumbnail_path_for(storage_root: str, folder: str, filename: str) -> str:
    """Thumbnails live beside their folder: <root>/<folder>/thumbnails/thumb_<stem>.webp"""
    stem = os.path.splitext(filename)[0]
    return os.path.join(storage_root, folder, THUMBNAIL_DIR, f"thumb_{stem}.webp")


def preview_path_for(absolute_path: str) -> str:
    """Location of the cached browser-friendly preview for an original."""
    directory, filename = os.path.split(absolute_path)
    stem = os.path.splitext(filename)[0]
    return os.path.join(directory, PREVIEW_DIR, f"preview_{stem}.webp")


def staging_filename(original_name: str) -> str:
    """Unique name for an upload held in the staging area."""
    ext = os.path.splitext(original_name)[1]
    return f"temp-{now_millis()}-{secrets.token_hex(6)}{ext}"


def crop_temp_filename(source_filename: str) -> str:
    ext = os.path.splitext(source_filename)[1]
    return f"temp_crop_{now_millis()}_{secrets.token_hex(4)}{ext}"
