"""
Filesystem helpers shared by the ingest, crop and edit flows.
"""

import logging
import os
import shutil
from typing import Iterable, Optional

logger = logging.getLogger(__name__)


def ensure_dir(path: str) -> None:
    os.makedirs(path, exist_ok=True)


def move_file(source: str, dest: str) -> None:
    """Move a file into place, creating the destination directory as needed."""
    ensure_dir(os.path.dirname(dest))
    # shutil handles moves across mounted filesystems
    shutil.move(source, dest)


def delete_if_exists(path: Optional[str]) -> bool:
    """Remove a file, ignoring one that is already gone. Returns True if removed."""
    if not path:
        return False
    try:
        os.remove(path)
        return True
    except FileNotFoundError:
        return False


def discard(paths: Iterable[Optional[str]]) -> None:
    """Best-effort cleanup used by rollback paths; failures are logged, not raised."""
    for path in paths:
        try:
            if delete_if_exists(path):
                logger.debug(f"Rolled back {path}")
        except OSError as e:
            logger.warning(f"Could not remove {path} during rollback: {e}")
