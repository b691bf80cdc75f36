"""
Batch upload job descriptor.

A job file is a JSON array of ``{"folderPath": str, "extensions": [str]}``
objects. It is read once per run and never written back.
"""

import json
import os
from dataclasses import dataclass
from typing import List, Tuple

from .errors import JobConfigError

DEFAULT_EXTENSIONS = ('jpg', 'png', 'tif')


def normalize_extension(ext: str) -> str:
    return ext.strip().lstrip('.').lower()


@dataclass(frozen=True)
class UploadJobEntry:
    """One folder to scan and the extensions to pick up from it."""
    folder_path: str
    extensions: Tuple[str, ...] = DEFAULT_EXTENSIONS

    @classmethod
    def from_dict(cls, data: dict) -> 'UploadJobEntry':
        if not isinstance(data, dict):
            raise JobConfigError(f"Invalid config entry: expected an object, got {type(data).__name__}")

        folder_path = data.get('folderPath')
        if not isinstance(folder_path, str) or not folder_path.strip():
            raise JobConfigError("Invalid config entry: folderPath must be a non-empty string")

        extensions = data.get('extensions')
        if extensions is None:
            return cls(folder_path=folder_path)
        if not isinstance(extensions, list) or not all(isinstance(e, str) for e in extensions):
            raise JobConfigError(f"Invalid config entry for {folder_path}: extensions must be a list of strings")

        normalized = tuple(dict.fromkeys(normalize_extension(e) for e in extensions if e.strip()))
        return cls(folder_path=folder_path, extensions=normalized)

    def matches(self, filename: str) -> bool:
        """True if the file's lower-cased extension is in this entry's set."""
        return normalize_extension(os.path.splitext(filename)[1]) in self.extensions


def parse_job_config(data) -> List[UploadJobEntry]:
    if not isinstance(data, list):
        raise JobConfigError("Invalid config format: expected an array")
    return [UploadJobEntry.from_dict(entry) for entry in data]


def load_job_config(path: str) -> List[UploadJobEntry]:
    """
    Read and validate a job file.

    Args:
        path: Path to the JSON job file

    Returns:
        List of UploadJobEntry

    Raises:
        JobConfigError: If the file is missing, not JSON, or malformed
    """
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except FileNotFoundError:
        raise JobConfigError(f"Config file not found: {path}")
    except (OSError, ValueError) as e:
        raise JobConfigError(f"Failed to parse config file: {e}")
    return parse_job_config(data)
