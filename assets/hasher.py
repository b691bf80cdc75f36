"""
Content hashing for duplicate detection.

The digest depends on file bytes only. Two copies of the same image in
different folders must hash identically, so the path never enters the digest.
"""

import hashlib

CHUNK_SIZE = 64 * 1024


def hash_bytes(data: bytes) -> str:
    """Return the hex digest of an in-memory buffer."""
    return hashlib.md5(data).hexdigest()


def hash_file(path: str, chunk_size: int = CHUNK_SIZE) -> str:
    """Return the hex digest of a file's contents, read in chunks."""
    digest = hashlib.md5()
    with open(path, 'rb') as fh:
        while True:
            chunk = fh.read(chunk_size)
            if not chunk:
                break
            digest.update(chunk)
    return digest.hexdigest()
