"""
Errors raised by the transfer client.

Orchestrators catch these at the per-item boundary; none of them abort a batch.
"""

from typing import Optional


class TransferError(Exception):
    """Base class for transfer failures."""


class NetworkError(TransferError):
    """The server could not be reached or the connection broke mid-transfer."""


class HttpStatusError(TransferError):
    """The server answered with an unexpected status."""

    def __init__(self, status_code: int, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.code = code

    def __str__(self) -> str:
        code = f" {self.code}" if self.code else ""
        return f"HTTP {self.status_code}{code}: {self.message}"


class UnsupportedFileTypeError(TransferError):
    pass


class JobConfigError(TransferError):
    """The batch job descriptor could not be read or is malformed."""
