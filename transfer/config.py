"""
TransferConfig - Client configuration for the transfer CLI.
"""

import os
from dataclasses import dataclass
from typing import List

DEFAULT_API_URL = 'http://localhost:8080'
DEFAULT_CONCURRENCY = 5
DEFAULT_TIMEOUT = 60.0


@dataclass
class TransferConfig:
    """
    Where the asset server lives and how hard to drive it.

    Attributes:
        api_base_url: Base URL of the asset server
        concurrency: Maximum in-flight transfers per batch
        timeout: Per-request timeout in seconds
    """
    api_base_url: str = DEFAULT_API_URL
    concurrency: int = DEFAULT_CONCURRENCY
    timeout: float = DEFAULT_TIMEOUT

    @classmethod
    def from_env(cls) -> 'TransferConfig':
        """Create configuration from environment variables."""
        return cls(
            api_base_url=os.getenv('API_BASE_URL', DEFAULT_API_URL),
            concurrency=int(os.getenv('TRANSFER_CONCURRENCY', str(DEFAULT_CONCURRENCY))),
            timeout=float(os.getenv('TRANSFER_TIMEOUT', str(DEFAULT_TIMEOUT))),
        )

    def validate(self) -> List[str]:
        """
        Validate configuration.

        Returns:
            List of error messages (empty if valid)
        """
        errors = []
        if not self.api_base_url:
            errors.append("API_BASE_URL is required")
        elif not self.api_base_url.startswith(('http://', 'https://')):
            errors.append(f"API_BASE_URL must be an http(s) URL: {self.api_base_url}")
        if self.concurrency < 1:
            errors.append(f"Concurrency must be at least 1, got {self.concurrency}")
        if self.timeout <= 0:
            errors.append(f"Timeout must be positive, got {self.timeout}")
        return errors
