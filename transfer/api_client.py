"""
AssetApiClient - Async HTTP client for the asset server.
"""

import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import quote

import httpx

from .errors import HttpStatusError, NetworkError

CREATED = 'created'
DUPLICATE = 'duplicate'
FAILED = 'failed'

DOWNLOAD_CHUNK_SIZE = 64 * 1024
LIST_PAGE_LIMIT = 100


@dataclass
class UploadResult:
    """
    Outcome of one upload as classified by the client.

    Attributes:
        status: created, duplicate or failed
        record: Asset record returned on success
        existing_id: Id of the asset a duplicate collided with
        message: Server error message on failure
        code: Server error code on failure
    """
    status: str
    record: Dict[str, Any] = field(default_factory=dict)
    existing_id: Optional[str] = None
    message: Optional[str] = None
    code: Optional[str] = None

    @property
    def created(self) -> bool:
        return self.status == CREATED

    @property
    def duplicate(self) -> bool:
        return self.status == DUPLICATE


def _error_body(response: httpx.Response) -> Dict[str, Any]:
    try:
        payload = response.json()
    except ValueError:
        return {}
    if isinstance(payload, dict) and isinstance(payload.get('error'), dict):
        return payload['error']
    return {}


def raise_for_status(response: httpx.Response, expected=(200,)) -> None:
    """Raise HttpStatusError carrying the server's message and code."""
    if response.status_code in expected:
        return
    error = _error_body(response)
    raise HttpStatusError(
        response.status_code,
        error.get('message') or response.reason_phrase or 'Request failed',
        error.get('code'),
    )


class AssetApiClient:
    """
    Talks to the asset server's JSON API over a shared ``httpx.AsyncClient``.

    Use as an async context manager, or pass an existing client (tests hand
    in one bound to a mock or WSGI transport).
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 60.0,
        client: Optional[httpx.AsyncClient] = None,
        logger: Optional[logging.Logger] = None
    ):
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self._client = client
        self._owns_client = client is None
        self.logger = logger or logging.getLogger(__name__)

    async def __aenter__(self) -> 'AssetApiClient':
        if self._client is None:
            self._client = httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout)
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            raise RuntimeError("AssetApiClient is not open; use 'async with'")
        return self._client

    def url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    def asset_url(self, folder: str, stored_filename: str) -> str:
        """Public URL of a stored original."""
        return self.url(f"/uploads/{quote(folder)}/{quote(stored_filename)}")

    async def upload(
        self,
        filename: str,
        data: bytes,
        mime_type: str,
        folder: Optional[str] = None
    ) -> UploadResult:
        """
        POST one file to /images.

        Returns:
            UploadResult classified as created, duplicate or failed

        Raises:
            NetworkError: If the request could not be completed
        """
        form = {'folder': folder} if folder else None
        try:
            response = await self.client.post(
                self.url('/images'),
                files={'file': (filename, data, mime_type)},
                data=form,
            )
        except httpx.HTTPError as e:
            raise NetworkError(f"Upload of {filename} failed: {e}") from e

        if response.status_code == 201:
            return UploadResult(status=CREATED, record=response.json().get('data') or {})

        error = _error_body(response)
        message = error.get('message') or response.reason_phrase
        if response.status_code == 409:
            details = error.get('details') or {}
            return UploadResult(
                status=DUPLICATE,
                existing_id=details.get('existing_id'),
                message=message,
                code=error.get('code'),
            )
        return UploadResult(status=FAILED, message=message, code=error.get('code'))

    async def list_assets(
        self,
        page: int = 1,
        limit: int = LIST_PAGE_LIMIT,
        folder: Optional[str] = None,
        mime_type: Optional[str] = None
    ) -> Tuple[List[Dict[str, Any]], int]:
        """Fetch one page of live assets. Returns (records, total)."""
        params = {'page': page, 'limit': limit}
        if folder:
            params['folder'] = folder
        if mime_type:
            params['mimetype'] = mime_type
        try:
            response = await self.client.get(self.url('/images'), params=params)
        except httpx.HTTPError as e:
            raise NetworkError(f"Listing assets failed: {e}") from e

        raise_for_status(response)
        payload = response.json()
        return payload.get('data') or [], int(payload.get('metadata', {}).get('total', 0))

    async def list_all_assets(
        self,
        folder: Optional[str] = None,
        mime_type: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        """Walk every page of the listing."""
        records: List[Dict[str, Any]] = []
        page = 1
        while True:
            batch, total = await self.list_assets(page=page, folder=folder, mime_type=mime_type)
            records.extend(batch)
            if not batch or len(records) >= total:
                return records
            page += 1

    async def download(self, url: str, dest_path: str) -> int:
        """
        Stream ``url`` into ``dest_path``.

        A partial file is removed before the error propagates.

        Returns:
            Number of bytes written
        """
        written = 0
        try:
            async with self.client.stream('GET', url) as response:
                if not response.is_success:
                    await response.aread()
                    raise_for_status(response, expected=range(200, 300))
                with open(dest_path, 'wb') as f:
                    async for chunk in response.aiter_bytes(DOWNLOAD_CHUNK_SIZE):
                        f.write(chunk)
                        written += len(chunk)
        except httpx.HTTPError as e:
            self._remove_partial(dest_path)
            raise NetworkError(f"Download of {url} failed: {e}") from e
        except (HttpStatusError, OSError):
            self._remove_partial(dest_path)
            raise

        self.logger.debug(f"Downloaded {url} ({written} bytes)")
        return written

    def _remove_partial(self, path: str) -> None:
        try:
            os.remove(path)
        except FileNotFoundError:
            pass
        except OSError as e:
            self.logger.warning(f"Could not remove partial download {path}: {e}")
