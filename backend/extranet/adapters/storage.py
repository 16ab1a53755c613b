"""Object storage collaborator for activity images."""

import logging
import uuid
from collections.abc import AsyncIterator, Callable
from typing import Protocol

import httpx

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int], None]

_CHUNK_SIZE = 64 * 1024


class StorageUploadError(Exception):
    """The storage service rejected or failed an upload."""

    pass


class ObjectStorage(Protocol):
    """Blob storage used for uploaded images."""

    async def upload(
        self,
        content: bytes,
        path: str,
        content_type: str,
        on_progress: ProgressCallback | None = None,
    ) -> str:
        """Upload a blob.

        Args:
            content: File bytes
            path: Object path inside the bucket
            content_type: MIME type
            on_progress: Called with the upload percentage (0-100)

        Returns:
            Public URL of the stored object

        Raises:
            StorageUploadError: If the upload fails
        """
        ...

    async def delete(self, url: str) -> None:
        """Delete a blob by its public URL."""
        ...


def make_object_path(prefix: str, filename: str) -> str:
    """Unique object path for an uploaded file, e.g. catalogs/services/<uuid>-photo.jpg."""
    safe_name = filename.replace("/", "_").replace(" ", "_") or "image"
    return f"{prefix.rstrip('/')}/{uuid.uuid4().hex}-{safe_name}"


class HttpObjectStorage:
    """Object storage over plain HTTP PUT/DELETE with public-read URLs."""

    def __init__(
        self,
        base_url: str,
        token: str | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize storage.

        Args:
            base_url: Storage endpoint; objects live at `{base_url}/{path}`
            token: Optional bearer token
            client: Optional httpx client (for testing with mocks)
        """
        self._base_url = base_url.rstrip("/")
        self._headers = {"Authorization": f"Bearer {token}"} if token else {}
        self._close_client = client is None
        self._client = client or httpx.AsyncClient(timeout=60.0)

    async def aclose(self) -> None:
        """Close the underlying httpx client if this instance created it."""
        if self._close_client:
            await self._client.aclose()

    async def upload(
        self,
        content: bytes,
        path: str,
        content_type: str,
        on_progress: ProgressCallback | None = None,
    ) -> str:
        """Upload a blob, reporting progress as the body is streamed."""
        url = f"{self._base_url}/{path.lstrip('/')}"
        total = len(content)

        async def body() -> AsyncIterator[bytes]:
            sent = 0
            for offset in range(0, total, _CHUNK_SIZE):
                chunk = content[offset : offset + _CHUNK_SIZE]
                sent += len(chunk)
                if on_progress is not None:
                    on_progress(int(sent * 100 / total))
                yield chunk

        headers = {**self._headers, "Content-Type": content_type, "Content-Length": str(total)}
        try:
            response = await self._client.put(url, content=body(), headers=headers)
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise StorageUploadError(f"Upload of {path} failed: {type(e).__name__}") from e

        if on_progress is not None:
            on_progress(100)
        return url

    async def delete(self, url: str) -> None:
        """Delete a blob. Errors propagate; callers treat deletion as best-effort."""
        response = await self._client.delete(url, headers=self._headers)
        if response.status_code != 404:
            response.raise_for_status()
