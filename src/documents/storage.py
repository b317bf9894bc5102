"""Blob storage for uploaded files: Supabase Storage REST API via httpx."""

import logging
from typing import Protocol

import httpx

from src.core.config import settings
from src.core.exceptions import StorageError

logger = logging.getLogger(__name__)


class BlobStore(Protocol):
    """Where the raw bytes of an upload live. Paths are ``<user_id>/<name>``."""

    async def upload(self, path: str, data: bytes, content_type: str) -> None: ...

    async def download(self, path: str) -> bytes: ...

    async def remove(self, paths: list[str]) -> None: ...


class SupabaseStorage:
    """Blob store backed by a Supabase Storage bucket (no supabase SDK dependency)."""

    def __init__(
        self,
        base_url: str = "",
        service_key: str = "",
        bucket: str = "",
        timeout: float = 30.0,
    ) -> None:
        self._base_url = (base_url or settings.supabase_url).rstrip("/")
        self._service_key = service_key or settings.supabase_service_key
        self._bucket = bucket or settings.storage_bucket
        self._timeout = timeout
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=f"{self._base_url}/storage/v1",
                headers={
                    "Authorization": f"Bearer {self._service_key}",
                    "apikey": self._service_key,
                },
                timeout=self._timeout,
            )
        return self._client

    async def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        client = await self._get_client()
        try:
            return await client.request(method, url, **kwargs)
        except httpx.TimeoutException as e:
            raise StorageError(f"Storage request timed out: {e}") from e
        except httpx.TransportError as e:
            raise StorageError(f"Storage connection failed: {e}") from e

    async def upload(self, path: str, data: bytes, content_type: str) -> None:
        resp = await self._request(
            "POST",
            f"/object/{self._bucket}/{path}",
            content=data,
            # Upsert keeps a re-sent upload idempotent
            headers={"Content-Type": content_type, "x-upsert": "true"},
        )
        if resp.status_code not in (200, 201):
            logger.error("Storage upload failed: %s %s", resp.status_code, resp.text[:200])
            raise StorageError(f"Failed to upload file to storage ({resp.status_code})")

    async def download(self, path: str) -> bytes:
        resp = await self._request("GET", f"/object/{self._bucket}/{path}")
        if resp.status_code != 200:
            logger.error("Storage download failed: %s %s", resp.status_code, resp.text[:200])
            raise StorageError(f"Failed to fetch stored file ({resp.status_code})")
        return resp.content

    async def remove(self, paths: list[str]) -> None:
        if not paths:
            return
        resp = await self._request(
            "DELETE", f"/object/{self._bucket}", json={"prefixes": paths}
        )
        if resp.status_code not in (200, 204):
            logger.error("Storage delete failed: %s %s", resp.status_code, resp.text[:200])
            raise StorageError(f"Failed to delete stored file ({resp.status_code})")

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None


class InMemoryBlobStore:
    """Process-local blob store for development and tests."""

    def __init__(self):
        self.objects: dict[str, tuple[bytes, str]] = {}

    async def upload(self, path: str, data: bytes, content_type: str) -> None:
        self.objects[path] = (data, content_type)

    async def download(self, path: str) -> bytes:
        try:
            return self.objects[path][0]
        except KeyError:
            raise StorageError(f"Failed to fetch stored file: {path} not found")

    async def remove(self, paths: list[str]) -> None:
        for path in paths:
            self.objects.pop(path, None)


def get_blob_store() -> BlobStore:
    if settings.storage_configured:
        return SupabaseStorage(timeout=settings.upload_timeout_seconds)
    if settings.is_production:
        raise StorageError("Storage connection failed: Supabase storage is not configured")
    logger.warning(
        "Supabase storage not configured, keeping uploads in memory. "
        "Uploads are only visible to this process, so documents processed by a "
        "separate taskiq worker will fail with \"Failed to fetch stored file\"."
    )
    return InMemoryBlobStore()
