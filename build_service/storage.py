"""Blob storage client for project archives.

This module handles:
- The BlobStorage interface used by the dispatch pipeline
- Uploading archives to Appwrite Storage (chunked above 5 MiB)
- Building the download reference used by the remote build
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Protocol

import httpx

if TYPE_CHECKING:
    from build_service.config import Credentials

logger = logging.getLogger(__name__)

# Appwrite accepts single-request uploads up to this size
APPWRITE_CHUNK_SIZE = 5 * 1024 * 1024

# Asks Appwrite to generate the file ID
UNIQUE_ID = "unique()"

ARCHIVE_CONTENT_TYPE = "application/gzip"


class StorageError(Exception):
    """Raised when an upload to blob storage fails."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        detail: str | None = None,
        code: str = "storage_error",
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.detail = detail
        self.code = code


class BlobStorage(Protocol):
    """Interface of the storage collaborator."""

    def upload(self, data: bytes, filename: str) -> str:
        """Upload bytes and return the artifact ID."""
        ...

    def download_reference(self, artifact_id: str) -> str:
        """Return a URL the remote build can download the artifact from."""
        ...


class AppwriteStorage:
    """Appwrite Storage client backed by httpx."""

    def __init__(
        self,
        client: httpx.Client,
        endpoint: str,
        project_id: str,
        api_key: str,
        bucket_id: str,
        chunk_size: int = APPWRITE_CHUNK_SIZE,
    ) -> None:
        """Initialize AppwriteStorage.

        Args:
            client: HTTPX client instance.
            endpoint: Appwrite API endpoint (e.g. https://cloud.appwrite.io/v1).
            project_id: Appwrite project ID.
            api_key: Appwrite API key.
            bucket_id: Storage bucket ID.
            chunk_size: Upload chunk size in bytes.
        """
        self.client = client
        self.endpoint = endpoint.rstrip("/")
        self.project_id = project_id
        self.api_key = api_key
        self.bucket_id = bucket_id
        self.chunk_size = chunk_size

    @classmethod
    def from_credentials(
        cls,
        credentials: Credentials,
        client: httpx.Client,
        chunk_size: int = APPWRITE_CHUNK_SIZE,
    ) -> AppwriteStorage:
        """Create a client from stored credentials."""
        return cls(
            client,
            endpoint=credentials.endpoint,
            project_id=credentials.project_id,
            api_key=credentials.api_key,
            bucket_id=credentials.bucket_id,
            chunk_size=chunk_size,
        )

    @property
    def files_url(self) -> str:
        """URL of the bucket's file collection."""
        return f"{self.endpoint}/storage/buckets/{self.bucket_id}/files"

    def _headers(self) -> dict[str, str]:
        return {
            "X-Appwrite-Project": self.project_id,
            "X-Appwrite-Key": self.api_key,
        }

    def _post_chunk(
        self,
        chunk: bytes,
        filename: str,
        file_id: str,
        extra_headers: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        headers = self._headers()
        if extra_headers:
            headers.update(extra_headers)

        try:
            response = self.client.post(
                self.files_url,
                data={"fileId": file_id},
                files={"file": (filename, chunk, ARCHIVE_CONTENT_TYPE)},
                headers=headers,
            )
        except httpx.HTTPError as e:
            raise StorageError(f"Upload request failed: {e}") from e

        if response.is_error:
            raise StorageError(
                f"Appwrite API error: {response.status_code} {response.reason_phrase}",
                status_code=response.status_code,
                detail=response.text,
            )

        try:
            body = response.json()
        except ValueError as e:
            raise StorageError(
                f"Invalid response from Appwrite: {e}",
                status_code=response.status_code,
                detail=response.text,
            ) from e
        if not isinstance(body, dict) or not isinstance(body.get("$id"), str):
            raise StorageError(
                "Appwrite response has no file ID",
                status_code=response.status_code,
                detail=response.text,
            )
        return body

    def upload(self, data: bytes, filename: str) -> str:
        """Upload an archive to the bucket.

        Payloads larger than the chunk size are sent as consecutive chunks
        with a Content-Range header; chunks after the first carry the file
        ID returned for the first one.

        Args:
            data: Archive bytes.
            filename: File name stored with the upload.

        Returns:
            Appwrite file ID.

        Raises:
            StorageError: If any request fails.
        """
        total = len(data)
        if total <= self.chunk_size:
            body = self._post_chunk(data, filename, UNIQUE_ID)
            file_id: str = body["$id"]
            logger.info("Uploaded %s (%d bytes) as %s", filename, total, file_id)
            return file_id

        file_id = UNIQUE_ID
        for start in range(0, total, self.chunk_size):
            end = min(start + self.chunk_size, total) - 1
            headers = {"Content-Range": f"bytes {start}-{end}/{total}"}
            if start > 0:
                headers["X-Appwrite-ID"] = file_id
            body = self._post_chunk(data[start : end + 1], filename, file_id, headers)
            file_id = body["$id"]
            logger.debug("Uploaded chunk %d-%d/%d", start, end, total)

        logger.info("Uploaded %s (%d bytes) as %s", filename, total, file_id)
        return file_id

    def download_reference(self, artifact_id: str) -> str:
        """Return the download URL of an uploaded file."""
        return f"{self.files_url}/{artifact_id}/download?project={self.project_id}"


__all__ = [
    "APPWRITE_CHUNK_SIZE",
    "AppwriteStorage",
    "BlobStorage",
    "StorageError",
]
