"""Direct PUT of file bytes to a presigned object-storage URL."""

from __future__ import annotations

import asyncio
import logging

import httpx

from directdrop.media import DEFAULT_CONTENT_TYPE
from directdrop.models import UploadEntry
from directdrop.upload.exceptions import StorageUploadError
from directdrop.upload.retry import RetryPolicy, call_with_retry

logger = logging.getLogger(__name__)


class DirectUploader:
    """Uploads one entry per call with a bare PUT.

    No auth header is sent: the presigned URL is the authorization.  Any
    2xx is success.
    """

    def __init__(self, http: httpx.AsyncClient, policy: RetryPolicy | None = None) -> None:
        self._http = http
        self._policy = policy or RetryPolicy(retries=2)

    async def put(self, entry: UploadEntry) -> None:
        """PUT *entry*'s bytes to its target URL.

        Raises:
            StorageUploadError: After the retry budget is exhausted, or on a
                terminal (non-retryable) status.
        """
        candidate = entry.candidate
        headers = {"Content-Type": candidate.declared_type or DEFAULT_CONTENT_TYPE}

        async def _send() -> httpx.Response:
            content = await asyncio.to_thread(candidate.read_bytes)
            return await self._http.put(entry.target.put_url, content=content, headers=headers)

        try:
            response = await call_with_retry(
                _send, self._policy, label=f"PUT {candidate.name}"
            )
        except httpx.TransportError as exc:
            raise StorageUploadError(
                f"Failed to upload {candidate.name} ({exc.__class__.__name__})",
                filename=candidate.name,
            ) from exc

        if not response.is_success:
            raise StorageUploadError(
                f"Failed to upload {candidate.name} ({response.status_code})",
                filename=candidate.name,
                status_code=response.status_code,
            )
        logger.debug(
            "Uploaded %s -> %s (%d bytes)",
            candidate.name, entry.target.upload_key, candidate.size,
        )
