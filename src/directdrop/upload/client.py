"""Application-server client for the presign and finalize calls.

Both calls are JSON POSTs carrying a bearer credential from the auth
collaborator, and both go through the API retry budget.  A ``401`` is
never retried; it is raised as :class:`AuthenticationError` and credential
refresh is left to the caller.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Sequence

import httpx
from pydantic import ValidationError as SchemaError

from directdrop.media import get_file_kind
from directdrop.models import CandidateFile, FileKind, UploadEntry, UploadTarget
from directdrop.upload.exceptions import (
    AuthenticationError,
    FinalizeError,
    PresignError,
)
from directdrop.upload.features import UploadFeature
from directdrop.upload.retry import RetryPolicy, call_with_retry
from directdrop.upload.schemas import PresignResponseSchema

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PresignResult:
    """Coherent target/skip split returned by a presign call.

    Attributes:
        targets: Upload targets in server order.
        skipped: Names the server declined to allocate a target for.
        context: Feature-scoped fields to echo back to finalize.
    """

    targets: list[UploadTarget]
    skipped: list[str]
    context: dict[str, Any] = field(default_factory=dict)


def _error_message(response: httpx.Response, fallback: str) -> str:
    """Extract the server's ``{"error": ...}`` message, verbatim."""
    try:
        body = response.json()
    except ValueError:
        return fallback
    if isinstance(body, dict):
        message = body.get("error")
        if isinstance(message, str) and message:
            return message
    return fallback


class UploadApiClient:
    """Presign and finalize client for one application server.

    Usage::

        async with httpx.AsyncClient() as http:
            api = UploadApiClient(http, "https://example.com", get_api_token)
            presigned = await api.presign(feature, candidates, overwrite=False)

    Args:
        http: Shared async HTTP client.
        base_url: Application server origin.
        token_provider: Returns the current bearer credential.
        policy: Retry budget for API calls.
    """

    def __init__(
        self,
        http: httpx.AsyncClient,
        base_url: str,
        token_provider: Callable[[], str],
        policy: RetryPolicy | None = None,
    ) -> None:
        self._http = http
        self._base_url = base_url.rstrip("/")
        self._token_provider = token_provider
        self._policy = policy or RetryPolicy(retries=2)

    async def _post(self, path: str, payload: dict[str, Any], label: str) -> httpx.Response:
        url = f"{self._base_url}{path}"
        headers = {"Authorization": f"Bearer {self._token_provider()}"}

        async def _send() -> httpx.Response:
            return await self._http.post(url, json=payload, headers=headers)

        response = await call_with_retry(_send, self._policy, label=label)
        if response.status_code == 401:
            raise AuthenticationError(
                _error_message(response, "Not authorized. Sign in again and retry.")
            )
        return response

    # ------------------------------------------------------------------
    # Presign
    # ------------------------------------------------------------------

    async def presign(
        self,
        feature: UploadFeature,
        candidates: Sequence[CandidateFile],
        overwrite: bool = False,
    ) -> PresignResult:
        """Ask the server for upload targets for *candidates*.

        Raises:
            AuthenticationError: On a 401.
            PresignError: On any other non-2xx, or a body that cannot be
                parsed into a target/skip split.
        """
        payload = {
            **feature.presign_fields(),
            "overwrite": overwrite,
            "files": [c.to_presign_dict() for c in candidates],
        }
        logger.info(
            "Presigning %d file(s) for %s (overwrite=%s)",
            len(candidates), feature.name, overwrite,
        )
        try:
            response = await self._post(
                feature.presign_path, payload, f"{feature.name} presign"
            )
        except httpx.TransportError as exc:
            raise PresignError(f"{feature.presign_error_message}: {exc}") from exc

        if not response.is_success:
            raise PresignError(
                _error_message(response, feature.presign_error_message),
                status_code=response.status_code,
            )

        try:
            parsed = PresignResponseSchema.model_validate(response.json())
        except (ValueError, SchemaError) as exc:
            raise PresignError(feature.presign_error_message) from exc
        if parsed.success is False or (feature.require_success and parsed.success is not True):
            raise PresignError(_error_message(response, feature.presign_error_message))

        context = parsed.context
        targets = []
        for item in parsed.targets:
            final_filename = item.final_filename or item.original_name
            targets.append(
                UploadTarget(
                    original_name=item.original_name,
                    final_filename=final_filename,
                    upload_key=item.upload_key or feature.upload_key_for(final_filename, context),
                    put_url=item.url,
                    kind=item.kind or FileKind(get_file_kind(item.original_name)),
                    overwrote=item.overwrote,
                )
            )

        logger.info(
            "Presign returned %d target(s), %d skipped",
            len(targets), len(parsed.skipped),
        )
        return PresignResult(targets=targets, skipped=list(parsed.skipped), context=context)

    # ------------------------------------------------------------------
    # Finalize
    # ------------------------------------------------------------------

    async def finalize(
        self,
        feature: UploadFeature,
        context: dict[str, Any],
        entries: Sequence[UploadEntry],
        skipped: Sequence[str],
    ) -> dict[str, Any]:
        """Tell the server which uploads landed and return its response body.

        Must be called at most once per session: a second call with the
        same entries can duplicate server-side processing.

        Raises:
            AuthenticationError: On a 401.
            FinalizeError: On any other non-2xx or an undecodable body.
        """
        payload = {
            **feature.finalize_fields(context),
            "skipped": list(skipped),
            "files": [entry.to_finalize_dict() for entry in entries],
        }
        logger.info("Finalizing %d file(s) for %s", len(entries), feature.name)
        try:
            response = await self._post(
                feature.finalize_path, payload, f"{feature.name} finalize"
            )
        except httpx.TransportError as exc:
            raise FinalizeError(f"{feature.finalize_error_message}: {exc}") from exc

        if not response.is_success:
            raise FinalizeError(
                _error_message(response, feature.finalize_error_message),
                status_code=response.status_code,
            )
        try:
            body = response.json()
        except ValueError as exc:
            raise FinalizeError(feature.finalize_error_message) from exc
        if not isinstance(body, dict):
            raise FinalizeError(feature.finalize_error_message)
        return body
