"""Feature call sites of the upload pipeline.

Each feature knows its endpoints, how to validate its target parameters
before any network call, which fields scope its presign and finalize
requests, how storage keys and caller-facing references are laid out, and
how to shape the finalize response.

* :class:`TransferFeature`: ephemeral file-transfer links.
* :class:`TransferAppendFeature`: add files to an existing transfer.
* :class:`WordMediaFeature`: media attached to one "words" page.
* :class:`SharedAssetFeature`: media shared across pages.

References are pure functions of ``(final_filename, upload_key, kind)`` and
the feature's path convention, so the same inputs always produce the same
reference.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Mapping, Sequence

from pydantic import ValidationError as SchemaError

from directdrop.media import (
    is_safe_transfer_filename,
    is_valid_target_id,
    markdown_snippet,
    normalise_target_id,
    parse_expiry,
)
from directdrop.models import CandidateFile, FileKind, FileReference, UploadEntry
from directdrop.upload.exceptions import PresignError, ValidationError
from directdrop.upload.schemas import (
    FinalizeResult,
    MediaUploadResult,
    TransferResult,
)

logger = logging.getLogger(__name__)

MAX_TRANSFER_FILE_BYTES = 250 * 1024 * 1024
MAX_TRANSFER_TOTAL_BYTES = 1024 * 1024 * 1024


class UploadFeature(ABC):
    """Base class for a pipeline call site."""

    name: str = "upload"
    presign_path: str = ""
    finalize_path: str = ""
    presign_error_message: str = "Failed to prepare upload"
    finalize_error_message: str = "Upload succeeded but finalization failed"
    require_success: bool = False
    result_type: type[FinalizeResult] = FinalizeResult

    def validate(self, candidates: Sequence[CandidateFile]) -> None:
        """Reject bad target parameters before any bytes move."""

    @abstractmethod
    def presign_fields(self) -> dict[str, Any]:
        """Feature-scoped fields sent with the presign request."""

    def finalize_fields(self, context: Mapping[str, Any]) -> dict[str, Any]:
        """Feature-scoped fields sent with the finalize request.

        Presign context (server-issued ids and tokens) is echoed back.
        """
        return {**self.presign_fields(), **context}

    @abstractmethod
    def upload_key_for(self, final_filename: str, context: Mapping[str, Any]) -> str:
        """Storage key convention, used when the server omits ``uploadKey``."""

    @abstractmethod
    def reference_for(self, final_filename: str, upload_key: str, kind: FileKind) -> str:
        """Caller-facing reference for one finalized file."""

    def build_references(self, entries: Sequence[UploadEntry]) -> list[FileReference]:
        return [
            FileReference(
                original_name=entry.target.original_name,
                final_filename=entry.target.final_filename,
                upload_key=entry.target.upload_key,
                kind=entry.target.kind,
                size=entry.candidate.size,
                reference=self.reference_for(
                    entry.target.final_filename,
                    entry.target.upload_key,
                    entry.target.kind,
                ),
            )
            for entry in entries
        ]

    def build_result(
        self,
        body: Mapping[str, Any],
        entries: Sequence[UploadEntry],
        skipped: Sequence[str],
    ) -> FinalizeResult:
        """Shape a successful finalize body into this feature's result.

        Finalize has already committed on the server, so a body that does
        not fit the result model is logged and reduced to the references
        and skip list instead of failing the session.
        """
        references = self.build_references(entries)
        data = dict(body)
        data["files"] = references
        if data.get("skipped") is None:
            data["skipped"] = list(skipped)
        try:
            return self.result_type.model_validate(data)
        except SchemaError as exc:
            logger.warning(
                "%s: finalize succeeded but its response could not be parsed (%d error(s)); "
                "returning file references only",
                self.name, exc.error_count(),
            )
            return self.result_type(files=references, skipped=list(skipped))

    def empty_result(self, skipped: Sequence[str]) -> FinalizeResult:
        """Result for a batch where the server skipped every file."""
        return self.result_type(files=[], skipped=list(skipped))


# ---------------------------------------------------------------------------
# Transfers
# ---------------------------------------------------------------------------


def _check_transfer_files(candidates: Sequence[CandidateFile]) -> None:
    total = 0
    for candidate in candidates:
        if not is_safe_transfer_filename(candidate.name):
            raise ValidationError("Each file must have a safe filename")
        if candidate.size > MAX_TRANSFER_FILE_BYTES:
            raise ValidationError("File too large. Max 250MB per file.")
        total += candidate.size
        if total > MAX_TRANSFER_TOTAL_BYTES:
            raise ValidationError("Transfer too large. Max 1GB total.")


def _transfer_key(transfer_id: object, filename: str) -> str:
    if not transfer_id:
        raise PresignError("Presign response did not include a transfer id")
    return f"transfers/{transfer_id}/original/{filename}"


class TransferFeature(UploadFeature):
    """A new ephemeral transfer link.

    Filenames pass through unchanged; the server never renames them.
    """

    name = "transfer"
    presign_path = "/api/upload/transfer/presign"
    finalize_path = "/api/upload/transfer/finalize"
    result_type = TransferResult

    def __init__(self, title: str = "", expires: str = "7d") -> None:
        self.title = title.strip() or "untitled"
        self.expires = expires

    def validate(self, candidates: Sequence[CandidateFile]) -> None:
        try:
            parse_expiry(self.expires)
        except ValueError as exc:
            raise ValidationError(str(exc)) from exc
        _check_transfer_files(candidates)

    def presign_fields(self) -> dict[str, Any]:
        return {"title": self.title, "expires": self.expires}

    def finalize_fields(self, context: Mapping[str, Any]) -> dict[str, Any]:
        return {"title": self.title, **context}

    def upload_key_for(self, final_filename: str, context: Mapping[str, Any]) -> str:
        return _transfer_key(context.get("transferId"), final_filename)

    def reference_for(self, final_filename: str, upload_key: str, kind: FileKind) -> str:
        return upload_key


class TransferAppendFeature(UploadFeature):
    """Append files to an existing transfer (admin only)."""

    name = "transfer-append"
    presign_path = "/api/upload/transfer/append/presign"
    finalize_path = "/api/upload/transfer/append/finalize"
    presign_error_message = "Failed to prepare append upload"
    result_type = TransferResult

    def __init__(self, transfer_id: str) -> None:
        self.transfer_id = transfer_id.strip()

    def validate(self, candidates: Sequence[CandidateFile]) -> None:
        if not self.transfer_id:
            raise ValidationError("transfer id is required")
        _check_transfer_files(candidates)
        seen: set[str] = set()
        for candidate in candidates:
            if candidate.name in seen:
                raise ValidationError(
                    f"Duplicate filename in upload selection: {candidate.name}"
                )
            seen.add(candidate.name)

    def presign_fields(self) -> dict[str, Any]:
        return {"transferId": self.transfer_id}

    def upload_key_for(self, final_filename: str, context: Mapping[str, Any]) -> str:
        return _transfer_key(self.transfer_id, final_filename)

    def reference_for(self, final_filename: str, upload_key: str, kind: FileKind) -> str:
        return upload_key


# ---------------------------------------------------------------------------
# Words media and shared assets
# ---------------------------------------------------------------------------


class _MediaFeature(UploadFeature):
    """Media stored under a words-page or shared-asset prefix.

    The server applies the collision policy: with ``overwrite`` false an
    existing name is skipped (or renamed), otherwise it is overwritten and
    the target comes back with ``overwrote`` set.
    """

    presign_path = "/api/upload/words/presign"
    finalize_path = "/api/upload/words/finalize"
    presign_error_message = "Failed to prepare words upload"
    finalize_error_message = "Words upload succeeded but finalization failed"
    result_type = MediaUploadResult
    require_success = True

    scope: str = ""
    id_field: str = ""
    required_message: str = ""
    invalid_message: str = ""
    prefix: str = ""

    def __init__(self, target_id: str) -> None:
        self.target_id = normalise_target_id(target_id)

    def validate(self, candidates: Sequence[CandidateFile]) -> None:
        if not self.target_id:
            raise ValidationError(self.required_message)
        if not is_valid_target_id(self.target_id):
            raise ValidationError(self.invalid_message)

    def presign_fields(self) -> dict[str, Any]:
        return {"scope": self.scope, self.id_field: self.target_id}

    def media_path(self, filename: str) -> str:
        return f"{self.prefix}/{self.target_id}/{filename}"

    def upload_key_for(self, final_filename: str, context: Mapping[str, Any]) -> str:
        return self.media_path(final_filename)

    def reference_for(self, final_filename: str, upload_key: str, kind: FileKind) -> str:
        return markdown_snippet(self.media_path(final_filename), final_filename, kind.value)


class WordMediaFeature(_MediaFeature):
    name = "word-media"
    scope = "word"
    id_field = "slug"
    required_message = "word slug is required"
    invalid_message = "Slug must use lowercase letters, numbers, and hyphens only."
    prefix = "words/media"


class SharedAssetFeature(_MediaFeature):
    name = "shared-asset"
    scope = "asset"
    id_field = "assetId"
    required_message = "asset id is required"
    invalid_message = "Asset ID must use lowercase letters, numbers, and hyphens only."
    prefix = "words/assets"
