"""Pydantic models for the presign and finalize wire formats.

The server speaks camelCase JSON; fields are exposed here in snake_case via
validation aliases.  Presign targets accept both the canonical shape
(``originalName``/``finalFilename``/``uploadKey``/``url``/``kind``/
``overwrote``) and the older transfer shape (``name``/``url``).
"""

from __future__ import annotations

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from directdrop.models import FileKind, FileReference


# ---------------------------------------------------------------------------
# Presign
# ---------------------------------------------------------------------------


class PresignTargetSchema(BaseModel):
    """One upload target as returned by a presign endpoint."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    original_name: str = Field(
        validation_alias=AliasChoices("originalName", "original", "name")
    )
    final_filename: str | None = Field(
        default=None, validation_alias=AliasChoices("finalFilename", "filename")
    )
    upload_key: str | None = Field(
        default=None, validation_alias=AliasChoices("uploadKey", "key")
    )
    url: str = Field(validation_alias=AliasChoices("url", "putUrl"))
    kind: FileKind | None = None
    overwrote: bool = False


class PresignResponseSchema(BaseModel):
    """Presign response body.

    Fields not modelled here (``transferId``, ``deleteToken``,
    ``expiresSeconds``...) are feature-scoped context that must be echoed
    back to finalize; they land in ``model_extra``.
    """

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    targets: list[PresignTargetSchema] = Field(
        default_factory=list, validation_alias=AliasChoices("targets", "urls")
    )
    skipped: list[str] = Field(default_factory=list)
    success: bool | None = None

    @property
    def context(self) -> dict[str, object]:
        return dict(self.model_extra or {})


# ---------------------------------------------------------------------------
# Finalize results
# ---------------------------------------------------------------------------


class FinalizeResult(BaseModel):
    """Caller-facing outcome of a session.

    ``files`` holds one reference per finalized upload entry; names the
    server skipped appear only in ``skipped``.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    files: list[FileReference] = Field(default_factory=list)
    skipped: list[str] = Field(default_factory=list)


class FileCounts(BaseModel):
    images: int = 0
    videos: int = 0
    gifs: int = 0
    audio: int = 0
    other: int = 0


class TransferSummary(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str | None = None
    title: str = "untitled"
    file_count: int = Field(default=0, validation_alias=AliasChoices("fileCount", "file_count"))
    expires_at: str | None = Field(default=None, validation_alias=AliasChoices("expiresAt", "expires_at"))


class TransferResult(FinalizeResult):
    """Result of a transfer (or transfer append) upload."""

    share_url: str | None = Field(default=None, validation_alias=AliasChoices("shareUrl", "share_url"))
    admin_url: str | None = Field(default=None, validation_alias=AliasChoices("adminUrl", "admin_url"))
    transfer: TransferSummary | None = None
    total_size: int = Field(default=0, validation_alias=AliasChoices("totalSize", "total_size"))
    file_counts: FileCounts = Field(
        default_factory=FileCounts, validation_alias=AliasChoices("fileCounts", "file_counts")
    )
    added_count: int | None = Field(default=None, validation_alias=AliasChoices("addedCount", "added_count"))


class UploadedMedia(BaseModel):
    """One finalized word/asset media file."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    original: str
    filename: str
    kind: FileKind = FileKind.FILE
    width: int | None = None
    height: int | None = None
    size: int = 0
    markdown: str = ""
    overwrote: bool = False


class MediaUploadResult(FinalizeResult):
    """Result of a word-media or shared-asset upload."""

    uploaded: list[UploadedMedia] = Field(default_factory=list)
