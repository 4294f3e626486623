"""Data models and enums for the direct upload pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Iterable

from directdrop.media import get_mime_type


class FileKind(str, Enum):
    """Coarse file type used for rendering and post-processing."""

    IMAGE = "image"
    VIDEO = "video"
    GIF = "gif"
    AUDIO = "audio"
    FILE = "file"


class SessionPhase(str, Enum):
    """Phase reported on the progress surface."""

    UPLOADING = "uploading"
    PROCESSING = "processing"


@dataclass(frozen=True, slots=True)
class CandidateFile:
    """A local file selected for upload.

    ``source`` is either the raw payload or a path to read it from.  The
    payload is re-read for every PUT attempt so retries never send a
    half-consumed stream.
    """

    name: str
    size: int
    declared_type: str
    source: bytes | Path = field(repr=False)

    @classmethod
    def from_path(cls, path: str | Path, declared_type: str | None = None) -> CandidateFile:
        """Build a candidate from a file on disk."""
        path = Path(path)
        return cls(
            name=path.name,
            size=path.stat().st_size,
            declared_type=declared_type if declared_type is not None else get_mime_type(path.name),
            source=path,
        )

    @classmethod
    def from_bytes(cls, name: str, payload: bytes, declared_type: str = "") -> CandidateFile:
        """Build a candidate from an in-memory payload."""
        return cls(name=name, size=len(payload), declared_type=declared_type, source=payload)

    def read_bytes(self) -> bytes:
        if isinstance(self.source, bytes):
            return self.source
        return Path(self.source).read_bytes()

    def to_presign_dict(self) -> dict[str, object]:
        return {"name": self.name, "size": self.size, "type": self.declared_type}


@dataclass(frozen=True, slots=True)
class UploadTarget:
    """Server-issued destination for one accepted candidate.

    ``put_url`` is single-use and time-boxed; it must not be reused once the
    matching PUT has completed.
    """

    original_name: str
    final_filename: str
    upload_key: str
    put_url: str = field(repr=False)
    kind: FileKind = FileKind.FILE
    overwrote: bool = False


@dataclass(frozen=True, slots=True)
class UploadEntry:
    """A candidate joined to the target it will be uploaded to."""

    candidate: CandidateFile
    target: UploadTarget

    def to_finalize_dict(self) -> dict[str, object]:
        return {
            "original": self.target.original_name,
            "finalFilename": self.target.final_filename,
            "uploadKey": self.target.upload_key,
            "kind": self.target.kind.value,
            "size": self.candidate.size,
            "overwrote": self.target.overwrote,
        }


@dataclass(frozen=True, slots=True)
class SessionProgress:
    """Read-only snapshot of an upload session's progress."""

    phase: SessionPhase
    completed: int
    total: int
    current_filename: str | None = None


@dataclass(frozen=True, slots=True)
class FileReference:
    """Caller-facing reference to one finalized file."""

    original_name: str
    final_filename: str
    upload_key: str
    kind: FileKind
    size: int
    reference: str


@dataclass
class ClientConfig:
    """Configuration for the upload client.

    Retry budgets for application-server calls and direct storage PUTs are
    configured independently.
    """

    base_url: str = "http://localhost:3000"
    api_token: str | None = None
    concurrency: int = 4
    api_retries: int = 2
    put_retries: int = 2
    retry_base_delay: float = 0.3
    retry_jitter: float = 0.12
    request_timeout: float = 120.0


def _selection_key(candidate: CandidateFile) -> tuple[object, ...]:
    if isinstance(candidate.source, bytes):
        return ("bytes", candidate.name, candidate.source)
    return ("path", Path(candidate.source).resolve())


def dedupe_candidates(files: Iterable[CandidateFile]) -> list[CandidateFile]:
    """Drop repeat selections of the same file.

    A path-backed candidate repeats an earlier one when both resolve to the
    same file on disk; an in-memory candidate when name and payload match.
    Order is preserved.  Distinct files that share a name are kept and are
    disambiguated later by per-name FIFO reconciliation.
    """
    seen: set[tuple[object, ...]] = set()
    result: list[CandidateFile] = []
    for candidate in files:
        key = _selection_key(candidate)
        if key in seen:
            continue
        seen.add(key)
        result.append(candidate)
    return result
