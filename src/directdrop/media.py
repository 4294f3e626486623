"""Filename, MIME type and target-id helpers shared by every upload feature."""

from __future__ import annotations

import os
import re

# ---------------------------------------------------------------------------
# File type classification
# ---------------------------------------------------------------------------

PROCESSABLE_EXTENSIONS = re.compile(r"\.(jpe?g|png|webp|heic|hif|tiff?)$", re.IGNORECASE)
ANIMATED_EXTENSIONS = re.compile(r"\.gif$", re.IGNORECASE)
VIDEO_EXTENSIONS = re.compile(r"\.(mp4|mov|webm|avi|mkv|m4v|wmv|flv)$", re.IGNORECASE)
AUDIO_EXTENSIONS = re.compile(r"\.(mp3|wav|ogg|flac|aac|m4a|wma)$", re.IGNORECASE)

DEFAULT_CONTENT_TYPE = "application/octet-stream"

MIME_TYPES: dict[str, str] = {
    ".jpg": "image/jpeg", ".jpeg": "image/jpeg",
    ".png": "image/png", ".webp": "image/webp",
    ".heic": "image/heic", ".hif": "image/heif", ".tif": "image/tiff", ".tiff": "image/tiff",
    ".gif": "image/gif", ".svg": "image/svg+xml",
    ".mp4": "video/mp4", ".mov": "video/quicktime",
    ".webm": "video/webm", ".avi": "video/x-msvideo",
    ".mkv": "video/x-matroska", ".m4v": "video/mp4",
    ".wmv": "video/x-ms-wmv", ".flv": "video/x-flv",
    ".mp3": "audio/mpeg", ".wav": "audio/wav",
    ".ogg": "audio/ogg", ".flac": "audio/flac",
    ".aac": "audio/aac", ".m4a": "audio/mp4", ".wma": "audio/x-ms-wma",
    ".pdf": "application/pdf",
    ".zip": "application/zip", ".rar": "application/x-rar-compressed",
    ".7z": "application/x-7z-compressed", ".tar": "application/x-tar",
    ".gz": "application/gzip",
    ".doc": "application/msword",
    ".docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    ".xls": "application/vnd.ms-excel",
    ".xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    ".ppt": "application/vnd.ms-powerpoint",
    ".pptx": "application/vnd.openxmlformats-officedocument.presentationml.presentation",
    ".txt": "text/plain", ".csv": "text/csv",
    ".json": "application/json", ".xml": "application/xml",
}


def get_mime_type(filename: str) -> str:
    """Get the MIME type for *filename*, falling back to octet-stream."""
    ext = os.path.splitext(filename)[1].lower()
    return MIME_TYPES.get(ext, DEFAULT_CONTENT_TYPE)


def get_file_kind(filename: str) -> str:
    """Classify *filename* into one of the ``FileKind`` values."""
    if ANIMATED_EXTENSIONS.search(filename):
        return "gif"
    if PROCESSABLE_EXTENSIONS.search(filename):
        return "image"
    if VIDEO_EXTENSIONS.search(filename):
        return "video"
    if AUDIO_EXTENSIONS.search(filename):
        return "audio"
    return "file"


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

_SAFE_TARGET_ID = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")

MAX_FILENAME_LENGTH = 180


def is_safe_transfer_filename(filename: str) -> bool:
    """Return True if *filename* is a bare, traversal-free file name."""
    name = filename.strip()
    if not name or len(name) > MAX_FILENAME_LENGTH:
        return False
    if name in (".", ".."):
        return False
    if "\0" in name:
        return False
    if "/" in name or "\\" in name or ".." in name:
        return False
    return os.path.basename(name) == name


def normalise_target_id(value: str | None) -> str:
    return (value or "").strip().lower()


def is_valid_target_id(value: str) -> bool:
    """Slugs and asset ids use lowercase letters, numbers and hyphens only."""
    return bool(_SAFE_TARGET_ID.match(value))


# ---------------------------------------------------------------------------
# Transfer expiry
# ---------------------------------------------------------------------------

MAX_EXPIRY_SECONDS = 30 * 24 * 60 * 60
DEFAULT_EXPIRY_SECONDS = 7 * 24 * 60 * 60

_EXPIRY_PATTERN = re.compile(r"^(\d+)([dhm])$", re.IGNORECASE)
_UNIT_SECONDS = {"d": 86400, "h": 3600, "m": 60}


def parse_expiry(text: str) -> int:
    """Parse an expiry like ``30m``, ``12h`` or ``7d`` into seconds.

    Raises:
        ValueError: If the format is wrong, the value is zero, or it
            exceeds 30 days.
    """
    match = _EXPIRY_PATTERN.match(text.strip())
    if not match:
        raise ValueError(
            f'Invalid expiry format "{text}". Use: 30m, 1h, 12h, 1d, 7d, 14d, 30d'
        )
    seconds = int(match.group(1)) * _UNIT_SECONDS[match.group(2).lower()]
    if seconds <= 0:
        raise ValueError("Expiry must be greater than 0")
    if seconds > MAX_EXPIRY_SECONDS:
        raise ValueError(f"Expiry cannot exceed 30 days (got {text})")
    return seconds


# ---------------------------------------------------------------------------
# Display helpers
# ---------------------------------------------------------------------------


def markdown_label(filename: str) -> str:
    return re.sub(r"\.[^.]+$", "", filename)


def markdown_snippet(path: str, filename: str, kind: str) -> str:
    """Build a ready-to-paste markdown snippet for a stored media file."""
    label = markdown_label(filename)
    if kind in ("image", "video", "gif"):
        return f"![{label}]({path})"
    return f"[{label}]({path})"


def format_bytes(num_bytes: int) -> str:
    """Format a byte count as ``0 b``, ``512 b``, ``1.5 kb``, ``2 mb``..."""
    if num_bytes <= 0:
        return "0 b"
    units = ("b", "kb", "mb", "gb")
    value = float(num_bytes)
    index = 0
    while value >= 1024 and index < len(units) - 1:
        value /= 1024
        index += 1
    text = f"{value:.1f}".rstrip("0").rstrip(".")
    return f"{text} {units[index]}"
