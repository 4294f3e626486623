"""Tests for per-feature validation, request fields, keys and results."""

from __future__ import annotations

import pytest

from directdrop.models import CandidateFile, FileKind, UploadEntry, UploadTarget
from directdrop.upload.exceptions import PresignError, ValidationError
from directdrop.upload.features import (
    MAX_TRANSFER_FILE_BYTES,
    SharedAssetFeature,
    TransferAppendFeature,
    TransferFeature,
    WordMediaFeature,
)
from directdrop.upload.schemas import MediaUploadResult, TransferResult


class _SizedCandidate:
    """Candidate stand-in that reports a size without holding the bytes."""

    def __init__(self, name: str, size: int) -> None:
        self.name = name
        self.size = size


class TestTransferFeature:
    def test_blank_title_defaults_to_untitled(self):
        assert TransferFeature(title="   ").presign_fields() == {"title": "untitled", "expires": "7d"}

    def test_finalize_fields_echo_context(self):
        fields = TransferFeature(title="Trip").finalize_fields({"transferId": "t1", "deleteToken": "d"})
        assert fields == {"title": "Trip", "transferId": "t1", "deleteToken": "d"}

    def test_key_uses_transfer_id(self):
        key = TransferFeature().upload_key_for("a.png", {"transferId": "abc"})
        assert key == "transfers/abc/original/a.png"

    def test_key_without_transfer_id_fails(self):
        with pytest.raises(PresignError):
            TransferFeature().upload_key_for("a.png", {})

    def test_reference_is_storage_key(self):
        assert TransferFeature().reference_for("a.png", "transfers/t/original/a.png", FileKind.IMAGE) == (
            "transfers/t/original/a.png"
        )

    def test_unsafe_filename_rejected(self):
        with pytest.raises(ValidationError, match="safe filename"):
            TransferFeature().validate([_SizedCandidate("../x", 1)])

    def test_oversized_file_rejected(self):
        with pytest.raises(ValidationError, match="Max 250MB per file"):
            TransferFeature().validate([_SizedCandidate("big.bin", MAX_TRANSFER_FILE_BYTES + 1)])

    def test_oversized_total_rejected(self):
        files = [_SizedCandidate(f"f{i}.bin", MAX_TRANSFER_FILE_BYTES) for i in range(5)]
        with pytest.raises(ValidationError, match="Max 1GB total"):
            TransferFeature().validate(files)

    def test_invalid_expiry_rejected(self):
        with pytest.raises(ValidationError, match="Invalid expiry format"):
            TransferFeature(expires="soon").validate([])


class TestTransferAppendFeature:
    def test_requires_transfer_id(self):
        with pytest.raises(ValidationError, match="transfer id is required"):
            TransferAppendFeature("  ").validate([])

    def test_presign_fields(self):
        assert TransferAppendFeature("t9").presign_fields() == {"transferId": "t9"}

    def test_key_uses_own_transfer_id(self):
        assert TransferAppendFeature("t9").upload_key_for("a.png", {}) == "transfers/t9/original/a.png"

    def test_endpoints(self):
        feature = TransferAppendFeature("t9")
        assert feature.presign_path == "/api/upload/transfer/append/presign"
        assert feature.finalize_path == "/api/upload/transfer/append/finalize"


class TestMediaFeatures:
    def test_word_fields(self):
        assert WordMediaFeature(" My-Page ").presign_fields() == {"scope": "word", "slug": "my-page"}

    def test_asset_fields(self):
        assert SharedAssetFeature("logos").presign_fields() == {"scope": "asset", "assetId": "logos"}

    def test_both_share_words_endpoints(self):
        assert WordMediaFeature("p").presign_path == SharedAssetFeature("a").presign_path
        assert WordMediaFeature("p").finalize_path == "/api/upload/words/finalize"

    def test_missing_id_rejected(self):
        with pytest.raises(ValidationError, match="word slug is required"):
            WordMediaFeature("").validate([])
        with pytest.raises(ValidationError, match="asset id is required"):
            SharedAssetFeature("").validate([])

    def test_invalid_asset_id_rejected(self):
        with pytest.raises(ValidationError, match="Asset ID must use"):
            SharedAssetFeature("bad_id").validate([])

    def test_asset_reference_uses_assets_prefix(self):
        ref = SharedAssetFeature("logos").reference_for("mark.png", "ignored", FileKind.IMAGE)
        assert ref == "![mark](words/assets/logos/mark.png)"

    def test_reference_is_deterministic(self):
        feature = WordMediaFeature("p")
        assert feature.reference_for("a.pdf", "k", FileKind.FILE) == feature.reference_for(
            "a.pdf", "k", FileKind.FILE
        )


class TestResults:
    def _entry(self, name: str, final: str, kind: FileKind) -> UploadEntry:
        return UploadEntry(
            candidate=CandidateFile.from_bytes(name, b"12345"),
            target=UploadTarget(name, final, f"words/media/p/{final}", "https://s/x", kind),
        )

    def test_media_result_merges_body_and_references(self):
        feature = WordMediaFeature("p")
        body = {
            "success": True,
            "uploaded": [
                {"original": "a.jpg", "filename": "a.webp", "kind": "image",
                 "width": 640, "height": 480, "size": 5, "markdown": "![a](x)"},
            ],
        }
        result = feature.build_result(body, [self._entry("a.jpg", "a.webp", FileKind.IMAGE)], ["b.png"])

        assert isinstance(result, MediaUploadResult)
        assert result.uploaded[0].width == 640
        assert result.skipped == ["b.png"]
        (ref,) = result.files
        assert ref.final_filename == "a.webp"
        assert ref.size == 5
        assert ref.reference == "![a](words/media/p/a.webp)"

    def test_server_skipped_list_wins(self):
        result = WordMediaFeature("p").build_result({"skipped": ["x"]}, [], ["y"])
        assert result.skipped == ["x"]

    def test_transfer_empty_result(self):
        result = TransferFeature().empty_result(["a.png"])
        assert isinstance(result, TransferResult)
        assert result.files == []
        assert result.skipped == ["a.png"]
        assert result.share_url is None
