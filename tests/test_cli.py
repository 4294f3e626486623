"""CLI tests using typer's CliRunner with the network layer stubbed out."""

from __future__ import annotations

import json

import pytest
from typer.testing import CliRunner

from directdrop import cli
from directdrop import config as config_module
from directdrop.models import FileKind, FileReference
from directdrop.upload.exceptions import PresignError
from directdrop.upload.features import TransferFeature, WordMediaFeature
from directdrop.upload.schemas import MediaUploadResult, TransferResult

runner = CliRunner()


@pytest.fixture
def config_file(tmp_path, monkeypatch):
    monkeypatch.setattr(config_module.keyring, "get_password", lambda service, key: None)
    monkeypatch.delenv(config_module.BASE_URL_ENV_VAR, raising=False)
    path = tmp_path / "client_config.json"
    path.write_text(json.dumps({"base_url": "https://app.test", "api_token": "tok"}))
    return path


@pytest.fixture
def files(tmp_path):
    paths = []
    for name in ("a.png", "b.pdf"):
        path = tmp_path / name
        path.write_bytes(name.encode())
        paths.append(path)
    return paths


@pytest.fixture
def captured(monkeypatch):
    """Replace the async upload with a stub that records its arguments."""
    calls = []
    state = {"result": None, "error": None}

    async def fake_upload(config, token, feature, candidates, overwrite):
        calls.append({
            "config": config,
            "token": token,
            "feature": feature,
            "candidates": candidates,
            "overwrite": overwrite,
        })
        if state["error"] is not None:
            raise state["error"]
        return state["result"]

    monkeypatch.setattr(cli, "_upload", fake_upload)
    return calls, state


class TestUploadCommands:
    def test_words_prints_markdown(self, config_file, files, captured):
        calls, state = captured
        state["result"] = MediaUploadResult(
            files=[FileReference("a.png", "a.png", "words/media/p/a.png", FileKind.IMAGE, 5,
                                 "![a](words/media/p/a.png)")],
        )

        result = runner.invoke(
            cli.app, ["words", "my-page", str(files[0]), "--force", "--config", str(config_file)]
        )

        assert result.exit_code == 0, result.output
        assert "![a](words/media/p/a.png)" in result.output
        (call,) = calls
        assert isinstance(call["feature"], WordMediaFeature)
        assert call["feature"].target_id == "my-page"
        assert call["overwrite"] is True
        assert call["token"] == "tok"

    def test_transfer_passes_title_and_expiry(self, config_file, files, captured):
        calls, state = captured
        state["result"] = TransferResult(share_url="https://app.test/t/1")

        result = runner.invoke(
            cli.app,
            ["transfer", *map(str, files), "-t", "Trip", "-e", "1d", "-c", str(config_file)],
        )

        assert result.exit_code == 0, result.output
        assert "https://app.test/t/1" in result.output
        feature = calls[0]["feature"]
        assert isinstance(feature, TransferFeature)
        assert feature.title == "Trip"
        assert feature.expires == "1d"
        assert [c.name for c in calls[0]["candidates"]] == ["a.png", "b.pdf"]

    def test_repeat_selection_is_deduplicated(self, config_file, files, captured):
        calls, state = captured
        state["result"] = TransferResult()

        runner.invoke(cli.app, ["transfer", str(files[0]), str(files[0]), "-c", str(config_file)])

        assert len(calls[0]["candidates"]) == 1

    def test_same_name_files_in_different_folders_are_both_uploaded(
        self, tmp_path, config_file, captured
    ):
        calls, state = captured
        state["result"] = TransferResult()
        paths = []
        for folder, payload in (("x", b"AAAA"), ("y", b"BBBB")):
            (tmp_path / folder).mkdir()
            path = tmp_path / folder / "a.png"
            path.write_bytes(payload)
            paths.append(str(path))

        result = runner.invoke(cli.app, ["transfer", *paths, "-c", str(config_file)])

        assert result.exit_code == 0, result.output
        assert "duplicate" not in result.output
        candidates = calls[0]["candidates"]
        assert [c.name for c in candidates] == ["a.png", "a.png"]
        assert [c.read_bytes() for c in candidates] == [b"AAAA", b"BBBB"]

    def test_upload_error_exits_nonzero(self, config_file, files, captured):
        _, state = captured
        state["error"] = PresignError("Slug does not exist", status_code=404)

        result = runner.invoke(cli.app, ["words", "nope", str(files[0]), "-c", str(config_file)])

        assert result.exit_code == 1
        assert "Slug does not exist" in result.output

    def test_missing_token_exits_nonzero(self, tmp_path, files, captured, monkeypatch):
        monkeypatch.setattr(config_module.keyring, "get_password", lambda service, key: None)
        monkeypatch.delenv(config_module.TOKEN_ENV_VAR, raising=False)
        empty = tmp_path / "empty.json"
        empty.write_text("{}")

        result = runner.invoke(cli.app, ["asset", "logos", str(files[0]), "-c", str(empty)])

        assert result.exit_code == 1
        assert "Upload token not found" in result.output
        assert captured[0] == []


class TestConfigCommands:
    def test_show(self, config_file):
        result = runner.invoke(cli.app, ["config", "show", "--config", str(config_file)])

        assert result.exit_code == 0, result.output
        assert "https://app.test" in result.output
        assert "api_token" in result.output

    def test_set_token(self, monkeypatch):
        stored = {}
        monkeypatch.setattr(
            config_module.keyring,
            "set_password",
            lambda service, key, value: stored.__setitem__((service, key), value),
        )

        result = runner.invoke(cli.app, ["config", "set-token", "abc"])

        assert result.exit_code == 0, result.output
        assert stored == {("directdrop", "upload_token"): "abc"}
