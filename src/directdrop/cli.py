"""CLI entry point for the direct upload client.

Provides commands:
  - transfer: Upload files as a new ephemeral transfer link
  - append: Add files to an existing transfer
  - words: Upload media for a words page
  - asset: Upload shared media assets
  - config: Manage configuration (upload token, settings)
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Annotated, Optional

import httpx
import typer
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from directdrop.config import (
    DEFAULT_CONFIG_PATH,
    get_api_token,
    load_client_config,
    set_api_token,
)
from directdrop.media import format_bytes
from directdrop.models import CandidateFile, ClientConfig, dedupe_candidates
from directdrop.upload.client import UploadApiClient
from directdrop.upload.exceptions import UploadError
from directdrop.upload.features import (
    SharedAssetFeature,
    TransferAppendFeature,
    TransferFeature,
    UploadFeature,
    WordMediaFeature,
)
from directdrop.upload.progress import ProgressRecorder, UploadProgressTracker
from directdrop.upload.retry import RetryPolicy
from directdrop.upload.schemas import FinalizeResult, MediaUploadResult, TransferResult
from directdrop.upload.session import UploadSession
from directdrop.upload.storage import DirectUploader

logger = logging.getLogger(__name__)

app = typer.Typer(
    help="directdrop - upload files straight to object storage",
    rich_markup_mode="rich",
)
console = Console()

config_app = typer.Typer(help="Manage configuration (upload token, settings)")
app.add_typer(config_app, name="config")

FilesArg = Annotated[
    list[Path],
    typer.Argument(exists=True, dir_okay=False, readable=True, help="Files to upload"),
]
ConfigOpt = Annotated[
    Optional[Path],
    typer.Option("--config", "-c", help="Path to client_config.json"),
]
ForceOpt = Annotated[
    bool,
    typer.Option("--force", "-f", help="Overwrite existing files in this target"),
]
DebugOpt = Annotated[
    bool,
    typer.Option("--debug", help="Write debug logs to ~/.directdrop/debug.log"),
]


# ---------------------------------------------------------------------------
# Shared runner
# ---------------------------------------------------------------------------


def _enable_debug_log() -> None:
    debug_dir = Path.home() / ".directdrop"
    debug_dir.mkdir(exist_ok=True)
    fh = logging.FileHandler(debug_dir / "debug.log")
    fh.setLevel(logging.DEBUG)
    fh.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
    package_logger = logging.getLogger("directdrop")
    package_logger.addHandler(fh)
    package_logger.setLevel(logging.DEBUG)


def _load_config_or_exit(config_path: Path | None) -> tuple[ClientConfig, str]:
    try:
        config = load_client_config(config_path)
    except (ValueError, TypeError) as e:
        console.print(f"[red]Invalid configuration:[/red] {e}")
        raise typer.Exit(code=1)

    token = config.api_token
    if not token:
        try:
            token = get_api_token()
        except RuntimeError as e:
            console.print(f"[red]{e}[/red]")
            raise typer.Exit(code=1)
    return config, token


async def _upload(
    config: ClientConfig,
    token: str,
    feature: UploadFeature,
    candidates: list[CandidateFile],
    overwrite: bool,
) -> FinalizeResult:
    recorder = ProgressRecorder()
    tracker = UploadProgressTracker()
    recorder.subscribe(tracker.update)

    async with httpx.AsyncClient(timeout=config.request_timeout) as http:
        api = UploadApiClient(
            http,
            config.base_url,
            lambda: token,
            RetryPolicy(config.api_retries, config.retry_base_delay, config.retry_jitter),
        )
        uploader = DirectUploader(
            http,
            RetryPolicy(config.put_retries, config.retry_base_delay, config.retry_jitter),
        )
        session = UploadSession(
            api,
            uploader,
            feature,
            concurrency=config.concurrency,
            progress=recorder,
        )
        with tracker:
            return await session.run(candidates, overwrite=overwrite)


def _run(
    feature: UploadFeature,
    files: list[Path],
    overwrite: bool,
    config_path: Path | None,
    debug: bool,
) -> FinalizeResult:
    if debug:
        _enable_debug_log()

    candidates = dedupe_candidates(CandidateFile.from_path(p) for p in files)
    if len(candidates) < len(files):
        console.print(
            f"[dim]Ignoring {len(files) - len(candidates)} duplicate selection(s)[/dim]"
        )
    config, token = _load_config_or_exit(config_path)

    total = sum(c.size for c in candidates)
    console.print(
        f"[dim]Uploading[/dim] [bold]{len(candidates)}[/bold] file(s) "
        f"([bold]{format_bytes(total)}[/bold]) to [bold]{config.base_url}[/bold]"
    )
    try:
        return asyncio.run(_upload(config, token, feature, candidates, overwrite))
    except UploadError as e:
        console.print(f"[red]Upload failed:[/red] {escape(e.message)}")
        raise typer.Exit(code=1)


# ---------------------------------------------------------------------------
# Result rendering
# ---------------------------------------------------------------------------


def _print_transfer_result(result: TransferResult) -> None:
    lines = []
    if result.share_url:
        lines.append(f"Share: [bold cyan]{result.share_url}[/bold cyan]")
    if result.admin_url:
        lines.append(f"Admin: [dim]{result.admin_url}[/dim]")
    if result.transfer is not None:
        lines.append(
            f"{result.transfer.title} - {result.transfer.file_count} file(s), "
            f"expires {result.transfer.expires_at or 'never'}"
        )
    if result.added_count is not None:
        lines.append(f"Added {result.added_count} file(s)")
    lines.append(f"Total size: {format_bytes(result.total_size)}")
    console.print(Panel("\n".join(lines), title="Transfer Ready"))

    counts = result.file_counts
    table = Table(title="Files")
    table.add_column("File", style="cyan", no_wrap=True)
    table.add_column("Kind")
    table.add_column("Size", justify="right")
    for ref in result.files:
        table.add_row(ref.final_filename, ref.kind.value, format_bytes(ref.size))
    table.caption = (
        f"{counts.images} images, {counts.videos} videos, {counts.gifs} gifs, "
        f"{counts.audio} audio, {counts.other} other"
    )
    console.print(table)


def _print_media_result(result: MediaUploadResult) -> None:
    if result.uploaded:
        table = Table(title=f"Uploaded ({len(result.uploaded)})")
        table.add_column("File", style="cyan", no_wrap=True)
        table.add_column("Kind")
        table.add_column("Size", justify="right")
        table.add_column("Markdown")
        for item in result.uploaded:
            name = escape(item.filename) + (" [yellow](overwrote)[/yellow]" if item.overwrote else "")
            table.add_row(name, item.kind.value, format_bytes(item.size), escape(item.markdown))
        console.print(table)
    elif result.files:
        for ref in result.files:
            console.print(ref.reference, markup=False)
    else:
        console.print("[yellow]Nothing uploaded.[/yellow]")

    if result.skipped:
        console.print(
            f"[yellow]Skipped ({len(result.skipped)}):[/yellow] {escape(', '.join(result.skipped))}"
        )


def _print_result(result: FinalizeResult) -> None:
    if isinstance(result, TransferResult):
        _print_transfer_result(result)
    elif isinstance(result, MediaUploadResult):
        _print_media_result(result)
    else:
        for ref in result.files:
            console.print(ref.reference, markup=False)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@app.command()
def transfer(
    files: FilesArg,
    title: Annotated[str, typer.Option("--title", "-t", help="Transfer title")] = "",
    expires: Annotated[
        str,
        typer.Option("--expires", "-e", help="Expiry: 30m, 1h, 12h, 1d, 7d, 14d, 30d"),
    ] = "7d",
    config_path: ConfigOpt = None,
    debug: DebugOpt = False,
) -> None:
    """Upload files as a new ephemeral transfer link."""
    result = _run(TransferFeature(title=title, expires=expires), files, False, config_path, debug)
    _print_result(result)


@app.command()
def append(
    transfer_id: Annotated[str, typer.Argument(help="Existing transfer id")],
    files: FilesArg,
    config_path: ConfigOpt = None,
    debug: DebugOpt = False,
) -> None:
    """Add files to an existing transfer (admin token required)."""
    result = _run(TransferAppendFeature(transfer_id), files, False, config_path, debug)
    _print_result(result)


@app.command()
def words(
    slug: Annotated[str, typer.Argument(help="Words page slug")],
    files: FilesArg,
    force: ForceOpt = False,
    config_path: ConfigOpt = None,
    debug: DebugOpt = False,
) -> None:
    """Upload media for a words page."""
    result = _run(WordMediaFeature(slug), files, force, config_path, debug)
    _print_result(result)


@app.command()
def asset(
    asset_id: Annotated[str, typer.Argument(help="Shared asset id")],
    files: FilesArg,
    force: ForceOpt = False,
    config_path: ConfigOpt = None,
    debug: DebugOpt = False,
) -> None:
    """Upload shared media assets."""
    result = _run(SharedAssetFeature(asset_id), files, force, config_path, debug)
    _print_result(result)


# ---------------------------------------------------------------------------
# Config commands
# ---------------------------------------------------------------------------


@config_app.command("set-token")
def config_set_token(
    token: Annotated[str, typer.Argument(help="Upload bearer token")],
) -> None:
    """Store the upload token in the system keyring."""
    set_api_token(token)
    console.print("[green]Upload token saved to keyring.[/green]")


@config_app.command("show")
def config_show(config_path: ConfigOpt = None) -> None:
    """Show the effective client configuration."""
    config = load_client_config(config_path)
    table = Table(title=f"Configuration ({config_path or DEFAULT_CONFIG_PATH})")
    table.add_column("Setting", style="bold")
    table.add_column("Value")
    table.add_row("base_url", config.base_url)
    table.add_row("api_token", "[green]set[/green]" if config.api_token else "[red]not set[/red]")
    table.add_row("concurrency", str(config.concurrency))
    table.add_row("api_retries", str(config.api_retries))
    table.add_row("put_retries", str(config.put_retries))
    table.add_row("retry_base_delay", f"{config.retry_base_delay}s")
    table.add_row("retry_jitter", f"{config.retry_jitter}s")
    table.add_row("request_timeout", f"{config.request_timeout}s")
    console.print(table)


if __name__ == "__main__":
    app()
