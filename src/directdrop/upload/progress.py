"""Session progress: a single-writer recorder and a Rich display for it.

:class:`ProgressRecorder` is owned by the session controller and is the
only place progress changes.  Workers never touch it; their completions
arrive over a channel and the controller applies them one at a time.
Everything else reads immutable :class:`SessionProgress` snapshots.
"""

from __future__ import annotations

from typing import Callable

from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeRemainingColumn,
)

from directdrop.models import SessionPhase, SessionProgress

ProgressListener = Callable[["SessionProgress | None"], None]


class ProgressRecorder:
    """Single writer for one session's progress."""

    def __init__(self) -> None:
        self._snapshot: SessionProgress | None = None
        self._listeners: list[ProgressListener] = []

    @property
    def snapshot(self) -> SessionProgress | None:
        """Current progress, or ``None`` when no upload is running."""
        return self._snapshot

    def subscribe(self, listener: ProgressListener) -> None:
        self._listeners.append(listener)

    def begin(self, phase: SessionPhase, total: int, completed: int = 0) -> None:
        self._set(SessionProgress(phase=phase, completed=completed, total=total))

    def advance(self, filename: str) -> None:
        """Count one more finished file.  The count never decreases."""
        current = self._snapshot
        if current is None:
            raise RuntimeError("advance() called before begin()")
        self._set(
            SessionProgress(
                phase=current.phase,
                completed=min(current.completed + 1, current.total),
                total=current.total,
                current_filename=filename,
            )
        )

    def clear(self) -> None:
        self._set(None)

    def _set(self, snapshot: SessionProgress | None) -> None:
        self._snapshot = snapshot
        for listener in self._listeners:
            listener(snapshot)


class UploadProgressTracker:
    """Rich progress bar that follows a :class:`ProgressRecorder`.

    Usage::

        tracker = UploadProgressTracker()
        recorder.subscribe(tracker.update)
        with tracker:
            await session.run(files)
    """

    def __init__(self) -> None:
        self._progress = Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            MofNCompleteColumn(),
            TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
            TimeRemainingColumn(),
            TextColumn("{task.fields[status]}", style="dim"),
        )
        self._task: TaskID | None = None

    def start(self) -> None:
        self._progress.start()

    def stop(self) -> None:
        self._progress.stop()

    def __enter__(self) -> UploadProgressTracker:
        self.start()
        return self

    def __exit__(
        self,
        exc_type: type | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        self.stop()

    def update(self, snapshot: SessionProgress | None) -> None:
        """Listener callback: mirror *snapshot* onto the progress bar."""
        if snapshot is None:
            if self._task is not None:
                self._progress.update(self._task, visible=False)
            return

        description = (
            "[green]Uploading"
            if snapshot.phase == SessionPhase.UPLOADING
            else "[blue]Processing"
        )
        status = _truncate_name(snapshot.current_filename or "")
        if self._task is None:
            self._task = self._progress.add_task(
                description, total=snapshot.total, status=status
            )
        self._progress.update(
            self._task,
            description=description,
            total=snapshot.total,
            completed=snapshot.completed,
            status=status,
            visible=True,
        )


def _truncate_name(name: str, max_len: int = 40) -> str:
    """Shorten a filename for display, keeping its end."""
    if len(name) <= max_len:
        return name
    return "..." + name[-(max_len - 3):]
