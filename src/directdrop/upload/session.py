"""Upload session controller.

Drives one feature's upload through presign -> reconcile -> parallel PUT
-> finalize, owns the session's progress, and collapses any failure into a
single :class:`UploadError` whose message is shown to the user unmodified.

State machine (see :mod:`directdrop.upload.fsm`)::

    idle -> presigning -> uploading -> processing -> done
    presigning -> done                  (every file skipped; no PUT, no finalize)
    presigning | uploading | processing -> failed

Failures never trigger compensating deletes: objects already PUT for a
failed batch, or for a batch whose finalize failed, are orphans left for
external cleanup.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Sequence

from directdrop.models import CandidateFile, SessionPhase, SessionProgress, UploadEntry
from directdrop.upload.client import UploadApiClient
from directdrop.upload.exceptions import SessionBusyError, UploadError, ValidationError
from directdrop.upload.features import UploadFeature
from directdrop.upload.fsm import UploadSessionSM
from directdrop.upload.pool import FIXED_CONCURRENCY, UploadCompleted, UploadWorkerPool
from directdrop.upload.progress import ProgressRecorder
from directdrop.upload.reconciler import reconcile
from directdrop.upload.schemas import FinalizeResult
from directdrop.upload.storage import DirectUploader

logger = logging.getLogger(__name__)


class UploadSession:
    """Single-flight upload controller for one feature.

    Usage::

        session = UploadSession(api, uploader, WordMediaFeature("my-page"))
        result = await session.run(candidates, overwrite=False)

    Args:
        api: Presign/finalize client.
        uploader: Direct PUT client used by the worker pool.
        feature: The call site being driven.
        concurrency: Upper bound on concurrent PUTs.
        progress: Progress recorder to write to (a fresh one if omitted).
    """

    def __init__(
        self,
        api: UploadApiClient,
        uploader: DirectUploader,
        feature: UploadFeature,
        *,
        concurrency: int = FIXED_CONCURRENCY,
        progress: ProgressRecorder | None = None,
    ) -> None:
        self._api = api
        self._feature = feature
        self._pool = UploadWorkerPool(uploader, concurrency=concurrency)
        self._progress = progress or ProgressRecorder()
        self._sm = UploadSessionSM()
        self._in_flight = False
        self._error: str | None = None

    # ------------------------------------------------------------------
    # Read-only surface
    # ------------------------------------------------------------------

    @property
    def state(self) -> str:
        return self._sm.current_state.value

    @property
    def progress(self) -> SessionProgress | None:
        return self._progress.snapshot

    @property
    def recorder(self) -> ProgressRecorder:
        return self._progress

    @property
    def error(self) -> str | None:
        """Message of the last failure, or ``None``."""
        return self._error

    @property
    def pool(self) -> UploadWorkerPool:
        return self._pool

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    async def run(
        self,
        candidates: Sequence[CandidateFile],
        overwrite: bool = False,
    ) -> FinalizeResult:
        """Upload *candidates* and return the finalize result.

        Raises:
            SessionBusyError: If an upload is already in flight.
            UploadError: On any failure; the session ends in ``failed``.
        """
        if self._in_flight:
            raise SessionBusyError("An upload is already in progress")
        self._in_flight = True
        try:
            if self.state in ("done", "failed"):
                self._sm.reset()
            self._error = None
            return await self._run(list(candidates), overwrite)
        finally:
            self._in_flight = False

    async def _run(self, candidates: list[CandidateFile], overwrite: bool) -> FinalizeResult:
        feature = self._feature
        self._sm.begin()
        try:
            if not candidates:
                raise ValidationError("No files selected")
            feature.validate(candidates)

            presigned = await self._api.presign(feature, candidates, overwrite=overwrite)
            if not presigned.targets:
                logger.info(
                    "%s: every file skipped (%d), nothing to upload",
                    feature.name, len(presigned.skipped),
                )
                self._sm.nothing_to_upload()
                return feature.empty_result(presigned.skipped)

            entries = reconcile(candidates, presigned.targets, presigned.skipped)
            self._sm.targets_issued()
            self._progress.begin(SessionPhase.UPLOADING, total=len(entries))
            await self._upload(entries)

            self._sm.bytes_uploaded()
            self._progress.begin(
                SessionPhase.PROCESSING, total=len(entries), completed=len(entries)
            )
            body = await self._api.finalize(
                feature, presigned.context, entries, presigned.skipped
            )
            result = feature.build_result(body, entries, presigned.skipped)

            self._sm.finalized()
            self._progress.clear()
            logger.info(
                "%s: finalized %d file(s), %d skipped",
                feature.name, len(entries), len(presigned.skipped),
            )
            return result
        except UploadError as exc:
            self._fail(exc.message)
            raise
        except Exception as exc:
            message = str(exc) or "Upload failed"
            self._fail(message)
            raise UploadError(message) from exc
        except asyncio.CancelledError:
            self._fail("Upload cancelled")
            raise

    async def _upload(self, entries: list[UploadEntry]) -> None:
        """Run the worker pool while applying completions in order."""
        events: asyncio.Queue[UploadCompleted | None] = asyncio.Queue()

        async def _apply_completions() -> None:
            while True:
                event = await events.get()
                if event is None:
                    return
                self._progress.advance(event.filename)

        writer = asyncio.create_task(_apply_completions(), name="progress-writer")
        try:
            await self._pool.run(entries, events)
        finally:
            events.put_nowait(None)
            await writer

    def _fail(self, message: str) -> None:
        self._error = message
        self._progress.clear()
        if self.state not in ("idle", "done", "failed"):
            self._sm.fail()
        logger.error("%s upload failed: %s", self._feature.name, message)
