"""Fixed-size worker pool for direct uploads.

``min(concurrency, len(entries))`` workers share one cursor.  Each worker
claims the next index, PUTs that entry, reports completion on a channel,
and loops until the cursor runs past the end.  Claiming never awaits, so on
a single event loop each index is handed out exactly once.

The first terminal failure fails the whole pool.  Remaining workers are
cancelled so no further entries are claimed; uploads that already landed
stay in storage (no compensating deletes) and no finalize happens.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Sequence

from directdrop.models import UploadEntry
from directdrop.upload.storage import DirectUploader

logger = logging.getLogger(__name__)

FIXED_CONCURRENCY = 4


@dataclass(frozen=True)
class UploadCompleted:
    """Completion message sent from a worker to the progress writer."""

    filename: str
    upload_key: str


class UploadWorkerPool:
    """Drains a list of upload entries with bounded concurrency.

    Args:
        uploader: Performs one PUT per entry.
        concurrency: Upper bound on concurrent PUTs.
    """

    def __init__(self, uploader: DirectUploader, concurrency: int = FIXED_CONCURRENCY) -> None:
        if concurrency < 1:
            raise ValueError(f"concurrency must be >= 1, got {concurrency}")
        self._uploader = uploader
        self._concurrency = concurrency
        self._in_flight = 0
        self._max_in_flight = 0
        self._worker_count = 0

    @property
    def max_in_flight(self) -> int:
        """Highest number of PUTs observed in flight at once."""
        return self._max_in_flight

    @property
    def worker_count(self) -> int:
        """Workers started by the most recent :meth:`run`."""
        return self._worker_count

    async def run(
        self,
        entries: Sequence[UploadEntry],
        events: asyncio.Queue[UploadCompleted] | None = None,
    ) -> int:
        """Upload every entry; return how many were uploaded.

        Raises:
            StorageUploadError: The first terminal PUT failure.
        """
        self._in_flight = 0
        self._max_in_flight = 0
        self._worker_count = min(self._concurrency, len(entries))
        if not entries:
            return 0

        cursor = 0

        def _claim() -> int:
            nonlocal cursor
            index = cursor
            cursor += 1
            return index

        async def _worker() -> None:
            while True:
                index = _claim()
                if index >= len(entries):
                    return
                entry = entries[index]
                self._in_flight += 1
                self._max_in_flight = max(self._max_in_flight, self._in_flight)
                try:
                    await self._uploader.put(entry)
                finally:
                    self._in_flight -= 1
                if events is not None:
                    events.put_nowait(
                        UploadCompleted(entry.candidate.name, entry.target.upload_key)
                    )

        logger.info(
            "Uploading %d file(s) with %d worker(s)", len(entries), self._worker_count
        )
        tasks = [
            asyncio.create_task(_worker(), name=f"upload-worker-{i}")
            for i in range(self._worker_count)
        ]
        try:
            await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            logger.error(
                "Upload batch failed after %d of %d claim(s); uploaded objects are left in place",
                min(cursor, len(entries)), len(entries),
            )
            raise
        return len(entries)
