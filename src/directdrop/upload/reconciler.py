"""Match server-issued upload targets back to local files.

The server's target list and the local selection are ordered
independently and may both contain repeated names.  Matching by name alone
silently cross-wires duplicates, so candidates are queued per name in
selection order and each target pops the front of its name's queue: the
first selected ``a.png`` goes to the first returned ``a.png`` target.
"""

from __future__ import annotations

import collections
import logging
from typing import Sequence

from directdrop.models import CandidateFile, UploadEntry, UploadTarget
from directdrop.upload.exceptions import DesyncError

logger = logging.getLogger(__name__)


def reconcile(
    candidates: Sequence[CandidateFile],
    targets: Sequence[UploadTarget],
    skipped: Sequence[str] = (),
) -> list[UploadEntry]:
    """Join *targets* (server order) to *candidates* (selection order).

    Args:
        candidates: Local files in the order the user selected them.
        targets: Upload targets in the order the server returned them.
        skipped: Names the server declined; used only to account for
            leftover candidates.

    Returns:
        One :class:`UploadEntry` per target, in target order.

    Raises:
        DesyncError: If a target names a file with no remaining local
            candidate.
    """
    queues: dict[str, collections.deque[CandidateFile]] = collections.defaultdict(
        collections.deque
    )
    for candidate in candidates:
        queues[candidate.name].append(candidate)

    entries: list[UploadEntry] = []
    for target in targets:
        queue = queues.get(target.original_name)
        if not queue:
            raise DesyncError(f"Could not resolve local file for {target.original_name}")
        entries.append(UploadEntry(candidate=queue.popleft(), target=target))

    _warn_unaccounted(queues, skipped)
    return entries


def _warn_unaccounted(
    queues: dict[str, collections.deque[CandidateFile]],
    skipped: Sequence[str],
) -> None:
    skip_counts = collections.Counter(skipped)
    for name, queue in queues.items():
        leftover = len(queue) - skip_counts.get(name, 0)
        if leftover > 0:
            logger.warning(
                "%d local file(s) named %r got neither a target nor a skip record",
                leftover, name,
            )
