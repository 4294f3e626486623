"""Upload session finite state machine.

One instance per :class:`~directdrop.upload.session.UploadSession`.  The
machine only validates transition legality; the session performs the work
and fires the matching event after each step.
"""

from __future__ import annotations

from statemachine import State, StateMachine


class UploadSessionSM(StateMachine):
    """Six-state lifecycle of one upload session.

    States:
        idle: Nothing in flight.
        presigning: Waiting for upload targets from the server.
        uploading: Bytes moving directly to object storage.
        processing: Finalize call in flight.
        done: Batch finalized (or every file skipped).
        failed: Any step raised; progress has been cleared.

    No state is marked ``final=True`` so ``reset`` can return a finished
    session to ``idle`` for the next upload.
    """

    idle = State("idle", initial=True, value="idle")
    presigning = State("presigning", value="presigning")
    uploading = State("uploading", value="uploading")
    processing = State("processing", value="processing")
    done = State("done", value="done")
    failed = State("failed", value="failed")

    begin = idle.to(presigning)
    targets_issued = presigning.to(uploading)
    nothing_to_upload = presigning.to(done)
    bytes_uploaded = uploading.to(processing)
    finalized = processing.to(done)
    fail = presigning.to(failed) | uploading.to(failed) | processing.to(failed)
    reset = done.to(idle) | failed.to(idle)
