"""Sync engine error taxonomy.

Synchronous callers only ever see ``ValidationError``, ``ConflictError``,
``NotFoundError``, ``InvalidStateError`` and ``PoolSaturatedError``.  The
remaining types are raised and handled inside the batch loop and end up
as job status plus ``error_message``.
"""

import uuid


class SyncError(Exception):
    """Base class for all sync engine errors."""


class ValidationError(SyncError, ValueError):
    """A request or identifier was malformed; nothing was mutated."""


class ConflictError(SyncError):
    """A full sync is already pending or running.

    Args:
        active_job_id: ID of the job holding the single-flight slot.
    """

    def __init__(self, active_job_id: uuid.UUID | None = None) -> None:
        self.active_job_id = active_job_id
        detail = f" (job {active_job_id})" if active_job_id else ""
        super().__init__(f"A full sync job is already running{detail}. Please wait for it to complete.")


class NotFoundError(SyncError, LookupError):
    """No sync job exists with the given ID."""

    def __init__(self, job_id: uuid.UUID) -> None:
        self.job_id = job_id
        super().__init__(f"Job not found: {job_id}")


class InvalidStateError(SyncError):
    """The requested transition is not legal from the job's current status."""

    def __init__(self, job_id: uuid.UUID, status: str, action: str) -> None:
        self.job_id = job_id
        self.status = status
        self.action = action
        super().__init__(f"Cannot {action} job {job_id} in status {status}")


class TransientIOError(SyncError):
    """An extractor or sink call failed but may succeed on a later attempt.

    Args:
        operation: Name of the failing call (e.g. ``page_of_keys``).
        message: Human-readable error description.
    """

    def __init__(self, operation: str, message: str) -> None:
        self.operation = operation
        self.message = message
        super().__init__(f"{operation}: {message}")


class MappingDropped(SyncError):
    """A source row could not be turned into an index document."""

    def __init__(self, key: object, reason: str) -> None:
        self.key = key
        self.reason = reason
        super().__init__(f"Row {key} dropped: {reason}")


class FatalJobError(SyncError):
    """The batch loop gave up; recorded on the job as STALLED or FAILED."""


class PoolSaturatedError(SyncError):
    """The worker pool queue is full and cannot accept another task."""
