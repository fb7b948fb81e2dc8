"""Error taxonomy shared by the backend adapter, orchestrator and sessions.

Caller misuse (``NoFileOpenError``, ``InvalidStateError``,
``SectionNotFoundError``) is raised immediately.  Backend, network and
filesystem failures during a sync attempt are converted by the
orchestrator into ``failure`` outcomes carrying a ``SyncErrorKind``.
"""

from __future__ import annotations

from enum import Enum


class SyncErrorKind(str, Enum):
    """Classification of everything that can go wrong during a sync."""

    NO_FILE_OPEN = "no_file_open"
    INVALID_STATE = "invalid_state"
    NETWORK_OR_AUTH = "network_or_auth"
    BUSY = "busy"
    DIVERGED_REMOTE = "diverged_remote"
    MERGE_CONFLICT = "merge_conflict"
    STASH_OR_ABORT_FAILURE = "stash_or_abort_failure"
    PARTIAL_RECOVERY_FAILURE = "partial_recovery_failure"
    IO_ERROR = "io_error"
    EXTERNAL_MERGE_ERROR = "external_merge_error"


class BackendErrorKind(str, Enum):
    """What a failed git invocation means to the orchestrator."""

    MERGE_CONFLICT = "merge_conflict"
    DIVERGED_REMOTE = "diverged_remote"
    NO_MERGE_IN_PROGRESS = "no_merge_in_progress"
    UNAVAILABLE = "unavailable"
    TIMEOUT = "timeout"
    FAILED = "failed"


class SyncError(Exception):
    """Base class for all git-doc-sync errors."""

    kind: SyncErrorKind = SyncErrorKind.INVALID_STATE

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NoFileOpenError(SyncError):
    """An operation was attempted without a tracked path."""

    kind = SyncErrorKind.NO_FILE_OPEN


class InvalidStateError(SyncError):
    """An operation was attempted outside its valid session state."""

    kind = SyncErrorKind.INVALID_STATE


class SectionNotFoundError(SyncError, KeyError):
    """A conflict section id does not exist in the document."""

    kind = SyncErrorKind.INVALID_STATE

    def __init__(self, section_id: int) -> None:
        super().__init__(f"Conflict section {section_id} not found")
        self.section_id = section_id

    def __str__(self) -> str:
        return self.message


class FileIOError(SyncError):
    """Reading or writing the tracked file failed."""

    kind = SyncErrorKind.IO_ERROR


class ExternalMergeError(SyncError):
    """The merge service failed or returned no usable text."""

    kind = SyncErrorKind.EXTERNAL_MERGE_ERROR


class BackendError(SyncError):
    """A git invocation failed.

    Attributes:
        backend_kind: Central classification of the failure.
        raw_message: Combined stdout/stderr text from git.
        command: The git subcommand that failed (e.g. ``"pull"``).
    """

    kind = SyncErrorKind.NETWORK_OR_AUTH

    def __init__(
        self,
        backend_kind: BackendErrorKind,
        raw_message: str,
        command: str = "",
    ) -> None:
        prefix = f"git {command} failed" if command else "git failed"
        detail = raw_message.strip()
        super().__init__(f"{prefix}: {detail}" if detail else prefix)
        self.backend_kind = backend_kind
        self.raw_message = raw_message
        self.command = command

    @property
    def is_conflict(self) -> bool:
        return self.backend_kind == BackendErrorKind.MERGE_CONFLICT

    @property
    def is_diverged(self) -> bool:
        return self.backend_kind == BackendErrorKind.DIVERGED_REMOTE
