"""Sync orchestrator: pull and push for one tracked file.

Every operation takes an explicit ``SyncSession`` and runs under its
operation lock.  Backend, network and filesystem failures come back as
``SyncOutcome.failure``; merge conflicts come back as
``SyncOutcome.conflict`` carrying the raw conflicted text and move the
session to ``awaiting_resolution``.

Push recovery sequence when the remote has diverged::

    push -> rejected
      stash            (failure: stash_or_abort_failure)
      pull             (conflict: conflict_detected, stash still held)
                       (other: pop back, network_or_auth or
                        partial_recovery_failure)
      stash pop        (conflict: conflict_detected)
                       (other: stash_or_abort_failure)
      markers in file? (yes: conflict_detected, no re-push)
      push once more
"""

from __future__ import annotations

import logging

from ..core.backend import DiffHunk, RepoStatus
from ..core.errors import (
    BackendError,
    FileIOError,
    InvalidStateError,
    SyncErrorKind,
)
from ..file_handler import read_text_async
from .models import ConflictOrigin, OutcomeKind, SyncOutcome, SyncPhase
from .parser import has_conflict_markers
from .session import SyncSession

logger = logging.getLogger(__name__)

_RESOLUTION_PHASES = (
    SyncPhase.AWAITING_RESOLUTION,
    SyncPhase.FINALIZING,
    SyncPhase.CANCELLING,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _check_can_sync(session: SyncSession, operation: str) -> SyncOutcome | None:
    """Return a ``busy`` outcome if the lock is held, else ``None``.

    Raises:
        InvalidStateError: A conflict resolution is in progress.
    """
    if session.phase in _RESOLUTION_PHASES:
        raise InvalidStateError(
            f"Cannot {operation} {session.path}: conflict resolution in "
            f"progress ({session.phase.value})"
        )
    if session.busy:
        logger.info(
            "Refusing %s for %s: another operation is in flight",
            operation,
            session.path,
        )
        return SyncOutcome.failure(
            SyncErrorKind.BUSY,
            f"Another sync operation is in progress for {session.path}",
        )
    return None


def _settle(
    session: SyncSession,
    outcome: SyncOutcome | None,
    origin: ConflictOrigin = ConflictOrigin.PULL,
) -> None:
    if outcome is not None and outcome.has_conflicts:
        session.enter_conflict(origin, outcome.stash_pending)
    else:
        session.set_phase(SyncPhase.IDLE)


async def _read_outcome(session: SyncSession) -> SyncOutcome:
    try:
        content = await read_text_async(session.path)
    except FileIOError as exc:
        return SyncOutcome.failure(SyncErrorKind.IO_ERROR, exc.message)
    return SyncOutcome.success(content)


async def _conflict_outcome(
    session: SyncSession, stash_pending: bool = False
) -> SyncOutcome:
    """Read the conflicted file and wrap it as ``conflict_detected``."""
    try:
        content = await read_text_async(session.path)
    except FileIOError as exc:
        logger.error(
            "Conflict reported for %s but the file could not be read: %s",
            session.path,
            exc,
        )
        return SyncOutcome.failure(SyncErrorKind.IO_ERROR, exc.message)
    if not has_conflict_markers(content):
        logger.warning(
            "git reported conflicts but %s contains no conflict markers",
            session.path,
        )
    return SyncOutcome.conflict(content, stash_pending=stash_pending)


# ---------------------------------------------------------------------------
# Pull
# ---------------------------------------------------------------------------


async def pull_with_conflict_detection(session: SyncSession) -> SyncOutcome:
    """Pull from the tracking branch and report conflicts.

    Returns:
        ``success`` with the updated file text, ``conflict_detected``
        with the conflicted text, or ``failure``.

    Raises:
        InvalidStateError: A conflict resolution is in progress.
    """
    busy = _check_can_sync(session, "pull")
    if busy is not None:
        return busy

    outcome: SyncOutcome | None = None
    async with session.lock:
        session.set_phase(SyncPhase.PULLING)
        try:
            outcome = await _pull(session)
        finally:
            _settle(session, outcome)
    return outcome


async def _pull(session: SyncSession) -> SyncOutcome:
    try:
        await session.backend.pull()
    except BackendError as exc:
        if exc.is_conflict:
            logger.info("Pull for %s stopped on merge conflicts", session.path)
            return await _conflict_outcome(session)
        logger.warning("Pull failed for %s: %s", session.path, exc)
        return SyncOutcome.failure(SyncErrorKind.NETWORK_OR_AUTH, exc.message)

    logger.info("Pulled %s", session.path)
    return await _read_outcome(session)


# ---------------------------------------------------------------------------
# Push
# ---------------------------------------------------------------------------


async def push_with_conflict_handling(session: SyncSession) -> SyncOutcome:
    """Push, recovering from a diverged remote with stash/pull/pop.

    Returns:
        ``success``, ``conflict_detected`` (the push is not retried until
        the conflict is resolved), or ``failure``.

    Raises:
        InvalidStateError: A conflict resolution is in progress.
    """
    busy = _check_can_sync(session, "push")
    if busy is not None:
        return busy

    outcome: SyncOutcome | None = None
    origin = ConflictOrigin.PULL
    async with session.lock:
        session.set_phase(SyncPhase.PUSHING)
        try:
            outcome, origin = await _push(session)
        finally:
            _settle(session, outcome, origin)
    return outcome


async def _push(session: SyncSession) -> tuple[SyncOutcome, ConflictOrigin]:
    backend = session.backend
    try:
        await backend.push()
    except BackendError as exc:
        if not exc.is_diverged:
            logger.warning("Push failed for %s: %s", session.path, exc)
            return (
                SyncOutcome.failure(SyncErrorKind.NETWORK_OR_AUTH, exc.message),
                ConflictOrigin.PULL,
            )
        logger.info(
            "Push for %s rejected, remote has diverged; recovering",
            session.path,
        )
    else:
        logger.info("Pushed %s", session.path)
        return SyncOutcome.success(), ConflictOrigin.PULL

    return await _recover_diverged(session)


async def _recover_diverged(
    session: SyncSession,
) -> tuple[SyncOutcome, ConflictOrigin]:
    backend = session.backend

    try:
        stashed = await backend.stash()
    except BackendError as exc:
        logger.error("Stash failed for %s: %s", session.path, exc)
        return (
            SyncOutcome.failure(
                SyncErrorKind.STASH_OR_ABORT_FAILURE, exc.message
            ),
            ConflictOrigin.PULL,
        )
    logger.debug("Stashed local changes: %s", stashed)

    try:
        await backend.pull()
    except BackendError as exc:
        if exc.is_conflict:
            logger.info(
                "Recovery pull for %s stopped on merge conflicts",
                session.path,
            )
            return (
                await _conflict_outcome(session, stash_pending=stashed),
                ConflictOrigin.PULL,
            )
        logger.error("Recovery pull failed for %s: %s", session.path, exc)
        return await _undo_stash(session, stashed, exc), ConflictOrigin.PULL

    if stashed:
        try:
            await backend.stash_pop()
        except BackendError as exc:
            if exc.is_conflict:
                logger.info(
                    "Restoring stash for %s produced conflicts", session.path
                )
                return await _conflict_outcome(session), ConflictOrigin.STASH_POP
            logger.error("Stash pop failed for %s: %s", session.path, exc)
            return (
                SyncOutcome.failure(
                    SyncErrorKind.STASH_OR_ABORT_FAILURE, exc.message
                ),
                ConflictOrigin.PULL,
            )

    try:
        content = await read_text_async(session.path)
    except FileIOError as exc:
        return (
            SyncOutcome.failure(SyncErrorKind.IO_ERROR, exc.message),
            ConflictOrigin.PULL,
        )
    if has_conflict_markers(content):
        logger.info(
            "Conflict markers in %s after recovery; not pushing",
            session.path,
        )
        return SyncOutcome.conflict(content), ConflictOrigin.PULL

    try:
        await backend.push()
    except BackendError as exc:
        logger.warning("Retried push failed for %s: %s", session.path, exc)
        kind = (
            SyncErrorKind.DIVERGED_REMOTE
            if exc.is_diverged
            else SyncErrorKind.NETWORK_OR_AUTH
        )
        return SyncOutcome.failure(kind, exc.message), ConflictOrigin.PULL

    logger.info("Pushed %s after recovering from a diverged remote", session.path)
    return SyncOutcome.success(content), ConflictOrigin.PULL


async def _undo_stash(
    session: SyncSession, stashed: bool, pull_error: BackendError
) -> SyncOutcome:
    """Best-effort restore of the stash after a failed recovery pull."""
    if not stashed:
        return SyncOutcome.failure(
            SyncErrorKind.NETWORK_OR_AUTH, pull_error.message
        )
    try:
        await session.backend.stash_pop()
    except BackendError as exc:
        logger.error(
            "Could not restore stashed changes for %s: %s", session.path, exc
        )
        return SyncOutcome.failure(
            SyncErrorKind.PARTIAL_RECOVERY_FAILURE,
            f"{pull_error.message}; restoring stashed changes also failed: "
            f"{exc.message}. Run 'git stash pop' manually.",
        )
    return SyncOutcome.failure(
        SyncErrorKind.NETWORK_OR_AUTH, pull_error.message
    )


# ---------------------------------------------------------------------------
# Stash, commit and update checks
# ---------------------------------------------------------------------------


async def restore_stash(session: SyncSession) -> SyncOutcome:
    """Pop a recovery stash left by a push whose pull conflicted.

    Call after the resolved merge has been committed.

    Raises:
        InvalidStateError: Resolution in progress or no stash is held.
    """
    busy = _check_can_sync(session, "restore the stash of")
    if busy is not None:
        return busy
    if not session.stash_pending:
        raise InvalidStateError(f"No stash is held for {session.path}")

    outcome: SyncOutcome | None = None
    async with session.lock:
        session.set_phase(SyncPhase.PULLING)
        try:
            outcome = await _pop_stash(session)
        finally:
            _settle(session, outcome, ConflictOrigin.STASH_POP)
    return outcome


async def _pop_stash(session: SyncSession) -> SyncOutcome:
    try:
        await session.backend.stash_pop()
    except BackendError as exc:
        if not exc.is_conflict:
            logger.error("Stash pop failed for %s: %s", session.path, exc)
            return SyncOutcome.failure(
                SyncErrorKind.STASH_OR_ABORT_FAILURE, exc.message
            )
        logger.info(
            "Restoring stash for %s produced conflicts", session.path
        )
        session.stash_pending = False
        return await _conflict_outcome(session)

    session.stash_pending = False
    logger.info("Restored stashed changes for %s", session.path)
    return await _read_outcome(session)


async def commit_all(session: SyncSession, message: str) -> SyncOutcome:
    """Stage every change in the working tree and commit it.

    A clean working tree is not an error; nothing is committed.

    Raises:
        InvalidStateError: Resolution in progress.
        ValueError: Empty commit message.
    """
    if not message or not message.strip():
        raise ValueError("Commit message is required")
    busy = _check_can_sync(session, "commit")
    if busy is not None:
        return busy

    async with session.lock:
        try:
            status = await session.backend.status()
            if status.is_clean and not status.unmerged_paths:
                logger.info(
                    "Nothing to commit in %s", session.backend.working_dir
                )
                return SyncOutcome.success()
            await session.backend.add_all()
            await session.backend.commit(message.strip())
        except BackendError as exc:
            logger.warning("Commit failed for %s: %s", session.path, exc)
            return SyncOutcome.failure(SyncErrorKind.IO_ERROR, exc.message)
    logger.info("Committed changes in %s", session.backend.working_dir)
    return SyncOutcome.success()


async def commit_and_push(
    session: SyncSession, message: str | None = None
) -> SyncOutcome:
    """Commit everything (when *message* is given), then push."""
    if message:
        committed = await commit_all(session, message)
        if committed.kind == OutcomeKind.FAILURE:
            return committed
    return await push_with_conflict_handling(session)


async def switch_branch(session: SyncSession, branch: str) -> SyncOutcome:
    """Check out *branch* and return the file text on it.

    Raises:
        InvalidStateError: Resolution in progress.
        ValueError: Empty branch name.
    """
    if not branch or not branch.strip():
        raise ValueError("Branch name is required")
    busy = _check_can_sync(session, "check out a branch for")
    if busy is not None:
        return busy

    async with session.lock:
        try:
            await session.backend.checkout(branch.strip())
        except BackendError as exc:
            logger.warning("Checkout of %s failed: %s", branch, exc)
            return SyncOutcome.failure(SyncErrorKind.IO_ERROR, exc.message)
        logger.info("Checked out %s in %s", branch, session.backend.working_dir)
        return await _read_outcome(session)


async def check_for_updates(session: SyncSession) -> RepoStatus | None:
    """Fetch and report ahead/behind counts.

    Skipped (``None``) while another operation holds the lock or a
    resolution is in progress; a failed fetch is logged and also yields
    ``None``.
    """
    if session.busy or session.phase != SyncPhase.IDLE:
        logger.debug("Skipping update check for %s: busy", session.path)
        return None

    async with session.lock:
        try:
            await session.backend.fetch()
            status = await session.backend.status()
        except BackendError as exc:
            logger.warning(
                "Update check failed for %s: %s", session.path, exc
            )
            return None
    if status.behind:
        logger.info(
            "%s is %d commit(s) behind %s",
            session.path,
            status.behind,
            status.tracking_branch or "its upstream",
        )
    return status


async def diff_file(
    session: SyncSession, ref: str | None = None
) -> tuple[str, list[DiffHunk]]:
    """Diff the tracked file against *ref*.

    Without a ref, a file awaiting resolution of a pull conflict is
    compared with ``MERGE_HEAD`` (the incoming commit); otherwise with
    ``HEAD``.

    Returns:
        The ref used and the hunks of the diff.

    Raises:
        BackendError: git could not produce the diff.
    """
    if not ref:
        merging = (
            session.phase == SyncPhase.AWAITING_RESOLUTION
            and session.conflict_origin == ConflictOrigin.PULL
        )
        ref = "MERGE_HEAD" if merging else "HEAD"
    hunks = await session.backend.diff(ref, session.relative_path)
    logger.debug("%s vs %s: %d hunk(s)", session.path, ref, len(hunks))
    return ref, hunks
