"""Per-path sync sessions and the conflict resolution session.

``SyncSession`` owns everything the orchestrator needs for one tracked
file: its path, the backend bound to the file's directory, the phase of
the per-path state machine, and the operation lock.  ``SessionRegistry``
hands out exactly one ``SyncSession`` per resolved path.

``ResolutionSession`` wraps a parsed ``ConflictDocument`` while the path
is ``awaiting_resolution``; sections are resolved one at a time and the
rebuilt text is written back and staged by ``finalize()``.
"""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Callable
from pathlib import Path

from ..config_schema import GitConfig
from ..core.backend import GitBackend, VersionControlBackend
from ..core.errors import (
    BackendError,
    ExternalMergeError,
    FileIOError,
    InvalidStateError,
    NoFileOpenError,
    SectionNotFoundError,
    SyncErrorKind,
)
from ..file_handler import (
    read_text_async,
    read_text_with_encoding_async,
    write_text_async,
)
from . import parser
from .merge_service import MergeServiceClient
from .models import (
    ConflictDocument,
    ConflictOrigin,
    ConflictSection,
    FinalizeResult,
    OutcomeKind,
    SyncOutcome,
    SyncPhase,
)

logger = logging.getLogger(__name__)

BackendFactory = Callable[[Path], VersionControlBackend]


# ---------------------------------------------------------------------------
# SyncSession
# ---------------------------------------------------------------------------


class SyncSession:
    """State of one tracked file.

    Attributes:
        path: Absolute, resolved path of the tracked file.
        backend: Backend bound to the file's directory.
        phase: Current phase of the per-path state machine.
        lock: Serializes pull, push, update checks, finalize and cancel.
        resolution: Active resolution, set while awaiting resolution.
        conflict_origin: Which step produced the current conflict.
        stash_pending: A recovery stash is held and not yet restored.
    """

    def __init__(self, path: Path, backend: VersionControlBackend):
        self.path = path
        self.backend = backend
        self.phase = SyncPhase.IDLE
        self.lock = asyncio.Lock()
        self.resolution: ResolutionSession | None = None
        self.conflict_origin: ConflictOrigin | None = None
        self.stash_pending = False

    def __repr__(self) -> str:
        return f"SyncSession(path={str(self.path)!r}, phase={self.phase.value})"

    @property
    def busy(self) -> bool:
        return self.lock.locked()

    @property
    def relative_path(self) -> str:
        """Path of the tracked file relative to the backend directory."""
        return os.path.relpath(self.path, self.backend.working_dir)

    def set_phase(self, phase: SyncPhase) -> None:
        if phase != self.phase:
            logger.debug(
                "%s: %s -> %s", self.path, self.phase.value, phase.value
            )
        self.phase = phase

    def enter_conflict(
        self, origin: ConflictOrigin, stash_pending: bool
    ) -> None:
        """Move to ``awaiting_resolution`` after a conflict outcome."""
        self.conflict_origin = origin
        self.stash_pending = self.stash_pending or stash_pending
        self.resolution = None
        self.set_phase(SyncPhase.AWAITING_RESOLUTION)

    def clear_conflict(self) -> None:
        self.conflict_origin = None
        self.resolution = None
        self.set_phase(SyncPhase.IDLE)


class SessionRegistry:
    """One ``SyncSession`` per tracked path.

    Args:
        git_settings: Settings passed to each ``GitBackend``.
        backend_factory: Builds the backend for a directory; defaults to
            ``GitBackend``.
    """

    def __init__(
        self,
        git_settings: GitConfig | None = None,
        backend_factory: BackendFactory | None = None,
    ):
        self._git_settings = git_settings
        self._backend_factory = backend_factory or self._default_backend
        self._sessions: dict[Path, SyncSession] = {}

    def _default_backend(self, working_dir: Path) -> VersionControlBackend:
        return GitBackend(working_dir, self._git_settings)

    def get(self, path: str | Path | None) -> SyncSession:
        """Return the session for *path*, creating it on first use.

        Raises:
            NoFileOpenError: If *path* is empty.
        """
        if not path:
            raise NoFileOpenError("No tracked file given")
        resolved = Path(path).expanduser().resolve()
        session = self._sessions.get(resolved)
        if session is None:
            session = SyncSession(
                resolved, self._backend_factory(resolved.parent)
            )
            self._sessions[resolved] = session
            logger.debug("Opened sync session for %s", resolved)
        return session

    def find(self, path: str | Path) -> SyncSession | None:
        """Return the existing session for *path*, if any."""
        return self._sessions.get(Path(path).expanduser().resolve())

    def sessions(self) -> list[SyncSession]:
        return list(self._sessions.values())

    def __len__(self) -> int:
        return len(self._sessions)


# ---------------------------------------------------------------------------
# ResolutionSession
# ---------------------------------------------------------------------------


class ResolutionSession:
    """An in-progress conflict resolution for one tracked file.

    Valid only while its ``SyncSession`` is ``awaiting_resolution`` and
    still points at this object; every operation raises
    ``InvalidStateError`` otherwise.
    """

    def __init__(
        self,
        sync_session: SyncSession,
        document: ConflictDocument,
        merge_client: MergeServiceClient | None = None,
    ):
        self.sync_session = sync_session
        self._document = document
        self._merge_client = merge_client

    @property
    def document(self) -> ConflictDocument:
        return self._document

    @property
    def origin(self) -> ConflictOrigin:
        return self.sync_session.conflict_origin or ConflictOrigin.PULL

    @property
    def active(self) -> bool:
        return (
            self.sync_session.phase == SyncPhase.AWAITING_RESOLUTION
            and self.sync_session.resolution is self
        )

    def _require_active(self, operation: str) -> None:
        if not self.active:
            raise InvalidStateError(
                f"Cannot {operation}: {self.sync_session.path} is "
                f"{self.sync_session.phase.value}, not awaiting resolution"
            )

    # -- section resolution ------------------------------------------------

    def resolve(self, section_id: int, text: str) -> ConflictDocument:
        """Set the resolved text of one section (re-resolving overwrites)."""
        self._require_active("resolve")
        self._document = parser.resolve_section(
            self._document, section_id, text
        )
        return self._document

    def keep_local(self, section_id: int) -> ConflictDocument:
        section = self._get_section(section_id)
        return self.resolve(section_id, section.local_text)

    def keep_remote(self, section_id: int) -> ConflictDocument:
        section = self._get_section(section_id)
        return self.resolve(section_id, section.remote_text)

    def keep_both(self, section_id: int) -> ConflictDocument:
        section = self._get_section(section_id)
        return self.resolve(section_id, parser.keep_both(section))

    async def resolve_with_merge_service(
        self, section_id: int
    ) -> ConflictDocument:
        """Resolve a section with text from the external merge service.

        On failure the section stays as it was and the error propagates.

        Raises:
            ExternalMergeError: Service not configured or the call failed.
        """
        self._require_active("resolve")
        section = self._get_section(section_id)
        if self._merge_client is None:
            raise ExternalMergeError("Merge service not configured")
        merged = await self._merge_client.merge_async(
            section.local_text, section.remote_text
        )
        logger.info(
            "Merge service resolved section %d of %s",
            section_id,
            self.sync_session.path,
        )
        return self.resolve(section_id, merged)

    def _get_section(self, section_id: int) -> ConflictSection:
        self._require_active("resolve")
        section = self._document.section(section_id)
        if section is None:
            raise SectionNotFoundError(section_id)
        return section

    def is_complete(self) -> bool:
        return self._document.resolved

    def preview(self) -> str:
        """Rebuilt text as it stands now, markers included."""
        return parser.rebuild(self._document)

    # -- session end ---------------------------------------------------------

    async def finalize(self) -> FinalizeResult:
        """Write the rebuilt text back and stage it.

        Returns a failed ``FinalizeResult`` (and stays in
        ``awaiting_resolution``) when writing or staging fails.

        Raises:
            InvalidStateError: Not awaiting resolution, or sections are
                still unresolved.
        """
        self._require_active("finalize")
        session = self.sync_session

        async with session.lock:
            self._require_active("finalize")
            if not self.is_complete():
                raise InvalidStateError(
                    f"Cannot finalize: sections "
                    f"{self._document.unresolved_ids} are unresolved"
                )

            session.set_phase(SyncPhase.FINALIZING)
            content = parser.rebuild(self._document)
            path_str = str(session.path)
            try:
                # Write back in the encoding git left the file in
                _, encoding = await read_text_with_encoding_async(session.path)
                await write_text_async(session.path, content, encoding)
                await session.backend.add([session.relative_path])
            except (FileIOError, BackendError) as exc:
                logger.error("Finalizing %s failed: %s", path_str, exc)
                session.set_phase(SyncPhase.AWAITING_RESOLUTION)
                return FinalizeResult(
                    success=False,
                    path=path_str,
                    content=content,
                    error_kind=SyncErrorKind.IO_ERROR,
                    error=exc.message,
                    stash_pending=session.stash_pending,
                )

            error_kind = None
            error = None
            if self.origin == ConflictOrigin.STASH_POP:
                # git keeps the stash entry when pop conflicts
                try:
                    await session.backend.stash_drop()
                except BackendError as exc:
                    logger.warning(
                        "Resolved %s but could not drop the stash: %s",
                        path_str,
                        exc,
                    )
                    error_kind = SyncErrorKind.STASH_OR_ABORT_FAILURE
                    error = (
                        "Resolution staged, but the stash entry could not "
                        f"be dropped: {exc.message}"
                    )

            session.clear_conflict()
            logger.info("Resolution of %s finalized and staged", path_str)
            return FinalizeResult(
                success=True,
                path=path_str,
                content=content,
                error_kind=error_kind,
                error=error,
                stash_pending=session.stash_pending,
            )

    async def cancel(self) -> SyncOutcome:
        """Abort the merge, re-read the file and discard this session.

        Returns:
            ``success`` with the restored file text, or ``failure`` when
            the abort or the re-read fails.

        Raises:
            InvalidStateError: Not awaiting resolution.
        """
        self._require_active("cancel")
        session = self.sync_session

        async with session.lock:
            self._require_active("cancel")
            session.set_phase(SyncPhase.CANCELLING)
            try:
                await session.backend.abort_merge()
            except BackendError as exc:
                logger.error(
                    "Aborting merge for %s failed: %s", session.path, exc
                )
                session.set_phase(SyncPhase.AWAITING_RESOLUTION)
                return SyncOutcome.failure(
                    SyncErrorKind.STASH_OR_ABORT_FAILURE, exc.message
                )

            # git keeps the stash entry when its pop conflicts
            if self.origin == ConflictOrigin.STASH_POP:
                session.stash_pending = True
            session.clear_conflict()
            logger.info("Resolution of %s cancelled", session.path)
            try:
                content = await read_text_async(session.path)
            except FileIOError as exc:
                return SyncOutcome.failure(SyncErrorKind.IO_ERROR, exc.message)
            return SyncOutcome(
                kind=OutcomeKind.SUCCESS,
                content=content,
                stash_pending=session.stash_pending,
            )


def open_resolution_session(
    conflicted_text: str,
    session: SyncSession,
    merge_client: MergeServiceClient | None = None,
) -> ResolutionSession:
    """Parse *conflicted_text* and attach a new ``ResolutionSession``.

    A previously opened resolution for the same path is replaced.

    Raises:
        InvalidStateError: The path is not awaiting resolution.
    """
    if session.phase != SyncPhase.AWAITING_RESOLUTION:
        raise InvalidStateError(
            f"Cannot open a resolution session: {session.path} is "
            f"{session.phase.value}, not awaiting resolution"
        )
    document = parser.parse(conflicted_text, str(session.path))
    resolution = ResolutionSession(session, document, merge_client)
    session.resolution = resolution
    logger.info(
        "Opened resolution session for %s with %d section(s)",
        session.path,
        len(document.sections),
    )
    return resolution
