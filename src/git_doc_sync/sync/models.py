"""Pydantic models for the sync and conflict-resolution engine.

Defines the core data contracts used across all sync modules:

- ``ConflictSection``: One conflicting region of a file.
- ``ConflictDocument``: The parsed state of one file's conflicted content.
- ``OutcomeKind`` / ``SyncOutcome``: Result of a pull or push attempt.
- ``SyncPhase``: Per-path state machine phases.
- ``FinalizeResult``: Result of writing back a completed resolution.

All models are frozen (immutable); resolving a section produces a new
``ConflictDocument``.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel

from ..core.errors import SyncErrorKind


class ConflictSection(BaseModel):
    """One conflicting region.

    Attributes:
        id: Ordinal within the document, assigned in source order from 0.
        local_text: The local ("ours") side, lines joined with ``\\n``.
        remote_text: The remote ("theirs") side, lines joined with ``\\n``.
        resolved_text: Chosen text, or ``None`` while unresolved.
    """

    id: int
    local_text: str = ""
    remote_text: str = ""
    resolved_text: str | None = None

    model_config = {"frozen": True}

    @property
    def is_resolved(self) -> bool:
        return self.resolved_text is not None


class ConflictDocument(BaseModel):
    """Parsed conflict state of one tracked file.

    ``literal_segments`` always holds ``len(sections) + 1`` entries: the
    non-conflicting text before, between and after every section.

    ``segment_line_counts`` records how many source lines each literal
    segment spans, which distinguishes an absent run (0 lines) from a
    single blank line (1 line) when rebuilding.  ``None`` means every
    segment is treated as present.

    Attributes:
        path: The tracked file.
        sections: Conflict sections in document order.
        literal_segments: Non-conflicting runs interleaving the sections.
        segment_line_counts: Line count of each literal segment.
    """

    path: str
    sections: list[ConflictSection] = []
    literal_segments: list[str] = [""]
    segment_line_counts: list[int] | None = None

    model_config = {"frozen": True}

    @property
    def resolved(self) -> bool:
        """True iff every section has a ``resolved_text``."""
        return all(s.is_resolved for s in self.sections)

    @property
    def unresolved_ids(self) -> list[int]:
        """Ids of sections still awaiting a resolution."""
        return [s.id for s in self.sections if not s.is_resolved]

    def section(self, section_id: int) -> ConflictSection | None:
        """Return the section with *section_id*, or ``None``."""
        for s in self.sections:
            if s.id == section_id:
                return s
        return None


class OutcomeKind(str, Enum):
    """Tag of a ``SyncOutcome``."""

    SUCCESS = "success"
    CONFLICT_DETECTED = "conflict_detected"
    FAILURE = "failure"


class SyncOutcome(BaseModel):
    """Result of a pull or push attempt.

    A tagged union: ``content`` is set for ``conflict_detected`` (raw,
    unparsed conflicted text) and optionally for ``success``;
    ``error_kind`` and ``error`` are set only for ``failure``.

    Attributes:
        kind: Which branch of the union this is.
        content: File text, when the operation read it back.
        error_kind: Classification of a failure.
        error: Human-readable failure message.
        stash_pending: A recovery stash is still held and must be
            restored once the merge is committed.
    """

    kind: OutcomeKind
    content: str | None = None
    error_kind: SyncErrorKind | None = None
    error: str | None = None
    stash_pending: bool = False

    model_config = {"frozen": True}

    @classmethod
    def success(cls, content: str | None = None) -> SyncOutcome:
        return cls(kind=OutcomeKind.SUCCESS, content=content)

    @classmethod
    def conflict(
        cls, content: str, stash_pending: bool = False
    ) -> SyncOutcome:
        return cls(
            kind=OutcomeKind.CONFLICT_DETECTED,
            content=content,
            stash_pending=stash_pending,
        )

    @classmethod
    def failure(
        cls, error_kind: SyncErrorKind, error: str
    ) -> SyncOutcome:
        return cls(
            kind=OutcomeKind.FAILURE, error_kind=error_kind, error=error
        )

    @property
    def ok(self) -> bool:
        return self.kind == OutcomeKind.SUCCESS

    @property
    def has_conflicts(self) -> bool:
        return self.kind == OutcomeKind.CONFLICT_DETECTED


class SyncPhase(str, Enum):
    """Per-path sync state machine.

    ``idle -> pulling|pushing -> idle|awaiting_resolution``;
    ``awaiting_resolution -> finalizing|cancelling -> idle``.
    """

    IDLE = "idle"
    PULLING = "pulling"
    PUSHING = "pushing"
    AWAITING_RESOLUTION = "awaiting_resolution"
    FINALIZING = "finalizing"
    CANCELLING = "cancelling"


class ConflictOrigin(str, Enum):
    """Which backend step left the conflict markers in the file."""

    PULL = "pull"
    STASH_POP = "stash_pop"


class FinalizeResult(BaseModel):
    """Result of ``ResolutionSession.finalize()``.

    Attributes:
        success: Whether the rebuilt text was written and staged.
        path: The tracked file.
        content: The rebuilt text that was written.
        error_kind: Classification of a failure.
        error: Human-readable failure message.
        stash_pending: A recovery stash is still held; commit the merge
            and then restore it.
    """

    success: bool
    path: str
    content: str | None = None
    error_kind: SyncErrorKind | None = None
    error: str | None = None
    stash_pending: bool = False

    model_config = {"frozen": True}
