"""Sync and conflict-resolution engine.

Public API for keeping one locally edited file consistent with its git
remote-tracking branch.

Modules:

- ``models``        -- ``ConflictSection``, ``ConflictDocument``,
  ``SyncOutcome``, ``SyncPhase``, ``FinalizeResult``: data contracts.
- ``parser``        -- parse conflict markers; rebuild file text.
- ``session``       -- ``SyncSession``, ``SessionRegistry``,
  ``ResolutionSession``.
- ``orchestrator``  -- pull with conflict detection, push with
  stash/pull/pop recovery, commit and update checks.
- ``merge_service`` -- ``MergeServiceClient`` for externally merged text.
- ``poller``        -- ``UpdatePoller``: background update checks.
- ``reporter``      -- Human-readable and JSON formatting.

Usage example
-------------
::

    from git_doc_sync.sync import (
        SessionRegistry,
        open_resolution_session,
        pull_with_conflict_detection,
    )

    registry = SessionRegistry()
    session = registry.get("/home/me/notes/draft.md")
    outcome = await pull_with_conflict_detection(session)
    if outcome.has_conflicts:
        resolution = open_resolution_session(outcome.content, session)
        for section in resolution.document.sections:
            resolution.keep_both(section.id)
        result = await resolution.finalize()
"""

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
from .orchestrator import (
    check_for_updates,
    commit_all,
    commit_and_push,
    diff_file,
    pull_with_conflict_detection,
    push_with_conflict_handling,
    restore_stash,
    switch_branch,
)
from .parser import has_conflict_markers, parse, rebuild, resolve_section
from .poller import UpdatePoller
from .session import (
    ResolutionSession,
    SessionRegistry,
    SyncSession,
    open_resolution_session,
)

__all__ = [
    # Models
    "ConflictDocument",
    "ConflictOrigin",
    "ConflictSection",
    "FinalizeResult",
    "OutcomeKind",
    "SyncOutcome",
    "SyncPhase",
    # Parser
    "has_conflict_markers",
    "parse",
    "rebuild",
    "resolve_section",
    # Sessions
    "ResolutionSession",
    "SessionRegistry",
    "SyncSession",
    "open_resolution_session",
    # Orchestrator
    "check_for_updates",
    "commit_all",
    "commit_and_push",
    "diff_file",
    "pull_with_conflict_detection",
    "push_with_conflict_handling",
    "restore_stash",
    "switch_branch",
    # Collaborators
    "MergeServiceClient",
    "UpdatePoller",
]
