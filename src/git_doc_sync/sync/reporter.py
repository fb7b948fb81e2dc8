"""Outcome, status and resolution formatting.

Provides human-readable and machine-readable output for sync operations:

- ``format_outcome`` -- one pull/push/cancel outcome.
- ``format_status`` -- branch, tracking and change summary.
- ``format_session`` -- the sections of an open resolution session.
- ``format_section_diff`` -- unified diff of one section's two sides.
- ``format_finalize_result`` -- result of writing back a resolution.
- ``outcome_to_json`` / ``status_to_json`` / ``session_to_json`` --
  structured dicts for MCP tool output.
"""

from __future__ import annotations

import difflib
from typing import TYPE_CHECKING

from .models import OutcomeKind

if TYPE_CHECKING:
    from ..core.backend import DiffHunk, RepoStatus
    from .models import ConflictSection, FinalizeResult, SyncOutcome
    from .session import ResolutionSession

_PREVIEW_LINES = 20

_STASH_NOTE = (
    "A recovery stash is still held. Commit the merge, then restore "
    "the stash."
)


def _preview(text: str, indent: str = "  ") -> list[str]:
    lines = text.splitlines()
    out = [f"{indent}{line}" for line in lines[:_PREVIEW_LINES]]
    if len(lines) > _PREVIEW_LINES:
        out.append(f"{indent}... ({len(lines) - _PREVIEW_LINES} more lines)")
    if not lines:
        out.append(f"{indent}(empty)")
    return out


# ------------------------------------------------------------------
# Human-readable output
# ------------------------------------------------------------------


def format_outcome(outcome: SyncOutcome, operation: str, path: str) -> str:
    """Format a sync outcome as human-readable text.

    Args:
        outcome: Result of the operation.
        operation: Verb for the header (``"Pull"``, ``"Push"``, ...).
        path: The tracked file.
    """
    lines: list[str] = []
    match outcome.kind:
        case OutcomeKind.SUCCESS:
            lines.append(f"{operation} of {path} succeeded.")
        case OutcomeKind.CONFLICT_DETECTED:
            lines.append(f"{operation} of {path} stopped on merge conflicts.")
            lines.append(
                "Use conflict_show to review the sections, resolve each "
                "with conflict_resolve, then conflict_finalize "
                "(or conflict_cancel to abort the merge)."
            )
        case OutcomeKind.FAILURE:
            kind = outcome.error_kind.value if outcome.error_kind else "error"
            lines.append(f"{operation} of {path} failed ({kind}).")
            if outcome.error:
                lines.append(outcome.error)

    if outcome.stash_pending:
        lines.append(_STASH_NOTE)
    return "\n".join(lines)


def format_status(status: RepoStatus) -> str:
    """Format repository status as human-readable text."""
    lines: list[str] = []
    lines.append(f"Branch: {status.current_branch or '(detached HEAD)'}")
    if status.tracking_branch:
        lines.append(
            f"Tracking: {status.tracking_branch} "
            f"(ahead {status.ahead}, behind {status.behind})"
        )
    else:
        lines.append("Tracking: (no upstream configured)")

    if status.unmerged_paths:
        lines.append("")
        lines.append("Unmerged:")
        for path in status.unmerged_paths:
            lines.append(f"  {path}")

    other = [p for p in status.changed_paths if p not in status.unmerged_paths]
    lines.append("")
    if other:
        lines.append("Changed:")
        for path in other:
            lines.append(f"  {path}")
    elif not status.unmerged_paths:
        lines.append("Working tree clean.")

    return "\n".join(lines).rstrip()


def format_diff(ref: str, path: str, hunks: list[DiffHunk]) -> str:
    """Format the hunks of ``git diff <ref> -- <path>``."""
    if not hunks:
        return f"No differences between {path} and {ref}."
    lines = [f"--- {ref}:{path}", f"+++ {path}"]
    for hunk in hunks:
        lines.append(
            f"@@ -{hunk.old_start},{hunk.old_lines} "
            f"+{hunk.new_start},{hunk.new_lines} @@"
        )
        lines.extend(hunk.lines)
    return "\n".join(lines)


def format_section_diff(section: ConflictSection) -> str:
    """Unified diff from the local to the remote side of a section."""
    diff = difflib.unified_diff(
        section.local_text.splitlines(keepends=True),
        section.remote_text.splitlines(keepends=True),
        fromfile="local",
        tofile="remote",
    )
    text = "".join(diff)
    return text.rstrip() if text else "(no textual differences)"


def format_session(resolution: ResolutionSession) -> str:
    """Format every section of a resolution session for review."""
    document = resolution.document
    total = len(document.sections)
    done = total - len(document.unresolved_ids)

    lines: list[str] = []
    lines.append(f"Conflicts in {document.path}: {done}/{total} resolved")
    lines.append("")

    for section in document.sections:
        state = "resolved" if section.is_resolved else "unresolved"
        lines.append(f"[Section {section.id}] ({state})")
        lines.append("Local:")
        lines.extend(_preview(section.local_text))
        lines.append("Remote:")
        lines.extend(_preview(section.remote_text))
        if section.resolved_text is not None:
            lines.append("Resolution:")
            lines.extend(_preview(section.resolved_text))
        lines.append("")

    if resolution.is_complete():
        lines.append("All sections resolved. Run conflict_finalize.")
    return "\n".join(lines).rstrip()


def format_finalize_result(result: FinalizeResult) -> str:
    """Format the result of ``ResolutionSession.finalize()``."""
    lines: list[str] = []
    if result.success:
        lines.append(f"Resolved content written and staged: {result.path}")
        lines.append("Commit the merge to complete it.")
    else:
        kind = result.error_kind.value if result.error_kind else "error"
        lines.append(f"Finalizing {result.path} failed ({kind}).")
    if result.error and result.success:
        lines.append(f"Warning: {result.error}")
    elif result.error:
        lines.append(result.error)
    if result.stash_pending:
        lines.append(_STASH_NOTE)
    return "\n".join(lines)


# ------------------------------------------------------------------
# JSON output
# ------------------------------------------------------------------


def outcome_to_json(outcome: SyncOutcome) -> dict:
    """Convert an outcome to a dict for MCP ``structuredContent``.

    Conflicted content is omitted; ``conflict_show`` returns it parsed.
    """
    data: dict = {
        "outcome": outcome.kind.value,
        "stash_pending": outcome.stash_pending,
    }
    if outcome.error_kind is not None:
        data["error_kind"] = outcome.error_kind.value
    if outcome.error:
        data["error"] = outcome.error
    return data


def status_to_json(status: RepoStatus) -> dict:
    return status.model_dump()


def session_to_json(resolution: ResolutionSession) -> dict:
    document = resolution.document
    return {
        "path": document.path,
        "complete": resolution.is_complete(),
        "unresolved": document.unresolved_ids,
        "sections": [s.model_dump() for s in document.sections],
    }
