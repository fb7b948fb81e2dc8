"""Error response builders for MCP tool handlers.

This module provides structured error responses with corrective actions
to help AI agents recover from errors without human intervention.
"""

import mcp.types as types

from ...core.errors import SyncError, SyncErrorKind
from ...sync.models import SyncOutcome


def build_error_response(
    error_type: str, message: str, corrective_action: str
) -> types.CallToolResult:
    """Build a structured error response with corrective action.

    Args:
        error_type: Error category (a ``SyncErrorKind`` value,
            validation_error, unknown_tool or server_error)
        message: Human-readable error description
        corrective_action: Specific action the agent can take to resolve the error

    Returns:
        CallToolResult with isError=True

    Examples:
        >>> build_error_response("busy", "Push in progress", "Wait and retry.")
        CallToolResult(content=[TextContent(...)], isError=True)
    """
    error_text = f"Error ({error_type}): {message}\n\nAction: {corrective_action}"

    return types.CallToolResult(
        content=[types.TextContent(type="text", text=error_text)],
        isError=True,
    )


# ---------------------------------------------------------------------------
# Corrective action messages per error kind
# ---------------------------------------------------------------------------

_ACTIONS: dict[SyncErrorKind, str] = {
    SyncErrorKind.NO_FILE_OPEN: "Pass the absolute path of the tracked file as 'path'.",
    SyncErrorKind.INVALID_STATE: (
        "Use conflict_show to check whether a resolution is in progress; "
        "finish it with conflict_finalize or conflict_cancel first."
    ),
    SyncErrorKind.NETWORK_OR_AUTH: (
        "Check network connectivity and git credentials for the remote, "
        "then retry."
    ),
    SyncErrorKind.BUSY: "Another operation is running for this file. Wait and retry.",
    SyncErrorKind.DIVERGED_REMOTE: (
        "The remote changed again during recovery. Run git_pull, then "
        "git_push."
    ),
    SyncErrorKind.MERGE_CONFLICT: "Use conflict_show to review the conflicting sections.",
    SyncErrorKind.STASH_OR_ABORT_FAILURE: (
        "The working tree may be mid-merge or mid-stash. Inspect it with "
        "git_status and 'git stash list' and recover manually."
    ),
    SyncErrorKind.PARTIAL_RECOVERY_FAILURE: (
        "Local changes are still in the stash. Run 'git stash pop' in the "
        "repository to restore them."
    ),
    SyncErrorKind.IO_ERROR: "Check that the file exists and is readable and writable.",
    SyncErrorKind.EXTERNAL_MERGE_ERROR: (
        "Check the merge service settings with merge_service_test, or "
        "resolve the section with another strategy."
    ),
}


def corrective_action(kind: SyncErrorKind | None) -> str:
    if kind is None:
        return "Retry the operation."
    return _ACTIONS.get(kind, "Retry the operation.")


def translate_sync_error(error: SyncError) -> types.CallToolResult:
    """Translate a raised ``SyncError`` into an error response."""
    return build_error_response(
        error.kind.value, error.message, corrective_action(error.kind)
    )


def translate_outcome_failure(
    outcome: SyncOutcome, operation: str
) -> types.CallToolResult:
    """Translate a ``failure`` outcome into an error response."""
    kind = outcome.error_kind
    return build_error_response(
        kind.value if kind else "server_error",
        f"{operation} failed: {outcome.error or 'unknown error'}",
        corrective_action(kind),
    )
