"""MCP tool handlers for git sync operations.

Defines the repository-level tools:

- ``git_status`` -- branch, tracking and change summary.
- ``git_pull`` -- pull with conflict detection.
- ``git_push`` -- optional commit, then push with stash/pull/pop recovery.
- ``git_commit`` -- stage everything and commit.
- ``git_branches`` / ``git_checkout`` -- list and switch branches.
- ``git_diff`` -- diff the tracked file against HEAD, MERGE_HEAD or a ref.
- ``git_stash_restore`` -- restore a recovery stash after a merge commit.

A conflict outcome opens a resolution session straight away, so the
response already lists the sections to resolve.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import mcp.types as types

from ...sync.models import OutcomeKind, SyncOutcome
from ...sync.orchestrator import (
    commit_all,
    commit_and_push,
    diff_file,
    pull_with_conflict_detection,
    restore_stash,
    switch_branch,
)
from ...sync.reporter import (
    format_diff,
    format_outcome,
    format_session,
    format_status,
    outcome_to_json,
    session_to_json,
    status_to_json,
)
from ...sync.session import SyncSession, open_resolution_session
from .common import PATH_PROPERTY, session_for, text_result
from .errors import translate_outcome_failure
from .registry import ToolSpec

if TYPE_CHECKING:
    from ..lifespan import SyncContext

logger = logging.getLogger(__name__)


def _path_only_schema() -> dict:
    return {
        "type": "object",
        "properties": {"path": PATH_PROPERTY},
        "required": ["path"],
    }


def _outcome_result(
    context: SyncContext,
    session: SyncSession,
    outcome: SyncOutcome,
    operation: str,
) -> types.CallToolResult:
    """Turn an orchestrator outcome into a tool response."""
    if outcome.kind == OutcomeKind.FAILURE:
        return translate_outcome_failure(outcome, operation)

    text = format_outcome(outcome, operation, str(session.path))
    structured = outcome_to_json(outcome)
    if outcome.has_conflicts:
        resolution = open_resolution_session(
            outcome.content or "", session, context.merge_client
        )
        text += "\n\n" + format_session(resolution)
        structured["session"] = session_to_json(resolution)
    return text_result(text, structured)


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


async def _handle_status(
    context: SyncContext, args: dict
) -> types.CallToolResult:
    session = session_for(context, args)
    if not await session.backend.is_repo():
        raise ValueError(
            f"{session.path} is not inside a git work tree"
        )
    status = await session.backend.status()
    text = f"File: {session.path} ({session.phase.value})\n"
    text += format_status(status)
    structured = status_to_json(status)
    structured["phase"] = session.phase.value
    structured["stash_pending"] = session.stash_pending
    return text_result(text, structured)


async def _handle_pull(
    context: SyncContext, args: dict
) -> types.CallToolResult:
    session = session_for(context, args)
    outcome = await pull_with_conflict_detection(session)
    return _outcome_result(context, session, outcome, "Pull")


async def _handle_push(
    context: SyncContext, args: dict
) -> types.CallToolResult:
    session = session_for(context, args)
    outcome = await commit_and_push(session, args.get("message"))
    return _outcome_result(context, session, outcome, "Push")


async def _handle_commit(
    context: SyncContext, args: dict
) -> types.CallToolResult:
    session = session_for(context, args)
    outcome = await commit_all(session, args.get("message", ""))
    return _outcome_result(context, session, outcome, "Commit")


async def _handle_branches(
    context: SyncContext, args: dict
) -> types.CallToolResult:
    session = session_for(context, args)
    branches = await session.backend.branches()
    lines = [
        f"{'*' if name == branches.current else ' '} {name}"
        for name in branches.all
    ]
    text = "\n".join(lines) if lines else "No branches."
    return text_result(text, branches.model_dump())


async def _handle_checkout(
    context: SyncContext, args: dict
) -> types.CallToolResult:
    session = session_for(context, args)
    outcome = await switch_branch(session, args.get("branch", ""))
    return _outcome_result(context, session, outcome, "Checkout")


async def _handle_diff(
    context: SyncContext, args: dict
) -> types.CallToolResult:
    session = session_for(context, args)
    ref, hunks = await diff_file(session, args.get("ref"))
    path = session.relative_path
    return text_result(
        format_diff(ref, path, hunks),
        {"ref": ref, "path": path, "hunks": [h.model_dump() for h in hunks]},
    )


async def _handle_stash_restore(
    context: SyncContext, args: dict
) -> types.CallToolResult:
    session = session_for(context, args)
    outcome = await restore_stash(session)
    return _outcome_result(context, session, outcome, "Stash restore")


# ---------------------------------------------------------------------------
# Tool specs
# ---------------------------------------------------------------------------


GIT_SPECS: list[ToolSpec] = [
    ToolSpec(
        tool=types.Tool(
            name="git_status",
            description=(
                "Show the branch, tracking branch with ahead/behind counts, "
                "changed and unmerged paths for the repository containing "
                "a tracked file."
            ),
            annotations=types.ToolAnnotations(
                readOnlyHint=True,
                destructiveHint=False,
                idempotentHint=True,
                openWorldHint=False,
            ),
            inputSchema=_path_only_schema(),
        ),
        mutating=False,
        handler=_handle_status,
    ),
    ToolSpec(
        tool=types.Tool(
            name="git_pull",
            description=(
                "Pull from the tracking branch. On merge conflicts, opens "
                "a resolution session and lists the conflicting sections."
            ),
            annotations=types.ToolAnnotations(
                readOnlyHint=False,
                destructiveHint=False,
                idempotentHint=True,
                openWorldHint=True,
            ),
            inputSchema=_path_only_schema(),
        ),
        mutating=True,
        handler=_handle_pull,
    ),
    ToolSpec(
        tool=types.Tool(
            name="git_push",
            description=(
                "Push to the remote, committing all changes first when a "
                "message is given. If the remote has diverged, local "
                "changes are stashed, the remote is pulled, the stash is "
                "restored and the push retried once."
            ),
            annotations=types.ToolAnnotations(
                readOnlyHint=False,
                destructiveHint=False,
                idempotentHint=False,
                openWorldHint=True,
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "path": PATH_PROPERTY,
                    "message": {
                        "type": "string",
                        "description": "Commit message (commit all changes before pushing)",
                    },
                },
                "required": ["path"],
            },
        ),
        mutating=True,
        handler=_handle_push,
    ),
    ToolSpec(
        tool=types.Tool(
            name="git_commit",
            description="Stage all changes in the work tree and commit them.",
            annotations=types.ToolAnnotations(
                readOnlyHint=False,
                destructiveHint=False,
                idempotentHint=False,
                openWorldHint=False,
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "path": PATH_PROPERTY,
                    "message": {
                        "type": "string",
                        "description": "Commit message",
                    },
                },
                "required": ["path", "message"],
            },
        ),
        mutating=True,
        handler=_handle_commit,
    ),
    ToolSpec(
        tool=types.Tool(
            name="git_branches",
            description="List local branches and mark the current one.",
            annotations=types.ToolAnnotations(
                readOnlyHint=True,
                destructiveHint=False,
                idempotentHint=True,
                openWorldHint=False,
            ),
            inputSchema=_path_only_schema(),
        ),
        mutating=False,
        handler=_handle_branches,
    ),
    ToolSpec(
        tool=types.Tool(
            name="git_diff",
            description=(
                "Show the diff of a tracked file against a ref. Defaults "
                "to MERGE_HEAD while a pulled merge awaits resolution, "
                "otherwise HEAD."
            ),
            annotations=types.ToolAnnotations(
                readOnlyHint=True,
                destructiveHint=False,
                idempotentHint=True,
                openWorldHint=False,
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "path": PATH_PROPERTY,
                    "ref": {
                        "type": "string",
                        "description": "Commit, branch or tag to compare with",
                    },
                },
                "required": ["path"],
            },
        ),
        mutating=False,
        handler=_handle_diff,
    ),
    ToolSpec(
        tool=types.Tool(
            name="git_checkout",
            description="Switch the work tree to another local branch.",
            annotations=types.ToolAnnotations(
                readOnlyHint=False,
                destructiveHint=False,
                idempotentHint=True,
                openWorldHint=False,
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "path": PATH_PROPERTY,
                    "branch": {
                        "type": "string",
                        "description": "Branch to check out",
                    },
                },
                "required": ["path", "branch"],
            },
        ),
        mutating=True,
        handler=_handle_checkout,
    ),
    ToolSpec(
        tool=types.Tool(
            name="git_stash_restore",
            description=(
                "Restore local changes stashed during push recovery. Use "
                "after the resolved merge has been committed."
            ),
            annotations=types.ToolAnnotations(
                readOnlyHint=False,
                destructiveHint=False,
                idempotentHint=False,
                openWorldHint=False,
            ),
            inputSchema=_path_only_schema(),
        ),
        mutating=True,
        handler=_handle_stash_restore,
    ),
]
