"""MCP tool handlers for conflict resolution.

Defines the resolution-session tools:

- ``conflict_show`` -- list the sections of the open resolution.
- ``conflict_resolve`` -- resolve one section (local, remote, both,
  merge service, or custom text).
- ``conflict_finalize`` -- write the rebuilt file back and stage it.
- ``conflict_cancel`` -- abort the merge and discard the resolution.
- ``merge_service_test`` -- check merge service connectivity.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import mcp.types as types

from ...file_handler import read_text_async
from ...sync.models import OutcomeKind
from ...sync.reporter import (
    format_finalize_result,
    format_section_diff,
    format_session,
    outcome_to_json,
    session_to_json,
)
from ...sync.session import (
    ResolutionSession,
    SyncSession,
    open_resolution_session,
)
from .common import PATH_PROPERTY, session_for, text_result
from .errors import (
    build_error_response,
    corrective_action,
    translate_outcome_failure,
)
from .registry import ToolSpec

if TYPE_CHECKING:
    from ..lifespan import SyncContext

logger = logging.getLogger(__name__)

STRATEGIES = ("local", "remote", "both", "merge", "text")


async def _active_resolution(
    context: SyncContext, session: SyncSession
) -> ResolutionSession:
    """Return the open resolution, opening it from the file if needed."""
    if session.resolution is not None:
        return session.resolution
    content = await read_text_async(session.path)
    return open_resolution_session(content, session, context.merge_client)


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


async def _handle_show(
    context: SyncContext, args: dict
) -> types.CallToolResult:
    session = session_for(context, args)
    resolution = await _active_resolution(context, session)

    section_id = args.get("section_id")
    if section_id is None:
        return text_result(
            format_session(resolution), session_to_json(resolution)
        )

    section = resolution.document.section(int(section_id))
    if section is None:
        raise ValueError(f"Conflict section {section_id} not found")
    return text_result(
        f"[Section {section.id}]\n" + format_section_diff(section),
        section.model_dump(),
    )


async def _handle_resolve(
    context: SyncContext, args: dict
) -> types.CallToolResult:
    session = session_for(context, args)
    resolution = await _active_resolution(context, session)

    if "section_id" not in args:
        raise ValueError("section_id is required")
    section_id = int(args["section_id"])
    strategy = args.get("strategy", "text")

    match strategy:
        case "local":
            resolution.keep_local(section_id)
        case "remote":
            resolution.keep_remote(section_id)
        case "both":
            resolution.keep_both(section_id)
        case "merge":
            await resolution.resolve_with_merge_service(section_id)
        case "text":
            text = args.get("text")
            if text is None:
                raise ValueError("text is required for strategy 'text'")
            resolution.resolve(section_id, text)
        case _:
            raise ValueError(
                f"Unknown strategy '{strategy}'. Use one of: {', '.join(STRATEGIES)}"
            )

    document = resolution.document
    remaining = document.unresolved_ids
    if remaining:
        text = (
            f"Section {section_id} resolved ({strategy}). "
            f"Unresolved sections: {remaining}"
        )
    else:
        text = (
            f"Section {section_id} resolved ({strategy}). "
            "All sections resolved. Run conflict_finalize."
        )
    return text_result(text, session_to_json(resolution))


async def _handle_finalize(
    context: SyncContext, args: dict
) -> types.CallToolResult:
    session = session_for(context, args)
    resolution = await _active_resolution(context, session)
    result = await resolution.finalize()
    if not result.success:
        return build_error_response(
            result.error_kind.value if result.error_kind else "server_error",
            f"Finalize failed: {result.error}",
            corrective_action(result.error_kind),
        )
    return text_result(
        format_finalize_result(result),
        result.model_dump(mode="json", exclude={"content"}),
    )


async def _handle_cancel(
    context: SyncContext, args: dict
) -> types.CallToolResult:
    session = session_for(context, args)
    resolution = await _active_resolution(context, session)
    outcome = await resolution.cancel()
    if outcome.kind == OutcomeKind.FAILURE:
        return translate_outcome_failure(outcome, "Cancel")

    text = f"Merge aborted; {session.path} restored."
    if outcome.stash_pending:
        text += (
            "\nLocal changes are still stashed. Use git_stash_restore "
            "to bring them back."
        )
    return text_result(text, outcome_to_json(outcome))


async def _handle_merge_service_test(
    context: SyncContext, args: dict
) -> types.CallToolResult:
    reply = await context.merge_client.test_connection_async()
    settings = context.merge_client.settings
    return text_result(
        f"Merge service reachable ({settings.model}). Reply: {reply}",
        {"model": settings.model, "reply": reply},
    )


# ---------------------------------------------------------------------------
# Tool specs
# ---------------------------------------------------------------------------


CONFLICT_SPECS: list[ToolSpec] = [
    ToolSpec(
        tool=types.Tool(
            name="conflict_show",
            description=(
                "Show the conflicting sections of a file awaiting "
                "resolution, or a local-vs-remote diff of one section."
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
                    "section_id": {
                        "type": "integer",
                        "minimum": 0,
                        "description": "Show a diff of this section only",
                    },
                },
                "required": ["path"],
            },
        ),
        mutating=False,
        handler=_handle_show,
    ),
    ToolSpec(
        tool=types.Tool(
            name="conflict_resolve",
            description=(
                "Resolve one conflict section: keep the local side, the "
                "remote side, both (local, blank line, remote), a merge "
                "from the merge service, or custom text. Re-resolving a "
                "section overwrites the previous choice."
            ),
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
                    "section_id": {
                        "type": "integer",
                        "minimum": 0,
                        "description": "Section to resolve",
                    },
                    "strategy": {
                        "type": "string",
                        "enum": list(STRATEGIES),
                        "default": "text",
                        "description": "How to resolve the section",
                    },
                    "text": {
                        "type": "string",
                        "description": "Resolved text for strategy 'text'",
                    },
                },
                "required": ["path", "section_id"],
            },
        ),
        mutating=True,
        handler=_handle_resolve,
    ),
    ToolSpec(
        tool=types.Tool(
            name="conflict_finalize",
            description=(
                "Write the fully resolved file back and stage it. Commit "
                "afterwards with git_commit."
            ),
            annotations=types.ToolAnnotations(
                readOnlyHint=False,
                destructiveHint=False,
                idempotentHint=False,
                openWorldHint=False,
            ),
            inputSchema={
                "type": "object",
                "properties": {"path": PATH_PROPERTY},
                "required": ["path"],
            },
        ),
        mutating=True,
        handler=_handle_finalize,
    ),
    ToolSpec(
        tool=types.Tool(
            name="conflict_cancel",
            description=(
                "Abort the merge, restore the pre-merge file and discard "
                "the resolution session."
            ),
            annotations=types.ToolAnnotations(
                readOnlyHint=False,
                destructiveHint=True,
                idempotentHint=False,
                openWorldHint=False,
            ),
            inputSchema={
                "type": "object",
                "properties": {"path": PATH_PROPERTY},
                "required": ["path"],
            },
        ),
        mutating=True,
        handler=_handle_cancel,
    ),
    ToolSpec(
        tool=types.Tool(
            name="merge_service_test",
            description="Check that the merge service endpoint, key and model work.",
            annotations=types.ToolAnnotations(
                readOnlyHint=True,
                destructiveHint=False,
                idempotentHint=True,
                openWorldHint=True,
            ),
            inputSchema={
                "type": "object",
                "properties": {},
                "required": [],
            },
        ),
        mutating=False,
        handler=_handle_merge_service_test,
    ),
]
