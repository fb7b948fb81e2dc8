"""Helpers shared by the tool handler modules."""

from __future__ import annotations

from typing import TYPE_CHECKING

import mcp.types as types

from ...file_handler import validate_file_path
from ...sync.session import SyncSession

if TYPE_CHECKING:
    from ..lifespan import SyncContext

PATH_PROPERTY = {
    "type": "string",
    "description": "Absolute path of the tracked file inside a git work tree",
}


def session_for(context: SyncContext, args: dict) -> SyncSession:
    """Resolve the ``path`` argument to its ``SyncSession``.

    Raises:
        NoFileOpenError: If ``path`` is missing or empty.
        ValueError: If ``path`` is not an absolute path to an existing file.
    """
    path = args.get("path")
    if not path:
        return context.sessions.get(path)
    return context.sessions.get(validate_file_path(path))


def text_result(
    text: str, structured: dict | None = None
) -> types.CallToolResult:
    return types.CallToolResult(
        content=[types.TextContent(type="text", text=text)],
        structuredContent=structured,
    )
