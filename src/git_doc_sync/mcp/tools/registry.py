"""Tool table for the MCP server.

Each tool is a ``ToolSpec``: its MCP definition, whether it changes the
work tree, the index or the remote, and an async handler taking
``(context, args)``. ``ToolRegistry`` drops mutating specs in read-only
mode and turns handler exceptions into error results.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

import mcp.types as types

from ...core.errors import SyncError

if TYPE_CHECKING:
    from ..lifespan import SyncContext

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ToolSpec:
    """One MCP tool and its handler.

    Attributes:
        tool: Name, description and input schema shown to the client.
        mutating: True if the tool changes the working tree, the index,
            or the remote. Mutating tools are hidden in read-only mode.
        handler: Async handler with signature (context, args) -> CallToolResult.
    """

    tool: types.Tool
    mutating: bool
    handler: Callable[[SyncContext, dict], Awaitable[types.CallToolResult]]


class ToolRegistry:
    """Tools available to the client, keyed by name."""

    def __init__(self, specs: list[ToolSpec], read_only: bool = False):
        self._specs: dict[str, ToolSpec] = {}
        for spec in specs:
            if read_only and spec.mutating:
                continue
            self._specs[spec.tool.name] = spec

    def list_tools(self) -> list[types.Tool]:
        return [spec.tool for spec in self._specs.values()]

    def tool_count(self) -> int:
        return len(self._specs)

    async def call_tool(
        self,
        name: str,
        arguments: dict | None,
        context: SyncContext,
    ) -> types.CallToolResult:
        """Run the handler for *name*.

        ``SyncError`` becomes its typed error result, ``ValueError`` a
        ``validation_error`` and anything else a logged ``server_error``.

        Raises:
            ValueError: If *name* is unknown or hidden by read-only mode.
        """
        from .errors import build_error_response, translate_sync_error

        spec = self._specs.get(name)
        if spec is None:
            raise ValueError(f"Unknown tool: {name}")
        args = arguments or {}
        try:
            return await spec.handler(context, args)
        except SyncError as e:
            logger.info("%s rejected: %s", name, e.message)
            return translate_sync_error(e)
        except ValueError as e:
            return build_error_response(
                "validation_error",
                str(e),
                "Check parameter values and retry.",
            )
        except Exception as e:
            logger.exception("Unexpected error in tool %s", name)
            return build_error_response(
                "server_error",
                str(e),
                "Check the server log and retry.",
            )
