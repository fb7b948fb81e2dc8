"""MCP tool handlers for git sync and conflict resolution.

This package contains MCP tool implementations that wrap the sync
orchestrator and resolution sessions with async handlers and structured
error responses.
"""

from .conflict import CONFLICT_SPECS
from .errors import build_error_response
from .git import GIT_SPECS
from .registry import ToolRegistry, ToolSpec

ALL_SPECS: list[ToolSpec] = GIT_SPECS + CONFLICT_SPECS

__all__ = [
    "build_error_response",
    # Registry
    "ToolSpec",
    "ToolRegistry",
    # ToolSpec lists
    "ALL_SPECS",
    "GIT_SPECS",
    "CONFLICT_SPECS",
]
