"""Core git backend and async plumbing shared by the orchestrator and MCP server."""

from .async_utils import run_sync
from .backend import GitBackend, RepoStatus, VersionControlBackend

__all__ = ["GitBackend", "RepoStatus", "VersionControlBackend", "run_sync"]
