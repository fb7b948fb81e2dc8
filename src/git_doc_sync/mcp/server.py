"""MCP server for git document sync using stdio transport.

This module implements the Model Context Protocol server that lets AI
agents pull, push and resolve merge conflicts for tracked documents.

Tools are served over stdio as JSON-RPC; nothing else may write to stdout.
"""

import argparse
import asyncio
import logging
import os
import sys

import mcp.server.stdio
import mcp.types as types
from mcp.server import NotificationOptions, Server
from mcp.server.models import InitializationOptions

from .. import __version__
from ..config_loader import CONFIG_ENV_VAR
from ..logger import DEFAULT_MCP_LOG_FILE, setup_logging
from .lifespan import SyncContext, load_unified_config, server_lifespan
from .tools import ALL_SPECS, ToolRegistry, build_error_response

logger = logging.getLogger(__name__)

server = Server("git-doc-sync")

# Set once the lifespan has started
_context: SyncContext | None = None

# Set in main(), cleared on shutdown
_registry: ToolRegistry | None = None


# ---------------------------------------------------------------------------
# Global accessors
# ---------------------------------------------------------------------------


def get_context() -> SyncContext:
    """Get the global SyncContext instance.

    Raises:
        RuntimeError: If the context is not initialized
    """
    if _context is None:
        raise RuntimeError(
            "SyncContext not initialized. Server lifespan not started."
        )
    return _context


def set_context(context: SyncContext | None) -> None:
    """Set the global SyncContext instance, or None to clear."""
    global _context
    _context = context


def get_registry() -> ToolRegistry:
    """Return the registry installed by main()."""
    if _registry is None:
        raise RuntimeError("ToolRegistry not initialized.")
    return _registry


def set_registry(registry: ToolRegistry | None) -> None:
    """Set the global ToolRegistry instance, or None to clear."""
    global _registry
    _registry = registry


# ---------------------------------------------------------------------------
# MCP protocol handlers
# ---------------------------------------------------------------------------


@server.list_tools()
async def handle_list_tools() -> list[types.Tool]:
    """List available tools (all, or only non-mutating in read-only mode)."""
    return get_registry().list_tools()


@server.call_tool()
async def handle_call_tool(
    name: str, arguments: dict | None
) -> types.CallToolResult:
    """Route a tool call to its handler with the shared SyncContext.

    Names the registry does not know (including tools hidden by
    ``--read-only``) come back as an ``unknown_tool`` error result.
    """
    context = get_context()
    try:
        return await get_registry().call_tool(name, arguments, context)
    except ValueError as e:
        return build_error_response(
            "unknown_tool",
            str(e),
            "Use list_tools to see available tools.",
        )


# ---------------------------------------------------------------------------
# Server lifecycle
# ---------------------------------------------------------------------------


async def main(config_overrides: dict | None = None):
    """Run the MCP server with stdio transport.

    Sets up logging for MCP mode (file only, never stdout), checks git via
    the lifespan manager, and serves JSON-RPC over stdio.

    Args:
        config_overrides: Optional dict of CLI values (log_file, debug, read_only)
    """
    overrides = config_overrides or {}

    # The YAML logging section only supplies defaults; CLI and
    # environment still win.
    unified, _ = load_unified_config()
    log_file = (
        overrides.get("log_file")
        or os.getenv("LOG_FILE")
        or unified.logging.file
    )

    # Must run before stdio_server so nothing reaches stdout
    setup_logging(
        mode="mcp",
        debug=overrides.get("debug", False),
        log_file=log_file,
        level=unified.logging.level,
    )

    read_only = overrides.get("read_only", False)
    registry = ToolRegistry(ALL_SPECS, read_only=read_only)
    logger.info(
        "Registered %d tools (of %d total)",
        registry.tool_count(),
        len(ALL_SPECS),
    )
    if read_only:
        print(
            f"Read-only mode ({registry.tool_count()} of "
            f"{len(ALL_SPECS)} tools enabled)",
            file=sys.stderr,
        )

    set_registry(registry)

    # set_context() is called here rather than in the lifespan so that
    # running this file as __main__ updates this module's global.
    async with server_lifespan(config_overrides=overrides) as context:
        set_context(context)
        try:
            async with mcp.server.stdio.stdio_server() as (
                read_stream,
                write_stream,
            ):
                init_options = InitializationOptions(
                    server_name="git-doc-sync",
                    server_version=__version__,
                    capabilities=server.get_capabilities(
                        notification_options=NotificationOptions(),
                        experimental_capabilities={},
                    ),
                )
                await server.run(
                    read_stream, write_stream, init_options
                )
        finally:
            set_context(None)
            set_registry(None)


def run() -> None:
    """Console entry point: parse arguments and serve until stdin closes."""
    parser = argparse.ArgumentParser(
        description="git-doc-sync - MCP server for syncing documents with git remotes",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=f"""
Examples:
  # Run with default config (from .env or .git_doc_sync/config.yml)
  git-doc-sync

  # Use an explicit config file
  git-doc-sync --config ~/notes/.git_doc_sync/config.yml

  # Expose only read-only tools
  git-doc-sync --read-only

  # Custom log file location with debug logging
  git-doc-sync --log-file /var/log/git-doc-sync.log --debug

The server talks JSON-RPC on stdin/stdout, so it is meant to be launched
by an MCP client. Status messages go to stderr.
The default log file is {DEFAULT_MCP_LOG_FILE}.
        """,
    )

    parser.add_argument(
        "--config",
        help=f"Config file path (takes precedence over {CONFIG_ENV_VAR} and discovered files)",
    )
    parser.add_argument(
        "--log-file",
        help=f"Log file path (default: {DEFAULT_MCP_LOG_FILE})",
    )
    parser.add_argument(
        "--read-only",
        action="store_true",
        help="Only expose tools that do not change the work tree or the remote",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"git-doc-sync version {__version__}",
    )

    args = parser.parse_args()

    if args.config:
        os.environ[CONFIG_ENV_VAR] = args.config

    config_overrides: dict = {}
    if args.log_file:
        config_overrides["log_file"] = args.log_file
    if args.read_only:
        config_overrides["read_only"] = True
    if args.debug:
        config_overrides["debug"] = True

    if config_overrides:
        print(
            f"Config overrides from CLI: {', '.join(config_overrides)}",
            file=sys.stderr,
        )

    try:
        asyncio.run(main(config_overrides=config_overrides or None))
    except RuntimeError:
        sys.exit(1)
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        sys.exit(0)


if __name__ == "__main__":
    run()
