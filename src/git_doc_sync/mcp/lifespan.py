"""Lifespan management for MCP server startup and shutdown."""

import logging
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from ..config import Config, load_config
from ..config_loader import (
    discover_config_files,
    load_hierarchical_config,
)
from ..config_schema import UnifiedConfig, build_config
from ..core.async_utils import init_semaphore, run_sync
from ..core.backend import GitBackend
from ..core.errors import BackendError
from ..sync.merge_service import MergeServiceClient
from ..sync.poller import UpdatePoller
from ..sync.session import SessionRegistry

logger = logging.getLogger(__name__)


@dataclass
class SyncContext:
    """Shared state handed to every tool handler.

    Attributes:
        config: Resolved runtime configuration.
        sessions: One ``SyncSession`` per tracked path.
        merge_client: External merge service client.
        poller: Background update checks for every tracked path.
    """

    config: Config
    sessions: SessionRegistry
    merge_client: MergeServiceClient
    poller: UpdatePoller


def _stderr_print(msg: str) -> None:
    """Print message to stderr for user feedback (safe in MCP mode)."""
    print(msg, file=sys.stderr, flush=True)


def load_unified_config() -> tuple[UnifiedConfig, Path | None]:
    """Load the YAML config, returning it with the highest-precedence file.

    Returns zero-config defaults and ``None`` when no file exists.
    """
    config_files = discover_config_files()
    if not config_files:
        return UnifiedConfig(), None
    return build_config(load_hierarchical_config()), config_files[0]


def build_context(config: Config) -> SyncContext:
    """Create the shared context from a resolved ``Config``."""
    sessions = SessionRegistry(git_settings=config.git_settings())
    return SyncContext(
        config=config,
        sessions=sessions,
        merge_client=MergeServiceClient(config.merge_settings()),
        poller=UpdatePoller(sessions, config.poll_interval),
    )


@asynccontextmanager
async def server_lifespan(
    config_overrides: dict[str, Any] | None = None,
) -> AsyncIterator[SyncContext]:
    """
    Manage server startup and shutdown lifecycle.

    On startup:
    - Load .env file (so values are available for env var lookups and YAML interpolation)
    - Load YAML config file if present (as fallback values)
    - Merge all sources via load_config(): CLI > env vars > .env > YAML > defaults
    - Check that the git executable runs
    - Initialize the network semaphore and start the update poller

    On shutdown:
    - Stop the update poller

    Args:
        config_overrides: Optional dict with config values from CLI (debug, read_only)

    Yields:
        The initialized SyncContext

    Raises:
        RuntimeError: If configuration is invalid or git is unavailable.
    """
    logger.info("MCP server starting...")
    _stderr_print("git-doc-sync starting...")

    overrides = config_overrides or {}
    try:
        # .env first so ${VAR} interpolation in YAML can use its values
        load_dotenv()

        unified, config_path = load_unified_config()
        sources = []
        if config_path is not None:
            sources.append(f"config file: {config_path}")

        config = load_config(
            unified=unified,
            debug=overrides.get("debug", False),
            read_only=overrides.get("read_only", False),
        )

        if overrides:
            sources.append("CLI arguments")
        sources.append("environment variables")
        source_desc = ", ".join(sources)
        logger.info("Configuration loaded from: %s", source_desc)
        _stderr_print(f"  Configuration loaded from: {source_desc}")
    except ValueError as e:
        logger.error("Configuration error: %s", e)
        _stderr_print(f"ERROR: Configuration error: {e}")
        raise RuntimeError(f"Configuration error: {e}") from e

    try:
        backend = GitBackend(Path.cwd(), config.git_settings())
        version = (await run_sync(backend.run_git, ["--version"])).strip()
    except BackendError as e:
        logger.error("git check failed: %s", e)
        _stderr_print(f"ERROR: {e.message}")
        _stderr_print("  Install git or set GIT_DOC_SYNC_GIT_BINARY.")
        raise RuntimeError(f"git unavailable: {e.message}") from e

    logger.info("Using %s", version)
    _stderr_print(f"  Using {version}")
    init_semaphore(config.max_parallel_operations)
    _stderr_print(
        f"  Parallel network operations: {config.max_parallel_operations}"
    )
    if config.merge_enabled:
        _stderr_print(f"  Merge service: {config.merge_model}")

    context = build_context(config)
    context.poller.start()
    _stderr_print("Server ready. Waiting for MCP client connection...")

    try:
        yield context
    finally:
        await context.poller.stop()
        logger.info("MCP server shutting down")
        _stderr_print("git-doc-sync shutting down.")
