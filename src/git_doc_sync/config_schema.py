"""Unified configuration schema for git_doc_sync.

Defines Pydantic models for the unified config structure with dedicated
sections for the git backend, sync behaviour, the external merge service
and logging.

Usage:
    from git_doc_sync.config_loader import load_hierarchical_config
    from git_doc_sync.config_schema import build_config

    raw = load_hierarchical_config()
    unified = build_config(raw)
"""

from __future__ import annotations

import logging

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Section models
# ---------------------------------------------------------------------------


class GitConfig(BaseModel):
    """Settings for invoking the ``git`` executable."""

    binary: str = Field(default="git", description="git executable")
    network_timeout: float = Field(
        default=120.0,
        gt=0,
        le=3600,
        description="Timeout in seconds for fetch/pull/push",
    )
    local_timeout: float = Field(
        default=30.0,
        gt=0,
        le=600,
        description="Timeout in seconds for local git commands",
    )

    model_config = {"frozen": True}


class SyncConfig(BaseModel):
    """Sync orchestration settings."""

    poll_interval: float = Field(
        default=300.0,
        ge=10,
        le=86400,
        description="Seconds between background update checks",
    )
    max_parallel_operations: int = Field(
        default=2,
        ge=1,
        le=32,
        description="Maximum concurrent network operations across paths (1-32)",
    )

    model_config = {"frozen": True}


class MergeServiceConfig(BaseModel):
    """External merge service (OpenAI-compatible chat completions).

    The service is optional; with no ``api_key`` every merge request
    fails with a "not configured" error.
    """

    enabled: bool = Field(default=False, description="Enable merge service")
    api_endpoint: str = Field(
        default="https://api.openai.com/v1/chat/completions",
        description="Chat-completions endpoint URL",
    )
    api_key: str | None = Field(default=None, description="API key")
    model: str = Field(default="gpt-4o-mini", description="Model name")
    temperature: float = Field(default=0.3, ge=0, le=2)
    timeout: float = Field(
        default=60.0, gt=0, le=600, description="HTTP timeout in seconds"
    )

    model_config = {"frozen": True}


class LoggingConfig(BaseModel):
    """Logging configuration.

    Attributes:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL);
            ``None`` keeps the per-mode default.
        file: Optional log file path.
    """

    level: str | None = Field(default=None, description="Log level")
    file: str | None = Field(default=None, description="Log file path")

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Top-level unified config
# ---------------------------------------------------------------------------


class UnifiedConfig(BaseModel):
    """Top-level unified configuration.

    Every section has sensible defaults, so ``UnifiedConfig()``
    (zero-config) is always valid.
    """

    git: GitConfig = Field(default_factory=GitConfig)
    sync: SyncConfig = Field(default_factory=SyncConfig)
    merge: MergeServiceConfig = Field(default_factory=MergeServiceConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Factory function
# ---------------------------------------------------------------------------


def build_config(raw_data: dict) -> UnifiedConfig:
    """Construct a ``UnifiedConfig`` from the raw dict returned by
    ``load_hierarchical_config()``.

    Missing sections get defaults.  Unknown top-level sections are
    logged and ignored.

    Args:
        raw_data: Merged configuration dictionary.

    Returns:
        Validated ``UnifiedConfig`` instance.

    Raises:
        pydantic.ValidationError: If a known section has invalid values.
    """
    if not raw_data:
        return UnifiedConfig()

    known = set(UnifiedConfig.model_fields)
    unknown = sorted(set(raw_data) - known)
    if unknown:
        logger.warning("Ignoring unknown config sections: %s", unknown)

    return UnifiedConfig(
        **{k: v for k, v in raw_data.items() if k in known}
    )
