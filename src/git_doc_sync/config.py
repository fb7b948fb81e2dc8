"""Runtime configuration for the sync server.

Reads settings from CLI args, environment variables, .env files, and the
YAML config (already parsed into a ``UnifiedConfig``).

Precedence (highest to lowest):
    CLI args > Environment variables > .env file > YAML config > Built-in defaults

Environment variables:
    GIT_DOC_SYNC_GIT_BINARY: git executable (default: git)
    GIT_DOC_SYNC_NETWORK_TIMEOUT: fetch/pull/push timeout in seconds
    GIT_DOC_SYNC_POLL_INTERVAL: seconds between update checks
    GIT_DOC_SYNC_MAX_PARALLEL: max concurrent network operations (1-32)
    GIT_DOC_SYNC_MERGE_ENABLED: enable the external merge service
    GIT_DOC_SYNC_MERGE_ENDPOINT: chat-completions endpoint URL
    GIT_DOC_SYNC_MERGE_API_KEY: merge service API key
    GIT_DOC_SYNC_MERGE_MODEL: merge service model name
    GIT_DOC_SYNC_DEBUG: enable debug logging
"""

import logging
import os
from dataclasses import dataclass
from urllib.parse import urlparse

from .config_schema import GitConfig, MergeServiceConfig, UnifiedConfig

logger = logging.getLogger(__name__)


@dataclass
class Config:
    git_binary: str = "git"
    network_timeout: float = 120.0
    local_timeout: float = 30.0
    poll_interval: float = 300.0
    max_parallel_operations: int = 2
    merge_enabled: bool = False
    merge_api_endpoint: str = "https://api.openai.com/v1/chat/completions"
    merge_api_key: str | None = None
    merge_model: str = "gpt-4o-mini"
    merge_temperature: float = 0.3
    merge_timeout: float = 60.0
    debug: bool = False
    read_only: bool = False

    def git_settings(self) -> GitConfig:
        """Build the ``GitConfig`` handed to each ``GitBackend``."""
        return GitConfig(
            binary=self.git_binary,
            network_timeout=self.network_timeout,
            local_timeout=self.local_timeout,
        )

    def merge_settings(self) -> MergeServiceConfig:
        """Build the ``MergeServiceConfig`` for the merge service client."""
        return MergeServiceConfig(
            enabled=self.merge_enabled,
            api_endpoint=self.merge_api_endpoint,
            api_key=self.merge_api_key,
            model=self.merge_model,
            temperature=self.merge_temperature,
            timeout=self.merge_timeout,
        )


def validate_config(config: Config) -> None:
    """Validate configuration values and raise ValueError if invalid.

    Args:
        config: Config instance to validate.

    Raises:
        ValueError: If the git binary is empty, a numeric setting is out of
            range, or the merge endpoint is not an http(s) URL.
    """
    config.git_binary = config.git_binary.strip()
    if not config.git_binary:
        raise ValueError("git binary cannot be empty.")

    if config.network_timeout <= 0:
        raise ValueError(
            f"Invalid network timeout {config.network_timeout}: must be positive"
        )

    if not (10 <= config.poll_interval <= 86400):
        raise ValueError(
            f"Invalid poll interval {config.poll_interval}: must be between 10 and 86400 seconds"
        )

    if not (1 <= config.max_parallel_operations <= 32):
        raise ValueError(
            f"Invalid max parallel operations {config.max_parallel_operations}: "
            "must be a number between 1 and 32"
        )

    endpoint = config.merge_api_endpoint.strip()
    if not endpoint.startswith(("http://", "https://")):
        raise ValueError(
            f"Invalid merge endpoint '{endpoint}': must start with http:// or https://"
        )
    if not urlparse(endpoint).hostname:
        raise ValueError(
            f"Invalid merge endpoint '{endpoint}': URL must include a hostname"
        )
    config.merge_api_endpoint = endpoint

    if config.merge_enabled and not config.merge_api_key:
        logger.warning(
            "Merge service enabled but no API key configured. "
            "Set GIT_DOC_SYNC_MERGE_API_KEY."
        )


def _get_bool_env(key: str) -> bool | None:
    """Return True/False from env var, or None if unset."""
    val = os.getenv(key)
    if val is None:
        return None
    return val.lower() in ("true", "1", "yes", "on")


def _get_number_env(key: str, cast: type) -> float | int | None:
    """Return a number from env var, or None if unset."""
    raw = os.getenv(key)
    if raw is None:
        return None
    try:
        return cast(raw)
    except ValueError:
        raise ValueError(f"Invalid {key} '{raw}': must be a number") from None


def load_config(
    unified: UnifiedConfig | None = None,
    debug: bool = False,
    read_only: bool = False,
) -> Config:
    """Load configuration with unified precedence.

    Resolution order for each field (highest to lowest):
        CLI flag > env var / .env > YAML (``unified``) > built-in default

    The caller is responsible for calling ``load_dotenv()`` before this
    function so that .env values are available via ``os.getenv()``.

    Args:
        unified: Parsed YAML config; zero-config defaults when ``None``.
        debug: Enable debug logging (CLI flag).
        read_only: Expose only non-mutating tools (CLI flag).

    Returns:
        Validated Config instance.

    Raises:
        ValueError: If any resolved value is invalid.
    """
    fb = unified or UnifiedConfig()

    network_timeout = _get_number_env(
        "GIT_DOC_SYNC_NETWORK_TIMEOUT", float
    )
    poll_interval = _get_number_env("GIT_DOC_SYNC_POLL_INTERVAL", float)
    max_parallel = _get_number_env("GIT_DOC_SYNC_MAX_PARALLEL", int)
    merge_enabled = _get_bool_env("GIT_DOC_SYNC_MERGE_ENABLED")
    env_debug = _get_bool_env("GIT_DOC_SYNC_DEBUG")

    config = Config(
        git_binary=os.getenv("GIT_DOC_SYNC_GIT_BINARY") or fb.git.binary,
        network_timeout=(
            network_timeout
            if network_timeout is not None
            else fb.git.network_timeout
        ),
        local_timeout=fb.git.local_timeout,
        poll_interval=(
            poll_interval
            if poll_interval is not None
            else fb.sync.poll_interval
        ),
        max_parallel_operations=(
            int(max_parallel)
            if max_parallel is not None
            else fb.sync.max_parallel_operations
        ),
        merge_enabled=(
            merge_enabled if merge_enabled is not None else fb.merge.enabled
        ),
        merge_api_endpoint=os.getenv("GIT_DOC_SYNC_MERGE_ENDPOINT")
        or fb.merge.api_endpoint,
        merge_api_key=os.getenv("GIT_DOC_SYNC_MERGE_API_KEY")
        or fb.merge.api_key,
        merge_model=os.getenv("GIT_DOC_SYNC_MERGE_MODEL")
        or fb.merge.model,
        merge_temperature=fb.merge.temperature,
        merge_timeout=fb.merge.timeout,
        debug=debug or bool(env_debug),
        read_only=read_only,
    )

    validate_config(config)

    return config
