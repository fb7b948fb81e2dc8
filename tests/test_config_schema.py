"""Tests for the unified config schema and the build_config() factory."""

import logging

import pytest
from pydantic import ValidationError

from git_doc_sync.config_schema import (
    GitConfig,
    LoggingConfig,
    MergeServiceConfig,
    SyncConfig,
    UnifiedConfig,
    build_config,
)

# ---------------------------------------------------------------------------
# Section models
# ---------------------------------------------------------------------------


class TestUnifiedConfig:
    def test_zero_config_defaults(self):
        config = UnifiedConfig()

        assert config.git.binary == "git"
        assert config.git.network_timeout == 120.0
        assert config.sync.poll_interval == 300.0
        assert config.sync.max_parallel_operations == 2
        assert config.merge.enabled is False
        assert config.merge.api_key is None
        assert config.logging.level is None
        assert config.logging.file is None

    def test_frozen(self):
        config = UnifiedConfig()
        with pytest.raises(ValidationError):
            config.git = GitConfig(binary="other")


class TestSectionValidation:
    @pytest.mark.parametrize("timeout", [0, -1, 5000])
    def test_network_timeout_bounds(self, timeout):
        with pytest.raises(ValidationError):
            GitConfig(network_timeout=timeout)

    def test_poll_interval_minimum(self):
        with pytest.raises(ValidationError):
            SyncConfig(poll_interval=1)

    def test_max_parallel_bounds(self):
        with pytest.raises(ValidationError):
            SyncConfig(max_parallel_operations=0)
        assert SyncConfig(max_parallel_operations=32).max_parallel_operations == 32

    def test_merge_temperature_bounds(self):
        with pytest.raises(ValidationError):
            MergeServiceConfig(temperature=3)

    def test_logging_level_optional(self):
        assert LoggingConfig(level="DEBUG").level == "DEBUG"


# ---------------------------------------------------------------------------
# build_config()
# ---------------------------------------------------------------------------


class TestBuildConfig:
    def test_empty_dict(self):
        assert build_config({}) == UnifiedConfig()

    def test_full_dict(self):
        config = build_config(
            {
                "git": {"binary": "/opt/git", "local_timeout": 10},
                "sync": {"poll_interval": 60},
                "merge": {
                    "enabled": True,
                    "api_key": "sk-test",
                    "model": "local",
                },
                "logging": {"level": "INFO", "file": "/tmp/sync.log"},
            }
        )

        assert config.git.binary == "/opt/git"
        assert config.git.local_timeout == 10
        assert config.sync.poll_interval == 60
        assert config.merge.model == "local"
        assert config.logging.file == "/tmp/sync.log"

    def test_partial_sections_get_defaults(self):
        config = build_config({"merge": {"api_key": "k"}})

        assert config.merge.api_key == "k"
        assert config.merge.enabled is False
        assert config.git == GitConfig()

    def test_unknown_sections_ignored(self, caplog):
        with caplog.at_level(logging.WARNING):
            config = build_config({"svn": {"url": "x"}, "git": {}})

        assert config == UnifiedConfig()
        assert "svn" in caplog.text

    def test_invalid_values_raise(self):
        with pytest.raises(ValidationError):
            build_config({"sync": {"poll_interval": "often"}})
