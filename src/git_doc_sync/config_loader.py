"""
YAML config file loading for git_doc_sync.

Config files are looked up in the explicit ``GIT_DOC_SYNC_CONFIG`` path,
in every ``.git_doc_sync/`` directory from the current directory up to the
repository root, and in the user's XDG config directory. Files may pull in
other files with ``!include`` and reference the environment with
``${VAR}`` / ``${VAR:-default}``.

Usage:
    from git_doc_sync.config_loader import load_hierarchical_config

    raw = load_hierarchical_config()
"""

import logging
import os
import re
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "GIT_DOC_SYNC_CONFIG"
CONFIG_DIR_NAME = ".git_doc_sync"
CONFIG_FILE_NAMES = ("config.yml", "config.yaml")

_ENV_REF = re.compile(r"\$\{(?P<name>[^}:]+?)(?::-(?P<default>.*?))?\}")


# ---------------------------------------------------------------------------
# Environment references
# ---------------------------------------------------------------------------


def interpolate_env_vars(value: str) -> str:
    """Expand ``${VAR}`` and ``${VAR:-default}`` references in *value*.

    An unset or empty variable expands to its default, or to ``""`` when
    none is given. An unterminated ``${`` is kept as written.
    """
    return _ENV_REF.sub(
        lambda m: os.environ.get(m["name"]) or m["default"] or "", value
    )


def _interpolate_recursive(obj: Any) -> Any:
    if isinstance(obj, dict):
        return {key: _interpolate_recursive(val) for key, val in obj.items()}
    if isinstance(obj, list):
        return [_interpolate_recursive(val) for val in obj]
    if isinstance(obj, str):
        return interpolate_env_vars(obj)
    return obj


# ---------------------------------------------------------------------------
# !include
# ---------------------------------------------------------------------------


class ConfigLoader(yaml.SafeLoader):
    """SafeLoader that understands ``!include <path>``.

    Registered on this subclass only, so plain ``yaml.safe_load`` still
    rejects the tag. ``chain`` holds the files currently being loaded.
    """

    chain: tuple[Path, ...] = ()

    def include(self, node: yaml.ScalarNode) -> Any:
        target = Path(self.construct_scalar(node)).expanduser()
        source = Path(self.name).resolve()
        if not target.is_absolute():
            target = source.parent / target
        target = target.resolve()

        if target in self.chain:
            cycle = " -> ".join(str(p) for p in (*self.chain, target))
            raise ValueError(f"Circular include detected: {cycle}")
        if not target.is_file():
            raise FileNotFoundError(
                f"Include file not found: {target} (referenced from {source})"
            )
        return _load_yaml_with_includes(target, _chain=self.chain)


ConfigLoader.add_constructor("!include", ConfigLoader.include)


def _load_yaml_with_includes(
    path: Path, *, _chain: tuple[Path, ...] = ()
) -> Any:
    """Parse one YAML file, following ``!include`` directives."""
    path = path.resolve()
    with path.open(encoding="utf-8") as fh:
        loader = ConfigLoader(fh)
        loader.chain = (*_chain, path)
        try:
            return loader.get_single_data()
        finally:
            loader.dispose()


# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------


def _project_dirs(start: Path) -> list[Path]:
    """Directories from *start* up to the enclosing git work tree root."""
    dirs = []
    for directory in (start, *start.parents):
        dirs.append(directory)
        if (directory / ".git").exists():
            return dirs
    # Not inside a repository: only the starting directory counts
    return [start]


def discover_config_files() -> list[Path]:
    """Return existing config files, highest precedence first.

    Order:
        1. ``$GIT_DOC_SYNC_CONFIG``
        2. ``.git_doc_sync/config.yml`` (or ``.yaml``) in the current
           directory, then in each parent up to the repository root
        3. ``~/.config/git_doc_sync/config.yml``
    """
    candidates: list[Path] = []

    explicit = os.environ.get(CONFIG_ENV_VAR)
    if explicit:
        candidates.append(Path(explicit).expanduser().resolve())

    for directory in _project_dirs(Path.cwd()):
        candidates.extend(
            directory / CONFIG_DIR_NAME / name for name in CONFIG_FILE_NAMES
        )
    candidates.append(Path.home() / ".config" / "git_doc_sync" / "config.yml")

    found: list[Path] = []
    for candidate in candidates:
        if candidate.is_file() and candidate not in found:
            found.append(candidate)
    return found


# ---------------------------------------------------------------------------
# Merge
# ---------------------------------------------------------------------------


def _merge_sections(base: dict[str, Any], override: dict[str, Any]) -> None:
    """Overlay *override* onto *base* one setting at a time.

    Mapping sections are merged key by key; any other value replaces the
    earlier one outright.
    """
    for section, value in override.items():
        current = base.get(section)
        if isinstance(current, dict) and isinstance(value, dict):
            base[section] = {**current, **value}
        else:
            base[section] = value


def load_hierarchical_config() -> dict[str, Any]:
    """Load every discovered config file and merge them.

    Files are applied from lowest to highest precedence, so a repository
    file overrides individual settings of the global file while leaving
    the rest in place. Environment references are expanded after the
    merge. Returns ``{}`` when no file exists.
    """
    paths = discover_config_files()
    if not paths:
        logger.debug("No config files found, using built-in defaults")
        return {}

    merged: dict[str, Any] = {}
    for path in reversed(paths):
        logger.debug("Loading config: %s", path)
        try:
            data = _load_yaml_with_includes(path)
        except (OSError, ValueError, yaml.YAMLError):
            logger.exception("Failed to load config file %s", path)
            raise

        if data is None:
            continue
        if not isinstance(data, dict):
            logger.warning(
                "Ignoring config file %s: top level is %s, not a mapping",
                path,
                type(data).__name__,
            )
            continue
        _merge_sections(merged, data)

    return _interpolate_recursive(merged)
