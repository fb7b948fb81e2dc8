"""File handler module: path validation and encoding-aware read/write.

This is the filesystem collaborator of the sync orchestrator: it reads
post-pull / post-conflict content and persists rebuilt resolutions.
Every failure is raised as ``FileIOError``.  Async wrappers run the I/O
in a worker thread via ``run_sync()``.
"""

from pathlib import Path

from charset_normalizer import from_bytes

from .core.async_utils import run_sync
from .core.errors import FileIOError

# =============================================================================
# Path Validation
# =============================================================================


def validate_file_path(path_str: str) -> Path:
    """Validate and resolve a tracked file path.

    Args:
        path_str: Absolute path string to an existing file.

    Returns:
        Resolved Path object pointing to the real file.

    Raises:
        ValueError: If path is empty, relative, missing, or not a file.
    """
    if not path_str:
        raise ValueError("Path is required")
    path = Path(path_str)
    if not path.is_absolute():
        raise ValueError(f"Path must be absolute: {path_str}")
    resolved = path.resolve()
    if not resolved.exists():
        raise ValueError(f"File not found: {path_str}")
    if not resolved.is_file():
        raise ValueError(f"Path is not a file: {path_str}")
    return resolved


# =============================================================================
# File Read/Write
# =============================================================================


def decode_bytes(raw: bytes) -> tuple[str, str]:
    """Decode raw file bytes, detecting the encoding when not UTF-8.

    Returns:
        Tuple of (content_string, encoding).
    """
    if not raw:
        return ("", "utf-8")
    try:
        return (raw.decode("utf-8"), "utf-8")
    except UnicodeDecodeError:
        pass

    result = from_bytes(raw).best()
    if result is None:
        return (raw.decode("utf-8", errors="replace"), "utf-8")
    return (str(result), result.encoding)


def read_text_with_encoding(path: Path) -> tuple[str, str]:
    """Read the tracked file, returning its text and detected encoding.

    Pure ASCII is reported as ``utf-8`` so later writes stay UTF-8.

    Raises:
        FileIOError: If the file cannot be read.
    """
    try:
        raw = path.read_bytes()
    except OSError as exc:
        raise FileIOError(f"Cannot read {path}: {exc}") from exc
    content, encoding = decode_bytes(raw)
    if encoding == "ascii":
        encoding = "utf-8"
    return (content, encoding)


def read_text(path: Path) -> str:
    """Read the tracked file as text.

    Raises:
        FileIOError: If the file cannot be read.
    """
    content, _ = read_text_with_encoding(path)
    return content


def write_text(path: Path, content: str, encoding: str = "utf-8") -> int:
    """Write content to the tracked file.

    Returns:
        Number of bytes written.

    Raises:
        FileIOError: If the content cannot be encoded or the file cannot
            be written.
    """
    try:
        encoded = content.encode(encoding)
    except (UnicodeEncodeError, LookupError) as exc:
        raise FileIOError(
            f"Cannot encode content for {path} as {encoding}: {exc}"
        ) from exc
    try:
        path.write_bytes(encoded)
    except OSError as exc:
        raise FileIOError(f"Cannot write {path}: {exc}") from exc
    return len(encoded)


# =============================================================================
# Async Wrappers
# =============================================================================


async def read_text_async(path: Path) -> str:
    """Async wrapper around ``read_text``."""
    return await run_sync(read_text, path)


async def read_text_with_encoding_async(path: Path) -> tuple[str, str]:
    """Async wrapper around ``read_text_with_encoding``."""
    return await run_sync(read_text_with_encoding, path)


async def write_text_async(
    path: Path, content: str, encoding: str = "utf-8"
) -> int:
    """Async wrapper around ``write_text``."""
    return await run_sync(write_text, path, content, encoding)
