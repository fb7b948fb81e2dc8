"""Logging setup for the sync server.

MCP mode writes to a log file only, because the stdio transport owns
stdout.  CLI mode logs to stderr and optionally to a file as well.

Level resolution (highest first): ``debug`` flag, ``LOG_LEVEL`` env var,
``level`` argument (the YAML ``logging.level``), per-mode default
(WARNING for MCP, INFO for CLI).
"""

import json
import logging
import os
import sys

DEFAULT_MCP_LOG_FILE = "/tmp/git-doc-sync.log"
_DATEFMT = "%Y-%m-%d %H:%M:%S"
_NAMED_FORMAT = "[%(asctime)s] [%(levelname)s] %(name)s %(message)s"
_PLAIN_FORMAT = "[%(asctime)s] [%(levelname)s] %(message)s"

# Libraries that are chatty at INFO
_QUIET_LOGGERS = ("urllib3", "requests", "charset_normalizer")


class JsonFormatter(logging.Formatter):
    """Single-line JSON formatter for structured debug output.

    Produces one JSON object per log record with fields: ts, level, logger, msg.
    Exception info is included as an "exc" field when present.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info:
            entry["exc"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def _make_formatter(debug_format: str, with_name: bool) -> logging.Formatter:
    if debug_format == "json":
        return JsonFormatter(datefmt=_DATEFMT)
    return logging.Formatter(
        _NAMED_FORMAT if with_name else _PLAIN_FORMAT, datefmt=_DATEFMT
    )


def resolve_level(
    mode: str, debug: bool = False, level: str | None = None
) -> int:
    """Return the numeric log level for *mode*.

    Unknown level names fall back to INFO.
    """
    if debug:
        return logging.DEBUG
    default = level or ("WARNING" if mode == "mcp" else "INFO")
    name = os.getenv("LOG_LEVEL", default).upper()
    return getattr(logging, name, logging.INFO)


def setup_logging(
    mode: str = "cli",
    debug: bool = False,
    log_file: str | None = None,
    debug_format: str = "text",
    level: str | None = None,
) -> None:
    """
    Configure logging based on execution mode.

    Args:
        mode: "mcp" for file logging (never stdout), "cli" for stderr logging.
        debug: If True, log at DEBUG regardless of other settings.
        log_file: Log file path; in MCP mode overrides LOG_FILE.
        debug_format: "text" (default) or "json" for structured output.
        level: Configured level name, used when LOG_LEVEL is unset.

    Environment variables:
        LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR).
        LOG_FILE: Log file path for MCP mode.
                  Default: /tmp/git-doc-sync.log
    """
    log_level = resolve_level(mode, debug, level)

    if mode == "mcp":
        logging.basicConfig(
            level=log_level,
            format=_NAMED_FORMAT,
            datefmt=_DATEFMT,
            filename=log_file or os.getenv("LOG_FILE", DEFAULT_MCP_LOG_FILE),
            filemode="a",
        )
    else:
        stderr_handler = logging.StreamHandler(sys.stderr)
        stderr_handler.setFormatter(
            _make_formatter(debug_format, with_name=False)
        )
        handlers: list[logging.Handler] = [stderr_handler]

        if log_file:
            file_handler = logging.FileHandler(log_file, mode="a")
            file_handler.setFormatter(
                _make_formatter(debug_format, with_name=True)
            )
            handlers.append(file_handler)

        logging.basicConfig(level=log_level, handlers=handlers)

    if log_level != logging.DEBUG:
        for name in _QUIET_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)
