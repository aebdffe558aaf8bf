"""Logging setup for the ``envzip`` CLI and the ``envzip-mcp`` server.

Level precedence, highest first:

1. ``--debug``
2. the ``LOG_LEVEL`` environment variable
3. ``logging.level`` from the YAML config
4. the mode default: INFO for the CLI, WARNING for the MCP server

The MCP server speaks JSON-RPC on stdout, so in ``mcp`` mode records go
to a file and never to a stream.
"""

import json
import logging
import os
import sys
from pathlib import Path

DEFAULT_MCP_LOG_FILE = "/tmp/envzip-mcp.log"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_MODE_DEFAULT_LEVELS = {"cli": "INFO", "mcp": "WARNING"}
# HTTP remote and file decoding chatter
_QUIET_LOGGERS = ("urllib3", "requests", "charset_normalizer")


class JsonFormatter(logging.Formatter):
    """One JSON object per record: ts, level, logger, msg (and exc)."""

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
        return JsonFormatter(datefmt=DATE_FORMAT)
    fmt = (
        "[%(asctime)s] [%(levelname)s] %(name)s %(message)s"
        if with_name
        else "[%(asctime)s] [%(levelname)s] %(message)s"
    )
    return logging.Formatter(fmt, datefmt=DATE_FORMAT)


def _level_number(name: str | None) -> int | None:
    if not name:
        return None
    number = logging.getLevelName(name.strip().upper())
    return number if isinstance(number, int) else None


def resolve_level(
    mode: str = "cli", debug: bool = False, level: str | None = None
) -> int:
    """Return the effective level for *mode*.

    An unknown ``LOG_LEVEL`` value is skipped in favour of the next
    source rather than failing startup.
    """
    if debug:
        return logging.DEBUG
    for name in (
        os.getenv("LOG_LEVEL"),
        level,
        _MODE_DEFAULT_LEVELS.get(mode, "INFO"),
    ):
        number = _level_number(name)
        if number is not None:
            return number
    return logging.INFO


def _file_handler(path: str, debug_format: str) -> logging.FileHandler:
    target = Path(path).expanduser()
    target.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(target, mode="a")
    handler.setFormatter(_make_formatter(debug_format, with_name=True))
    return handler


def setup_logging(
    mode: str = "cli",
    debug: bool = False,
    log_file: str | None = None,
    debug_format: str = "text",
    level: str | None = None,
) -> None:
    """Configure the root logger for *mode*.

    Args:
        mode: ``"cli"`` logs to stderr (plus *log_file* if given);
            ``"mcp"`` logs to a file only.
        debug: Force DEBUG.
        log_file: Log file path.  In ``mcp`` mode it falls back to the
            ``LOG_FILE`` env var, then ``/tmp/envzip-mcp.log``.  ``~`` is
            expanded and missing parent directories are created.
        debug_format: ``"text"`` or ``"json"``.
        level: ``logging.level`` from the YAML config.
    """
    log_level = resolve_level(mode, debug, level)

    handlers: list[logging.Handler] = []
    if mode == "mcp":
        path = log_file or os.getenv("LOG_FILE") or DEFAULT_MCP_LOG_FILE
        handlers.append(_file_handler(path, debug_format))
    else:
        stderr_handler = logging.StreamHandler(sys.stderr)
        stderr_handler.setFormatter(
            _make_formatter(debug_format, with_name=False)
        )
        handlers.append(stderr_handler)
        if log_file:
            handlers.append(_file_handler(log_file, debug_format))

    logging.basicConfig(level=log_level, handlers=handlers)

    if log_level != logging.DEBUG:
        for name in _QUIET_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    env_level = os.getenv("LOG_LEVEL")
    if env_level and _level_number(env_level) is None:
        logging.getLogger(__name__).warning(
            "Ignoring unknown LOG_LEVEL %r", env_level
        )
