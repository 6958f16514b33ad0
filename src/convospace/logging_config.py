"""
Logging configuration for ConvoSpace.

Configures the ``convospace`` logger tree with console and rotating file
handlers. Log files are written per context (``api.log``, ``cli.log``) into
the XDG-compliant log directory.
"""

import json
import logging
import logging.handlers
import sys
from datetime import datetime, timezone

from convospace.config import settings

STANDARD_FORMAT = "[%(asctime)s] [%(levelname)s] [%(name)s] %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_configured_contexts: set[str] = set()


class JsonFormatter(logging.Formatter):
    """Format log records as single-line JSON objects."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)


class _MaxLevelFilter(logging.Filter):
    """Only pass records strictly below a level (keeps stdout free of errors)."""

    def __init__(self, level: int):
        super().__init__()
        self.level = level

    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno < self.level


def _build_formatter() -> logging.Formatter:
    if settings.log_format == "json":
        return JsonFormatter()
    return logging.Formatter(fmt=STANDARD_FORMAT, datefmt=DATE_FORMAT)


def setup_logging(context: str = "api") -> logging.Logger:
    """
    Configure logging for the given context.

    Safe to call more than once; handlers are only attached the first time
    a context is configured.

    Args:
        context: Name of the running component ("api", "cli")

    Returns:
        The configured ``convospace`` logger
    """
    root = logging.getLogger("convospace")
    if context in _configured_contexts:
        return root

    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    root.setLevel(level)
    formatter = _build_formatter()

    if settings.log_console_enabled:
        if settings.log_to_stdout:
            stdout_handler = logging.StreamHandler(sys.stdout)
            stdout_handler.setLevel(logging.DEBUG)
            stdout_handler.addFilter(_MaxLevelFilter(logging.WARNING))
            stdout_handler.setFormatter(formatter)
            root.addHandler(stdout_handler)
        if settings.log_to_stderr:
            stderr_handler = logging.StreamHandler(sys.stderr)
            stderr_handler.setLevel(logging.WARNING)
            stderr_handler.setFormatter(formatter)
            root.addHandler(stderr_handler)

    if settings.log_file_enabled:
        log_dir = settings.log_directory
        log_dir.mkdir(parents=True, exist_ok=True)

        file_handler = logging.handlers.RotatingFileHandler(
            log_dir / f"{context}.log",
            maxBytes=settings.log_max_bytes,
            backupCount=settings.log_backup_count,
            encoding="utf-8",
        )
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    root.propagate = False
    _configured_contexts.add(context)
    root.debug(f"Logging configured for context '{context}' at level {settings.log_level}")
    return root
