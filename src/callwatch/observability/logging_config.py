"""Structured logging setup.

Every module logs through ``structlog.get_logger(__name__)`` with snake_case
event names. This module routes those events through the stdlib logging
machinery so a single handler set covers callwatch, python-telegram-bot,
httpx and aiosqlite:

- console: key/value rendering for humans
- file: one JSON object per line (optional)
"""

import logging
import sys
from pathlib import Path
from typing import Optional

import structlog

_SHARED_PROCESSORS = [
    structlog.contextvars.merge_contextvars,
    structlog.stdlib.add_log_level,
    structlog.stdlib.add_logger_name,
    structlog.processors.TimeStamper(fmt="iso", utc=True),
    structlog.processors.StackInfoRenderer(),
]

# Third-party loggers that are chatty at INFO
_NOISY_LOGGERS = ("httpx", "httpcore", "telegram", "aiosqlite")


def configure_logging(level: str = "INFO", file_path: Optional[str | Path] = None) -> None:
    """Configure structlog and stdlib logging.

    Args:
        level: Root log level name (DEBUG, INFO, ...)
        file_path: Optional JSON log file; parent directories are created
    """
    structlog.configure(
        processors=[
            *_SHARED_PROCESSORS,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=_SHARED_PROCESSORS,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                structlog.dev.ConsoleRenderer(colors=False),
            ],
        )
    )
    root.addHandler(console)

    if file_path:
        path = Path(file_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(path, encoding="utf-8")
        file_handler.setFormatter(
            structlog.stdlib.ProcessorFormatter(
                foreign_pre_chain=_SHARED_PROCESSORS,
                processors=[
                    structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                    structlog.processors.format_exc_info,
                    structlog.processors.JSONRenderer(ensure_ascii=False),
                ],
            )
        )
        root.addHandler(file_handler)

    set_log_level(level)


def set_log_level(level: str) -> None:
    """Change the root log level at runtime."""
    logging.getLogger().setLevel(level.upper())
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(logging.WARNING, logging.getLogger().level))


def on_config_updated(key: str, value) -> None:
    """ConfigManager subscriber: apply logging.level hot reloads."""
    if key == "logging.level":
        set_log_level(value)
        structlog.get_logger(__name__).info("log_level_changed", level=value)
