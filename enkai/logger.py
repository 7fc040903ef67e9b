"""Logging setup for enkai.

Every module logs through ``get_logger(__name__)``, so configuring the
``"enkai"`` logger once in the CLI covers the whole package. The console shows
warnings (INFO with ``--verbose``); the rotating log file always keeps DEBUG,
which includes executor admissions.
"""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Union

__all__ = ["setup_logger", "get_logger", "task_logger"]

DEFAULT_LOG_FILE = Path("~/.enkai/logs/enkai.log").expanduser()
CONSOLE_FORMAT = "[%(levelname).1s] %(message)s"
FILE_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
MAX_LOG_BYTES = 5 * 1024 * 1024
LOG_BACKUP_COUNT = 3

# Provider SDK loggers that chatter at INFO on every request.
NOISY_LOGGERS = ("litellm", "LiteLLM", "httpx", "httpcore", "openai")

LogTarget = Union[str, Path, bool, None]


def setup_logger(name: str = "enkai", verbose: bool = False, log_file: LogTarget = None) -> logging.Logger:
    """(Re)configure ``name`` with a console handler and an optional log file.

    ``log_file`` is ``None``/``True`` for ``~/.enkai/logs/enkai.log``, ``False``
    to disable file logging, or an explicit path.
    """
    logger = logging.getLogger(name)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    console_level = logging.INFO if verbose else logging.WARNING
    logger.addHandler(_console_handler(console_level))
    logger.setLevel(console_level)
    logger.propagate = False

    log_path = _resolve_log_path(log_file)
    if log_path is not None:
        logger.addHandler(_file_handler(log_path))
        logger.setLevel(logging.DEBUG)

    for noisy in NOISY_LOGGERS:
        logging.getLogger(noisy).setLevel(logging.WARNING)
    return logger


def get_logger(name: str) -> logging.Logger:
    """Return a logger by name without changing its configuration."""
    return logging.getLogger(name)


def task_logger(logger: logging.Logger, task_id: str) -> logging.LoggerAdapter:
    """Prefix every message with ``[task_id]`` so interleaved jobs stay readable."""
    return _TaskAdapter(logger, {"task_id": task_id})


class _TaskAdapter(logging.LoggerAdapter):
    def process(self, msg, kwargs):
        return f"[{self.extra['task_id']}] {msg}", kwargs


def _console_handler(level: int) -> logging.Handler:
    handler = logging.StreamHandler()
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(CONSOLE_FORMAT))
    return handler


def _file_handler(path: Path) -> logging.Handler:
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        path, maxBytes=MAX_LOG_BYTES, backupCount=LOG_BACKUP_COUNT, encoding="utf-8"
    )
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter(FILE_FORMAT))
    return handler


def _resolve_log_path(log_file: LogTarget) -> Path | None:
    if log_file is False:
        return None
    if log_file is None or log_file is True:
        return DEFAULT_LOG_FILE
    return Path(log_file).expanduser()
