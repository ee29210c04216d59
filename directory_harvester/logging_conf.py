"""Logging configuration built around structlog JSON logging.

Log files live under the same home as datasets and configuration
(``ConfigLocator().logs_dir``): ``harvester.log`` for everything,
``error.log`` for errors and ``datasets/<slug>.log`` per dataset.
"""

from __future__ import annotations

import logging
import logging.config
from collections import deque
from pathlib import Path
from typing import Iterable

import structlog
from pythonjsonlogger import jsonlogger

from .config import ConfigLocator
from .infra.storage import slugify

ROOT_LOGGER = "directory_harvester"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"
GLOBAL_LOG = "harvester.log"
ERROR_LOG = "error.log"
DATASET_LOG_DIR = "datasets"

_CONFIGURED_DIR: Path | None = None
_STRUCTLOG_READY = False


def log_dir(logs_dir: Path | None = None) -> Path:
    return (logs_dir or ConfigLocator().logs_dir).resolve()


def dataset_log_path(dataset: str, logs_dir: Path | None = None) -> Path:
    """Per-dataset log file; the name is slugged like the dataset CSV."""
    return log_dir(logs_dir) / DATASET_LOG_DIR / f"{slugify(dataset)}.log"


def _handlers(directory: Path, level: str) -> dict:
    return {
        "console": {"class": "logging.StreamHandler", "level": level, "formatter": "json"},
        "harvester_file": {
            "class": "logging.FileHandler",
            "level": "INFO",
            "filename": str(directory / GLOBAL_LOG),
            "encoding": "utf-8",
            "formatter": "json",
        },
        "error_file": {
            "class": "logging.FileHandler",
            "level": "ERROR",
            "filename": str(directory / ERROR_LOG),
            "encoding": "utf-8",
            "formatter": "json",
        },
    }


def configure_logging(verbose: bool = False, logs_dir: Path | None = None) -> structlog.BoundLogger:
    """Route structlog events to JSON console and file handlers.

    Handlers are installed once per log directory; calling again with the
    same directory only returns the application logger.
    """

    global _CONFIGURED_DIR, _STRUCTLOG_READY
    directory = log_dir(logs_dir)
    (directory / DATASET_LOG_DIR).mkdir(parents=True, exist_ok=True)

    if _CONFIGURED_DIR != directory:
        level = "DEBUG" if verbose else "INFO"
        logging.config.dictConfig(
            {
                "version": 1,
                "disable_existing_loggers": False,
                "formatters": {
                    "json": {"()": "pythonjsonlogger.jsonlogger.JsonFormatter", "fmt": LOG_FORMAT}
                },
                "handlers": _handlers(directory, level),
                "loggers": {
                    ROOT_LOGGER: {
                        "handlers": ["console", "harvester_file", "error_file"],
                        "level": level,
                        "propagate": False,
                    },
                },
            }
        )
        _CONFIGURED_DIR = directory

    if not _STRUCTLOG_READY:
        structlog.configure(
            processors=[
                structlog.contextvars.merge_contextvars,
                structlog.processors.TimeStamper(fmt="iso"),
                structlog.stdlib.add_log_level,
                structlog.processors.StackInfoRenderer(),
                structlog.processors.format_exc_info,
                structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
            ],
            logger_factory=structlog.stdlib.LoggerFactory(),
            cache_logger_on_first_use=True,
        )
        _STRUCTLOG_READY = True
    return structlog.get_logger(ROOT_LOGGER)


def run_logger(
    dataset: str, verbose: bool = False, logs_dir: Path | None = None
) -> structlog.BoundLogger:
    """Logger bound to one dataset, also writing to that dataset's own file."""

    configure_logging(verbose, logs_dir)
    path = dataset_log_path(dataset, logs_dir)
    logger_name = f"{ROOT_LOGGER}.dataset.{path.stem}"
    py_logger = logging.getLogger(logger_name)
    if not any(
        isinstance(handler, logging.FileHandler) and handler.baseFilename == str(path)
        for handler in py_logger.handlers
    ):
        handler = logging.FileHandler(path, encoding="utf-8")
        handler.setFormatter(jsonlogger.JsonFormatter(LOG_FORMAT))
        handler.setLevel(logging.INFO)
        py_logger.addHandler(handler)
    return structlog.get_logger(logger_name).bind(dataset=dataset)


def tail_log(path: Path, line_count: int = 100) -> list[str]:
    if not path.exists():
        return []
    with path.open("r", encoding="utf-8", errors="ignore") as stream:
        return list(deque(stream, maxlen=line_count))


def available_dataset_logs(logs_dir: Path | None = None) -> Iterable[Path]:
    datasets_dir = log_dir(logs_dir) / DATASET_LOG_DIR
    if not datasets_dir.exists():
        return []
    return sorted(datasets_dir.glob("*.log"))


__all__ = [
    "GLOBAL_LOG",
    "available_dataset_logs",
    "configure_logging",
    "dataset_log_path",
    "log_dir",
    "run_logger",
    "tail_log",
]
