"""Structlog JSON logging for the export engine.

Everything goes to ``logs/export.log`` and errors also to ``logs/error.log``.
Profile pipelines additionally write ``logs/profiles/<slug>.log``, which is
what ``webradio-export log`` browses. Credential fields are masked before
any handler sees them.
"""

from __future__ import annotations

import logging
import logging.config
import os
from collections import deque
from pathlib import Path
from typing import Any, MutableMapping

import structlog

ROOT_LOGGER = "webradio_export"
EXPORT_LOG = "export.log"
ERROR_LOG = "error.log"
PROFILES_DIR = "profiles"
REDACTED = "***"
SECRET_KEYS = frozenset({"password", "ftp_password", "passwd", "secret"})

_LOGGING_INITIALISED = False


def log_dir() -> Path:
    env_root = os.environ.get("WEBRADIO_EXPORT_HOME")
    if env_root:
        return Path(env_root).expanduser().resolve() / "logs"
    return Path(__file__).resolve().parents[1] / "logs"


def log_path(profile: str | None = None, errors: bool = False) -> Path:
    """Log file for a profile slug, the error log, or the main export log."""

    if profile:
        return log_dir() / PROFILES_DIR / f"{profile}.log"
    return log_dir() / (ERROR_LOG if errors else EXPORT_LOG)


def redact_secrets(_logger: Any, _method: str, event_dict: MutableMapping[str, Any]) -> MutableMapping[str, Any]:
    for key in SECRET_KEYS.intersection(event_dict):
        if event_dict[key]:
            event_dict[key] = REDACTED
    return event_dict


def configure_logging(verbose: bool = False) -> structlog.BoundLogger:
    """Set up handlers once and return the engine logger."""

    global _LOGGING_INITIALISED
    (log_dir() / PROFILES_DIR).mkdir(parents=True, exist_ok=True)
    export_log = log_path()
    error_log = log_path(errors=True)
    export_log.touch(exist_ok=True)
    error_log.touch(exist_ok=True)

    if not _LOGGING_INITIALISED:
        level = "DEBUG" if verbose else "INFO"
        logging.config.dictConfig(
            {
                "version": 1,
                "disable_existing_loggers": False,
                "formatters": {
                    "json": {
                        "()": "pythonjsonlogger.jsonlogger.JsonFormatter",
                        "fmt": "%(asctime)s %(levelname)s %(name)s %(message)s",
                    }
                },
                "handlers": {
                    "console": {
                        "class": "logging.StreamHandler",
                        "level": level,
                        "formatter": "json",
                    },
                    "export_file": {
                        "class": "logging.FileHandler",
                        "level": "INFO",
                        "filename": str(export_log),
                        "encoding": "utf-8",
                        "formatter": "json",
                    },
                    "error_file": {
                        "class": "logging.FileHandler",
                        "level": "ERROR",
                        "filename": str(error_log),
                        "encoding": "utf-8",
                        "formatter": "json",
                    },
                },
                "loggers": {
                    ROOT_LOGGER: {
                        "handlers": ["console", "export_file", "error_file"],
                        "level": level,
                        "propagate": False,
                    },
                },
            }
        )

        structlog.configure(
            processors=[
                structlog.contextvars.merge_contextvars,
                redact_secrets,
                structlog.processors.TimeStamper(fmt="iso"),
                structlog.stdlib.add_log_level,
                structlog.processors.StackInfoRenderer(),
                structlog.processors.format_exc_info,
                structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
            ],
            logger_factory=structlog.stdlib.LoggerFactory(),
            cache_logger_on_first_use=True,
        )
        _LOGGING_INITIALISED = True
    return structlog.get_logger(ROOT_LOGGER)


def profile_logger(profile_slug: str, verbose: bool = False) -> structlog.BoundLogger:
    """Engine logger bound to one profile, also writing that profile's own file."""

    configure_logging(verbose)
    path = log_path(profile_slug)
    name = f"{ROOT_LOGGER}.profile.{profile_slug}"
    py_logger = logging.getLogger(name)
    if not any(getattr(handler, "baseFilename", None) == str(path) for handler in py_logger.handlers):
        handler = logging.FileHandler(path, encoding="utf-8")
        root_handlers = logging.getLogger(ROOT_LOGGER).handlers
        if root_handlers:
            handler.setFormatter(root_handlers[0].formatter)
        handler.setLevel(logging.INFO)
        py_logger.addHandler(handler)
    return structlog.get_logger(name).bind(profile=profile_slug)


def profile_log_files() -> list[Path]:
    directory = log_dir() / PROFILES_DIR
    if not directory.exists():
        return []
    return sorted(directory.glob("*.log"))


def tail_log(path: Path, line_count: int = 100) -> list[str]:
    if not path.exists() or line_count <= 0:
        return []
    with path.open("r", encoding="utf-8", errors="ignore") as stream:
        return list(deque(stream, maxlen=line_count))


__all__ = [
    "configure_logging",
    "log_dir",
    "log_path",
    "profile_log_files",
    "profile_logger",
    "redact_secrets",
    "tail_log",
]
