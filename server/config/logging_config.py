"""
Logging Configuration for the Web Search Server

Three sinks configured through logging.config.dictConfig:
- console: INFO and above, human-readable
- websearch_server.log: everything at the configured level (JSON lines
  when structured_logging is on, via python-json-logger)
- errors.log: ERROR and above from every logger

Backend calls, cache decisions and refinement are logged under the
"websearch" namespace; HTTP endpoints under "api".
"""

import logging
import logging.config
import sys
from pathlib import Path
from typing import Any, Dict, Optional

from .settings import WebSearchSettings, get_settings

LOG_FILE_NAME = "websearch_server.log"
ERROR_FILE_NAME = "errors.log"
MAX_LOG_BYTES = 10 * 1024 * 1024

# Third-party loggers that chatter at INFO on every request
QUIET_LOGGERS = ("httpx", "httpcore", "hpack", "charset_normalizer")


def _formatters() -> Dict[str, Any]:
    return {
        "console": {
            "format": "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            "datefmt": "%H:%M:%S",
        },
        "text": {
            "format": "%(asctime)s [%(levelname)s] %(name)s:%(lineno)d %(funcName)s() - %(message)s",
            "datefmt": "%Y-%m-%d %H:%M:%S",
        },
        "json": {
            "()": "pythonjsonlogger.json.JsonFormatter",
            "format": "%(asctime)s %(levelname)s %(name)s %(message)s %(module)s %(lineno)d",
            "rename_fields": {"asctime": "timestamp", "levelname": "level", "name": "logger"},
        },
    }


def _rotating(filename: Path, level: str, formatter: str, backups: int) -> Dict[str, Any]:
    return {
        "class": "logging.handlers.RotatingFileHandler",
        "level": level,
        "formatter": formatter,
        "filename": str(filename),
        "maxBytes": MAX_LOG_BYTES,
        "backupCount": backups,
        "encoding": "utf8",
    }


def build_logging_config(settings: WebSearchSettings) -> Dict[str, Any]:
    """dictConfig mapping for the given settings (no side effects)"""
    log_dir = Path(settings.log_path)
    file_format = "json" if settings.structured_logging else "text"
    level = settings.log_level.upper()
    app_handlers = ["console", "file", "error_file"]

    loggers: Dict[str, Any] = {
        "websearch": {"level": level, "handlers": app_handlers, "propagate": False},
        "api": {"level": level, "handlers": app_handlers, "propagate": False},
        "uvicorn": {"level": "INFO", "handlers": ["console", "file"], "propagate": False},
        "uvicorn.access": {"level": "INFO", "handlers": ["file"], "propagate": False},
    }
    for name in QUIET_LOGGERS:
        loggers[name] = {"level": "WARNING", "handlers": ["file"], "propagate": False}

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": _formatters(),
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": "INFO",
                "formatter": "console",
                "stream": sys.stdout,
            },
            "file": _rotating(log_dir / LOG_FILE_NAME, level, file_format, backups=5),
            "error_file": _rotating(log_dir / ERROR_FILE_NAME, "ERROR", file_format, backups=10),
        },
        "loggers": loggers,
        "root": {"level": level, "handlers": app_handlers},
    }


def setup_logging(settings: Optional[WebSearchSettings] = None) -> None:
    """
    Configure logging for the web search server.

    Args:
        settings: Settings to read log_path/log_level/structured_logging from
                  (defaults to the process-wide settings)
    """
    settings = settings or get_settings()
    Path(settings.log_path).mkdir(parents=True, exist_ok=True)
    logging.config.dictConfig(build_logging_config(settings))

    logger = logging.getLogger("websearch")
    logger.info(
        f"Logging initialized: level={settings.log_level}, dir={settings.log_path}, "
        f"json={'on' if settings.structured_logging else 'off'}"
    )
