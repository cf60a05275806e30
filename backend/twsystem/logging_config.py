"""
Logging configuration for the twsystem backend.

- Console output: configured level to stdout, WARNING+ to stderr
- Optional size-rotated file log when LOG_FILE is set
- werkzeug and sqlalchemy loggers are kept quiet unless LOG_LEVEL is DEBUG

Usage:
    # In any module
    import logging

    logger = logging.getLogger(__name__)
    logger.info("Module initialized")
"""
from __future__ import annotations

import logging
import logging.config
import logging.handlers  # Required for RotatingFileHandler in dictConfig
import os
from typing import Any, Dict


def build_logging_config(level: str = "INFO", log_file: str | None = None) -> Dict[str, Any]:
    level = (level or "INFO").upper()
    library_level = "INFO" if level == "DEBUG" else "WARNING"

    handlers: Dict[str, Any] = {
        "console": {
            "class": "logging.StreamHandler",
            "level": level,
            "formatter": "simple",
            "stream": "ext://sys.stdout",
        },
        # Error console output (stderr)
        "error_console": {
            "class": "logging.StreamHandler",
            "level": "WARNING",
            "formatter": "verbose",
            "stream": "ext://sys.stderr",
        },
    }
    root_handlers = ["console", "error_console"]

    if log_file:
        handlers["file"] = {
            "class": "logging.handlers.RotatingFileHandler",
            "level": "DEBUG",
            "formatter": "verbose",
            "filename": log_file,
            "maxBytes": 10 * 1024 * 1024,  # 10 MB
            "backupCount": 5,
            "encoding": "utf8",
            "delay": True,
        }
        root_handlers.append("file")

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "verbose": {
                "format": "%(asctime)s - %(name)s - %(levelname)s - [%(module)s:%(funcName)s:%(lineno)d] - %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
            "simple": {
                "format": "%(asctime)s - %(levelname)s - %(name)s - %(message)s",
                "datefmt": "%H:%M:%S",
            },
        },
        "handlers": handlers,
        "loggers": {
            "": {
                "level": level,
                "handlers": root_handlers,
            },
            "twsystem": {
                "level": level,
                "propagate": True,
            },
            "werkzeug": {
                "level": library_level,
                "propagate": True,
            },
            "sqlalchemy": {
                "level": library_level,
                "propagate": True,
            },
        },
    }


def setup_logging(app) -> None:
    """
    Initialize logging once per process from the app config.
    Should be called from create_app() before anything logs.
    """
    if app.config.get("TESTING"):
        # pytest's caplog owns the handlers; only the level is applied
        logging.getLogger("twsystem").setLevel(app.config.get("LOG_LEVEL", "WARNING"))
        return

    logging.config.dictConfig(
        build_logging_config(app.config.get("LOG_LEVEL", "INFO"), os.environ.get("LOG_FILE"))
    )
    app.logger.info("Logging initialized at %s (env=%s)", app.config.get("LOG_LEVEL"), app.config.get("APP_ENV"))
