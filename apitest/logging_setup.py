"""Logging configuration for the command line.

Library modules only create module loggers; the handler is installed once
here so running the tool prints diagnostics on stdout.
"""
import logging
from logging.config import dictConfig


def _dict_config(level):
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {
                "format": "%(asctime)s %(levelname)s:%(name)s:%(message)s",
            }
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": level,
                "formatter": "default",
                "stream": "ext://sys.stdout",
            }
        },
        "root": {"level": level, "handlers": ["console"]},
        "loggers": {
            "urllib3": {"level": "WARNING"},
            "aiohttp.access": {"level": "WARNING"},
        },
    }


def configure_logging(level="INFO"):
    """Configure logging once.

    Does nothing when the root logger already has handlers (pytest's log
    capture, an embedding test runner).
    """
    root = logging.getLogger()
    if root.handlers:
        return
    dictConfig(_dict_config(level))
