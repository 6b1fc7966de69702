"""Logging configuration based on environment.

Every record written by the app handler carries the ID of the request being
served (``-`` outside a request). Development output is compact; production
adds timestamps.
"""

import logging.config
from typing import Any

from fitquest.config import settings

DEV_FORMAT = "%(levelname)s:     [%(request_id)s] %(name)s - %(message)s"
PROD_FORMAT = "%(asctime)s - [%(request_id)s] %(name)s - %(levelname)s - %(message)s"

# Chatty at INFO; sqlalchemy.engine would also log statement parameters
QUIET_LOGGERS = ("httpx", "httpcore", "aiosmtplib", "sqlalchemy.engine")


def build_log_config(include_uvicorn: bool = False) -> dict[str, Any]:
    """dictConfig for the application, optionally taking over uvicorn's loggers."""
    is_dev = settings.is_development
    stream_handler = {"class": "logging.StreamHandler", "stream": "ext://sys.stdout"}

    config: dict[str, Any] = {
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {
            "request_context": {"()": "fitquest.api.middleware.RequestContextFilter"},
        },
        "formatters": {
            "app": {"format": DEV_FORMAT if is_dev else PROD_FORMAT},
        },
        "handlers": {
            "app": {**stream_handler, "formatter": "app", "filters": ["request_context"]},
        },
        "loggers": {name: {"level": "WARNING"} for name in QUIET_LOGGERS},
        "root": {"handlers": ["app"], "level": settings.log_level},
    }

    if include_uvicorn:
        config["formatters"]["access"] = {
            "()": "uvicorn.logging.AccessFormatter",
            "fmt": '%(levelprefix)s "%(request_line)s" %(status_code)s'
            if is_dev
            else '%(asctime)s %(levelprefix)s %(client_addr)s - "%(request_line)s" %(status_code)s',
        }
        config["handlers"]["access"] = {**stream_handler, "formatter": "access"}
        config["loggers"]["uvicorn.access"] = {
            "handlers": ["access"],
            "level": "INFO",
            "propagate": False,
        }
        config["loggers"]["uvicorn.error"] = {
            "handlers": ["app"],
            "level": "INFO",
            "propagate": False,
        }

    return config


def get_uvicorn_log_config() -> dict[str, Any]:
    """Log config passed to ``uvicorn.run``."""
    return build_log_config(include_uvicorn=True)


def setup_logging() -> None:
    """Configure logging for the application."""
    logging.config.dictConfig(build_log_config())
