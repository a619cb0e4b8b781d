"""Logging helpers for otel-xray-lambda.

Loggers are plain standard library loggers under the ``otel_xray_lambda``
namespace. The level is taken from ``AWS_LAMBDA_LOG_LEVEL`` (set by the Lambda
advanced logging controls) or ``LOG_LEVEL``, and defaults to ``info``.
"""

import logging
import os
from typing import Any

from .constants import Defaults, EnvVars

_LEVELS = {
    "trace": logging.DEBUG,
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "fatal": logging.CRITICAL,
    "critical": logging.CRITICAL,
    "none": logging.CRITICAL + 10,
}


def get_log_level() -> int:
    """Resolve the log level from the environment."""
    raw = (
        os.environ.get(EnvVars.AWS_LAMBDA_LOG_LEVEL)
        or os.environ.get(EnvVars.LOG_LEVEL)
        or Defaults.LOG_LEVEL
    )
    return _LEVELS.get(raw.strip().lower(), logging.INFO)


class Logger:
    """Thin wrapper around a standard library logger.

    Adds the ``warn`` spelling used throughout the package and prefixes every
    message with the component name, which keeps the CloudWatch output of the
    function readable without a formatter.
    """

    def __init__(self, name: str):
        self.name = name
        self._logger = logging.getLogger(f"otel_xray_lambda.{name}")
        self._logger.setLevel(get_log_level())

    def _format(self, msg: Any) -> str:
        return f"[{self.name}] {msg}"

    def debug(self, msg: Any, *args: Any, **kwargs: Any) -> None:
        self._logger.debug(self._format(msg), *args, **kwargs)

    def info(self, msg: Any, *args: Any, **kwargs: Any) -> None:
        self._logger.info(self._format(msg), *args, **kwargs)

    def warn(self, msg: Any, *args: Any, **kwargs: Any) -> None:
        self._logger.warning(self._format(msg), *args, **kwargs)

    warning = warn

    def error(self, msg: Any, *args: Any, **kwargs: Any) -> None:
        self._logger.error(self._format(msg), *args, **kwargs)


def create_logger(name: str) -> Logger:
    """Create a logger for a package component.

    Args:
        name: Component name, used as the logger suffix and message prefix.

    Returns:
        Logger: The component logger
    """
    return Logger(name)
