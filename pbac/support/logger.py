"""Switchable logger for decision diagnostics.

Evaluation detail (which rule, which condition, why) is only ever written
here and to the audit sink, never returned to the caller.
"""

import logging
from typing import Any

from pbac.config import PbacSettings, get_settings


class PbacLogger:
    """Thin wrapper over a stdlib logger that honours the PBAC logging settings."""

    def __init__(self, settings: PbacSettings | None = None):
        settings = settings or get_settings()
        self.enabled = settings.logging_enabled
        self._logger = logging.getLogger(settings.logging_channel or "pbac")
        level = logging.getLevelName(settings.logging_level.upper())
        if isinstance(level, int):
            self._logger.setLevel(level)

    @property
    def name(self) -> str:
        return self._logger.name

    def log(self, level: int, msg: str, *args: Any) -> None:
        if self.enabled:
            self._logger.log(level, msg, *args)

    def debug(self, msg: str, *args: Any) -> None:
        self.log(logging.DEBUG, msg, *args)

    def info(self, msg: str, *args: Any) -> None:
        self.log(logging.INFO, msg, *args)

    def warning(self, msg: str, *args: Any) -> None:
        self.log(logging.WARNING, msg, *args)

    def error(self, msg: str, *args: Any) -> None:
        self.log(logging.ERROR, msg, *args)
