"""Logging setup: console output plus an optional rotating log file."""

import logging
import sys
from logging.handlers import RotatingFileHandler
from typing import Optional

from config import LoggingSettings, Settings, get_settings


class ApplicationLogger:
    """Root logger configuration driven by LoggingSettings."""

    def __init__(self, config: Optional[Settings] = None):
        self.config = config or get_settings()
        self.logger: Optional[logging.Logger] = None

    @property
    def settings(self) -> LoggingSettings:
        return self.config.logging

    def setup(self) -> logging.Logger:
        settings = self.settings

        root_logger = logging.getLogger()
        root_logger.setLevel(getattr(logging, settings.level.value))

        root_logger.handlers.clear()

        formatter = logging.Formatter(settings.format, datefmt=settings.date_format)

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(formatter)
        console_handler.setLevel(getattr(logging, settings.level.value))
        root_logger.addHandler(console_handler)

        if settings.file_enabled:
            settings.file_path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = RotatingFileHandler(
                settings.file_path,
                maxBytes=settings.file_max_bytes,
                backupCount=settings.file_backup_count,
                encoding="utf-8"
            )
            file_handler.setFormatter(formatter)
            file_handler.setLevel(logging.DEBUG)
            root_logger.addHandler(file_handler)

        logging.getLogger("aiohttp").setLevel(logging.WARNING)
        logging.getLogger("asyncio").setLevel(logging.WARNING)

        self.logger = logging.getLogger("jito_relay")
        return self.logger


__all__ = ["ApplicationLogger"]
