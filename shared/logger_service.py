#!/usr/bin/env python3
"""
Logger Service Module

Configures Python logging for the session keeper: a local log file plus an
optional console stream, both using the same pipe-separated format.

Usage:
    from shared.logger_service import setup_logging

    setup_logging(config)
"""

import logging
from pathlib import Path
from typing import Any, Dict, List

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)-20s | %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class LocalFileLogger:
    """
    Local file logging for the session keeper.

    Attributes:
        log_file: Path to the log file
        log_level: Level name applied to the root logger and handlers
        console_output: Whether to also log to stderr
    """

    def __init__(self, config: Dict[str, Any]):
        """
        Args:
            config: Configuration dictionary with a "logging" section
        """
        self.config = config.get("logging", {})
        self.log_file = self.config.get("log_file", "logs/session_keeper.log")
        self.log_level = str(self.config.get("log_level", "INFO")).upper()
        self.console_output = self.config.get("console_output", True)

        if not isinstance(logging.getLevelName(self.log_level), int):
            raise ValueError(f"Unknown log level: {self.log_level}")

        # Ensure log directory exists
        Path(self.log_file).parent.mkdir(parents=True, exist_ok=True)

        self.handlers: List[logging.Handler] = []
        self._setup_logging()

    def _setup_logging(self):
        """Configure the root logger."""
        level = getattr(logging, self.log_level)
        root_logger = logging.getLogger()
        root_logger.setLevel(level)

        # Clear existing handlers
        root_logger.handlers.clear()

        formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

        file_handler = logging.FileHandler(self.log_file, encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)
        self.handlers.append(file_handler)

        if self.console_output:
            console_handler = logging.StreamHandler()
            console_handler.setLevel(level)
            console_handler.setFormatter(formatter)
            root_logger.addHandler(console_handler)
            self.handlers.append(console_handler)

        logger.info(f"Logging initialized. File: {self.log_file}, Level: {self.log_level}")

    def close(self):
        """Detach and close the handlers this logger installed."""
        root_logger = logging.getLogger()
        for handler in self.handlers:
            root_logger.removeHandler(handler)
            handler.close()
        self.handlers.clear()


def setup_logging(config: Dict[str, Any]) -> LocalFileLogger:
    """
    Quick setup function for session keeper logging.

    Args:
        config: Configuration dictionary

    Returns:
        LocalFileLogger: The configured logger (call close() on shutdown)
    """
    return LocalFileLogger(config)
