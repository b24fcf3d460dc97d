"""Centralized logging setup for the murmur package.

Modules log through ``logging.getLogger(__name__)``; this factory configures
the root logger exactly once for the process.

Usage:
    # Explicit initialization (optional - auto-initializes on first use)
    LoggingFactory.initialize(level=logging.INFO, log_file=Path("murmur.log"))

    logger = get_logger(__name__)
    logger.info("Application started")
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional, Union

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
PACKAGE_LOGGER = "murmur"


class LoggingFactory:
    """Configures the logging system once for the whole application.

    Class Attributes:
        _initialized: Flag to ensure single initialization
    """

    _initialized = False

    @classmethod
    def initialize(
        cls,
        level: Union[int, str] = logging.INFO,
        log_file: Optional[Path] = None,
        format_string: Optional[str] = None,
        handlers: Optional[List[logging.Handler]] = None,
    ) -> None:
        """Initialize the logging system.

        Only the first call has an effect; later calls are ignored.

        Args:
            level: Root logging level (int or name such as ``"DEBUG"``)
            log_file: Optional file that receives a copy of every record
            format_string: Record format for the default handlers
            handlers: Console handlers to install instead of a plain
                ``StreamHandler`` (the CLI passes a ``RichHandler``)
        """
        if cls._initialized:
            return

        if isinstance(level, str):
            level = logging.getLevelName(level.upper())
            if not isinstance(level, int):
                level = logging.INFO

        formatter = logging.Formatter(format_string or DEFAULT_FORMAT)
        installed: List[logging.Handler] = list(handlers) if handlers else [logging.StreamHandler()]
        if not handlers:
            installed[0].setFormatter(formatter)

        if log_file is not None:
            log_file.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(log_file)
            file_handler.setFormatter(formatter)
            installed.append(file_handler)

        logging.basicConfig(level=level, handlers=installed, force=True)

        # Quiet the HTTP stack unless explicitly asked for.
        logging.getLogger("httpx").setLevel(logging.WARNING)
        logging.getLogger("httpcore").setLevel(logging.WARNING)

        cls._initialized = True

    @classmethod
    def get_logger(cls, name: str) -> logging.Logger:
        """Get a logger, initializing with defaults on first use."""
        if not cls._initialized:
            cls.initialize()
        return logging.getLogger(name)

    @classmethod
    def set_level(cls, name: str, level: int) -> None:
        """Set the logging level for a specific logger."""
        logging.getLogger(name).setLevel(level)

    @classmethod
    def configure_verbose(cls, verbose: bool = False) -> None:
        """Switch the root and package loggers between DEBUG and INFO."""
        level = logging.DEBUG if verbose else logging.INFO
        logging.getLogger().setLevel(level)
        logging.getLogger(PACKAGE_LOGGER).setLevel(level)

    @classmethod
    def reset(cls) -> None:
        """Allow ``initialize`` to run again (used by tests)."""
        cls._initialized = False


def get_logger(name: str) -> logging.Logger:
    """Shorthand for :meth:`LoggingFactory.get_logger`."""
    return LoggingFactory.get_logger(name)
