"""
Centralized logging configuration for the docconvert service.

This module provides:
- A single root logger setup driven by environment variables
- Standard, development and JSON line formats
- Optional rotating file output
- A timing decorator for conversion coroutines
"""

import functools
import logging
import logging.handlers
import os
import sys
import time
from pathlib import Path
from typing import Dict, Optional, Union


# ===== LOGGING CONFIGURATION =====

class LogLevel:
    """Maps level names from the environment to logging constants."""

    _NAMES = {
        'DEBUG': logging.DEBUG,
        'INFO': logging.INFO,
        'WARNING': logging.WARNING,
        'WARN': logging.WARNING,
        'ERROR': logging.ERROR,
        'CRITICAL': logging.CRITICAL,
        'FATAL': logging.CRITICAL,
    }

    @classmethod
    def from_string(cls, level_str: str) -> int:
        """Convert a level name to its integer value, INFO if unknown."""
        return cls._NAMES.get(level_str.strip().upper(), logging.INFO)


class LogConfig:
    """Reads logging settings from the environment."""

    DEFAULT_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    DEV_FORMAT = '%(asctime)s [%(levelname)8s] %(name)s:%(lineno)d - %(message)s'
    JSON_FORMAT = '{"timestamp": "%(asctime)s", "level": "%(levelname)s", "logger": "%(name)s", "message": "%(message)s"}'

    @staticmethod
    def get_log_level() -> int:
        """Level from LOG_LEVEL, WARNING under pytest, INFO otherwise."""
        level_str = os.getenv('LOG_LEVEL', os.getenv('LOGLEVEL'))
        if level_str:
            return LogLevel.from_string(level_str)

        if 'pytest' in sys.modules or 'PYTEST_CURRENT_TEST' in os.environ:
            return logging.WARNING

        return logging.INFO

    @staticmethod
    def get_log_format() -> str:
        format_type = os.getenv('LOG_FORMAT', 'standard').lower()

        if format_type in ('dev', 'development'):
            return LogConfig.DEV_FORMAT
        if format_type == 'json':
            return LogConfig.JSON_FORMAT
        return LogConfig.DEFAULT_FORMAT

    @staticmethod
    def should_log_to_file() -> bool:
        return os.getenv('LOG_TO_FILE', 'false').lower() in ('true', '1', 'yes')

    @staticmethod
    def get_log_file_path() -> Optional[Path]:
        log_file = os.getenv('LOG_FILE')
        return Path(log_file) if log_file else None


# ===== LOGGER FACTORY =====

class LoggerFactory:
    """Configures the root logger once and hands out named loggers."""

    _loggers: Dict[str, logging.Logger] = {}
    _configured = False

    @classmethod
    def configure_logging(cls, level: Optional[int] = None,
                          format_str: Optional[str] = None,
                          log_to_file: bool = False,
                          log_file: Optional[Union[str, Path]] = None) -> None:
        """Configure the root logger, a no-op after the first call."""
        if cls._configured:
            return

        log_level = level or LogConfig.get_log_level()
        formatter = logging.Formatter(format_str or LogConfig.get_log_format())

        root_logger = logging.getLogger()
        root_logger.setLevel(log_level)

        # Replace handlers installed by uvicorn or basicConfig
        for handler in root_logger.handlers[:]:
            root_logger.removeHandler(handler)

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(log_level)
        console_handler.setFormatter(formatter)
        root_logger.addHandler(console_handler)

        log_file_path = Path(log_file) if log_file else LogConfig.get_log_file_path()
        if (log_to_file or LogConfig.should_log_to_file()) and log_file_path:
            log_file_path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.handlers.RotatingFileHandler(
                log_file_path,
                maxBytes=10 * 1024 * 1024,  # 10MB
                backupCount=5
            )
            file_handler.setLevel(log_level)
            file_handler.setFormatter(formatter)
            root_logger.addHandler(file_handler)

        cls._configured = True

    @classmethod
    def get_logger(cls, name: str) -> logging.Logger:
        if name not in cls._loggers:
            cls.configure_logging()
            cls._loggers[name] = logging.getLogger(name)
        return cls._loggers[name]

    @classmethod
    def get_module_logger(cls) -> logging.Logger:
        """Logger named after the calling module."""
        caller = sys._getframe(2)
        return cls.get_logger(caller.f_globals.get('__name__', 'docconvert'))


# ===== UTILITY FUNCTIONS =====

def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Convenience function to get a logger, named after the caller by default."""
    if name:
        return LoggerFactory.get_logger(name)
    return LoggerFactory.get_module_logger()


def log_duration(logger: logging.Logger, level: int = logging.INFO):
    """Decorator logging how long a conversion coroutine took."""
    def decorator(func):
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            started = time.perf_counter()
            try:
                result = await func(*args, **kwargs)
            except Exception as e:
                logger.log(level, f"{func.__name__} failed after {time.perf_counter() - started:.3f}s: {e}")
                raise
            logger.log(level, f"{func.__name__} completed in {time.perf_counter() - started:.3f}s")
            return result
        return wrapper
    return decorator


# Auto-configure logging when this module is imported
LoggerFactory.configure_logging()
