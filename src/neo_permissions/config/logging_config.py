"""Logging configuration for neo-permissions.

Configures standard library logging from environment variables:
LOG_LEVEL, LOG_FORMAT (simple, detailed, json) and
ENABLE_SQL_LOGGING / ENABLE_CACHE_LOGGING for noisy subsystems.
"""

import logging
import logging.config
import os
from enum import Enum


class LogLevel(str, Enum):
    """Supported log levels."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class LogFormat(str, Enum):
    """Log format options."""
    SIMPLE = "simple"
    DETAILED = "detailed"
    JSON = "json"


FORMAT_STRINGS = {
    LogFormat.SIMPLE: "%(asctime)s - %(levelname)s - %(message)s",
    LogFormat.DETAILED: "%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s",
    LogFormat.JSON: '{"time":"%(asctime)s","level":"%(levelname)s","module":"%(name)s","message":"%(message)s"}',
}


class LoggingConfig:
    """Centralized logging configuration manager."""

    # Hot-path modules kept at WARNING unless DEBUG is requested
    DEFAULT_QUIET_MODULES = [
        "neo_permissions.features.cache.adapters.memory_adapter",
        "neo_permissions.features.cache.services.tiered_cache",
    ]

    # Modules that should only log errors
    ERROR_ONLY_MODULES = [
        "httpx",
        "httpcore",
        "asyncio",
    ]

    @classmethod
    def build(cls, log_level: str = "INFO", log_format: str = "simple") -> dict:
        """Build a dictConfig mapping for the given level and format."""
        effective_log_level = LogLevel(log_level.upper()).value
        try:
            format_string = FORMAT_STRINGS[LogFormat(log_format.lower())]
        except ValueError:
            format_string = FORMAT_STRINGS[LogFormat.SIMPLE]

        logging_config = {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "default": {
                    "format": format_string,
                    "datefmt": "%Y-%m-%d %H:%M:%S",
                },
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "level": effective_log_level,
                    "formatter": "default",
                    "stream": "ext://sys.stdout",
                },
            },
            "root": {
                "level": effective_log_level,
                "handlers": ["console"],
            },
            "loggers": {}
        }

        for module in cls.DEFAULT_QUIET_MODULES:
            logging_config["loggers"][module] = {
                "level": "WARNING" if effective_log_level != "DEBUG" else "DEBUG",
                "handlers": ["console"],
                "propagate": False,
            }

        for module in cls.ERROR_ONLY_MODULES:
            logging_config["loggers"][module] = {
                "level": "ERROR",
                "handlers": ["console"],
                "propagate": False,
            }

        if os.getenv("ENABLE_SQL_LOGGING", "false").lower() != "true":
            logging_config["loggers"]["asyncpg"] = {
                "level": "WARNING",
                "handlers": ["console"],
                "propagate": False,
            }

        if os.getenv("ENABLE_CACHE_LOGGING", "false").lower() != "true":
            logging_config["loggers"]["redis"] = {
                "level": "WARNING",
                "handlers": ["console"],
                "propagate": False,
            }

        return logging_config

    @classmethod
    def configure(cls, log_level: str = None, log_format: str = None) -> None:
        """Configure logging, falling back to environment variables."""
        log_level = log_level or os.getenv("LOG_LEVEL", "INFO")
        log_format = log_format or os.getenv("LOG_FORMAT", "simple")

        logging.config.dictConfig(cls.build(log_level, log_format))

        logger = logging.getLogger(__name__)
        logger.debug(f"Logging configured: level={log_level}, format={log_format}")

    @classmethod
    def set_module_level(cls, module_name: str, level: str) -> None:
        """Set log level for a specific module."""
        logging.getLogger(module_name).setLevel(getattr(logging, level.upper()))

    @classmethod
    def silence_module(cls, module_name: str) -> None:
        """Silence all logging from a module."""
        cls.set_module_level(module_name, "CRITICAL")


def setup_logging(log_level: str = None, log_format: str = None) -> None:
    """Setup logging configuration.

    This is the main entry point for configuring logging in an application
    embedding the engine. It should be called once at startup.
    """
    LoggingConfig.configure(log_level, log_format)


def get_logger(name: str) -> logging.Logger:
    """Get a logger for the given module name."""
    return logging.getLogger(name)
