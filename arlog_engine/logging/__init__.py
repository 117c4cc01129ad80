"""
Engine logging: context-carrying logger, console/file handlers and timing.
"""
from .logger import logger, setup_logging, EngineLogger
from .decorators import log_timing
from .formatters import JSONFormatter, PrettyFormatter

__all__ = [
    "logger",
    "setup_logging",
    "EngineLogger",
    "log_timing",
    "JSONFormatter",
    "PrettyFormatter",
]
