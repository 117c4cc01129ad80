import logging
from typing import Any, Dict, Optional

from arlog_engine.config.settings import EngineConfig
from .handlers import build_handlers

ROOT_LOGGER_NAME = "arlog_engine"

class EngineLogger:
    """Custom logger with context support"""

    def __init__(self, name: str = ROOT_LOGGER_NAME):
        self.logger = logging.getLogger(name)
        self._context: Dict[str, Any] = {}
        self._setup_done = False

    def setup(self, config: EngineConfig):
        """Setup logging based on config"""
        if self._setup_done:
            return

        self.logger.setLevel(config.log_level)
        self.logger.handlers.clear()
        self.logger.propagate = False # Prevent double logging if root logger is configured

        for handler in build_handlers(config):
            self.logger.addHandler(handler)

        self._setup_done = True

    def with_context(self, **kwargs) -> "EngineLogger":
        """Return logger with additional context"""
        new_logger = EngineLogger(self.logger.name)
        new_logger.logger = self.logger
        new_logger._context = {**self._context, **kwargs}
        new_logger._setup_done = self._setup_done
        return new_logger

    @property
    def context(self) -> Dict[str, Any]:
        return dict(self._context)

    def _log(self, level: int, msg: str, exc_info: Optional[bool] = None, **kwargs):
        # Merge context
        extra_data = {**self._context, **kwargs}
        if extra_data:
            extra = {"extra_data": extra_data}
        else:
            extra = {}
        self.logger.log(level, msg, extra=extra, exc_info=exc_info)

    def debug(self, msg: str, **kwargs):
        self._log(logging.DEBUG, msg, **kwargs)

    def info(self, msg: str, **kwargs):
        self._log(logging.INFO, msg, **kwargs)

    def warning(self, msg: str, **kwargs):
        self._log(logging.WARNING, msg, **kwargs)

    def error(self, msg: str, exc_info: Optional[bool] = None, **kwargs):
        self._log(logging.ERROR, msg, exc_info=exc_info, **kwargs)

    def critical(self, msg: str, **kwargs):
        self._log(logging.CRITICAL, msg, **kwargs)

    def section(self, name: str, status: str, **kwargs):
        """Log the outcome of one analytic section"""
        level = logging.INFO if status == "available" else logging.WARNING
        self._log(level, f"SECTION: {name} {status}", section=name, **kwargs)

# Singleton
logger = EngineLogger()

def setup_logging(config: EngineConfig):
    """Initialize logging"""
    logger.setup(config)
