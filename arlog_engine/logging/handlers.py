import logging
import logging.handlers
import os
import sys
from typing import List

import coloredlogs

from .formatters import JSONFormatter, PrettyFormatter
from arlog_engine.config.settings import EngineConfig

CONSOLE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class ColoredPrettyFormatter(coloredlogs.ColoredFormatter):
    """coloredlogs formatter that also renders EngineLogger context."""

    def format(self, record):
        msg = super().format(record)
        context = getattr(record, "extra_data", {})
        if context:
            pairs = " ".join(f"{k}={v}" for k, v in context.items())
            msg += f" | {pairs}"
        return msg


def build_handlers(config: EngineConfig) -> List[logging.Handler]:
    handlers: List[logging.Handler] = []

    # Console Handler (stderr, stdout carries command output)
    console_handler = logging.StreamHandler(sys.stderr)
    if config.env == "development":
        if sys.stderr.isatty():
            console_handler.setFormatter(ColoredPrettyFormatter(CONSOLE_FORMAT))
        else:
            console_handler.setFormatter(PrettyFormatter(CONSOLE_FORMAT))
    else:
        console_handler.setFormatter(JSONFormatter())
    console_handler.setLevel(config.log_level)
    handlers.append(console_handler)

    # File Handler (JSON)
    log_file = config.log_file
    if log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)

        file_handler = logging.handlers.RotatingFileHandler(
            log_file, maxBytes=10*1024*1024, backupCount=5
        )
        file_handler.setFormatter(JSONFormatter())
        file_handler.setLevel(logging.DEBUG) # Catch all in file
        handlers.append(file_handler)

    return handlers
