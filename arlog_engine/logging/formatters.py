import logging
import json
from datetime import datetime, timezone

class JSONFormatter(logging.Formatter):
    """Formats logs as JSON."""

    def format(self, record):
        log_obj = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "message": record.getMessage(),
            "module": record.module,
            "logger": record.name,
        }

        # Context attached by EngineLogger
        if hasattr(record, "extra_data"):
            log_obj.update(record.extra_data)

        if record.exc_info:
            log_obj["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_obj, default=str)

class PrettyFormatter(logging.Formatter):
    """Formats logs for console; appends context as key=value pairs."""

    def format(self, record):
        msg = super().format(record)
        context = getattr(record, "extra_data", {})
        if context:
            pairs = " ".join(f"{k}={v}" for k, v in context.items())
            msg += f" | {pairs}"
        return msg
