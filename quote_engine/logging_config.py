"""
Logging configuration for the quote engine.

Call setup_logging() once at process startup (the CLI does this). The pure
core modules never log; the service, storage and CLI layers do.
"""

import json
import logging
import os
from datetime import datetime, timezone
from typing import Optional


class JSONFormatter(logging.Formatter):
    """Structured JSON log lines for machine parsing."""
    def format(self, record):
        entry = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
            "module": record.module,
            "func": record.funcName,
            "line": record.lineno,
        }
        if record.exc_info and record.exc_info[0]:
            entry["exception"] = self.formatException(record.exc_info)
        # Merge extra fields
        for key in ("quote_id", "quote_number", "from_status", "to_status", "actor"):
            if hasattr(record, key):
                entry[key] = getattr(record, key)
        return json.dumps(entry, default=str)


class HumanFormatter(logging.Formatter):
    """Readable console format."""
    def format(self, record):
        ts = datetime.now().strftime("%H:%M:%S")
        return f"{ts} [{record.levelname[0]}] {record.name}: {record.getMessage()}"


def setup_logging(level: Optional[str] = None, json_logs: Optional[bool] = None) -> None:
    """
    Configure logging for the application.

    Args:
        level: Override log level (default: from LOG_LEVEL env or WARNING)
        json_logs: Force JSON format (default: from QUOTE_ENGINE_JSON_LOGS env)
    """
    if level is None:
        level = os.environ.get("LOG_LEVEL", "WARNING")
    level = level.upper()
    if json_logs is None:
        json_logs = os.environ.get("QUOTE_ENGINE_JSON_LOGS", "").lower() in ("1", "true", "yes")

    root = logging.getLogger()
    root.setLevel(getattr(logging, level, logging.WARNING))
    root.handlers.clear()

    console = logging.StreamHandler()
    console.setFormatter(JSONFormatter() if json_logs else HumanFormatter())
    root.addHandler(console)

    logging.getLogger("quote_engine").debug("Logging initialized at %s", level)
