"""
Structured JSON logging configuration.
"""
import logging
import sys
import json
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sms_dev.core.config import Settings, get_settings


ROOT_LOGGER = "sms_dev"


class JSONFormatter(logging.Formatter):
    """Custom JSON formatter for structured logging."""
    
    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }
        
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)
        
        if hasattr(record, "extra_data"):
            log_data.update(record.extra_data)
        
        return json.dumps(log_data, default=str)


class TextFormatter(logging.Formatter):
    """Human readable formatter for local development."""
    
    def __init__(self):
        super().__init__(
            fmt="%(asctime)s | %(levelname)-8s | %(name)s:%(funcName)s:%(lineno)d - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S"
        )
    
    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        extra_data = getattr(record, "extra_data", None)
        if extra_data:
            fields = " ".join(f"{key}={value}" for key, value in extra_data.items())
            line = f"{line} [{fields}]"
        return line


def setup_logging(settings: Optional[Settings] = None) -> logging.Logger:
    """Configure and return the package logger."""
    settings = settings or get_settings()
    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    
    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(level)
    logger.handlers.clear()
    
    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    
    if settings.log_format.lower() == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(TextFormatter())
    
    logger.addHandler(handler)
    
    # Keep uvicorn's root configuration from duplicating our lines
    logger.propagate = False
    
    return logger


def get_logger(name: str = ROOT_LOGGER) -> logging.Logger:
    """Get a logger instance."""
    return logging.getLogger(name)
