"""Structured logging utility with JSON output."""

import logging
import json
import sys
import os
from datetime import datetime, timezone
from typing import Any, Dict


class JSONFormatter(logging.Formatter):
    """Format logs as JSON for structured logging."""
    
    # Fields that Python's logging adds automatically (exclude these)
    BUILTIN_ATTRS = {
        'name', 'msg', 'args', 'created', 'filename', 'funcName',
        'levelname', 'levelno', 'lineno', 'module', 'msecs',
        'pathname', 'process', 'processName', 'relativeCreated',
        'stack_info', 'exc_info', 'exc_text', 'thread', 'threadName',
        'taskName', 'message',
    }
    
    MAX_VALUE_LENGTH = 500
    
    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        
        for key, value in record.__dict__.items():
            if key in self.BUILTIN_ATTRS or key.startswith('_'):
                continue
            log_data[key] = self._sanitize(value)
        
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)
        
        return json.dumps(log_data)
    
    def _sanitize(self, value: Any) -> Any:
        # Image payloads travel as bytes or huge base64 strings, never log them raw
        if isinstance(value, bytes):
            return f"<bytes: {len(value)} bytes>"
        if isinstance(value, (list, tuple)):
            return [self._sanitize(item) for item in value]
        try:
            json.dumps(value)
        except (TypeError, ValueError):
            value = str(value)
        if isinstance(value, str) and len(value) > self.MAX_VALUE_LENGTH:
            return value[:self.MAX_VALUE_LENGTH] + "...[truncated]"
        return value


def get_logger(name: str) -> logging.Logger:
    """
    Get a configured logger instance.
    
    Args:
        name: Logger name (typically __name__)
        
    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)
    
    # Only configure if not already configured
    if not logger.handlers:
        log_level = os.getenv("LOG_LEVEL", "INFO").upper()
        logger.setLevel(getattr(logging, log_level, logging.INFO))
        
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(JSONFormatter())
        logger.addHandler(handler)
        
        # Prevent propagation to root logger
        logger.propagate = False
    
    return logger


def set_log_level(level: str):
    """Apply a configured level to every logger created through get_logger."""
    resolved = getattr(logging, level.upper(), logging.INFO)
    for name, existing in logging.Logger.manager.loggerDict.items():
        if name.startswith("vibecode") and isinstance(existing, logging.Logger):
            existing.setLevel(resolved)


default_logger = get_logger("vibecode")
