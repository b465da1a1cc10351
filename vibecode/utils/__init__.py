"""Utility modules for configuration, logging, and error handling."""

from .config import Config, load_config
from .logger import get_logger
from .retry import RetryPolicy

__all__ = [
    "Config",
    "load_config",
    "get_logger",
    "RetryPolicy",
]
