"""Errors, results and configuration shared by every layer."""

from .config import Config, ConfigError, load_config
from .errors import ErrorCode, MonorelError, exit_code_for
from .result import Err, Ok, Result

__all__ = [
    "Config",
    "ConfigError",
    "Err",
    "ErrorCode",
    "MonorelError",
    "Ok",
    "Result",
    "exit_code_for",
    "load_config",
]
