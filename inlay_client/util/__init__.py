"""Utility modules for inlay-client."""

from .log import Log, Logger, LogLevel
from .error import NamedError, ConfigError, LSPError, StartupFailure, TransportFailure, RequestFailure

__all__ = [
    "Log",
    "Logger",
    "LogLevel",
    "NamedError",
    "ConfigError",
    "LSPError",
    "StartupFailure",
    "TransportFailure",
    "RequestFailure",
]
