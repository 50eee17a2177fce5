"""Error handling utilities."""

from typing import Any, Dict, Optional


class NamedError(Exception):
    """Base class for named errors with structured data."""

    def __init__(self, data: Optional[Dict[str, Any]] = None, message: Optional[str] = None, cause: Optional[BaseException] = None):
        self.data = data or {}
        self.message = message or self.__class__.__name__
        self.cause = cause
        super().__init__(self.message)


class ConfigError(NamedError):
    """Configuration related errors."""
    pass


class LSPError(NamedError):
    """Language server session errors."""
    pass


class StartupFailure(LSPError):
    """The language server could not be launched or did not complete the handshake."""
    pass


class TransportFailure(LSPError):
    """The server process died or its pipes closed while the session was live."""
    pass


class RequestFailure(LSPError):
    """The server answered a single request with a protocol error."""

    @property
    def code(self) -> Optional[int]:
        return self.data.get("code")
