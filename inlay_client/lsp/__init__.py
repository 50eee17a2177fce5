"""Language server process and protocol session."""

from .client import LanguageClient, LSPDiagnostic, SessionState
from .language import LANGUAGE_EXTENSIONS, get_language_id
from .launcher import ServerProcessConfig, launch, resolve_command

__all__ = [
    "LanguageClient",
    "LSPDiagnostic",
    "SessionState",
    "LANGUAGE_EXTENSIONS",
    "get_language_id",
    "ServerProcessConfig",
    "launch",
    "resolve_command",
]
