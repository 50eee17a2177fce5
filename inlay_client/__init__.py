"""inlay-client - editor-side inlay hints from an external language server."""

__version__ = "0.1.0"
__description__ = "Editor-side client that brokers inlay hints from an out-of-process language server"

from .config import ClientOptions, Config
from .extension import Extension, ExtensionContext, activate, deactivate
from .hints import HintProvider, HintTriple
from .lsp import LanguageClient, ServerProcessConfig
from .subscription import HintSubscription

__all__ = [
    "ClientOptions",
    "Config",
    "Extension",
    "ExtensionContext",
    "activate",
    "deactivate",
    "HintProvider",
    "HintTriple",
    "LanguageClient",
    "ServerProcessConfig",
    "HintSubscription",
]
