"""Editor host model used by the client."""

from .host import EditorHost, InlayHintsProvider, InMemoryEditorHost, OutputChannel
from .types import (
    CancellationToken,
    CancellationTokenSource,
    ConfigurationChangeEvent,
    DocumentFilter,
    FileChangeType,
    FileEvent,
    InlayHint,
    InlayHintLabelPart,
    Location,
    Position,
    Range,
    TextDocument,
    TextDocumentChangeEvent,
    selector_matches,
)

__all__ = [
    "EditorHost",
    "InlayHintsProvider",
    "InMemoryEditorHost",
    "OutputChannel",
    "CancellationToken",
    "CancellationTokenSource",
    "ConfigurationChangeEvent",
    "DocumentFilter",
    "FileChangeType",
    "FileEvent",
    "InlayHint",
    "InlayHintLabelPart",
    "Location",
    "Position",
    "Range",
    "TextDocument",
    "TextDocumentChangeEvent",
    "selector_matches",
]
