"""The editor host interface and an in-memory implementation of it."""

from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional, Protocol, Sequence

from ..event import Disposable, EventEmitter
from ..util.log import Log
from .types import (
    CancellationToken,
    ConfigurationChangeEvent,
    DocumentFilter,
    FileChangeType,
    FileEvent,
    InlayHint,
    Range,
    TextDocument,
    TextDocumentChangeEvent,
    selector_matches,
)


class InlayHintsProvider(Protocol):
    """What the host expects from a registered hint provider."""

    def on_did_change_inlay_hints(self, listener: Callable[[Any], Any]) -> Disposable:
        ...

    async def provide_inlay_hints(
        self, document: TextDocument, range: Range, token: Optional[CancellationToken] = None
    ) -> List[InlayHint]:
        ...

    def resolve_inlay_hint(self, hint: InlayHint, token: Optional[CancellationToken] = None) -> InlayHint:
        ...


class OutputChannel:
    """Named, append-only text channel shown to the user."""

    def __init__(self, name: str):
        self.name = name
        self.lines: List[str] = []
        self._log = Log.create({"service": "output"}).clone().tag("channel", name)

    def append_line(self, value: str) -> None:
        self.lines.append(value)
        self._log.debug(value)

    def clear(self) -> None:
        self.lines.clear()


class EditorHost(ABC):
    """Editor services the client depends on."""

    workspace_root: Optional[str] = None

    @property
    @abstractmethod
    def text_documents(self) -> List[TextDocument]:
        """Currently open documents."""
        pass

    @abstractmethod
    def register_inlay_hints_provider(
        self, selector: Sequence[DocumentFilter], provider: InlayHintsProvider
    ) -> Disposable:
        pass

    @abstractmethod
    def on_did_change_configuration(self, listener: Callable[[ConfigurationChangeEvent], Any]) -> Disposable:
        pass

    @abstractmethod
    def on_did_open_text_document(self, listener: Callable[[TextDocument], Any]) -> Disposable:
        pass

    @abstractmethod
    def on_did_change_text_document(self, listener: Callable[[TextDocumentChangeEvent], Any]) -> Disposable:
        pass

    @abstractmethod
    def on_did_close_text_document(self, listener: Callable[[TextDocument], Any]) -> Disposable:
        pass

    @abstractmethod
    def on_did_change_watched_files(self, listener: Callable[[List[FileEvent]], Any]) -> Disposable:
        """Batches of file system changes seen by the editor's watcher."""
        pass

    @abstractmethod
    def create_output_channel(self, name: str) -> OutputChannel:
        pass


class _Registration:
    def __init__(self, selector: Sequence[DocumentFilter], provider: InlayHintsProvider):
        self.selector = list(selector)
        self.provider = provider
        self.listener: Optional[Disposable] = None


class InMemoryEditorHost(EditorHost):
    """Editor host that keeps documents and registrations in memory.

    Used by the command line and by tests. ``refresh_requests`` counts how
    often a registered provider announced that its hints changed.
    """

    def __init__(self, workspace_root: Optional[str] = None):
        self.workspace_root = workspace_root
        self.documents: Dict[str, TextDocument] = {}
        self.channels: Dict[str, OutputChannel] = {}
        self.refresh_requests = 0
        self._registrations: List[_Registration] = []
        self._configuration_changed: EventEmitter[ConfigurationChangeEvent] = EventEmitter()
        self._document_opened: EventEmitter[TextDocument] = EventEmitter()
        self._document_changed: EventEmitter[TextDocumentChangeEvent] = EventEmitter()
        self._document_closed: EventEmitter[TextDocument] = EventEmitter()
        self._files_changed: EventEmitter[List[FileEvent]] = EventEmitter()
        self._log = Log.create({"service": "host"})

    @property
    def text_documents(self) -> List[TextDocument]:
        return list(self.documents.values())

    @property
    def active_registrations(self) -> int:
        return len(self._registrations)

    def register_inlay_hints_provider(
        self, selector: Sequence[DocumentFilter], provider: InlayHintsProvider
    ) -> Disposable:
        registration = _Registration(selector, provider)
        registration.listener = provider.on_did_change_inlay_hints(self._on_hints_changed)
        self._registrations.append(registration)
        self._log.debug("Registered inlay hints provider", {"count": len(self._registrations)})

        def unregister():
            if registration.listener:
                registration.listener.dispose()
            if registration in self._registrations:
                self._registrations.remove(registration)
            self._log.debug("Unregistered inlay hints provider", {"count": len(self._registrations)})

        return Disposable(unregister)

    def _on_hints_changed(self, _: Any) -> None:
        self.refresh_requests += 1

    def on_did_change_configuration(self, listener: Callable[[ConfigurationChangeEvent], Any]) -> Disposable:
        return self._configuration_changed.event(listener)

    def on_did_open_text_document(self, listener: Callable[[TextDocument], Any]) -> Disposable:
        return self._document_opened.event(listener)

    def on_did_change_text_document(self, listener: Callable[[TextDocumentChangeEvent], Any]) -> Disposable:
        return self._document_changed.event(listener)

    def on_did_close_text_document(self, listener: Callable[[TextDocument], Any]) -> Disposable:
        return self._document_closed.event(listener)

    def on_did_change_watched_files(self, listener: Callable[[List[FileEvent]], Any]) -> Disposable:
        return self._files_changed.event(listener)

    def create_output_channel(self, name: str) -> OutputChannel:
        if name not in self.channels:
            self.channels[name] = OutputChannel(name)
        return self.channels[name]

    def open_document(self, uri: str, text: str, language_id: str = "plaintext") -> TextDocument:
        document = TextDocument(uri, text, language_id)
        self.documents[uri] = document
        self._document_opened.fire(document)
        return document

    def change_document(self, uri: str, text: str) -> TextDocument:
        document = self.documents[uri]
        document.update(text)
        self._document_changed.fire(TextDocumentChangeEvent(document=document, content_changes=[{"text": text}]))
        return document

    def close_document(self, uri: str) -> None:
        document = self.documents.pop(uri)
        self._document_closed.fire(document)

    def change_configuration(self, section: Optional[str] = None) -> None:
        self._configuration_changed.fire(ConfigurationChangeEvent(section=section))

    def change_file(self, uri: str, type: FileChangeType = FileChangeType.CHANGED) -> None:
        self._files_changed.fire([FileEvent(uri=uri, type=type)])

    async def provide_inlay_hints(
        self, uri: str, range: Optional[Range] = None, token: Optional[CancellationToken] = None
    ) -> List[InlayHint]:
        """Ask every matching provider for hints and keep those inside ``range``."""
        document = self.documents[uri]
        range = range or document.full_range()

        hints: List[InlayHint] = []
        for registration in list(self._registrations):
            if not selector_matches(registration.selector, document):
                continue
            provided = await registration.provider.provide_inlay_hints(document, range, token)
            hints.extend(hint for hint in provided if range.contains(hint.position))

        hints.sort(key=lambda hint: (hint.position.line, hint.position.character))
        return hints

    def dispose(self) -> None:
        for registration in list(self._registrations):
            if registration.listener:
                registration.listener.dispose()
        self._registrations.clear()
        for emitter in (self._configuration_changed, self._document_opened, self._document_changed, self._document_closed,
                        self._files_changed):
            emitter.dispose()
