"""Keeps exactly one hint provider registered with the editor."""

from typing import Any, List, Optional

from .config import ClientOptions
from .editor.host import EditorHost
from .editor.types import ConfigurationChangeEvent, TextDocumentChangeEvent
from .event import Disposable, EventEmitter
from .hints import HintProvider, RequestSender
from .util.log import Log


class HintSubscription:
    """Registration state for the hint provider.

    ``reconfigure`` releases the current registration and its change emitter
    before installing a new provider, with no await point in between, so the
    host never sees two registrations from this subscription.
    """

    def __init__(self, host: EditorHost, client: RequestSender, options: Optional[ClientOptions] = None):
        self.host = host
        self.client = client
        self.options = options or ClientOptions()
        self.registration: Optional[Disposable] = None
        self.emitter: Optional[EventEmitter[None]] = None
        self.provider: Optional[HintProvider] = None
        self.generation = 0
        self._disposed = False
        self._log = Log.create({"service": "hints.subscription"})

    @property
    def active(self) -> bool:
        return self.registration is not None

    def listen(self, subscriptions: List[Disposable]) -> None:
        """Follow host events; the disposables go into ``subscriptions``."""
        subscriptions.append(self.host.on_did_change_configuration(self.on_did_change_configuration))
        subscriptions.append(self.host.on_did_change_text_document(self.on_did_change_text_document))
        subscriptions.append(Disposable(self.dispose))

    def reconfigure(self) -> None:
        if self._disposed:
            return

        self._release()

        self.emitter = EventEmitter()
        self.provider = HintProvider(self.client, self.options.hints_method, self.emitter.event)
        self.registration = self.host.register_inlay_hints_provider(self.options.document_selector, self.provider)
        self.generation += 1
        self._log.debug("Registered hint provider", {"generation": self.generation})

        self.emitter.fire(None)

    def refresh(self) -> None:
        """Tell the editor to ask for hints again."""
        if self.emitter is not None:
            self.emitter.fire(None)

    def on_did_change_configuration(self, event: Optional[ConfigurationChangeEvent] = None) -> None:
        self._log.info("Configuration changed, re-registering hint provider", {"section": getattr(event, "section", None)})
        self.reconfigure()

    def on_did_change_text_document(self, event: TextDocumentChangeEvent) -> Any:
        # Hints are recomputed lazily on the next editor query.
        self._log.debug("Document changed", {"uri": event.document.uri, "version": event.document.version})

    def dispose(self) -> None:
        self._disposed = True
        self._release()

    def _release(self) -> None:
        if self.registration is not None:
            self.registration.dispose()
            self.registration = None
        if self.emitter is not None:
            self.emitter.dispose()
            self.emitter = None
        self.provider = None
