"""Inlay hints fetched from the language server."""

import asyncio
from typing import Any, Callable, List, NamedTuple, Optional, Protocol

from .editor.types import (
    CancellationToken,
    InlayHint,
    InlayHintLabelPart,
    Location,
    Range,
    TextDocument,
)
from .event import Disposable
from .util.error import LSPError
from .util.log import Log

_log = Log.create({"service": "hints"})


class RequestSender(Protocol):
    async def send_request(self, method: str, params: Any = None) -> Any:
        ...


class HintTriple(NamedTuple):
    """``(start, end, label)`` as sent by the server."""

    start: int
    end: int
    label: str

    @classmethod
    def parse(cls, raw: Any) -> Optional["HintTriple"]:
        """Return None for anything that is not ``[int, int, str]`` with start <= end."""
        if not isinstance(raw, (list, tuple)) or len(raw) != 3:
            return None
        start, end, label = raw
        if isinstance(start, bool) or isinstance(end, bool):
            return None
        if not isinstance(start, int) or not isinstance(end, int) or not isinstance(label, str):
            return None
        if start < 0 or start > end:
            return None
        return cls(start, end, label)


def to_inlay_hint(document: TextDocument, triple: HintTriple) -> InlayHint:
    """Anchor the label after ``end``; its location points back at ``start``."""
    return InlayHint(
        position=document.position_at(triple.end),
        padding_left=True,
        label=[
            InlayHintLabelPart(
                value=triple.label,
                location=Location.at(document.uri, document.position_at(triple.start)),
            )
        ],
    )


class HintProvider:
    """Turns the server's hint triples into editor inlay hints.

    Failures never reach the editor: a missing, failed or cancelled request
    yields an empty list.
    """

    def __init__(
        self,
        client: RequestSender,
        method: str = "custom/hints",
        on_did_change_inlay_hints: Optional[Callable[[Callable[[Any], Any]], Disposable]] = None,
    ):
        self.client = client
        self.method = method
        self._on_did_change = on_did_change_inlay_hints

    def on_did_change_inlay_hints(self, listener: Callable[[Any], Any]) -> Disposable:
        if self._on_did_change is None:
            return Disposable()
        return self._on_did_change(listener)

    async def provide_inlay_hints(
        self, document: TextDocument, range: Range, token: Optional[CancellationToken] = None
    ) -> List[InlayHint]:
        if token is not None and token.is_cancellation_requested:
            return []

        result = await self._fetch(document, token)
        if result is None:
            return []
        if not isinstance(result, list):
            _log.warn("Unexpected hints result", {"uri": document.uri, "type": type(result).__name__})
            return []

        hints = []
        for raw in result:
            triple = HintTriple.parse(raw)
            if triple is None:
                _log.warn("Skipping malformed hint", {"uri": document.uri, "hint": raw})
                continue
            hints.append(to_inlay_hint(document, triple))
        return hints

    def resolve_inlay_hint(self, hint: InlayHint, token: Optional[CancellationToken] = None) -> InlayHint:
        return hint.model_copy(deep=True)

    async def _fetch(self, document: TextDocument, token: Optional[CancellationToken]) -> Any:
        request = asyncio.ensure_future(self.client.send_request(self.method, {"path": document.uri}))

        if token is not None:
            cancelled = asyncio.ensure_future(token.wait())
            try:
                await asyncio.wait({request, cancelled}, return_when=asyncio.FIRST_COMPLETED)
            finally:
                cancelled.cancel()
                if not request.done():
                    request.add_done_callback(_discard_result)
            if not request.done():
                _log.debug("Hint request cancelled", {"uri": document.uri})
                return None

        try:
            return await request
        except LSPError as e:
            _log.debug("No hints available", {"uri": document.uri, "error": e.message})
            return None


def _discard_result(task: "asyncio.Future[Any]") -> None:
    if not task.cancelled() and task.exception() is not None:
        _log.debug("Abandoned hint request failed", {"error": str(task.exception())})
