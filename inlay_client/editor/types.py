"""Editor-side data types: positions, documents, inlay hints and cancellation."""

import asyncio
from bisect import bisect_right
from enum import IntEnum
from fnmatch import fnmatch
from typing import Any, Callable, List, Optional, Sequence, Union
from urllib.parse import unquote, urlparse

from pydantic import BaseModel, ConfigDict

from ..event import Disposable, EventEmitter


class Position(BaseModel):
    """Zero-based line and character."""
    model_config = ConfigDict(frozen=True)

    line: int
    character: int

    def __lt__(self, other: "Position") -> bool:
        return (self.line, self.character) < (other.line, other.character)

    def __le__(self, other: "Position") -> bool:
        return (self.line, self.character) <= (other.line, other.character)


class Range(BaseModel):
    model_config = ConfigDict(frozen=True)

    start: Position
    end: Position

    def contains(self, position: Position) -> bool:
        return self.start <= position <= self.end


class Location(BaseModel):
    model_config = ConfigDict(frozen=True)

    uri: str
    range: Range

    @classmethod
    def at(cls, uri: str, position: Position) -> "Location":
        """Empty location at a single position."""
        return cls(uri=uri, range=Range(start=position, end=position))


class InlayHintLabelPart(BaseModel):
    value: str
    location: Optional[Location] = None
    tooltip: Optional[str] = None


class InlayHint(BaseModel):
    """A label rendered inline at ``position``."""

    position: Position
    label: Union[str, List[InlayHintLabelPart]]
    padding_left: bool = False
    padding_right: bool = False
    kind: Optional[int] = None
    tooltip: Optional[str] = None

    @property
    def text(self) -> str:
        if isinstance(self.label, str):
            return self.label
        return "".join(part.value for part in self.label)


class TextDocument:
    """An open document with offset <-> position mapping.

    Offsets count characters of ``text``; a line ends after each ``\\n``.
    """

    def __init__(self, uri: str, text: str = "", language_id: str = "plaintext", version: int = 0):
        self.uri = uri
        self.language_id = language_id
        self.version = version
        self._set_text(text)

    def _set_text(self, text: str) -> None:
        self.text = text
        self._line_starts = [0]
        for index, char in enumerate(text):
            if char == "\n":
                self._line_starts.append(index + 1)

    @property
    def scheme(self) -> str:
        return urlparse(self.uri).scheme

    @property
    def path(self) -> str:
        return unquote(urlparse(self.uri).path)

    def update(self, text: str) -> None:
        """Replace the full text and bump the version."""
        self._set_text(text)
        self.version += 1

    def position_at(self, offset: int) -> Position:
        """Map an offset to a position, clamping it to the document bounds."""
        offset = max(0, min(offset, len(self.text)))
        line = bisect_right(self._line_starts, offset) - 1
        return Position(line=line, character=offset - self._line_starts[line])

    def offset_at(self, position: Position) -> int:
        if position.line < 0:
            return 0
        if position.line >= len(self._line_starts):
            return len(self.text)
        line_start = self._line_starts[position.line]
        if position.line + 1 < len(self._line_starts):
            line_end = self._line_starts[position.line + 1] - 1
        else:
            line_end = len(self.text)
        return max(line_start, min(line_start + position.character, line_end))

    def full_range(self) -> Range:
        return Range(start=self.position_at(0), end=self.position_at(len(self.text)))

    def __repr__(self) -> str:
        return f"TextDocument({self.uri!r}, language_id={self.language_id!r}, version={self.version})"


class DocumentFilter(BaseModel):
    """One entry of a document selector.

    A field set to ``None`` matches anything. The defaults select plaintext
    files on disk.
    """

    scheme: Optional[str] = "file"
    language: Optional[str] = "plaintext"
    pattern: Optional[str] = None

    def matches(self, document: TextDocument) -> bool:
        if self.scheme is not None and document.scheme != self.scheme:
            return False
        if self.language is not None and document.language_id != self.language:
            return False
        if self.pattern is not None and not fnmatch(document.path, self.pattern):
            return False
        return True


def selector_matches(selector: Sequence[DocumentFilter], document: TextDocument) -> bool:
    return any(document_filter.matches(document) for document_filter in selector)


class TextDocumentChangeEvent(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    document: TextDocument
    content_changes: List[dict]


class ConfigurationChangeEvent(BaseModel):
    section: Optional[str] = None


class FileChangeType(IntEnum):
    CREATED = 1
    CHANGED = 2
    DELETED = 3


class FileEvent(BaseModel):
    """A change to a file on disk, as reported by the editor's file watcher."""
    model_config = ConfigDict(frozen=True)

    uri: str
    type: FileChangeType

    @property
    def path(self) -> str:
        return unquote(urlparse(self.uri).path)


class CancellationToken:
    """Read side of a cancellation signal."""

    def __init__(self):
        self._event = asyncio.Event()
        self._emitter: EventEmitter[None] = EventEmitter()

    @property
    def is_cancellation_requested(self) -> bool:
        return self._event.is_set()

    def on_cancellation_requested(self, listener: Callable[[Any], Any]) -> Disposable:
        return self._emitter.event(listener)

    async def wait(self) -> None:
        """Return once cancellation has been requested."""
        await self._event.wait()

    def _cancel(self) -> None:
        if self._event.is_set():
            return
        self._event.set()
        self._emitter.fire(None)
        self._emitter.dispose()


class CancellationTokenSource:
    def __init__(self):
        self.token = CancellationToken()

    def cancel(self) -> None:
        self.token._cancel()

    def dispose(self) -> None:
        self.token._emitter.dispose()
