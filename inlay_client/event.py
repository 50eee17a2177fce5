"""Event emitters and disposables shared by the editor host and the client."""

from typing import Any, Callable, Generic, List, Optional, TypeVar

from .util.log import Log

T = TypeVar('T')

_log = Log.create({"service": "event"})


class Disposable:
    """Releases a resource once, no matter how often ``dispose`` is called."""

    def __init__(self, on_dispose: Optional[Callable[[], Any]] = None):
        self._on_dispose = on_dispose
        self._disposed = False

    @property
    def disposed(self) -> bool:
        return self._disposed

    def dispose(self) -> None:
        if self._disposed:
            return
        self._disposed = True
        if self._on_dispose:
            self._on_dispose()
            self._on_dispose = None

    @classmethod
    def from_(cls, *disposables: "Disposable") -> "Disposable":
        """Combine several disposables into one."""
        def dispose_all():
            for disposable in disposables:
                disposable.dispose()

        return cls(dispose_all)


class EventEmitter(Generic[T]):
    """Single-event publisher.

    ``event`` is the subscribe function handed out to listeners; it returns a
    ``Disposable`` that removes the listener again. Once the emitter is disposed
    all listeners are dropped and further subscriptions are ignored.
    """

    def __init__(self):
        self._listeners: List[Callable[[T], Any]] = []
        self._disposed = False

    @property
    def disposed(self) -> bool:
        return self._disposed

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def event(self, listener: Callable[[T], Any]) -> Disposable:
        """Subscribe to this emitter."""
        if self._disposed:
            return Disposable()

        self._listeners.append(listener)

        def unsubscribe():
            try:
                self._listeners.remove(listener)
            except ValueError:
                pass

        return Disposable(unsubscribe)

    def fire(self, data: Optional[T] = None) -> None:
        """Deliver ``data`` to every listener."""
        if self._disposed:
            return

        for listener in list(self._listeners):
            try:
                listener(data)
            except Exception as e:
                _log.error("Event listener failed", {"listener": getattr(listener, "__qualname__", listener), "error": str(e)})

    def dispose(self) -> None:
        self._disposed = True
        self._listeners.clear()
