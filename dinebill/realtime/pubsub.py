import logging
import threading
from typing import Callable, Generic, TypeVar

T = TypeVar("T")
Listener = Callable[[T], None]

logger = logging.getLogger("dinebill.pubsub")


class PubSub(Generic[T]):
    """In-process fan-out.

    ``publish`` calls every listener registered at that moment, synchronously
    and in registration order, with the event unchanged. Nothing is buffered:
    a listener added after a publish never sees that event. The registry is
    guarded by a lock because handlers run on threadpool workers while stream
    connections subscribe from the event loop.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._listeners: list[Listener] = []

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        with self._lock:
            self._listeners.append(listener)
        return lambda: self.unsubscribe(listener)

    def unsubscribe(self, listener: Listener) -> None:
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    def publish(self, event: T) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(event)
            except Exception:
                # one broken display must not starve the others
                logger.exception("listener %r failed", listener)

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._listeners)

    def close(self) -> None:
        with self._lock:
            self._listeners.clear()
