# events.py
import logging
from typing import Callable, Generic, List, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class EventChannel(Generic[T]):
    """
    Single-producer / multi-consumer observer list.
    Subscribers are called synchronously in subscription order; a subscriber that
    raises is logged and skipped so the producer and the other consumers keep going.
    """

    def __init__(self, name: str):
        self.name = name
        self._subscribers: List[Callable[[T], None]] = []

    def subscribe(self, callback: Callable[[T], None]) -> Callable[[], None]:
        self._subscribers.append(callback)

        def unsubscribe():
            if callback in self._subscribers:
                self._subscribers.remove(callback)
        return unsubscribe

    def emit(self, value: T) -> None:
        for cb in list(self._subscribers):
            try:
                cb(value)
            except Exception:
                logger.exception("Subscriber on '%s' channel failed", self.name)

    def __len__(self):
        return len(self._subscribers)
