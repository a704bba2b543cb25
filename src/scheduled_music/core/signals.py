"""Minimal publish/subscribe primitive used for state-change notifications."""

import threading
from typing import Callable, Generic, TypeVar

from loguru import logger

T = TypeVar("T")


class Signal(Generic[T]):
    """Ordered list of callbacks invoked with a single payload.

    Subscribers are called synchronously, in subscription order, on the
    thread that emits. A failing subscriber is logged and does not stop
    delivery to the others.
    """

    def __init__(self, name: str):
        self.name = name
        self._subscribers: list[Callable[[T], None]] = []
        self._lock = threading.Lock()

    def subscribe(self, callback: Callable[[T], None]) -> Callable[[], None]:
        """Register a callback. Returns a function that unsubscribes it."""
        with self._lock:
            self._subscribers.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    def emit(self, payload: T) -> None:
        """Deliver payload to every current subscriber."""
        with self._lock:
            subscribers = list(self._subscribers)

        for callback in subscribers:
            try:
                callback(payload)
            except Exception:
                logger.exception(f"Subscriber to {self.name} raised")

    def __len__(self) -> int:
        with self._lock:
            return len(self._subscribers)
