"""Callback channels used to stream solver output and task state changes."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(slots=True)
class Subscription:
    """Handle returned by ``Signal.subscribe``."""

    signal: Signal[Any]
    callback: Callable[[Any], None]

    def unsubscribe(self) -> None:
        self.signal.unsubscribe(self.callback)


class Signal(Generic[T]):
    """Named channel delivering values to subscribers in emit order.

    Subscribers run on the emitting thread. A subscriber that raises is
    logged and does not prevent delivery to the remaining subscribers.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self._lock = threading.Lock()
        self._callbacks: list[Callable[[T], None]] = []

    def subscribe(self, callback: Callable[[T], None]) -> Subscription:
        with self._lock:
            self._callbacks.append(callback)
        return Subscription(signal=self, callback=callback)

    def unsubscribe(self, callback: Callable[[T], None]) -> bool:
        with self._lock:
            try:
                self._callbacks.remove(callback)
            except ValueError:
                return False
        return True

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._callbacks)

    def emit(self, value: T) -> None:
        with self._lock:
            callbacks = list(self._callbacks)
        for callback in callbacks:
            try:
                callback(value)
            except Exception:
                logger.exception("Subscriber of signal %r failed", self.name)
