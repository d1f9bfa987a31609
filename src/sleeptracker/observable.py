"""Observable values for UI-facing tracker state."""

from __future__ import annotations

import logging
from typing import Callable, Generic, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")
U = TypeVar("U")

Observer = Callable[[T], None]


class LiveValue(Generic[T]):
    """Hold a value and notify observers synchronously whenever it is set.

    Observers registered with :meth:`observe` receive the current value
    immediately. Observer errors are logged and do not stop delivery to the
    remaining observers.
    """

    def __init__(self, value: T) -> None:
        self._value = value
        self._observers: list[Observer[T]] = []

    @property
    def value(self) -> T:
        return self._value

    def set(self, value: T) -> None:
        self._value = value
        for observer in list(self._observers):
            try:
                observer(value)
            except Exception:
                logger.exception("Observer failed for %s", type(self).__name__)

    def observe(self, observer: Observer[T]) -> Callable[[], None]:
        """Subscribe to changes. Returns a callable that removes the observer."""

        self._observers.append(observer)
        observer(self._value)

        def unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return unsubscribe

    def map(self, transform: Callable[[T], U]) -> LiveValue[U]:
        """Return a derived value recomputed on every change of this one."""

        derived: LiveValue[U] = LiveValue(transform(self._value))
        self._observers.append(lambda value: derived.set(transform(value)))
        return derived


class OneShotEvent(LiveValue[Optional[T]]):
    """A signal meant to be handled once.

    A fired payload stays pending until the consumer calls
    :meth:`acknowledge`; it is never cleared automatically.
    """

    def __init__(self) -> None:
        super().__init__(None)

    @property
    def pending(self) -> bool:
        return self._value is not None

    def fire(self, payload: T) -> None:
        if payload is None:
            raise ValueError("OneShotEvent payload must not be None")
        self.set(payload)

    def acknowledge(self) -> None:
        self.set(None)


__all__ = ["LiveValue", "OneShotEvent"]
