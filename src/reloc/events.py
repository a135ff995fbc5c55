"""Observer registration used for change notifications."""

import inspect
from typing import Any, Callable, Generic, TypeVar

T = TypeVar("T")


class Observers(Generic[T]):
    """Ordered list of callbacks.

    Callbacks run in registration order. `subscribe` returns a callable that
    removes the callback again.
    """

    def __init__(self):
        self._callbacks: list[Callable[[T], Any]] = []

    def subscribe(self, callback: Callable[[T], Any]) -> Callable[[], None]:
        self._callbacks.append(callback)

        def unsubscribe() -> None:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

        return unsubscribe

    def notify(self, value: T) -> None:
        for callback in list(self._callbacks):
            callback(value)

    async def notify_async(self, value: T) -> None:
        """Notify, awaiting callbacks that return awaitables, one at a time."""
        for callback in list(self._callbacks):
            result = callback(value)
            if inspect.isawaitable(result):
                await result

    def clear(self) -> None:
        self._callbacks.clear()

    def __len__(self) -> int:
        return len(self._callbacks)
