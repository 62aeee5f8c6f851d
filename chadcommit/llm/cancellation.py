"""Single-shot cancellation signal shared by a coordinator and its session."""

import logging
from typing import Callable

logger = logging.getLogger(__name__)


class CancellationSignal:
    """Fires once and stays fired.

    Subscribers run synchronously inside fire(), in registration order.
    Subscribing to an already fired signal runs the callback immediately.
    """

    def __init__(self):
        self._fired = False
        self._callbacks: list[Callable[[], object]] = []

    @property
    def fired(self) -> bool:
        return self._fired

    def fire(self) -> None:
        if self._fired:
            return
        self._fired = True
        logger.debug("Cancellation requested")
        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            callback()

    def subscribe(self, callback: Callable[[], object]) -> Callable[[], None]:
        """Register a callback for fire(). Returns a function that unregisters it."""
        if self._fired:
            callback()
            return lambda: None

        self._callbacks.append(callback)

        def unsubscribe() -> None:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

        return unsubscribe
