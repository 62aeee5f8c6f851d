"""Single-flight coordination of suggestion requests."""

import enum
import inspect
import logging
from typing import Awaitable, Callable

from chadcommit.llm.cancellation import CancellationSignal

logger = logging.getLogger(__name__)

Job = Callable[[CancellationSignal], Awaitable[str | None]]
ConfirmCancel = Callable[[], bool | Awaitable[bool]]
ErrorHandler = Callable[[Exception], object]


class State(enum.Enum):
    IDLE = "idle"
    BUSY = "busy"


class InvocationCoordinator:
    """Runs at most one job at a time.

    A trigger while busy never starts a second job; it offers the cancel
    affordance instead. Accepting it fires the active signal and returns
    to IDLE right away, leaving the abandoned job to tear itself down.
    """

    def __init__(self, job: Job, confirm_cancel: ConfirmCancel, on_error: ErrorHandler):
        self._job = job
        self._confirm_cancel = confirm_cancel
        self._on_error = on_error
        self._signal: CancellationSignal | None = None

    @property
    def state(self) -> State:
        return State.IDLE if self._signal is None else State.BUSY

    @property
    def busy(self) -> bool:
        return self._signal is not None

    async def trigger(self) -> str | None:
        if self._signal is not None:
            await self._offer_cancel(self._signal)
            return None

        signal = CancellationSignal()
        self._signal = signal
        logger.debug("Invocation started")
        try:
            result = await self._job(signal)
            return None if signal.fired else result
        except Exception as e:
            if signal.fired:
                logger.debug("Ignoring error from cancelled invocation: %s", e)
                return None
            logger.debug("Invocation failed", exc_info=True)
            self._on_error(e)
            return None
        finally:
            # A newer busy period may have started after a cancel; leave it alone
            if self._signal is signal:
                self._signal = None
            logger.debug("Invocation settled")

    def cancel(self) -> bool:
        """Fire the active signal without asking. Returns False when idle."""
        signal = self._signal
        if signal is None:
            return False
        self._release(signal)
        return True

    async def _offer_cancel(self, signal: CancellationSignal) -> None:
        accepted = self._confirm_cancel()
        if inspect.isawaitable(accepted):
            accepted = await accepted
        if not accepted:
            return
        # The job may have settled while the user was deciding
        if self._signal is signal:
            self._release(signal)

    def _release(self, signal: CancellationSignal) -> None:
        self._signal = None
        signal.fire()
        logger.debug("Invocation cancelled, coordinator idle")
