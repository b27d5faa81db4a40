from __future__ import annotations

import threading
import time
from concurrent.futures import Executor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Callable, Optional, TypeVar

from ..domain.errors import ProviderTimeoutError

T = TypeVar("T")

_POLL_SECONDS = 0.05


class Deadline:
    """Overall time budget of one call; callers may cancel it from another thread."""

    def __init__(self, seconds: float, clock: Callable[[], float] = time.monotonic) -> None:
        self.seconds = float(seconds)
        self._clock = clock
        self._start = clock()
        self._cancelled = threading.Event()

    def remaining(self) -> float:
        return max(0.0, self.seconds - (self._clock() - self._start))

    def cancel(self) -> None:
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    @property
    def expired(self) -> bool:
        return self.cancelled or self.remaining() <= 0


def run_with_deadline(
    executor: Executor,
    fn: Callable[[float], T],
    deadline: Deadline,
    attempt_timeout: Optional[float] = None,
) -> T:
    """Run a blocking call on a worker thread, waiting no longer than the budget.

    ``fn`` receives the attempt budget in seconds so it can pass it on to the
    network client. The budget is ``min(attempt_timeout, deadline.remaining())``.

    Raises:
        ProviderTimeoutError: Budget ran out or the deadline was cancelled.
        Exception: Whatever ``fn`` raised.
    """
    budget = deadline.remaining()
    if attempt_timeout is not None:
        budget = min(budget, float(attempt_timeout))
    if deadline.cancelled:
        raise ProviderTimeoutError("Cancelled by caller")
    if budget <= 0:
        raise ProviderTimeoutError("Deadline exceeded before attempt")

    future = executor.submit(fn, budget)
    end = time.monotonic() + budget
    while True:
        if deadline.cancelled:
            future.cancel()
            raise ProviderTimeoutError("Cancelled by caller")
        wait = end - time.monotonic()
        if wait <= 0:
            future.cancel()
            raise ProviderTimeoutError(f"Request timed out after {budget:.2f}s")
        try:
            return future.result(timeout=min(_POLL_SECONDS, wait))
        except FutureTimeoutError:
            # On 3.11+ this is the builtin TimeoutError, which fn itself may raise.
            if future.done():
                raise
            continue
