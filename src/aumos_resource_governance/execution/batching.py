"""Sequential batching and state polling helpers.

Example
-------
>>> seen = []
>>> process_in_batches(["a", "b", "c"], 2, seen.append)
2
>>> seen
[['a', 'b'], ['c']]
"""
from __future__ import annotations

import logging
import time
from collections.abc import Callable, Sequence
from typing import TypeVar

from aumos_resource_governance.errors import GovernanceError, StateWaitTimeoutError

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_BATCH_SIZE = 10
DEFAULT_POLL_INTERVAL_SECONDS = 5.0


class BatchError(GovernanceError):
    """Raised when a batch fails; carries the failing range.

    The original exception is available as ``__cause__``.
    """

    def __init__(self, start: int, end: int, total: int, cause: Exception) -> None:
        self.start = start
        self.end = end
        self.total = total
        super().__init__(f"batch processing failed at items {start}-{end} of {total}: {cause}")


def process_in_batches(
    items: Sequence[T],
    batch_size: int,
    processor: Callable[[list[T]], object],
) -> int:
    """Feed *items* to *processor* in consecutive chunks of *batch_size*.

    Batches are processed one after another; the first failing batch
    aborts the remaining ones.  A non-positive *batch_size* falls back to
    :data:`DEFAULT_BATCH_SIZE`.

    Returns
    -------
    int
        Number of batches processed.

    Raises
    ------
    BatchError
        Wrapping the processor's exception, with the failing item range.
    """
    if batch_size <= 0:
        batch_size = DEFAULT_BATCH_SIZE
    total = len(items)
    processed = 0
    for start in range(0, total, batch_size):
        end = min(start + batch_size, total)
        batch = list(items[start:end])
        logger.debug("Processing batch %d-%d of %d items", start + 1, end, total)
        try:
            processor(batch)
        except Exception as exc:
            raise BatchError(start + 1, end, total, exc) from exc
        processed += 1
    return processed


def wait_for_state(
    check: Callable[[], bool],
    timeout_seconds: float,
    poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], None] = time.sleep,
) -> None:
    """Poll *check* until it returns ``True`` or the deadline passes.

    The first check happens after one poll interval.  Exceptions raised
    by *check* propagate unchanged.

    Parameters
    ----------
    check:
        Zero-argument callable reporting whether the target state is reached.
    timeout_seconds:
        Overall deadline.
    poll_interval_seconds:
        Delay between checks.
    clock, sleep:
        Time sources, replaceable in tests.

    Raises
    ------
    StateWaitTimeoutError
        When the deadline passes before *check* succeeds.
    """
    deadline = clock() + timeout_seconds
    while True:
        remaining = deadline - clock()
        if remaining <= 0:
            break
        sleep(min(poll_interval_seconds, remaining))
        if check():
            return
    logger.warning("State wait timed out after %.0f s", timeout_seconds)
    raise StateWaitTimeoutError(timeout_seconds)
