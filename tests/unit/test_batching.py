"""Unit tests for execution/batching.py."""
from __future__ import annotations

import pytest

from aumos_resource_governance.errors import GovernanceError, StateWaitTimeoutError
from aumos_resource_governance.execution.batching import BatchError, process_in_batches, wait_for_state


class _FakeClock:
    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


# ---------------------------------------------------------------------------
# process_in_batches
# ---------------------------------------------------------------------------


class TestProcessInBatches:
    def test_batches_in_order(self) -> None:
        seen: list[list[int]] = []
        assert process_in_batches([1, 2, 3, 4, 5], 2, seen.append) == 3
        assert seen == [[1, 2], [3, 4], [5]]

    def test_empty_input(self) -> None:
        seen: list[list[int]] = []
        assert process_in_batches([], 3, seen.append) == 0
        assert seen == []

    def test_non_positive_size_uses_default(self) -> None:
        seen: list[list[int]] = []
        assert process_in_batches(list(range(15)), 0, seen.append) == 2
        assert [len(batch) for batch in seen] == [10, 5]

    def test_failure_reports_range_and_stops(self) -> None:
        seen: list[list[str]] = []

        def processor(batch: list[str]) -> None:
            if "c" in batch:
                raise RuntimeError("boom")
            seen.append(batch)

        with pytest.raises(BatchError) as excinfo:
            process_in_batches(["a", "b", "c", "d", "e"], 2, processor)
        error = excinfo.value
        assert (error.start, error.end, error.total) == (3, 4, 5)
        assert isinstance(error.__cause__, RuntimeError)
        assert str(error) == "batch processing failed at items 3-4 of 5: boom"
        assert seen == [["a", "b"]]

    def test_batch_error_is_a_governance_error(self) -> None:
        assert issubclass(BatchError, GovernanceError)


# ---------------------------------------------------------------------------
# wait_for_state
# ---------------------------------------------------------------------------


class TestWaitForState:
    def test_returns_once_check_succeeds(self) -> None:
        clock = _FakeClock()
        answers = iter([False, False, True])
        wait_for_state(lambda: next(answers), 60, 5, clock=clock, sleep=clock.sleep)
        assert clock.sleeps == [5, 5, 5]

    def test_first_check_after_one_interval(self) -> None:
        clock = _FakeClock()
        checks: list[float] = []

        def check() -> bool:
            checks.append(clock.now)
            return True

        wait_for_state(check, 60, 5, clock=clock, sleep=clock.sleep)
        assert checks == [5]

    def test_timeout(self) -> None:
        clock = _FakeClock()
        with pytest.raises(StateWaitTimeoutError) as excinfo:
            wait_for_state(lambda: False, 12, 5, clock=clock, sleep=clock.sleep)
        assert clock.sleeps == [5, 5, 2]
        assert str(excinfo.value) == "Operation timed out after 12 s"
        assert isinstance(excinfo.value, TimeoutError)

    def test_check_errors_propagate(self) -> None:
        clock = _FakeClock()

        def check() -> bool:
            raise ConnectionError("describe failed")

        with pytest.raises(ConnectionError):
            wait_for_state(check, 60, 5, clock=clock, sleep=clock.sleep)
