import time

import pytest

from lcpeaks.batch.executors import SequentialSliceExecutor, ThreadedSliceExecutor


def slow_square(x: int) -> int:
    # later items finish first
    time.sleep(0.001 * (10 - x))
    return x**2


def fail_on_five(x: int) -> int:
    if x == 5:
        raise RuntimeError("task failed")
    return x


@pytest.mark.parametrize("executor", [SequentialSliceExecutor(), ThreadedSliceExecutor(max_workers=4)])
def test_results_are_yielded_in_order(executor):
    items = list(range(10))
    assert list(executor.map(slow_square, items)) == [x**2 for x in items]


@pytest.mark.parametrize("executor", [SequentialSliceExecutor(), ThreadedSliceExecutor(max_workers=4)])
def test_exceptions_are_propagated(executor):
    with pytest.raises(RuntimeError):
        list(executor.map(fail_on_five, list(range(10))))


@pytest.mark.parametrize("executor", [SequentialSliceExecutor(), ThreadedSliceExecutor()])
def test_empty_items(executor):
    assert list(executor.map(slow_square, [])) == list()


def test_threaded_executor_invalid_max_workers():
    with pytest.raises(ValueError):
        ThreadedSliceExecutor(max_workers=0)
