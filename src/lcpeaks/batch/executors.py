"""Utilities to execute slice processing tasks."""

from __future__ import annotations

import concurrent.futures
from logging import getLogger
from typing import Callable, Generator, Protocol, Sequence, TypeVar

import pydantic

logger = getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


class SliceExecutor(Protocol):
    """Base slice executor class."""

    def map(self, func: Callable[[T], R], items: Sequence[T]) -> Generator[R, None, None]:
        """Apply a function to each item, yielding results in the same order as `items`."""
        ...


class SequentialSliceExecutor:
    """Execute slice tasks one at a time in the calling thread."""

    def map(self, func: Callable[[T], R], items: Sequence[T]) -> Generator[R, None, None]:
        """Apply a function to each item."""
        for item in items:
            yield func(item)


class ThreadedSliceExecutor(pydantic.BaseModel):
    """Execute slice tasks using a bounded thread pool.

    Tasks are submitted at once and results are yielded in submission order. If a task fails,
    pending tasks are cancelled and the exception is raised.

    """

    max_workers: pydantic.PositiveInt = 2
    """The maximum number of threads used to process slices."""

    def map(self, func: Callable[[T], R], items: Sequence[T]) -> Generator[R, None, None]:
        """Apply a function to each item."""
        with concurrent.futures.ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            futures = [executor.submit(func, x) for x in items]
            try:
                for future in futures:
                    yield future.result()
            finally:
                for future in futures:
                    future.cancel()
