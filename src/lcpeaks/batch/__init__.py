"""Batch processing of slices."""

from .detector import BatchResult, PeakDetector
from .executors import SequentialSliceExecutor, SliceExecutor, ThreadedSliceExecutor

__all__ = ["BatchResult", "PeakDetector", "SequentialSliceExecutor", "SliceExecutor", "ThreadedSliceExecutor"]
