"""Access to sample data."""

from .data import InMemorySampleData, SampleData

__all__ = ["InMemorySampleData", "SampleData"]
