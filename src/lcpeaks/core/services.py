"""Interfaces of external services consumed by the peak detector."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, Sequence

from .models import RtCorrection

if TYPE_CHECKING:
    from ..io.data import SampleData
    from ..lcms.models import PeakGroup


class Aligner(Protocol):
    """Retention time alignment service."""

    def align(self, samples: Sequence[SampleData], groups: Sequence[PeakGroup]) -> dict[str, RtCorrection]:
        """Compute retention time corrections.

        :param samples: the samples to align
        :param groups: the accepted peak groups
        :return: a mapping from sample ids to corrections. Samples without correction are not modified.

        """
        ...


class GroupScorer(Protocol):
    """Peak group quality scoring service."""

    def score(self, group: PeakGroup) -> float:
        """Compute the quality score of a peak group."""
        ...
