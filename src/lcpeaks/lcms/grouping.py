"""Deduplication of peak groups by retention time overlap."""

from __future__ import annotations

import math
import threading
from logging import getLogger
from typing import TYPE_CHECKING

from typing_extensions import Self

from ..core.config import PeakDetectorConfiguration
from ..core.enums import MergeOutcome, OverlapMetric
from .models import PeakGroup

if TYPE_CHECKING:
    from typing import assert_never

logger = getLogger(__name__)


def shortest_overlap(a: tuple[float, float], b: tuple[float, float]) -> float:
    """Compute the length of the intersection of two spans divided by the length of the shortest span.

    A zero-length span contained in the other span has an overlap of ``1.0``.

    """
    low, high = max(a[0], b[0]), min(a[1], b[1])
    if high < low:
        return 0.0
    shortest = min(a[1] - a[0], b[1] - b[0])
    if shortest <= 0.0:
        return 1.0
    return (high - low) / shortest


def iou_overlap(a: tuple[float, float], b: tuple[float, float]) -> float:
    """Compute the length of the intersection of two spans divided by the length of their union."""
    low, high = max(a[0], b[0]), min(a[1], b[1])
    if high < low:
        return 0.0
    union = max(a[1], b[1]) - min(a[0], b[0])
    if union <= 0.0:
        return 1.0
    return (high - low) / union


def apex_overlap(rt_a: float, rt_b: float, rt_window: float) -> float:
    """Return ``1.0`` if the distance between apex times is within `rt_window` and ``0.0`` otherwise."""
    return 1.0 if abs(rt_a - rt_b) <= rt_window else 0.0


def compute_group_overlap(a: PeakGroup, b: PeakGroup, metric: OverlapMetric, rt_window: float = 0.0) -> float:
    """Compute the retention time overlap between two groups.

    Spans are restricted to samples present in both groups. If the groups do not share samples,
    spans computed using all peaks are used. The result does not depend on the argument order.

    :param a: a peak group
    :param b: a peak group
    :param metric: the overlap metric
    :param rt_window: apex distance tolerance, used only by the apex metric

    """
    shared = sorted(set(a.peaks).intersection(b.peaks)) or None
    match metric:
        case OverlapMetric.SHORTEST:
            return shortest_overlap(a.get_span(shared), b.get_span(shared))
        case OverlapMetric.IOU:
            return iou_overlap(a.get_span(shared), b.get_span(shared))
        case OverlapMetric.APEX:
            return apex_overlap(a.get_rt(shared), b.get_rt(shared), rt_window)
        case _ as never:
            assert_never(never)


def compute_mz_distance_ppm(mz_a: float, mz_b: float) -> float:
    """Compute the distance between two m/z values in ppm, relative to the largest value."""
    reference = max(mz_a, mz_b)
    if reference <= 0.0:
        return 0.0
    return abs(mz_a - mz_b) / reference * 1e6


class GroupDeduplicator:
    """Store accepted peak groups and resolve duplicated candidates.

    A candidate is a duplicate of an accepted group if their retention time overlap is greater or
    equal than the threshold and their m/z are within `merge_ppm`. Duplicates are resolved as follows:

    - if the candidate has a higher quality, it replaces the accepted group, keeping its id, and
      takes the peaks of samples that it does not contain. Isotopes, score and compound of the
      accepted group are kept if the candidate does not define them.
    - otherwise, peaks of the candidate for samples missing in the accepted group are added to it.
      If there are no missing samples the candidate is discarded.

    Candidates that are not duplicated are accepted and receive the next sequential id.

    Accepted groups are indexed by retention time buckets of width `bucket_width`, so only groups
    close in time are compared. A lock serializes access to the accepted groups.

    """

    def __init__(
        self,
        metric: OverlapMetric = OverlapMetric.SHORTEST,
        threshold: float = 0.9,
        merge_ppm: float = 10.0,
        rt_window: float = 0.5,
        bucket_width: float = 10.0,
    ):
        if bucket_width <= 0.0:
            raise ValueError(f"`bucket_width` must be positive. Got {bucket_width}.")
        self.metric = metric
        self.threshold = threshold
        self.merge_ppm = merge_ppm
        self.rt_window = rt_window
        self.bucket_width = bucket_width
        self._groups: dict[int, PeakGroup] = dict()
        self._buckets: dict[int, set[int]] = dict()
        self._next_id = 0
        self._lock = threading.Lock()

    @classmethod
    def from_config(cls, config: PeakDetectorConfiguration) -> Self:
        """Create a new instance using the peak detector configuration."""
        return cls(
            metric=config.overlap_metric,
            threshold=config.overlap_threshold,
            merge_ppm=config.merge_ppm,
            rt_window=config.grouping_rt_window,
            bucket_width=config.rt_bucket_width,
        )

    def __len__(self) -> int:
        return len(self._groups)

    def __contains__(self, group_id: int) -> bool:
        with self._lock:
            return group_id in self._groups

    def is_duplicate(self, a: PeakGroup, b: PeakGroup) -> bool:
        """Check if two groups are duplicates. The result does not depend on the argument order.

        Groups with no overlap are never duplicates.

        """
        if compute_mz_distance_ppm(a.mz, b.mz) > self.merge_ppm:
            return False
        overlap = compute_group_overlap(a, b, self.metric, self.rt_window)
        return overlap > 0.0 and overlap >= self.threshold

    def add_peak_group(self, candidate: PeakGroup) -> MergeOutcome:
        """Add a candidate group to the accepted groups.

        The candidate `id` is set to the id of the accepted group that it was resolved against.

        :param candidate: the candidate group
        :return: the outcome of the operation.

        """
        with self._lock:
            outcome = self._resolve(candidate)
            if outcome is not None:
                return outcome
            candidate.id = self._next_id
            self._next_id += 1
            self._insert(candidate)
            return MergeOutcome.ACCEPTED

    def get_group(self, group_id: int) -> PeakGroup:
        """Retrieve an accepted group by id.

        :raises KeyError: if there is no group with the provided id.

        """
        with self._lock:
            return self._groups[group_id]

    def list_groups(self) -> list[PeakGroup]:
        """Retrieve all accepted groups, sorted by id."""
        with self._lock:
            return [self._groups[k] for k in sorted(self._groups)]

    def clear(self) -> None:
        """Remove all accepted groups and reset the id counter."""
        with self._lock:
            self._groups.clear()
            self._buckets.clear()
            self._next_id = 0

    def reindex(self) -> list[int]:
        """Rebuild the retention time index. Must be called after retention times of accepted groups change.

        Accepted groups that became duplicates are resolved in id order using the same rules applied
        to candidates, so that each peak is assigned to a single group.

        :return: the ids of groups that were merged into other groups.

        """
        removed = list()
        with self._lock:
            groups = [self._groups[k] for k in sorted(self._groups)]
            self._groups.clear()
            self._buckets.clear()
            for group in groups:
                group_id = group.id
                if self._resolve(group) is None:
                    group.id = group_id
                    self._insert(group)
                else:
                    removed.append(group_id)
        return removed

    def _resolve(self, candidate: PeakGroup) -> MergeOutcome | None:
        for group_id in self._find_neighbours(candidate):
            accepted = self._groups[group_id]
            if not self.is_duplicate(candidate, accepted):
                continue

            candidate.id = group_id
            if candidate.quality > accepted.quality:
                candidate.fill_from(accepted)
                if not candidate.isotopes:
                    candidate.isotopes = accepted.isotopes
                if candidate.score is None:
                    candidate.score = accepted.score
                if candidate.compound is None:
                    candidate.compound = accepted.compound
                    candidate.expected_mz = accepted.expected_mz
                self._remove_from_index(accepted)
                self._insert(candidate)
                return MergeOutcome.REPLACED

            self._remove_from_index(accepted)
            n_added = accepted.fill_from(candidate)
            self._add_to_index(accepted)
            return MergeOutcome.MERGED if n_added else MergeOutcome.DISCARDED
        return None

    def _insert(self, group: PeakGroup) -> None:
        self._groups[group.id] = group
        self._add_to_index(group)

    def _get_bucket_range(self, group: PeakGroup, margin: float = 0.0) -> range:
        rt_min, rt_max = group.get_span()
        first = math.floor((rt_min - margin) / self.bucket_width)
        last = math.floor((rt_max + margin) / self.bucket_width)
        return range(first, last + 1)

    def _add_to_index(self, group: PeakGroup) -> None:
        for bucket in self._get_bucket_range(group):
            self._buckets.setdefault(bucket, set()).add(group.id)

    def _remove_from_index(self, group: PeakGroup) -> None:
        for bucket in self._get_bucket_range(group):
            ids = self._buckets.get(bucket)
            if ids is not None:
                ids.discard(group.id)
                if not ids:
                    del self._buckets[bucket]

    def _find_neighbours(self, group: PeakGroup) -> list[int]:
        # the margin covers apex distances for the apex metric
        neighbours: set[int] = set()
        for bucket in self._get_bucket_range(group, margin=self.rt_window):
            neighbours.update(self._buckets.get(bucket, ()))
        return sorted(neighbours)
