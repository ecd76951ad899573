"""Peak detection and cross-sample clustering in a single slice."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING, Sequence

import pydantic

from ..core.config import PeakDetectorConfiguration
from ..core.enums import PeakRanking
from ..core.exceptions import SampleDataError
from ..core.models import MzSlice
from .eic import EicBuilder
from .models import Peak, PeakGroup
from .signal import check_window

if TYPE_CHECKING:
    from typing import assert_never

    from ..io.data import SampleData

logger = getLogger(__name__)


class SkippedUnit(pydantic.BaseModel):
    """Record of a slice, or a sample within a slice, that could not be processed."""

    slice_index: int
    """The position of the slice in the processed batch."""

    sample_id: str | None = None
    """The sample that failed. ``None`` if the whole slice failed."""

    reason: str
    """The error message."""


class SliceResult(pydantic.BaseModel):
    """Candidate groups created from a slice."""

    slice_index: int
    """The position of the slice in the processed batch."""

    groups: list[PeakGroup] = list()
    """Candidate groups, sorted by retention time."""

    skipped: list[SkippedUnit] = list()
    """Samples that could not be processed."""

    n_chromatograms: int = 0
    """The number of chromatograms built in the slice."""


class SliceProcessor:
    """Create candidate peak groups from a slice.

    A chromatogram is built for each sample and peaks are picked on it. Peaks from all samples are
    then clustered by apex time, keeping at most one peak per sample in each cluster.

    :param config: the peak detector configuration
    :param builder: the chromatogram builder. If not provided, it is created from the configuration.

    """

    def __init__(self, config: PeakDetectorConfiguration, builder: EicBuilder | None = None):
        self.config = config
        self.builder = EicBuilder.from_config(config) if builder is None else builder

    def process(self, mz_slice: MzSlice, samples: Sequence[SampleData], index: int = 0) -> SliceResult:
        """Create candidate groups.

        :param mz_slice: the slice to process
        :param samples: the samples where peaks are searched
        :param index: the slice position in the batch, used to identify skipped units
        :raises ConfigurationError: if the slice windows or processing windows are not valid.

        """
        mz_slice.check()
        check_window(self.config.smoothing_window, "smoothing_window")
        check_window(self.config.baseline_window, "baseline_window")

        peaks: list[Peak] = list()
        skipped: list[SkippedUnit] = list()
        n_chromatograms = 0
        for data in samples:
            sample_id = data.get_sample().id
            try:
                chromatogram = self.builder.build(data, mz_slice, detect_peaks=True)
            except SampleDataError as e:
                logger.warning(f"Skipping sample `{sample_id}` in slice {index}: {e}")
                skipped.append(SkippedUnit(slice_index=index, sample_id=sample_id, reason=str(e)))
                continue

            if chromatogram is not None:
                n_chromatograms += 1
                peaks.extend(chromatogram.peaks)

        clusters = cluster_peaks(peaks, self.config.grouping_rt_window, self.config.best_peak_by)

        compound = mz_slice.compound
        expected_mz = None if compound is None else compound.mz
        groups = list()
        for cluster in clusters:
            group = PeakGroup(slice=mz_slice, compound=compound, expected_mz=expected_mz)
            for peak in cluster:
                group.add_peak(peak)
            groups.append(group)

        groups = filter_groups(groups, self.config)
        logger.debug(f"Slice {index}: {len(peaks)} peaks clustered into {len(groups)} candidate groups.")
        return SliceResult(slice_index=index, groups=groups, skipped=skipped, n_chromatograms=n_chromatograms)


def cluster_peaks(peaks: Sequence[Peak], rt_window: float, rank_by: PeakRanking = PeakRanking.AREA) -> list[list[Peak]]:
    """Cluster peaks from different samples by apex time.

    The most intense unassigned peak seeds a cluster. For every other sample, the best peak with
    apex time within `rt_window` of the seed apex is added to the cluster. The process is repeated
    until all peaks are assigned.

    :param peaks: peaks from all samples
    :param rt_window: maximum apex time distance to the seed peak
    :param rank_by: descriptor used to choose a sample peak when several are in the window. Ties are
        solved using the closest peak to the seed.
    :return: the clusters, sorted by seed apex time. Each cluster contains at most one peak per sample.

    """
    pool = sorted(peaks, key=lambda x: (-x.height, x.rt, x.sample_id, x.apex))
    clusters = list()
    while pool:
        seed = pool.pop(0)
        in_window: dict[str, list[Peak]] = dict()
        for peak in pool:
            if peak.sample_id != seed.sample_id and abs(peak.rt - seed.rt) <= rt_window:
                in_window.setdefault(peak.sample_id, list()).append(peak)

        cluster = [seed]
        for sample_id in sorted(in_window):
            best = min(in_window[sample_id], key=lambda x: (-_rank_value(x, rank_by), abs(x.rt - seed.rt), x.apex))
            cluster.append(best)
            pool.remove(best)
        clusters.append(cluster)
    return sorted(clusters, key=lambda x: (x[0].rt, x[0].sample_id))


def _rank_value(peak: Peak, rank_by: PeakRanking) -> float:
    match rank_by:
        case PeakRanking.AREA:
            return peak.area
        case PeakRanking.SNR:
            return peak.snr
        case _ as never:
            assert_never(never)


def filter_groups(groups: list[PeakGroup], config: PeakDetectorConfiguration) -> list[PeakGroup]:
    """Remove candidate groups that do not pass the group filters.

    If `max_groups_per_slice` is set, the best groups, ranked by quality and then by intensity, are kept.

    :return: the filtered groups, preserving the input order.

    """
    result = list()
    for group in groups:
        if group.count_good_peaks(config.min_peak_quality) < config.min_good_group_count:
            continue
        if group.max_intensity < config.min_group_intensity:
            continue
        if group.max_snr < config.min_signal_baseline_ratio:
            continue
        if config.match_rt and group.compound is not None and group.compound.expected_rt is not None:
            if abs(group.rt - group.compound.expected_rt) > config.compound_rt_window:
                continue
        result.append(group)

    n_max = config.max_groups_per_slice
    if n_max is not None and len(result) > n_max:
        ranked = sorted(range(len(result)), key=lambda k: (-result[k].quality, -result[k].max_intensity, k))
        keep = sorted(ranked[:n_max])
        result = [result[k] for k in keep]
    return result
