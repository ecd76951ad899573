"""Data models for chromatograms, peaks and peak groups."""

from __future__ import annotations

from typing import Iterable

import numpy as np
import pydantic
from typing_extensions import Self

from ..core.enums import IsotopeType, SmootherType
from ..core.exceptions import RepeatedSampleError
from ..core.models import Compound, LCPeaksBaseModel, MzSlice, RtCorrection
from ..utils.numpy import FloatArray1D, check_same_length


class Peak(pydantic.BaseModel):
    """A chromatographic peak detected on a chromatogram.

    Peaks store their descriptors by value and do not keep a reference to the chromatogram.
    The peak region is the inclusive index range ``[left, right]``.

    """

    model_config = pydantic.ConfigDict(frozen=True)

    sample_id: str
    """The sample where the peak was detected."""

    left: pydantic.NonNegativeInt
    """index in the chromatogram where the peak begins. Must be smaller than `apex`"""

    apex: pydantic.PositiveInt
    """index of the peak apex. Must be smaller than `right`."""

    right: pydantic.PositiveInt
    """index in the chromatogram where the peak ends, inclusive."""

    rt: float
    """The apex retention time."""

    rt_min: float
    """The peak start time."""

    rt_max: float
    """The peak end time."""

    mz: float = 0.0
    """The peak m/z, defined as the intensity-weighted m/z in the peak region."""

    apex_intensity: float
    """The raw intensity at the apex."""

    height: float
    """The smoothed baseline-corrected intensity at the apex."""

    baseline: float = 0.0
    """The baseline level at the apex."""

    area: float
    """Area of the smoothed baseline-corrected signal in the peak region."""

    raw_area: float
    """Area of the raw signal in the peak region."""

    corrected_area: float
    """Area of the baseline-corrected raw signal in the peak region."""

    fwhm: float
    """The full width at half maximum of the smoothed signal."""

    snr: float
    """The signal-to-noise ratio. Set to ``inf`` if the noise level is zero."""

    quality: float = pydantic.Field(default=0.0, ge=0.0, le=1.0)
    """Peak shape quality, the correlation between the peak and a gaussian with the same height and width."""

    @pydantic.model_validator(mode="after")
    def check_peak_definition(self) -> Self:
        """Check that left, apex and right indices are strictly sorted."""
        msg = "left must be lower than apex and apex must be lower than right"
        assert self.left < self.apex < self.right, msg
        return self

    def correct_rt(self, correction: RtCorrection) -> Peak:
        """Create a copy of the peak with retention times mapped through a correction."""
        rt, rt_min, rt_max = correction.apply([self.rt, self.rt_min, self.rt_max]).tolist()
        return self.model_copy(update={"rt": rt, "rt_min": rt_min, "rt_max": rt_max})


class Chromatogram(LCPeaksBaseModel):
    """Extracted ion chromatogram of a sample in a m/z and retention time region.

    Derived `baseline` and `smoothed` arrays are set by the peak picker and have the same
    length as the raw intensity.

    """

    sample_id: str
    """The sample where the chromatogram was extracted from."""

    time: FloatArray1D
    """Sorted retention time of each point."""

    spint: FloatArray1D
    """Raw intensity of each point. All values are assumed to be non-negative."""

    mz: FloatArray1D | None = None
    """Intensity-weighted m/z of each point. Points without signal are set to ``0.0``."""

    baseline: FloatArray1D | None = None
    """if provided, the estimated baseline at each point."""

    smoothed: FloatArray1D | None = None
    """if provided, the smoothed baseline-corrected intensity at each point."""

    baseline_window: int = 5
    """Window size used to smooth the baseline."""

    baseline_drop_top_x: float = 40.0
    """Percentage of the most intense points dropped when estimating the baseline."""

    smoother: SmootherType = SmootherType.GAUSSIAN
    """The smoother applied before peak picking."""

    peaks: list[Peak] = list()
    """Peaks detected on the chromatogram."""

    @pydantic.model_validator(mode="after")
    def check_array_sizes(self) -> Self:
        """Check that all arrays have the same length."""
        check_same_length(
            time=self.time, spint=self.spint, mz=self.mz, baseline=self.baseline, smoothed=self.smoothed
        )
        return self

    @property
    def size(self) -> int:
        """The number of points in the chromatogram."""
        return self.time.size

    def get_corrected(self) -> FloatArray1D:
        """Compute the baseline-corrected intensity. Negative values are set to zero."""
        if self.baseline is None:
            return self.spint.copy()
        return np.maximum(self.spint - self.baseline, 0.0)

    def get_region(self, rt_min: float, rt_max: float) -> FloatArray1D:
        """Compute a boolean mask of points with time in the closed interval ``[rt_min, rt_max]``."""
        return (self.time >= rt_min) & (self.time <= rt_max)


class IsotopeChannel(pydantic.BaseModel):
    """Peaks of an isotopologue of the compound associated with a peak group."""

    label: str
    """The channel label, e.g. ``C13-label-1``."""

    isotope: IsotopeType
    """The labelled isotope."""

    n_labels: pydantic.PositiveInt
    """The number of labelled atoms."""

    mz: float
    """The expected isotopologue m/z."""

    peaks: dict[str, Peak] = dict()
    """Map sample ids to isotopologue peaks."""


class PeakGroup(pydantic.BaseModel):
    """Peaks from different samples believed to correspond to the same chemical feature.

    A group holds at most one peak per sample.

    """

    id: int = -1
    """The group id. Assigned when the group is accepted. ``-1`` for candidate groups."""

    label: str = ""
    """The label of the batch that produced the group."""

    peaks: dict[str, Peak] = dict()
    """Map sample ids to peaks."""

    slice: MzSlice | None = None
    """The slice where the group was detected."""

    compound: Compound | None = None
    """The compound associated with the group."""

    expected_mz: float | None = None
    """The compound theoretical m/z."""

    isotopes: list[IsotopeChannel] = list()
    """Isotope channels pulled for the group compound."""

    score: float | None = None
    """Quality score assigned by an external scorer."""

    def add_peak(self, peak: Peak) -> None:
        """Add a peak to the group.

        :raises RepeatedSampleError: if the group already contains a peak from the same sample.

        """
        if peak.sample_id in self.peaks:
            raise RepeatedSampleError(f"Group {self.id} already contains a peak from sample {peak.sample_id}.")
        self.peaks[peak.sample_id] = peak

    def has_sample(self, sample_id: str) -> bool:
        """Check if the group contains a peak from a sample."""
        return sample_id in self.peaks

    def fill_from(self, other: PeakGroup) -> int:
        """Add peaks from another group for samples missing in this group.

        :return: the number of peaks added.

        """
        n = 0
        for sample_id, peak in other.peaks.items():
            if sample_id not in self.peaks:
                self.peaks[sample_id] = peak
                n += 1
        return n

    def count_good_peaks(self, min_quality: float) -> int:
        """Count peaks with quality greater or equal than `min_quality`."""
        return sum(1 for x in self.peaks.values() if x.quality >= min_quality)

    def get_span(self, sample_ids: Iterable[str] | None = None) -> tuple[float, float]:
        """Compute the retention time span of the group.

        :param sample_ids: restrict the span to peaks from these samples. If ``None``, use all peaks.

        """
        peaks = self._select(sample_ids)
        if not peaks:
            return 0.0, 0.0
        return min(x.rt_min for x in peaks), max(x.rt_max for x in peaks)

    def get_rt(self, sample_ids: Iterable[str] | None = None) -> float:
        """Compute the height-weighted mean apex retention time of the group.

        :param sample_ids: restrict the computation to peaks from these samples. If ``None``, use all peaks.

        """
        peaks = self._select(sample_ids)
        if not peaks:
            return 0.0
        rt = [x.rt for x in peaks]
        weights = [max(x.height, 0.0) for x in peaks]
        if sum(weights) > 0.0:
            return float(np.average(rt, weights=weights))
        return float(np.mean(rt))

    def correct_rt(self, corrections: dict[str, RtCorrection]) -> None:
        """Map the retention time of peaks through per-sample corrections. Samples without correction are kept."""
        for sample_id, peak in self.peaks.items():
            if sample_id in corrections:
                self.peaks[sample_id] = peak.correct_rt(corrections[sample_id])
        for channel in self.isotopes:
            for sample_id, peak in channel.peaks.items():
                if sample_id in corrections:
                    channel.peaks[sample_id] = peak.correct_rt(corrections[sample_id])

    def _select(self, sample_ids: Iterable[str] | None) -> list[Peak]:
        if sample_ids is None:
            return list(self.peaks.values())
        return [self.peaks[x] for x in sample_ids if x in self.peaks]

    @pydantic.computed_field
    @property
    def rt(self) -> float:
        """The height-weighted mean apex retention time."""
        return self.get_rt()

    @pydantic.computed_field
    @property
    def rt_min(self) -> float:
        """The minimum start time of the group peaks."""
        return self.get_span()[0]

    @pydantic.computed_field
    @property
    def rt_max(self) -> float:
        """The maximum end time of the group peaks."""
        return self.get_span()[1]

    @pydantic.computed_field
    @property
    def mz(self) -> float:
        """The height-weighted m/z centroid of the group peaks."""
        peaks = [x for x in self.peaks.values() if x.mz > 0.0]
        if not peaks:
            return 0.0
        weights = [max(x.height, 0.0) for x in peaks]
        if sum(weights) > 0.0:
            return float(np.average([x.mz for x in peaks], weights=weights))
        return float(np.mean([x.mz for x in peaks]))

    @pydantic.computed_field
    @property
    def quality(self) -> float:
        """The group quality, defined as the maximum quality of its peaks."""
        return max((x.quality for x in self.peaks.values()), default=0.0)

    @pydantic.computed_field
    @property
    def max_intensity(self) -> float:
        """The maximum apex intensity of the group peaks."""
        return max((x.apex_intensity for x in self.peaks.values()), default=0.0)

    @pydantic.computed_field
    @property
    def max_snr(self) -> float:
        """The maximum signal-to-noise ratio of the group peaks."""
        return max((x.snr for x in self.peaks.values()), default=0.0)
