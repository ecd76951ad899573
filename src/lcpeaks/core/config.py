"""Peak detector configuration."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pydantic
from typing_extensions import Self

from .enums import (
    IsotopeType,
    MSInstrument,
    OverlapMetric,
    PeakRanking,
    Polarity,
    SeparationMode,
    SmootherType,
    ToleranceUnit,
)

if TYPE_CHECKING:
    from typing import assert_never


class PeakDetectorConfiguration(pydantic.BaseModel):
    """Store the numeric parameters used to build chromatograms, pick peaks and group them.

    The configuration is immutable and is shared read-only by every worker during a batch.

    Window sizes are plain integers: invalid values are rejected when a slice is processed,
    failing that slice only.

    """

    model_config = pydantic.ConfigDict(frozen=True)

    # EIC construction and peak picking
    smoothing_window: int = 10
    """Smoothing window size, in number of points."""

    smoother: SmootherType = SmootherType.GAUSSIAN
    """The smoother applied to the baseline-corrected signal. May be set using the integer index."""

    baseline_window: int = 5
    """Window size, in number of points, of the gaussian kernel used to smooth the baseline."""

    baseline_drop_top_x: float = pydantic.Field(default=40.0, ge=0.0, le=100.0)
    """Percentage of the most intense points clipped when estimating the baseline."""

    min_peak_intensity: pydantic.NonNegativeFloat = 0.0
    """Minimum baseline-corrected smoothed height of a peak apex."""

    min_snr: pydantic.NonNegativeFloat = 0.0
    """Minimum signal-to-noise ratio of a peak apex."""

    min_peak_points: pydantic.PositiveInt = 3
    """Minimum number of points in the peak region."""

    amu_q1: pydantic.NonNegativeFloat = 0.5
    """Precursor m/z tolerance for MRM transitions."""

    amu_q3: pydantic.NonNegativeFloat = 0.5
    """Product m/z tolerance for MRM transitions."""

    # grouping
    grouping_rt_window: pydantic.NonNegativeFloat = 0.5
    """Maximum apex time distance between peaks of the same candidate group."""

    best_peak_by: PeakRanking = PeakRanking.AREA
    """Descriptor used to choose the peak of a sample when several fall in the grouping window."""

    min_peak_quality: float = pydantic.Field(default=0.0, ge=0.0, le=1.0)
    """Minimum quality of a peak to be counted as good."""

    min_good_group_count: pydantic.NonNegativeInt = 1
    """Minimum number of good peaks in a candidate group."""

    min_group_intensity: pydantic.NonNegativeFloat = 0.0
    """Minimum apex intensity of the most intense peak in a candidate group."""

    min_signal_baseline_ratio: pydantic.NonNegativeFloat = 0.0
    """Minimum signal-to-noise ratio of the best peak in a candidate group."""

    max_groups_per_slice: pydantic.PositiveInt | None = None
    """Keep only the best candidate groups of each slice. If ``None``, keep all."""

    # deduplication
    overlap_metric: OverlapMetric = OverlapMetric.SHORTEST
    """Metric used to compare retention time spans of peak groups."""

    overlap_threshold: float = pydantic.Field(default=0.9, ge=0.0, le=1.0)
    """Groups with overlap greater or equal than this value are considered duplicates."""

    merge_ppm: pydantic.NonNegativeFloat = 10.0
    """Maximum m/z distance, in ppm, between duplicated groups."""

    rt_bucket_width: pydantic.PositiveFloat = 10.0
    """Width of the retention time buckets used to index accepted groups."""

    # compounds
    compound_mz_tolerance: pydantic.NonNegativeFloat = 10.0
    """Half width of the m/z window of slices created from compounds."""

    compound_mz_tolerance_unit: ToleranceUnit = ToleranceUnit.PPM
    """Units of `compound_mz_tolerance`."""

    compound_rt_window: pydantic.NonNegativeFloat = 2.0
    """Half width of the retention time window of slices created from compounds with an expected RT."""

    match_rt: bool = False
    """Drop compound groups whose retention time is farther than `compound_rt_window` from the expected RT."""

    # isotopes
    pull_isotopes: bool = False
    """Pull isotopes of compound groups after each batch."""

    isotope_types: tuple[IsotopeType, ...] = (IsotopeType.C13,)
    """Isotopes searched when pulling isotopes."""

    max_isotopes: pydantic.PositiveInt = 3
    """Maximum number of labelled atoms searched for each isotope type."""

    isotope_mz_tolerance: pydantic.NonNegativeFloat = 10.0
    """Half width, in ppm, of the m/z window of isotope slices."""

    isotope_rt_tolerance: pydantic.NonNegativeFloat = 0.5
    """Maximum apex time distance between an isotope peak and its parent peak."""

    min_isotope_correlation: float = pydantic.Field(default=0.2, ge=-1.0, le=1.0)
    """Minimum Pearson correlation between parent and isotope chromatograms in the parent peak region."""

    # alignment and execution
    align_samples: bool = False
    """Align samples after a first pass and process the slices again."""

    max_workers: pydantic.PositiveInt = 1
    """Maximum number of threads used to process slices. ``1`` processes slices sequentially."""

    def get_mz_tolerance(self, mz: float) -> float:
        """Compute the half width of the m/z window of a compound slice, in Da."""
        match self.compound_mz_tolerance_unit:
            case ToleranceUnit.PPM:
                return mz * self.compound_mz_tolerance / 1e6
            case ToleranceUnit.DA:
                return self.compound_mz_tolerance
            case _ as never:
                assert_never(never)

    @classmethod
    def from_defaults(cls, instrument: MSInstrument, separation: SeparationMode, polarity: Polarity) -> Self:
        """Create a new configuration with sane defaults for the experimental setup.

        :param instrument: the instrument type used in the experimental setup
        :param separation: the LC platform used in the experimental setup
        :param polarity: the MS polarity used in the experiment. Defaults are the same for both polarities.

        """
        params = dict()

        match instrument:
            case MSInstrument.QTOF:
                params["merge_ppm"] = 20.0
                params["compound_mz_tolerance"] = 20.0
                params["isotope_mz_tolerance"] = 20.0
            case MSInstrument.ORBITRAP:
                params["merge_ppm"] = 5.0
                params["compound_mz_tolerance"] = 5.0
                params["isotope_mz_tolerance"] = 5.0
            case MSInstrument.QQQ:
                params["amu_q1"] = 0.5
                params["amu_q3"] = 0.5
                params["compound_mz_tolerance"] = 0.5
                params["compound_mz_tolerance_unit"] = ToleranceUnit.DA
            case _ as never:
                assert_never(never)

        match separation:
            case SeparationMode.HPLC:
                params["grouping_rt_window"] = 1.0
                params["smoothing_window"] = 10
            case SeparationMode.UPLC:
                params["grouping_rt_window"] = 0.5
                params["smoothing_window"] = 5
            case _ as never:
                assert_never(never)

        return cls(**params)
