"""Search of isotopologue peaks of compound groups."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING, Mapping, Sequence

import numpy as np

from ..core.config import PeakDetectorConfiguration
from ..core.enums import IsotopeType
from ..core.models import MzSlice
from .eic import EicBuilder
from .models import Chromatogram, IsotopeChannel, Peak, PeakGroup

if TYPE_CHECKING:
    from ..io.data import SampleData

logger = getLogger(__name__)

ISOTOPE_MASS_DELTA = {
    IsotopeType.C13: 1.0033548378,
    IsotopeType.N15: 0.9970348934,
    IsotopeType.D2: 1.0062767,
    IsotopeType.S34: 1.9957959,
}
"""Mass difference between the heavy and the most abundant isotope of each element."""


def get_isotope_mz(mz: float, isotope: IsotopeType, n_labels: int, charge: int) -> float:
    """Compute the m/z of an isotopologue with `n_labels` heavy atoms.

    :param mz: the m/z of the monoisotopic ion
    :param isotope: the labelled isotope
    :param n_labels: the number of heavy atoms
    :param charge: the ion charge

    """
    if charge == 0:
        raise ValueError("Cannot compute isotope m/z of an ion with zero charge.")
    return mz + n_labels * ISOTOPE_MASS_DELTA[isotope] / abs(charge)


def create_mz_window_slice(mz: float, tolerance: float, rtmin: float, rtmax: float) -> MzSlice:
    """Create a slice centered at `mz` with a m/z tolerance in ppm."""
    delta = mz * tolerance / 1e6
    return MzSlice(mzmin=mz - delta, mzmax=mz + delta, rtmin=max(rtmin, 0.0), rtmax=rtmax)


def find_closest_peak(peaks: Sequence[Peak], rt: float, tolerance: float) -> Peak | None:
    """Find the peak with apex closest to `rt`. ``None`` if no peak apex is within `tolerance`."""
    candidates = [x for x in peaks if abs(x.rt - rt) <= tolerance]
    if not candidates:
        return None
    return min(candidates, key=lambda x: (abs(x.rt - rt), x.apex))


def compute_region_correlation(parent: Chromatogram, isotope: Chromatogram, rt_min: float, rt_max: float) -> float:
    """Compute the Pearson correlation between two chromatograms in a retention time region.

    Both chromatograms must be built from the same scans.

    :return: the correlation coefficient. ``0.0`` if the region has less than three points or one of
        the signals is constant.

    """
    if parent.size != isotope.size:
        return 0.0
    mask = parent.get_region(rt_min, rt_max)
    x = parent.spint[mask]
    y = isotope.spint[mask]
    if x.size < 3 or np.ptp(x) == 0.0 or np.ptp(y) == 0.0:
        return 0.0
    return float(np.corrcoef(x, y)[0, 1])


class IsotopePuller:
    """Attach isotopologue peaks to groups associated with a compound.

    For each configured isotope and for ``k = 1 .. max_isotopes`` labelled atoms, an untargeted slice
    is created at the isotopologue m/z, and peaks are searched in the samples of the group. The
    isotopologue peak with apex closest to the parent apex is kept if its chromatogram correlates
    with the parent chromatogram in the parent peak region.

    :param config: the peak detector configuration
    :param builder: the chromatogram builder. If not provided, it is created from the configuration.

    """

    def __init__(self, config: PeakDetectorConfiguration, builder: EicBuilder | None = None):
        self.config = config
        self.builder = EicBuilder.from_config(config) if builder is None else builder

    def pull(self, group: PeakGroup, samples: Mapping[str, SampleData]) -> PeakGroup:
        """Search isotopologues of a group.

        Groups without a compound are returned unmodified. Otherwise, the group isotope channels
        are replaced with the channels found.

        :param group: the group to process
        :param samples: map sample ids to sample data. Group samples missing in the mapping are ignored.
        :return: the same group instance

        """
        compound = group.compound
        if compound is None or not group.peaks:
            return group

        mz = group.expected_mz if group.expected_mz is not None else compound.mz
        tolerance = self.config.isotope_mz_tolerance
        rt_tolerance = self.config.isotope_rt_tolerance
        rt_min, rt_max = group.get_span()
        rt_min, rt_max = rt_min - rt_tolerance, rt_max + rt_tolerance
        parent_slice = create_mz_window_slice(mz, tolerance, rt_min, rt_max)

        parents: dict[str, Chromatogram] = dict()
        for sample_id in sorted(group.peaks):
            data = samples.get(sample_id)
            if data is None:
                logger.warning(f"Sample `{sample_id}` of group {group.id} not found. Skipping isotope search.")
                continue
            chromatogram = self.builder.build(data, parent_slice)
            if chromatogram is not None:
                parents[sample_id] = chromatogram

        channels = list()
        for isotope in self.config.isotope_types:
            for n_labels in range(1, self.config.max_isotopes + 1):
                isotope_mz = get_isotope_mz(mz, isotope, n_labels, compound.charge)
                isotope_slice = create_mz_window_slice(isotope_mz, tolerance, rt_min, rt_max)
                channel = IsotopeChannel(
                    label=f"{isotope.value}-label-{n_labels}", isotope=isotope, n_labels=n_labels, mz=isotope_mz
                )
                for sample_id, parent_chromatogram in parents.items():
                    peak = self._find_isotope_peak(
                        samples[sample_id], isotope_slice, group.peaks[sample_id], parent_chromatogram
                    )
                    if peak is not None:
                        channel.peaks[sample_id] = peak
                if channel.peaks:
                    channels.append(channel)

        logger.debug(f"Found {len(channels)} isotope channels for group {group.id}.")
        group.isotopes = channels
        return group

    def _find_isotope_peak(
        self, data: SampleData, isotope_slice: MzSlice, parent: Peak, parent_chromatogram: Chromatogram
    ) -> Peak | None:
        chromatogram = self.builder.build(data, isotope_slice, detect_peaks=True)
        if chromatogram is None:
            return None
        peak = find_closest_peak(chromatogram.peaks, parent.rt, self.config.isotope_rt_tolerance)
        if peak is None:
            return None
        r = compute_region_correlation(parent_chromatogram, chromatogram, parent.rt_min, parent.rt_max)
        if r < self.config.min_isotope_correlation:
            return None
        return peak
