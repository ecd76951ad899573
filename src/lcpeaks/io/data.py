"""Access to in-memory raw MS data of a sample."""

from __future__ import annotations

from typing import Generator, Protocol, Sequence

import numpy as np

from ..core.enums import Polarity
from ..core.exceptions import AlignmentError
from ..core.models import MSSpectrum, RtCorrection, Sample
from ..lcms.models import Chromatogram
from ..utils.numpy import FloatArray1D, find_range

COLLISION_ENERGY_TOLERANCE = 0.5


class SampleData(Protocol):
    """Sample data provider interface.

    Implementations provide chromatograms for m/z windows, MRM transitions and SRM traces
    from pre-loaded scans, together with sample metadata.

    """

    def get_sample(self) -> Sample:
        """Retrieve the sample metadata."""
        ...

    def get_n_scans(self) -> int:
        """Retrieve the total number of scans."""
        ...

    def get_polarity(self) -> Polarity:
        """Retrieve the sample polarity."""
        ...

    def get_mz_range(self) -> tuple[float, float]:
        """Retrieve the minimum and maximum m/z in the sample."""
        ...

    def get_rt_range(self) -> tuple[float, float]:
        """Retrieve the minimum and maximum retention time in the sample."""
        ...

    def get_time(self) -> FloatArray1D:
        """Retrieve the retention time of all scans, with retention time corrections applied."""
        ...

    def get_eic(self, mzmin: float, mzmax: float, rtmin: float, rtmax: float, ms_level: int = 1) -> Chromatogram | None:
        """Create a chromatogram by summing the intensity in a m/z window across scans in a retention time window."""
        ...

    def get_mrm_eic(
        self,
        precursor_mz: float,
        collision_energy: float | None,
        product_mz: float,
        amu_q1: float,
        amu_q3: float,
    ) -> Chromatogram | None:
        """Create a chromatogram of an MRM transition."""
        ...

    def get_srm_eic(self, srm_id: str) -> Chromatogram | None:
        """Create a chromatogram from the scans of an SRM trace."""
        ...

    def apply_rt_correction(self, correction: RtCorrection) -> None:
        """Apply a retention time correction to the scans."""
        ...


class InMemorySampleData:
    """Store the scans of a sample in memory.

    Scans are sorted by acquisition time. Retention time corrections are applied to a copy
    of the scan times, scans are never modified.

    :param sample: the sample metadata
    :param spectra: the sample scans

    """

    def __init__(self, sample: Sample, spectra: Sequence[MSSpectrum]):
        self._sample = sample
        self._spectra = sorted(spectra, key=lambda x: (x.time, x.index))
        self._time = np.array([x.time for x in self._spectra], dtype=float)
        self._srm_index = self._create_srm_index()

    def __iter__(self) -> Generator[MSSpectrum, None, None]:
        """Iterate over all spectra in the data."""
        yield from self._spectra

    def get_sample(self) -> Sample:
        """Retrieve the sample metadata."""
        return self._sample

    def get_n_scans(self) -> int:
        """Retrieve the total number of scans."""
        return len(self._spectra)

    def get_polarity(self) -> Polarity:
        """Retrieve the sample polarity."""
        return self._sample.polarity

    def get_mz_range(self) -> tuple[float, float]:
        """Retrieve the minimum and maximum m/z in the sample. ``(0.0, 0.0)`` if the sample is empty."""
        non_empty = [x.mz for x in self if x.mz.size]
        if not non_empty:
            return 0.0, 0.0
        return min(x[0] for x in non_empty).item(), max(x[-1] for x in non_empty).item()

    def get_rt_range(self) -> tuple[float, float]:
        """Retrieve the minimum and maximum retention time in the sample. ``(0.0, 0.0)`` if the sample is empty."""
        if not self._time.size:
            return 0.0, 0.0
        return self._time[0].item(), self._time[-1].item()

    def get_time(self) -> FloatArray1D:
        """Retrieve the retention time of all scans, with retention time corrections applied."""
        return self._time.copy()

    def get_eic(self, mzmin: float, mzmax: float, rtmin: float, rtmax: float, ms_level: int = 1) -> Chromatogram | None:
        """Create a chromatogram by summing the intensity in a m/z window across scans in a retention time window.

        :return: the chromatogram or ``None`` if there are no scans in the retention time window.

        """
        start, end = find_range(self._time, rtmin, rtmax)
        selected = [k for k in range(start, end) if self._spectra[k].ms_level == ms_level]
        if not selected:
            return None

        spint = np.zeros(len(selected))
        mz = np.zeros(len(selected))
        for i, k in enumerate(selected):
            spint[i], mz[i] = self._spectra[k].get_intensity(mzmin, mzmax)
        return Chromatogram(sample_id=self._sample.id, time=self._time[selected], spint=spint, mz=mz)

    def get_mrm_eic(
        self,
        precursor_mz: float,
        collision_energy: float | None,
        product_mz: float,
        amu_q1: float,
        amu_q3: float,
    ) -> Chromatogram | None:
        """Create a chromatogram of an MRM transition.

        Scans are selected if the precursor m/z is within `amu_q1` of the transition precursor. If
        both the scan and the transition define a collision energy, they must also match. The
        intensity of points within `amu_q3` of the product m/z is summed.

        :return: the chromatogram or ``None`` if no scan matches the transition.

        """
        selected = list()
        for k, sp in enumerate(self):
            if sp.precursor_mz is None or abs(sp.precursor_mz - precursor_mz) > amu_q1:
                continue
            if collision_energy is not None and sp.collision_energy is not None:
                if abs(sp.collision_energy - collision_energy) > COLLISION_ENERGY_TOLERANCE:
                    continue
            selected.append(k)

        if not selected:
            return None

        spint = np.zeros(len(selected))
        mz = np.zeros(len(selected))
        for i, k in enumerate(selected):
            spint[i], mz[i] = self._spectra[k].get_intensity(product_mz - amu_q3, product_mz + amu_q3)
        return Chromatogram(sample_id=self._sample.id, time=self._time[selected], spint=spint, mz=mz)

    def get_srm_eic(self, srm_id: str) -> Chromatogram | None:
        """Create a chromatogram from the total intensity of scans with a filter line equal to `srm_id`.

        :return: the chromatogram or ``None`` if the sample does not contain the SRM trace.

        """
        selected = self._srm_index.get(srm_id)
        if not selected:
            return None

        spint = np.zeros(len(selected))
        mz = np.zeros(len(selected))
        for i, k in enumerate(selected):
            sp = self._spectra[k]
            if sp.mz.size:
                spint[i], mz[i] = sp.get_intensity(sp.mz[0], sp.mz[-1])
        return Chromatogram(sample_id=self._sample.id, time=self._time[selected], spint=spint, mz=mz)

    def apply_rt_correction(self, correction: RtCorrection) -> None:
        """Map the current scan times through a retention time correction.

        :raises AlignmentError: if the correction was computed for another sample.

        """
        if correction.sample_id != self._sample.id:
            msg = f"Cannot apply correction of sample {correction.sample_id} to sample {self._sample.id}."
            raise AlignmentError(msg)
        self._time = np.maximum.accumulate(correction.apply(self._time))

    def _create_srm_index(self) -> dict[str, list[int]]:
        index: dict[str, list[int]] = dict()
        for k, sp in enumerate(self._spectra):
            if sp.filter_line is not None:
                index.setdefault(sp.filter_line, list()).append(k)
        return index
