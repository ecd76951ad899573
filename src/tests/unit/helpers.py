"""Helpers functions for unit tests."""

from __future__ import annotations

import numpy as np

from lcpeaks import simulation
from lcpeaks.core.models import MSSpectrum, Sample
from lcpeaks.io.data import InMemorySampleData
from lcpeaks.lcms.models import Chromatogram, Peak, PeakGroup


def create_chromatogram(
    n: int = 200,
    peaks: list[tuple[int, float, float]] | None = None,
    offset: float = 0.0,
    sample_id: str = "sample",
    time_step: float = 1.0,
) -> Chromatogram:
    """Create a chromatogram with truncated gaussian peaks defined as (apex index, height, width in points)."""
    if peaks is None:
        peaks = [(n // 2, 1000.0, 5.0)]
    index = np.arange(n)
    spint = np.full(n, offset, dtype=float)
    for apex, height, width in peaks:
        z = (index - apex) / width
        spint += np.where(np.abs(z) <= 4.0, height * np.exp(-0.5 * z**2), 0.0)
    return Chromatogram(sample_id=sample_id, time=index * time_step, spint=spint)


def create_peak(
    sample_id: str = "sample",
    rt: float = 10.0,
    rt_min: float | None = None,
    rt_max: float | None = None,
    height: float = 100.0,
    quality: float = 0.9,
    mz: float = 200.0,
    **kwargs,
) -> Peak:
    """Create a peak with descriptors consistent with its apex time."""
    params = {
        "left": 0,
        "apex": 5,
        "right": 10,
        "apex_intensity": height,
        "area": height,
        "raw_area": height,
        "corrected_area": height,
        "fwhm": 0.5,
        "snr": 10.0,
    }
    params.update(kwargs)
    return Peak(
        sample_id=sample_id,
        rt=rt,
        rt_min=rt - 1.0 if rt_min is None else rt_min,
        rt_max=rt + 1.0 if rt_max is None else rt_max,
        height=height,
        quality=quality,
        mz=mz,
        **params,
    )


def create_group(*peaks: Peak, **kwargs) -> PeakGroup:
    group = PeakGroup(**kwargs)
    for peak in peaks:
        group.add_peak(peak)
    return group


def create_sample_data(
    id: str = "sample",
    rt: float | list[float] = 10.0,
    mz: float = 200.0,
    n_scans: int = 1500,
    time_resolution: float = 0.01,
    width: float = 0.1,
) -> InMemorySampleData:
    """Create a simulated sample with one feature per retention time value."""
    rt_list = rt if isinstance(rt, list) else [rt]
    features = [simulation.SimulatedFeature(mz=mz, rt=x, int=1000.0, width=width) for x in rt_list]
    config = simulation.SimulatedSampleConfiguration(n_scans=n_scans, time_resolution=time_resolution)
    return simulation.SimulatedSampleFactory(config=config, features=features)(id)


def create_scan_data(id: str = "sample", n_scans: int = 10) -> InMemorySampleData:
    """Create sample data with an MS1 and an MS2 scan at each integer time.

    The MS1 scan intensity at m/z 100 is equal to the scan time. The MS2 scans have precursor
    m/z 200, collision energy 20 and filter line ``srm-1``.

    """
    spectra = list()
    for k in range(n_scans):
        ms1 = MSSpectrum(index=2 * k, mz=np.array([100.0, 200.0]), int=np.array([float(k), 10.0]), time=float(k))
        ms2 = MSSpectrum(
            index=2 * k + 1,
            mz=np.array([50.0, 80.0]),
            int=np.array([1.0, 2.0 * k]),
            time=float(k),
            ms_level=2,
            precursor_mz=200.0,
            collision_energy=20.0,
            filter_line="srm-1",
        )
        spectra.extend([ms1, ms2])
    return InMemorySampleData(Sample(id=id), spectra)
