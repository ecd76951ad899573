"""Utilities to simulate LC-MS data.

Provides:

SimulatedSampleFactory
    A pydantic model that creates in-memory sample data from feature specifications.
MSSpectrumFactory
    Creates the MS1 and MS2 scans of a simulated sample.

"""

from __future__ import annotations

import numpy as np
import pydantic

from .core.enums import IsotopeType
from .core.models import Compound, MSSpectrum, Sample
from .io.data import InMemorySampleData
from .lcms.isotopes import ISOTOPE_MASS_DELTA
from .utils.numpy import FloatArray1D

TRUNCATE_WIDTHS = 4.0
"""Feature signals are set to zero beyond this number of widths from the apex."""


class SimulatedSampleConfiguration(pydantic.BaseModel):
    """Store configuration of a simulated LC-MS sample."""

    n_scans: pydantic.PositiveInt = 500
    """The number of MS1 scans in the sample"""

    time_resolution: pydantic.PositiveFloat = 1.0
    """The time spacing between scans"""

    mz_noise: pydantic.NonNegativeFloat = 0.0
    """Additive noise added to m/z in each scan"""

    amp_noise: pydantic.NonNegativeFloat = 0.0
    """additive noise added to spectral intensity on each scan"""

    min_signal_intensity: pydantic.PositiveFloat | None = None
    """If specified, elements in a spectrum with values lower than this parameter are removed"""

    seed: int | None = None
    """Seed of the random generator used to create noise."""


class SimulatedFeature(pydantic.BaseModel):
    """Store a simulated LC-MS peak information."""

    mz: pydantic.PositiveFloat
    """The feature m/z."""

    rt: pydantic.NonNegativeFloat
    """The feature retention time."""

    int: pydantic.PositiveFloat
    """the feature height."""

    width: pydantic.PositiveFloat = 3.0
    """The peak width in the time domain, as the gaussian standard deviation."""

    def compute_profile(self, time: FloatArray1D | float) -> FloatArray1D:
        """Compute the feature intensity at the provided times."""
        z = (np.asarray(time, dtype=float) - self.rt) / self.width
        return np.where(np.abs(z) <= TRUNCATE_WIDTHS, self.int * np.exp(-0.5 * z**2), 0.0)


class SimulatedCompoundSpec(pydantic.BaseModel):
    """Define the monoisotopic and isotopologue features of a compound."""

    compound: Compound
    """The simulated compound. The monoisotopic feature m/z is the compound m/z."""

    rt: pydantic.NonNegativeFloat
    """The compound retention time"""

    int: pydantic.PositiveFloat = 1000.0
    """The monoisotopic feature height."""

    width: pydantic.PositiveFloat = 3.0
    """The features peak width"""

    isotope: IsotopeType = IsotopeType.C13
    """The isotope used to create isotopologue features."""

    abundances: list[pydantic.PositiveFloat] = list()
    """Abundance of the isotopologue with ``k + 1`` labelled atoms, relative to the monoisotopic feature."""

    def create_features(self) -> list[SimulatedFeature]:
        """Create the compound features."""
        mz = self.compound.mz
        delta = ISOTOPE_MASS_DELTA[self.isotope] / abs(self.compound.charge)
        features = [SimulatedFeature(mz=mz, rt=self.rt, int=self.int, width=self.width)]
        for k, abundance in enumerate(self.abundances, start=1):
            features.append(SimulatedFeature(mz=mz + k * delta, rt=self.rt, int=self.int * abundance, width=self.width))
        return features


class SimulatedTransition(pydantic.BaseModel):
    """Define an MRM transition measured on each scan cycle."""

    precursor_mz: pydantic.PositiveFloat
    """The precursor m/z"""

    product_mz: pydantic.PositiveFloat
    """The product m/z"""

    collision_energy: float | None = None
    """The collision energy"""

    filter_line: str | None = None
    """The scan filter line, used as SRM id."""

    rt: pydantic.NonNegativeFloat
    """The transition peak retention time"""

    int: pydantic.PositiveFloat = 1000.0
    """The transition peak height"""

    width: pydantic.PositiveFloat = 3.0
    """The transition peak width"""

    def as_feature(self) -> SimulatedFeature:
        """Create the product ion feature."""
        return SimulatedFeature(mz=self.product_mz, rt=self.rt, int=self.int, width=self.width)


class SimulatedSampleFactory(pydantic.BaseModel):
    """Utility that creates simulated sample data."""

    config: SimulatedSampleConfiguration = SimulatedSampleConfiguration()
    """The sample configuration used to simulate data."""

    features: list[SimulatedFeature] = list()
    """MS1 features included in the sample."""

    compounds: list[SimulatedCompoundSpec] = list()
    """Compounds included in the sample. Their features are added to the MS1 features."""

    transitions: list[SimulatedTransition] = list()
    """MRM transitions measured after each MS1 scan."""

    def __call__(self, id: str, **kwargs) -> InMemorySampleData:
        """Create a new simulated sample.

        :param id: the id for the sample
        :param kwargs: extra sample information passed to the :py:class:`lcpeaks.Sample` constructor.

        """
        sample = Sample(id=id, **kwargs)
        factory = MSSpectrumFactory(self)
        return InMemorySampleData(sample, factory.create_all())

    def get_features(self) -> list[SimulatedFeature]:
        """Retrieve all MS1 features sorted by m/z."""
        features = list(self.features)
        for spec in self.compounds:
            features.extend(spec.create_features())
        return sorted(features, key=lambda x: x.mz)


class MSSpectrumFactory:
    """Create the scans of a simulated sample.

    Each scan cycle contains an MS1 spectrum followed by one MS2 spectrum per transition.

    """

    def __init__(self, factory: SimulatedSampleFactory) -> None:
        self.config = factory.config
        self.features = factory.get_features()
        self.transitions = factory.transitions
        self.grid = np.array([x.mz for x in self.features])
        self._rng = np.random.default_rng(self.config.seed)

    def create_all(self) -> list[MSSpectrum]:
        """Create the spectra of all scan cycles."""
        spectra = list()
        for scan in range(self.config.n_scans):
            spectra.append(self.create(scan, len(spectra)))
            for transition in self.transitions:
                spectra.append(self.create_transition(scan, transition, len(spectra)))
        return spectra

    def create(self, scan: int, index: int | None = None) -> MSSpectrum:
        """Create the MS1 spectrum of a scan cycle."""
        assert scan < self.config.n_scans, "`scan` must be lower than the sample `n_scans` parameter."
        time = self.config.time_resolution * scan
        mz = self._compute_mz()
        sp = self._compute_intensity(self.features, time)

        if self.config.min_signal_intensity is not None:
            mask = sp >= self.config.min_signal_intensity
            mz = mz[mask]
            sp = sp[mask]

        order = np.argsort(mz)
        index = scan if index is None else index
        return MSSpectrum(index=index, mz=mz[order], int=sp[order], ms_level=1, time=time)

    def create_transition(self, scan: int, transition: SimulatedTransition, index: int) -> MSSpectrum:
        """Create the MS2 spectrum of a transition in a scan cycle."""
        time = self.config.time_resolution * scan
        sp = self._compute_intensity([transition.as_feature()], time)
        return MSSpectrum(
            index=index,
            mz=np.array([transition.product_mz]),
            int=sp,
            ms_level=2,
            time=time,
            precursor_mz=transition.precursor_mz,
            collision_energy=transition.collision_energy,
            filter_line=transition.filter_line,
        )

    def _compute_mz(self) -> FloatArray1D:
        noise_level = self.config.mz_noise
        if noise_level > 0.0:
            return self.grid + self._rng.normal(size=self.grid.size, scale=noise_level)
        return self.grid.copy()

    def _compute_intensity(self, features: list[SimulatedFeature], time: float) -> FloatArray1D:
        intensity = np.array([float(x.compute_profile(time)) for x in features])
        if self.config.amp_noise > 0.0 and intensity.size:
            intensity += self._rng.normal(size=intensity.size, scale=self.config.amp_noise)
            intensity[intensity < 0] = 0.0
        return intensity
