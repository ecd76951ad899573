"""lcpeaks core data models."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated, Any

import numpy
import pydantic
from pydantic.functional_validators import BeforeValidator
from typing_extensions import Self

from ..utils.numpy import FloatArray1D, check_same_length
from .enums import Polarity
from .exceptions import InvalidSliceError

PROTON_MASS = 1.007276466621
"""The proton mass, used to compute the m/z of protonated and deprotonated ions."""


class LCPeaksBaseModel(pydantic.BaseModel):
    """Base model that array-holding library models inherit from."""

    model_config = pydantic.ConfigDict(validate_assignment=True, arbitrary_types_allowed=True)


class Sample(pydantic.BaseModel):
    """Store metadata from an individual measurement."""

    id: str
    """A unique sample identifier"""

    path: Annotated[Path, BeforeValidator(lambda x: Path(x))] | None = pydantic.Field(default=None, repr=False)
    """Path to the raw data file, if any"""

    polarity: Polarity = Polarity.POSITIVE
    """The scan polarity of the sample"""

    group: str = ""
    """the sample group"""

    order: pydantic.NonNegativeInt = 0
    """the sample measurement order in an assay"""

    extra: dict[str, Any] | None = pydantic.Field(default=None, repr=False)
    """extra sample information"""

    @pydantic.field_serializer("path")
    def serialize_path(self, path: Path | None, _info) -> str | None:
        """Serialize path into a string."""
        return None if path is None else str(path)


class MSSpectrum(LCPeaksBaseModel):
    """Representation of a centroid mass spectrum."""

    index: int = -1
    """The scan number"""

    mz: FloatArray1D
    """Sorted m/z data"""

    int: FloatArray1D
    """Spectral intensity"""

    ms_level: pydantic.PositiveInt = 1
    """MS level of the current spectrum"""

    time: pydantic.NonNegativeFloat = 0.0
    """Acquisition time of the spectrum"""

    precursor_mz: float | None = None
    """Precursor m/z selected in the first quadrupole, for MS2 scans."""

    collision_energy: float | None = None
    """Collision energy used to fragment the precursor, for MS2 scans."""

    filter_line: str | None = None
    """Scan filter identifier. SRM traces are indexed by this value."""

    @pydantic.model_validator(mode="after")
    def check_array_sizes(self) -> Self:
        """Check that m/z and intensity have the same length."""
        check_same_length(mz=self.mz, int=self.int)
        return self

    def get_intensity(self, mzmin: float, mzmax: float) -> tuple[float, float]:
        """Compute the total intensity and the intensity-weighted m/z in a m/z window.

        :param mzmin: window lower bound
        :param mzmax: window upper bound
        :return: the total intensity and the weighted m/z. The m/z is ``0.0`` if the window is empty.

        """
        start = int(numpy.searchsorted(self.mz, mzmin, side="left"))
        end = int(numpy.searchsorted(self.mz, mzmax, side="right"))
        if end <= start:
            return 0.0, 0.0
        spint = self.int[start:end]
        total = float(spint.sum())
        if total > 0.0:
            mz = float(numpy.dot(self.mz[start:end], spint) / total)
        else:
            mz = 0.0
        return total, mz


class Compound(pydantic.BaseModel):
    """A compound searched in the samples, provided by an external compound database."""

    model_config = pydantic.ConfigDict(frozen=True)

    id: str
    """The compound identifier"""

    name: str = ""
    """The compound name"""

    mass: pydantic.NonNegativeFloat = 0.0
    """The neutral monoisotopic mass"""

    charge: int
    """The ion charge. Must be set explicitly and cannot be zero."""

    expected_rt: pydantic.NonNegativeFloat | None = None
    """The expected retention time. If ``None``, the compound is searched across the whole run."""

    precursor_mz: pydantic.PositiveFloat | None = None
    """Precursor m/z for targeted (MRM) acquisitions."""

    product_mz: pydantic.PositiveFloat | None = None
    """Product m/z for targeted (MRM) acquisitions."""

    collision_energy: float | None = None
    """Collision energy of the MRM transition."""

    srm_id: str | None = None
    """SRM trace identifier."""

    @pydantic.field_validator("charge")
    @classmethod
    def check_non_zero_charge(cls, value: int) -> int:
        """Check that the charge is not zero."""
        if value == 0:
            raise ValueError("Compound charge must be a non-zero integer.")
        return value

    @property
    def mz(self) -> float:
        """The theoretical m/z of the compound ion."""
        return (self.mass + self.charge * PROTON_MASS) / abs(self.charge)

    def has_transition(self) -> bool:
        """Check if the compound defines an MRM transition."""
        return (
            self.precursor_mz is not None
            and self.product_mz is not None
            and self.precursor_mz > 0.0
            and self.product_mz > 0.0
        )


class MzSlice(pydantic.BaseModel):
    """A m/z and retention time region where peaks are searched.

    Windows are checked when the slice is processed, not when it is created.
    """

    model_config = pydantic.ConfigDict(frozen=True)

    mzmin: float
    """m/z window lower bound"""

    mzmax: float
    """m/z window upper bound"""

    rtmin: float
    """Retention time window lower bound"""

    rtmax: float
    """Retention time window upper bound"""

    compound: Compound | None = None
    """The compound associated with the slice."""

    srm_id: str | None = None
    """SRM trace identifier, for targeted acquisitions."""

    def check(self) -> None:
        """Check that m/z and retention time windows are valid.

        :raises InvalidSliceError: if a window is inverted or has negative bounds.

        """
        if self.mzmin < 0.0 or self.rtmin < 0.0:
            raise InvalidSliceError(f"Slice windows must be non-negative. Got {self!r}.")
        if self.mzmin > self.mzmax:
            raise InvalidSliceError(f"Inverted m/z window [{self.mzmin}, {self.mzmax}].")
        if self.rtmin > self.rtmax:
            raise InvalidSliceError(f"Inverted retention time window [{self.rtmin}, {self.rtmax}].")

    @property
    def mz(self) -> float:
        """The slice m/z center."""
        return (self.mzmin + self.mzmax) / 2


class RtCorrection(LCPeaksBaseModel):
    """Piecewise linear retention time correction of a sample.

    Observed times in `observed` are mapped to `corrected` and linear interpolation is used
    in between.
    """

    sample_id: str
    """The corrected sample"""

    observed: FloatArray1D
    """Sorted observed retention times"""

    corrected: FloatArray1D
    """Corrected retention times. Must be non-decreasing."""

    @pydantic.model_validator(mode="after")
    def check_correction(self) -> Self:
        """Check array sizes and monotonicity."""
        check_same_length(observed=self.observed, corrected=self.corrected)
        if self.observed.size == 0:
            raise ValueError("Retention time corrections require at least one point.")
        if numpy.any(numpy.diff(self.observed) < 0.0) or numpy.any(numpy.diff(self.corrected) < 0.0):
            raise ValueError("Retention time corrections must be non-decreasing.")
        return self

    def apply(self, time):
        """Map observed times into corrected times."""
        return numpy.interp(time, self.observed, self.corrected)
