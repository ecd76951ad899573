"""Extracted ion chromatogram construction."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

import pydantic
from typing_extensions import Self

from ..core.config import PeakDetectorConfiguration
from ..core.enums import SmootherType
from ..core.models import MzSlice
from .models import Chromatogram
from .picker import PeakPicker

if TYPE_CHECKING:
    from ..io.data import SampleData

logger = getLogger(__name__)


class EicBuilder(pydantic.BaseModel):
    """Create the chromatogram of a sample in a slice.

    The chromatogram source is selected in the following order:

    1.  If the slice defines an SRM id, the SRM trace of the sample.
    2.  If the slice compound defines a precursor and a product m/z, the MRM transition, using
        `amu_q1` and `amu_q3` as tolerances.
    3.  Otherwise, MS1 scans in the slice retention time window, summing the intensity in the
        slice m/z window.

    """

    model_config = pydantic.ConfigDict(frozen=True)

    amu_q1: pydantic.NonNegativeFloat = 0.5
    """Precursor m/z tolerance for MRM transitions."""

    amu_q3: pydantic.NonNegativeFloat = 0.5
    """Product m/z tolerance for MRM transitions."""

    baseline_window: int = 5
    """Baseline smoothing window attached to the chromatogram."""

    baseline_drop_top_x: float = pydantic.Field(default=40.0, ge=0.0, le=100.0)
    """Percentage of points dropped when estimating the baseline, attached to the chromatogram."""

    smoother: SmootherType = SmootherType.GAUSSIAN
    """Smoother attached to the chromatogram."""

    picker: PeakPicker = PeakPicker()
    """The peak picker used when peak detection is requested."""

    @classmethod
    def from_config(cls, config: PeakDetectorConfiguration) -> Self:
        """Create a new instance using the peak detector configuration."""
        return cls(
            amu_q1=config.amu_q1,
            amu_q3=config.amu_q3,
            baseline_window=config.baseline_window,
            baseline_drop_top_x=config.baseline_drop_top_x,
            smoother=config.smoother,
            picker=PeakPicker.from_config(config),
        )

    def build(self, data: SampleData, mz_slice: MzSlice, detect_peaks: bool = False) -> Chromatogram | None:
        """Create a chromatogram.

        :param data: the sample data
        :param mz_slice: the slice where the chromatogram is extracted
        :param detect_peaks: if ``True``, pick peaks on the chromatogram before returning it
        :return: the chromatogram or ``None`` if the sample does not contain scans in the slice.

        """
        compound = mz_slice.compound
        srm_id = mz_slice.srm_id
        if srm_id is None and compound is not None:
            srm_id = compound.srm_id

        if srm_id is not None:
            chromatogram = data.get_srm_eic(srm_id)
        elif compound is not None and compound.has_transition():
            assert compound.precursor_mz is not None and compound.product_mz is not None
            chromatogram = data.get_mrm_eic(
                compound.precursor_mz, compound.collision_energy, compound.product_mz, self.amu_q1, self.amu_q3
            )
        else:
            chromatogram = data.get_eic(mz_slice.mzmin, mz_slice.mzmax, mz_slice.rtmin, mz_slice.rtmax)

        sample_id = data.get_sample().id
        if chromatogram is None:
            logger.debug(f"No scans found for sample `{sample_id}` in slice {mz_slice!r}.")
            return None

        chromatogram.baseline_window = self.baseline_window
        chromatogram.baseline_drop_top_x = self.baseline_drop_top_x
        chromatogram.smoother = self.smoother

        if detect_peaks:
            self.picker.pick(chromatogram)
        return chromatogram
