"""Retention time alignment using polynomial drift models."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING, Sequence

import numpy as np
import pydantic

from ..core.models import RtCorrection
from .models import PeakGroup

if TYPE_CHECKING:
    from ..io.data import SampleData

logger = getLogger(__name__)


class PolynomialAligner(pydantic.BaseModel):
    """Align samples by fitting a polynomial to the retention time drift of shared peak groups.

    Groups with at least `min_group_size` peaks are used as landmarks. The reference time of each
    landmark is the median apex time across its peaks. For each sample, the difference between
    reference and observed apex times is modelled as a polynomial of the observed time, and the
    scan times are corrected using the fitted drift. Corrected times are forced to be non-decreasing.

    Samples with fewer than ``degree + 1`` landmarks are not corrected.

    """

    degree: pydantic.NonNegativeInt = 2
    """The polynomial degree."""

    min_group_size: pydantic.PositiveInt = 2
    """Minimum number of peaks in a group to be used as landmark."""

    def align(self, samples: Sequence[SampleData], groups: Sequence[PeakGroup]) -> dict[str, RtCorrection]:
        """Compute retention time corrections for each sample."""
        landmarks = [x for x in groups if len(x.peaks) >= self.min_group_size]
        reference = {x.id: float(np.median([p.rt for p in x.peaks.values()])) for x in landmarks}

        corrections = dict()
        for data in samples:
            sample_id = data.get_sample().id
            pairs = sorted((x.peaks[sample_id].rt, reference[x.id]) for x in landmarks if sample_id in x.peaks)
            time = data.get_time()
            if len(pairs) <= self.degree or not time.size:
                logger.debug(f"Not enough landmarks to align sample `{sample_id}`.")
                continue

            observed, expected = np.array(pairs).T
            coefficients = np.polyfit(observed, expected - observed, self.degree)
            corrected = np.maximum.accumulate(time + np.polyval(coefficients, time))
            corrections[sample_id] = RtCorrection(sample_id=sample_id, observed=time, corrected=corrected)

        logger.info(f"Computed retention time corrections for {len(corrections)} samples.")
        return corrections
