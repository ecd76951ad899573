"""Peak detection on extracted ion chromatograms."""

from __future__ import annotations

from logging import getLogger
from math import inf

import numpy as np
import pydantic
from scipy.integrate import trapezoid
from scipy.signal import peak_widths
from typing_extensions import Self

from ..core.config import PeakDetectorConfiguration
from ..utils.numpy import FloatArray1D, IntArray1D
from .models import Chromatogram, Peak
from .signal import check_window, estimate_baseline, estimate_noise, smooth

logger = getLogger(__name__)

FWHM_TO_SIGMA = 1.0 / (2.0 * np.sqrt(2.0 * np.log(2.0)))


class PeakPicker(pydantic.BaseModel):
    """Detect peaks on a chromatogram.

    The baseline is estimated using the parameters attached to the chromatogram and subtracted
    from the raw signal. The corrected signal is smoothed and local maxima are expanded to the
    closest local minima to define the peak region.

    """

    model_config = pydantic.ConfigDict(frozen=True)

    smoothing_window: int = 10
    """Smoothing window size, in number of points."""

    min_peak_intensity: pydantic.NonNegativeFloat = 0.0
    """Minimum smoothed baseline-corrected intensity at the apex."""

    min_snr: pydantic.NonNegativeFloat = 0.0
    """Minimum peak signal-to-noise ratio."""

    min_peak_points: pydantic.PositiveInt = 3
    """Minimum number of points in the peak region."""

    @classmethod
    def from_config(cls, config: PeakDetectorConfiguration) -> Self:
        """Create a new instance using the peak detector configuration."""
        return cls(
            smoothing_window=config.smoothing_window,
            min_peak_intensity=config.min_peak_intensity,
            min_snr=config.min_snr,
            min_peak_points=config.min_peak_points,
        )

    def pick(self, chromatogram: Chromatogram) -> list[Peak]:
        """Detect peaks in a chromatogram.

        Detected peaks are stored in the chromatogram `peaks` field. The chromatogram baseline and
        smoothed signal are also updated.

        :param chromatogram: the chromatogram to process
        :return: the detected peaks, sorted by apex index. An empty list is returned for chromatograms
            shorter than the smoothing window.
        :raises InvalidParameterError: if the smoothing or baseline windows are not positive integers.

        """
        check_window(self.smoothing_window, "smoothing_window")
        check_window(chromatogram.baseline_window, "baseline_window")

        if chromatogram.size < max(self.smoothing_window, 3):
            chromatogram.peaks = list()
            return chromatogram.peaks

        baseline = estimate_baseline(
            chromatogram.spint, chromatogram.baseline_window, chromatogram.baseline_drop_top_x
        )
        chromatogram.baseline = baseline
        corrected = chromatogram.get_corrected()
        smoothed = np.maximum(smooth(corrected, self.smoothing_window, chromatogram.smoother), 0.0)
        chromatogram.smoothed = smoothed

        peaks = list()
        for apex in find_local_maxima(smoothed):
            if smoothed[apex] <= self.min_peak_intensity:
                continue
            left, right = expand_peak(smoothed, apex)
            if right - left + 1 < self.min_peak_points:
                continue
            peak = _create_peak(chromatogram, corrected, left, apex, right)
            if peak.snr < self.min_snr:
                continue
            peaks.append(peak)

        logger.debug(f"Found {len(peaks)} peaks in chromatogram of sample `{chromatogram.sample_id}`.")
        chromatogram.peaks = peaks
        return peaks


def find_local_maxima(x: FloatArray1D) -> IntArray1D:
    """Find interior local maxima of a signal.

    A point is a local maximum if it is strictly greater than the previous point and greater or
    equal than the next point. On exactly equal adjacent maxima, only the first point is kept.

    """
    if x.size < 3:
        return np.zeros(0, dtype=int)
    center = x[1:-1]
    is_max = (center > x[:-2]) & (center >= x[2:])
    return np.flatnonzero(is_max) + 1


def expand_peak(x: FloatArray1D, apex: int) -> tuple[int, int]:
    """Expand the peak region from the apex to the closest local minima or signal boundaries.

    The region is expanded while the signal does not increase and stays above zero.

    :param x: smoothed baseline-corrected signal
    :param apex: apex index
    :return: the left and right indices of the peak region, both inclusive.

    """
    left = apex
    while left > 0 and x[left] > 0.0 and x[left - 1] <= x[left]:
        left -= 1

    right = apex
    last = x.size - 1
    while right < last and x[right] > 0.0 and x[right + 1] <= x[right]:
        right += 1
    return left, right


def compute_fwhm(time: FloatArray1D, x: FloatArray1D, left: int, apex: int, right: int) -> float:
    """Compute the full width at half maximum of a peak.

    Half height crossings are searched inside the peak region using the apex height as the peak
    prominence, and converted to time using linear interpolation. If the signal does not cross the
    half height inside the peak region, the region boundary is used.

    """
    prominence_data = (
        np.array([x[apex]], dtype=float),
        np.array([left], dtype=np.intp),
        np.array([right], dtype=np.intp),
    )
    peaks = np.array([apex], dtype=np.intp)
    signal = np.ascontiguousarray(x, dtype=float)
    _, _, left_ips, right_ips = peak_widths(signal, peaks, rel_height=0.5, prominence_data=prominence_data)
    t_left, t_right = np.interp([left_ips[0], right_ips[0]], np.arange(time.size), time)
    return float(t_right - t_left)


def compute_gaussian_similarity(time: FloatArray1D, x: FloatArray1D, rt: float, height: float, fwhm: float) -> float:
    """Compute the correlation between a peak and a gaussian with the same apex, height and width.

    :return: the Pearson correlation, bounded to the ``[0, 1]`` interval.

    """
    sigma = fwhm * FWHM_TO_SIGMA
    if sigma <= 0.0 or x.size < 3:
        return 0.0
    model = height * np.exp(-0.5 * ((time - rt) / sigma) ** 2)
    if np.ptp(x) == 0.0 or np.ptp(model) == 0.0:
        return 0.0
    r = np.corrcoef(x, model)[0, 1]
    return float(np.clip(r, 0.0, 1.0))


def _create_peak(chromatogram: Chromatogram, corrected: FloatArray1D, left: int, apex: int, right: int) -> Peak:
    """Compute the peak descriptors."""
    assert chromatogram.smoothed is not None
    assert chromatogram.baseline is not None
    time = chromatogram.time
    smoothed = chromatogram.smoothed
    end = right + 1

    height = float(smoothed[apex])
    baseline = float(chromatogram.baseline[apex])
    fwhm = compute_fwhm(time, smoothed, left, apex, right)

    noise = max(baseline, estimate_noise(corrected, left, end, end - left))
    snr = height / noise if noise > 0.0 else inf

    mz = 0.0
    if chromatogram.mz is not None:
        weights = chromatogram.spint[left:end] * (chromatogram.mz[left:end] > 0.0)
        if weights.sum() > 0.0:
            mz = float(np.average(chromatogram.mz[left:end], weights=weights))

    rt = float(time[apex])
    quality = compute_gaussian_similarity(time[left:end], smoothed[left:end], rt, height, fwhm)

    return Peak(
        sample_id=chromatogram.sample_id,
        left=left,
        apex=apex,
        right=right,
        rt=rt,
        rt_min=float(time[left]),
        rt_max=float(time[right]),
        mz=mz,
        apex_intensity=float(chromatogram.spint[apex]),
        height=height,
        baseline=baseline,
        area=float(trapezoid(smoothed[left:end], time[left:end])),
        raw_area=float(trapezoid(chromatogram.spint[left:end], time[left:end])),
        corrected_area=float(trapezoid(corrected[left:end], time[left:end])),
        fwhm=fwhm,
        snr=snr,
        quality=quality,
    )
