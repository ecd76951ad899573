"""Baseline estimation and smoothing of chromatographic signals."""

from typing import TYPE_CHECKING

import numpy as np
from scipy.ndimage import gaussian_filter1d, uniform_filter1d
from scipy.signal import savgol_filter

from ..core.enums import SmootherType
from ..core.exceptions import InvalidParameterError
from ..utils.numpy import FloatArray1D

if TYPE_CHECKING:
    from typing import assert_never

SAVGOL_POLYORDER = 2


def check_window(window: int, name: str = "window") -> None:
    """Raise an InvalidParameterError if a window size is not a positive integer."""
    if isinstance(window, bool) or not isinstance(window, (int, np.integer)) or window <= 0:
        raise InvalidParameterError(f"`{name}` must be a positive integer. Got {window}.")


def gaussian_smooth(x: FloatArray1D, window: int) -> FloatArray1D:
    """Smooth a signal using a gaussian kernel spanning `window` points.

    The kernel standard deviation is a quarter of the window, truncated at two standard deviations.
    Boundaries are reflected, which preserves the total signal.

    """
    check_window(window)
    if window == 1 or x.size == 0:
        return x.astype(float, copy=True)
    return gaussian_filter1d(x.astype(float), sigma=window / 4, truncate=2.0, mode="reflect")


def moving_average(x: FloatArray1D, window: int) -> FloatArray1D:
    """Smooth a signal using the mean over a centered window."""
    check_window(window)
    if x.size == 0:
        return x.astype(float, copy=True)
    return uniform_filter1d(x.astype(float), size=window, mode="reflect")


def savgol_smooth(x: FloatArray1D, window: int) -> FloatArray1D:
    """Smooth a signal with a second order Savitzky-Golay filter.

    Even windows are widened by one point. If the resulting window is longer than the signal
    or too short to fit the polynomial, a copy of the signal is returned.

    """
    check_window(window)
    window = window if window % 2 else window + 1
    if window <= SAVGOL_POLYORDER or window > x.size:
        return x.astype(float, copy=True)
    return savgol_filter(x.astype(float), window_length=window, polyorder=SAVGOL_POLYORDER, mode="interp")


def smooth(x: FloatArray1D, window: int, smoother: SmootherType | int = SmootherType.GAUSSIAN) -> FloatArray1D:
    """Smooth a signal.

    :param x: the signal to smooth
    :param window: smoothing window size, in number of points
    :param smoother: the smoother type or its integer index
    :raises InvalidParameterError: if `window` is not positive or the smoother index is not valid.

    """
    try:
        smoother = SmootherType(smoother)
    except ValueError as e:
        raise InvalidParameterError(f"{smoother} is not a valid smoother index.") from e

    match smoother:
        case SmootherType.SAVGOL:
            return savgol_smooth(x, window)
        case SmootherType.GAUSSIAN:
            return gaussian_smooth(x, window)
        case SmootherType.MOVING_AVERAGE:
            return moving_average(x, window)
        case _ as never:
            assert_never(never)


def estimate_baseline(x: FloatArray1D, window: int, drop_top_x: float) -> FloatArray1D:
    """Estimate the baseline of a chromatographic signal.

    Points above the ``100 - drop_top_x`` percentile are clipped to the percentile value and the
    clipped signal is smoothed with a gaussian kernel. The baseline is bounded by the signal
    minimum and maximum.

    :param x: the signal intensity
    :param window: size of the smoothing window, in number of points
    :param drop_top_x: percentage of the most intense points that are clipped. ``0`` keeps
        all points, ``100`` clips all points to the signal minimum.
    :raises InvalidParameterError: if `window` is not positive or `drop_top_x` is not in ``[0, 100]``.

    """
    check_window(window, "baseline_window")
    if not 0.0 <= drop_top_x <= 100.0:
        raise InvalidParameterError(f"`drop_top_x` must be in the range [0, 100]. Got {drop_top_x}.")

    if x.size == 0:
        return np.zeros(0)

    cutoff = np.percentile(x, 100.0 - drop_top_x, method="lower")
    clipped = np.minimum(x, cutoff)
    baseline = gaussian_smooth(clipped, window)
    return np.clip(baseline, x.min(), cutoff)


def estimate_noise(x: FloatArray1D, start: int, end: int, width: int) -> float:
    """Estimate the noise level as the standard deviation of a signal in the flanks of a region.

    :param x: the baseline-corrected signal
    :param start: region start index
    :param end: region end index, exclusive
    :param width: number of points used on each side of the region
    :return: the noise level. ``0.0`` if there are no points in the flanks.

    """
    left = x[max(0, start - width) : start]
    right = x[end : end + width]
    flanks = np.concatenate((left, right))
    if flanks.size < 2:
        return 0.0
    return float(flanks.std())
