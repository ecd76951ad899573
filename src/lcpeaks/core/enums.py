"""lcpeaks constants."""

import enum


class SeparationMode(str, enum.Enum):
    """Analytical method separation platform."""

    HPLC = "HPLC"
    UPLC = "UPLC"


class MSInstrument(enum.Enum):
    """Available MS instrument types."""

    QTOF = "qtof"
    ORBITRAP = "orbitrap"
    QQQ = "qqq"


class Polarity(str, enum.Enum):
    """Scan polarity."""

    POSITIVE = "positive"
    NEGATIVE = "negative"


class SmootherType(enum.IntEnum):
    """Available smoothers for chromatogram intensity.

    Members are selected by their integer index.
    """

    SAVGOL = 0
    """Savitzky-Golay filter with a second order polynomial."""

    GAUSSIAN = 1
    """Gaussian kernel."""

    MOVING_AVERAGE = 2
    """Moving average over the smoothing window."""


class OverlapMetric(str, enum.Enum):
    """Retention time overlap metrics used to detect duplicated peak groups."""

    SHORTEST = "shortest"
    """Length of the intersection divided by the length of the shortest span."""

    IOU = "iou"
    """Length of the intersection divided by the length of the union."""

    APEX = "apex"
    """``1.0`` if the apex distance is within the grouping window, ``0.0`` otherwise."""


class PeakRanking(str, enum.Enum):
    """Peak descriptor used to choose the best peak of a sample in a candidate group."""

    AREA = "area"
    SNR = "snr"


class ToleranceUnit(str, enum.Enum):
    """Units for m/z tolerances."""

    PPM = "ppm"
    DA = "Da"


class IsotopeType(str, enum.Enum):
    """Isotopes searched when pulling isotopes of a compound."""

    C13 = "C13"
    N15 = "N15"
    D2 = "D2"
    S34 = "S34"


class MergeOutcome(str, enum.Enum):
    """Outcome of adding a candidate group to the accepted group collection."""

    ACCEPTED = "accepted"
    """The candidate was added as a new group."""

    MERGED = "merged"
    """The candidate filled missing samples of an accepted group."""

    REPLACED = "replaced"
    """The candidate replaced a lower quality accepted group."""

    DISCARDED = "discarded"
    """The candidate duplicated an accepted group and added nothing."""
