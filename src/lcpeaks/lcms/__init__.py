"""Utilities to detect and group peaks in LC-MS data."""

from .alignment import PolynomialAligner
from .eic import EicBuilder
from .grouping import GroupDeduplicator
from .isotopes import IsotopePuller
from .models import Chromatogram, IsotopeChannel, Peak, PeakGroup
from .picker import PeakPicker
from .slices import SkippedUnit, SliceProcessor, SliceResult

__all__ = [
    "Chromatogram",
    "EicBuilder",
    "GroupDeduplicator",
    "IsotopeChannel",
    "IsotopePuller",
    "Peak",
    "PeakGroup",
    "PeakPicker",
    "PolynomialAligner",
    "SkippedUnit",
    "SliceProcessor",
    "SliceResult",
]
