"""Peak detection and grouping for LC-MS data.

Provides:

PeakDetector
    Detects peaks in slices of a collection of samples and groups them across samples.
PeakDetectorConfiguration
    Parameters used to build chromatograms, pick peaks and group them.
InMemorySampleData
    Sample data provider backed by pre-loaded scans.

"""

from .batch import BatchResult, PeakDetector, SequentialSliceExecutor, ThreadedSliceExecutor
from .core.config import PeakDetectorConfiguration
from .core.enums import MSInstrument, Polarity, SeparationMode
from .core.models import Compound, MSSpectrum, MzSlice, RtCorrection, Sample
from .io import InMemorySampleData, SampleData
from .lcms import Chromatogram, Peak, PeakGroup

__all__ = [
    "BatchResult",
    "Chromatogram",
    "Compound",
    "InMemorySampleData",
    "MSInstrument",
    "MSSpectrum",
    "MzSlice",
    "Peak",
    "PeakDetector",
    "PeakDetectorConfiguration",
    "PeakGroup",
    "Polarity",
    "RtCorrection",
    "Sample",
    "SampleData",
    "SeparationMode",
    "SequentialSliceExecutor",
    "ThreadedSliceExecutor",
]
