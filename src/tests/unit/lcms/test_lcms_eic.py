import numpy as np
import pytest

from lcpeaks.core.config import PeakDetectorConfiguration
from lcpeaks.core.enums import SmootherType
from lcpeaks.core.models import Compound, MzSlice
from lcpeaks.lcms.eic import EicBuilder

from .. import helpers


@pytest.fixture
def data():
    return helpers.create_scan_data(n_scans=10)


@pytest.fixture
def builder():
    return EicBuilder()


def test_build_untargeted(data, builder):
    mz_slice = MzSlice(mzmin=99.9, mzmax=100.1, rtmin=2.0, rtmax=5.0)
    chromatogram = builder.build(data, mz_slice)
    assert chromatogram is not None
    assert chromatogram.sample_id == "sample"
    assert chromatogram.time.tolist() == [2.0, 3.0, 4.0, 5.0]
    assert chromatogram.spint.tolist() == [2.0, 3.0, 4.0, 5.0]


def test_build_untargeted_compound_without_transition(data, builder):
    compound = Compound(id="c1", mass=99.0, charge=1)
    mz_slice = MzSlice(mzmin=99.9, mzmax=100.1, rtmin=2.0, rtmax=5.0, compound=compound)
    chromatogram = builder.build(data, mz_slice)
    assert chromatogram is not None
    assert chromatogram.spint.tolist() == [2.0, 3.0, 4.0, 5.0]


def test_build_untargeted_no_scans_in_window_returns_none(data, builder):
    mz_slice = MzSlice(mzmin=99.9, mzmax=100.1, rtmin=50.0, rtmax=60.0)
    assert builder.build(data, mz_slice) is None


def test_build_mrm_transition(data, builder):
    compound = Compound(id="c1", charge=1, precursor_mz=200.1, product_mz=80.0, collision_energy=20.0)
    mz_slice = MzSlice(mzmin=0.0, mzmax=1.0, rtmin=0.0, rtmax=1.0, compound=compound)
    chromatogram = builder.build(data, mz_slice)
    assert chromatogram is not None
    assert chromatogram.size == 10
    assert np.array_equal(chromatogram.spint, 2.0 * np.arange(10))


def test_build_mrm_precursor_outside_tolerance_returns_none(data):
    builder = EicBuilder(amu_q1=0.05)
    compound = Compound(id="c1", charge=1, precursor_mz=200.1, product_mz=80.0)
    mz_slice = MzSlice(mzmin=0.0, mzmax=1.0, rtmin=0.0, rtmax=1.0, compound=compound)
    assert builder.build(data, mz_slice) is None


def test_build_srm_trace(data, builder):
    mz_slice = MzSlice(mzmin=0.0, mzmax=1.0, rtmin=0.0, rtmax=1.0, srm_id="srm-1")
    chromatogram = builder.build(data, mz_slice)
    assert chromatogram is not None
    assert np.array_equal(chromatogram.spint, 1.0 + 2.0 * np.arange(10))


def test_build_srm_has_priority_over_transition(data, builder):
    compound = Compound(id="c1", charge=1, precursor_mz=200.0, product_mz=50.0)
    mz_slice = MzSlice(mzmin=0.0, mzmax=1.0, rtmin=0.0, rtmax=1.0, compound=compound, srm_id="srm-1")
    chromatogram = builder.build(data, mz_slice)
    assert chromatogram is not None
    assert np.array_equal(chromatogram.spint, 1.0 + 2.0 * np.arange(10))


def test_build_uses_compound_srm_id(data, builder):
    compound = Compound(id="c1", charge=1, precursor_mz=200.0, product_mz=50.0, srm_id="srm-1")
    mz_slice = MzSlice(mzmin=0.0, mzmax=1.0, rtmin=0.0, rtmax=1.0, compound=compound)
    chromatogram = builder.build(data, mz_slice)
    assert chromatogram is not None
    assert np.array_equal(chromatogram.spint, 1.0 + 2.0 * np.arange(10))


def test_build_unknown_srm_returns_none(data, builder):
    mz_slice = MzSlice(mzmin=0.0, mzmax=1.0, rtmin=0.0, rtmax=1.0, srm_id="unknown")
    assert builder.build(data, mz_slice) is None


def test_build_attaches_baseline_parameters(data):
    builder = EicBuilder(baseline_window=7, baseline_drop_top_x=20.0, smoother=SmootherType.SAVGOL)
    mz_slice = MzSlice(mzmin=99.9, mzmax=100.1, rtmin=0.0, rtmax=10.0)
    chromatogram = builder.build(data, mz_slice)
    assert chromatogram is not None
    assert chromatogram.baseline_window == 7
    assert chromatogram.baseline_drop_top_x == 20.0
    assert chromatogram.smoother == SmootherType.SAVGOL


def test_build_without_peak_detection_does_not_set_peaks():
    data = helpers.create_sample_data(rt=10.0)
    mz_slice = MzSlice(mzmin=199.99, mzmax=200.01, rtmin=0.0, rtmax=15.0)
    chromatogram = EicBuilder().build(data, mz_slice)
    assert chromatogram is not None
    assert chromatogram.peaks == list()
    assert chromatogram.smoothed is None


def test_build_with_peak_detection():
    data = helpers.create_sample_data(rt=10.0)
    mz_slice = MzSlice(mzmin=199.99, mzmax=200.01, rtmin=0.0, rtmax=15.0)
    chromatogram = EicBuilder().build(data, mz_slice, detect_peaks=True)
    assert chromatogram is not None
    assert len(chromatogram.peaks) == 1
    assert chromatogram.peaks[0].rt == pytest.approx(10.0)
    assert chromatogram.peaks[0].mz == pytest.approx(200.0)


def test_from_config():
    config = PeakDetectorConfiguration(amu_q1=0.2, amu_q3=0.3, baseline_window=9, smoothing_window=4)
    builder = EicBuilder.from_config(config)
    assert builder.amu_q1 == 0.2
    assert builder.amu_q3 == 0.3
    assert builder.baseline_window == 9
    assert builder.picker.smoothing_window == 4
