import numpy as np
import pytest

from lcpeaks.batch.detector import PeakDetector
from lcpeaks.batch.executors import SequentialSliceExecutor, ThreadedSliceExecutor
from lcpeaks.core.config import PeakDetectorConfiguration
from lcpeaks.core.enums import MergeOutcome, ToleranceUnit
from lcpeaks.core.exceptions import AlignmentError, RepeatedIdError, SampleNotFound
from lcpeaks.core.models import Compound, MzSlice, RtCorrection, Sample

from .. import helpers


class ExhaustedSampleData:
    """Sample data that runs out of memory when creating chromatograms."""

    def __init__(self, id: str):
        self._sample = Sample(id=id)

    def get_sample(self) -> Sample:
        return self._sample

    def get_eic(self, *args, **kwargs):
        raise MemoryError


class ShiftAligner:
    """Aligner that shifts a single sample."""

    def __init__(self, sample_id: str, shift: float):
        self.sample_id = sample_id
        self.shift = shift
        self.calls = 0

    def align(self, samples, groups):
        self.calls += 1
        observed = np.array([0.0, 1.0, 40.0])
        corrected = np.array([0.0, 1.0 + self.shift, 40.0 + self.shift])
        return {self.sample_id: RtCorrection(sample_id=self.sample_id, observed=observed, corrected=corrected)}


class PeakCountScorer:
    def score(self, group):
        return len(group.peaks)


@pytest.fixture
def mz_slice():
    return MzSlice(mzmin=199.99, mzmax=200.01, rtmin=0.0, rtmax=15.0)


@pytest.fixture
def close_samples():
    return [helpers.create_sample_data("s1", rt=10.0), helpers.create_sample_data("s2", rt=10.05)]


@pytest.fixture
def shifted_samples():
    return [helpers.create_sample_data("s1", rt=10.0), helpers.create_sample_data("s2", rt=10.3)]


class TestPeakDetectorSamples:
    def test_repeated_sample_id_raises_error(self):
        samples = [helpers.create_sample_data("s1"), helpers.create_sample_data("s1")]
        with pytest.raises(RepeatedIdError):
            PeakDetector(samples)

    def test_get_sample_data(self, close_samples):
        detector = PeakDetector(close_samples)
        assert detector.get_sample_data("s2") is close_samples[1]

    def test_get_missing_sample_raises_error(self, close_samples):
        detector = PeakDetector(close_samples)
        with pytest.raises(SampleNotFound):
            detector.get_sample_data("missing")

    def test_list_samples(self, close_samples):
        detector = PeakDetector(close_samples)
        assert detector.list_samples() == close_samples

    def test_default_executor_is_sequential(self, close_samples):
        detector = PeakDetector(close_samples)
        assert isinstance(detector.executor, SequentialSliceExecutor)

    def test_threaded_executor_is_used_with_multiple_workers(self, close_samples):
        detector = PeakDetector(close_samples, config=PeakDetectorConfiguration(max_workers=4))
        assert isinstance(detector.executor, ThreadedSliceExecutor)
        assert detector.executor.max_workers == 4


class TestProcessSlices:
    def test_close_peaks_create_one_group(self, close_samples, mz_slice):
        config = PeakDetectorConfiguration(grouping_rt_window=0.1)
        result = PeakDetector(close_samples, config=config).process_slices([mz_slice])
        assert len(result.groups) == 1
        assert sorted(result.groups[0].peaks) == ["s1", "s2"]
        assert result.groups[0].id == 0

    def test_distant_peaks_create_two_groups(self):
        samples = [
            helpers.create_sample_data("s1", rt=10.0, n_scans=4000),
            helpers.create_sample_data("s2", rt=30.0, n_scans=4000),
        ]
        mz_slice = MzSlice(mzmin=199.99, mzmax=200.01, rtmin=0.0, rtmax=40.0)
        config = PeakDetectorConfiguration(grouping_rt_window=0.1)
        result = PeakDetector(samples, config=config).process_slices([mz_slice])
        assert [list(x.peaks) for x in result.groups] == [["s1"], ["s2"]]
        assert [x.id for x in result.groups] == [0, 1]

    def test_groups_have_batch_label(self, close_samples, mz_slice):
        result = PeakDetector(close_samples).process_slices([mz_slice], label="batch-1")
        assert result.label == "batch-1"
        assert all(x.label == "batch-1" for x in result.groups)

    def test_repeated_slices_do_not_create_duplicated_groups(self, close_samples, mz_slice):
        detector = PeakDetector(close_samples, config=PeakDetectorConfiguration(grouping_rt_window=0.1))
        result = detector.process_slices([mz_slice, mz_slice])
        assert len(detector.list_groups()) == 1
        assert result.n_candidates == 2
        assert result.outcomes[MergeOutcome.ACCEPTED] == 1
        assert result.outcomes[MergeOutcome.DISCARDED] == 1

    def test_groups_are_kept_between_batches(self, close_samples, mz_slice):
        detector = PeakDetector(close_samples)
        detector.process_slices([mz_slice], label="first")
        other = MzSlice(mzmin=299.99, mzmax=300.01, rtmin=0.0, rtmax=15.0)
        result = detector.process_slices([other], label="second")
        assert result.groups == list()
        assert len(detector.list_groups()) == 1

    def test_outcome_counts_match_candidates(self, close_samples, mz_slice):
        slices = [mz_slice, mz_slice, MzSlice(mzmin=199.995, mzmax=200.005, rtmin=5.0, rtmax=12.0)]
        result = PeakDetector(close_samples).process_slices(slices)
        assert sum(result.outcomes.values()) == result.n_candidates
        assert result.n_slices == 3

    def test_invalid_slice_is_skipped(self, close_samples, mz_slice):
        invalid = MzSlice(mzmin=200.01, mzmax=199.99, rtmin=0.0, rtmax=15.0)
        result = PeakDetector(close_samples).process_slices([invalid, mz_slice])
        assert result.n_skipped == 1
        assert result.skipped[0].slice_index == 0
        assert result.skipped[0].sample_id is None
        assert len(result.groups) == 1

    def test_invalid_window_skips_all_slices(self, close_samples, mz_slice):
        config = PeakDetectorConfiguration(smoothing_window=0)
        result = PeakDetector(close_samples, config=config).process_slices([mz_slice, mz_slice])
        assert result.n_skipped == 2
        assert result.groups == list()

    def test_memory_error_is_propagated(self, mz_slice):
        detector = PeakDetector([ExhaustedSampleData("s1")])  # type: ignore
        with pytest.raises(MemoryError):
            detector.process_slices([mz_slice])

    def test_threaded_and_sequential_results_are_equal(self, shifted_samples):
        slices = [
            MzSlice(mzmin=199.99, mzmax=200.01, rtmin=0.0, rtmax=15.0),
            MzSlice(mzmin=199.995, mzmax=200.005, rtmin=8.0, rtmax=12.0),
            MzSlice(mzmin=199.99, mzmax=200.01, rtmin=9.0, rtmax=11.0),
        ]
        config = PeakDetectorConfiguration(grouping_rt_window=0.1)
        sequential = PeakDetector(shifted_samples, config=config, executor=SequentialSliceExecutor())
        threaded = PeakDetector(shifted_samples, config=config, executor=ThreadedSliceExecutor(max_workers=3))
        expected = sequential.process_slices(slices).model_dump_json()
        actual = threaded.process_slices(slices).model_dump_json()
        assert actual == expected


class TestCompoundToSlice:
    def test_ppm_tolerance(self, close_samples):
        compound = Compound(id="c1", mass=199.0, charge=1, expected_rt=10.0)
        detector = PeakDetector(close_samples, config=PeakDetectorConfiguration(compound_mz_tolerance=10.0))
        mz_slice = detector.compound_to_slice(compound)
        assert mz_slice.mz == pytest.approx(compound.mz)
        assert mz_slice.mzmax - mz_slice.mzmin == pytest.approx(2 * compound.mz * 1e-5)
        assert mz_slice.rtmin == pytest.approx(8.0)
        assert mz_slice.rtmax == pytest.approx(12.0)
        assert mz_slice.compound == compound

    def test_da_tolerance(self, close_samples):
        compound = Compound(id="c1", mass=199.0, charge=1, expected_rt=1.0)
        config = PeakDetectorConfiguration(compound_mz_tolerance=0.5, compound_mz_tolerance_unit=ToleranceUnit.DA)
        mz_slice = PeakDetector(close_samples, config=config).compound_to_slice(compound)
        assert mz_slice.mzmax - mz_slice.mzmin == pytest.approx(1.0)
        assert mz_slice.rtmin == 0.0

    def test_without_expected_rt_uses_full_run(self, close_samples):
        compound = Compound(id="c1", mass=199.0, charge=1)
        mz_slice = PeakDetector(close_samples).compound_to_slice(compound)
        assert mz_slice.rtmin == pytest.approx(0.0)
        assert mz_slice.rtmax == pytest.approx(14.99)

    def test_transition_uses_precursor_mz(self, close_samples):
        compound = Compound(id="c1", mass=199.0, charge=1, precursor_mz=250.0, product_mz=100.0, srm_id="srm-1")
        mz_slice = PeakDetector(close_samples).compound_to_slice(compound)
        assert mz_slice.mz == pytest.approx(250.0)
        assert mz_slice.srm_id == "srm-1"

    def test_process_compounds(self, close_samples):
        compound = Compound(id="c1", mass=199.0, charge=1, expected_rt=10.0)
        samples = [helpers.create_sample_data(x, rt=10.0, mz=compound.mz) for x in ["s1", "s2"]]
        result = PeakDetector(samples).process_compounds([compound], label="targeted")
        assert len(result.groups) == 1
        assert result.groups[0].compound == compound
        assert result.groups[0].expected_mz == pytest.approx(compound.mz)


class TestPostProcessing:
    def test_pull_isotopes_without_compound_does_not_modify_group(self, close_samples, mz_slice):
        detector = PeakDetector(close_samples)
        group = detector.process_slices([mz_slice]).groups[0]
        assert detector.pull_isotopes(group) is group
        assert group.isotopes == list()

    def test_align_without_aligner_raises_error(self, close_samples):
        with pytest.raises(AlignmentError):
            PeakDetector(close_samples).align_samples()

    def test_align_correction_for_unknown_sample_raises_error(self, close_samples):
        detector = PeakDetector(close_samples, aligner=ShiftAligner("missing", -0.3))
        with pytest.raises(AlignmentError):
            detector.align_samples()

    def test_align_samples_corrects_data_and_groups(self, shifted_samples, mz_slice):
        config = PeakDetectorConfiguration(grouping_rt_window=0.1)
        detector = PeakDetector(shifted_samples, config=config, aligner=ShiftAligner("s2", -0.3))
        detector.process_slices([mz_slice])
        corrections = detector.align_samples()
        assert list(corrections) == ["s2"]
        groups = detector.list_groups()
        assert len(groups) == 1
        assert sorted(groups[0].peaks) == ["s1", "s2"]
        assert groups[0].peaks["s2"].rt == pytest.approx(10.0, abs=0.02)
        time = detector.get_sample_data("s2").get_time()
        assert np.all(np.diff(time) >= 0.0)

    def test_shifted_samples_are_not_grouped_without_alignment(self, shifted_samples, mz_slice):
        config = PeakDetectorConfiguration(grouping_rt_window=0.1)
        result = PeakDetector(shifted_samples, config=config).process_slices([mz_slice])
        assert all(len(x.peaks) == 1 for x in result.groups)

    def test_process_slices_with_alignment_groups_shifted_samples(self, shifted_samples, mz_slice):
        config = PeakDetectorConfiguration(grouping_rt_window=0.1, align_samples=True)
        aligner = ShiftAligner("s2", -0.3)
        detector = PeakDetector(shifted_samples, config=config, aligner=aligner)
        result = detector.process_slices([mz_slice])
        assert aligner.calls == 1
        for sample_id in ["s1", "s2"]:
            assert sum(sample_id in x.peaks for x in detector.list_groups()) == 1
        assert [sorted(x.peaks) for x in result.groups] == [["s1", "s2"]]
        assert sum(result.outcomes.values()) == result.n_candidates

    def test_score_groups(self, close_samples, mz_slice):
        detector = PeakDetector(close_samples, config=PeakDetectorConfiguration(grouping_rt_window=0.1))
        detector.process_slices([mz_slice])
        detector.score_groups(PeakCountScorer())
        assert [x.score for x in detector.list_groups()] == [2.0]
