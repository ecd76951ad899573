"""Batch peak detection over collections of slices and samples."""

from __future__ import annotations

from logging import getLogger
from typing import Iterable, Sequence

import pydantic

from ..core.config import PeakDetectorConfiguration
from ..core.enums import MergeOutcome
from ..core.exceptions import AlignmentError, ConfigurationError, RepeatedIdError, SampleNotFound
from ..core.models import Compound, MzSlice, RtCorrection
from ..core.services import Aligner, GroupScorer
from ..io.data import SampleData
from ..lcms.eic import EicBuilder
from ..lcms.grouping import GroupDeduplicator
from ..lcms.isotopes import IsotopePuller
from ..lcms.models import PeakGroup
from ..lcms.slices import SkippedUnit, SliceProcessor, SliceResult
from .executors import SequentialSliceExecutor, SliceExecutor, ThreadedSliceExecutor

logger = getLogger(__name__)


class BatchResult(pydantic.BaseModel):
    """Summary of a batch of processed slices."""

    label: str = ""
    """The batch label."""

    groups: list[PeakGroup] = list()
    """Accepted groups created or updated by the batch, sorted by id."""

    skipped: list[SkippedUnit] = list()
    """Slices and samples that could not be processed."""

    n_slices: int = 0
    """The number of slices in the batch."""

    n_candidates: int = 0
    """The number of candidate groups created."""

    outcomes: dict[MergeOutcome, int] = dict()
    """The number of candidates resolved with each outcome."""

    @pydantic.computed_field
    @property
    def n_skipped(self) -> int:
        """The number of skipped units."""
        return len(self.skipped)


class PeakDetector:
    """Detect peaks and peak groups in a collection of samples.

    Slices are processed independently using an executor. Candidate groups from each slice are
    added to the accepted groups in slice order, so results do not depend on the executor used.

    :param samples: the sample data
    :param config: the peak detector configuration. If not provided, default values are used.
    :param executor: the slice executor. If not provided, a sequential executor is used if the
        `max_workers` configuration parameter is ``1`` and a threaded executor otherwise.
    :param aligner: the retention time alignment service.
    :raises RepeatedIdError: if two samples have the same id.

    """

    def __init__(
        self,
        samples: Iterable[SampleData],
        config: PeakDetectorConfiguration | None = None,
        executor: SliceExecutor | None = None,
        aligner: Aligner | None = None,
    ):
        self.config = PeakDetectorConfiguration() if config is None else config

        self._samples: dict[str, SampleData] = dict()
        for data in samples:
            sample_id = data.get_sample().id
            if sample_id in self._samples:
                raise RepeatedIdError(f"Sample with id `{sample_id}` already exists.")
            self._samples[sample_id] = data

        if executor is None:
            if self.config.max_workers == 1:
                executor = SequentialSliceExecutor()
            else:
                executor = ThreadedSliceExecutor(max_workers=self.config.max_workers)
        self.executor = executor
        self.aligner = aligner

        builder = EicBuilder.from_config(self.config)
        self.processor = SliceProcessor(self.config, builder)
        self.puller = IsotopePuller(self.config, builder)
        self.deduplicator = GroupDeduplicator.from_config(self.config)

    def get_sample_data(self, sample_id: str) -> SampleData:
        """Retrieve the data of a sample.

        :raises SampleNotFound: if there is no sample with the provided id.

        """
        if sample_id not in self._samples:
            raise SampleNotFound(sample_id)
        return self._samples[sample_id]

    def list_samples(self) -> list[SampleData]:
        """Retrieve the data of all samples."""
        return list(self._samples.values())

    def list_groups(self) -> list[PeakGroup]:
        """Retrieve all accepted groups, sorted by id."""
        return self.deduplicator.list_groups()

    def process_slices(self, slices: Sequence[MzSlice], label: str = "") -> BatchResult:
        """Detect peak groups in a collection of slices.

        If the `align_samples` configuration parameter is set and an aligner is available, the samples
        are aligned after the first pass and the slices are processed again. If `pull_isotopes` is set,
        isotopes of groups associated with a compound are searched.

        :param slices: the slices to process
        :param label: the label assigned to the groups created by the batch
        :return: the groups created or updated by the batch, and the units that could not be processed.

        """
        result = self._process(slices, label)

        if self.config.align_samples and self.aligner is not None:
            self.align_samples()
            second_pass = self._process(slices, label)
            result = _combine_results(result, second_pass, self.deduplicator)

        if self.config.pull_isotopes:
            for group in result.groups:
                if group.compound is not None:
                    self.pull_isotopes(group)

        logger.info(
            f"Batch `{label}`: processed {result.n_slices} slices, {len(result.groups)} groups, "
            f"{result.n_skipped} skipped units."
        )
        return result

    def process_compounds(self, compounds: Sequence[Compound], label: str = "") -> BatchResult:
        """Detect peak groups of a collection of compounds.

        :param compounds: the compounds to search
        :param label: the label assigned to the groups created by the batch

        """
        return self.process_slices([self.compound_to_slice(x) for x in compounds], label)

    def compound_to_slice(self, compound: Compound) -> MzSlice:
        """Create the slice where a compound is searched.

        The m/z window is centered at the compound m/z, or at the precursor m/z for compounds with an
        MRM transition. The retention time window is centered at the compound expected retention time.
        If the compound does not have an expected retention time, the full run is used.

        """
        mz = compound.precursor_mz if compound.has_transition() else compound.mz
        assert mz is not None
        tolerance = self.config.get_mz_tolerance(mz)

        if compound.expected_rt is None:
            rtmin, rtmax = self._get_rt_extent()
        else:
            window = self.config.compound_rt_window
            rtmin, rtmax = max(compound.expected_rt - window, 0.0), compound.expected_rt + window

        return MzSlice(
            mzmin=mz - tolerance, mzmax=mz + tolerance, rtmin=rtmin, rtmax=rtmax, compound=compound, srm_id=compound.srm_id
        )

    def pull_isotopes(self, group: PeakGroup) -> PeakGroup:
        """Search isotopologues of a group associated with a compound.

        Groups without a compound are returned unmodified. Only samples present in the group are searched.

        """
        return self.puller.pull(group, self._samples)

    def align_samples(self) -> dict[str, RtCorrection]:
        """Align samples using the accepted groups.

        Corrections are applied to the sample data and to the retention times of accepted peaks.

        :return: the corrections computed by the aligner
        :raises AlignmentError: if no aligner was provided or a correction refers to an unknown sample.

        """
        if self.aligner is None:
            raise AlignmentError("Cannot align samples without an aligner.")

        groups = self.deduplicator.list_groups()
        corrections = self.aligner.align(self.list_samples(), groups)
        for sample_id, correction in corrections.items():
            if sample_id not in self._samples:
                raise AlignmentError(f"Aligner returned a correction for unknown sample `{sample_id}`.")
            self._samples[sample_id].apply_rt_correction(correction)

        for group in groups:
            group.correct_rt(corrections)
        removed = self.deduplicator.reindex()
        logger.info(f"Aligned {len(corrections)} samples using {len(groups)} groups.")
        if removed:
            logger.debug(f"Merged {len(removed)} duplicated groups after alignment: {removed}.")
        return corrections

    def score_groups(self, scorer: GroupScorer) -> None:
        """Assign a quality score to each accepted group."""
        for group in self.deduplicator.list_groups():
            group.score = float(scorer.score(group))

    def _process(self, slices: Sequence[MzSlice], label: str) -> BatchResult:
        samples = self.list_samples()

        def process_slice(item: tuple[int, MzSlice]) -> SliceResult:
            index, mz_slice = item
            try:
                return self.processor.process(mz_slice, samples, index)
            except ConfigurationError as e:
                logger.warning(f"Skipping slice {index}: {e}")
                return SliceResult(slice_index=index, skipped=[SkippedUnit(slice_index=index, reason=str(e))])

        skipped: list[SkippedUnit] = list()
        outcomes = {x: 0 for x in MergeOutcome}
        updated: set[int] = set()
        n_candidates = 0
        for result in self.executor.map(process_slice, list(enumerate(slices))):
            skipped.extend(result.skipped)
            for candidate in result.groups:
                n_candidates += 1
                candidate.label = label
                outcome = self.deduplicator.add_peak_group(candidate)
                outcomes[outcome] += 1
                if outcome != MergeOutcome.DISCARDED:
                    updated.add(candidate.id)

        groups = [self.deduplicator.get_group(x) for x in sorted(updated)]
        return BatchResult(
            label=label,
            groups=groups,
            skipped=skipped,
            n_slices=len(slices),
            n_candidates=n_candidates,
            outcomes=outcomes,
        )

    def _get_rt_extent(self) -> tuple[float, float]:
        ranges = [x.get_rt_range() for x in self._samples.values() if x.get_n_scans()]
        if not ranges:
            return 0.0, 0.0
        return min(x[0] for x in ranges), max(x[1] for x in ranges)


def _combine_results(first: BatchResult, second: BatchResult, deduplicator: GroupDeduplicator) -> BatchResult:
    ids = sorted({x.id for x in first.groups}.union(x.id for x in second.groups))
    outcomes = {x: first.outcomes.get(x, 0) + second.outcomes.get(x, 0) for x in MergeOutcome}
    return BatchResult(
        label=second.label,
        groups=[deduplicator.get_group(x) for x in ids if x in deduplicator],
        skipped=second.skipped,
        n_slices=second.n_slices,
        n_candidates=first.n_candidates + second.n_candidates,
        outcomes=outcomes,
    )
