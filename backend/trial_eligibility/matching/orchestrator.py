"""
Batch Orchestrator

Runs an assessor plus the aggregator across every trial for one patient.

Two modes:
- analyze_batch: chunks of `batch_size` trials assessed concurrently,
  chunks processed one after another (bounds outstanding LLM calls).
- stream: one trial at a time with a pacing delay, yielding each result
  as soon as it is ready (incremental UI updates).

Both return exactly one result per input trial, keyed by nctId.
"""

import asyncio
import logging
import random
from typing import AsyncIterator, List, Optional, Sequence

from .aggregator import aggregate, ScoringPolicy, DEFAULT_POLICY
from ..schemas.analysis import AnalysisResult, failed_result, is_failed_result
from ..schemas.patient import Patient
from ..schemas.trial import Trial

logger = logging.getLogger(__name__)


def sort_results(results: Sequence[AnalysisResult]) -> List[AnalysisResult]:
    """
    Order by score descending; results without a score go last.
    Stable, so ties keep their input order.
    """
    return sorted(results, key=lambda r: (r.score is None, -(r.score or 0)))


def chunked(items: Sequence, size: int) -> List[Sequence]:
    return [items[i:i + size] for i in range(0, len(items), size)]


class BatchOrchestrator:
    """Drives an assessor across a batch of trials for a single patient."""

    def __init__(
            self,
            assessor,
            batch_size: int = 5,
            delay_seconds: float = 0.5,
            policy: ScoringPolicy = DEFAULT_POLICY,
            rng: Optional[random.Random] = None
    ):
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self.assessor = assessor
        self.batch_size = batch_size
        self.delay_seconds = delay_seconds
        self.policy = policy
        self.rng = rng

    def refine(self, result: AnalysisResult) -> AnalysisResult:
        """Overwrite score/explanation with the aggregator's verdict."""
        if is_failed_result(result):
            return result
        scored = aggregate(result.inclusion_criteria, result.exclusion_criteria, rng=self.rng, policy=self.policy)
        return result.model_copy(update={"score": scored.score, "explanation": scored.explanation})

    async def analyze_trial(self, patient: Patient, trial: Trial) -> AnalysisResult:
        """Assess and score one trial. The result always carries the trial's nctId."""
        try:
            result = await self.assessor.assess(patient, trial)
        except Exception:
            # Assessors are not supposed to raise; contain it to this trial
            logger.exception("Assessor raised for trial %s", trial.nct_id)
            return failed_result(trial.nct_id)

        if result.nct_id != trial.nct_id:
            logger.warning("Assessor returned nctId %s for trial %s", result.nct_id, trial.nct_id)
            result = result.model_copy(update={"nct_id": trial.nct_id})
        return self.refine(result)

    async def analyze_batch(
            self,
            patient: Patient,
            trials: Sequence[Trial],
            sort: bool = True
    ) -> List[AnalysisResult]:
        """Chunked-parallel mode."""
        results: List[AnalysisResult] = []
        for index, chunk in enumerate(chunked(list(trials), self.batch_size)):
            logger.debug("Analyzing chunk %d (%d trials) for patient %s", index, len(chunk), patient.id)
            # gather preserves argument order, so results line up with the chunk by index
            chunk_results = await asyncio.gather(*(self.analyze_trial(patient, t) for t in chunk))
            results.extend(chunk_results)

        logger.info(
            "Analyzed %d trials for patient %s (%d failed)",
            len(results), patient.id, sum(1 for r in results if is_failed_result(r))
        )
        return sort_results(results) if sort else results

    async def stream(self, patient: Patient, trials: Sequence[Trial]) -> AsyncIterator[AnalysisResult]:
        """Sequential-with-delay mode. Yields results in input order."""
        trials = list(trials)
        for i, trial in enumerate(trials):
            yield await self.analyze_trial(patient, trial)
            if self.delay_seconds and i < len(trials) - 1:
                await asyncio.sleep(self.delay_seconds)
