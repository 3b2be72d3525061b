"""
Eligibility Aggregator

Turns inclusion/exclusion criterion judgments into a single 0-100
eligibility score and a human-readable explanation.

Precedence (most specific rule wins):
1. Exclusion veto - any exclusion criterion met disqualifies.
2. Inclusion failure - any inclusion criterion not met disqualifies.
3. Partial credit - ratio scoring with a penalty for unknowns,
   clamped to [floor, 100].
"""

import random
from dataclasses import dataclass
from typing import List, Optional, Sequence

from ..schemas.analysis import CriterionJudgment, CriterionVerdict


@dataclass(frozen=True)
class ScoringPolicy:
    """
    Score bands for the aggregator.

    The disqualification bands are demo constants carried over from the
    original UI, not a clinical policy.
    """
    exclusion_veto_min: int = 0
    exclusion_veto_max: int = 29
    inclusion_failure_min: int = 10
    inclusion_failure_max: int = 39
    partial_credit_floor: int = 40
    unknown_penalty_weight: float = 20.0

    @classmethod
    def from_settings(cls, settings) -> "ScoringPolicy":
        return cls(
            exclusion_veto_min=settings.EXCLUSION_VETO_SCORE_MIN,
            exclusion_veto_max=settings.EXCLUSION_VETO_SCORE_MAX,
            inclusion_failure_min=settings.INCLUSION_FAILURE_SCORE_MIN,
            inclusion_failure_max=settings.INCLUSION_FAILURE_SCORE_MAX,
            partial_credit_floor=settings.PARTIAL_CREDIT_FLOOR,
        )


DEFAULT_POLICY = ScoringPolicy()


@dataclass(frozen=True)
class AggregateScore:
    """Final score and explanation for one trial."""
    score: int
    explanation: str


def _band_score(low: int, high: int, rng: Optional[random.Random]) -> int:
    # Without an injected generator the band's lower bound is used
    if rng is None:
        return low
    return rng.randint(low, high)


def _count(criteria: Sequence[CriterionJudgment], verdict: CriterionVerdict) -> int:
    return sum(1 for c in criteria if c.met == verdict)


def aggregate(
        inclusion: Sequence[CriterionJudgment],
        exclusion: Sequence[CriterionJudgment],
        rng: Optional[random.Random] = None,
        policy: ScoringPolicy = DEFAULT_POLICY
) -> AggregateScore:
    """
    Compute the eligibility score for a set of criterion judgments.

    Pure and deterministic unless an explicit random source is passed,
    in which case disqualified scores are drawn from their band.
    """
    met_exclusion = [c for c in exclusion if c.met == CriterionVerdict.YES]
    if met_exclusion:
        reason = met_exclusion[0].criterion
        return AggregateScore(
            score=_band_score(policy.exclusion_veto_min, policy.exclusion_veto_max, rng),
            explanation=(
                f'Patient is ineligible because they meet an exclusion criterion: "{reason}". '
                "Meeting any exclusion criterion automatically disqualifies a patient from the trial."
            )
        )

    failed_inclusion = [c for c in inclusion if c.met == CriterionVerdict.NO]
    if failed_inclusion:
        reason = failed_inclusion[0].criterion
        return AggregateScore(
            score=_band_score(policy.inclusion_failure_min, policy.inclusion_failure_max, rng),
            explanation=(
                f'Patient is ineligible because they do not meet an inclusion criterion: "{reason}". '
                "All inclusion criteria must be met to qualify for the trial."
            )
        )

    total_inclusion = len(inclusion)
    total_exclusion = len(exclusion)
    if total_inclusion + total_exclusion == 0:
        return AggregateScore(
            score=policy.partial_credit_floor,
            explanation=(
                "No eligibility criteria could be evaluated for this trial. "
                "Review the trial's requirements with the study team to confirm eligibility."
            )
        )

    met_inclusion = _count(inclusion, CriterionVerdict.YES)
    avoided_exclusion = _count(exclusion, CriterionVerdict.NO)
    unknown = _count(inclusion, CriterionVerdict.UNKNOWN) + _count(exclusion, CriterionVerdict.UNKNOWN)

    inclusion_ratio = met_inclusion / total_inclusion if total_inclusion else 0.0
    exclusion_ratio = avoided_exclusion / total_exclusion if total_exclusion else 0.0
    unknown_penalty = policy.unknown_penalty_weight * unknown / (total_inclusion + total_exclusion)

    raw = round((inclusion_ratio * 100 + exclusion_ratio * 100) / 2 - unknown_penalty)
    score = max(policy.partial_credit_floor, min(100, raw))

    return AggregateScore(
        score=score,
        explanation=_partial_credit_explanation(
            score, met_inclusion, total_inclusion, avoided_exclusion, total_exclusion, unknown
        )
    )


def _partial_credit_explanation(
        score: int,
        met_inclusion: int,
        total_inclusion: int,
        avoided_exclusion: int,
        total_exclusion: int,
        unknown: int
) -> str:
    counts = (
        f"{met_inclusion}/{total_inclusion} inclusion criteria and avoids "
        f"{avoided_exclusion}/{total_exclusion} exclusion criteria"
    )
    if score >= 80:
        if unknown == 0:
            return (
                f"Patient meets all {counts}. "
                "The patient is eligible for this trial."
            )
        return (
            f"Patient meets {counts}, with {unknown} unknown factors. "
            "The patient is likely eligible, but additional information may be needed."
        )
    if score >= 50:
        return (
            f"Patient meets {counts}, with {unknown} unknown factors. "
            "The patient is possibly eligible, but additional information is needed to confirm."
        )
    return (
        f"Patient only meets {met_inclusion}/{total_inclusion} inclusion criteria and/or avoids "
        f"{avoided_exclusion}/{total_exclusion} exclusion criteria, with {unknown} unknown factors. "
        "The patient is likely not eligible for this trial."
    )


def eligibility_label(score: Optional[int]) -> str:
    """Display band for a score."""
    if score is None:
        return "Eligibility Unknown"
    if score >= 80:
        return "Likely Eligible"
    if score >= 50:
        return "Possibly Eligible"
    return "Likely Ineligible"
