from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel
from typing import Optional, List, Any
from enum import Enum

from .patient import Patient
from .trial import Trial


ANALYSIS_FAILED_EXPLANATION = "Failed to analyze eligibility due to an error"


class CriterionVerdict(str, Enum):
    """Three-valued verdict for a single criterion."""
    YES = "yes"
    NO = "no"
    UNKNOWN = "unknown"  # Not enough information; a real outcome, not an error


_VERDICT_ALIASES = {
    "yes": CriterionVerdict.YES,
    "met": CriterionVerdict.YES,
    "true": CriterionVerdict.YES,
    "no": CriterionVerdict.NO,
    "not met": CriterionVerdict.NO,
    "false": CriterionVerdict.NO,
    "unknown": CriterionVerdict.UNKNOWN,
}


class CriterionJudgment(BaseModel):
    """One inclusion or exclusion criterion with its verdict and rationale."""
    model_config = ConfigDict(frozen=True)

    criterion: str = ""
    met: CriterionVerdict = CriterionVerdict.UNKNOWN
    explanation: str = ""

    @field_validator("met", mode="before")
    @classmethod
    def _coerce_verdict(cls, value: Any) -> CriterionVerdict:
        # Absence of evidence is "unknown", never a dropped criterion
        if isinstance(value, CriterionVerdict):
            return value
        if isinstance(value, bool):
            return CriterionVerdict.YES if value else CriterionVerdict.NO
        if value is None:
            return CriterionVerdict.UNKNOWN
        return _VERDICT_ALIASES.get(str(value).strip().lower(), CriterionVerdict.UNKNOWN)

    @field_validator("criterion", "explanation", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> str:
        if value is None:
            return ""
        return value if isinstance(value, str) else str(value)


class AnalysisResult(BaseModel):
    """Eligibility analysis for one trial, keyed by nctId."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    nct_id: str
    score: Optional[int] = Field(0, ge=0, le=100)
    explanation: str = ""
    inclusion_criteria: List[CriterionJudgment] = Field(default_factory=list)
    exclusion_criteria: List[CriterionJudgment] = Field(default_factory=list)


def failed_result(nct_id: str) -> AnalysisResult:
    """The canonical degraded result for a trial whose analysis failed."""
    return AnalysisResult(
        nct_id=nct_id,
        score=0,
        explanation=ANALYSIS_FAILED_EXPLANATION,
        inclusion_criteria=[],
        exclusion_criteria=[]
    )


def is_failed_result(result: AnalysisResult) -> bool:
    """
    True when the result is the failure fallback (retry candidate).

    Matched on the whole degraded shape, so an assessment whose own
    explanation mentions a failure is still scored normally.
    """
    return (
        result.score == 0 and
        result.explanation == ANALYSIS_FAILED_EXPLANATION and
        not result.inclusion_criteria and
        not result.exclusion_criteria
    )


class AnalyzeEligibilityRequest(BaseModel):
    patient: Patient
    trials: List[Trial]


class AnalyzeEligibilityResponse(BaseModel):
    results: List[AnalysisResult]


class LabeledAnalysisResult(AnalysisResult):
    """Analysis result with its display band attached."""
    label: str


class MatchRequest(BaseModel):
    """Search the registry for a patient and analyze what comes back."""
    patient: Patient
    term: Optional[str] = None


class MatchResponse(BaseModel):
    term: str
    results: List[LabeledAnalysisResult] = Field(default_factory=list)
