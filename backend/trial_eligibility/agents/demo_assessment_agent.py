"""
Demo-mode assessor.

Produces plausible criterion judgments without calling an LLM, for demos
and offline development. The keyword checks below are stand-ins for the
real assessor and are not used by the production scoring path.
"""

import asyncio
import random
import re
from typing import List, Optional

from .base_agent import BaseAgent
from ..normalizers.fhir import calculate_age
from ..schemas.analysis import AnalysisResult, CriterionJudgment, CriterionVerdict
from ..schemas.patient import Patient
from ..schemas.trial import Trial

YES = CriterionVerdict.YES
NO = CriterionVerdict.NO
UNKNOWN = CriterionVerdict.UNKNOWN

DEMO_INCLUSION_CRITERIA = [
    "Age ≥ 18 years",
    "Histologically confirmed diagnosis of cancer",
    "ECOG performance status ≤ 2",
    "Adequate organ function",
    "Ability to understand and provide informed consent",
]

DEMO_EXCLUSION_CRITERIA = [
    "Prior treatment with investigational agents within 4 weeks",
    "Known brain metastases",
    "History of allergic reactions to similar compounds",
    "Pregnant or breastfeeding",
    "Uncontrolled intercurrent illness",
]

CANCER_TERMS = ("cancer", "carcinoma", "tumor")
BRAIN_METASTASES_TERMS = ("brain metastasis", "brain metastases")


def _has_condition(patient: Patient, terms) -> bool:
    return any(term in c.name.lower() for c in patient.conditions for term in terms)


def _patient_age(patient: Patient) -> Optional[int]:
    if patient.age:
        return patient.age
    return calculate_age(patient.birth_date) or None


def _ecog_value(patient: Patient) -> Optional[int]:
    match = re.search(r"\d+", patient.performance_status or "")
    return int(match.group()) if match else None


class DemoAssessmentAgent(BaseAgent):
    """Heuristic assessor backed by an injectable random source."""

    def __init__(self, rng: Optional[random.Random] = None, latency: float = 0.0):
        super().__init__(
            name="Demo Assessment Agent",
            description="Generate demo eligibility judgments without an LLM."
        )
        self.rng = rng or random.Random()
        self.latency = latency

    def _inclusion_verdict(self, criterion: str, patient: Patient) -> CriterionVerdict:
        if "Age" in criterion:
            age = _patient_age(patient)
            if age is None:
                return UNKNOWN
            required = int(re.search(r"\d+", criterion).group())
            return YES if age >= required else NO
        if "cancer" in criterion or "diagnosis" in criterion:
            return YES if _has_condition(patient, CANCER_TERMS) else NO
        if "ECOG" in criterion:
            ecog = _ecog_value(patient)
            if ecog is None:
                return UNKNOWN
            return YES if ecog <= 2 else NO
        # Weighted toward "yes"
        draw = self.rng.random()
        return YES if draw > 0.2 else UNKNOWN if draw > 0.1 else NO

    def _exclusion_verdict(self, criterion: str, patient: Patient) -> CriterionVerdict:
        if "brain metastases" in criterion:
            return YES if _has_condition(patient, BRAIN_METASTASES_TERMS) else NO
        if "Pregnant" in criterion or "pregnant" in criterion:
            return NO if patient.gender.lower() == "male" else UNKNOWN
        # Weighted toward "no"
        draw = self.rng.random()
        return YES if draw > 0.8 else NO if draw > 0.2 else UNKNOWN

    def _explain(self, criterion: str, met: CriterionVerdict, patient: Patient) -> str:
        if "Age" in criterion:
            age = _patient_age(patient)
            if age is None:
                return "Patient's age is unknown. Additional information is needed to determine eligibility for this criterion."
            required = re.search(r"\d+", criterion).group()
            verb = "meets" if met == YES else "does not meet"
            return f"Patient is {age} years old, which {verb} the age requirement of ≥ {required} years."
        if "cancer" in criterion or "diagnosis" in criterion:
            verb = "has" if met == YES else "does not have"
            return f"Patient {verb} a confirmed cancer diagnosis."
        if "ECOG" in criterion:
            return f"Patient's ECOG performance status is {patient.performance_status or 'unknown'}."
        if "brain metastases" in criterion:
            verb = "has" if met == YES else "does not have"
            return f"Patient {verb} known brain metastases."
        if "Pregnant" in criterion:
            if met == NO:
                return "Patient is male and cannot be pregnant."
            return "Pregnancy status is unknown."

        if met == YES:
            return "Based on available information, patient meets this criterion."
        if met == NO:
            return "Based on available information, patient does not meet this criterion."
        return "Insufficient information to determine if patient meets this criterion."

    def judge(self, patient: Patient) -> tuple:
        """Return (inclusion, exclusion) judgment lists for the demo criteria."""
        inclusion: List[CriterionJudgment] = []
        for criterion in DEMO_INCLUSION_CRITERIA:
            met = self._inclusion_verdict(criterion, patient)
            inclusion.append(CriterionJudgment(
                criterion=criterion, met=met, explanation=self._explain(criterion, met, patient)
            ))

        exclusion: List[CriterionJudgment] = []
        for criterion in DEMO_EXCLUSION_CRITERIA:
            met = self._exclusion_verdict(criterion, patient)
            exclusion.append(CriterionJudgment(
                criterion=criterion, met=met, explanation=self._explain(criterion, met, patient)
            ))
        return inclusion, exclusion

    async def assess(self, patient: Patient, trial: Trial) -> AnalysisResult:
        """
        Judgments only. Score and explanation are left for the
        orchestrator, which runs them through the aggregator.
        """
        if self.latency:
            await asyncio.sleep(self.latency)

        inclusion, exclusion = self.judge(patient)
        return AnalysisResult(
            nct_id=trial.nct_id,
            score=None,
            inclusion_criteria=inclusion,
            exclusion_criteria=exclusion
        )
