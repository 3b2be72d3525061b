import asyncio
import json
import logging
import re
from typing import Any, List, Optional

from pydantic import ValidationError

from .base_agent import BaseAgent
from ..core.config import settings
from ..schemas.analysis import AnalysisResult, CriterionJudgment, failed_result
from ..schemas.patient import Patient
from ..schemas.trial import Trial
from ..services.llm_service import LLMService

logger = logging.getLogger(__name__)


class AssessmentParseError(ValueError):
    """The LLM response did not match the expected analysis schema."""


def _strip_fences(content: str) -> str:
    s = content.strip()
    if s.startswith("```") and s.endswith("```"):
        s = re.sub(r"^```(?:json)?\s*", "", s, flags=re.IGNORECASE)
        s = re.sub(r"\s*```$", "", s)
    return s.strip()


def _parse_judgments(items: Any, field_name: str) -> List[CriterionJudgment]:
    if items is None:
        return []
    if not isinstance(items, list):
        raise AssessmentParseError(f"'{field_name}' is not a list")

    judgments = []
    for item in items:
        if isinstance(item, str):
            # Bare criterion text with no verdict
            judgments.append(CriterionJudgment(criterion=item))
        elif isinstance(item, dict):
            judgments.append(CriterionJudgment.model_validate(item))
        else:
            raise AssessmentParseError(f"Unexpected entry in '{field_name}': {item!r}")
    return judgments


def parse_assessment(content: str, nct_id: str) -> AnalysisResult:
    """
    Parse the LLM's JSON reply into an AnalysisResult for nct_id.
    Raises AssessmentParseError when the reply does not fit the schema.
    """
    try:
        data = json.loads(_strip_fences(content or ""))
    except json.JSONDecodeError as e:
        raise AssessmentParseError(f"Response is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise AssessmentParseError("Response is not a JSON object")

    score = data.get("score")
    if isinstance(score, bool) or not isinstance(score, (int, float)):
        raise AssessmentParseError(f"Missing or non-numeric score: {score!r}")
    if not 0 <= score <= 100:
        raise AssessmentParseError(f"Score out of range: {score}")

    explanation = data.get("explanation")
    if not isinstance(explanation, str):
        raise AssessmentParseError("Missing explanation")

    try:
        return AnalysisResult(
            nct_id=nct_id,
            score=int(round(score)),
            explanation=explanation,
            inclusion_criteria=_parse_judgments(data.get("inclusionCriteria"), "inclusionCriteria"),
            exclusion_criteria=_parse_judgments(data.get("exclusionCriteria"), "exclusionCriteria")
        )
    except ValidationError as e:
        raise AssessmentParseError(str(e)) from e


class EligibilityMatchingAgent(BaseAgent):
    """
    Agent responsible for judging a trial's free-text eligibility criteria
    against a patient profile with the LLM.

    One LLM call per trial. Every failure (provider error, timeout,
    malformed JSON) is converted into the degraded result.
    """

    def __init__(
            self,
            llm: LLMService = None,
            timeout: float = settings.ANALYSIS_TIMEOUT_SECONDS,
            temperature: float = settings.ANALYSIS_TEMPERATURE,
            max_tokens: int = settings.ANALYSIS_MAX_TOKENS
    ):
        super().__init__(
            name="Eligibility Matching Agent",
            description="Assess patient eligibility against clinical trial criteria.",
            llm=llm
        )
        self.timeout = timeout
        self.temperature = temperature
        self.max_tokens = max_tokens

    def get_system_prompt(self) -> str:
        return "You are a clinical research coordinator with expertise in clinical trial eligibility assessment."

    def build_prompt(self, patient: Patient, trial: Trial) -> str:
        conditions = ", ".join(patient.condition_names) or "None reported"
        criteria = trial.eligibility_criteria.strip() or "No eligibility criteria provided."

        return f"""You are a clinical research coordinator assessing patient eligibility for clinical trials.

PATIENT INFORMATION:
- ID: {patient.id}
- Name: {patient.name}
- Gender: {patient.gender}
- Birth Date: {patient.birth_date}
- Medical Conditions: {conditions}

CLINICAL TRIAL:
- ID: {trial.nct_id}
- Title: {trial.brief_title}

ELIGIBILITY CRITERIA:
{criteria}

Based on the patient information and the trial eligibility criteria, assess if this patient is likely eligible for this clinical trial.
Analyze each inclusion and exclusion criterion and determine if the patient meets it based on the available information.
If there's not enough information to determine eligibility for a specific criterion, note that.

Extract and analyze the key inclusion and exclusion criteria separately. For each criterion:
1. Identify if it's an inclusion or exclusion criterion
2. Determine if the patient meets it (yes), doesn't meet it (no), or if there's not enough information (unknown)
3. Provide a brief explanation for your determination

Then provide an overall assessment of eligibility with a score from 0-100, where:
- 0-30: Patient is clearly ineligible
- 31-50: Patient is likely ineligible
- 51-70: Patient may be eligible but more information is needed
- 71-90: Patient is likely eligible
- 91-100: Patient is clearly eligible

Return your response in JSON format with the following structure:
{{
  "score": number,
  "explanation": string,
  "inclusionCriteria": [
    {{
      "criterion": string,
      "met": "yes" | "no" | "unknown",
      "explanation": string
    }}
  ],
  "exclusionCriteria": [
    {{
      "criterion": string,
      "met": "yes" | "no" | "unknown",
      "explanation": string
    }}
  ]
}}"""

    async def _call_llm(self, prompt: str) -> str:
        return await asyncio.wait_for(
            self.llm.generate_json(
                prompt,
                self.get_system_prompt(),
                temperature=self.temperature,
                max_tokens=self.max_tokens
            ),
            timeout=self.timeout
        )

    async def assess(self, patient: Patient, trial: Trial) -> AnalysisResult:
        """Assess one trial. Never raises."""
        try:
            content = await self._call_llm(self.build_prompt(patient, trial))
            return parse_assessment(content, trial.nct_id)
        except asyncio.TimeoutError:
            logger.error("Timed out analyzing trial %s after %.1fs", trial.nct_id, self.timeout)
        except AssessmentParseError as e:
            logger.error("Malformed analysis for trial %s: %s", trial.nct_id, e)
        except Exception:
            logger.exception("Error analyzing trial %s", trial.nct_id)
        return failed_result(trial.nct_id)


# Singleton instance
eligibility_matching_agent = EligibilityMatchingAgent()
