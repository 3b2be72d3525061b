"""
Tests for the LLM-backed Eligibility Matching Agent

Run with: python -m pytest backend/trial_eligibility/agents/test_eligibility_matching_agent.py -v
"""

import asyncio
import json
from types import SimpleNamespace

import pytest

from trial_eligibility.agents.eligibility_matching_agent import (
    AssessmentParseError,
    EligibilityMatchingAgent,
    parse_assessment,
)
from trial_eligibility.schemas.analysis import CriterionVerdict, failed_result
from trial_eligibility.schemas.patient import Patient, PatientCondition
from trial_eligibility.schemas.trial import Trial
from trial_eligibility.services.llm_service import LLMService


PATIENT = Patient(
    id="p-42",
    name="Sarah Johnson",
    gender="Female",
    birth_date="1965-11-23",
    conditions=[PatientCondition(name="Breast Cancer", code="254837009"), PatientCondition(name="Osteoporosis")]
)

TRIAL = Trial(
    nct_id="NCT01234567",
    brief_title="Letrozole Plus Palbociclib",
    eligibility_criteria="Inclusion Criteria:\n- Age 18 or older\n\nExclusion Criteria:\n- Known brain metastases"
)

GOOD_RESPONSE = {
    "score": 72,
    "explanation": "Patient likely meets most criteria.",
    "inclusionCriteria": [
        {"criterion": "Age 18 or older", "met": "yes", "explanation": "Born 1965."}
    ],
    "exclusionCriteria": [
        {"criterion": "Known brain metastases", "met": "unknown", "explanation": "Not documented."}
    ],
}


class FakeLLM:
    """Stands in for LLMService.generate_json."""

    def __init__(self, content=None, error=None, delay=0.0):
        self.content = content
        self.error = error
        self.delay = delay
        self.calls = []

    async def generate_json(self, prompt, system_prompt=None, temperature=0.2, max_tokens=2048):
        self.calls.append({
            "prompt": prompt,
            "system_prompt": system_prompt,
            "temperature": temperature,
            "max_tokens": max_tokens,
        })
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return self.content


def assess(agent, patient=PATIENT, trial=TRIAL):
    return asyncio.run(agent.assess(patient, trial))


def test_prompt_embeds_patient_and_trial():
    agent = EligibilityMatchingAgent(llm=FakeLLM())
    prompt = agent.build_prompt(PATIENT, TRIAL)

    assert "- ID: p-42" in prompt
    assert "- Name: Sarah Johnson" in prompt
    assert "- Gender: Female" in prompt
    assert "- Birth Date: 1965-11-23" in prompt
    assert "- Medical Conditions: Breast Cancer, Osteoporosis" in prompt
    assert "- ID: NCT01234567" in prompt
    assert "- Title: Letrozole Plus Palbociclib" in prompt
    assert "Known brain metastases" in prompt
    assert "91-100: Patient is clearly eligible" in prompt
    assert '"inclusionCriteria"' in prompt


def test_prompt_is_deterministic():
    agent = EligibilityMatchingAgent(llm=FakeLLM())
    assert agent.build_prompt(PATIENT, TRIAL) == agent.build_prompt(PATIENT, TRIAL)


def test_successful_assessment():
    llm = FakeLLM(content=json.dumps(GOOD_RESPONSE))
    result = assess(EligibilityMatchingAgent(llm=llm, temperature=0.1))

    assert result.nct_id == "NCT01234567"
    assert result.score == 72
    assert result.explanation == "Patient likely meets most criteria."
    assert result.inclusion_criteria[0].met == CriterionVerdict.YES
    assert result.exclusion_criteria[0].met == CriterionVerdict.UNKNOWN

    [call] = llm.calls
    assert call["temperature"] == 0.1
    assert "clinical research coordinator" in call["system_prompt"]


def test_empty_eligibility_text_still_returns_result():
    llm = FakeLLM(content=json.dumps({"score": 50, "explanation": "Nothing to assess."}))
    trial = Trial(nct_id="NCT00000001", brief_title="No criteria", eligibility_criteria="")

    result = assess(EligibilityMatchingAgent(llm=llm), trial=trial)

    assert result.nct_id == "NCT00000001"
    assert result.inclusion_criteria == []
    assert result.exclusion_criteria == []
    assert "No eligibility criteria provided." in llm.calls[0]["prompt"]


def test_malformed_response_returns_canonical_failure():
    result = assess(EligibilityMatchingAgent(llm=FakeLLM(content="I think the patient is eligible!")))

    assert result.model_dump(by_alias=True) == {
        "nctId": "NCT01234567",
        "score": 0,
        "explanation": "Failed to analyze eligibility due to an error",
        "inclusionCriteria": [],
        "exclusionCriteria": [],
    }


@pytest.mark.parametrize("payload", [
    {"explanation": "no score"},
    {"score": "high", "explanation": "bad score"},
    {"score": 140, "explanation": "out of range"},
    {"score": -1, "explanation": "out of range"},
    {"score": True, "explanation": "boolean score"},
    {"score": 60},
    {"score": 60, "explanation": "x", "inclusionCriteria": "not a list"},
    ["not", "an", "object"],
])
def test_schema_violations_fall_back(payload):
    result = assess(EligibilityMatchingAgent(llm=FakeLLM(content=json.dumps(payload))))
    assert result == failed_result("NCT01234567")


def test_llm_error_falls_back():
    llm = FakeLLM(error=RuntimeError("All LLM providers failed. Last error: 500"))
    assert assess(EligibilityMatchingAgent(llm=llm)) == failed_result("NCT01234567")


def test_timeout_falls_back():
    llm = FakeLLM(content=json.dumps(GOOD_RESPONSE), delay=1.0)
    assert assess(EligibilityMatchingAgent(llm=llm, timeout=0.01)) == failed_result("NCT01234567")


def test_no_provider_configured_falls_back():
    config = SimpleNamespace(
        GROQ_API_KEY=None, GROQ_API_KEY_2=None, GEMINI_API_KEY=None, GEMINI_API_KEY_2=None,
        GROQ_MODEL="m", GEMINI_MODEL="m"
    )
    llm = LLMService(config=config)
    assert not llm.available
    assert assess(EligibilityMatchingAgent(llm=llm)) == failed_result("NCT01234567")


def test_parse_strips_code_fences():
    content = "```json\n" + json.dumps(GOOD_RESPONSE) + "\n```"
    result = parse_assessment(content, "NCT1")
    assert result.score == 72
    assert result.nct_id == "NCT1"


def test_parse_rounds_float_score():
    result = parse_assessment(json.dumps({"score": 71.6, "explanation": "x"}), "NCT1")
    assert result.score == 72


def test_parse_coerces_missing_and_odd_verdicts():
    payload = {
        "score": 60,
        "explanation": "x",
        "inclusionCriteria": [
            {"criterion": "No verdict given"},
            {"criterion": "Boolean verdict", "met": True},
            {"criterion": "Odd verdict", "met": "maybe", "explanation": None},
            "Bare criterion text",
        ],
        "exclusionCriteria": [{"criterion": "Upper case", "met": "NO"}],
    }
    result = parse_assessment(json.dumps(payload), "NCT1")

    verdicts = [c.met for c in result.inclusion_criteria]
    assert verdicts == [
        CriterionVerdict.UNKNOWN, CriterionVerdict.YES, CriterionVerdict.UNKNOWN, CriterionVerdict.UNKNOWN
    ]
    assert result.inclusion_criteria[2].explanation == ""
    assert result.inclusion_criteria[3].criterion == "Bare criterion text"
    assert result.exclusion_criteria[0].met == CriterionVerdict.NO


def test_parse_rejects_non_json():
    with pytest.raises(AssessmentParseError):
        parse_assessment("not json", "NCT1")
