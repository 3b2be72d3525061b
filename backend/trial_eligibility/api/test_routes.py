"""
Tests for the HTTP endpoints

Run with: python -m pytest backend/trial_eligibility/api/test_routes.py -v
"""

import json

import pytest
from fastapi.testclient import TestClient

from main import app
from trial_eligibility.api.deps import get_orchestrator, get_trials_service
from trial_eligibility.matching.orchestrator import BatchOrchestrator
from trial_eligibility.schemas.analysis import AnalysisResult, CriterionJudgment, failed_result
from trial_eligibility.schemas.trial import Trial, TrialSearchResponse


PATIENT = {
    "id": "2",
    "name": "Sarah Johnson",
    "gender": "Female",
    "birthDate": "1965-11-23",
    "conditions": [{"name": "Breast Cancer", "code": "254837009"}],
}

TRIALS = [
    {"nctId": "NCT00000001", "briefTitle": "Veto", "eligibilityCriteria": "..."},
    {"nctId": "NCT00000002", "briefTitle": "Clean", "eligibilityCriteria": "..."},
    {"nctId": "NCT00000003", "briefTitle": "Broken", "eligibilityCriteria": ""},
]


class StubAssessor:
    """Deterministic judgments keyed by trial title."""

    async def assess(self, patient, trial):
        if trial.brief_title == "Broken":
            return failed_result(trial.nct_id)
        if trial.brief_title == "Veto":
            exclusion = [CriterionJudgment(criterion="Known brain metastases", met="yes")]
        else:
            exclusion = [CriterionJudgment(criterion="Known brain metastases", met="no")]
        return AnalysisResult(
            nct_id=trial.nct_id,
            score=50,
            explanation="raw",
            inclusion_criteria=[CriterionJudgment(criterion="Age ≥ 18", met="yes")],
            exclusion_criteria=exclusion
        )


class ExplodingOrchestrator:
    async def analyze_batch(self, patient, trials, sort=True):
        raise MemoryError("out of memory")


class StubTrialsService:
    def __init__(self):
        self.terms = []

    async def search(self, term, status="RECRUITING"):
        self.terms.append(term)
        return TrialSearchResponse(success=True, studies=[{"protocolSection": {}}])

    async def search_trials(self, term, status="RECRUITING"):
        self.terms.append(term)
        return [Trial(nct_id="NCT00000002", brief_title="Clean")]


@pytest.fixture
def trials_service():
    return StubTrialsService()


@pytest.fixture
def client(trials_service):
    app.dependency_overrides[get_orchestrator] = lambda: BatchOrchestrator(StubAssessor(), batch_size=2, delay_seconds=0)
    app.dependency_overrides[get_trials_service] = lambda: trials_service
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_health(client):
    assert client.get("/health").json() == {"status": "healthy"}


def test_analyze_eligibility(client):
    response = client.post("/api/analyze-eligibility", json={"patient": PATIENT, "trials": TRIALS})

    assert response.status_code == 200
    results = response.json()["results"]
    assert [r["nctId"] for r in results] == ["NCT00000002", "NCT00000001", "NCT00000003"]

    clean, veto, broken = results
    assert clean["score"] == 100
    assert clean["inclusionCriteria"] == [{"criterion": "Age ≥ 18", "met": "yes", "explanation": ""}]
    assert veto["score"] < 30
    assert "Known brain metastases" in veto["explanation"]
    assert broken == {
        "nctId": "NCT00000003",
        "score": 0,
        "explanation": "Failed to analyze eligibility due to an error",
        "inclusionCriteria": [],
        "exclusionCriteria": [],
    }


def test_analyze_eligibility_empty_batch(client):
    response = client.post("/api/analyze-eligibility", json={"patient": PATIENT, "trials": []})
    assert response.status_code == 200
    assert response.json() == {"results": []}


@pytest.mark.parametrize("method", ["get", "put", "delete"])
def test_analyze_eligibility_wrong_method(client, method):
    response = getattr(client, method)("/api/analyze-eligibility")
    assert response.status_code == 405
    assert response.json() == {"error": "Method not allowed"}


@pytest.mark.parametrize("body", [
    {"trials": TRIALS},
    {"patient": PATIENT},
    {"patient": PATIENT, "trials": "NCT00000001"},
    {"patient": None, "trials": TRIALS},
    {"patient": {"name": "no id"}, "trials": TRIALS},
    {"patient": PATIENT, "trials": [{"briefTitle": "no nctId"}]},
    ["not", "an", "object"],
])
def test_analyze_eligibility_invalid_body(client, body):
    response = client.post("/api/analyze-eligibility", json=body)
    assert response.status_code == 400
    assert response.json() == {"error": "Invalid request data"}


def test_null_optional_fields_fall_back_to_defaults(client):
    patient = dict(PATIENT, name=None, gender=None, birthDate=None)
    trials = [
        {"nctId": "NCT00000001", "briefTitle": None, "eligibilityCriteria": None},
        {"nctId": "NCT00000002", "briefTitle": "Clean", "eligibilityCriteria": "..."},
    ]

    response = client.post("/api/analyze-eligibility", json={"patient": patient, "trials": trials})

    assert response.status_code == 200
    assert sorted(r["nctId"] for r in response.json()["results"]) == ["NCT00000001", "NCT00000002"]


def test_analyze_eligibility_invalid_json(client):
    response = client.post(
        "/api/analyze-eligibility",
        content=b"{not json",
        headers={"Content-Type": "application/json"}
    )
    assert response.status_code == 400


def test_analyze_eligibility_internal_error(client):
    app.dependency_overrides[get_orchestrator] = lambda: ExplodingOrchestrator()

    response = client.post("/api/analyze-eligibility", json={"patient": PATIENT, "trials": TRIALS})

    assert response.status_code == 500
    assert response.json() == {"error": "Failed to analyze trial eligibility"}


def test_stream_in_input_order(client):
    response = client.post("/api/analyze-eligibility/stream", json={"patient": PATIENT, "trials": TRIALS})

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("application/x-ndjson")
    lines = [json.loads(line) for line in response.text.splitlines() if line]
    assert [r["nctId"] for r in lines] == ["NCT00000001", "NCT00000002", "NCT00000003"]


@pytest.mark.parametrize("method", ["get", "put", "delete"])
def test_stream_wrong_method(client, method):
    response = getattr(client, method)("/api/analyze-eligibility/stream")
    assert response.status_code == 405
    assert response.json() == {"error": "Method not allowed"}


def test_stream_rejects_invalid_body(client):
    response = client.post("/api/analyze-eligibility/stream", json={"patient": PATIENT})
    assert response.status_code == 400


def test_match_defaults_term_to_first_condition(client, trials_service):
    response = client.post("/api/match", json={"patient": PATIENT})

    assert response.status_code == 200
    body = response.json()
    assert body["term"] == "Breast Cancer"
    assert trials_service.terms == ["Breast Cancer"]
    assert body["results"][0]["nctId"] == "NCT00000002"
    assert body["results"][0]["label"] == "Likely Eligible"


def test_match_without_term_or_conditions(client):
    patient = dict(PATIENT, conditions=[])
    response = client.post("/api/match", json={"patient": patient})
    assert response.status_code == 400
    assert response.json() == {"error": "No search term provided"}


def test_clinicaltrials_requires_term(client):
    response = client.get("/api/clinicaltrials")
    assert response.status_code == 400
    assert response.json()["success"] is False


def test_clinicaltrials_passthrough(client, trials_service):
    response = client.get("/api/clinicaltrials", params={"term": "melanoma"})
    assert response.status_code == 200
    assert response.json() == {"success": True, "studies": [{"protocolSection": {}}]}
    assert trials_service.terms == ["melanoma"]


def test_trials_search(client):
    response = client.get("/api/trials/search", params={"term": "melanoma"})
    assert response.status_code == 200
    assert response.json()[0]["nctId"] == "NCT00000002"


def test_demo_patients(client):
    patients = client.get("/api/demo-patients").json()
    assert [p["name"] for p in patients] == ["John Smith", "Sarah Johnson", "Robert Williams"]
    assert all(p["age"] >= 58 for p in patients)
    assert patients[0]["performanceStatus"] == "ECOG 1"


def test_fhir_patient(client):
    bundle = {
        "resourceType": "Bundle",
        "entry": [
            {"resource": {"resourceType": "Patient", "id": "abc", "gender": "female",
                          "name": [{"given": ["Ana"], "family": "Lopez"}]}},
            {"resource": {"resourceType": "Condition", "code": {"text": "Melanoma"}}},
        ],
    }
    patient = client.post("/api/fhir/patient", json=bundle).json()

    assert patient["id"] == "abc"
    assert patient["name"] == "Ana Lopez"
    assert patient["gender"] == "Female"
    assert patient["conditions"] == [{"name": "Melanoma", "code": "", "diagnosisDate": "", "status": "unknown"}]
    assert patient["medications"] == []
