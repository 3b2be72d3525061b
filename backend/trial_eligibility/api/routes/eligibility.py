import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse
from pydantic import ValidationError

from ..deps import get_orchestrator, get_trials_service
from ..errors import ApiError, method_not_allowed
from ...matching.aggregator import eligibility_label
from ...matching.orchestrator import BatchOrchestrator
from ...schemas.analysis import (
    AnalyzeEligibilityRequest,
    AnalyzeEligibilityResponse,
    LabeledAnalysisResult,
    MatchRequest,
    MatchResponse,
)
from ...services.clinical_trials_api import ClinicalTrialsService

logger = logging.getLogger(__name__)

router = APIRouter()

OTHER_METHODS = ["GET", "PUT", "PATCH", "DELETE"]


async def _read_json(request: Request) -> Dict[str, Any]:
    try:
        body = await request.json()
    except ValueError:
        raise ApiError(400, "Invalid request data")
    if not isinstance(body, dict):
        raise ApiError(400, "Invalid request data")
    return body


async def _parse_analysis_request(request: Request) -> AnalyzeEligibilityRequest:
    """Validate {patient, trials}; anything malformed is a 400, not a 422."""
    body = await _read_json(request)
    if not body.get("patient") or not isinstance(body.get("trials"), list):
        raise ApiError(400, "Invalid request data")
    try:
        return AnalyzeEligibilityRequest.model_validate(body)
    except ValidationError as e:
        logger.info("Rejected analysis request: %s", e)
        raise ApiError(400, "Invalid request data")


@router.post("/analyze-eligibility", response_model=AnalyzeEligibilityResponse)
async def analyze_eligibility(
        request: Request,
        orchestrator: BatchOrchestrator = Depends(get_orchestrator)
):
    """
    Analyze a patient against a batch of trials.

    Trials are assessed in chunks; per-trial failures come back as
    results with score 0 rather than failing the request.
    """
    payload = await _parse_analysis_request(request)

    try:
        results = await orchestrator.analyze_batch(payload.patient, payload.trials)
    except Exception:
        logger.exception("Error analyzing eligibility")
        raise ApiError(500, "Failed to analyze trial eligibility")

    return AnalyzeEligibilityResponse(results=results)


@router.api_route("/analyze-eligibility", methods=OTHER_METHODS, include_in_schema=False)
@router.api_route("/analyze-eligibility/stream", methods=OTHER_METHODS, include_in_schema=False)
async def analyze_eligibility_wrong_method():
    method_not_allowed()


@router.post("/analyze-eligibility/stream")
async def analyze_eligibility_stream(
        request: Request,
        orchestrator: BatchOrchestrator = Depends(get_orchestrator)
):
    """
    Analyze trials one at a time, streaming each result as NDJSON
    in input order.
    """
    payload = await _parse_analysis_request(request)

    async def _lines():
        async for result in orchestrator.stream(payload.patient, payload.trials):
            yield result.model_dump_json(by_alias=True) + "\n"

    return StreamingResponse(_lines(), media_type="application/x-ndjson")


@router.post("/match", response_model=MatchResponse)
async def match_trials(
        payload: MatchRequest,
        orchestrator: BatchOrchestrator = Depends(get_orchestrator),
        trials_service: ClinicalTrialsService = Depends(get_trials_service)
):
    """
    Search the registry for the patient and analyze every trial found.
    The search term defaults to the patient's first condition.
    """
    term = (payload.term or "").strip()
    if not term and payload.patient.conditions:
        term = payload.patient.conditions[0].name
    if not term:
        raise ApiError(400, "No search term provided")

    trials = await trials_service.search_trials(term)

    try:
        results = await orchestrator.analyze_batch(payload.patient, trials)
    except Exception:
        logger.exception("Error matching trials for patient %s", payload.patient.id)
        raise ApiError(500, "Failed to analyze trial eligibility")

    return MatchResponse(
        term=term,
        results=[
            LabeledAnalysisResult(**r.model_dump(), label=eligibility_label(r.score))
            for r in results
        ]
    )
