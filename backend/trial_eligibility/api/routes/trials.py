from typing import List, Optional

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from ..deps import get_trials_service
from ...schemas.trial import Trial, TrialSearchResponse
from ...services.clinical_trials_api import ClinicalTrialsService

router = APIRouter()


@router.get("/clinicaltrials", response_model=TrialSearchResponse, response_model_exclude_none=True)
async def search_clinical_trials(
        term: Optional[str] = None,
        trials_service: ClinicalTrialsService = Depends(get_trials_service)
):
    """Raw registry search. Registry failures come back as success=false with no studies."""
    if not term:
        return JSONResponse(
            status_code=400,
            content={"success": False, "studies": [], "error": "No search term provided"}
        )
    return await trials_service.search(term)


@router.get("/trials/search", response_model=List[Trial])
async def search_trials(
        term: str,
        status: Optional[str] = "RECRUITING",
        trials_service: ClinicalTrialsService = Depends(get_trials_service)
):
    """Registry search normalized into Trial models."""
    return await trials_service.search_trials(term, status or None)
