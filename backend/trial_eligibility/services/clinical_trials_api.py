"""ClinicalTrials.gov API client (v2 /studies).

Registry failures are never fatal: a failed or malformed search falls
back to a simpler query, and then to "zero trials found".
"""

import logging
from typing import Any, Dict, List, Optional

import httpx

from ..core.config import settings
from ..schemas.trial import Trial, TrialSearchResponse
from ..normalizers.registry import normalize_trials

logger = logging.getLogger(__name__)

DEFAULT_STATUS_FILTER = "RECRUITING"


def _build_endpoint_v2(base: str) -> str:
    base = base.rstrip("/")
    # Allow base to be either .../api or .../api/v2
    if base.endswith("/v2"):
        return f"{base}/studies"
    return f"{base}/v2/studies"


class ClinicalTrialsService:
    """Async search client for the public trial registry."""

    def __init__(
            self,
            base_url: str = settings.CLINICAL_TRIALS_API_BASE,
            timeout: float = settings.CLINICAL_TRIALS_TIMEOUT_SECONDS,
            page_size: int = settings.CLINICAL_TRIALS_PAGE_SIZE,
            fallback_page_size: int = settings.CLINICAL_TRIALS_FALLBACK_PAGE_SIZE,
            client: Optional[httpx.AsyncClient] = None
    ):
        self.endpoint = _build_endpoint_v2(base_url)
        self.timeout = timeout
        self.page_size = page_size
        self.fallback_page_size = fallback_page_size
        self._client = client

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                headers={"User-Agent": "trial-eligibility/0.1"}
            )
        return self._client

    async def _fetch_studies(self, params: Dict[str, str]) -> List[Dict[str, Any]]:
        """GET /studies and return the raw study records. Raises on HTTP or payload errors."""
        resp = await self._get_client().get(self.endpoint, params=params)
        resp.raise_for_status()
        data = resp.json()
        if not isinstance(data, dict):
            raise ValueError("Unexpected registry payload")
        studies = data.get("studies") or []
        if not isinstance(studies, list):
            raise ValueError("Unexpected registry payload: 'studies' is not a list")

        records = [s for s in studies if isinstance(s, dict)]
        if len(records) < len(studies):
            logger.warning("Skipped %d non-object study records", len(studies) - len(records))
        return records

    async def search(self, term: str, status: Optional[str] = DEFAULT_STATUS_FILTER) -> TrialSearchResponse:
        """
        Search the registry by free-text term.

        Tries the status-filtered query first, then an unfiltered smaller
        query, then gives up with an empty result.
        """
        params = {"query.term": term, "pageSize": str(self.page_size)}
        if status:
            params["filter.overallStatus"] = status

        studies = None
        try:
            studies = await self._fetch_studies(params)
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("Error fetching data from ClinicalTrials.gov API: %s", e)

        if studies is None:
            logger.info("Attempting fallback approach with simpler request...")
            try:
                studies = await self._fetch_studies({"query.term": term, "pageSize": str(self.fallback_page_size)})
            except (httpx.HTTPError, ValueError) as e:
                logger.error("Fallback approach also failed: %s", e)

        if studies is not None:
            return TrialSearchResponse(success=True, studies=studies)

        return TrialSearchResponse(
            success=False,
            studies=[],
            error="Error fetching data from ClinicalTrials.gov API"
        )

    async def search_trials(self, term: str, status: Optional[str] = DEFAULT_STATUS_FILTER) -> List[Trial]:
        """Search and normalize into Trial models."""
        response = await self.search(term, status)
        return normalize_trials(response.studies)

    async def close(self):
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()


# Singleton instance
clinical_trials_service = ClinicalTrialsService()
