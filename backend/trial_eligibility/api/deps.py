import random
from functools import lru_cache

from ..agents.base_agent import BaseAgent
from ..agents.demo_assessment_agent import DemoAssessmentAgent
from ..agents.eligibility_matching_agent import eligibility_matching_agent
from ..core.config import settings
from ..matching.aggregator import ScoringPolicy
from ..matching.orchestrator import BatchOrchestrator
from ..services.clinical_trials_api import ClinicalTrialsService, clinical_trials_service


@lru_cache(maxsize=1)
def _demo_rng() -> random.Random:
    return random.Random(settings.DEMO_ASSESSOR_SEED)


def get_assessor() -> BaseAgent:
    """LLM assessor, or the heuristic demo assessor when USE_DEMO_ASSESSOR is set."""
    if settings.USE_DEMO_ASSESSOR:
        return DemoAssessmentAgent(rng=_demo_rng())
    return eligibility_matching_agent


def get_orchestrator() -> BatchOrchestrator:
    return BatchOrchestrator(
        get_assessor(),
        batch_size=settings.ANALYSIS_BATCH_SIZE,
        delay_seconds=settings.STREAM_DELAY_SECONDS,
        policy=ScoringPolicy.from_settings(settings),
        rng=_demo_rng() if settings.USE_DEMO_ASSESSOR else None
    )


def get_trials_service() -> ClinicalTrialsService:
    return clinical_trials_service
