from abc import ABC, abstractmethod

from ..schemas.analysis import AnalysisResult
from ..schemas.patient import Patient
from ..schemas.trial import Trial
from ..services.llm_service import LLMService, llm_service


class BaseAgent(ABC):
    """
    Base class for eligibility assessors.

    An agent judges one (patient, trial) pair and must never raise to
    its caller: failures come back as a degraded AnalysisResult.
    """

    def __init__(self, name: str, description: str, llm: LLMService = None):
        self.name = name
        self.description = description
        self.llm = llm or llm_service

    @abstractmethod
    async def assess(self, patient: Patient, trial: Trial) -> AnalysisResult:
        """Judge the trial's criteria against the patient."""
