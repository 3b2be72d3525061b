"""
Eligibility Matching Module

Scoring and batch orchestration for trial eligibility analysis.
"""

from .aggregator import (
    # Scoring
    aggregate,
    eligibility_label,

    # Data classes
    AggregateScore,
    ScoringPolicy,
    DEFAULT_POLICY,
)
from .orchestrator import (
    BatchOrchestrator,
    sort_results,
)

__all__ = [
    "aggregate",
    "eligibility_label",
    "AggregateScore",
    "ScoringPolicy",
    "DEFAULT_POLICY",
    "BatchOrchestrator",
    "sort_results",
]
