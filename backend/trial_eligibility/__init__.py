"""Clinical trial eligibility analysis.

Normalizes FHIR patients and ClinicalTrials.gov records, asks an LLM to
judge each trial's criteria, and scores the judgments with a fixed
precedence (exclusion veto, inclusion failure, partial credit).
"""

__version__ = "0.1.0"
