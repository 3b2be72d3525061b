"""Map ClinicalTrials.gov v2 study records onto the Trial model."""

from typing import Any, Dict, Iterable, List

from ..schemas.trial import Trial


def _section(record: Any, *path: str) -> Dict[str, Any]:
    """Walk nested dicts, returning {} as soon as a level is missing or malformed."""
    node = record
    for key in path:
        if not isinstance(node, dict):
            return {}
        node = node.get(key)
    return node if isinstance(node, dict) else {}


def _text(value: Any, default: str) -> str:
    if isinstance(value, str) and value.strip():
        return value
    return default


def normalize_trial(raw: Dict[str, Any]) -> Trial:
    """
    Extract the fields the eligibility pipeline needs from a registry record.
    Missing fields become defaults; never raises.
    """
    ident = _section(raw, "protocolSection", "identificationModule")
    status = _section(raw, "protocolSection", "statusModule")
    design = _section(raw, "protocolSection", "designModule")
    description = _section(raw, "protocolSection", "descriptionModule")
    eligibility = _section(raw, "protocolSection", "eligibilityModule")

    phases = design.get("phases")
    if isinstance(phases, list) and phases:
        phase = ", ".join(str(p) for p in phases)
    else:
        phase = "Not Specified"

    return Trial(
        nct_id=_text(ident.get("nctId"), "Unknown"),
        brief_title=_text(ident.get("briefTitle"), "Untitled Study"),
        eligibility_criteria=_text(eligibility.get("eligibilityCriteria"), ""),
        brief_summary=_text(description.get("briefSummary"), ""),
        status=_text(status.get("overallStatus"), "Unknown"),
        phase=phase
    )


def normalize_trials(raw_records: Iterable[Any]) -> List[Trial]:
    """Normalize a list of registry records, skipping entries that are not objects."""
    return [normalize_trial(r) for r in (raw_records or []) if isinstance(r, dict)]
