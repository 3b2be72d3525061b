"""Map FHIR R4 resources (Patient, Condition, Observation, MedicationStatement) onto the Patient model."""

from datetime import date
from typing import Any, Dict, Iterable, List, Optional

from ..schemas.patient import Patient, PatientCondition, PatientMedication

ECOG_LOINC_CODE = "89247-1"


def _first(items: Any) -> Dict[str, Any]:
    if isinstance(items, list) and items and isinstance(items[0], dict):
        return items[0]
    return {}


def _dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _list(value: Any) -> List[Any]:
    return value if isinstance(value, list) else []


def calculate_age(birth_date: str, today: Optional[date] = None) -> int:
    """Whole years since birth_date (YYYY, YYYY-MM or YYYY-MM-DD). 0 if unparsable."""
    if not birth_date or not isinstance(birth_date, str):
        return 0
    parts = birth_date.strip()[:10].split("-")
    try:
        year = int(parts[0])
        month = int(parts[1]) if len(parts) > 1 else 1
        day = int(parts[2]) if len(parts) > 2 else 1
        born = date(year, month, day)
    except (ValueError, IndexError):
        return 0

    today = today or date.today()
    age = today.year - born.year
    if (today.month, today.day) < (born.month, born.day):
        age -= 1
    return max(age, 0)


def _patient_name(resource: Dict[str, Any]) -> str:
    name = _first(resource.get("name"))
    given = " ".join(g for g in _list(name.get("given")) if isinstance(g, str))
    family = name.get("family") if isinstance(name.get("family"), str) else ""
    full = " ".join(p for p in (given, family) if p)
    if full:
        return full
    text = name.get("text")
    return text if isinstance(text, str) and text else "Unknown"


def _condition(resource: Dict[str, Any]) -> PatientCondition:
    code = _dict(resource.get("code"))
    coding = _first(code.get("coding"))
    coded_value = coding.get("code") if isinstance(coding.get("code"), str) else None
    name = code.get("text") or coding.get("display") or coded_value or "Unknown Condition"
    onset = resource.get("onsetDateTime") or resource.get("recordedDate")
    status = _first(_dict(resource.get("clinicalStatus")).get("coding")).get("code")
    return PatientCondition(
        name=str(name),
        code=coded_value or "",
        diagnosis_date=onset if isinstance(onset, str) else "",
        status=status if isinstance(status, str) and status else "unknown"
    )


def _medication(resource: Dict[str, Any]) -> PatientMedication:
    concept = _dict(resource.get("medicationCodeableConcept"))
    name = concept.get("text") or _first(concept.get("coding")).get("display") or "Unknown Medication"

    dosage = _first(resource.get("dosage"))
    quantity = _dict(_first(dosage.get("doseAndRate")).get("doseQuantity"))
    amount = " ".join(str(quantity[k]) for k in ("value", "unit") if quantity.get(k) is not None)
    frequency = _dict(_dict(dosage.get("timing")).get("code")).get("text")

    return PatientMedication(
        name=str(name),
        dosage=amount,
        frequency=frequency if isinstance(frequency, str) else ""
    )


def _performance_status(observations: Iterable[Any]) -> Optional[str]:
    for obs in observations:
        obs = _dict(obs)
        codings = _list(_dict(obs.get("code")).get("coding"))
        is_ecog = any(
            isinstance(c, dict) and (
                c.get("code") == ECOG_LOINC_CODE or
                "ecog" in str(c.get("display") or "").lower()
            )
            for c in codings
        )
        value = obs.get("valueInteger")
        # bool is an int subclass; a JSON true is not a score
        if is_ecog and isinstance(value, int) and not isinstance(value, bool):
            return f"ECOG {value}"
    return None


def normalize_health_record_patient(
        patient_resource: Dict[str, Any],
        conditions: Optional[Iterable[Any]] = None,
        observations: Optional[Iterable[Any]] = None,
        today: Optional[date] = None,
        medications: Optional[Iterable[Any]] = None
) -> Patient:
    """
    Build a Patient from a FHIR Patient resource plus its Condition,
    Observation and MedicationStatement resources. Never raises; absent
    fields become defaults.
    """
    resource = _dict(patient_resource)

    gender = resource.get("gender")
    gender = gender[:1].upper() + gender[1:] if isinstance(gender, str) and gender else "Unknown"

    birth_date = resource.get("birthDate")
    birth_date = birth_date if isinstance(birth_date, str) else ""

    patient_id = resource.get("id")

    return Patient(
        id=str(patient_id) if patient_id is not None else "",
        name=_patient_name(resource),
        gender=gender,
        birth_date=birth_date,
        age=calculate_age(birth_date, today),
        conditions=[_condition(c) for c in (conditions or []) if isinstance(c, dict)],
        medications=[_medication(m) for m in (medications or []) if isinstance(m, dict)],
        performance_status=_performance_status(observations or [])
    )


def normalize_health_record_bundle(bundle: Dict[str, Any], today: Optional[date] = None) -> Patient:
    """Normalize a FHIR Bundle holding a Patient and its related entries."""
    patient_resource: Dict[str, Any] = {}
    conditions: List[Dict[str, Any]] = []
    observations: List[Dict[str, Any]] = []
    medications: List[Dict[str, Any]] = []

    for entry in _list(_dict(bundle).get("entry")):
        resource = _dict(_dict(entry).get("resource"))
        resource_type = resource.get("resourceType")
        if resource_type == "Patient" and not patient_resource:
            patient_resource = resource
        elif resource_type == "Condition":
            conditions.append(resource)
        elif resource_type == "Observation":
            observations.append(resource)
        elif resource_type == "MedicationStatement":
            medications.append(resource)

    return normalize_health_record_patient(patient_resource, conditions, observations, today, medications)
