from typing import Any, Dict, List

from fastapi import APIRouter, Body

from ...normalizers.fhir import calculate_age, normalize_health_record_bundle
from ...schemas.patient import Patient, PatientCondition, PatientMedication

router = APIRouter()

# Sample patients for demo mode (no health record connected)
DEMO_PATIENTS = [
    Patient(
        id="1",
        name="John Smith",
        gender="Male",
        birth_date="1958-05-15",
        conditions=[
            PatientCondition(name="Non-small Cell Lung Cancer", diagnosis_date="2022-01-15", status="active"),
            PatientCondition(name="Hypertension", diagnosis_date="2015-03-10", status="active"),
            PatientCondition(name="Type 2 Diabetes", diagnosis_date="2018-07-22", status="active"),
        ],
        medications=[
            PatientMedication(name="Lisinopril", dosage="10mg", frequency="Once daily"),
            PatientMedication(name="Metformin", dosage="500mg", frequency="Twice daily"),
        ],
        performance_status="ECOG 1"
    ),
    Patient(
        id="2",
        name="Sarah Johnson",
        gender="Female",
        birth_date="1965-11-23",
        conditions=[
            PatientCondition(name="Breast Cancer", diagnosis_date="2021-09-05", status="active"),
            PatientCondition(name="Osteoporosis", diagnosis_date="2019-04-18", status="active"),
        ],
        medications=[
            PatientMedication(name="Anastrozole", dosage="1mg", frequency="Once daily"),
            PatientMedication(name="Calcium + Vitamin D", dosage="600mg/400IU", frequency="Once daily"),
        ],
        performance_status="ECOG 0"
    ),
    Patient(
        id="3",
        name="Robert Williams",
        gender="Male",
        birth_date="1951-08-30",
        conditions=[
            PatientCondition(name="Prostate Cancer", diagnosis_date="2020-12-10", status="active"),
            PatientCondition(name="Atrial Fibrillation", diagnosis_date="2017-02-14", status="active"),
            PatientCondition(name="Chronic Kidney Disease", diagnosis_date="2019-11-05", status="active"),
        ],
        medications=[
            PatientMedication(name="Enzalutamide", dosage="160mg", frequency="Once daily"),
            PatientMedication(name="Apixaban", dosage="5mg", frequency="Twice daily"),
        ],
        performance_status="ECOG 2"
    ),
]


@router.get("/demo-patients", response_model=List[Patient])
async def demo_patients():
    """Demo patients, with ages computed as of today."""
    return [p.model_copy(update={"age": calculate_age(p.birth_date)}) for p in DEMO_PATIENTS]


@router.post("/fhir/patient", response_model=Patient)
async def patient_from_fhir_bundle(bundle: Dict[str, Any] = Body(...)):
    """Convert a FHIR Bundle (Patient, Condition, Observation and MedicationStatement entries) to a Patient."""
    return normalize_health_record_bundle(bundle)
