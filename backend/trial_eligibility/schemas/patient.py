from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator
from pydantic.alias_generators import to_camel
from typing import Any, Optional, List


class PatientCondition(BaseModel):
    """A single diagnosis on the patient's record."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, coerce_numbers_to_str=True)

    name: str
    code: Optional[str] = None
    diagnosis_date: Optional[str] = None
    status: Optional[str] = Field(None, description="FHIR clinicalStatus code, e.g. 'active'")


class PatientMedication(BaseModel):
    """A current medication statement."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, coerce_numbers_to_str=True)

    name: str
    dosage: str = ""
    frequency: str = ""


class Patient(BaseModel):
    """
    Patient profile used as input to eligibility analysis.
    Immutable for the duration of a request.
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        coerce_numbers_to_str=True,
        frozen=True
    )

    id: str = Field(..., description="Identifier from the health record or demo dataset")
    name: str = "Unknown"
    gender: str = "Unknown"
    birth_date: str = ""
    conditions: List[PatientCondition] = Field(default_factory=list)
    medications: List[PatientMedication] = Field(default_factory=list)

    # Only consulted by the demo assessor
    age: Optional[int] = None
    performance_status: Optional[str] = Field(None, description="e.g. 'ECOG 1'")

    @field_validator("name", "gender", "birth_date", "conditions", "medications", mode="before")
    @classmethod
    def _null_to_default(cls, value: Any, info: ValidationInfo) -> Any:
        # Health-record exports send null for fields they don't have
        if value is None:
            return cls.model_fields[info.field_name].get_default(call_default_factory=True)
        return value

    @property
    def condition_names(self) -> List[str]:
        return [c.name for c in self.conditions]
