from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator
from pydantic.alias_generators import to_camel
from typing import Optional, List, Any, Dict


class Trial(BaseModel):
    """A clinical study as seen by the eligibility pipeline."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    nct_id: str = Field(..., description="Registry identifier, used as the join key for results")
    brief_title: str = ""
    eligibility_criteria: str = Field("", description="Free-text inclusion/exclusion block")

    # Display fields filled in by the registry normalizer
    brief_summary: str = ""
    status: str = "Unknown"
    phase: str = "Not Specified"

    @field_validator("brief_title", "eligibility_criteria", "brief_summary", "status", "phase", mode="before")
    @classmethod
    def _null_to_default(cls, value: Any, info: ValidationInfo) -> Any:
        if value is None:
            return cls.model_fields[info.field_name].default
        return value


class TrialSearchResponse(BaseModel):
    """Raw registry search results, passed through to the frontend."""
    success: bool
    studies: List[Dict[str, Any]] = Field(default_factory=list)
    error: Optional[str] = None
