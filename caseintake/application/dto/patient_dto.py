from __future__ import annotations

from datetime import date

from pydantic import BaseModel, ConfigDict, Field, field_validator


class PatientCreateRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    full_name: str = Field(..., min_length=1)
    patient_code: str | None = None
    dob: date | None = None
    sex: str = Field(default="U", pattern="^(M|F|U)$")
    phone: str | None = None

    @field_validator("patient_code")
    @classmethod
    def _blank_code_to_none(cls, v: str | None) -> str | None:
        return v or None


class PatientResponse(BaseModel):
    id: str
    patient_code: str | None = None
    full_name: str
    dob: date | None = None
    sex: str
    phone: str | None = None
    status: str
