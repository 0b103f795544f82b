# clinic_app_pkg/schemas.py
"""
Request-body schemas for referrals and visits.

Field aliases are the camelCase names used on the wire; the attribute
names match the model columns so a validated payload can be applied to a
model with ``setattr`` directly.
"""
import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .models import ReferralStatus


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra='ignore', str_strip_whitespace=True)


# --- Referrals ---

class ReferralCreate(_WireModel):
    patient_id: int = Field(alias='patientId')
    from_user_id: int = Field(alias='fromUserId')
    organization_id: int = Field(alias='organizationId')
    to_role: str = Field(alias='toRole', min_length=1, max_length=50)
    to_user_id: Optional[int] = Field(default=None, alias='toUserId')
    reason: str = Field(min_length=1)
    notes: Optional[str] = None
    status: ReferralStatus = ReferralStatus.PENDING


# --- Visits ---

class VisitUpdate(_WireModel):
    """Editable clinical fields of a visit. Every field is optional."""
    visit_date: Optional[datetime.datetime] = Field(default=None, alias='visitDate')
    blood_pressure: Optional[str] = Field(default=None, alias='bloodPressure', max_length=20)
    heart_rate: Optional[int] = Field(default=None, alias='heartRate', ge=0, le=400)
    temperature: Optional[float] = Field(default=None, ge=0, le=120)
    weight: Optional[float] = Field(default=None, ge=0, le=1000)
    complaint: Optional[str] = None
    diagnosis: Optional[str] = None
    treatment: Optional[str] = None
    follow_up_date: Optional[datetime.date] = Field(default=None, alias='followUpDate')
    visit_type: Optional[str] = Field(default=None, alias='visitType', max_length=50)

    @field_validator('visit_date', 'visit_type')
    @classmethod
    def required_column_not_null(cls, value):
        # Omit the field to leave it unchanged; the columns are NOT NULL
        if value is None:
            raise ValueError('must not be null')
        return value


class VisitCreate(VisitUpdate):
    patient_id: int = Field(alias='patientId')
    doctor_id: int = Field(alias='doctorId')
    organization_id: int = Field(alias='organizationId')
    visit_type: str = Field(default='consultation', alias='visitType', max_length=50)

    @field_validator('visit_type')
    @classmethod
    def visit_type_not_blank(cls, value):
        if not value:
            raise ValueError('visitType must not be empty')
        return value


def format_validation_errors(error: ValidationError):
    """Flattens a pydantic ValidationError into per-field error entries."""
    details = []
    for err in error.errors():
        details.append({
            "field": ".".join(str(part) for part in err.get('loc', ())),
            "message": err.get('msg'),
            "type": err.get('type'),
        })
    return details
