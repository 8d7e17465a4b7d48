"""NGO application schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class NgoApplicationCreate(BaseModel):
    """Schema for an organisation applying to triage issues."""

    organization_name: str = Field(..., min_length=2, max_length=200)
    contact_email: str = Field(..., pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    phone: str = Field(..., min_length=5, max_length=32)
    address: str = Field(..., min_length=5, max_length=500)
    description: str = Field(..., min_length=20, max_length=2000)


class NgoApplicationResponse(BaseModel):
    """Stored application as returned to the applicant."""

    id: str
    organization_name: str
    contact_email: str
    status: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
