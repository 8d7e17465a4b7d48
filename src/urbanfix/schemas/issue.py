"""Issue-related Pydantic schemas."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

IssueStatusFilter = Literal["pending", "verified", "addressed", "all"]


class IssueCreate(BaseModel):
    """Schema for submitting a new photo report."""

    title: str = Field(..., description="Short summary of the problem")
    description: str | None = Field(None, description="Optional longer description")
    image_url: str = Field(..., min_length=1, description="Reference to the uploaded photo")
    latitude: float = Field(..., ge=-90, le=90, description="Pin latitude in decimal degrees")
    longitude: float = Field(..., ge=-180, le=180, description="Pin longitude in decimal degrees")
    address: str | None = Field(None, description="Client-side reverse-geocoded address")


class IssueResponse(BaseModel):
    """Schema for issue information returned by the API."""

    id: str
    created_by: str | None
    title: str
    description: str | None
    image_url: str
    latitude: float
    longitude: float
    address: str | None
    status: Literal["pending", "verified", "addressed"]
    ai_verified: bool
    priority_score: int
    users_reported: int
    created_at: datetime
    updated_at: datetime
    addressed_at: datetime | None

    model_config = ConfigDict(from_attributes=True)


class ReportResponse(BaseModel):
    """Result of a report submission: the issue it landed on and how."""

    action: Literal["created", "merged", "already_reported"]
    distance_meters: float | None = Field(
        None, description="Distance to the merged issue's pin, if merged"
    )
    issue: IssueResponse


class IssueReportResponse(BaseModel):
    """One reporter's accepted submission on an issue."""

    id: str
    issue_id: str
    user_id: str | None
    image_url: str | None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class IssueStats(BaseModel):
    """Issue counts per lifecycle state for dashboards."""

    pending: int
    verified: int
    addressed: int
    total: int


class AiVerificationUpdate(BaseModel):
    """Verdict from the external AI verification collaborator."""

    ai_verified: bool
