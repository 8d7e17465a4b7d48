"""User-related Pydantic schemas."""

from typing import Literal

from pydantic import BaseModel, Field


class UserResponse(BaseModel):
    """Profile of the acting user plus their daily report allowance."""

    id: str
    email: str | None
    full_name: str | None
    role: Literal["user", "ngo", "admin"]
    issues_reported: int = Field(..., description="Issues this user originally created")
    can_report_today: bool
    seconds_until_reset: int = Field(
        ..., description="Seconds until the daily new-issue limit resets (UTC midnight)"
    )
