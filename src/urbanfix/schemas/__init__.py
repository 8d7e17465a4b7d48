# src/urbanfix/schemas/__init__.py
"""
Pydantic schemas for API request/response models.

These schemas define the structure of API data for serialization and validation.
"""

from .issue import (
    AiVerificationUpdate,
    IssueCreate,
    IssueReportResponse,
    IssueResponse,
    IssueStats,
    ReportResponse,
)
from .ngo import NgoApplicationCreate, NgoApplicationResponse
from .user import UserResponse
from .vote import VoteCreate, VoteResponse

__all__ = [
    "AiVerificationUpdate", "IssueCreate", "IssueReportResponse", "IssueResponse",
    "IssueStats", "ReportResponse",
    "NgoApplicationCreate", "NgoApplicationResponse",
    "UserResponse",
    "VoteCreate", "VoteResponse",
]
