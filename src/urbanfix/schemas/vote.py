# src/urbanfix/schemas/vote.py
"""Vote-related Pydantic schemas."""

from typing import Literal

from pydantic import BaseModel, Field


class VoteCreate(BaseModel):
    """Schema for casting a vote."""

    issue_id: str
    vote_type: Literal["upvote", "downvote"] = Field(
        ...,
        description="Re-sending the current vote type retracts it",
    )


class VoteResponse(BaseModel):
    """Authoritative score and vote state after a vote."""

    issue_id: str
    priority_score: int
    user_vote: Literal["upvote", "downvote", "none"]
