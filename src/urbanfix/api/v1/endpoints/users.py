"""Endpoints describing the acting user."""

from __future__ import annotations

from fastapi import APIRouter

from urbanfix.core.errors import TransientStorageError
from urbanfix.db.time import utcnow
from urbanfix.repositories.issue_repo import IssueRepository
from urbanfix.schemas.user import UserResponse
from urbanfix.services.storage import storage_guard
from urbanfix.services.users import daily_report_status, ensure_user

from ..dependencies import CurrentPrincipalDep, SessionDep, raise_http_error

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/me", response_model=UserResponse)
async def get_me(principal: CurrentPrincipalDep, db: SessionDep) -> UserResponse:
    """Return the caller's profile and whether they may create an issue today.

    The user row is registered on first sight of a principal.
    """
    try:
        with storage_guard(db, "get_me"):
            user = ensure_user(db, principal)
            db.commit()
    except TransientStorageError as exc:
        raise_http_error(exc)

    daily = daily_report_status(db, user, utcnow())
    return UserResponse(
        id=user.id,
        email=user.email,
        full_name=user.full_name,
        role=user.role,
        issues_reported=IssueRepository(db).count_created_by(user.id),
        can_report_today=daily.can_create,
        seconds_until_reset=daily.seconds_until_reset,
    )
