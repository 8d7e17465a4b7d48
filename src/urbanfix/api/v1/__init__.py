"""Version 1 API endpoints."""

from .endpoints import (
    issues_router,
    ngo_router,
    system_router,
    users_router,
    votes_router,
)

__all__ = [
    "issues_router",
    "votes_router",
    "users_router",
    "ngo_router",
    "system_router",
]
