"""API endpoint modules for version 1."""

from .issues import router as issues_router
from .ngo import router as ngo_router
from .system import router as system_router
from .users import router as users_router
from .votes import router as votes_router

__all__ = [
    "issues_router",
    "votes_router",
    "users_router",
    "ngo_router",
    "system_router",
]
