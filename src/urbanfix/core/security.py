"""Bearer-token helpers for principals issued by the identity provider."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Literal

from jose import jwt

from urbanfix.core.settings import settings

Role = Literal["user", "ngo", "admin"]
ROLES: tuple[str, ...] = ("user", "ngo", "admin")
TRIAGE_ROLES: frozenset[str] = frozenset({"ngo", "admin"})


@dataclass(frozen=True)
class Principal:
    """The acting user, passed explicitly into every core operation."""

    user_id: str
    role: str = "user"
    email: str | None = None
    full_name: str | None = None

    @property
    def can_triage(self) -> bool:
        """Return True if the principal may mark issues addressed."""
        return self.role in TRIAGE_ROLES

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


def create_access_token(
    user_id: str,
    *,
    role: str = "user",
    email: str | None = None,
    full_name: str | None = None,
    expires_minutes: int | None = None,
) -> str:
    """Create a JWT in the shape the identity provider issues."""
    to_encode: dict[str, object] = {"sub": user_id, "role": role}
    if email:
        to_encode["email"] = email
    if full_name:
        to_encode["name"] = full_name
    minutes = expires_minutes if expires_minutes is not None else settings.access_token_expire_minutes
    to_encode["exp"] = datetime.now(UTC) + timedelta(minutes=minutes)
    encoded_jwt: str = jwt.encode(
        to_encode,
        settings.secret_key,
        algorithm=settings.jwt_algorithm,
    )
    return encoded_jwt


def decode_principal(token: str) -> Principal:
    """Decode a bearer token into a principal.

    Raises:
        jose.JWTError: If the token is malformed, expired or badly signed.
        ValueError: If the claims are missing a subject or carry an unknown role.
    """
    payload = jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])
    subject = payload.get("sub")
    if not subject:
        raise ValueError("Token has no subject")
    role = payload.get("role") or "user"
    if role not in ROLES:
        raise ValueError(f"Unknown role {role!r}")
    return Principal(
        user_id=str(subject),
        role=role,
        email=payload.get("email"),
        full_name=payload.get("name"),
    )
