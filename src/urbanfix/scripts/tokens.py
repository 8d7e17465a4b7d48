# src/urbanfix/scripts/tokens.py
"""
Mint development bearer tokens.

Production tokens come from the identity provider; this script signs tokens
of the same shape with the local ``SECRET_KEY`` so the API can be exercised
by hand, e.g.::

    python -m urbanfix.scripts.tokens citizen-1 --role user
    python -m urbanfix.scripts.tokens ngo-1 --role ngo --email team@example.org
"""
from __future__ import annotations

import argparse
import sys

from jose import JWTError

from urbanfix.core.security import ROLES, create_access_token, decode_principal


def mint_token(
    user_id: str,
    role: str,
    email: str | None,
    expires_minutes: int | None,
    full_name: str | None = None,
) -> str:
    """Create a token and check it decodes back to the same principal.

    Args:
        user_id: Subject claim
        role: One of ``user``, ``ngo`` or ``admin``
        email: Optional email claim
        full_name: Optional display name (``name`` claim)
        expires_minutes: Lifetime override; defaults to the configured value

    Returns:
        Encoded JWT
    """
    token = create_access_token(
        user_id,
        role=role,
        email=email,
        full_name=full_name,
        expires_minutes=expires_minutes,
    )
    principal = decode_principal(token)
    if principal.user_id != user_id or principal.role != role:
        raise ValueError("Minted token does not round-trip")
    return token


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Mint a development bearer token")
    parser.add_argument("user_id", help="Subject (user id) for the token")
    parser.add_argument("--role", choices=ROLES, default="user")
    parser.add_argument("--email", default=None)
    parser.add_argument("--name", dest="full_name", default=None, help="Display name claim")
    parser.add_argument(
        "--expires-minutes",
        type=int,
        default=None,
        help="Token lifetime in minutes (default: ACCESS_TOKEN_EXPIRE_MINUTES)",
    )
    args = parser.parse_args(argv)

    try:
        token = mint_token(
            args.user_id, args.role, args.email, args.expires_minutes, args.full_name
        )
    except (JWTError, ValueError) as exc:
        print(f"[tokens] ERROR: {exc}", file=sys.stderr)
        sys.exit(1)
    print(token)


if __name__ == "__main__":
    main()
