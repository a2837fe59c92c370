"""Supabase JWT verification.

The auth provider and the access-engine worker use this to turn a Supabase
access token into a Principal. Only the signature, expiry and audience are
checked here; deciding what the principal may do is the access engine's job.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

import jwt as pyjwt
from edufam_shared.auth_models import Principal


def _metadata(payload: dict[str, Any], claim: str) -> dict[str, Any]:
    value = payload.get(claim)
    return dict(value) if isinstance(value, dict) else {}


def verify_token(token: str, jwt_secret: str) -> Principal:
    """Decode and validate a Supabase access token.

    Args:
        token: The raw JWT string (from the Authorization header or cookie).
        jwt_secret: The Supabase JWT secret (Settings → API → JWT Secret).

    Returns:
        Principal with id, email, both metadata tiers and the issue time.

    Raises:
        pyjwt.ExpiredSignatureError: Token has expired.
        pyjwt.InvalidSignatureError: Signature doesn't match the secret.
        pyjwt.MissingRequiredClaimError: `sub` or `exp` is absent.
        pyjwt.DecodeError: Malformed token.
    """
    payload = pyjwt.decode(
        token,
        jwt_secret,
        algorithms=["HS256"],
        audience="authenticated",
        options={"require": ["exp", "sub"]},
    )

    issued_at = payload.get("iat")
    return Principal(
        id=payload["sub"],
        email=payload.get("email") or "",
        app_metadata=_metadata(payload, "app_metadata"),
        user_metadata=_metadata(payload, "user_metadata"),
        last_sign_in_at=datetime.fromtimestamp(issued_at, UTC) if issued_at else None,
    )


def get_user_id(token: str, jwt_secret: str) -> str:
    """Convenience wrapper that returns just the principal id."""
    return verify_token(token, jwt_secret).id
