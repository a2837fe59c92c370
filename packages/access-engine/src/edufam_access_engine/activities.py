"""Access Engine activities: resolve a caller's session and gate a request.

Run on ACCESS_ENGINE_QUEUE. Services that query school data on behalf of a
signed-in user send the user's Supabase access token here instead of trusting
a role claimed by the client.

Expected failures (bad token, deactivated account, missing email, denied
section) come back as result objects. Misconfiguration (no JWT secret, no
database URL) raises, so Temporal surfaces it and retries after a fix.
"""

from __future__ import annotations

import os

import jwt as pyjwt
from edufam_auth.jwt import verify_token
from edufam_data_access.profiles import PostgresProfileStore
from edufam_shared.access_models import (
    CheckAccessRequest,
    CheckAccessResult,
    ResolveSessionRequest,
    ResolveSessionResult,
)
from edufam_shared.errors import ResolutionError
from temporalio import activity

from edufam_access_engine.evaluator import (
    can_access,
    can_access_report_type,
    can_view_school_data,
)
from edufam_access_engine.materializer import IdentityMaterializer
from edufam_access_engine.settings import ResolutionSettings

# ============================================================================
# Materializer singleton
# ============================================================================

_materializer: IdentityMaterializer | None = None


def get_materializer() -> IdentityMaterializer:
    """Return the worker's IdentityMaterializer, built on first use.

    One instance per worker process so the in-flight dedup covers every
    activity running on this worker.
    """
    global _materializer
    if _materializer is None:
        _materializer = IdentityMaterializer(PostgresProfileStore(), ResolutionSettings.from_env())
    return _materializer


def set_materializer(materializer: IdentityMaterializer) -> None:
    """Inject a materializer. Used in tests."""
    global _materializer
    _materializer = materializer


def reset_materializer() -> None:
    """Reset the singleton. Used in tests."""
    global _materializer
    _materializer = None


def _jwt_secret() -> str:
    secret = os.environ.get("SUPABASE_JWT_SECRET", "")
    if not secret:
        raise RuntimeError(
            "SUPABASE_JWT_SECRET environment variable is not set. "
            "Copy it from Supabase Settings → API → JWT Secret."
        )
    return secret


async def _resolve(access_token: str) -> ResolveSessionResult:
    try:
        principal = verify_token(access_token, _jwt_secret())
    except pyjwt.PyJWTError as e:
        return ResolveSessionResult(
            success=False, message=f"Invalid access token: {e}", error_kind="invalid_token"
        )

    try:
        identity = await get_materializer().materialize(principal)
    except ResolutionError as e:
        activity.logger.warning(f"Access Engine: resolution failed for '{principal.id}': {e}")
        return ResolveSessionResult(success=False, message=e.user_message, error_kind=e.kind)

    return ResolveSessionResult(
        success=True,
        message=f"Resolved '{identity.email}' as {identity.role}",
        identity=identity,
    )


# ============================================================================
# resolve_session
# ============================================================================


@activity.defn
async def resolve_session(request: ResolveSessionRequest) -> ResolveSessionResult:
    """Resolve an access token into the caller's SessionIdentity."""
    activity.logger.info("Access Engine: resolving session")
    return await _resolve(request.access_token)


# ============================================================================
# check_access
# ============================================================================


@activity.defn
async def check_access(request: CheckAccessRequest) -> CheckAccessResult:
    """Decide whether the token's owner may open a section (and report type / school)."""
    activity.logger.info(f"Access Engine: checking access to '{request.section}'")
    resolved = await _resolve(request.access_token)
    identity = resolved.identity
    if identity is None:
        return CheckAccessResult(
            success=False,
            message=resolved.message,
            allowed=False,
            error_kind=resolved.error_kind,
        )

    allowed = can_access(identity, request.section)
    reason = f"section '{request.section}'"
    if allowed and request.report_type is not None:
        allowed = can_access_report_type(identity.role, request.report_type)
        reason = f"report type '{request.report_type}'"
    if allowed and request.target_school_id is not None:
        allowed = can_view_school_data(identity, request.target_school_id)
        reason = f"school '{request.target_school_id}'"

    return CheckAccessResult(
        success=True,
        message=f"Access {'granted' if allowed else 'denied'} to {reason} for {identity.role}",
        allowed=allowed,
        role=identity.role.value,
        school_id=identity.school_id,
    )
