"""Authentication provider boundary.

The access engine never talks to Supabase Auth directly. It consumes the
AuthProvider protocol below: read the current principal, subscribe to
changes, force a sign-out. TokenAuthProvider is the server-side implementation,
driven by Supabase access tokens handed in by the web layer.

Listeners are plain synchronous callables, mirroring Supabase's
onAuthStateChange. A listener that needs to do async work schedules it itself.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Callable
from enum import StrEnum
from typing import Protocol

from edufam_shared.auth_models import Principal

from edufam_auth.jwt import verify_token

logger = logging.getLogger(__name__)


class AuthEvent(StrEnum):
    INITIAL_SESSION = "INITIAL_SESSION"
    SIGNED_IN = "SIGNED_IN"
    SIGNED_OUT = "SIGNED_OUT"
    TOKEN_REFRESHED = "TOKEN_REFRESHED"
    USER_UPDATED = "USER_UPDATED"


AuthListener = Callable[[AuthEvent, Principal | None], None]


class AuthProvider(Protocol):
    """What the session controller needs from an authentication provider."""

    async def get_current_principal(self) -> Principal | None: ...

    def subscribe(self, listener: AuthListener) -> Callable[[], None]: ...

    async def sign_out(self) -> None: ...


class TokenAuthProvider:
    """AuthProvider over verified Supabase access tokens.

    Holds at most one current principal. sign_in/refresh verify the token with
    the project's JWT secret before anything is emitted, so listeners only ever
    see principals backed by a valid signature.
    """

    def __init__(self, jwt_secret: str) -> None:
        if not jwt_secret:
            raise ValueError("A Supabase JWT secret is required")
        self._jwt_secret = jwt_secret
        self._current: Principal | None = None
        self._listeners: list[AuthListener] = []

    @classmethod
    def from_env(cls) -> TokenAuthProvider:
        """Build a provider from SUPABASE_JWT_SECRET."""
        secret = os.environ.get("SUPABASE_JWT_SECRET", "")
        if not secret:
            raise RuntimeError(
                "SUPABASE_JWT_SECRET environment variable is not set. "
                "Copy it from Supabase Settings → API → JWT Secret."
            )
        return cls(secret)

    async def get_current_principal(self) -> Principal | None:
        return self._current

    def subscribe(self, listener: AuthListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def sign_in(self, access_token: str) -> Principal:
        """Verify a fresh access token and make its principal current."""
        principal = verify_token(access_token, self._jwt_secret)
        self._current = principal
        self._emit(AuthEvent.SIGNED_IN, principal)
        return principal

    async def refresh(self, access_token: str) -> Principal:
        """Swap in a refreshed token. A different subject counts as a new sign-in."""
        principal = verify_token(access_token, self._jwt_secret)
        previous = self._current
        self._current = principal
        if previous is not None and previous.id == principal.id:
            self._emit(AuthEvent.TOKEN_REFRESHED, principal)
        else:
            self._emit(AuthEvent.SIGNED_IN, principal)
        return principal

    async def sign_out(self) -> None:
        if self._current is None:
            return
        logger.info(f"Auth: signing out principal '{self._current.id}'")
        self._current = None
        self._emit(AuthEvent.SIGNED_OUT, None)

    def _emit(self, event: AuthEvent, principal: Principal | None) -> None:
        for listener in list(self._listeners):
            try:
                listener(event, principal)
            except Exception:
                logger.exception(f"Auth: listener failed while handling {event}")
