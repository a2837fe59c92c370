"""Session State Controller: owns the current SessionIdentity for one client.

State machine:

    uninitialized → resolving → ready(identity) | ready(none) | failed(error)

The controller is the only writer of session state. It subscribes to the auth
provider before asking for the current principal (so no event can slip in
between the two), drives the materializer on every principal change, and
publishes snapshots to its listeners.

Race handling, all on one event loop:
  - A second request for the principal already being resolved is suppressed.
  - Every request bumps a generation counter; a completion whose generation
    is no longer current (newer principal, sign-out, timeout, close) is
    dropped.
  - Reading the current principal and each resolution run under a watchdog
    (init_timeout). When it fires the session degrades to ready(none)
    silently; the late result is dropped.

Only fatal errors are surfaced through last_error(): AccountDeactivated (after
a forced sign-out) and MissingEmail.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum

from edufam_auth.provider import AuthEvent, AuthProvider
from edufam_shared.auth_models import Principal, SessionIdentity
from edufam_shared.errors import AccountDeactivated, ResolutionError, ResolutionTimeout

from edufam_access_engine import evaluator
from edufam_access_engine.materializer import IdentityMaterializer, _retrieve_quietly
from edufam_access_engine.policy import Section
from edufam_access_engine.settings import ResolutionSettings

logger = logging.getLogger(__name__)


class SessionState(StrEnum):
    UNINITIALIZED = "uninitialized"
    RESOLVING = "resolving"
    READY = "ready"
    FAILED = "failed"


@dataclass(frozen=True)
class SessionSnapshot:
    state: SessionState
    identity: SessionIdentity | None = None
    error: ResolutionError | None = None


SessionListener = Callable[[SessionSnapshot], None]


class SessionController:
    """Long-lived owner of the session for one auth provider."""

    def __init__(
        self,
        provider: AuthProvider,
        materializer: IdentityMaterializer,
        settings: ResolutionSettings | None = None,
    ) -> None:
        self._provider = provider
        self._materializer = materializer
        self._settings = settings or materializer.settings
        self._snapshot = SessionSnapshot(SessionState.UNINITIALIZED)
        self._listeners: list[SessionListener] = []
        self._unsubscribe: Callable[[], None] | None = None
        self._started = False
        self._closed = False
        self._generation = 0
        self._current_principal_id: str | None = None
        self._resolving_for: str | None = None
        self._resolution: asyncio.Task[None] | None = None
        self._tasks: set[asyncio.Task[None]] = set()
        self._signout_reason: ResolutionError | None = None

    # -- Public surface ----------------------------------------------------------

    @property
    def snapshot(self) -> SessionSnapshot:
        return self._snapshot

    @property
    def state(self) -> SessionState:
        return self._snapshot.state

    def get_session_identity(self) -> SessionIdentity | None:
        return self._snapshot.identity

    def is_resolving(self) -> bool:
        return self._snapshot.state in (SessionState.UNINITIALIZED, SessionState.RESOLVING)

    def last_error(self) -> ResolutionError | None:
        return self._snapshot.error

    def can_access(self, section: str) -> bool:
        return evaluator.can_access(self._snapshot.identity, section)

    def can_access_report_type(self, report_type: str) -> bool:
        identity = self._snapshot.identity
        if identity is None or not evaluator.can_access(identity, Section.REPORTS):
            return False
        return evaluator.can_access_report_type(identity.role, report_type)

    def accessible_sections(self) -> list[str]:
        return evaluator.accessible_sections(self._snapshot.identity)

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        """Register a listener for state changes. Returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # -- Lifecycle -----------------------------------------------------------------

    async def start(self) -> SessionSnapshot:
        """Subscribe to the provider, resolve the current principal, return the result."""
        if self._started:
            return self._snapshot
        self._started = True

        # Subscribe first: an event fired while we read the session is not lost.
        self._unsubscribe = self._provider.subscribe(self._on_auth_event)
        timeout = self._settings.init_timeout
        try:
            principal = await asyncio.wait_for(self._provider.get_current_principal(), timeout=timeout)
        except TimeoutError:
            logger.warning(str(ResolutionTimeout(
                f"Session: auth provider did not answer within {timeout}s, continuing signed-out"
            )))
            principal = None
        if self._closed:
            return self._snapshot

        if principal is None:
            if self._snapshot.state is SessionState.UNINITIALIZED:
                self._set(SessionState.READY)
        else:
            self._request(principal)
        await self.settle()
        return self._snapshot

    async def settle(self) -> None:
        """Wait for the resolution currently in flight, if any."""
        while self._resolution is not None and not self._resolution.done():
            await asyncio.gather(self._resolution, return_exceptions=True)

    async def close(self) -> None:
        """Release the provider subscription and ignore any later results."""
        if self._closed:
            return
        self._closed = True
        self._generation += 1
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self._listeners.clear()
        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # -- Event handling ------------------------------------------------------------

    def _on_auth_event(self, event: AuthEvent, principal: Principal | None) -> None:
        if self._closed:
            return
        logger.debug(f"Session: auth event {event} (principal={principal.id if principal else None})")
        if event is AuthEvent.SIGNED_OUT or principal is None:
            self._handle_signed_out()
        else:
            self._request(principal)

    def _handle_signed_out(self) -> None:
        self._generation += 1
        self._current_principal_id = None
        self._resolving_for = None
        reason, self._signout_reason = self._signout_reason, None
        self._set(SessionState.READY, error=reason)

    def _request(self, principal: Principal) -> None:
        in_flight = self._resolution is not None and not self._resolution.done()
        if in_flight and self._resolving_for == principal.id:
            logger.debug(f"Session: resolution for '{principal.id}' already in flight, suppressed")
            return

        self._generation += 1
        generation = self._generation
        self._current_principal_id = principal.id
        self._resolving_for = principal.id
        self._signout_reason = None

        # Keep showing the same person's identity while a refresh resolves.
        previous = self._snapshot.identity
        keep = previous if previous is not None and previous.id == principal.id else None
        self._set(SessionState.RESOLVING, identity=keep)

        task = asyncio.create_task(
            self._resolve(principal, generation), name=f"session-resolve:{principal.id}"
        )
        self._resolution = task
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _is_current(self, generation: int) -> bool:
        return not self._closed and generation == self._generation

    async def _resolve(self, principal: Principal, generation: int) -> None:
        timeout = self._settings.init_timeout
        materialization = asyncio.create_task(
            self._materializer.materialize(principal), name=f"session-materialize:{principal.id}"
        )
        # A result that lands after the watchdog has fired is dropped here.
        materialization.add_done_callback(_retrieve_quietly)
        try:
            identity = await asyncio.wait_for(asyncio.shield(materialization), timeout=timeout)
        except TimeoutError:
            if self._is_current(generation):
                logger.warning(str(ResolutionTimeout(
                    f"Session: resolution for '{principal.id}' exceeded {timeout}s, "
                    "continuing signed-out"
                )))
                self._generation += 1
                self._current_principal_id = None
                self._set(SessionState.READY)
            return
        except AccountDeactivated as e:
            if self._is_current(generation):
                await self._force_sign_out(e)
            return
        except ResolutionError as e:
            if self._is_current(generation):
                logger.error(f"Session: resolution failed for '{principal.id}': {e}")
                self._set(SessionState.FAILED, error=e)
            return
        except Exception:
            if self._is_current(generation):
                logger.exception(f"Session: unexpected failure resolving '{principal.id}'")
                self._set(SessionState.READY)
            return

        if not self._is_current(generation):
            logger.debug(f"Session: dropping stale resolution for '{principal.id}'")
            return
        self._set(SessionState.READY, identity=identity)

    async def _force_sign_out(self, error: AccountDeactivated) -> None:
        logger.warning(f"Session: '{error.principal_id}' is deactivated, forcing sign-out")
        self._generation += 1
        self._current_principal_id = None
        self._signout_reason = error
        self._set(SessionState.READY, error=error)
        try:
            await self._provider.sign_out()
        except Exception:
            logger.exception(f"Session: provider sign-out failed for '{error.principal_id}'")

    def _set(
        self,
        state: SessionState,
        identity: SessionIdentity | None = None,
        error: ResolutionError | None = None,
    ) -> None:
        snapshot = SessionSnapshot(state=state, identity=identity, error=error)
        if snapshot == self._snapshot:
            return
        self._snapshot = snapshot
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception("Session: listener failed")
