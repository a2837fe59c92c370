"""Identity Materializer: principal in, SessionIdentity out.

The only component of the engine that does I/O. For one principal it:

  1. rejects principals with no email (MissingEmail) or with deactivation
     flags in their provider metadata (AccountDeactivated);
  2. looks up the profile row, bounded by the fetch timeout and retried on
     transient store errors. A slow or failing store degrades to "no
     persisted role"; it never blocks sign-in;
  3. rejects inactive profiles (AccountDeactivated);
  4. resolves the role and merges profile, metadata and derived fields;
  5. creates the profile row when the store says it does not exist, or
     schedules a background write of an inferred role when the row exists
     without a usable one.

Only one materialization runs per principal id at a time; a second caller for
the same id awaits the first one's result.

The fetch timeout is a soft cancellation: the caller stops waiting and moves
on, the underlying query is left to finish on its own.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any

from edufam_data_access.profiles import ProfileStore
from edufam_shared.auth_models import (
    Principal,
    ProfileRecord,
    ProfileStatus,
    Role,
    SessionIdentity,
)
from edufam_shared.errors import AccountDeactivated, MissingEmail, TransientStoreError
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from edufam_access_engine.evaluator import requires_tenant
from edufam_access_engine.roles import RoleResolution, resolve_role
from edufam_access_engine.settings import ResolutionSettings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProfileLookup:
    """Outcome of a profile lookup.

    `available=False` means the store could not answer; `record=None` with
    `available=True` means the row does not exist.
    """

    record: ProfileRecord | None
    available: bool


def _first_text(*candidates: Any) -> str | None:
    """First candidate that is a non-blank string (or stringifiable id)."""
    for value in candidates:
        if value is None or isinstance(value, bool):
            continue
        text = value if isinstance(value, str) else str(value)
        if text.strip():
            return text
    return None


def _deactivated_in_metadata(principal: Principal) -> bool:
    for metadata in (principal.app_metadata, principal.user_metadata):
        if metadata.get("is_active") is False:
            return True
        if str(metadata.get("status") or "").strip().lower() == ProfileStatus.INACTIVE.value:
            return True
    return False


def _retrieve_quietly(task: asyncio.Task[Any]) -> None:
    """Done-callback for abandoned tasks: mark the exception as retrieved."""
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.debug(f"Materializer: abandoned task '{task.get_name()}' finished with {exc!r}")


class IdentityMaterializer:
    """Produces SessionIdentity values from principals against a ProfileStore."""

    def __init__(self, store: ProfileStore, settings: ResolutionSettings | None = None) -> None:
        self._store = store
        self._settings = settings or ResolutionSettings()
        self._inflight: dict[str, asyncio.Task[SessionIdentity]] = {}
        self._pending_writes: set[asyncio.Task[None]] = set()
        self._abandoned_fetches: set[asyncio.Task[Any]] = set()

    @property
    def settings(self) -> ResolutionSettings:
        return self._settings

    def is_in_flight(self, principal_id: str) -> bool:
        return principal_id in self._inflight

    @property
    def pending_writes(self) -> int:
        return len(self._pending_writes)

    async def materialize(self, principal: Principal) -> SessionIdentity:
        """Resolve `principal` into a SessionIdentity.

        Raises:
            MissingEmail: The principal has no email address.
            AccountDeactivated: Metadata or the profile marks the account inactive.
        """
        task = self._inflight.get(principal.id)
        if task is None:
            task = asyncio.create_task(
                self._materialize(principal), name=f"materialize:{principal.id}"
            )
            self._inflight[principal.id] = task
            task.add_done_callback(lambda t, pid=principal.id: self._forget(pid, t))
        else:
            logger.debug(f"Materializer: joining in-flight resolution for '{principal.id}'")
        # Shield so one caller giving up does not cancel the shared task.
        return await asyncio.shield(task)

    def _forget(self, principal_id: str, task: asyncio.Task[SessionIdentity]) -> None:
        if self._inflight.get(principal_id) is task:
            del self._inflight[principal_id]
        _retrieve_quietly(task)

    async def _materialize(self, principal: Principal) -> SessionIdentity:
        if not principal.email.strip():
            raise MissingEmail(principal.id, f"Principal '{principal.id}' has no email address")
        if _deactivated_in_metadata(principal):
            raise AccountDeactivated(
                principal.id, f"Provider metadata marks '{principal.id}' as inactive"
            )

        # Lookup and lazy creation share the fetch timeout, which is shorter
        # than the session init timeout.
        deadline = asyncio.get_running_loop().time() + self._settings.profile_fetch_timeout
        lookup = await self._lookup_profile(principal.id)
        record = lookup.record
        if record is not None and not record.is_active:
            raise AccountDeactivated(principal.id, f"Profile '{principal.id}' is inactive")

        resolution = resolve_role(principal, record.role if record else None)
        identity = self._assemble(principal, record, resolution)

        if lookup.available and record is None:
            await self._create_profile(identity, deadline)
        elif record is not None and resolution.needs_persist:
            self._schedule_role_persist(principal.id, resolution.role)

        logger.info(
            f"Materializer: resolved '{identity.email}' as {identity.role} "
            f"(source={resolution.source}, school_id={identity.school_id}, "
            f"profile={'found' if record else 'missing' if lookup.available else 'unavailable'})"
        )
        return identity

    # -- Profile lookup --------------------------------------------------------

    async def _fetch_with_retry(self, user_id: str) -> ProfileRecord | None:
        retrying = AsyncRetrying(
            retry=retry_if_exception_type(TransientStoreError),
            wait=wait_exponential(
                multiplier=self._settings.retry_backoff_min,
                min=self._settings.retry_backoff_min,
                max=self._settings.retry_backoff_max,
            ),
            stop=stop_after_attempt(self._settings.profile_fetch_attempts),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        return await retrying(self._store.fetch_profile, user_id)

    async def _lookup_profile(self, user_id: str) -> ProfileLookup:
        timeout = self._settings.profile_fetch_timeout
        fetch = asyncio.create_task(self._fetch_with_retry(user_id), name=f"fetch-profile:{user_id}")
        done, _ = await asyncio.wait({fetch}, timeout=timeout)

        if not done:
            logger.warning(
                f"Materializer: profile fetch for '{user_id}' exceeded {timeout}s, "
                "continuing without a persisted role"
            )
            self._abandoned_fetches.add(fetch)
            fetch.add_done_callback(self._abandoned_fetches.discard)
            fetch.add_done_callback(_retrieve_quietly)
            return ProfileLookup(record=None, available=False)

        try:
            record = fetch.result()
        except TransientStoreError as e:
            logger.warning(
                f"Materializer: profile store unavailable for '{user_id}' ({e}), "
                "continuing without a persisted role"
            )
            return ProfileLookup(record=None, available=False)
        return ProfileLookup(record=record, available=True)

    # -- Assembly --------------------------------------------------------------

    def _assemble(
        self,
        principal: Principal,
        record: ProfileRecord | None,
        resolution: RoleResolution,
    ) -> SessionIdentity:
        user_meta = principal.user_metadata
        app_meta = principal.app_metadata

        name = _first_text(
            record.name if record else None,
            user_meta.get("name"),
            user_meta.get("full_name"),
            principal.email_local_part,
        ) or "User"
        # The tenant key is never taken from user-editable metadata.
        school_id = _first_text(record.school_id if record else None, app_meta.get("school_id"))
        avatar_url = _first_text(record.avatar_url if record else None, user_meta.get("avatar_url"))

        return SessionIdentity(
            id=principal.id,
            email=principal.email,
            role=resolution.role,
            school_id=school_id,
            name=name,
            avatar_url=avatar_url,
            mfa_enabled=bool(record.mfa_enabled) if record else False,
            status=ProfileStatus.ACTIVE,
            incomplete=requires_tenant(resolution.role) and school_id is None,
            role_source=resolution.source,
        )

    # -- Writes ----------------------------------------------------------------

    async def _create_profile(self, identity: SessionIdentity, deadline: float) -> None:
        record = ProfileRecord(
            id=identity.id,
            email=identity.email,
            role=identity.role.value,
            name=identity.name,
            school_id=identity.school_id,
            avatar_url=identity.avatar_url,
            mfa_enabled=identity.mfa_enabled,
            status=ProfileStatus.ACTIVE.value,
        )
        remaining = max(deadline - asyncio.get_running_loop().time(), 0.0)
        try:
            await asyncio.wait_for(self._store.create_profile(record), timeout=remaining)
            logger.info(f"Materializer: created profile for '{identity.id}' as {identity.role}")
        except Exception as e:
            # A missing row must never block sign-in; the next sign-in retries.
            logger.warning(f"Materializer: could not create profile for '{identity.id}': {e!r}")

    def _schedule_role_persist(self, user_id: str, role: Role) -> None:
        task = asyncio.create_task(self._persist_role(user_id, role), name=f"persist-role:{user_id}")
        self._pending_writes.add(task)
        task.add_done_callback(self._pending_writes.discard)

    async def _persist_role(self, user_id: str, role: Role) -> None:
        try:
            await asyncio.wait_for(
                self._store.persist_role(user_id, role), timeout=self._settings.profile_fetch_timeout
            )
            logger.info(f"Materializer: persisted inferred role {role} for '{user_id}'")
        except Exception as e:
            logger.warning(f"Materializer: deferred role write failed for '{user_id}': {e!r}")

    # -- Lifecycle -------------------------------------------------------------

    async def drain(self) -> None:
        """Wait for scheduled background writes to finish."""
        while self._pending_writes:
            await asyncio.gather(*list(self._pending_writes), return_exceptions=True)

    async def aclose(self) -> None:
        """Finish pending writes and stop waiting on abandoned fetches."""
        await self.drain()
        for task in list(self._abandoned_fetches):
            task.cancel()
        if self._abandoned_fetches:
            await asyncio.gather(*list(self._abandoned_fetches), return_exceptions=True)
