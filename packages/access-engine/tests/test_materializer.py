"""Tests for IdentityMaterializer.

Each test builds a FakeProfileStore (see conftest), materializes a principal
against it and asserts on the identity plus the writes that were made.
"""

from __future__ import annotations

import asyncio
import time

import pytest
from edufam_access_engine.materializer import IdentityMaterializer
from edufam_shared.auth_models import Principal, Role, RoleSource
from edufam_shared.errors import AccountDeactivated, MissingEmail

JANE_ID = "6f1c2a4e-8b9d-4e3f-a1b2-c3d4e5f60718"
HILLTOP = "0a9b8c7d-6e5f-4a3b-9c2d-1e0f9a8b7c6d"


class TestFirstSignIn:
    async def test_creates_profile_from_email(self, materializer, store, jane) -> None:
        identity = await materializer.materialize(jane)

        assert identity.role is Role.TEACHER
        assert identity.role_source is RoleSource.EMAIL_PATTERN
        assert identity.name == "teacher.jane"
        assert identity.school_id is None
        assert len(store.created) == 1
        created = store.created[0]
        assert created.id == JANE_ID
        assert created.role == "teacher"
        assert created.name == "teacher.jane"
        assert created.status == "active"

    async def test_creation_failure_does_not_block(self, materializer, store, jane) -> None:
        store.fail_writes = True
        identity = await materializer.materialize(jane)
        assert identity.role is Role.TEACHER
        assert store.created == []

    async def test_slow_creation_shares_the_fetch_budget(self, materializer, store, settings, jane) -> None:
        store.write_delay = 5.0

        started = time.monotonic()
        identity = await materializer.materialize(jane)

        assert time.monotonic() - started < settings.profile_fetch_timeout + 0.15
        assert identity.role is Role.TEACHER
        assert store.created == []

    async def test_name_prefers_user_metadata(self, materializer, store) -> None:
        principal = Principal(
            id=JANE_ID,
            email="teacher.jane@hilltop.test",
            user_metadata={"full_name": "Jane Wanjiru", "avatar_url": "https://cdn.test/jane.png"},
        )
        identity = await materializer.materialize(principal)
        assert identity.name == "Jane Wanjiru"
        assert identity.avatar_url == "https://cdn.test/jane.png"

    async def test_school_from_app_metadata_only(self, materializer, store) -> None:
        principal = Principal(
            id=JANE_ID,
            email="principal@hilltop.test",
            app_metadata={"school_id": HILLTOP},
            user_metadata={"school_id": "5d4c3b2a-1f0e-4d9c-8b7a-6f5e4d3c2b1a"},
        )
        identity = await materializer.materialize(principal)
        assert identity.school_id == HILLTOP
        assert identity.incomplete is False

    async def test_user_metadata_school_is_ignored(self, materializer, store) -> None:
        principal = Principal(
            id=JANE_ID,
            email="principal@hilltop.test",
            user_metadata={"school_id": HILLTOP},
        )
        identity = await materializer.materialize(principal)
        assert identity.school_id is None
        assert identity.incomplete is True


class TestExistingProfile:
    async def test_profile_fields_win(self, materializer, store) -> None:
        store.add(
            id=JANE_ID,
            email="jane@hilltop.test",
            name="Jane Wanjiru",
            role="principal",
            school_id=HILLTOP,
            mfa_enabled=True,
        )
        principal = Principal(id=JANE_ID, email="jane@hilltop.test", app_metadata={"role": "teacher"})

        identity = await materializer.materialize(principal)

        assert identity.role is Role.PRINCIPAL
        assert identity.role_source is RoleSource.PROFILE
        assert identity.name == "Jane Wanjiru"
        assert identity.school_id == HILLTOP
        assert identity.mfa_enabled is True
        assert store.created == []
        assert materializer.pending_writes == 0

    async def test_missing_role_is_persisted_in_background(self, materializer, store) -> None:
        store.add(id=JANE_ID, email="bursar@hilltop.test", name="Bursar", role=None, school_id=HILLTOP)
        identity = await materializer.materialize(Principal(id=JANE_ID, email="bursar@hilltop.test"))

        assert identity.role is Role.FINANCE_OFFICER
        await materializer.drain()
        assert store.persisted == [(JANE_ID, Role.FINANCE_OFFICER)]

    async def test_failed_persist_is_logged_not_raised(self, materializer, store, caplog) -> None:
        store.add(id=JANE_ID, email="bursar@hilltop.test", name="Bursar", role="", school_id=HILLTOP)
        store.fail_writes = True

        await materializer.materialize(Principal(id=JANE_ID, email="bursar@hilltop.test"))
        await materializer.drain()

        assert store.persisted == []
        assert "deferred role write failed" in caplog.text

    async def test_metadata_role_is_not_written_back(self, materializer, store) -> None:
        store.add(id=JANE_ID, email="jane@hilltop.test", name="Jane", role=None, school_id=HILLTOP)
        principal = Principal(id=JANE_ID, email="jane@hilltop.test", app_metadata={"role": "hr"})

        identity = await materializer.materialize(principal)
        await materializer.drain()

        assert identity.role is Role.HR
        assert store.persisted == []

    async def test_inactive_profile_is_rejected(self, materializer, store, jane) -> None:
        store.add(id=JANE_ID, email=jane.email, name="Jane", role="teacher", status="inactive")
        with pytest.raises(AccountDeactivated) as exc_info:
            await materializer.materialize(jane)
        assert exc_info.value.principal_id == JANE_ID
        assert exc_info.value.kind == "account_deactivated"


class TestPrincipalChecks:
    async def test_missing_email(self, materializer, store) -> None:
        with pytest.raises(MissingEmail):
            await materializer.materialize(Principal(id=JANE_ID, email="  "))
        assert store.fetch_calls == []

    @pytest.mark.parametrize(
        ("app", "user"),
        [({"is_active": False}, {}), ({}, {"status": "inactive"}), ({"status": "INACTIVE"}, {})],
    )
    async def test_metadata_deactivation(self, materializer, store, app, user) -> None:
        principal = Principal(id=JANE_ID, email="jane@hilltop.test", app_metadata=app, user_metadata=user)
        with pytest.raises(AccountDeactivated):
            await materializer.materialize(principal)
        assert store.fetch_calls == []


class TestStoreDegradation:
    async def test_slow_store_degrades_within_fetch_timeout(self, materializer, store, settings) -> None:
        store.fetch_delay = 5.0
        principal = Principal(id=JANE_ID, email="principal@hilltop.test")

        started = time.monotonic()
        identity = await materializer.materialize(principal)
        elapsed = time.monotonic() - started

        assert elapsed < settings.profile_fetch_timeout + 0.15
        assert identity.role is Role.PRINCIPAL
        assert identity.role_source is RoleSource.EMAIL_PATTERN
        # Store was unreachable: nothing is created or overwritten.
        assert store.created == []
        assert materializer.pending_writes == 0

    async def test_transient_failure_is_retried(self, materializer, store) -> None:
        store.add(id=JANE_ID, email="jane@hilltop.test", name="Jane", role="hr", school_id=HILLTOP)
        store.fetch_failures = 1

        identity = await materializer.materialize(Principal(id=JANE_ID, email="jane@hilltop.test"))

        assert identity.role is Role.HR
        assert len(store.fetch_calls) == 2

    async def test_retries_exhausted_falls_back(self, materializer, store, settings) -> None:
        store.add(id=JANE_ID, email="jane@hilltop.test", name="Jane", role="hr", school_id=HILLTOP)
        store.fetch_failures = 10

        identity = await materializer.materialize(Principal(id=JANE_ID, email="jane@hilltop.test"))

        assert len(store.fetch_calls) == settings.profile_fetch_attempts
        assert identity.role is Role.PARENT
        assert identity.role_source is RoleSource.DEFAULT
        assert store.created == []


class TestInFlightDedup:
    async def test_concurrent_calls_share_one_resolution(self, materializer, store, jane) -> None:
        store.fetch_delay = 0.05
        first, second = await asyncio.gather(materializer.materialize(jane), materializer.materialize(jane))

        assert first == second
        assert store.fetch_calls == [JANE_ID]
        assert len(store.created) == 1
        assert materializer.is_in_flight(JANE_ID) is False

    async def test_cancelled_caller_does_not_cancel_shared_work(self, materializer, store, jane) -> None:
        store.fetch_delay = 0.05
        impatient = asyncio.create_task(materializer.materialize(jane))
        await asyncio.sleep(0)
        assert materializer.is_in_flight(JANE_ID)

        patient = asyncio.create_task(materializer.materialize(jane))
        await asyncio.sleep(0.01)
        impatient.cancel()

        identity = await patient
        assert identity.role is Role.TEACHER

    async def test_sequential_calls_resolve_again(self, materializer, store, jane) -> None:
        await materializer.materialize(jane)
        await materializer.materialize(jane)
        assert len(store.fetch_calls) == 2
        # Second pass finds the row the first one created.
        assert len(store.created) == 1


async def test_aclose_stops_abandoned_fetches(store, settings) -> None:
    store.fetch_delay = 5.0
    materializer = IdentityMaterializer(store, settings)
    await materializer.materialize(Principal(id=JANE_ID, email="jane@hilltop.test"))

    started = time.monotonic()
    await materializer.aclose()
    assert time.monotonic() - started < 1.0
