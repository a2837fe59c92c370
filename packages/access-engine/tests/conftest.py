"""Test fixtures for the access engine.

FakeProfileStore stands in for PostgresProfileStore: an in-memory dict of
profile rows with knobs for latency and transient failures, recording every
call so tests can assert on the writes the materializer makes.
"""

from __future__ import annotations

import asyncio
from typing import Any

import pytest
from edufam_access_engine.materializer import IdentityMaterializer
from edufam_access_engine.settings import ResolutionSettings
from edufam_shared.auth_models import Principal, ProfileRecord, Role
from edufam_shared.errors import TransientStoreError

JANE_ID = "6f1c2a4e-8b9d-4e3f-a1b2-c3d4e5f60718"
HILLTOP_SCHOOL_ID = "0a9b8c7d-6e5f-4a3b-9c2d-1e0f9a8b7c6d"
RIVERSIDE_SCHOOL_ID = "5d4c3b2a-1f0e-4d9c-8b7a-6f5e4d3c2b1a"


class FakeProfileStore:
    """In-memory ProfileStore.

    Attributes:
        records: Profile rows by user id.
        fetch_delay: Seconds each fetch sleeps before answering.
        fetch_failures: Number of upcoming fetches that raise TransientStoreError.
        write_delay: Seconds create/persist sleep before writing.
        fail_writes: Make create/persist raise TransientStoreError.
    """

    def __init__(self) -> None:
        self.records: dict[str, ProfileRecord] = {}
        self.fetch_delay = 0.0
        self.fetch_failures = 0
        self.write_delay = 0.0
        self.fail_writes = False
        self.fetch_calls: list[str] = []
        self.created: list[ProfileRecord] = []
        self.persisted: list[tuple[str, Role]] = []

    def add(self, **fields: Any) -> ProfileRecord:
        record = ProfileRecord(**fields)
        self.records[record.id] = record
        return record

    async def fetch_profile(self, user_id: str) -> ProfileRecord | None:
        self.fetch_calls.append(user_id)
        if self.fetch_delay:
            await asyncio.sleep(self.fetch_delay)
        if self.fetch_failures:
            self.fetch_failures -= 1
            raise TransientStoreError(f"connection reset while fetching '{user_id}'")
        return self.records.get(user_id)

    async def create_profile(self, record: ProfileRecord) -> None:
        if self.write_delay:
            await asyncio.sleep(self.write_delay)
        if self.fail_writes:
            raise TransientStoreError("insert failed")
        self.created.append(record)
        self.records.setdefault(record.id, record)

    async def persist_role(self, user_id: str, role: Role) -> None:
        if self.write_delay:
            await asyncio.sleep(self.write_delay)
        if self.fail_writes:
            raise TransientStoreError("update failed")
        self.persisted.append((user_id, role))
        record = self.records.get(user_id)
        if record is not None:
            self.records[user_id] = record.model_copy(update={"role": role.value})


@pytest.fixture
def store() -> FakeProfileStore:
    return FakeProfileStore()


@pytest.fixture
def settings() -> ResolutionSettings:
    """Short timeouts so degradation paths finish quickly."""
    return ResolutionSettings(
        profile_fetch_timeout=0.2,
        profile_fetch_attempts=2,
        retry_backoff_min=0.01,
        retry_backoff_max=0.02,
        init_timeout=0.5,
    )


@pytest.fixture
async def materializer(store: FakeProfileStore, settings: ResolutionSettings):
    m = IdentityMaterializer(store, settings)
    yield m
    await m.aclose()


@pytest.fixture
def jane() -> Principal:
    """A teacher signing in for the first time: no profile row, no metadata."""
    return Principal(id=JANE_ID, email="teacher.jane@hilltop.test")


def make_principal(
    email: str = "jane@hilltop.test",
    user_id: str = JANE_ID,
    **fields: Any,
) -> Principal:
    return Principal(id=user_id, email=email, **fields)


@pytest.fixture
def principal_factory():
    return make_principal
