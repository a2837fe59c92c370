"""Profile store: the durable-store boundary of the access engine.

Three business verbs, nothing else: fetch a profile, create one lazily,
persist a role that was inferred during sign-in. All other profile mutations
belong to administrative flows outside the engine.

Every driver, pool or connection failure is translated to TransientStoreError
so callers have a single type to treat as "store unavailable". A missing row
is not an error: fetch_profile returns None.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any, Protocol

from edufam_shared.auth_models import ProfileRecord, ProfileStatus, Role
from edufam_shared.errors import TransientStoreError
from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.exc import SQLAlchemyError

from edufam_data_access.client import get_engine
from edufam_data_access.tables import PROFILE_COLUMNS, profiles


class ProfileStore(Protocol):
    """What the identity materializer needs from durable storage."""

    async def fetch_profile(self, user_id: str) -> ProfileRecord | None: ...

    async def create_profile(self, record: ProfileRecord) -> None: ...

    async def persist_role(self, user_id: str, role: Role) -> None: ...


def _to_record(row: Any) -> ProfileRecord:
    """Convert a profiles row mapping into a ProfileRecord."""
    data = dict(row)
    data["id"] = str(data["id"])
    if data.get("school_id") is not None:
        data["school_id"] = str(data["school_id"])
    if not data.get("status"):
        data["status"] = ProfileStatus.ACTIVE.value
    if data.get("mfa_enabled") is None:
        data["mfa_enabled"] = False
    return ProfileRecord(**data)


class PostgresProfileStore:
    """ProfileStore over public.profiles using SQLAlchemy Core + asyncpg."""

    async def fetch_profile(self, user_id: str) -> ProfileRecord | None:
        try:
            async with get_engine().begin() as conn:
                result = await conn.execute(
                    select(*PROFILE_COLUMNS).where(profiles.c.id == user_id)
                )
                row = result.mappings().fetchone()
        except (SQLAlchemyError, OSError) as e:
            raise TransientStoreError(f"Profile fetch failed for '{user_id}': {e}") from e
        return _to_record(row) if row else None

    async def create_profile(self, record: ProfileRecord) -> None:
        """Insert a new profile row. An existing row for the same id wins."""
        now = datetime.now(UTC)
        stmt = (
            insert(profiles)
            .values(
                id=record.id,
                email=record.email,
                name=record.name,
                role=record.role,
                school_id=record.school_id,
                avatar_url=record.avatar_url,
                mfa_enabled=record.mfa_enabled,
                status=record.status,
                created_at=now,
                updated_at=now,
            )
            .on_conflict_do_nothing(index_elements=[profiles.c.id])
        )
        try:
            async with get_engine().begin() as conn:
                await conn.execute(stmt)
        except (SQLAlchemyError, OSError) as e:
            raise TransientStoreError(f"Profile create failed for '{record.id}': {e}") from e

    async def persist_role(self, user_id: str, role: Role) -> None:
        stmt = (
            update(profiles)
            .where(profiles.c.id == user_id)
            .values(role=role.value, updated_at=datetime.now(UTC))
        )
        try:
            async with get_engine().begin() as conn:
                await conn.execute(stmt)
        except (SQLAlchemyError, OSError) as e:
            raise TransientStoreError(f"Role persist failed for '{user_id}': {e}") from e
