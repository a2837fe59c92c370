"""SQLAlchemy Core table definitions: Python-side mirror of the Supabase migrations.

Only the tables the access engine touches are declared. These are not ORM
classes: just typed column references so a renamed column fails at import
time instead of at query execution.

public.profiles carries two CHECK constraints on the database side:
  - profiles_role_check: role is one of the school roles.
  - profiles_school_assignment_check: school roles require school_id.
Row-level security limits a session to its own row; the access engine is an
additional application-level check, not a replacement.
"""

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    MetaData,
    Table,
    Text,
)
from sqlalchemy.dialects.postgresql import UUID

metadata = MetaData(schema="public")

schools = Table(
    "schools",
    metadata,
    Column("id", UUID, primary_key=True, server_default="gen_random_uuid()"),
    Column("name", Text, nullable=False),
    Column("created_at", DateTime(timezone=True), server_default="now()"),
)

profiles = Table(
    "profiles",
    metadata,
    # Same id as auth.users; the row is created lazily on first sign-in.
    Column("id", UUID, primary_key=True),
    Column("email", Text, nullable=False),
    Column("name", Text, nullable=False),
    Column("role", Text, nullable=False),
    Column("school_id", UUID, ForeignKey("public.schools.id")),
    Column("avatar_url", Text),
    Column("mfa_enabled", Boolean, server_default="false"),
    Column("status", Text, server_default="active"),
    Column("created_at", DateTime(timezone=True), server_default="now()"),
    Column("updated_at", DateTime(timezone=True), server_default="now()"),
)

PROFILE_COLUMNS = (
    profiles.c.id,
    profiles.c.email,
    profiles.c.name,
    profiles.c.role,
    profiles.c.school_id,
    profiles.c.avatar_url,
    profiles.c.mfa_enabled,
    profiles.c.status,
    profiles.c.created_at,
    profiles.c.updated_at,
)
