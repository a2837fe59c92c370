"""Identity domain models shared by the auth provider, the data access layer,
and the access engine.

Three shapes describe one person at different stages of trust:

  - Principal: what the authentication provider hands us. Metadata comes in two
    tiers: app_metadata is written only by the backend, user_metadata can be
    edited by the user themselves.
  - ProfileRecord: the durable row in public.profiles. Its role column is a raw
    string and is never trusted until parsed into Role.
  - SessionIdentity: the resolved identity every consumer reads. Its role is
    always a Role member.
"""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict


class Role(StrEnum):
    """Closed set of role tiers known to the school application."""

    SCHOOL_DIRECTOR = "school_director"  # owner tier
    PRINCIPAL = "principal"
    TEACHER = "teacher"
    FINANCE_OFFICER = "finance_officer"
    HR = "hr"
    PARENT = "parent"  # guardian tier, the default
    EDUFAM_ADMIN = "edufam_admin"  # system-admin tier, admin surface only

    @classmethod
    def parse(cls, value: object) -> Role | None:
        """Parse an untrusted value into a Role, or None if it isn't one.

        Case and surrounding whitespace are ignored. Legacy tags that older
        profile rows still carry are mapped onto their current tier.
        """
        if isinstance(value, Role):
            return value
        if not isinstance(value, str):
            return None
        normalized = value.strip().lower()
        if not normalized:
            return None
        normalized = _ROLE_ALIASES.get(normalized, normalized)
        try:
            return cls(normalized)
        except ValueError:
            return None


_ROLE_ALIASES: dict[str, str] = {
    "school_owner": Role.SCHOOL_DIRECTOR.value,
    "elimisha_admin": Role.EDUFAM_ADMIN.value,
}

DEFAULT_ROLE = Role.PARENT


class RoleSource(StrEnum):
    """Where a resolved role came from, highest precedence first."""

    PROFILE = "profile"
    APP_METADATA = "app_metadata"
    USER_METADATA = "user_metadata"
    EMAIL_PATTERN = "email_pattern"
    DEFAULT = "default"


class ProfileStatus(StrEnum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class Principal(BaseModel):
    """Authenticated identity as issued by the auth provider, pre-resolution."""

    model_config = ConfigDict(frozen=True)

    id: str
    email: str = ""
    app_metadata: dict[str, Any] = {}
    user_metadata: dict[str, Any] = {}
    created_at: datetime | None = None
    updated_at: datetime | None = None
    last_sign_in_at: datetime | None = None

    @property
    def email_local_part(self) -> str:
        return self.email.split("@", 1)[0]


class ProfileRecord(BaseModel):
    """Python-side mirror of a public.profiles row."""

    id: str
    email: str | None = None
    role: str | None = None
    name: str | None = None
    school_id: str | None = None
    avatar_url: str | None = None
    mfa_enabled: bool = False
    status: str = ProfileStatus.ACTIVE.value
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_active(self) -> bool:
        return (self.status or "").strip().lower() != ProfileStatus.INACTIVE.value


class SessionIdentity(BaseModel):
    """Canonical resolved identity consumed by the rest of the application.

    `incomplete` marks a tenant-scoped role with no school assignment; the
    access evaluator denies every tenant section for such an identity.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    email: str
    role: Role
    school_id: str | None = None
    name: str
    avatar_url: str | None = None
    mfa_enabled: bool = False
    status: ProfileStatus = ProfileStatus.ACTIVE
    incomplete: bool = False
    role_source: RoleSource = RoleSource.PROFILE
