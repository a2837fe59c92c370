"""Role Resolver: turn a principal plus an optional persisted role into one Role.

Pure and total: no I/O, no exceptions, same inputs always give the same output.

Sources are tried in a fixed order, highest precedence first:

  1. the persisted profile role
  2. app_metadata.role (written by the backend only)
  3. user_metadata.role (user-editable, so it ranks below app_metadata)
  4. inference from the email address
  5. the default role (parent)

Each candidate is parsed into Role before it is accepted. A value that fails
to parse (typo, retired role, wrong type) is skipped and the next source is
tried; it is never passed through.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass

from edufam_shared.auth_models import DEFAULT_ROLE, Principal, Role, RoleSource

# First match wins. Patterns run against the lower-cased full address.
EMAIL_ROLE_PATTERNS: tuple[tuple[re.Pattern[str], Role], ...] = (
    (re.compile(r"admin"), Role.EDUFAM_ADMIN),
    (re.compile(r"principal"), Role.PRINCIPAL),
    (re.compile(r"teacher"), Role.TEACHER),
    (re.compile(r"finance|bursar|accounts"), Role.FINANCE_OFFICER),
    (re.compile(r"owner|director"), Role.SCHOOL_DIRECTOR),
    # "hr" only as a whole local-part token: hr@, hr.jane@, jane-hr@
    (re.compile(r"(?:^|[._+-])hr(?:[._+-][^@]*)?@"), Role.HR),
)


@dataclass(frozen=True)
class RoleResolution:
    role: Role
    source: RoleSource

    @property
    def is_inferred(self) -> bool:
        """True when no authoritative source supplied the role."""
        return self.source in (RoleSource.EMAIL_PATTERN, RoleSource.DEFAULT)

    @property
    def needs_persist(self) -> bool:
        """Signal to the materializer that the role should be written back."""
        return self.is_inferred


def infer_role_from_email(email: str) -> Role | None:
    """Heuristic role from email text, or None when no pattern matches."""
    address = (email or "").strip().lower()
    if not address:
        return None
    for pattern, role in EMAIL_ROLE_PATTERNS:
        if pattern.search(address):
            return role
    return None


def _metadata_role(metadata: dict[str, object]) -> object:
    return metadata.get("role") if isinstance(metadata, dict) else None


RoleStrategy = Callable[[Principal, object], object]

# Ordered strategies. Each returns a raw candidate; parsing happens in the loop.
ROLE_STRATEGIES: tuple[tuple[RoleSource, RoleStrategy], ...] = (
    (RoleSource.PROFILE, lambda principal, profile_role: profile_role),
    (RoleSource.APP_METADATA, lambda principal, _: _metadata_role(principal.app_metadata)),
    (RoleSource.USER_METADATA, lambda principal, _: _metadata_role(principal.user_metadata)),
    (RoleSource.EMAIL_PATTERN, lambda principal, _: infer_role_from_email(principal.email)),
)


def resolve_role(principal: Principal, profile_role: object = None) -> RoleResolution:
    """Resolve the canonical role and report which source supplied it."""
    for source, strategy in ROLE_STRATEGIES:
        role = Role.parse(strategy(principal, profile_role))
        if role is not None:
            return RoleResolution(role=role, source=source)
    return RoleResolution(role=DEFAULT_ROLE, source=RoleSource.DEFAULT)


def resolve(principal: Principal, profile_role: object = None) -> Role:
    """Shorthand for resolve_role(...).role."""
    return resolve_role(principal, profile_role).role
