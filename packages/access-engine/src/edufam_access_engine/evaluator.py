"""Access Evaluator: allow/deny decisions for a resolved identity.

Stateless and total. Every function accepts whatever a consumer has in hand
(an identity, None, a raw role string) and answers False rather than raising.

Decision order for can_access:

  1. Unknown section → deny.
  2. No identity → deny.
  3. Role that does not parse → only the universal landing sections.
  4. System admin → deny every tenant section.
  5. Tenant-required role without a school → deny every tenant section.
  6. Otherwise, membership in the role's static section table.

Row-level security in the store remains the backstop; these checks decide
what the application offers and queries in the first place.
"""

from __future__ import annotations

import logging

from edufam_shared.auth_models import Role, SessionIdentity

from edufam_access_engine.policy import (
    ANALYTICS_SCOPES,
    REPORT_TYPE_RESTRICTIONS,
    ROLE_DISPLAY_NAMES,
    ROLE_SECTIONS,
    TENANT_REQUIRED_ROLES,
    TENANT_SECTIONS,
    UNIVERSAL_SECTIONS,
    USER_MANAGER_ROLES,
    Section,
)

logger = logging.getLogger(__name__)


def _parse_section(section: object) -> Section | None:
    if isinstance(section, Section):
        return section
    if not isinstance(section, str):
        return None
    try:
        return Section(section.strip().lower())
    except ValueError:
        return None


def requires_tenant(role: object) -> bool:
    """Whether this role must be assigned to a school to use tenant sections."""
    return Role.parse(role) in TENANT_REQUIRED_ROLES


def has_tenant_assignment(identity: SessionIdentity | None) -> bool:
    if identity is None:
        return False
    school_id = identity.school_id
    return isinstance(school_id, str) and bool(school_id.strip())


def is_tenant_section(section: object) -> bool:
    return _parse_section(section) in TENANT_SECTIONS


def can_access(identity: SessionIdentity | None, section: object) -> bool:
    """Whether `identity` may open `section`."""
    parsed = _parse_section(section)
    if parsed is None:
        logger.debug(f"Access: unknown section {section!r}")
        return False
    if identity is None:
        return False

    role = Role.parse(identity.role)
    if role is None:
        return parsed in UNIVERSAL_SECTIONS

    if parsed in TENANT_SECTIONS:
        if role is Role.EDUFAM_ADMIN:
            return False
        if requires_tenant(role) and not has_tenant_assignment(identity):
            logger.debug(
                f"Access: '{parsed}' denied for {role} '{identity.id}', no school assignment"
            )
            return False

    return parsed in ROLE_SECTIONS[role]


def can_access_report_type(role: object, report_type: str) -> bool:
    """Whether `role` may open reports of `report_type`.

    This is the second layer of the reports check. Callers combine it with
    can_access(identity, "reports"), which carries the tenant rules.
    """
    parsed = Role.parse(role)
    if parsed is None or not report_type:
        return False
    restricted = REPORT_TYPE_RESTRICTIONS.get(parsed)
    if restricted is not None:
        return report_type in restricted
    return Section.REPORTS in ROLE_SECTIONS[parsed]


def accessible_sections(identity: SessionIdentity | None) -> list[str]:
    """Sections the identity can open, in navigation order."""
    return [section.value for section in Section if can_access(identity, section)]


def can_manage_users(role: object) -> bool:
    return Role.parse(role) in USER_MANAGER_ROLES


def can_view_school_data(identity: SessionIdentity | None, target_school_id: str | None = None) -> bool:
    """Cross-tenant guard for reads of one school's data.

    The identity must hold a school assignment and, when a target school is
    named, it must be that same school. System admins never pass.
    """
    if identity is None or Role.parse(identity.role) in (None, Role.EDUFAM_ADMIN):
        return False
    if not has_tenant_assignment(identity):
        return False
    if target_school_id is None:
        return True
    return target_school_id == identity.school_id


def analytics_scope(role: object) -> str:
    """How far the role's analytics reach: school, class, student or none."""
    parsed = Role.parse(role)
    if parsed is None:
        return "none"
    return ANALYTICS_SCOPES.get(parsed, "none")


def role_display_name(role: object) -> str:
    parsed = Role.parse(role)
    if parsed is None:
        return str(role) if role else "Unknown"
    return ROLE_DISPLAY_NAMES[parsed]
