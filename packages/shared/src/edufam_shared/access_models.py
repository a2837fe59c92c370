"""Access Engine boundary models: the contract between callers and the
access-engine worker.

These types cross the Temporal activity boundary. A service that needs to gate
a query sends the caller's Supabase access token; the worker resolves it to a
SessionIdentity and answers the question.

Design choices:
  - Requests carry the raw access token, never a pre-resolved role. The worker
    is the only place a role is derived.
  - Expected denials (deactivated account, missing school) come back as
    results with success=False or allowed=False, not as exceptions.
  - Both results extend AccessResult, which owns success, message and
    error_kind.
"""

from pydantic import BaseModel

from edufam_shared.auth_models import SessionIdentity
from edufam_shared.models import AccessResult


class ResolveSessionRequest(BaseModel):
    """Resolve an access token into the caller's SessionIdentity."""

    access_token: str


class ResolveSessionResult(AccessResult):
    identity: SessionIdentity | None = None


class CheckAccessRequest(BaseModel):
    """Ask whether the token's owner may open a section.

    `report_type` adds the per-role report restriction on top of the section
    check. `target_school_id` adds the cross-tenant check for the school whose
    data is about to be read.
    """

    access_token: str
    section: str
    report_type: str | None = None
    target_school_id: str | None = None


class CheckAccessResult(AccessResult):
    allowed: bool = False
    role: str | None = None
    school_id: str | None = None
