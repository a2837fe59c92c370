"""Session diagnostics script.

Resolves a Supabase access token against the live profiles table and prints
what the access engine decides: role and where it came from, school
assignment, and every section the identity can open. Use it when someone
reports "my dashboard is empty" or "School Assignment Required".

Profile writes are real: a missing profile row is created, an inferred role
is persisted, exactly as on a normal sign-in.

Prerequisites:
  - SUPABASE_DB_URL and SUPABASE_JWT_SECRET in the environment

Usage:
  python scripts/diagnose_session.py <access-token>
"""

import asyncio
import logging
import sys

from edufam_access_engine.evaluator import (
    accessible_sections,
    analytics_scope,
    requires_tenant,
    role_display_name,
)
from edufam_access_engine.materializer import IdentityMaterializer
from edufam_access_engine.settings import ResolutionSettings
from edufam_auth.provider import TokenAuthProvider
from edufam_data_access.profiles import PostgresProfileStore
from edufam_shared.errors import ResolutionError

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


async def main(access_token: str) -> int:
    provider = TokenAuthProvider.from_env()
    principal = await provider.sign_in(access_token)
    materializer = IdentityMaterializer(PostgresProfileStore(), ResolutionSettings.from_env())

    try:
        identity = await materializer.materialize(principal)
    except ResolutionError as e:
        logger.error(f"Resolution failed ({e.kind}): {e.user_message}")
        return 1
    finally:
        await materializer.aclose()

    logger.info(f"Principal:   {identity.id} <{identity.email}>")
    logger.info(f"Role:        {role_display_name(identity.role)} (source={identity.role_source})")
    logger.info(f"School:      {identity.school_id or '-'}")
    if requires_tenant(identity.role) and identity.incomplete:
        logger.warning("School assignment is required for this role and missing")
    logger.info(f"Analytics:   {analytics_scope(identity.role)}")
    logger.info(f"Sections:    {', '.join(accessible_sections(identity))}")
    return 0


if __name__ == "__main__":
    if len(sys.argv) != 2:
        print("Usage: python scripts/diagnose_session.py <access-token>")
        sys.exit(1)
    sys.exit(asyncio.run(main(sys.argv[1])))
