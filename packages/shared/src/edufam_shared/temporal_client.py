"""Temporal connection for the access-engine worker and its callers.

The worker and any service that calls resolve_session / check_access share
this factory, so both ends agree on the namespace. The mode is picked from the
environment:

  - local: `TEMPORAL_ADDRESS` (default `localhost:7233`), no auth, as exposed
    by `temporal server start-dev`;
  - cloud: `TEMPORAL_API_KEY` plus `TEMPORAL_REGIONAL_ENDPOINT`, over TLS.

`TEMPORAL_NAMESPACE` applies to both and defaults to `default`.
"""

import logging
import os

from temporalio.client import Client

logger = logging.getLogger(__name__)

DEFAULT_ADDRESS = "localhost:7233"
DEFAULT_NAMESPACE = "default"


def _cloud_address() -> str:
    # API key auth is only accepted on the regional endpoint, not on
    # `<ns>.tmprl.cloud`.
    address = os.environ.get("TEMPORAL_REGIONAL_ENDPOINT", "").strip()
    if not address:
        raise ValueError(
            "TEMPORAL_API_KEY is set but TEMPORAL_REGIONAL_ENDPOINT is missing. "
            "Use the regional endpoint from the Temporal Cloud 'Connect' dialog."
        )
    return address


async def connect() -> Client:
    """Connect to Temporal in local or cloud mode, depending on the environment."""
    namespace = os.environ.get("TEMPORAL_NAMESPACE", DEFAULT_NAMESPACE)
    api_key = os.environ.get("TEMPORAL_API_KEY")

    if api_key:
        address = _cloud_address()
        logger.info(f"Temporal: connecting to '{address}' (namespace={namespace}, api key, tls)")
        # Namespace routing is done by the SDK; extra rpc_metadata breaks API key auth.
        return await Client.connect(address, namespace=namespace, api_key=api_key, tls=True)

    address = os.environ.get("TEMPORAL_ADDRESS", DEFAULT_ADDRESS)
    logger.info(f"Temporal: connecting to '{address}' (namespace={namespace}, local)")
    return await Client.connect(address, namespace=namespace)
