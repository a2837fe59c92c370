"""Worker runner entrypoint.

Usage:
  python -m edufam_workers.runner <component-name>
  COMPONENT=access-engine python -m edufam_workers.runner

CLI argument takes precedence over the COMPONENT env var. The worker polls the
component's task queue until interrupted (SIGINT/SIGTERM); on the way out it
lets the access engine finish its pending background profile writes.
"""

import asyncio
import logging
import os
import sys

from edufam_access_engine.activities import get_materializer
from edufam_shared.temporal_client import connect
from temporalio.worker import Worker

from edufam_workers.registry import COMPONENTS

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


async def run_worker(component_name: str) -> None:
    """Start a Temporal worker for the specified component."""
    if component_name not in COMPONENTS:
        available = ", ".join(sorted(COMPONENTS.keys()))
        logger.error(f"Unknown component '{component_name}'. Available: {available}")
        sys.exit(1)

    config = COMPONENTS[component_name]
    client = await connect()

    logger.info(
        f"Starting worker for '{component_name}' on queue '{config.task_queue}' "
        f"(workflows={len(config.workflows)}, activities={len(config.activities)})"
    )

    worker = Worker(
        client,
        task_queue=config.task_queue,
        workflows=config.workflows,
        activities=config.activities,
    )

    try:
        await worker.run()
    finally:
        if component_name == "access-engine":
            await get_materializer().aclose()


def main() -> None:
    """CLI entrypoint: parse the component name and start the worker."""
    component_name = sys.argv[1] if len(sys.argv) >= 2 else os.environ.get("COMPONENT", "")

    if not component_name:
        print("Usage: python -m edufam_workers.runner <component>")
        print("  or: COMPONENT=<component> python -m edufam_workers.runner")
        print(f"Components: {', '.join(sorted(COMPONENTS.keys()))}")
        sys.exit(1)

    asyncio.run(run_worker(component_name))


if __name__ == "__main__":
    main()
