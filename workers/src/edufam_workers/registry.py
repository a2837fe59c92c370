"""Component registry: maps component names to their task queue and activities.

The runner looks up the CLI argument here to decide what to register on the
worker. Adding a component means adding its queue constant in
edufam_shared.task_queues and one entry below.
"""

from dataclasses import dataclass, field
from typing import Any

from edufam_access_engine.activities import check_access, resolve_session
from edufam_shared.task_queues import ACCESS_ENGINE_QUEUE


@dataclass
class ComponentConfig:
    """Configuration for a single component's worker."""

    task_queue: str
    workflows: list[Any] = field(default_factory=list)
    activities: list[Any] = field(default_factory=list)


COMPONENTS: dict[str, ComponentConfig] = {
    "access-engine": ComponentConfig(
        task_queue=ACCESS_ENGINE_QUEUE,
        activities=[resolve_session, check_access],
    ),
}
