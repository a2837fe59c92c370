"""Task queue name constants for each component.

Every component runs on its own Temporal worker with a dedicated task queue.
These constants are the single source of truth for queue names: both the
worker runner and any service dispatching activities reference them.
"""

# Engines: business logic activities
ACCESS_ENGINE_QUEUE = "access-engine-queue"
