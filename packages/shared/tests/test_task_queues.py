"""Verify task queue constants follow the naming convention."""

from edufam_shared import task_queues
from edufam_shared.task_queues import ACCESS_ENGINE_QUEUE


def _queues() -> list[str]:
    return [value for name, value in vars(task_queues).items() if name.endswith("_QUEUE")]


def test_all_queues_are_unique() -> None:
    queues = _queues()
    assert len(queues) == len(set(queues)), "Duplicate task queue names found"


def test_queue_naming_convention() -> None:
    """All queues should follow the pattern: <component>-queue."""
    for queue in _queues():
        assert queue.endswith("-queue"), f"{queue} doesn't end with '-queue'"
        assert queue == queue.lower(), f"{queue} should be lowercase"


def test_access_engine_queue() -> None:
    assert ACCESS_ENGINE_QUEUE == "access-engine-queue"
