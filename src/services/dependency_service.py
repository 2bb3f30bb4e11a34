"""Dependency gating between tasks.

A task may depend on other tasks. When the same person is assigned both, the
dependent task cannot be marked completed or partial for a date until each
prerequisite has a completed or partial record for that same date. Only direct
prerequisites are checked.
"""

import logging
from datetime import date

from src.core.errors import DependencyCycleError
from src.core.logging import span
from src.domain.task import TaskAssignment, TaskDependency
from src.services.stores import CompletionStore, Stores, TaskGraphStore, default_stores


logger = logging.getLogger(__name__)


async def check_dependencies(
    *,
    assignment: TaskAssignment,
    scheduled_date: date,
    graph: TaskGraphStore,
    completions: CompletionStore,
) -> list[str]:
    """Return the names of prerequisite tasks still unmet for the date.

    A prerequisite the assignee has not been assigned is ignored.

    Args:
        assignment: Assignment being completed
        scheduled_date: Due date the completion answers for
        graph: Task graph store
        completions: Completion store

    Returns:
        Names of blocking tasks, empty when the completion may proceed
    """
    with span("dependency_service.check_dependencies"):
        blocking: list[str] = []
        for depends_on_task_id in await graph.get_dependencies(assignment.task_id):
            prerequisite = await graph.get_assignment(assignment.assigned_to, depends_on_task_id)
            if prerequisite is None:
                continue

            record = await completions.get(prerequisite.id, scheduled_date)
            if record is not None and record.resolves_obligation:
                continue

            task = await graph.get_task(depends_on_task_id)
            blocking.append(task.name)

        if blocking:
            logger.info(
                "Completion blocked by unmet dependencies",
                extra={
                    "assignment_id": assignment.id,
                    "scheduled_date": scheduled_date.isoformat(),
                    "blocking": blocking,
                },
            )
        return blocking


def _reachable(start: str, edges: dict[str, set[str]]) -> set[str]:
    """Every task reachable from `start` by following depends-on edges."""
    seen: set[str] = set()
    stack = [start]
    while stack:
        current = stack.pop()
        for nxt in edges.get(current, ()):
            if nxt not in seen:
                seen.add(nxt)
                stack.append(nxt)
    return seen


async def add_dependency(
    *,
    task_id: str,
    depends_on_task_id: str,
    stores: Stores | None = None,
) -> TaskDependency:
    """Record that `task_id` depends on `depends_on_task_id`.

    Raises:
        DependencyCycleError: If the edge is a self-loop or would close a cycle
        db_client.RecordNotFoundError: If either task does not exist
    """
    stores = stores or default_stores()
    with span("dependency_service.add_dependency"):
        if task_id == depends_on_task_id:
            raise DependencyCycleError(task_id, depends_on_task_id)

        await stores.graph.get_task(task_id)
        await stores.graph.get_task(depends_on_task_id)

        edges: dict[str, set[str]] = {}
        for edge in await stores.graph.list_all_dependencies():
            edges.setdefault(edge.task_id, set()).add(edge.depends_on_task_id)

        if depends_on_task_id in edges.get(task_id, set()):
            logger.info("Dependency already recorded", extra={"task_id": task_id, "depends_on": depends_on_task_id})
            return TaskDependency(task_id=task_id, depends_on_task_id=depends_on_task_id)

        if task_id in _reachable(depends_on_task_id, edges):
            logger.warning(
                "Rejected dependency that would create a cycle",
                extra={"task_id": task_id, "depends_on": depends_on_task_id},
            )
            raise DependencyCycleError(task_id, depends_on_task_id)

        dependency = await stores.graph.add_dependency(task_id, depends_on_task_id)
        logger.info("Added task dependency", extra={"task_id": task_id, "depends_on": depends_on_task_id})
        return dependency
