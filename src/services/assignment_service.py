"""Task assignment with delegation classification."""

import logging
from collections.abc import Mapping

from src.core import db_client
from src.core.logging import span
from src.domain.task import DelegationType, Member, TaskAssignment
from src.services.stores import Stores, default_stores, list_all


logger = logging.getLogger(__name__)


def manager_chain(member_id: str, managers: Mapping[str, str | None]) -> list[str]:
    """Managers above a member, nearest first. Stops at the first repeat."""
    chain: list[str] = []
    seen = {member_id}
    current = managers.get(member_id)
    while current is not None and current not in seen:
        chain.append(current)
        seen.add(current)
        current = managers.get(current)
    return chain


def classify_delegation(
    assigned_to: str,
    assigned_by: str,
    managers: Mapping[str, str | None],
) -> DelegationType:
    """Describe where the assignee sits relative to the assigner.

    Args:
        assigned_to: Member receiving the task
        assigned_by: Member handing it out
        managers: Member ID to direct manager ID

    Returns:
        self, downward (assigner manages the assignee, directly or not),
        upward (assignee manages the assigner), or peer
    """
    if assigned_to == assigned_by:
        return DelegationType.SELF
    if assigned_by in manager_chain(assigned_to, managers):
        return DelegationType.DOWNWARD
    if assigned_to in manager_chain(assigned_by, managers):
        return DelegationType.UPWARD
    return DelegationType.PEER


async def list_members() -> list[Member]:
    records = await list_all(collection="members")
    return [Member(**r) for r in records]


async def assign_task(
    *,
    task_id: str,
    assigned_to: str,
    assigned_by: str,
    stores: Stores | None = None,
) -> TaskAssignment:
    """Assign a task, recording the delegation type as of now.

    An existing assignment of the same task to the same member is returned as is.

    Raises:
        db_client.RecordNotFoundError: If the task does not exist
    """
    stores = stores or default_stores()
    with span("assignment_service.assign_task"):
        await stores.graph.get_task(task_id)

        existing = await stores.graph.get_assignment(assigned_to, task_id)
        if existing is not None:
            logger.info("Task %s already assigned to %s", task_id, assigned_to)
            return existing

        managers = {member.id: member.manager_id for member in await list_members()}
        delegation = classify_delegation(assigned_to, assigned_by, managers)

        record = await db_client.create_record(
            collection="task_assignments",
            data={
                "task_id": task_id,
                "assigned_to": assigned_to,
                "assigned_by": assigned_by,
                "delegation_type": delegation.value,
            },
        )
        logger.info(
            "Assigned task",
            extra={"task_id": task_id, "assigned_to": assigned_to, "delegation_type": delegation.value},
        )
        return TaskAssignment(**record)
