"""Completion statistics for a manager's team.

A manager's team is their active direct reports. Each report's figure is the
same month-wide percentage their own month summary shows.
"""

import logging
from datetime import date

from src.core import db_client
from src.core.logging import span
from src.domain.task import Member
from src.models.service_models import TeamMemberStats, TeamStats
from src.services import status_service
from src.services.stores import Stores, default_stores, list_all


logger = logging.getLogger(__name__)


async def direct_reports(manager_id: str) -> list[Member]:
    """Active members whose direct manager is `manager_id`."""
    records = await list_all(
        collection="members",
        filter_query=f'manager_id = "{db_client.sanitize_param(manager_id)}"',
    )
    return [member for member in (Member(**r) for r in records) if member.is_active]


async def team_completion_stats(
    *,
    manager_id: str,
    year: int,
    month: int,
    as_of: date,
    approved_only: bool = True,
    stores: Stores | None = None,
) -> TeamStats:
    """Month completion percentage for each of a manager's active direct reports.

    Args:
        manager_id: Member whose team is listed
        year: Year of the month
        month: Month number, 1-12
        as_of: Reference date for scheduled vs not done
        approved_only: Only count days whose record a manager approved
        stores: Record stores, the SQLite ones when omitted

    Returns:
        TeamStats with one entry per report, in member order. A manager with
        no reports gets an empty list.

    Raises:
        db_client.RecordNotFoundError: If the manager does not exist
    """
    stores = stores or default_stores()
    with span("team_service.team_completion_stats"):
        await db_client.get_record(collection="members", record_id=manager_id)
        reports = await direct_reports(manager_id)

        members = []
        for report in reports:
            summary = await status_service.monthly_summary(
                user_id=report.id,
                year=year,
                month=month,
                as_of=as_of,
                approved_only=approved_only,
                stores=stores,
            )
            members.append(
                TeamMemberStats(
                    user_id=report.id,
                    full_name=report.full_name,
                    email=report.email,
                    percentage=summary.breakdown.percentage,
                    breakdown=summary.breakdown,
                )
            )

        logger.info(
            "Computed team completion stats",
            extra={"manager_id": manager_id, "year": year, "month": month, "reports": len(members)},
        )
        return TeamStats(
            manager_id=manager_id,
            year=year,
            month=month,
            approved_only=approved_only,
            members=members,
        )
