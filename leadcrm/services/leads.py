"""Lead read-state tracking and per-user lead status tables."""

from __future__ import annotations

from typing import Sequence

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from leadcrm.config import LeadStatusSeed, get_settings
from leadcrm.db.models.core import Lead, LeadRatingStatus
from leadcrm.logging import logger
from leadcrm.services.exceptions import DownstreamError
from leadcrm.utils.datetime import utc_now

READ_VIA_EMAIL = "email"


class LeadService:
    """Lead bookkeeping that sits next to the notification flow.

    ``statuses`` is the status/colour table seeded for new users; it
    defaults to ``CrmSettings.lead_statuses``.
    """

    def __init__(
        self,
        session: AsyncSession,
        statuses: Sequence[LeadStatusSeed] | None = None,
    ) -> None:
        self.session = session
        self.statuses: tuple[LeadStatusSeed, ...] = tuple(
            statuses if statuses is not None else get_settings().lead_statuses
        )

    async def get_lead(self, lead_id: int) -> Lead | None:
        return await self.session.get(Lead, lead_id)

    async def count_unread(self, user_id: int) -> int:
        stmt = (
            select(func.count())
            .select_from(Lead)
            .where(Lead.user_id == user_id, Lead.is_read.is_(False))
        )
        try:
            result = await self.session.execute(stmt)
            return int(result.scalar_one())
        except SQLAlchemyError as exc:
            logger.error("lead_unread_count_failed", user_id=user_id, error=str(exc))
            return 0

    async def mark_read(self, lead: Lead, via: str | None = None) -> Lead:
        """Mark a single lead read; ``via`` records where it was read."""

        if lead.is_read:
            return lead
        lead.is_read = True
        lead.read_at = utc_now().replace(tzinfo=None)
        lead.read_via = via
        await self.session.flush()
        return lead

    async def mark_read_many(self, ids: Sequence[int]) -> int:
        if not ids:
            return 0
        stmt = (
            update(Lead)
            .where(Lead.id.in_(list(ids)), Lead.is_read.is_(False))
            .values(is_read=True, read_at=utc_now().replace(tzinfo=None))
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount or 0

    async def create_default_statuses(self, user_id: int) -> list[LeadRatingStatus]:
        records = [
            LeadRatingStatus(user_id=user_id, name=seed.name, color=seed.color)
            for seed in self.statuses
        ]
        try:
            self.session.add_all(records)
            await self.session.flush()
        except SQLAlchemyError as exc:
            logger.error("lead_default_statuses_failed", user_id=user_id, error=str(exc))
            raise DownstreamError(f"Could not create default statuses for user {user_id}.") from exc
        logger.info("lead_default_statuses_created", user_id=user_id, count=len(records))
        return records

    async def list_statuses(self, user_id: int) -> list[LeadRatingStatus]:
        stmt = (
            select(LeadRatingStatus)
            .where(LeadRatingStatus.user_id == user_id)
            .order_by(LeadRatingStatus.id)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars())


__all__ = ["LeadService", "READ_VIA_EMAIL"]
