"""SQLAlchemy-backed implementations of the service collaborator protocols."""

from __future__ import annotations

from datetime import date
from typing import Any, Mapping, Sequence

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from leadcrm.db.models.core import (
    ProjectEmailNotificationConfig,
    ProjectSmsNotificationConfig,
    Tariff,
    TariffPeriod,
)
from leadcrm.domain.models import (
    EmailNotificationConfig,
    EntitlementPeriod,
    SmsNotificationConfig,
    TariffModel,
)
from leadcrm.services.exceptions import DataIntegrityError


class SqlPeriodStore:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def list_periods(self, user_id: int) -> list[EntitlementPeriod]:
        stmt = (
            select(TariffPeriod)
            .options(selectinload(TariffPeriod.tariff))
            .where(TariffPeriod.user_id == user_id)
            .order_by(TariffPeriod.start)
        )
        result = await self.session.execute(stmt)
        return [EntitlementPeriod.model_validate(row) for row in result.scalars()]

    async def append_period(self, period: EntitlementPeriod) -> EntitlementPeriod:
        if period.is_fallback or period.tariff.id is None:
            raise ValueError("Only periods bound to a stored tariff can be persisted.")
        latest = await self._latest_end_for_update(period.user_id)
        if latest is not None and period.start < latest:
            raise DataIntegrityError(
                f"Period starting {period.start} overlaps stored period ending {latest} "
                f"for user {period.user_id}."
            )
        row = TariffPeriod(
            user_id=period.user_id,
            tariff_id=period.tariff.id,
            start=period.start,
            end=period.end,
            pay_sum=period.pay_sum,
            site_count=period.site_count,
        )
        self.session.add(row)
        await self.session.flush()
        return period.model_copy(update={"id": row.id})

    async def _latest_end_for_update(self, user_id: int) -> date | None:
        """Latest stored end, locking the user's period rows until the transaction ends."""

        stmt = select(TariffPeriod.end).where(TariffPeriod.user_id == user_id).with_for_update()
        result = await self.session.execute(stmt)
        return max(result.scalars(), default=None)


class SqlTariffStore:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_default_tariff(self) -> TariffModel | None:
        stmt = select(Tariff).where(Tariff.is_default.is_(True)).order_by(Tariff.id)
        result = await self.session.execute(stmt)
        tariff = result.scalars().first()
        return TariffModel.model_validate(tariff) if tariff else None

    async def get_tariff(self, tariff_id: int) -> TariffModel | None:
        tariff = await self.session.get(Tariff, tariff_id)
        return TariffModel.model_validate(tariff) if tariff else None

    async def list_visible_tariffs(self) -> list[TariffModel]:
        stmt = select(Tariff).where(Tariff.visible.is_(True)).order_by(Tariff.id)
        result = await self.session.execute(stmt)
        return [TariffModel.model_validate(row) for row in result.scalars()]


class SqlNotificationConfigStore:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def list_email_configs(self, project_id: int) -> list[EmailNotificationConfig]:
        stmt = (
            select(ProjectEmailNotificationConfig)
            .where(ProjectEmailNotificationConfig.project_id == project_id)
            .order_by(ProjectEmailNotificationConfig.id)
        )
        result = await self.session.execute(stmt)
        return [_email_model(row) for row in result.scalars()]

    async def list_sms_configs(self, project_id: int) -> list[SmsNotificationConfig]:
        stmt = (
            select(ProjectSmsNotificationConfig)
            .where(ProjectSmsNotificationConfig.project_id == project_id)
            .order_by(ProjectSmsNotificationConfig.id)
        )
        result = await self.session.execute(stmt)
        return [SmsNotificationConfig.model_validate(row) for row in result.scalars()]

    async def add_email_config(self, config: EmailNotificationConfig) -> EmailNotificationConfig:
        row = ProjectEmailNotificationConfig(
            project_id=config.project_id, email=config.email, params=config.params or None
        )
        self.session.add(row)
        await self.session.flush()
        return config.model_copy(update={"id": row.id})

    async def add_sms_config(self, config: SmsNotificationConfig) -> SmsNotificationConfig:
        row = ProjectSmsNotificationConfig(
            project_id=config.project_id,
            phone=config.phone,
            start_second=config.start_second,
            end_second=config.end_second,
        )
        self.session.add(row)
        await self.session.flush()
        return config.model_copy(update={"id": row.id})

    async def update_email_config(
        self, project_id: int, config_id: int, changes: Mapping[str, Any]
    ) -> EmailNotificationConfig | None:
        row = await self._owned(ProjectEmailNotificationConfig, project_id, config_id)
        if row is None:
            return None
        if "email" in changes:
            row.email = changes["email"]
        if "params" in changes:
            row.params = changes["params"] or None
        await self.session.flush()
        return _email_model(row)

    async def update_sms_config(
        self, project_id: int, config_id: int, changes: Mapping[str, Any]
    ) -> SmsNotificationConfig | None:
        row = await self._owned(ProjectSmsNotificationConfig, project_id, config_id)
        if row is None:
            return None
        for key in ("phone", "start_second", "end_second"):
            if key in changes:
                setattr(row, key, changes[key])
        await self.session.flush()
        return SmsNotificationConfig.model_validate(row)

    async def remove_email_configs(self, project_id: int, ids: Sequence[int]) -> int:
        return await self._remove(ProjectEmailNotificationConfig, project_id, ids)

    async def remove_sms_configs(self, project_id: int, ids: Sequence[int]) -> int:
        return await self._remove(ProjectSmsNotificationConfig, project_id, ids)

    async def _owned(self, model, project_id: int, config_id: int):
        row = await self.session.get(model, config_id)
        if row is None or row.project_id != project_id:
            return None
        return row

    async def _remove(self, model, project_id: int, ids: Sequence[int]) -> int:
        if not ids:
            return 0
        stmt = delete(model).where(model.project_id == project_id, model.id.in_(list(ids)))
        result = await self.session.execute(stmt)
        return result.rowcount or 0


def _email_model(row: ProjectEmailNotificationConfig) -> EmailNotificationConfig:
    return EmailNotificationConfig(
        id=row.id, project_id=row.project_id, email=row.email, params=row.params or {}
    )


__all__ = ["SqlNotificationConfigStore", "SqlPeriodStore", "SqlTariffStore"]
