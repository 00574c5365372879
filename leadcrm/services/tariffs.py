"""Tariff catalogue, entitlement grants and capability checks."""

from __future__ import annotations

import asyncio
import weakref
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Sequence

from leadcrm.config import CrmSettings, get_settings
from leadcrm.domain.models import Capability, EntitlementPeriod, TariffModel, UserModel
from leadcrm.logging import logger
from leadcrm.services import entitlements
from leadcrm.services.contracts import Clock, PeriodStore, TariffStore
from leadcrm.services.exceptions import DownstreamError, ServiceError, TariffNotFound
from leadcrm.utils.datetime import local_now

# Shared by every service instance in the process; entries vanish once no grant holds them.
_USER_LOCKS: weakref.WeakValueDictionary[int, asyncio.Lock] = weakref.WeakValueDictionary()


@dataclass(slots=True)
class TariffGrant:
    """Outcome of granting a tariff to a user."""

    user_id: int
    tariff_id: int | None
    period: EntitlementPeriod | None = None
    error: ServiceError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.period is not None


class TariffService:
    def __init__(
        self,
        periods: PeriodStore,
        tariffs: TariffStore,
        settings: CrmSettings | None = None,
        clock: Clock | None = None,
    ) -> None:
        self.periods = periods
        self.tariffs = tariffs
        self.settings = settings or get_settings()
        self._clock = clock or (lambda: local_now(self.settings.timezone))

    # Catalogue ------------------------------------------------------------

    async def get_tariff(self, tariff_id: int) -> TariffModel | None:
        return await self.tariffs.get_tariff(tariff_id)

    async def list_tariffs(self) -> list[TariffModel]:
        return list(await self.tariffs.list_visible_tariffs())

    async def tariff_choices(self) -> dict[int, str]:
        """``{id: name}`` of visible tariffs, for selection widgets."""

        return {tariff.id: tariff.name for tariff in await self.list_tariffs() if tariff.id is not None}

    async def get_default_tariff(self) -> TariffModel:
        tariff = await self.tariffs.get_default_tariff()
        if tariff is None:
            raise TariffNotFound("No default tariff configured.")
        return tariff

    # Entitlements ---------------------------------------------------------

    async def get_current_user_tariff(self, user: UserModel) -> EntitlementPeriod:
        """Active paid period, or a zero-value entitlement on the default tariff."""

        now = self._clock()
        try:
            periods = await self.periods.list_periods(user.id)
        except Exception as exc:
            logger.error("entitlement_lookup_failed", user_id=user.id, error=str(exc))
            periods = []

        cfg = self.settings.entitlements
        return entitlements.resolve_active(
            periods,
            now,
            await self.get_default_tariff(),
            user_id=user.id,
            grace=timedelta(days=cfg.grace_days),
            strict=cfg.strict_overlap,
        )

    async def check_right(self, user: UserModel, capability: Capability | int | str) -> bool:
        entitlement = await self.get_current_user_tariff(user)
        return entitlements.check_capability(entitlement, capability)

    async def get_last_period_end(self, user: UserModel) -> date | None:
        return entitlements.latest_end(await self.periods.list_periods(user.id))

    async def list_actual_periods(self, user: UserModel) -> list[EntitlementPeriod]:
        """Bought periods that have not ended before today."""

        today = self._clock().date()
        periods = await self.periods.list_periods(user.id)
        return [period for period in periods if period.end >= today]

    async def add_tariff_for_user(
        self,
        user: UserModel,
        tariff: TariffModel,
        month_count: int = 1,
        pay_sum: int = 0,
    ) -> TariffGrant:
        grant = TariffGrant(user_id=user.id, tariff_id=tariff.id)
        async with self._lock_for(user.id):
            try:
                existing = await self._list_periods_for_write(user.id)
                candidate = entitlements.create_period(
                    user_id=user.id,
                    tariff=tariff,
                    month_count=month_count,
                    pay_sum=pay_sum,
                    existing=existing,
                    today=self._clock().date(),
                )
                grant.period = await self._append(candidate)
            except ServiceError as exc:
                grant.error = exc
                logger.error(
                    "tariff_grant_failed",
                    user=str(user),
                    user_id=user.id,
                    tariff_id=tariff.id,
                    error_type=exc.__class__.__name__,
                    error=str(exc),
                )
                return grant

        logger.info(
            "tariff_granted",
            user=str(user),
            user_id=user.id,
            tariff_id=tariff.id,
            month_count=month_count,
            start=grant.period.start.isoformat(),
            end=grant.period.end.isoformat(),
        )
        return grant

    async def add_trial_tariff_for_new_user(self, user: UserModel) -> TariffGrant:
        cfg = self.settings.entitlements
        logger.info("trial_tariff_requested", user_id=user.id, tariff_id=cfg.trial_tariff_id)
        tariff = await self.get_tariff(cfg.trial_tariff_id)
        if tariff is None:
            error = TariffNotFound(f"Trial tariff {cfg.trial_tariff_id} does not exist.")
            logger.error("trial_tariff_missing", user_id=user.id, tariff_id=cfg.trial_tariff_id)
            return TariffGrant(user_id=user.id, tariff_id=cfg.trial_tariff_id, error=error)
        return await self.add_tariff_for_user(user, tariff, cfg.trial_month_count)

    # Internal helpers -------------------------------------------------

    def _lock_for(self, user_id: int) -> asyncio.Lock:
        lock = _USER_LOCKS.get(user_id)
        if lock is None:
            lock = _USER_LOCKS[user_id] = asyncio.Lock()
        return lock

    async def _list_periods_for_write(self, user_id: int) -> Sequence[EntitlementPeriod]:
        try:
            return await self.periods.list_periods(user_id)
        except Exception as exc:
            raise DownstreamError(f"Could not load periods for user {user_id}: {exc}") from exc

    async def _append(self, period: EntitlementPeriod) -> EntitlementPeriod:
        try:
            return await self.periods.append_period(period)
        except ServiceError:
            raise
        except Exception as exc:
            raise DownstreamError(f"Could not store period for user {period.user_id}: {exc}") from exc


__all__ = ["TariffGrant", "TariffService"]
