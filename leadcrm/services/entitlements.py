"""Entitlement period sequencing and active-period resolution.

Everything here is a pure function of the periods handed in. Persistence and
per-user serialization of writes belong to :mod:`leadcrm.services.tariffs`.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta
from typing import Sequence

from dateutil.relativedelta import relativedelta

from leadcrm.domain.models import Capability, EntitlementPeriod, TariffModel
from leadcrm.logging import logger
from leadcrm.services.exceptions import (
    DataIntegrityError,
    InvalidGrant,
    PeriodArithmeticError,
)

DEFAULT_GRACE = timedelta(days=1)


def latest_end(periods: Sequence[EntitlementPeriod]) -> date | None:
    if not periods:
        return None
    return max(period.end for period in periods)


def next_period_start(periods: Sequence[EntitlementPeriod], today: date) -> date:
    """Start of the next grant: the day after the latest end, or ``today``.

    Gaps between the latest end and ``today`` are left as they are.
    """

    last = latest_end(periods)
    if last is None:
        return today
    try:
        return last + timedelta(days=1)
    except OverflowError as exc:
        raise PeriodArithmeticError(f"Cannot schedule a period after {last}.") from exc


def add_months(start: date, month_count: int) -> date:
    """Calendar-month addition, clamping to the last day of shorter months."""

    try:
        return start + relativedelta(months=month_count)
    except (OverflowError, ValueError) as exc:
        raise PeriodArithmeticError(
            f"Cannot add {month_count} month(s) to {start}."
        ) from exc


def ensure_no_overlap(
    periods: Sequence[EntitlementPeriod], candidate: EntitlementPeriod
) -> None:
    last = latest_end(periods)
    if last is not None and candidate.start < last:
        raise DataIntegrityError(
            f"Period starting {candidate.start} overlaps existing period ending {last} "
            f"for user {candidate.user_id}."
        )


def create_period(
    *,
    user_id: int,
    tariff: TariffModel,
    month_count: int,
    pay_sum: int,
    existing: Sequence[EntitlementPeriod],
    today: date,
) -> EntitlementPeriod:
    """Build, without persisting, the next period for ``user_id``."""

    if month_count < 1:
        raise InvalidGrant(f"month_count must be >= 1, got {month_count}.")
    if pay_sum < 0:
        raise InvalidGrant(f"pay_sum must be >= 0, got {pay_sum}.")

    start = next_period_start(existing, today)
    end = add_months(start, month_count)
    period = EntitlementPeriod(
        user_id=user_id,
        tariff=tariff,
        start=start,
        end=end,
        pay_sum=pay_sum,
    )
    ensure_no_overlap(existing, period)
    return period


def _day_open(day: date, now: datetime) -> datetime:
    return datetime.combine(day, time.min, tzinfo=now.tzinfo)


def _day_close(day: date, now: datetime) -> datetime:
    return datetime.combine(day + timedelta(days=1), time.min, tzinfo=now.tzinfo)


def is_active(
    period: EntitlementPeriod, now: datetime, grace: timedelta = DEFAULT_GRACE
) -> bool:
    """``start <= now`` and ``end > now - grace``, at day granularity."""

    return _day_open(period.start, now) <= now and _day_close(period.end, now) > now - grace


def fallback_entitlement(user_id: int, default_tariff: TariffModel, today: date) -> EntitlementPeriod:
    return EntitlementPeriod(
        user_id=user_id,
        tariff=default_tariff,
        start=today,
        end=today,
        pay_sum=0,
        site_count=0,
        is_fallback=True,
    )


def resolve_active(
    periods: Sequence[EntitlementPeriod],
    now: datetime,
    default_tariff: TariffModel,
    *,
    user_id: int,
    grace: timedelta = DEFAULT_GRACE,
    strict: bool = False,
) -> EntitlementPeriod:
    """Return the period active at ``now`` or a zero-value default entitlement."""

    matches = [period for period in periods if is_active(period, now, grace)]
    if not matches:
        return fallback_entitlement(user_id, default_tariff, now.date())

    if len(matches) > 1:
        logger.error(
            "entitlement_overlap_detected",
            user_id=user_id,
            period_ids=[period.id for period in matches],
            now=now.isoformat(),
        )
        if strict:
            raise DataIntegrityError(
                f"{len(matches)} active periods found for user {user_id}."
            )
    return max(matches, key=lambda period: period.start)


_CAPABILITY_NAMES = {member.name.replace("_", "").lower(): member for member in Capability}


def _capability_from_name(value: str) -> Capability | None:
    """Accept ``ChatBot``, ``chat_bot``, ``CHAT_BOT`` or a numeric string like ``"1"``."""

    key = value.strip()
    if key.isdigit():
        try:
            return Capability(int(key))
        except ValueError:
            return None
    return _CAPABILITY_NAMES.get(key.replace("_", "").lower())


def check_capability(entitlement: EntitlementPeriod, capability: Capability | int | str) -> bool:
    """Look up a capability flag; anything unrecognised is simply ``False``."""

    resolved: Capability | None = None
    if isinstance(capability, Capability):
        resolved = capability
    elif isinstance(capability, int) and not isinstance(capability, bool):
        try:
            resolved = Capability(capability)
        except ValueError:
            resolved = None
    elif isinstance(capability, str):
        resolved = _capability_from_name(capability)

    if resolved is None:
        return False
    return entitlement.tariff.has_capability(resolved)


__all__ = [
    "DEFAULT_GRACE",
    "add_months",
    "check_capability",
    "create_period",
    "ensure_no_overlap",
    "fallback_entitlement",
    "is_active",
    "latest_end",
    "next_period_start",
    "resolve_active",
]
