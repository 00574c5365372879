"""Entitlement sequencing, resolution and capability lookups."""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from leadcrm.domain.models import Capability, EntitlementPeriod, TariffModel
from leadcrm.services import entitlements
from leadcrm.services.exceptions import DataIntegrityError, InvalidGrant, PeriodArithmeticError

FREE = TariffModel(id=1, name="Free", is_default=True)
PRO = TariffModel(id=2, name="Pro", chat_bot=True, chat=True, callback=True)


def _period(start: date, end: date, *, tariff: TariffModel = PRO, period_id: int | None = None) -> EntitlementPeriod:
    return EntitlementPeriod(id=period_id, user_id=7, tariff=tariff, start=start, end=end, pay_sum=100)


def _at(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


def test_next_start_is_today_without_periods():
    assert entitlements.next_period_start([], date(2024, 5, 10)) == date(2024, 5, 10)


def test_next_start_follows_latest_end():
    periods = [
        _period(date(2024, 1, 1), date(2024, 2, 1)),
        _period(date(2024, 3, 1), date(2024, 3, 31)),
    ]

    assert entitlements.next_period_start(periods, date(2024, 1, 15)) == date(2024, 4, 1)


def test_next_start_does_not_fill_gaps():
    periods = [_period(date(2023, 1, 1), date(2023, 2, 1))]

    assert entitlements.next_period_start(periods, date(2024, 6, 1)) == date(2023, 2, 2)


def test_create_period_adds_calendar_months():
    period = entitlements.create_period(
        user_id=7, tariff=PRO, month_count=3, pay_sum=900, existing=[], today=date(2024, 1, 15)
    )

    assert period.start == date(2024, 1, 15)
    assert period.end == date(2024, 4, 15)
    assert period.pay_sum == 900
    assert period.id is None


def test_create_period_clamps_to_month_end():
    period = entitlements.create_period(
        user_id=7, tariff=PRO, month_count=1, pay_sum=0, existing=[], today=date(2024, 1, 31)
    )

    assert period.end == date(2024, 2, 29)


@pytest.mark.parametrize("month_count,pay_sum", [(0, 0), (-1, 0), (1, -5)])
def test_create_period_rejects_bad_arguments(month_count, pay_sum):
    with pytest.raises(InvalidGrant):
        entitlements.create_period(
            user_id=7,
            tariff=PRO,
            month_count=month_count,
            pay_sum=pay_sum,
            existing=[],
            today=date(2024, 1, 1),
        )


def test_create_period_reports_date_overflow():
    existing = [_period(date(9999, 11, 1), date(9999, 12, 1))]

    with pytest.raises(PeriodArithmeticError):
        entitlements.create_period(
            user_id=7, tariff=PRO, month_count=1, pay_sum=0, existing=existing, today=date(2024, 1, 1)
        )

    with pytest.raises(PeriodArithmeticError):
        entitlements.next_period_start([_period(date(9999, 1, 1), date.max)], date(2024, 1, 1))


def test_serial_creation_never_overlaps():
    existing: list[EntitlementPeriod] = []
    for month_count in (1, 2, 1, 12, 3):
        existing.append(
            entitlements.create_period(
                user_id=7,
                tariff=PRO,
                month_count=month_count,
                pay_sum=0,
                existing=existing,
                today=date(2024, 1, 31),
            )
        )

    for previous, current in zip(existing, existing[1:]):
        assert current.start > previous.end
        assert current.start < current.end


def test_overlapping_candidate_is_rejected():
    existing = [_period(date(2024, 1, 1), date(2024, 3, 1))]
    candidate = _period(date(2024, 2, 1), date(2024, 4, 1))

    with pytest.raises(DataIntegrityError):
        entitlements.ensure_no_overlap(existing, candidate)

    entitlements.ensure_no_overlap(existing, _period(date(2024, 3, 1), date(2024, 4, 1)))


def test_period_requires_start_before_end():
    with pytest.raises(ValidationError):
        _period(date(2024, 3, 1), date(2024, 3, 1))


def test_resolve_active_within_period():
    period = _period(date(2024, 1, 1), date(2024, 3, 31), period_id=11)

    active = entitlements.resolve_active([period], _at(2024, 2, 10, 9), FREE, user_id=7)

    assert active.id == 11
    assert not active.is_fallback


def test_resolve_active_keeps_grace_day_after_end():
    period = _period(date(2024, 1, 1), date(2024, 3, 31), period_id=11)

    one_day_after = entitlements.resolve_active([period], _at(2024, 4, 1, 12), FREE, user_id=7)
    two_days_after = entitlements.resolve_active([period], _at(2024, 4, 2, 12), FREE, user_id=7)

    assert one_day_after.id == 11
    assert two_days_after.is_fallback
    assert two_days_after.tariff == FREE


def test_resolve_active_ignores_future_periods():
    period = _period(date(2024, 5, 1), date(2024, 6, 1))

    active = entitlements.resolve_active([period], _at(2024, 4, 30, 23, 59), FREE, user_id=7)

    assert active.is_fallback


def test_fallback_entitlement_is_zero_valued():
    active = entitlements.resolve_active([], _at(2024, 4, 2), FREE, user_id=7)

    assert active.is_fallback
    assert active.pay_sum == 0
    assert active.site_count == 0
    assert active.user_id == 7
    assert active.tariff.is_default


def test_ambiguous_active_periods_pick_latest_start():
    first = _period(date(2024, 1, 1), date(2024, 3, 1), period_id=1)
    second = _period(date(2024, 2, 1), date(2024, 4, 1), period_id=2)

    active = entitlements.resolve_active([first, second], _at(2024, 2, 15), FREE, user_id=7)

    assert active.id == 2


def test_ambiguous_active_periods_raise_in_strict_mode():
    first = _period(date(2024, 1, 1), date(2024, 3, 1), period_id=1)
    second = _period(date(2024, 2, 1), date(2024, 4, 1), period_id=2)

    with pytest.raises(DataIntegrityError):
        entitlements.resolve_active([first, second], _at(2024, 2, 15), FREE, user_id=7, strict=True)


def test_grace_can_be_disabled():
    period = _period(date(2024, 1, 1), date(2024, 3, 31))

    active = entitlements.resolve_active(
        [period], _at(2024, 4, 1, 12), FREE, user_id=7, grace=timedelta(0)
    )

    assert active.is_fallback


def test_default_tariff_without_chat_bot_denies_capability():
    fallback = entitlements.resolve_active([], _at(2024, 4, 2), FREE, user_id=7)

    assert entitlements.check_capability(fallback, Capability.CHAT_BOT) is False


@pytest.mark.parametrize(
    "capability,expected",
    [
        (Capability.CHAT_BOT, True),
        (Capability.CALLBACK, True),
        (Capability.ADV_WIDGET, False),
        (2, True),
        (4, False),
        ("chat", True),
        ("HOLD_CLIENT_POPUP", False),
        ("ChatBot", True),
        ("chat_bot", True),
        ("CallBack", True),
        ("HoldClientPopup", False),
        ("AdvWidget", False),
        ("1", True),
        (" 3 ", True),
        ("5", False),
        ("9", False),
        ("", False),
        (99, False),
        ("teleport", False),
        (None, False),
        (True, False),
    ],
)
def test_check_capability_lookup(capability, expected):
    entitlement = _period(date(2024, 1, 1), date(2024, 2, 1))

    assert entitlements.check_capability(entitlement, capability) is expected


@pytest.mark.parametrize("spelling", ["HoldClientPopup", "hold_client_popup", "4"])
def test_capability_spellings_grant_flag_the_tariff_has(spelling):
    widget = TariffModel(id=5, name="Widget", hold_client_popup=True)
    entitlement = _period(date(2024, 1, 1), date(2024, 2, 1), tariff=widget)

    assert entitlements.check_capability(entitlement, spelling) is True
    assert entitlements.check_capability(entitlement, "ChatBot") is False
