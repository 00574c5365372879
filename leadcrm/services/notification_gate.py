"""Which configured channels may receive a new-lead notification right now."""

from __future__ import annotations

from datetime import datetime
from typing import Iterable

from email_validator import EmailNotValidError, validate_email

from leadcrm.domain.models import EmailNotificationConfig, ProjectModel, SmsNotificationConfig
from leadcrm.utils.datetime import seconds_since_midnight


def is_valid_email(address: str | None) -> bool:
    if not address or not address.strip():
        return False
    try:
        validate_email(address.strip(), check_deliverability=False)
    except EmailNotValidError:
        return False
    return True


def eligible_email_targets(configs: Iterable[EmailNotificationConfig]) -> list[EmailNotificationConfig]:
    """Configs with a syntactically valid address, in the order given."""

    return [config for config in configs if is_valid_email(config.email)]


def sms_channel_open(project: ProjectModel, user_has_sms_credit: bool) -> bool:
    return project.sms_enabled and user_has_sms_credit


def eligible_sms_targets(
    configs: Iterable[SmsNotificationConfig],
    now: datetime,
    *,
    project: ProjectModel,
    user_has_sms_credit: bool,
) -> list[SmsNotificationConfig]:
    """SMS configs whose sending window contains the wall-clock time of ``now``.

    Nothing is eligible while SMS is switched off for the project or the owner
    has no SMS credit. The messaging gateway still has the final say per send.
    """

    if not sms_channel_open(project, user_has_sms_credit):
        return []
    instant = seconds_since_midnight(now)
    return [
        config
        for config in configs
        if config.phone and config.window.contains(instant)
    ]


__all__ = [
    "eligible_email_targets",
    "eligible_sms_targets",
    "is_valid_email",
    "sms_channel_open",
]
