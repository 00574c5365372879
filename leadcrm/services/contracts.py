"""Collaborator interfaces consumed by the tariff and notification services."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Callable, Mapping, Protocol, Sequence

from leadcrm.domain.models import (
    EmailNotificationConfig,
    EntitlementPeriod,
    LeadModel,
    SmsNotificationConfig,
    TariffModel,
    UserModel,
)

Clock = Callable[[], datetime]


class PeriodStore(Protocol):
    async def list_periods(self, user_id: int) -> Sequence[EntitlementPeriod]: ...

    async def append_period(self, period: EntitlementPeriod) -> EntitlementPeriod: ...


class TariffStore(Protocol):
    async def get_default_tariff(self) -> TariffModel | None: ...

    async def get_tariff(self, tariff_id: int) -> TariffModel | None: ...

    async def list_visible_tariffs(self) -> Sequence[TariffModel]: ...


class NotificationConfigStore(Protocol):
    async def list_email_configs(self, project_id: int) -> Sequence[EmailNotificationConfig]: ...

    async def list_sms_configs(self, project_id: int) -> Sequence[SmsNotificationConfig]: ...

    async def add_email_config(self, config: EmailNotificationConfig) -> EmailNotificationConfig: ...

    async def add_sms_config(self, config: SmsNotificationConfig) -> SmsNotificationConfig: ...

    async def update_email_config(
        self, project_id: int, config_id: int, changes: Mapping[str, Any]
    ) -> EmailNotificationConfig | None: ...

    async def update_sms_config(
        self, project_id: int, config_id: int, changes: Mapping[str, Any]
    ) -> SmsNotificationConfig | None: ...

    async def remove_email_configs(self, project_id: int, ids: Sequence[int]) -> int: ...

    async def remove_sms_configs(self, project_id: int, ids: Sequence[int]) -> int: ...


class SmsGateway(Protocol):
    async def get_user_balance(self, user: UserModel) -> int: ...

    async def can_send(self, phone: str, text: str, user: UserModel) -> bool: ...

    async def send(self, phone: str, text: str, user: UserModel) -> Any: ...


class MailGateway(Protocol):
    async def send(
        self,
        address: str,
        subject: str,
        body: str,
        *,
        user_id: int,
        project_id: int,
    ) -> Any: ...


class LeadRenderer(Protocol):
    def render_email(self, lead: LeadModel, config: EmailNotificationConfig) -> str: ...

    def render_sms(self, lead: LeadModel, config: SmsNotificationConfig) -> str: ...


__all__ = [
    "Clock",
    "LeadRenderer",
    "MailGateway",
    "NotificationConfigStore",
    "PeriodStore",
    "SmsGateway",
    "TariffStore",
]
