"""Pydantic models shared across logic/application layers."""

from __future__ import annotations

from datetime import date, datetime
from enum import IntEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from leadcrm.domain.time_window import TimeWindow
from leadcrm.utils.datetime import SECONDS_PER_DAY


class Capability(IntEnum):
    CHAT_BOT = 1
    CHAT = 2
    CALLBACK = 3
    HOLD_CLIENT_POPUP = 4
    ADV_WIDGET = 5


class UserModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str | None = None
    phone: str | None = None
    notice_new_lead: bool = True

    def __str__(self) -> str:
        return self.email or f"user#{self.id}"


class TariffModel(BaseModel):
    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: int | None = None
    name: str
    chat_bot: bool = False
    chat: bool = False
    callback: bool = False
    hold_client_popup: bool = False
    adv_widget: bool = False
    is_default: bool = False
    visible: bool = True

    def has_capability(self, capability: Capability) -> bool:
        return bool(getattr(self, capability.name.lower()))


class EntitlementPeriod(BaseModel):
    """One tariff grant covering ``[start, end)``."""

    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: int | None = None
    user_id: int
    tariff: TariffModel
    start: date
    end: date
    pay_sum: int = Field(default=0, ge=0)
    site_count: int = Field(default=0, ge=0)
    is_fallback: bool = False

    @model_validator(mode="after")
    def _check_bounds(self) -> EntitlementPeriod:
        if not self.is_fallback and self.start >= self.end:
            raise ValueError(f"Period start {self.start} must be before end {self.end}.")
        return self


class ProjectModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    owner: UserModel
    name: str | None = None
    sms_enabled: bool = False


class LeadModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int | None = None
    project: ProjectModel
    name: str | None = None
    phone: str | None = None
    email: str | None = None
    message: str | None = None
    is_read: bool = False
    read_at: datetime | None = None
    read_via: str | None = None


class EmailNotificationConfig(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int | None = None
    project_id: int
    email: str | None = None
    params: dict[str, Any] = Field(default_factory=dict)


class SmsNotificationConfig(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int | None = None
    project_id: int
    phone: str | None = None
    start_second: int = Field(default=0, ge=0, lt=SECONDS_PER_DAY)
    end_second: int = Field(default=0, ge=0, lt=SECONDS_PER_DAY)

    @property
    def window(self) -> TimeWindow:
        return TimeWindow(self.start_second, self.end_second)


class LeadStatusModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int | None = None
    user_id: int
    name: str
    color: str


__all__ = [
    "Capability",
    "EmailNotificationConfig",
    "EntitlementPeriod",
    "LeadModel",
    "LeadStatusModel",
    "ProjectModel",
    "SmsNotificationConfig",
    "TariffModel",
    "UserModel",
]
