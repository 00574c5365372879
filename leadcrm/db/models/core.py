"""SQLAlchemy models for users, tariffs, leads and notification targets."""

from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from leadcrm.db.base import Base, CreatedAtMixin


class User(CreatedAtMixin, Base):
    __tablename__ = "users"

    email: Mapped[str | None] = mapped_column(String(191))
    phone: Mapped[str | None] = mapped_column(String(32))
    notice_new_lead: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    projects: Mapped[list["Project"]] = relationship(back_populates="owner")
    tariff_periods: Mapped[list["TariffPeriod"]] = relationship(back_populates="user")


class Tariff(CreatedAtMixin, Base):
    __tablename__ = "tariffs"

    name: Mapped[str] = mapped_column(String(64), nullable=False)
    chat_bot: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    chat: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    callback: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    hold_client_popup: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    adv_widget: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_default: Mapped[bool] = mapped_column("default_tariff", Boolean, default=False, nullable=False)
    visible: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)


class TariffPeriod(CreatedAtMixin, Base):
    """A tariff bought by (or granted to) a user for ``[start, end)``."""

    __tablename__ = "tariff_periods"

    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    tariff_id: Mapped[int] = mapped_column(ForeignKey("tariffs.id"))
    start: Mapped[date] = mapped_column("starts_on", Date, nullable=False)
    end: Mapped[date] = mapped_column("ends_on", Date, nullable=False)
    pay_sum: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    site_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    user: Mapped[User] = relationship(back_populates="tariff_periods")
    tariff: Mapped[Tariff] = relationship()


class Project(CreatedAtMixin, Base):
    __tablename__ = "projects"

    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"))
    name: Mapped[str | None] = mapped_column(String(191))
    sms_enabled: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    owner: Mapped[User] = relationship(back_populates="projects")


class Lead(CreatedAtMixin, Base):
    __tablename__ = "leads"

    project_id: Mapped[int] = mapped_column(ForeignKey("projects.id", ondelete="CASCADE"))
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    name: Mapped[str | None] = mapped_column(String(191))
    phone: Mapped[str | None] = mapped_column(String(32))
    email: Mapped[str | None] = mapped_column(String(191))
    message: Mapped[str | None] = mapped_column(Text)
    is_read: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    read_at: Mapped[datetime | None] = mapped_column(DateTime)
    read_via: Mapped[str | None] = mapped_column(String(32))

    project: Mapped[Project] = relationship()


class ProjectEmailNotificationConfig(Base):
    __tablename__ = "project_email_notification_configs"

    project_id: Mapped[int] = mapped_column(ForeignKey("projects.id", ondelete="CASCADE"), index=True)
    email: Mapped[str | None] = mapped_column(String(191))
    params: Mapped[dict | None] = mapped_column(JSON)


class ProjectSmsNotificationConfig(Base):
    __tablename__ = "project_sms_notification_configs"

    project_id: Mapped[int] = mapped_column(ForeignKey("projects.id", ondelete="CASCADE"), index=True)
    phone: Mapped[str | None] = mapped_column(String(32))
    start_second: Mapped[int] = mapped_column("time_start_second", Integer, default=0, nullable=False)
    end_second: Mapped[int] = mapped_column("time_end_second", Integer, default=0, nullable=False)


class LeadRatingStatus(Base):
    __tablename__ = "lead_rating_statuses"

    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    name: Mapped[str] = mapped_column(String(64), nullable=False)
    color: Mapped[str] = mapped_column(String(7), nullable=False)


__all__ = [
    "Lead",
    "LeadRatingStatus",
    "Project",
    "ProjectEmailNotificationConfig",
    "ProjectSmsNotificationConfig",
    "Tariff",
    "TariffPeriod",
    "User",
]
