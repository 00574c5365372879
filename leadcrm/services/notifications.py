"""New-lead notifications and per-project notification configs."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Literal, Mapping, Sequence

from leadcrm.config import CrmSettings, get_settings
from leadcrm.domain.models import (
    EmailNotificationConfig,
    LeadModel,
    ProjectModel,
    SmsNotificationConfig,
)
from leadcrm.domain.time_window import TimeWindow, clock_to_seconds
from leadcrm.logging import logger
from leadcrm.services import notification_gate as gate
from leadcrm.services.contracts import (
    Clock,
    LeadRenderer,
    MailGateway,
    NotificationConfigStore,
    SmsGateway,
)
from leadcrm.utils.datetime import local_now

_TAG_RE = re.compile(r"<[^>]*>")

Channel = Literal["email", "sms"]
Status = Literal["sent", "skipped", "failed"]


@dataclass(slots=True)
class DeliveryAttempt:
    channel: Channel
    status: Status
    target: str | None
    config_id: int | None = None
    reason: str | None = None


@dataclass(slots=True)
class NotificationReport:
    """Per-target outcome of a new-lead fan-out."""

    lead_id: int | None
    disabled: bool = False
    attempts: list[DeliveryAttempt] = field(default_factory=list)

    def _with_status(self, status: Status, channel: Channel | None) -> list[DeliveryAttempt]:
        return [
            attempt
            for attempt in self.attempts
            if attempt.status == status and (channel is None or attempt.channel == channel)
        ]

    def sent(self, channel: Channel | None = None) -> list[DeliveryAttempt]:
        return self._with_status("sent", channel)

    def skipped(self, channel: Channel | None = None) -> list[DeliveryAttempt]:
        return self._with_status("skipped", channel)

    def failed(self, channel: Channel | None = None) -> list[DeliveryAttempt]:
        return self._with_status("failed", channel)


def strip_tags(value: str) -> str:
    return _TAG_RE.sub("", value).strip()


class ProjectNotificationService:
    def __init__(
        self,
        configs: NotificationConfigStore,
        mail: MailGateway,
        sms: SmsGateway,
        renderer: LeadRenderer,
        settings: CrmSettings | None = None,
        clock: Clock | None = None,
    ) -> None:
        self.configs = configs
        self.mail = mail
        self.sms = sms
        self.renderer = renderer
        self.settings = settings or get_settings()
        self._clock = clock or (lambda: local_now(self.settings.timezone))

    async def notice_lead(self, lead: LeadModel) -> NotificationReport:
        """Fan a new lead out to every eligible email and SMS target.

        Emails go first, then SMS. A failing target is logged and recorded,
        and the remaining targets are still attempted.
        """

        report = NotificationReport(lead_id=lead.id)
        owner = lead.project.owner
        if not owner.notice_new_lead:
            report.disabled = True
            logger.info("lead_notice_disabled", lead_id=lead.id, user_id=owner.id)
            return report

        await self._notify_email(lead, report)
        await self._notify_sms(lead, report)

        logger.info(
            "lead_notice_completed",
            lead_id=lead.id,
            project_id=lead.project.id,
            sent=len(report.sent()),
            skipped=len(report.skipped()),
            failed=len(report.failed()),
        )
        return report

    async def get_email_targets(self, project: ProjectModel) -> list[EmailNotificationConfig]:
        return gate.eligible_email_targets(await self.configs.list_email_configs(project.id))

    async def get_sms_targets(
        self, project: ProjectModel, *, user_has_sms_credit: bool
    ) -> list[SmsNotificationConfig]:
        if not gate.sms_channel_open(project, user_has_sms_credit):
            return []
        return gate.eligible_sms_targets(
            await self.configs.list_sms_configs(project.id),
            self._clock(),
            project=project,
            user_has_sms_credit=user_has_sms_credit,
        )

    def lead_subject(self, lead: LeadModel) -> str:
        cfg = self.settings.notifications
        name = strip_tags(lead.name or "")
        if name:
            return cfg.lead_subject_with_name.format(name=name)
        return cfg.lead_subject

    # Config management ------------------------------------------------

    async def create_email_config(
        self, project: ProjectModel, data: Mapping[str, Any] | None = None
    ) -> EmailNotificationConfig:
        """Store an email target, defaulting the address to the project owner's."""

        data = dict(data or {})
        config = EmailNotificationConfig(
            project_id=project.id,
            email=data.get("email") or project.owner.email,
            params=data.get("params") or {},
        )
        return await self.configs.add_email_config(config)

    async def create_sms_config(
        self, project: ProjectModel, data: Mapping[str, Any] | None = None
    ) -> SmsNotificationConfig:
        """Store an SMS target; ``time_start``/``time_end`` are ``HH:MM`` strings."""

        data = dict(data or {})
        window = TimeWindow.from_clock(
            data.get("time_start") or "00:00",
            data.get("time_end") or "00:00",
        )
        config = SmsNotificationConfig(
            project_id=project.id,
            phone=data.get("phone") or project.owner.phone,
            start_second=window.start_second,
            end_second=window.end_second,
        )
        return await self.configs.add_sms_config(config)

    async def update_email_config(
        self, project: ProjectModel, config_id: int, data: Mapping[str, Any]
    ) -> EmailNotificationConfig | None:
        """Overwrite the given fields of a stored email target of ``project``.

        Returns ``None`` when the config does not exist or belongs elsewhere.
        """

        changes = {key: data[key] for key in ("email", "params") if key in data}
        return await self.configs.update_email_config(project.id, config_id, changes)

    async def update_sms_config(
        self, project: ProjectModel, config_id: int, data: Mapping[str, Any]
    ) -> SmsNotificationConfig | None:
        """Overwrite fields of a stored SMS target, re-deriving seconds from ``HH:MM``."""

        changes: dict[str, Any] = {}
        if "phone" in data:
            changes["phone"] = data["phone"]
        if "time_start" in data:
            changes["start_second"] = clock_to_seconds(data["time_start"])
        if "time_end" in data:
            changes["end_second"] = clock_to_seconds(data["time_end"])
        return await self.configs.update_sms_config(project.id, config_id, changes)

    async def remove_email_configs(self, project: ProjectModel, ids: Sequence[int]) -> int:
        return await self.configs.remove_email_configs(project.id, ids)

    async def remove_sms_configs(self, project: ProjectModel, ids: Sequence[int]) -> int:
        return await self.configs.remove_sms_configs(project.id, ids)

    # Internal helpers -------------------------------------------------

    async def _notify_email(self, lead: LeadModel, report: NotificationReport) -> None:
        project = lead.project
        try:
            configs = await self.configs.list_email_configs(project.id)
        except Exception as exc:
            logger.exception("lead_email_configs_unavailable", lead_id=lead.id, project_id=project.id)
            report.attempts.append(
                DeliveryAttempt("email", "failed", None, reason=f"downstream_error: {exc}")
            )
            return

        subject = self.lead_subject(lead)
        for config in configs:
            if not gate.is_valid_email(config.email):
                logger.info("lead_email_skipped", lead_id=lead.id, config_id=config.id, email=config.email)
                report.attempts.append(
                    DeliveryAttempt("email", "skipped", config.email, config.id, "invalid_address")
                )
                continue
            try:
                body = self.renderer.render_email(lead, config)
                await self.mail.send(
                    config.email,
                    subject,
                    body,
                    user_id=project.owner.id,
                    project_id=project.id,
                )
            except Exception as exc:
                logger.exception("lead_email_failed", lead_id=lead.id, config_id=config.id)
                report.attempts.append(
                    DeliveryAttempt("email", "failed", config.email, config.id, str(exc))
                )
                continue
            report.attempts.append(DeliveryAttempt("email", "sent", config.email, config.id))

    async def _notify_sms(self, lead: LeadModel, report: NotificationReport) -> None:
        project = lead.project
        owner = project.owner
        if not project.sms_enabled:
            return

        try:
            has_credit = bool(await self.sms.get_user_balance(owner))
            configs = await self.configs.list_sms_configs(project.id) if has_credit else []
        except Exception as exc:
            logger.exception("lead_sms_targets_unavailable", lead_id=lead.id, project_id=project.id)
            report.attempts.append(
                DeliveryAttempt("sms", "failed", None, reason=f"downstream_error: {exc}")
            )
            return
        if not has_credit:
            logger.info("lead_sms_no_credit", lead_id=lead.id, user_id=owner.id)
            return

        for config in configs:
            if not config.phone:
                logger.info("lead_sms_skipped", lead_id=lead.id, config_id=config.id)
                report.attempts.append(
                    DeliveryAttempt("sms", "skipped", None, config.id, "missing_phone")
                )

        targets = gate.eligible_sms_targets(
            configs, self._clock(), project=project, user_has_sms_credit=has_credit
        )
        for config in targets:
            try:
                text = self.renderer.render_sms(lead, config).strip()
                if not await self.sms.can_send(config.phone, text, owner):
                    logger.info("lead_sms_not_allowed", lead_id=lead.id, config_id=config.id)
                    report.attempts.append(
                        DeliveryAttempt("sms", "skipped", config.phone, config.id, "not_allowed")
                    )
                    continue
                await self.sms.send(config.phone, text, owner)
            except Exception as exc:
                logger.exception("lead_sms_failed", lead_id=lead.id, config_id=config.id)
                report.attempts.append(
                    DeliveryAttempt("sms", "failed", config.phone, config.id, str(exc))
                )
                continue
            report.attempts.append(DeliveryAttempt("sms", "sent", config.phone, config.id))


__all__ = [
    "DeliveryAttempt",
    "NotificationReport",
    "ProjectNotificationService",
    "strip_tags",
]
