"""Lead read tracking and default status tables."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from leadcrm.config import DEFAULT_LEAD_STATUSES, LeadStatusSeed
from leadcrm.db.models.core import Lead, Project, User
from leadcrm.services.leads import READ_VIA_EMAIL, LeadService


async def _seed_leads(session, count: int = 3) -> tuple[User, list[Lead]]:
    owner = User(email="owner@example.com")
    project = Project(owner=owner, name="Landing")
    session.add_all([owner, project])
    await session.flush()
    leads = [Lead(project_id=project.id, user_id=owner.id, name=f"Lead {i}") for i in range(count)]
    session.add_all(leads)
    await session.flush()
    return owner, leads


@pytest.mark.asyncio
async def test_count_unread_and_mark_read(session):
    owner, leads = await _seed_leads(session)
    service = LeadService(session, statuses=DEFAULT_LEAD_STATUSES)

    assert await service.count_unread(owner.id) == 3

    marked = await service.mark_read(leads[0], READ_VIA_EMAIL)
    first_read_at = marked.read_at
    await service.mark_read(leads[0], "dashboard")

    assert marked.is_read
    assert marked.read_via == READ_VIA_EMAIL
    assert leads[0].read_at == first_read_at
    assert await service.count_unread(owner.id) == 2


@pytest.mark.asyncio
async def test_mark_read_many_only_touches_unread(session):
    owner, leads = await _seed_leads(session)
    service = LeadService(session, statuses=DEFAULT_LEAD_STATUSES)
    await service.mark_read(leads[0])

    updated = await service.mark_read_many([lead.id for lead in leads])

    assert updated == 2
    assert await service.count_unread(owner.id) == 0
    assert await service.mark_read_many([]) == 0


@pytest.mark.asyncio
async def test_get_lead(session):
    _, leads = await _seed_leads(session, count=1)
    service = LeadService(session, statuses=DEFAULT_LEAD_STATUSES)

    assert (await service.get_lead(leads[0].id)).name == "Lead 0"
    assert await service.get_lead(9999) is None


@pytest.mark.asyncio
async def test_default_statuses_follow_configured_table(session):
    owner, _ = await _seed_leads(session, count=0)
    table = (
        LeadStatusSeed(name="New", color="#ffffff"),
        LeadStatusSeed(name="Won", color="#00ff00"),
    )
    service = LeadService(session, statuses=table)

    created = await service.create_default_statuses(owner.id)
    listed = await service.list_statuses(owner.id)

    assert [status.name for status in created] == ["New", "Won"]
    assert [(status.name, status.color) for status in listed] == [("New", "#ffffff"), ("Won", "#00ff00")]
    assert await service.list_statuses(owner.id + 1) == []


def test_default_status_table_is_immutable():
    assert isinstance(DEFAULT_LEAD_STATUSES, tuple)
    assert len(DEFAULT_LEAD_STATUSES) == 9
    with pytest.raises(ValidationError):
        DEFAULT_LEAD_STATUSES[0].name = "Changed"  # type: ignore[misc]
