"""
Tests for the public qualification endpoint
"""

import uuid

from sqlmodel import select

from leadfunnel.models import Activity, ActivityType, Lead, LeadStatus


async def test_qualification_moves_lead_to_qualified(client, session_maker, tenant_a, make_lead):
    lead = await make_lead(tenant_a)

    response = await client.post("/api/leads/qualify", json={
        "leadId": str(lead.id),
        "qualificationData": {
            "industry": "IT",
            "companySize": "10-50",
            "decisionMaker": True,
            "painPoints": "brak leadów",
            "mainGoals": ["więcej klientów", "krótszy cykl"],
            "budget": 20000,
        },
    })

    assert response.status_code == 200
    body = response.json()
    assert body["data"]["status"] == "qualified"

    async with session_maker() as session:
        stored = await session.get(Lead, lead.id)
        activities = (await session.exec(select(Activity).where(Activity.lead_id == lead.id))).all()

    assert stored.status == LeadStatus.QUALIFIED
    assert stored.company_size == "10-50"
    assert stored.decision_maker == "yes"
    assert stored.pain_points == ["brak leadów"]
    assert stored.main_goals == ["więcej klientów", "krótszy cykl"]
    assert stored.budget == "20000"
    assert stored.qualified_at is not None
    assert [activity.type for activity in activities] == [ActivityType.STATUS_CHANGE]
    assert activities[0].details == {"from": "new", "to": "qualified", "reason": "qualification"}


async def test_requalifying_overwrites_and_restamps(client, session_maker, tenant_a, make_lead):
    lead = await make_lead(tenant_a)

    first = await client.post("/api/leads/qualify", json={
        "leadId": str(lead.id), "qualificationData": {"budget": "10k", "timeline": "Q3"},
    })
    second = await client.post("/api/leads/qualify", json={
        "leadId": str(lead.id), "qualificationData": {"budget": "50k"},
    })

    assert first.status_code == 200
    assert second.status_code == 200
    assert second.json()["data"]["qualifiedAt"] >= first.json()["data"]["qualifiedAt"]

    async with session_maker() as session:
        stored = await session.get(Lead, lead.id)
        types = (await session.exec(
            select(Activity.type).where(Activity.lead_id == lead.id)
        )).all()

    assert stored.status == LeadStatus.QUALIFIED
    assert stored.budget == "50k"
    assert stored.timeline == "Q3"
    assert sorted(t.value for t in types) == ["note", "status_change"]


async def test_missing_fields_are_reported(client):
    response = await client.post("/api/leads/qualify", json={})

    assert response.status_code == 400
    errors = response.json()["errors"]
    assert errors["leadId"] == ["Lead ID is required"]
    assert errors["qualificationData"] == ["Qualification data is required"]


async def test_unknown_lead_is_not_found(client):
    response = await client.post("/api/leads/qualify", json={
        "leadId": str(uuid.uuid4()), "qualificationData": {"budget": "10k"},
    })

    assert response.status_code == 404


async def test_closed_lead_cannot_be_qualified(client, tenant_a, make_lead):
    lead = await make_lead(tenant_a, status=LeadStatus.CLOSED)

    response = await client.post("/api/leads/qualify", json={
        "leadId": str(lead.id), "qualificationData": {"budget": "10k"},
    })

    assert response.status_code == 409
    assert response.json()["success"] is False


async def test_unrecognized_answers_leave_lead_untouched(client, session_maker, tenant_a, make_lead):
    lead = await make_lead(tenant_a)

    response = await client.post("/api/leads/qualify", json={
        "leadId": str(lead.id), "qualificationData": {"bogus": "x", "industry": None},
    })

    assert response.status_code == 400
    assert response.json()["errors"]["qualificationData"] == ["No recognized qualification fields"]

    async with session_maker() as session:
        stored = await session.get(Lead, lead.id)
    assert stored.status == LeadStatus.NEW
    assert stored.qualified_at is None
