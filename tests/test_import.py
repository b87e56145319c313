"""
Tests for bulk lead import, CSV preview and parsing
"""

import pytest
from sqlalchemy import func
from sqlmodel import select

from leadfunnel.core.errors import ValidationError
from leadfunnel.models import Activity, Lead, LeadStatus
from leadfunnel.services.lead_import import normalize_header, parse_csv


def row(number: int, **overrides) -> dict:
    data = {
        "first_name": f"Osoba{number}",
        "last_name": "Testowa",
        "company": f"Firma {number}",
        "email": f"osoba{number}@firma.pl",
    }
    data.update(overrides)
    return data


async def count_activities(session_maker, tenant):
    async with session_maker() as session:
        return (await session.exec(
            select(func.count(Activity.id)).where(Activity.client_id == tenant.id)
        )).one()


async def test_bad_row_does_not_stop_import(client, session_maker, admin_a, tenant_a, auth_headers):
    rows = [row(1), row(2), row(3, email="to-nie-email"), row(4), row(5)]

    response = await client.post(
        "/api/client/leads/import", headers=auth_headers(admin_a), json={"leads": rows}
    )

    assert response.status_code == 200
    body = response.json()
    assert body["total"] == 5
    assert body["imported"] == 4
    assert body["skipped"] == 0
    [error] = body["errors"]
    assert error["row"] == 3
    assert "email" in error["error"]
    assert error["data"]["email"] == "to-nie-email"

    # One entry per imported lead plus the batch summary
    assert await count_activities(session_maker, tenant_a) == 5

    async with session_maker() as session:
        leads = (await session.exec(select(Lead).where(Lead.client_id == tenant_a.id))).all()
    assert len(leads) == 4
    assert {lead.source for lead in leads} == {"import"}
    assert all(lead.status == LeadStatus.NEW for lead in leads)


async def test_duplicate_is_skipped_without_changes(client, session_maker, admin_a, tenant_a, make_lead, auth_headers):
    existing = await make_lead(tenant_a, email="anna@firma.pl", company="Stara Firma")

    response = await client.post("/api/client/leads/import", headers=auth_headers(admin_a), json={
        "leads": [row(1, email="ANNA@firma.pl", company="Nowa Firma")],
    })

    body = response.json()
    assert body["skipped"] == 1
    assert body["imported"] == 0

    async with session_maker() as session:
        stored = await session.get(Lead, existing.id)
    assert stored.company == "Stara Firma"


async def test_duplicate_is_updated_when_requested(client, session_maker, admin_a, tenant_a, make_lead, auth_headers):
    existing = await make_lead(tenant_a, email="anna@firma.pl", company="Stara Firma")

    response = await client.post("/api/client/leads/import", headers=auth_headers(admin_a), json={
        "leads": [row(1, email="anna@firma.pl", company="Nowa Firma")],
        "update_existing": True,
    })

    assert response.json()["updated"] == 1

    async with session_maker() as session:
        stored = await session.get(Lead, existing.id)
    assert stored.company == "Nowa Firma"


async def test_duplicate_is_an_error_when_not_skipped(client, admin_a, tenant_a, make_lead, auth_headers):
    await make_lead(tenant_a, email="anna@firma.pl")

    response = await client.post("/api/client/leads/import", headers=auth_headers(admin_a), json={
        "leads": [row(1, email="anna@firma.pl")],
        "skip_duplicates": False,
    })

    [error] = response.json()["errors"]
    assert error["row"] == 1
    assert "already exists" in error["error"]


async def test_duplicates_inside_one_batch(client, admin_a, auth_headers):
    response = await client.post("/api/client/leads/import", headers=auth_headers(admin_a), json={
        "leads": [row(1), row(2, email="osoba1@firma.pl")],
    })

    body = response.json()
    assert body["imported"] == 1
    assert body["skipped"] == 1


async def test_same_email_in_other_tenant_is_not_a_duplicate(client, admin_a, tenant_b, make_lead, auth_headers):
    await make_lead(tenant_b, email="osoba1@firma.pl")

    response = await client.post("/api/client/leads/import", headers=auth_headers(admin_a), json={
        "leads": [row(1)],
    })

    assert response.json()["imported"] == 1


async def test_agent_cannot_import(client, agent_a, auth_headers):
    response = await client.post("/api/client/leads/import", headers=auth_headers(agent_a), json={
        "leads": [row(1)],
    })

    assert response.status_code == 403


async def test_csv_preview_maps_polish_headers(client, admin_a, auth_headers):
    content = (
        "Imię;Nazwisko;Firma;E-mail;Telefon;Wartość;Kolumna\n"
        "Jan;Kowalski;Acme;jan@acme.pl;123456789;1 000,50;x\n"
        "Anna;Nowak;Beta;anna@beta.pl;987654321;250;y\n"
        "Piotr;Wiśniewski;Gamma;piotr@gamma.pl;;;z\n"
    ).encode("utf-8")

    response = await client.put(
        "/api/client/leads/import",
        headers=auth_headers(admin_a),
        files={"file": ("leady.csv", content, "text/csv")},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["total"] == 3
    assert body["headers"][0] == "Imię"
    first = body["leads"][0]
    assert first["first_name"] == "Jan"
    assert first["email"] == "jan@acme.pl"
    assert first["estimated_value"] == 1000.5
    assert first["status"] == "new"
    assert first["priority"] == "medium"
    assert body["leads"][2]["estimated_value"] is None
    assert "Kolumna" not in first


async def test_csv_preview_rejects_other_files(client, admin_a, auth_headers):
    response = await client.put(
        "/api/client/leads/import",
        headers=auth_headers(admin_a),
        files={"file": ("leady.txt", b"hello", "text/plain")},
    )

    assert response.status_code == 400
    assert "file" in response.json()["errors"]


class TestParseCsv:

    def test_comma_separated_english_headers(self):
        headers, rows = parse_csv(b"first_name,last_name,company,email,status\nJan,Kowalski,Acme,jan@acme.pl,Contacted\n")

        assert headers == ["first_name", "last_name", "company", "email", "status"]
        assert rows == [{
            "first_name": "Jan",
            "last_name": "Kowalski",
            "company": "Acme",
            "email": "jan@acme.pl",
            "status": "contacted",
            "priority": "medium",
        }]

    def test_cp1250_file_is_decoded(self):
        content = "Imię;Nazwisko;Firma;Email\nŁukasz;Żółw;Źródło;lukasz@zolw.pl\n".encode("cp1250")

        _, rows = parse_csv(content)

        assert rows[0]["first_name"] == "Łukasz"
        assert rows[0]["last_name"] == "Żółw"

    def test_empty_file_is_rejected(self):
        with pytest.raises(ValidationError, match="empty"):
            parse_csv(b"   ")

    def test_unknown_columns_are_rejected(self):
        with pytest.raises(ValidationError, match="No recognizable columns"):
            parse_csv(b"foo,bar\n1,2\n")

    def test_header_aliases(self):
        assert normalize_header(" E-Mail ") == "email"
        assert normalize_header("Firma") == "company"
        assert normalize_header("Priorytet") == "priority"
        assert normalize_header("Kolor") is None


async def test_non_finite_numbers_are_row_errors(client, admin_a, auth_headers):
    body = (
        '{"leads": ['
        '{"first_name": "Jan", "last_name": "Kowalski", "company": "Acme",'
        ' "email": "jan@acme.pl", "estimated_value": NaN},'
        '{"first_name": "Anna", "last_name": "Nowak", "company": "Beta",'
        ' "email": "anna@beta.pl", "estimated_value": Infinity}'
        ']}'
    )
    headers = {**auth_headers(admin_a), "Content-Type": "application/json"}

    response = await client.post("/api/client/leads/import", headers=headers, content=body)

    assert response.status_code == 200
    result = response.json()
    assert result["imported"] == 0
    assert [error["row"] for error in result["errors"]] == [1, 2]
    assert all("estimated_value" in error["error"] for error in result["errors"])
    assert result["errors"][0]["data"]["estimated_value"] == "nan"
    assert result["errors"][1]["data"]["estimated_value"] == "inf"

    listing = await client.get("/api/client/leads", headers=auth_headers(admin_a))
    assert listing.status_code == 200
    assert listing.json()["data"] == []


async def test_update_existing_keeps_closed_probability(client, session_maker, admin_a, tenant_a, make_lead, auth_headers):
    existing = await make_lead(tenant_a, email="anna@firma.pl", status=LeadStatus.CLOSED, closing_probability=100)

    response = await client.post("/api/client/leads/import", headers=auth_headers(admin_a), json={
        "leads": [row(1, email="anna@firma.pl", status="closed", closing_probability=40)],
        "update_existing": True,
    })

    assert response.json()["updated"] == 1

    async with session_maker() as session:
        stored = await session.get(Lead, existing.id)
    assert stored.status == LeadStatus.CLOSED
    assert stored.closing_probability == 100


async def test_csv_preview_keeps_non_finite_numbers_as_text(client, admin_a, auth_headers):
    content = (
        "first_name,last_name,company,email,value,probability\n"
        "Jan,Kowalski,Acme,jan@acme.pl,inf,inf\n"
        "Anna,Nowak,Beta,anna@beta.pl,nan,1e400\n"
    ).encode("utf-8")

    response = await client.put(
        "/api/client/leads/import",
        headers=auth_headers(admin_a),
        files={"file": ("leady.csv", content, "text/csv")},
    )

    assert response.status_code == 200
    first, second = response.json()["leads"]
    assert first["estimated_value"] == "inf"
    assert first["closing_probability"] == "inf"
    assert second["estimated_value"] == "nan"
    assert second["closing_probability"] == "1e400"
