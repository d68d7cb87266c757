# tests/modules/pulse/test_router.py
"""
Tests HTTP pour modules.pulse.router

Couverture :
    POST   /pulses                    → 201 + PulseOut (mode dégradé visible)
    POST   /pulses                    email invalide → 400
    GET    /pulses?owner_id=          → 200 liste
    GET    /pulses/{id}               → 200 / 404
    GET    /pulses/{id}/status        → 200 + étape
    GET    /pulses/{id}/recipients    → 200 liste d'emails
    DELETE /pulses/{id}               → 200 puis GET → 404
    DELETE /pulses/{id}               store en échec → 500
    GET    /pulses/{id}/export        → 400 sans analyse, 200 application/pdf
"""
import pytest
from unittest.mock import AsyncMock

from heartbeat.shared.errors import UpstreamError

pytestmark = pytest.mark.router


async def _create(client, **kwargs):
    payload = {"emails": ["alice@acme.io", "bob@acme.io"], "name": "Sprint 12"}
    payload.update(kwargs)
    resp = await client.post("/pulses", json=payload)
    assert resp.status_code == 201
    return resp.json()


# ── POST /pulses ──────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_create_pulse_201(client):
    body = await _create(client)
    assert body["emails"] == ["alice@acme.io", "bob@acme.io"]
    assert body["pending_emails"] == body["emails"]
    assert body["sent_emails"] == []
    assert body["degraded"] is True
    assert body["warning"]


@pytest.mark.asyncio
async def test_create_pulse_emails_en_chaine(client):
    body = await _create(client, emails="alice@acme.io\nbob@acme.io, carol@acme.io")
    assert len(body["emails"]) == 3


@pytest.mark.asyncio
async def test_create_pulse_email_invalide_400(client):
    resp = await client.post("/pulses", json={"emails": ["nope"]})
    assert resp.status_code == 400
    assert "nope" in resp.json()["detail"]


# ── GET /pulses ───────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_list_pulses_200(client):
    await _create(client, owner_id=42)
    await _create(client, owner_id=42)
    await _create(client, owner_id=43)

    resp = await client.get("/pulses", params={"owner_id": 42})

    assert resp.status_code == 200
    assert len(resp.json()) == 2


# ── GET /pulses/{id} ──────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_get_pulse_200(client):
    created = await _create(client)
    resp = await client.get(f"/pulses/{created['id']}")
    assert resp.status_code == 200
    assert resp.json()["name"] == "Sprint 12"


@pytest.mark.asyncio
async def test_get_pulse_introuvable_404(client):
    resp = await client.get("/pulses/pulse_inconnu")
    assert resp.status_code == 404


# ── Tableau de bord ───────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_status_200(client):
    created = await _create(client)
    resp = await client.get(f"/pulses/{created['id']}/status")
    assert resp.status_code == 200
    body = resp.json()
    assert body["stage"] == "created"
    assert body["recipient_count"] == 2
    assert [r["email"] for r in body["recipients"]] == ["alice@acme.io", "bob@acme.io"]


@pytest.mark.asyncio
async def test_recipients_200(client):
    created = await _create(client)
    resp = await client.get(f"/pulses/{created['id']}/recipients")
    assert resp.status_code == 200
    assert resp.json() == ["alice@acme.io", "bob@acme.io"]


@pytest.mark.asyncio
async def test_recipients_introuvable_404(client):
    resp = await client.get("/pulses/pulse_inconnu/recipients")
    assert resp.status_code == 404


# ── DELETE /pulses/{id} ───────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_delete_pulse_200_puis_404(client):
    created = await _create(client)

    resp = await client.delete(f"/pulses/{created['id']}")
    assert resp.status_code == 200
    assert resp.json()["success"] is True

    resp = await client.get(f"/pulses/{created['id']}")
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_delete_pulse_introuvable_404(client):
    resp = await client.delete("/pulses/pulse_inconnu")
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_delete_pulse_echec_store_500(client, mocker):
    mocker.patch(
        "heartbeat.modules.pulse.router.service.delete_pulse",
        AsyncMock(side_effect=UpstreamError("Suppression du pulse p1 impossible.")),
    )
    resp = await client.delete("/pulses/p1")
    assert resp.status_code == 500


# ── GET /pulses/{id}/export ───────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_export_sans_analyse_400(client):
    created = await _create(client)
    resp = await client.get(f"/pulses/{created['id']}/export")
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_export_pdf_200(client, store):
    created = await _create(client)
    async with store.session() as s:
        await s.update_pulse(created["id"], {
            "has_analysis": True,
            "analysis_content": "<h2>Summary</h2><p>Good.</p>",
            "response_count": 2,
        })

    resp = await client.get(f"/pulses/{created['id']}/export")

    assert resp.status_code == 200
    assert resp.headers["content-type"] == "application/pdf"
    assert f"pulse-analysis-{created['id']}.pdf" in resp.headers["content-disposition"]
    assert resp.content.startswith(b"%PDF")


@pytest.mark.asyncio
async def test_export_introuvable_404(client):
    resp = await client.get("/pulses/pulse_inconnu/export")
    assert resp.status_code == 404
