# tests/modules/survey/test_service.py
"""
Tests unitaires pour modules.survey.service — SurveyService.

Couverture :
    submit → response_count recompté (doublons de répondant inclus)
    submit → pulse inconnu → placeholder sans destinataires
    submit → répondant absent → "anonymous"
    submit → questions personnalisées : blocs Q/R dans l'ordre
    submit → refus PULSE_COMPLETE / PULSE_ALREADY_ANALYZED
    submit → ValidationError (pulse_id / texte manquant)
    list_responses → sans respondent_id
"""
import pytest

from heartbeat.modules.survey.service import SurveyService, compose_response
from heartbeat.shared.errors import ValidationError
from tests.conftest import pulse_data

pytestmark = pytest.mark.service

service = SurveyService()


# ── compose_response ──────────────────────────────────────────────────────────

def test_compose_response_texte_libre():
    assert compose_response([], response="  Bien.  ") == "Bien."


def test_compose_response_questions_dans_lordre():
    text = compose_response(["Q1", "Q2"], answers=["A1", "A2"])
    assert text == "Q1\nA1\n\nQ2\nA2"


def test_compose_response_reponses_vides_400():
    with pytest.raises(ValidationError):
        compose_response(["Q1"], answers=["  "])


# ── submit ────────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_submit_recompte_les_reponses(session):
    await session.create_pulse(pulse_data(id="p1", emails=["a@acme.io", "b@acme.io", "c@acme.io"]))

    first = await service.submit(session, "p1", "tok-a", response="Bien.")
    second = await service.submit(session, "p1", "tok-a", response="Toujours bien.")

    assert first["response_count"] == 1
    assert second["response_count"] == 2
    assert await session.count_responses("p1") == 2
    assert (await session.get_pulse("p1")).response_count == 2


@pytest.mark.asyncio
async def test_submit_pulse_inconnu_cree_un_placeholder(session):
    result = await service.submit(session, "pulse_orphelin", None, response="Bonjour.")

    assert result["response_count"] == 1
    pulse = await session.get_pulse("pulse_orphelin")
    assert pulse is not None
    assert pulse.emails == []


@pytest.mark.asyncio
async def test_submit_repondant_anonyme_par_defaut(session):
    await session.create_pulse(pulse_data(id="p1"))
    await service.submit(session, "p1", "  ", response="Bien.")

    rows = await session.list_responses("p1")
    assert rows[0].respondent_id == "anonymous"


@pytest.mark.asyncio
async def test_submit_questions_personnalisees_aller_retour(session):
    await session.create_pulse(pulse_data(id="p1", custom_questions=["Q1", "Q2"]))

    await service.submit(session, "p1", "tok", answers=["A1", "A2"])

    stored = (await session.list_responses("p1"))[0].response
    assert "Q1\nA1" in stored
    assert "Q2\nA2" in stored
    assert stored.index("Q1") < stored.index("Q2")


@pytest.mark.asyncio
async def test_submit_pulse_complet_refuse(session):
    await session.create_pulse(pulse_data(id="p1", emails=["a@acme.io"]))
    await service.submit(session, "p1", "tok", response="Bien.")

    with pytest.raises(ValidationError) as exc:
        await service.submit(session, "p1", "tok", response="Encore.")
    assert exc.value.message == "PULSE_COMPLETE"
    assert await session.count_responses("p1") == 1


@pytest.mark.asyncio
async def test_submit_pulse_analyse_refuse(session):
    await session.create_pulse(pulse_data(id="p1", has_analysis=True, analysis_content="<p>ok</p>"))

    with pytest.raises(ValidationError) as exc:
        await service.submit(session, "p1", "tok", response="Trop tard.")
    assert exc.value.message == "PULSE_ALREADY_ANALYZED"


@pytest.mark.asyncio
async def test_submit_sans_pulse_id_400(session):
    with pytest.raises(ValidationError):
        await service.submit(session, "", "tok", response="Bien.")


@pytest.mark.asyncio
async def test_submit_sans_texte_400(session):
    with pytest.raises(ValidationError):
        await service.submit(session, "p1", "tok", response="   ")
    assert await session.get_pulse("p1") is None


@pytest.mark.asyncio
async def test_submit_reponses_vides_aucun_placeholder(session):
    with pytest.raises(ValidationError):
        await service.submit(session, "ghost", "tok", answers=["  ", ""])
    assert await session.get_pulse("ghost") is None


# ── list_responses ────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_list_responses_sans_identifiant_repondant(session):
    await session.create_pulse(pulse_data(id="p1"))
    await service.submit(session, "p1", "tok-secret", response="Bien.")

    result = await service.list_responses(session, "p1")

    assert result["response_count"] == 1
    assert result["responses"][0]["response"] == "Bien."
    assert "respondent_id" not in result["responses"][0]
    assert "tok-secret" not in str(result)
