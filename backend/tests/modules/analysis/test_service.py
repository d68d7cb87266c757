# tests/modules/analysis/test_service.py
"""
Tests unitaires pour modules.analysis.service — AnalysisService.

Couverture :
    analyze → précondition response_count == nb destinataires (400, aucun appel)
    analyze → succès : analyse stockée, pulse mis à jour, réponses purgées
    analyze → idempotent : second appel sans appel fournisseur
    analyze → erreurs fournisseur propagées, rien de stocké
    analyze → purge désactivable
    build_prompt → réponses numérotées + règles d'anonymat / format
"""
import pytest

from heartbeat.modules.analysis.prompts import build_prompt
from heartbeat.modules.analysis.service import AnalysisService
from heartbeat.shared.errors import NotFoundError, UpstreamRateLimited, ValidationError
from tests.conftest import FakeSummarizer, pulse_data

pytestmark = pytest.mark.service

service = AnalysisService(purge_responses=True)

EMAILS = ["alice@acme.io", "bob@acme.io"]


async def _pulse_with_responses(session, n_responses: int, **kwargs):
    await session.create_pulse(pulse_data(id="p1", emails=EMAILS, **kwargs))
    for i in range(n_responses):
        await session.add_response("p1", f"tok-{i}", f"Réponse {i + 1}")
    await session.update_pulse("p1", {"response_count": n_responses})


# ── Précondition ──────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_analyze_refuse_si_reponses_incompletes(session, summarizer):
    await _pulse_with_responses(session, 1)

    with pytest.raises(ValidationError) as exc:
        await service.analyze(session, "p1", summarizer)

    assert "1/2" in exc.value.message
    assert summarizer.prompts == []


@pytest.mark.asyncio
async def test_analyze_refuse_sans_reponse(session, summarizer):
    await session.create_pulse(pulse_data(id="p1", emails=[]))
    with pytest.raises(ValidationError):
        await service.analyze(session, "p1", summarizer)


@pytest.mark.asyncio
async def test_analyze_pulse_introuvable(session, summarizer):
    with pytest.raises(NotFoundError):
        await service.analyze(session, "inconnu", summarizer)


# ── Succès ────────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_analyze_stocke_et_purge(session, summarizer):
    await _pulse_with_responses(session, 2)

    result = await service.analyze(session, "p1", summarizer)

    assert result["analysis"] == summarizer.content
    assert result["is_existing"] is False
    assert result["response_count"] == 2

    pulse = await session.get_pulse("p1")
    assert pulse.has_analysis is True
    assert pulse.analysis_content == summarizer.content
    assert pulse.response_count == 2
    assert pulse.emails == EMAILS
    assert await session.count_responses("p1") == 0
    assert (await session.get_analysis("p1")).content == summarizer.content


@pytest.mark.asyncio
async def test_analyze_prompt_contient_les_reponses(session, summarizer):
    await _pulse_with_responses(session, 2)
    await service.analyze(session, "p1", summarizer)

    prompt = summarizer.prompts[0]
    assert '1. "Réponse 1"' in prompt
    assert '2. "Réponse 2"' in prompt


@pytest.mark.asyncio
async def test_analyze_idempotent(session, summarizer):
    await _pulse_with_responses(session, 2)

    first = await service.analyze(session, "p1", summarizer)
    second = await service.analyze(session, "p1", summarizer)

    assert len(summarizer.prompts) == 1
    assert second["is_existing"] is True
    assert second["analysis"] == first["analysis"]


@pytest.mark.asyncio
async def test_analyze_existante_purge_les_restes(session, summarizer):
    await session.create_pulse(pulse_data(
        id="p1", emails=EMAILS, has_analysis=True, analysis_content="<p>stocké</p>", response_count=2,
    ))
    await session.add_response("p1", "tok", "reste")

    result = await service.analyze(session, "p1", summarizer)

    assert result["analysis"] == "<p>stocké</p>"
    assert summarizer.prompts == []
    assert await session.count_responses("p1") == 0


@pytest.mark.asyncio
async def test_analyze_existante_repare_le_pulse(session, summarizer):
    await session.create_pulse(pulse_data(id="p1", emails=EMAILS, response_count=2))
    await session.upsert_analysis("p1", "<p>orpheline</p>")

    result = await service.analyze(session, "p1", summarizer)

    assert result["is_existing"] is True
    assert summarizer.prompts == []
    pulse = await session.get_pulse("p1")
    assert pulse.has_analysis is True
    assert pulse.analysis_content == "<p>orpheline</p>"


@pytest.mark.asyncio
async def test_analyze_erreur_fournisseur_propagee(session):
    await _pulse_with_responses(session, 2)
    failing = FakeSummarizer(error=UpstreamRateLimited("rate limited", retry_after=3))

    with pytest.raises(UpstreamRateLimited):
        await service.analyze(session, "p1", failing)

    pulse = await session.get_pulse("p1")
    assert pulse.has_analysis is False
    assert await session.count_responses("p1") == 2


@pytest.mark.asyncio
async def test_analyze_sans_purge(session, summarizer):
    await _pulse_with_responses(session, 2)

    await AnalysisService(purge_responses=False).analyze(session, "p1", summarizer)

    assert await session.count_responses("p1") == 2


# ── build_prompt ──────────────────────────────────────────────────────────────

def test_build_prompt_regles():
    prompt = build_prompt(["Bien", "Fatigué"])
    assert "How have you been feeling lately?" in prompt
    assert '1. "Bien"\n2. "Fatigué"' in prompt
    assert "NEVER include direct quotes" in prompt
    assert '<div class="warning">' in prompt


def test_build_prompt_question_personnalisee():
    prompt = build_prompt(["Oui"], question="Q1 / Q2")
    assert 'asking "Q1 / Q2"' in prompt
