# modules/analysis/router.py
"""
Déclenchement de la synthèse LLM d'un pulse.

Codes d'erreur : 400 réponses incomplètes, 404 pulse inconnu,
408 timeout fournisseur, 429 rate limit fournisseur, 500 sinon.
"""
from fastapi import APIRouter

from heartbeat.shared.deps import SessionDep, SummarizerDep
from heartbeat.shared.errors import HeartbeatError, to_http
from heartbeat.modules.analysis.service import AnalysisService
from heartbeat.modules.analysis.schemas import AnalysisOut

router = APIRouter(prefix="/pulses", tags=["Analysis"])
service = AnalysisService()


@router.post(
    "/{pulse_id}/analyze",
    response_model=AnalysisOut,
    summary="Générer (ou relire) l'analyse d'un pulse",
    description=(
        "Idempotent : une analyse existante est renvoyée sans nouvel appel. "
        "Les réponses brutes sont supprimées après analyse."
    ),
)
async def analyze_pulse(pulse_id: str, session: SessionDep, summarizer: SummarizerDep):
    try:
        return await service.analyze(session, pulse_id, summarizer)
    except HeartbeatError as e:
        raise to_http(e)
