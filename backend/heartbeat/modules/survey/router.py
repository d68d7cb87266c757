# modules/survey/router.py
"""
Endpoints de collecte des réponses (public, sans auth).

Deux acteurs :
- Destinataire : soumet sa réponse via le lien reçu par email
- Opérateur : consulte les réponses brutes avant analyse
"""
from fastapi import APIRouter
from typing import Optional

from heartbeat.shared.deps import SessionDep
from heartbeat.shared.errors import HeartbeatError, to_http
from heartbeat.modules.survey.service import SurveyService
from heartbeat.modules.survey.schemas import (
    SurveyResponseIn,
    SurveyResponseOut,
    ResponseListOut,
)

router = APIRouter(prefix="/responses", tags=["Responses"])
service = SurveyService()


@router.post(
    "",
    response_model=SurveyResponseOut,
    summary="Soumettre une réponse",
    description=(
        "Refusée (400) si le pulse est déjà analysé ou si toutes les réponses "
        "attendues sont arrivées. Pulse inconnu → placeholder créé."
    ),
)
async def submit_response(payload: SurveyResponseIn, session: SessionDep):
    try:
        return await service.submit(
            session,
            pulse_id=payload.pulse_id,
            respondent_id=payload.respondent_id,
            response=payload.response,
            answers=payload.answers,
        )
    except HeartbeatError as e:
        raise to_http(e)


@router.get(
    "",
    response_model=ResponseListOut,
    summary="Réponses d'un pulse (sans identifiant répondant)",
)
async def list_responses(session: SessionDep, pulse_id: Optional[str] = None):
    try:
        return await service.list_responses(session, pulse_id)
    except HeartbeatError as e:
        raise to_http(e)
