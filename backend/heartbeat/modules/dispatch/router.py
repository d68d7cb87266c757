# modules/dispatch/router.py
"""
Endpoints d'envoi des invitations.

Un échec d'envoi ne produit jamais d'erreur HTTP : voir le champ warning.
"""
from fastapi import APIRouter

from heartbeat.shared.deps import MailerDep, SessionDep
from heartbeat.shared.errors import HeartbeatError, to_http
from heartbeat.modules.dispatch.service import DispatchService
from heartbeat.modules.dispatch.schemas import (
    DispatchBatchIn,
    DispatchResultOut,
    DispatchReportOut,
)

router = APIRouter(prefix="/pulses", tags=["Emails"])
service = DispatchService()


@router.post(
    "/{pulse_id}/emails",
    response_model=DispatchResultOut,
    summary="Envoyer la prochaine invitation en attente",
    description=(
        "Un destinataire par appel. Ré-invoquer tant que remaining_count > 0. "
        "Le destinataire passe en sent avant l'appel au fournisseur."
    ),
)
async def send_next(pulse_id: str, session: SessionDep, mailer: MailerDep):
    try:
        return await service.send_next(session, pulse_id, mailer)
    except HeartbeatError as e:
        raise to_http(e)


@router.post(
    "/{pulse_id}/emails/batch",
    response_model=DispatchReportOut,
    summary="Envoyer une liste d'invitations (ancien chemin batch)",
)
async def send_all(pulse_id: str, payload: DispatchBatchIn, session: SessionDep, mailer: MailerDep):
    try:
        return await service.send_all(session, pulse_id, payload.emails, mailer)
    except HeartbeatError as e:
        raise to_http(e)
