# modules/pulse/router.py
"""
Endpoints de gestion des pulses (création, tableau de bord, suppression, export).

Règle : zéro logique métier ici. Tout passe par PulseService.
"""
from fastapi import APIRouter, Response, status
from typing import List, Optional

from heartbeat.shared.deps import SessionDep
from heartbeat.shared.errors import HeartbeatError, to_http
from heartbeat.modules.pulse.service import PulseService
from heartbeat.modules.pulse.schemas import (
    PulseCreateIn,
    PulseOut,
    PulseStatusOut,
    PulseDeleteOut,
)

router = APIRouter(prefix="/pulses", tags=["Pulses"])
service = PulseService()


def _pulse_out(pulse, session) -> PulseOut:
    out = PulseOut.model_validate(pulse)
    out.degraded = session.degraded
    out.warning = session.warning
    return out


# ─────────────────────────────────────────────
# CRUD PULSES
# ─────────────────────────────────────────────

@router.post(
    "",
    response_model=PulseOut,
    status_code=status.HTTP_201_CREATED,
    summary="Créer un pulse",
    description=(
        "emails : liste ou chaîne séparée par virgules / retours ligne / espaces. "
        "Tous les destinataires démarrent en pending."
    ),
)
async def create_pulse(payload: PulseCreateIn, session: SessionDep):
    try:
        pulse = await service.create_pulse(
            session,
            emails=payload.emails,
            name=payload.name,
            custom_questions=payload.custom_questions,
            owner_id=payload.owner_id,
        )
    except HeartbeatError as e:
        raise to_http(e)
    return _pulse_out(pulse, session)


@router.get(
    "",
    response_model=List[PulseOut],
    summary="Pulses d'un opérateur (plus récent d'abord)",
)
async def list_pulses(session: SessionDep, owner_id: Optional[int] = None):
    pulses = await service.list_pulses(session, owner_id=owner_id)
    return [_pulse_out(p, session) for p in pulses]


@router.get(
    "/{pulse_id}",
    response_model=PulseOut,
    summary="Détail d'un pulse",
)
async def get_pulse(pulse_id: str, session: SessionDep):
    try:
        pulse = await service.get_pulse(session, pulse_id)
    except HeartbeatError as e:
        raise to_http(e)
    return _pulse_out(pulse, session)


@router.delete(
    "/{pulse_id}",
    response_model=PulseDeleteOut,
    summary="Supprimer un pulse (analyses → réponses → pulse)",
)
async def delete_pulse(pulse_id: str, session: SessionDep):
    try:
        return await service.delete_pulse(session, pulse_id)
    except HeartbeatError as e:
        raise to_http(e)


# ─────────────────────────────────────────────
# TABLEAU DE BORD
# ─────────────────────────────────────────────

@router.get(
    "/{pulse_id}/status",
    response_model=PulseStatusOut,
    summary="Étape du pulse + statut par destinataire",
)
async def get_status(pulse_id: str, session: SessionDep):
    try:
        return await service.get_status(session, pulse_id)
    except HeartbeatError as e:
        raise to_http(e)


@router.get(
    "/{pulse_id}/recipients",
    response_model=List[str],
    summary="Emails destinataires",
)
async def get_recipients(pulse_id: str, session: SessionDep):
    try:
        return await service.get_recipients(session, pulse_id)
    except HeartbeatError as e:
        raise to_http(e)


# ─────────────────────────────────────────────
# EXPORT
# ─────────────────────────────────────────────

@router.get(
    "/{pulse_id}/export",
    response_class=Response,
    responses={200: {"content": {"application/pdf": {}}}},
    summary="Exporter l'analyse en PDF",
)
async def export_pdf(pulse_id: str, session: SessionDep):
    try:
        filename, content = await service.export_pdf(session, pulse_id)
    except HeartbeatError as e:
        raise to_http(e)
    return Response(
        content=content,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
