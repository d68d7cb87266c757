# modules/pulse/service.py
"""
Cycle de vie d'un pulse : création, lecture, tableau de bord, suppression, export PDF.

Le service reçoit une PulseSession (jamais une AsyncSession brute) :
le choix store hébergé / mémoire est déjà fait en amont.
"""
import re
import secrets
import time
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

from pydantic import EmailStr, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from heartbeat.core.config import settings
from heartbeat.infra.notifications import survey_token
from heartbeat.infra.pdf import render_pulse_pdf
from heartbeat.modules.pulse.repository import PulseSession, utcnow
from heartbeat.shared.enums import PulseStage
from heartbeat.shared.errors import NotFoundError, ValidationError
from heartbeat.shared.models import Pulse

EMAIL_SEPARATORS = re.compile(r"[,;\s]+")
_email_adapter = TypeAdapter(EmailStr)


# ── Helpers (réutilisés par dispatch / survey / analysis) ─────

def new_pulse_id() -> str:
    return f"pulse_{int(time.time() * 1000)}_{secrets.token_hex(4)}"


def parse_emails(raw: Union[str, Iterable[str], None]) -> List[str]:
    """Liste ou chaîne libre → emails nettoyés, dédoublonnés, ordre conservé."""
    if raw is None:
        items: Iterable[str] = []
    elif isinstance(raw, str):
        items = EMAIL_SEPARATORS.split(raw)
    else:
        items = raw

    emails, seen = [], set()
    for item in items:
        email = (item or "").strip()
        if not email or email.lower() in seen:
            continue
        seen.add(email.lower())
        emails.append(email)
    return emails


def invalid_emails(emails: Iterable[str]) -> List[str]:
    invalid = []
    for email in emails:
        try:
            _email_adapter.validate_python(email)
        except PydanticValidationError:
            invalid.append(email)
    return invalid


def partition(pulse: Pulse) -> Tuple[List[str], List[str]]:
    """(sent, pending). Pulse antérieur à la migration 002 → pending = emails - sent."""
    emails = list(pulse.emails or [])
    sent = list(pulse.sent_emails or [])
    if pulse.pending_emails is None:
        pending = [e for e in emails if e not in sent]
    else:
        pending = list(pulse.pending_emails)
    return sent, pending


def stage_of(pulse: Pulse) -> PulseStage:
    if pulse.has_analysis:
        return PulseStage.ANALYZED
    emails = pulse.emails or []
    if emails and (pulse.response_count or 0) >= len(emails):
        return PulseStage.READY_FOR_ANALYSIS
    sent, pending = partition(pulse)
    if not sent:
        return PulseStage.CREATED
    if pending:
        return PulseStage.SENDING
    return PulseStage.AWAITING_RESPONSES


class PulseService:

    # ── Création ──────────────────────────────────────────────

    async def create_pulse(
        self,
        session: PulseSession,
        emails: Union[str, List[str]],
        name: Optional[str] = None,
        custom_questions: Optional[List[str]] = None,
        owner_id: Optional[int] = None,
    ) -> Pulse:
        recipients = parse_emails(emails)
        if not recipients:
            raise ValidationError("At least one recipient email is required")
        invalid = invalid_emails(recipients)
        if invalid:
            raise ValidationError(f"Invalid email address(es): {', '.join(invalid)}")

        now = utcnow()
        return await session.create_pulse({
            "id": new_pulse_id(),
            "name": (name or "").strip() or None,
            "owner_id": owner_id or settings.DEFAULT_OWNER_ID,
            "created_at": now,
            "emails": recipients,
            "sent_emails": [],
            "pending_emails": list(recipients),
            "custom_questions": [q.strip() for q in custom_questions or [] if q and q.strip()],
            "response_count": 0,
            "has_analysis": False,
            "analysis_content": None,
            "last_checked": now,
        })

    # ── Lecture ───────────────────────────────────────────────

    async def get_pulse(self, session: PulseSession, pulse_id: str) -> Pulse:
        pulse = await session.get_pulse(pulse_id)
        if not pulse:
            raise NotFoundError(f"Pulse {pulse_id} not found")
        return pulse

    async def list_pulses(self, session: PulseSession, owner_id: Optional[int] = None) -> List[Pulse]:
        return await session.list_pulses(owner_id or settings.DEFAULT_OWNER_ID)

    async def get_recipients(self, session: PulseSession, pulse_id: str) -> List[str]:
        pulse = await self.get_pulse(session, pulse_id)
        return list(pulse.emails or [])

    async def get_status(self, session: PulseSession, pulse_id: str) -> Dict[str, Any]:
        """
        Tableau de bord : étape + statut envoyé / répondu par destinataire.

        Avant analyse : répondu ⇔ une réponse porte le token du destinataire.
        Après analyse les réponses sont purgées : tous répondus si
        response_count == nb destinataires (aucune vérification individuelle).
        """
        pulse = await self.get_pulse(session, pulse_id)
        emails = list(pulse.emails or [])
        sent, pending = partition(pulse)

        if pulse.has_analysis:
            everyone = bool(emails) and (pulse.response_count or 0) >= len(emails)
            responded = {email: everyone for email in emails}
        else:
            tokens = {r.respondent_id for r in await session.list_responses(pulse_id)}
            responded = {email: survey_token(email) in tokens for email in emails}

        sent_set = set(sent)
        return {
            "pulse_id": pulse.id,
            "stage": stage_of(pulse),
            "recipient_count": len(emails),
            "sent_count": len(sent),
            "pending_count": len(pending),
            "response_count": pulse.response_count or 0,
            "has_analysis": bool(pulse.has_analysis),
            "recipients": [
                {"email": email, "sent": email in sent_set, "responded": responded[email]}
                for email in emails
            ],
            "degraded": session.degraded,
            "warning": session.warning,
        }

    # ── Suppression ───────────────────────────────────────────

    async def delete_pulse(self, session: PulseSession, pulse_id: str) -> Dict[str, Any]:
        if not await session.delete_pulse(pulse_id):
            raise NotFoundError(f"Pulse {pulse_id} not found")
        return {
            "success": True,
            "pulse_id": pulse_id,
            "degraded": session.degraded,
            "warning": session.warning,
        }

    # ── Export PDF ────────────────────────────────────────────

    async def export_pdf(self, session: PulseSession, pulse_id: str) -> Tuple[str, bytes]:
        """Retourne (nom de fichier, contenu PDF)."""
        pulse = await self.get_pulse(session, pulse_id)
        if not pulse.has_analysis or not pulse.analysis_content:
            raise ValidationError("No analysis available for this pulse")
        return f"pulse-analysis-{pulse.id}.pdf", render_pulse_pdf(pulse)
