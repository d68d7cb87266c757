# modules/survey/service.py
"""
Collecte des réponses anonymes.

L'appartenance du répondant au pulse n'est pas vérifiée : le token du lien
n'est qu'un identifiant stable. response_count est toujours recompté,
jamais incrémenté.
"""
import logging
from typing import Any, Dict, List, Optional

from heartbeat.core.config import settings
from heartbeat.modules.pulse.repository import PulseSession, utcnow
from heartbeat.shared.errors import ValidationError
from heartbeat.shared.models import Pulse

logger = logging.getLogger(__name__)

ANONYMOUS = "anonymous"


def compose_response(
    questions: Optional[List[str]],
    response: Optional[str] = None,
    answers: Optional[List[str]] = None,
) -> str:
    """
    Texte stocké pour une soumission.
    Avec questions personnalisées : blocs "Question\\nRéponse" séparés par
    une ligne vide, dans l'ordre des questions.
    """
    if answers:
        questions = questions or []
        blocks = []
        for i, answer in enumerate(answers):
            answer = (answer or "").strip()
            if not answer:
                continue
            if i < len(questions):
                blocks.append(f"{questions[i]}\n{answer}")
            else:
                blocks.append(answer)
        text = "\n\n".join(blocks)
    else:
        text = (response or "").strip()

    if not text:
        raise ValidationError("Valid response is required")
    return text


class SurveyService:

    async def submit(
        self,
        session: PulseSession,
        pulse_id: Optional[str],
        respondent_id: Optional[str] = None,
        response: Optional[str] = None,
        answers: Optional[List[str]] = None,
    ) -> Dict[str, Any]:
        """
        Pipeline :
        1. Validation (pulse_id + texte non vide)
        2. Pulse inconnu → pulse placeholder sans destinataires
        3. Refus si déjà analysé ou complet
        4. Insert réponse, recomptage, mise à jour du pulse
        """
        pulse_id = (pulse_id or "").strip()
        if not pulse_id:
            raise ValidationError("Pulse ID is required")
        if not answers and not (response or "").strip():
            raise ValidationError("Valid response is required")

        # Texte composé avant toute écriture : un refus ne crée pas de placeholder
        pulse = await session.get_pulse(pulse_id)
        text = compose_response(pulse.custom_questions if pulse else [], response, answers)
        if pulse is None:
            pulse = await self._placeholder(session, pulse_id)

        if pulse.has_analysis:
            raise ValidationError("PULSE_ALREADY_ANALYZED")
        emails = pulse.emails or []
        if emails and await session.count_responses(pulse_id) >= len(emails):
            raise ValidationError("PULSE_COMPLETE")

        await session.add_response(pulse_id, (respondent_id or "").strip() or ANONYMOUS, text)
        count = await session.count_responses(pulse_id)
        await session.update_pulse(pulse_id, {"response_count": count})

        logger.info("Réponse enregistrée pour %s (%d/%d)", pulse_id, count, len(emails))
        return {
            "success": True,
            "pulse_id": pulse_id,
            "response_count": count,
            "degraded": session.degraded,
            "warning": session.warning,
        }

    async def list_responses(self, session: PulseSession, pulse_id: Optional[str]) -> Dict[str, Any]:
        """Le respondent_id n'est jamais exposé."""
        pulse_id = (pulse_id or "").strip()
        if not pulse_id:
            raise ValidationError("Pulse ID is required")

        rows = await session.list_responses(pulse_id)
        return {
            "pulse_id": pulse_id,
            "response_count": len(rows),
            "responses": [{"response": r.response, "timestamp": r.timestamp} for r in rows],
            "degraded": session.degraded,
            "warning": session.warning,
        }

    async def _placeholder(self, session: PulseSession, pulse_id: str) -> Pulse:
        logger.warning("Pulse %s inconnu — création d'un pulse placeholder", pulse_id)
        now = utcnow()
        return await session.create_pulse({
            "id": pulse_id,
            "owner_id": settings.DEFAULT_OWNER_ID,
            "created_at": now,
            "emails": [],
            "sent_emails": [],
            "pending_emails": [],
            "custom_questions": [],
            "response_count": 0,
            "has_analysis": False,
            "last_checked": now,
        })
