# modules/dispatch/service.py
"""
Envoi des invitations d'un pulse.

send_next : un destinataire par appel, l'appelant ré-invoque jusqu'à
pending vide. La partition pending → sent est écrite AVANT l'appel
au fournisseur : un échec reste "sent" (pas de double envoi).

send_all : ancien chemin batch, conservé pour les clients existants.

Aucune erreur de transport ne remonte : elle devient un warning.
"""
import asyncio
import logging
from typing import Any, Dict, List, Optional, Tuple, Union

from heartbeat.core.config import settings
from heartbeat.infra.notifications import MailResult, build_survey_email, survey_link
from heartbeat.modules.pulse.repository import PulseSession
from heartbeat.modules.pulse.service import parse_emails, partition
from heartbeat.shared.enums import DeliveryStatus
from heartbeat.shared.errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)

TIMEOUT_WARNING = "Email operation timed out, but it may complete in the background"


def _join(*warnings: Optional[str]) -> Optional[str]:
    parts = [w for w in warnings if w]
    return "; ".join(parts) if parts else None


class DispatchService:

    def __init__(self, base_url: Optional[str] = None, timeout: Optional[float] = None):
        self.base_url = base_url or settings.BASE_URL
        self.timeout = timeout or settings.EMAIL_TIMEOUT_SECONDS

    # ── Envoi unitaire ────────────────────────────────────────

    async def send_next(self, session: PulseSession, pulse_id: str, mailer) -> Dict[str, Any]:
        pulse = await session.get_pulse(pulse_id)
        if not pulse:
            raise NotFoundError(f"Pulse {pulse_id} not found")

        sent, pending = partition(pulse)
        if not pending:
            return {
                "pulse_id": pulse_id,
                "sent": None,
                "remaining_count": 0,
                "survey_link": None,
                "status": None,
                "message_id": None,
                "success": True,
                "warning": session.warning,
                "degraded": session.degraded,
            }

        email, remaining = pending[0], pending[1:]
        await session.update_pulse(pulse_id, {
            "sent_emails": sent + [email],
            "pending_emails": remaining,
        })

        link = survey_link(self.base_url, pulse_id, email)
        status, result, warning = await self._deliver(mailer, email, link)
        logger.info("Pulse %s : invitation %s → %s (%d restantes)", pulse_id, email, status.value, len(remaining))

        return {
            "pulse_id": pulse_id,
            "sent": email,
            "remaining_count": len(remaining),
            "survey_link": link,
            "status": status,
            "message_id": result.message_id,
            "success": status != DeliveryStatus.FAILED,
            "warning": _join(warning, session.warning),
            "degraded": session.degraded,
        }

    # ── Batch (ancien chemin) ─────────────────────────────────

    async def send_all(
        self,
        session: PulseSession,
        pulse_id: str,
        emails: Union[str, List[str], None],
        mailer,
    ) -> Dict[str, Any]:
        targets = parse_emails(emails)
        if not targets:
            raise ValidationError("Valid email addresses are required")

        pulse = await session.get_pulse(pulse_id)
        if not pulse:
            raise NotFoundError(f"Pulse {pulse_id} not found")

        # Seuls les destinataires du pulse entrent dans la partition
        sent, pending = partition(pulse)
        members = [e for e in targets if e in (pulse.emails or [])]
        await session.update_pulse(pulse_id, {
            "sent_emails": sent + [e for e in members if e not in sent],
            "pending_emails": [e for e in pending if e not in members],
        })

        results, warnings = [], []
        for email in targets:
            link = survey_link(self.base_url, pulse_id, email)
            status, result, warning = await self._deliver(mailer, email, link)
            if warning:
                warnings.append(warning)
            results.append({
                "email": email,
                "survey_link": link,
                "status": status,
                "message_id": result.message_id,
                "error": result.error,
            })

        delivered = sum(1 for r in results if r["status"] != DeliveryStatus.FAILED)
        logger.info("Pulse %s : batch de %d invitations, %d abouties", pulse_id, len(results), delivered)
        return {
            "pulse_id": pulse_id,
            "success": True,
            "sent_count": delivered,
            "results": results,
            "warning": _join(*warnings, session.warning),
            "degraded": session.degraded,
        }

    # ── Transport ─────────────────────────────────────────────

    async def _deliver(
        self, mailer, email: str, link: str
    ) -> Tuple[DeliveryStatus, MailResult, Optional[str]]:
        subject, html, text = build_survey_email(link)
        try:
            result = await asyncio.wait_for(mailer.send(email, subject, html, text), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning("Envoi vers %s interrompu après %.0fs", email, self.timeout)
            return DeliveryStatus.TIMED_OUT, MailResult(success=False, error="timeout"), TIMEOUT_WARNING

        if not result.success:
            return (
                DeliveryStatus.FAILED,
                result,
                f"Email to {email} could not be delivered: {result.error or 'unknown error'}",
            )
        if result.mocked:
            return DeliveryStatus.MOCKED, result, None
        return DeliveryStatus.SENT, result, None
