# heartbeat/infra/notifications.py
"""
Envoi des emails d'invitation (Resend) + mode mock sans clé API.

Un échec de transport n'est jamais levé : send() retourne un MailResult
avec success=False et l'erreur, l'appelant décide quoi en faire.
"""
import base64
import logging
import time
from dataclasses import dataclass
from typing import Optional, Tuple

import httpx

from heartbeat.core.config import Settings
from heartbeat.infra.retry import RetryPolicy, transient_status

logger = logging.getLogger(__name__)

SURVEY_TOKEN_SUFFIX = "-heartbeat-survey-id"
SURVEY_SUBJECT = "Heartbeat: We want your genuine feedback"


@dataclass
class MailResult:
    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None
    mocked: bool = False


def _ms() -> int:
    return int(time.time() * 1000)


# ── Liens de survey ──────────────────────────────────────────

def survey_token(email: str) -> str:
    """
    Identifiant stable d'un destinataire : même email → même lien à chaque
    renvoi. Anti-bidouillage, pas une autorisation (réversible).
    """
    raw = (email + SURVEY_TOKEN_SUFFIX).encode("utf-8")
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def survey_link(base_url: str, pulse_id: str, email: str) -> str:
    return f"{base_url.rstrip('/')}/survey/{pulse_id}/{survey_token(email)}"


def build_survey_email(link: str) -> Tuple[str, str, str]:
    """(subject, html, text) de l'invitation."""
    text = (
        "Please respond with your genuine feelings of how you have been feeling lately. "
        f"Respond here: {link}"
    )
    html = f"""
    <div style="font-family: Arial, sans-serif; max-width: 600px;">
      <h1 style="color: #ff4081;">Heartbeat</h1>
      <p>Please respond with your genuine feelings of how you have been feeling lately.</p>
      <p>Your honest feedback will help us to improve team experience and make this a better place to work for all.</p>
      <p><strong>Important:</strong> Your responses will not be shared with the rest of the team.
         All individual responses will be deleted once everyone has responded and the analysis has been generated.</p>
      <p>
        <a href="{link}"
           style="display: inline-block; background-color: #ff4081; color: white; padding: 10px 20px; text-decoration: none; border-radius: 4px;">
           Respond to Pulse
        </a>
      </p>
      <p>Or copy and paste this link: {link}</p>
      <p>Thank you for your valuable input!</p>
      <p style="color: #666; font-size: 12px;">Your response will be kept anonymous.</p>
    </div>
    """
    return SURVEY_SUBJECT, html, text


# ── Transports ───────────────────────────────────────────────

class MockMailer:
    """Sans RESEND_API_KEY : logge l'email au lieu de l'envoyer."""

    async def send(self, to: str, subject: str, html: str, text: Optional[str] = None) -> MailResult:
        logger.info("[MOCK EMAIL] to=%s subject=%r (%d caractères HTML)", to, subject, len(html))
        return MailResult(success=True, message_id=f"mock_{_ms()}", mocked=True)


class ResendMailer:

    def __init__(
        self,
        api_key: str,
        sender: str,
        api_url: str = "https://api.resend.com/emails",
        timeout: float = 10.0,
        policy: Optional[RetryPolicy] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key.strip()
        self.sender = sender
        self.api_url = api_url
        self.timeout = timeout
        self.policy = policy or RetryPolicy(max_retries=1, retryable=transient_status, max_backoff=2.0)
        self.transport = transport

    async def send(self, to: str, subject: str, html: str, text: Optional[str] = None) -> MailResult:
        payload = {"from": self.sender, "to": [to], "subject": subject, "html": html}
        if text:
            payload["text"] = text
        headers = {"Authorization": f"Bearer {self.api_key}"}

        try:
            async with httpx.AsyncClient(transport=self.transport, timeout=self.timeout) as client:
                response = await self.policy.send(
                    lambda: client.post(self.api_url, json=payload, headers=headers),
                    label="resend",
                )
        except httpx.HTTPError as e:
            logger.error("❌ Erreur Resend vers %s : %s", to, e)
            return MailResult(success=False, message_id=f"error_{_ms()}", error=str(e) or type(e).__name__)

        if response.is_error:
            logger.error("❌ Resend a refusé l'email vers %s : %s %s", to, response.status_code, response.text[:200])
            return MailResult(
                success=False,
                message_id=f"error_{_ms()}",
                error=f"Resend {response.status_code}: {response.text[:200]}",
            )

        try:
            message_id = response.json().get("id")
        except ValueError:
            message_id = None
        logger.info("Email envoyé à %s (id=%s)", to, message_id)
        return MailResult(success=True, message_id=message_id)


def build_mailer(settings: Settings):
    if not settings.resend_configured:
        logger.warning("RESEND_API_KEY absente — emails en mode mock")
        return MockMailer()
    return ResendMailer(
        api_key=settings.RESEND_API_KEY,
        sender=f"{settings.EMAIL_FROM_NAME} <{settings.EMAIL_FROM}>",
        api_url=settings.RESEND_API_URL,
        timeout=settings.EMAIL_TIMEOUT_SECONDS,
    )
