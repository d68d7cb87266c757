# modules/analysis/service.py
"""
Synthèse LLM d'un pulse complet.

Pipeline :
1. Analyse existante → renvoyée telle quelle (aucun appel fournisseur)
2. Précondition : au moins une réponse et response_count == nb destinataires
3. Appel summarizer (timeout / 429 / erreurs remontent au router)
4. Upsert analyse + mise à jour du pulse
5. Purge des réponses brutes (anonymat), échec seulement loggé
"""
import logging
from typing import Any, Dict, Optional

from heartbeat.core.config import settings
from heartbeat.modules.analysis.prompts import DEFAULT_QUESTION, build_prompt
from heartbeat.modules.pulse.repository import PulseSession
from heartbeat.shared.errors import NotFoundError, ValidationError
from heartbeat.shared.models import Pulse

logger = logging.getLogger(__name__)


class AnalysisService:

    def __init__(self, purge_responses: Optional[bool] = None):
        if purge_responses is None:
            purge_responses = settings.PURGE_RESPONSES_AFTER_ANALYSIS
        self.purge_responses = purge_responses

    async def analyze(self, session: PulseSession, pulse_id: str, summarizer) -> Dict[str, Any]:
        pulse = await session.get_pulse(pulse_id)
        if not pulse:
            raise NotFoundError(f"Pulse {pulse_id} not found")

        existing = await self._existing_analysis(session, pulse)
        if existing is not None:
            logger.info("Analyse existante réutilisée pour %s", pulse_id)
            if not pulse.has_analysis or pulse.analysis_content != existing:
                # Ligne d'analyse présente mais pulse jamais mis à jour
                await session.update_pulse(pulse_id, {"has_analysis": True, "analysis_content": existing})
            await self._purge(session, pulse_id)
            return self._result(session, pulse_id, existing, pulse.response_count or 0, is_existing=True)

        responses = await session.list_responses(pulse_id)
        expected = len(pulse.emails or [])
        if not responses:
            raise ValidationError("No responses to analyze")
        if len(responses) != expected:
            raise ValidationError(
                f"Not all responses are in yet ({len(responses)}/{expected}). "
                "Analysis is available once every recipient has responded."
            )

        prompt = build_prompt([r.response for r in responses], question=self._question(pulse))
        logger.info("Analyse de %d réponses pour %s", len(responses), pulse_id)
        content = await summarizer.summarize(prompt)

        await session.upsert_analysis(pulse_id, content)
        await session.update_pulse(pulse_id, {
            "has_analysis": True,
            "analysis_content": content,
            "response_count": len(responses),
        })
        await self._purge(session, pulse_id)

        return self._result(session, pulse_id, content, len(responses), is_existing=False)

    # ── Helpers ───────────────────────────────────────────────

    async def _existing_analysis(self, session: PulseSession, pulse: Pulse) -> Optional[str]:
        analysis = await session.get_analysis(pulse.id)
        if analysis and analysis.content:
            return analysis.content
        if pulse.has_analysis and pulse.analysis_content:
            return pulse.analysis_content
        return None

    async def _purge(self, session: PulseSession, pulse_id: str) -> None:
        if not self.purge_responses:
            return
        deleted = await session.delete_responses(pulse_id)
        if deleted:
            logger.info("%d réponses brutes supprimées pour %s", deleted, pulse_id)

    def _question(self, pulse: Pulse) -> str:
        questions = [q for q in pulse.custom_questions or [] if q]
        return " / ".join(questions) if questions else DEFAULT_QUESTION

    def _result(
        self, session: PulseSession, pulse_id: str, content: str, response_count: int, is_existing: bool
    ) -> Dict[str, Any]:
        return {
            "pulse_id": pulse_id,
            "analysis": content,
            "response_count": response_count,
            "is_existing": is_existing,
            "degraded": session.degraded,
            "warning": session.warning,
        }
