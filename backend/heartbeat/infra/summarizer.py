# heartbeat/infra/summarizer.py
"""
Client de synthèse LLM (Anthropic Messages API) + mode mock sans clé.

Contrat : summarize(prompt) → HTML, ou lève
    UpstreamTimeout      budget temps dépassé (abort)
    UpstreamRateLimited  429 persistant après retries
    UpstreamError        tout autre échec (statut HTTP si connu, sinon 500)
"""
import asyncio
import logging
from typing import Any, Optional

import httpx

from heartbeat.core.config import Settings
from heartbeat.infra.retry import RetryPolicy, exponential_backoff, status_in
from heartbeat.shared.errors import UpstreamError, UpstreamRateLimited, UpstreamTimeout

logger = logging.getLogger(__name__)

NO_ANALYSIS = "No analysis available"
TIMEOUT_HINT = "Analysis request timed out. Please try with fewer responses."


def extract_text(data: Any) -> str:
    """
    Deux formes selon la version de l'API :
    - content = [{"type": "text", "text": ...}, ...] → blocs texte concaténés
    - content = "..." → tel quel
    Ancien format : message.content.
    """
    if not isinstance(data, dict):
        return NO_ANALYSIS

    content = data.get("content")
    if isinstance(content, list):
        blocks = [
            block.get("text", "")
            for block in content
            if isinstance(block, dict) and block.get("type") == "text"
        ]
        return "\n".join(blocks) if blocks else NO_ANALYSIS
    if isinstance(content, str) and content:
        return content

    message = data.get("message")
    if isinstance(message, dict) and isinstance(message.get("content"), str):
        return message["content"]
    return NO_ANALYSIS


class MockSummarizer:
    """Sans ANTHROPIC_API_KEY : synthèse factice, le prompt est seulement loggé."""

    async def summarize(self, prompt: str) -> str:
        logger.info("[MOCK ANALYSIS] prompt de %d caractères — synthèse factice", len(prompt))
        return (
            "<h2>Summary</h2>"
            "<p>Mock analysis: no summarization API key is configured.</p>"
            "<div class=\"warning\"><p>Set ANTHROPIC_API_KEY to generate a real analysis.</p></div>"
        )


class AnthropicSummarizer:

    def __init__(
        self,
        api_key: str,
        model: str = "claude-3-haiku-20240307",
        api_url: str = "https://api.anthropic.com/v1/messages",
        api_version: str = "2023-06-01",
        max_tokens: int = 2500,
        timeout: float = 25.0,
        policy: Optional[RetryPolicy] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key.strip()
        self.model = model
        self.api_url = api_url
        self.api_version = api_version
        self.max_tokens = max_tokens
        self.timeout = timeout
        self.policy = policy or RetryPolicy(
            max_retries=1, backoff=exponential_backoff(1.0), retryable=status_in(429), max_backoff=10.0
        )
        self.transport = transport

    async def summarize(self, prompt: str) -> str:
        try:
            response = await asyncio.wait_for(self._post(prompt), timeout=self.timeout)
        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            logger.error("Appel Anthropic interrompu après %.0fs : %s", self.timeout, e)
            raise UpstreamTimeout(TIMEOUT_HINT) from e
        except httpx.HTTPError as e:
            logger.error("Appel Anthropic en échec : %s", e)
            raise UpstreamError("Failed to analyze responses") from e

        if response.status_code == 429:
            logger.error("Anthropic rate limit persistant après retries")
            raise UpstreamRateLimited(
                "Summarization API rate limit exceeded. Please try again later.",
                retry_after=_float_or_none(response.headers.get("retry-after")),
            )
        if response.is_error:
            logger.error("Anthropic %s : %s", response.status_code, response.text[:300])
            raise UpstreamError("Failed to analyze responses", status_code=response.status_code)

        try:
            data = response.json()
        except ValueError as e:
            raise UpstreamError("Invalid response from summarization API") from e

        analysis = extract_text(data)
        logger.info("Analyse extraite : %s…", analysis[:100])
        return analysis

    async def _post(self, prompt: str) -> httpx.Response:
        body = {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "messages": [{"role": "user", "content": prompt}],
        }
        headers = {
            "x-api-key": self.api_key,
            "anthropic-version": self.api_version,
            "content-type": "application/json",
        }
        async with httpx.AsyncClient(transport=self.transport, timeout=self.timeout) as client:
            return await self.policy.send(
                lambda: client.post(self.api_url, json=body, headers=headers),
                label="anthropic",
            )


def _float_or_none(value: Optional[str]) -> Optional[float]:
    try:
        return float(value) if value else None
    except ValueError:
        return None


def build_summarizer(settings: Settings):
    if not settings.anthropic_configured:
        logger.warning("ANTHROPIC_API_KEY absente — analyses en mode mock")
        return MockSummarizer()
    return AnthropicSummarizer(
        api_key=settings.ANTHROPIC_API_KEY,
        model=settings.ANTHROPIC_MODEL,
        api_url=settings.ANTHROPIC_API_URL,
        api_version=settings.ANTHROPIC_VERSION,
        max_tokens=settings.ANTHROPIC_MAX_TOKENS,
        timeout=settings.ANALYSIS_TIMEOUT_SECONDS,
        policy=RetryPolicy(
            max_retries=settings.ANALYSIS_MAX_RETRIES,
            backoff=exponential_backoff(1.0),
            retryable=status_in(429),
            max_backoff=settings.ANALYSIS_MAX_BACKOFF_SECONDS,
        ),
    )
