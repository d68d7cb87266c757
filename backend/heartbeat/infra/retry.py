# heartbeat/infra/retry.py
"""
Politique de retry commune aux appels HTTP sortants (Resend, Anthropic).

Deux chemins distincts :
- statut retryable (429, 5xx…) : attend Retry-After si fourni, sinon backoff,
  plafonné à max_backoff
- erreur réseau (httpx.TransportError) : backoff exponentiel

Les timeouts (httpx.TimeoutException) ne sont jamais retentés : le budget
temps de l'appelant est déjà consommé.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Optional

import httpx

logger = logging.getLogger(__name__)


def exponential_backoff(base: float = 1.0) -> Callable[[int], float]:
    """attempt 0 → base, 1 → 2·base, 2 → 4·base…"""
    return lambda attempt: base * (2 ** attempt)


def status_in(*codes: int) -> Callable[[int], bool]:
    allowed = set(codes)
    return lambda status: status in allowed


def transient_status(status: int) -> bool:
    return status == 429 or 500 <= status < 600


@dataclass
class RetryPolicy:
    max_retries: int = 1
    backoff: Callable[[int], float] = field(default_factory=exponential_backoff)
    retryable: Callable[[int], bool] = field(default_factory=lambda: status_in(429))
    max_backoff: float = 10.0
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep

    def delay_for(self, attempt: int, retry_after: Optional[str] = None) -> float:
        delay = None
        if retry_after:
            try:
                delay = float(retry_after)
            except ValueError:
                delay = None    # Format date HTTP non géré → backoff
        if delay is None:
            delay = self.backoff(attempt)
        return max(0.0, min(self.max_backoff, delay))

    async def send(
        self,
        request: Callable[[], Awaitable[httpx.Response]],
        label: str = "http",
    ) -> httpx.Response:
        """
        Exécute request() jusqu'à max_retries + 1 fois.
        Retourne la dernière réponse (même en erreur) ; relève la dernière
        erreur réseau si toutes les tentatives ont échoué.
        """
        attempt = 0
        while True:
            try:
                response = await request()
            except httpx.TimeoutException:
                raise
            except httpx.TransportError as e:
                if attempt >= self.max_retries:
                    raise
                delay = self.delay_for(attempt)
                logger.warning(
                    "[%s] erreur réseau (tentative %d/%d) : %s — retry dans %.1fs",
                    label, attempt + 1, self.max_retries + 1, e, delay,
                )
                await self.sleep(delay)
                attempt += 1
                continue

            if self.retryable(response.status_code) and attempt < self.max_retries:
                delay = self.delay_for(attempt, response.headers.get("retry-after"))
                logger.warning(
                    "[%s] statut %d (tentative %d/%d) — retry dans %.1fs",
                    label, response.status_code, attempt + 1, self.max_retries + 1, delay,
                )
                await self.sleep(delay)
                attempt += 1
                continue

            return response
