# heartbeat/infra/rate_limit.py
"""
Rate limiting par IP et par endpoint (fenêtre fixe).

Le RateLimiter est un objet du process (app.state.rate_limiter), purgé
périodiquement par une tâche de fond lancée dans le lifespan.
Perdre les compteurs au redémarrage est acceptable.
"""
import asyncio
import logging
import math
import re
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Sequence

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from heartbeat.core.config import Settings

logger = logging.getLogger(__name__)

EXEMPT_PATHS = {"/health", "/docs", "/openapi.json", "/redoc"}


@dataclass(frozen=True)
class RateLimitRule:
    name: str
    limit: int
    window: float                   # secondes
    pattern: Optional[str] = None   # regex sur le path ; None = règle par défaut


@dataclass
class RateLimitWindow:
    count: int
    reset_at: float


@dataclass
class RateLimitDecision:
    allowed: bool
    limit: int
    remaining: int
    reset_at: float
    retry_after: int

    def headers(self) -> Dict[str, str]:
        headers = {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(int(self.reset_at)),
        }
        if not self.allowed:
            headers["Retry-After"] = str(self.retry_after)
        return headers


class RateLimiter:

    def __init__(
        self,
        rules: Sequence[RateLimitRule],
        default: RateLimitRule,
        clock: Callable[[], float] = time.time,
    ):
        self.rules = [(re.compile(r.pattern), r) for r in rules if r.pattern]
        self.default = default
        self.clock = clock
        self.windows: Dict[str, RateLimitWindow] = {}

    def rule_for(self, path: str) -> RateLimitRule:
        for regex, rule in self.rules:
            if regex.search(path):
                return rule
        return self.default

    def hit(self, client_ip: str, path: str, now: Optional[float] = None) -> RateLimitDecision:
        now = self.clock() if now is None else now
        rule = self.rule_for(path)
        key = f"{client_ip}:{rule.name}"

        window = self.windows.get(key)
        if window is None or window.reset_at <= now:
            window = RateLimitWindow(count=0, reset_at=now + rule.window)
            self.windows[key] = window
        window.count += 1

        return RateLimitDecision(
            allowed=window.count <= rule.limit,
            limit=rule.limit,
            remaining=max(0, rule.limit - window.count),
            reset_at=window.reset_at,
            retry_after=max(1, math.ceil(window.reset_at - now)),
        )

    def sweep(self, now: Optional[float] = None) -> int:
        """Supprime les fenêtres expirées. Retourne le nombre d'entrées purgées."""
        now = self.clock() if now is None else now
        expired = [key for key, w in self.windows.items() if w.reset_at <= now]
        for key in expired:
            del self.windows[key]
        return len(expired)

    async def run_sweeper(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            removed = self.sweep()
            if removed:
                logger.debug("Rate limiter : %d fenêtres expirées purgées", removed)


def client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()
    if request.client and request.client.host:
        return request.client.host
    return "unknown-ip"


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Lit le limiter sur app.state : aucun état global au module."""

    async def dispatch(self, request: Request, call_next):
        limiter: Optional[RateLimiter] = getattr(request.app.state, "rate_limiter", None)
        if limiter is None or request.url.path in EXEMPT_PATHS:
            return await call_next(request)

        decision = limiter.hit(client_ip(request), request.url.path)
        if not decision.allowed:
            return JSONResponse(
                status_code=429,
                content={"detail": f"Rate limit exceeded. Try again in {decision.retry_after} seconds."},
                headers=decision.headers(),
            )

        response = await call_next(request)
        response.headers.update(decision.headers())
        return response


def build_rate_limiter(settings: Settings) -> RateLimiter:
    return RateLimiter(
        rules=[
            RateLimitRule(
                "analyze", settings.RATE_LIMIT_ANALYZE, settings.RATE_LIMIT_ANALYZE_WINDOW,
                pattern=r"^/pulses/[^/]+/analyze/?$",
            ),
            RateLimitRule(
                "responses", settings.RATE_LIMIT_SUBMIT, settings.RATE_LIMIT_SUBMIT_WINDOW,
                pattern=r"^/responses/?$",
            ),
        ],
        default=RateLimitRule("default", settings.RATE_LIMIT_DEFAULT, settings.RATE_LIMIT_DEFAULT_WINDOW),
    )
