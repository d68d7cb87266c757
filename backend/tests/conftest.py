# tests/conftest.py
"""
Fixtures et factories partagées sur l'ensemble de la suite de tests.

Trois couches :
    1. Infra   — clients HTTP via httpx.MockTransport, retry avec sleep injecté
    2. Service — PulseSession mockée (AsyncMock) ou store mémoire réel
    3. Router  — httpx.AsyncClient + dependency_overrides FastAPI
"""
import pytest
from types import SimpleNamespace
from datetime import datetime, timezone
from typing import List, Optional
from unittest.mock import AsyncMock

from httpx import AsyncClient, ASGITransport

from heartbeat.main import app
from heartbeat.infra.notifications import MailResult
from heartbeat.modules.pulse.repository import PulseSession, PulseStore
from heartbeat.shared.deps import get_session, get_mailer, get_summarizer


# ── Factories de modèles (SimpleNamespace, sans ORM) ──────────────────────────

def make_pulse(**kwargs) -> SimpleNamespace:
    defaults = {
        "id": "pulse_1735689600000_a1b2c3d4",
        "name": "Équipe produit",
        "owner_id": 1,
        "created_at": datetime(2025, 1, 1, tzinfo=timezone.utc),
        "emails": ["alice@acme.io", "bob@acme.io"],
        "sent_emails": [],
        "pending_emails": ["alice@acme.io", "bob@acme.io"],
        "custom_questions": [],
        "response_count": 0,
        "has_analysis": False,
        "analysis_content": None,
        "last_checked": None,
    }
    defaults.update(kwargs)
    return SimpleNamespace(**defaults)


def make_response(**kwargs) -> SimpleNamespace:
    defaults = {
        "id": 1,
        "pulse_id": "pulse_1735689600000_a1b2c3d4",
        "respondent_id": "anonymous",
        "response": "Plutôt bien, un peu de fatigue en fin de sprint.",
        "timestamp": datetime(2025, 1, 2, tzinfo=timezone.utc),
    }
    defaults.update(kwargs)
    return SimpleNamespace(**defaults)


def make_analysis(**kwargs) -> SimpleNamespace:
    defaults = {
        "id": 1,
        "pulse_id": "pulse_1735689600000_a1b2c3d4",
        "content": "<h2>Summary</h2><p>Overall positive.</p>",
        "created_at": datetime(2025, 1, 3, tzinfo=timezone.utc),
        "updated_at": None,
    }
    defaults.update(kwargs)
    return SimpleNamespace(**defaults)


def pulse_data(**kwargs) -> dict:
    """Dict prêt pour session.create_pulse()."""
    return vars(make_pulse(**kwargs))


# ── Session mockée ────────────────────────────────────────────────────────────

def make_session(degraded: bool = False, warning: Optional[str] = None) -> AsyncMock:
    """AsyncMock simulant une PulseSession (store déjà choisi)."""
    session = AsyncMock(spec=PulseSession)
    session.degraded = degraded
    session.warning = warning
    return session


# ── Fournisseurs factices ─────────────────────────────────────────────────────

class FakeMailer:
    def __init__(self, result: Optional[MailResult] = None):
        self.result = result or MailResult(success=True, message_id="msg_123")
        self.sent: List[str] = []

    async def send(self, to, subject, html, text=None) -> MailResult:
        self.sent.append(to)
        return self.result


class FakeSummarizer:
    def __init__(self, content: str = "<h2>Summary</h2><p>Team morale is good.</p>", error=None):
        self.content = content
        self.error = error
        self.prompts: List[str] = []

    async def summarize(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.error:
            raise self.error
        return self.content


# ── Fixtures store / session ──────────────────────────────────────────────────

@pytest.fixture
def store() -> PulseStore:
    """Store mémoire seul — chaque test repart d'un état vide."""
    return PulseStore()


@pytest.fixture
async def session(store):
    async with store.session() as s:
        yield s


@pytest.fixture
def mailer() -> FakeMailer:
    return FakeMailer()


@pytest.fixture
def summarizer() -> FakeSummarizer:
    return FakeSummarizer()


# ── Fixtures HTTP (httpx.AsyncClient + dependency_overrides) ─────────────────

@pytest.fixture
async def client(store, mailer, summarizer):
    """Client sans rate limit, branché sur le store mémoire du test."""
    async def _session():
        async with store.session() as s:
            yield s

    app.dependency_overrides[get_session] = _session
    app.dependency_overrides[get_mailer] = lambda: mailer
    app.dependency_overrides[get_summarizer] = lambda: summarizer
    limiter = app.state.rate_limiter
    app.state.rate_limiter = None
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c
    app.state.rate_limiter = limiter
    app.dependency_overrides.clear()
