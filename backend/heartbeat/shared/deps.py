# heartbeat/shared/deps.py
"""
Dépendances FastAPI réutilisables dans tous les routers.
Injectées via Depends() — jamais appelées directement.

Tout vient de app.state (construit une fois dans main.py) : les tests
remplacent ces dépendances via app.dependency_overrides.
"""
from typing import Annotated, AsyncIterator

from fastapi import Depends, Request

from heartbeat.modules.pulse.repository import PulseSession


async def get_session(request: Request) -> AsyncIterator[PulseSession]:
    """Session par requête : store hébergé + fallback mémoire."""
    async with request.app.state.store.session() as session:
        yield session


def get_mailer(request: Request):
    return request.app.state.mailer


def get_summarizer(request: Request):
    return request.app.state.summarizer


# ── Type aliases pour les routers ─────────────────────────
SessionDep    = Annotated[PulseSession, Depends(get_session)]
MailerDep     = Annotated[object, Depends(get_mailer)]
SummarizerDep = Annotated[object, Depends(get_summarizer)]
