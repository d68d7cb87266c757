# main.py
"""
Point d'entrée de l'API Heartbeat.
Enregistre tous les modules via leurs routers.

Les collaborateurs (store, mailer, summarizer, rate limiter) sont construits
une fois ici et posés sur app.state ; les routers les reçoivent via
shared/deps.py.
"""
import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from heartbeat.core.config import settings
from heartbeat.core.database import build_engine, build_session_factory
from heartbeat.infra.notifications import build_mailer
from heartbeat.infra.rate_limit import RateLimitMiddleware, build_rate_limiter
from heartbeat.infra.summarizer import build_summarizer
from heartbeat.modules.pulse.repository import PulseStore

from heartbeat.modules.pulse.router    import router as pulse_router
from heartbeat.modules.dispatch.router import router as dispatch_router
from heartbeat.modules.survey.router   import router as survey_router
from heartbeat.modules.analysis.router import router as analysis_router

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("heartbeat")

VERSION = "1.0.0"

engine = build_engine(settings.DATABASE_URL, echo=settings.DEBUG)


@asynccontextmanager
async def lifespan(app: FastAPI):
    sweeper = asyncio.create_task(
        app.state.rate_limiter.run_sweeper(settings.RATE_LIMIT_SWEEP_SECONDS)
    )
    logger.info(
        "Heartbeat démarré (store %s)",
        "hébergé + fallback mémoire" if app.state.store.is_hosted else "mémoire seule",
    )
    yield
    sweeper.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await sweeper
    if engine is not None:
        await engine.dispose()


app = FastAPI(
    title=settings.PROJECT_NAME,
    version=VERSION,
    docs_url="/docs" if settings.DEBUG else None,
    lifespan=lifespan,
)

app.state.store = PulseStore(build_session_factory(engine))
app.state.mailer = build_mailer(settings)
app.state.summarizer = build_summarizer(settings)
app.state.rate_limiter = build_rate_limiter(settings)

if not app.state.store.is_hosted:
    logger.warning("DATABASE_URL absente — stockage mémoire uniquement (perdu au redémarrage)")

app.add_middleware(RateLimitMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-RateLimit-Limit", "X-RateLimit-Remaining", "X-RateLimit-Reset", "Retry-After"],
)

app.include_router(pulse_router)
app.include_router(dispatch_router)
app.include_router(survey_router)
app.include_router(analysis_router)


@app.get("/health")
async def health():
    return {"status": "ok", "version": VERSION, "store": "hosted" if app.state.store.is_hosted else "memory"}
