# modules/pulse/repository.py
"""
Accès aux données des pulses, réponses et analyses.

Deux backends interchangeables, même interface :
- SqlBackend    : store hébergé (Postgres) via AsyncSession
- MemoryBackend : dict en mémoire du process, best-effort, perdu au redémarrage

PulseStore est construit une fois au démarrage. Chaque requête ouvre une
PulseSession qui tente le backend SQL puis bascule sur la mémoire en cas
d'échec (mode dégradé, signalé via session.degraded / session.warning).
Les services ne testent jamais la configuration.
"""
import copy
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from itertools import count
from typing import Any, AsyncIterator, Dict, List, Optional, Protocol

from sqlalchemy import delete, func, insert, select
from sqlalchemy.exc import ProgrammingError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from heartbeat.shared.errors import DegradedModeWarning, UpstreamError
from heartbeat.shared.models import Analysis, Pulse, Response

logger = logging.getLogger(__name__)

PULSE_FIELDS = (
    "id", "name", "owner_id", "created_at",
    "emails", "sent_emails", "pending_emails", "custom_questions",
    "response_count", "has_analysis", "analysis_content", "last_checked",
)

# Colonnes ajoutées par 002_email_tracking : seules écartées en insert dégradé
EMAIL_TRACKING_FIELDS = ("sent_emails", "pending_emails")
CORE_PULSE_FIELDS = tuple(f for f in PULSE_FIELDS if f not in EMAIL_TRACKING_FIELDS)

STORE_ERRORS = (SQLAlchemyError, OSError)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PulseBackend(Protocol):
    """Interface commune aux deux backends."""

    async def rollback(self) -> None: ...
    async def create_pulse(self, data: Dict[str, Any]) -> Pulse: ...
    async def get_pulse(self, pulse_id: str) -> Optional[Pulse]: ...
    async def list_pulses(self, owner_id: int) -> List[Pulse]: ...
    async def update_pulse(self, pulse_id: str, fields: Dict[str, Any]) -> Optional[Pulse]: ...
    async def delete_pulse(self, pulse_id: str) -> bool: ...
    async def add_response(
        self, pulse_id: str, respondent_id: str, text: str, timestamp: datetime
    ) -> Response: ...
    async def count_responses(self, pulse_id: str) -> int: ...
    async def list_responses(self, pulse_id: str) -> List[Response]: ...
    async def delete_responses(self, pulse_id: str) -> int: ...
    async def get_analysis(self, pulse_id: str) -> Optional[Analysis]: ...
    async def upsert_analysis(self, pulse_id: str, content: str) -> Analysis: ...


# ─────────────────────────────────────────────
# BACKEND SQL (store hébergé)
# ─────────────────────────────────────────────

class SqlBackend:

    def __init__(self, db: AsyncSession):
        self.db = db

    async def rollback(self) -> None:
        try:
            await self.db.rollback()
        except STORE_ERRORS as e:
            logger.debug("Rollback impossible : %s", e)

    # ── Pulses ────────────────────────────────────────────────

    async def create_pulse(self, data: Dict[str, Any]) -> Pulse:
        try:
            await self.db.execute(insert(Pulse).values(**data))
            await self.db.commit()
        except ProgrammingError as e:
            # Schéma en retard (colonnes pending/sent absentes) → insert réduit
            await self.rollback()
            logger.warning(
                "Insert complet refusé pour %s (%s) — retry avec les champs de base",
                data.get("id"), e.orig if getattr(e, "orig", None) else e,
            )
            core = {k: data[k] for k in CORE_PULSE_FIELDS if k in data}
            await self.db.execute(insert(Pulse).values(**core))
            await self.db.commit()
        return Pulse(**data)

    async def get_pulse(self, pulse_id: str) -> Optional[Pulse]:
        r = await self.db.execute(select(Pulse).where(Pulse.id == pulse_id))
        return r.scalar_one_or_none()

    async def list_pulses(self, owner_id: int) -> List[Pulse]:
        r = await self.db.execute(
            select(Pulse)
            .where(Pulse.owner_id == owner_id)
            .order_by(Pulse.created_at.desc())
        )
        return list(r.scalars().all())

    async def update_pulse(self, pulse_id: str, fields: Dict[str, Any]) -> Optional[Pulse]:
        pulse = await self.get_pulse(pulse_id)
        if not pulse:
            return None
        for name, value in fields.items():
            setattr(pulse, name, value)
        await self.db.commit()
        return pulse

    async def delete_pulse(self, pulse_id: str) -> bool:
        """
        Cascade en 3 deletes séquentiels : analyses → réponses → pulse.
        Non atomique. Seul l'échec du dernier delete est propagé.
        """
        for model in (Analysis, Response):
            try:
                await self.db.execute(delete(model).where(model.pulse_id == pulse_id))
                await self.db.commit()
            except STORE_ERRORS as e:
                await self.rollback()
                logger.error("Suppression %s du pulse %s en échec : %s", model.__tablename__, pulse_id, e)

        r = await self.db.execute(delete(Pulse).where(Pulse.id == pulse_id))
        await self.db.commit()
        return (r.rowcount or 0) > 0

    # ── Réponses ──────────────────────────────────────────────

    async def add_response(
        self, pulse_id: str, respondent_id: str, text: str, timestamp: datetime
    ) -> Response:
        db_obj = Response(
            pulse_id=pulse_id,
            respondent_id=respondent_id,
            response=text,
            timestamp=timestamp,
        )
        self.db.add(db_obj)
        await self.db.commit()
        await self.db.refresh(db_obj)
        return db_obj

    async def count_responses(self, pulse_id: str) -> int:
        r = await self.db.execute(
            select(func.count(Response.id)).where(Response.pulse_id == pulse_id)
        )
        return r.scalar_one() or 0

    async def list_responses(self, pulse_id: str) -> List[Response]:
        r = await self.db.execute(
            select(Response)
            .where(Response.pulse_id == pulse_id)
            .order_by(Response.timestamp, Response.id)
        )
        return list(r.scalars().all())

    async def delete_responses(self, pulse_id: str) -> int:
        r = await self.db.execute(delete(Response).where(Response.pulse_id == pulse_id))
        await self.db.commit()
        return r.rowcount or 0

    # ── Analyses ──────────────────────────────────────────────

    async def get_analysis(self, pulse_id: str) -> Optional[Analysis]:
        r = await self.db.execute(select(Analysis).where(Analysis.pulse_id == pulse_id))
        return r.scalar_one_or_none()

    async def upsert_analysis(self, pulse_id: str, content: str) -> Analysis:
        existing = await self.get_analysis(pulse_id)
        if existing:
            existing.content = content
            existing.updated_at = utcnow()
            await self.db.commit()
            return existing

        db_obj = Analysis(pulse_id=pulse_id, content=content, created_at=utcnow())
        self.db.add(db_obj)
        await self.db.commit()
        await self.db.refresh(db_obj)
        return db_obj


# ─────────────────────────────────────────────
# BACKEND MÉMOIRE (fallback)
# ─────────────────────────────────────────────

@dataclass
class MemoryState:
    """État partagé du store mémoire — un seul par process."""
    pulses: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    responses: Dict[str, List[Dict[str, Any]]] = field(default_factory=dict)
    analyses: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    ids: Any = field(default_factory=lambda: count(1))


class MemoryBackend:
    """
    Chaque lecture renvoie une instance ORM transitoire neuve :
    muter l'objet retourné ne modifie jamais le store.
    """

    def __init__(self, state: MemoryState):
        self.state = state

    async def rollback(self) -> None:
        return None

    # ── Pulses ────────────────────────────────────────────────

    async def create_pulse(self, data: Dict[str, Any]) -> Pulse:
        row = {name: None for name in PULSE_FIELDS}
        row.update(copy.deepcopy(data))
        self.state.pulses[row["id"]] = row
        return Pulse(**copy.deepcopy(row))

    async def get_pulse(self, pulse_id: str) -> Optional[Pulse]:
        row = self.state.pulses.get(pulse_id)
        return Pulse(**copy.deepcopy(row)) if row else None

    async def list_pulses(self, owner_id: int) -> List[Pulse]:
        rows = [r for r in self.state.pulses.values() if r.get("owner_id") == owner_id]
        rows.sort(key=lambda r: r.get("created_at") or datetime.min.replace(tzinfo=timezone.utc), reverse=True)
        return [Pulse(**copy.deepcopy(r)) for r in rows]

    async def update_pulse(self, pulse_id: str, fields: Dict[str, Any]) -> Optional[Pulse]:
        row = self.state.pulses.get(pulse_id)
        if row is None:
            return None
        row.update(copy.deepcopy(fields))
        return Pulse(**copy.deepcopy(row))

    async def delete_pulse(self, pulse_id: str) -> bool:
        self.state.analyses.pop(pulse_id, None)
        self.state.responses.pop(pulse_id, None)
        return self.state.pulses.pop(pulse_id, None) is not None

    # ── Réponses ──────────────────────────────────────────────

    async def add_response(
        self, pulse_id: str, respondent_id: str, text: str, timestamp: datetime
    ) -> Response:
        row = {
            "id": next(self.state.ids),
            "pulse_id": pulse_id,
            "respondent_id": respondent_id,
            "response": text,
            "timestamp": timestamp,
        }
        self.state.responses.setdefault(pulse_id, []).append(row)
        return Response(**row)

    async def count_responses(self, pulse_id: str) -> int:
        return len(self.state.responses.get(pulse_id, []))

    async def list_responses(self, pulse_id: str) -> List[Response]:
        return [Response(**row) for row in self.state.responses.get(pulse_id, [])]

    async def delete_responses(self, pulse_id: str) -> int:
        return len(self.state.responses.pop(pulse_id, []))

    # ── Analyses ──────────────────────────────────────────────

    async def get_analysis(self, pulse_id: str) -> Optional[Analysis]:
        row = self.state.analyses.get(pulse_id)
        return Analysis(**row) if row else None

    async def upsert_analysis(self, pulse_id: str, content: str) -> Analysis:
        row = self.state.analyses.get(pulse_id)
        if row:
            row.update(content=content, updated_at=utcnow())
        else:
            row = {
                "id": next(self.state.ids),
                "pulse_id": pulse_id,
                "content": content,
                "created_at": utcnow(),
                "updated_at": None,
            }
            self.state.analyses[pulse_id] = row
        return Analysis(**row)


# ─────────────────────────────────────────────
# SESSION PAR REQUÊTE (primaire + fallback)
# ─────────────────────────────────────────────

class PulseSession:
    """
    Injectée dans les services à la place d'une AsyncSession.
    Erreur du store primaire → log + bascule mémoire, jamais d'exception,
    sauf pour le delete final du pulse (UpstreamError).
    """

    def __init__(self, primary: Optional[PulseBackend], fallback: PulseBackend):
        self.primary = primary
        self.fallback = fallback
        self.warnings: List[DegradedModeWarning] = []

    @property
    def degraded(self) -> bool:
        return bool(self.warnings)

    @property
    def warning(self) -> Optional[str]:
        if not self.warnings:
            return None
        return "; ".join(str(w) for w in self.warnings)

    def _degrade(self, reason: str) -> None:
        if any(str(w) == reason for w in self.warnings):
            return
        self.warnings.append(DegradedModeWarning(reason))

    async def _call(self, op: str, *args, **kwargs):
        if self.primary is None:
            self._degrade("Store hébergé non configuré — stockage local utilisé")
            return await getattr(self.fallback, op)(*args, **kwargs)
        try:
            return await getattr(self.primary, op)(*args, **kwargs)
        except STORE_ERRORS as e:
            await self.primary.rollback()
            logger.error("Store hébergé en échec (%s) : %s — bascule sur le stockage local", op, e)
            self._degrade("Store hébergé indisponible — stockage local utilisé")
            return await getattr(self.fallback, op)(*args, **kwargs)

    # ── Pulses ────────────────────────────────────────────────

    async def create_pulse(self, data: Dict[str, Any]) -> Pulse:
        return await self._call("create_pulse", data)

    async def get_pulse(self, pulse_id: str) -> Optional[Pulse]:
        return await self._call("get_pulse", pulse_id)

    async def list_pulses(self, owner_id: int) -> List[Pulse]:
        return await self._call("list_pulses", owner_id)

    async def update_pulse(self, pulse_id: str, fields: Dict[str, Any]) -> Optional[Pulse]:
        fields = {**fields, "last_checked": utcnow()}
        return await self._call("update_pulse", pulse_id, fields)

    async def delete_pulse(self, pulse_id: str) -> bool:
        deleted_locally = await self.fallback.delete_pulse(pulse_id)
        if self.primary is None:
            self._degrade("Store hébergé non configuré — stockage local utilisé")
            return deleted_locally
        try:
            deleted = await self.primary.delete_pulse(pulse_id)
        except STORE_ERRORS as e:
            await self.primary.rollback()
            logger.error("Suppression du pulse %s en échec : %s", pulse_id, e)
            raise UpstreamError(f"Suppression du pulse {pulse_id} impossible.") from e
        return deleted or deleted_locally

    # ── Réponses ──────────────────────────────────────────────

    async def add_response(
        self, pulse_id: str, respondent_id: str, text: str, timestamp: Optional[datetime] = None
    ) -> Response:
        return await self._call("add_response", pulse_id, respondent_id, text, timestamp or utcnow())

    async def count_responses(self, pulse_id: str) -> int:
        return await self._call("count_responses", pulse_id)

    async def list_responses(self, pulse_id: str) -> List[Response]:
        return await self._call("list_responses", pulse_id)

    async def delete_responses(self, pulse_id: str) -> int:
        return await self._call("delete_responses", pulse_id)

    # ── Analyses ──────────────────────────────────────────────

    async def get_analysis(self, pulse_id: str) -> Optional[Analysis]:
        return await self._call("get_analysis", pulse_id)

    async def upsert_analysis(self, pulse_id: str, content: str) -> Analysis:
        return await self._call("upsert_analysis", pulse_id, content)


class PulseStore:
    """
    Construit au démarrage (main.py) : primaire SQL si DATABASE_URL, sinon
    mémoire seule. L'état mémoire vit aussi longtemps que le store.
    """

    def __init__(
        self,
        session_factory: Optional[async_sessionmaker] = None,
        memory: Optional[MemoryState] = None,
    ):
        self.session_factory = session_factory
        self.memory = memory or MemoryState()

    @property
    def is_hosted(self) -> bool:
        return self.session_factory is not None

    @asynccontextmanager
    async def session(self) -> AsyncIterator[PulseSession]:
        fallback = MemoryBackend(self.memory)
        if self.session_factory is None:
            yield PulseSession(None, fallback)
            return

        async with self.session_factory() as db:
            yield PulseSession(SqlBackend(db), fallback)
