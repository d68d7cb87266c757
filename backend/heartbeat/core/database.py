# backend/heartbeat/core/database.py
"""
Moteur SQLAlchemy async vers le store hébergé (Postgres / Supabase).

Aucune connexion n'est ouverte à l'import : create_async_engine est paresseux.
Sans DATABASE_URL, build_session_factory() retourne None et l'application
tourne sur le store mémoire (voir modules/pulse/repository.py).
"""
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass


def build_engine(database_url: Optional[str], echo: bool = False) -> Optional[AsyncEngine]:
    if not database_url:
        return None
    return create_async_engine(database_url, echo=echo, pool_pre_ping=True)


def build_session_factory(engine: Optional[AsyncEngine]) -> Optional[async_sessionmaker]:
    if engine is None:
        return None
    return async_sessionmaker(engine, expire_on_commit=False)
