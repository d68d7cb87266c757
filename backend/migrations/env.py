"""
Environnement Alembic du store hébergé Heartbeat.

Les migrations tournent en synchrone (psycopg2) : l'URL async de
l'application est convertie avant usage.
"""
import sys
from os.path import abspath, dirname
from logging.config import fileConfig

from sqlalchemy import engine_from_config, pool
from alembic import context

sys.path.insert(0, abspath(dirname(dirname(__file__))))

from heartbeat.core.config import settings
from heartbeat.core.database import Base
from heartbeat.shared.models import Pulse, Response, Analysis  # noqa: F401  (peuple Base.metadata)

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)


def sync_database_url(url: str) -> str:
    """postgresql+asyncpg://… ou postgres://… (URLs Supabase) → postgresql://…"""
    url = url.replace("+asyncpg", "")
    if url.startswith("postgres://"):
        url = "postgresql://" + url[len("postgres://"):]
    return url


if not settings.DATABASE_URL:
    raise RuntimeError("DATABASE_URL requise pour appliquer les migrations (le store mémoire n'en a pas)")
config.set_main_option("sqlalchemy.url", sync_database_url(settings.DATABASE_URL))

target_metadata = Base.metadata

# Détecte aussi les changements de type (JSON, Text) en autogenerate
CONFIGURE_OPTS = {"target_metadata": target_metadata, "compare_type": True}


def run_migrations_offline() -> None:
    """Génère le SQL des migrations sans ouvrir de connexion."""
    context.configure(
        url=config.get_main_option("sqlalchemy.url"),
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        **CONFIGURE_OPTS,
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    engine = engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    with engine.connect() as connection:
        context.configure(connection=connection, **CONFIGURE_OPTS)
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
