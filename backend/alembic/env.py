# backend/alembic/env.py
from __future__ import annotations

from logging.config import fileConfig

from alembic import context
from sqlalchemy import engine_from_config, pool

from vitrine.core.config import DATABASE_URL
from vitrine.infra.db.database import Base
import vitrine.infra.db.models  # noqa: F401  registra tabelas no Base.metadata

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def _configure(is_sqlite: bool, **kwargs) -> None:
    context.configure(
        target_metadata=target_metadata,
        # Em SQLite, comparar tipo gera falso positivo (Uuid vira CHAR(32))
        compare_type=not is_sqlite,
        compare_server_default=True,
        # SQLite só altera tabelas via "recreate table"
        render_as_batch=is_sqlite,
        **kwargs,
    )


def run_migrations_offline() -> None:
    _configure(
        DATABASE_URL.startswith("sqlite"),
        url=DATABASE_URL,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    cfg = config.get_section(config.config_ini_section) or {}
    cfg["sqlalchemy.url"] = DATABASE_URL

    connectable = engine_from_config(cfg, prefix="sqlalchemy.", poolclass=pool.NullPool, future=True)

    with connectable.connect() as connection:
        _configure(connection.dialect.name == "sqlite", connection=connection)
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
