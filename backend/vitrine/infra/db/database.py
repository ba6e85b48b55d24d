# backend/vitrine/infra/db/database.py
from __future__ import annotations

from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from vitrine.core.config import DATABASE_URL

# Engine
_engine_kwargs = {
    "pool_pre_ping": True,
    "future": True,
}

# SQLite precisa de connect_args específicos (o lote roda em threads)
if DATABASE_URL.startswith("sqlite"):
    _engine_kwargs["connect_args"] = {"check_same_thread": False, "timeout": 30}

engine = create_engine(DATABASE_URL, **_engine_kwargs)

# Session factory
SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    expire_on_commit=False,
    bind=engine,
    future=True,
)

# Base (models herdam daqui)
Base = declarative_base()


def init_db() -> None:
    """
    Cria tabelas (dev/testes). Em produção, prefira Alembic (migrações).
    """
    import vitrine.infra.db.models  # noqa: F401  registra tabelas no Base.metadata

    Base.metadata.create_all(bind=engine)


def get_db() -> Generator:
    """
    Dependency do FastAPI.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
