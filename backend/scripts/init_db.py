# backend/scripts/init_db.py
from __future__ import annotations

import sys
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parents[1]  # .../backend
if str(BASE_DIR) not in sys.path:
    sys.path.insert(0, str(BASE_DIR))

from vitrine.core.paths import LOGS_DIR, OBJECTS_DIR  # noqa: E402
from vitrine.infra.db.database import init_db  # noqa: E402


def main() -> None:
    """
    Cria as tabelas direto do metadata (dev/SQLite).
    Em Postgres, prefira: alembic upgrade head
    """
    init_db()
    print("Tabelas criadas.")
    print(f"Objetos locais em: {OBJECTS_DIR}")
    print(f"Logs de lote em: {LOGS_DIR}")


if __name__ == "__main__":
    main()
