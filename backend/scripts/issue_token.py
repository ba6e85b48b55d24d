# backend/scripts/issue_token.py
from __future__ import annotations

import argparse
import sys
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parents[1]  # .../backend
if str(BASE_DIR) not in sys.path:
    sys.path.insert(0, str(BASE_DIR))

from vitrine.core.config import TOKEN_TTL_HOURS  # noqa: E402
from vitrine.infra.db.crud import create_access_token, create_user, get_user_by_email  # noqa: E402
from vitrine.infra.db.database import SessionLocal  # noqa: E402


def main() -> None:
    parser = argparse.ArgumentParser(description="Emite um token de acesso (cria o usuário se não existir).")
    parser.add_argument("email")
    parser.add_argument("--name", default=None)
    parser.add_argument("--role", choices=("admin", "user"), default="user")
    parser.add_argument("--ttl-hours", type=int, default=TOKEN_TTL_HOURS)
    args = parser.parse_args()

    db = SessionLocal()
    try:
        user = get_user_by_email(db, args.email)
        if user is None:
            user = create_user(db, email=args.email, display_name=args.name or args.email, role=args.role)
            print(f"Usuário criado: {user.email} ({user.role})")
        row = create_access_token(db, user_id=user.id, ttl_hours=args.ttl_hours)
        print("Token de acesso:")
        print(row.token)
    finally:
        db.close()


if __name__ == "__main__":
    main()
