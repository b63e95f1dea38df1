"""`campaign_ally migrate`: apply pending SQL migrations."""
from __future__ import annotations

from shared.config import DEFAULT_DB_PATH


def register(subparsers) -> None:
    p = subparsers.add_parser("migrate", help="Apply database migrations")
    p.add_argument("--db", default=DEFAULT_DB_PATH, help=f"SQLite path (default: {DEFAULT_DB_PATH})")
    p.set_defaults(func=run)


def run(args) -> int:
    from backend.app.db.migrate import apply_schema

    applied = apply_schema(args.db)
    if applied:
        print(f"Applied {len(applied)} migration(s) to {args.db}:")
        for name in applied:
            print(f"  - {name}")
    else:
        print(f"Database {args.db} is up to date.")
    return 0
