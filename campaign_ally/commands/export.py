"""`campaign_ally export`: render a stored session to markdown without the HTTP layer."""
from __future__ import annotations

import sys
from pathlib import Path

from shared.config import DEFAULT_DB_PATH, EXPORT_DIR


def register(subparsers) -> None:
    p = subparsers.add_parser("export", help="Export a session to a markdown file")
    p.add_argument("session_id", help="Session id to export")
    p.add_argument("--mode", choices=("dm", "player"), default="dm", help="Export mode (default: dm)")
    p.add_argument("--db", default=DEFAULT_DB_PATH, help=f"SQLite path (default: {DEFAULT_DB_PATH})")
    p.add_argument("--out", default=None, help=f"Output directory (default: {EXPORT_DIR})")
    p.add_argument("--stdout", action="store_true", help="Print markdown instead of writing a file")
    p.set_defaults(func=run)


def run(args) -> int:
    from backend.app.core import scene_store, session_store
    from backend.app.core.errors import PrepError
    from backend.app.core.export import export_filename, render_session_markdown
    from backend.app.core.pipeline_state import require_exportable
    from backend.app.db.connection import open_db

    try:
        with open_db(args.db) as conn:
            session = session_store.get_session(conn, args.session_id)
            scenes = scene_store.list_scenes(conn, args.session_id)
            require_exportable(session, len(scenes))
            markdown = render_session_markdown(session, scenes, args.mode)
    except PrepError as e:
        print(f"Export failed: {e.message}", file=sys.stderr)
        return 1

    if args.stdout:
        print(markdown)
        return 0
    out_dir = Path(args.out or EXPORT_DIR)
    out_dir.mkdir(parents=True, exist_ok=True)
    path = out_dir / export_filename(session, args.mode)
    path.write_text(markdown, encoding="utf-8")
    print(f"Wrote {path}")
    return 0
