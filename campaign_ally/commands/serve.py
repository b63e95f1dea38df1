"""`campaign_ally serve`: run the prep API with uvicorn."""
from __future__ import annotations

import logging

from shared.runtime_settings import load_security_settings, validate_security_settings

logger = logging.getLogger(__name__)


def register(subparsers) -> None:
    p = subparsers.add_parser("serve", help="Run the prep API")
    p.add_argument("--host", default="127.0.0.1", help="Bind host (default: 127.0.0.1)")
    p.add_argument("--port", type=int, default=8000, help="Bind port (default: 8000)")
    p.add_argument("--reload", action="store_true", help="Auto-reload on code changes")
    p.set_defaults(func=run)


def run(args) -> int:
    settings = load_security_settings()
    try:
        validate_security_settings(settings)
    except RuntimeError as e:
        print(f"Refusing to start: {e}")
        return 1
    import uvicorn

    logger.info(
        "Starting API on %s:%d (dev_mode=%s, auth=%s)",
        args.host,
        args.port,
        settings.dev_mode,
        "enabled" if settings.auth_enabled else "disabled",
    )
    uvicorn.run("backend.main:app", host=args.host, port=args.port, reload=args.reload)
    return 0
