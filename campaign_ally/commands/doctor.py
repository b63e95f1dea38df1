"""``campaign_ally doctor``: environment health check.

Checks the Python version, installed deps, a writable data dir, pending migrations,
security settings, and whether Ollama serves the configured models.
"""
from __future__ import annotations

import importlib.util
import sqlite3
import sys
from pathlib import Path

# ANSI helpers (no-op on dumb terminals)
_COLOR = hasattr(sys.stdout, "isatty") and sys.stdout.isatty()

REQUIRED_PACKAGES: tuple[str, ...] = ("fastapi", "uvicorn", "pydantic", "httpx")


def _ok(msg: str) -> str:
    return f"  [OK]   {msg}" if not _COLOR else f"  \033[32m[OK]\033[0m   {msg}"


def _warn(msg: str) -> str:
    return f"  [WARN] {msg}" if not _COLOR else f"  \033[33m[WARN]\033[0m {msg}"


def _fail(msg: str) -> str:
    return f"  [FAIL] {msg}" if not _COLOR else f"  \033[31m[FAIL]\033[0m {msg}"


def _section(title: str) -> str:
    return f"\n{'=' * 60}\n  {title}\n{'=' * 60}"


def register(subparsers) -> None:
    p = subparsers.add_parser("doctor", help="Check environment health")
    p.add_argument("--skip-llm", action="store_true", help="Skip Ollama/model checks")
    p.set_defaults(func=run)


def _check_python() -> bool:
    v = sys.version_info
    ok = v >= (3, 11)
    line = f"Python {v.major}.{v.minor}.{v.micro}"
    print(_ok(line) if ok else _fail(f"{line} (need 3.11+)"))
    return ok


def _check_deps() -> list[str]:
    missing = []
    for mod in REQUIRED_PACKAGES:
        try:
            if importlib.util.find_spec(mod) is None:
                missing.append(mod)
        except (ImportError, ValueError):
            missing.append(mod)
    if missing:
        print(_fail(f"Missing packages: {', '.join(missing)}"))
        print("         Run: pip install -e .")
    else:
        print(_ok(f"All {len(REQUIRED_PACKAGES)} required packages installed"))
    return missing


def _check_data_root() -> bool:
    from shared.config import DATA_ROOT

    root = Path(DATA_ROOT)
    try:
        root.mkdir(parents=True, exist_ok=True)
        probe = root / ".doctor_test"
        probe.write_text("ok")
        probe.unlink()
    except OSError as e:
        print(_fail(f"{root} not writable: {e}"))
        return False
    print(_ok(f"Data root writable: {root}"))
    return True


def _check_database() -> bool:
    from backend.app.db.migrate import pending_migrations
    from shared.config import DEFAULT_DB_PATH

    path = Path(DEFAULT_DB_PATH)
    if not path.exists():
        print(_warn(f"Database missing: {path} (run: python -m campaign_ally migrate)"))
        return True
    try:
        pending = pending_migrations(str(path))
    except sqlite3.Error as e:
        print(_fail(f"Database unreadable: {e}"))
        return False
    if pending:
        print(_fail(f"Pending migrations on {path}: {', '.join(pending)}"))
        print("         Run: python -m campaign_ally migrate")
        return False
    print(_ok(f"Database {path} is migrated"))
    return True


def _check_security() -> bool:
    from shared.runtime_settings import load_security_settings, validate_security_settings

    settings = load_security_settings()
    try:
        validate_security_settings(settings)
    except RuntimeError as e:
        print(_fail(str(e)))
        return False
    mode = "dev" if settings.dev_mode else "production"
    auth = "enabled" if settings.auth_enabled else "disabled"
    print(_ok(f"Security settings valid ({mode} mode, auth {auth})"))
    return True


def _check_ollama() -> bool:
    """Every ollama-backed role needs a reachable server with its model pulled."""
    from backend.app.config import MODEL_CONFIG
    from backend.app.core.llm_provider import LLMProviderError, OllamaProvider
    from shared.config import OLLAMA_BASE_URL

    by_url: dict[str, set[str]] = {}
    for cfg in MODEL_CONFIG.values():
        if cfg.get("provider") == "ollama":
            url = (cfg.get("base_url") or OLLAMA_BASE_URL).rstrip("/")
            by_url.setdefault(url, set()).add(cfg.get("model", ""))
    if not by_url:
        print(_ok("No roles use Ollama"))
        return True

    all_ok = True
    for url, models in sorted(by_url.items()):
        with OllamaProvider(model="", base_url=url) as server:
            try:
                available = set(server.list_models())
            except LLMProviderError as e:
                print(_warn(str(e)))
                print("         Start it: ollama serve")
                all_ok = False
                continue
        print(_ok(f"Ollama running at {url}"))
        for model in sorted(m for m in models if m):
            base = model.split(":")[0]
            if model in available or any(base in a for a in available):
                print(_ok(f"Model: {model}"))
            else:
                print(_fail(f"Model not pulled: {model}"))
                print(f"         Run: ollama pull {model}")
                all_ok = False
    return all_ok


def run(args) -> int:
    print(_section("Campaign Ally Doctor"))
    errors = 0

    if not _check_python():
        errors += 1
    if _check_deps():
        errors += 1
    if not _check_data_root():
        errors += 1
    if not _check_database():
        errors += 1
    if not _check_security():
        errors += 1
    if not getattr(args, "skip_llm", False) and not _check_ollama():
        errors += 1

    print()
    if errors == 0:
        print(_ok("All checks passed, ready to run"))
        return 0
    print(_fail(f"{errors} issue(s) found, see fixes above"))
    return 1
