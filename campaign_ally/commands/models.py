"""`campaign_ally models`: show effective role/provider/model configuration."""
from __future__ import annotations

from backend.app.config import MODEL_CONFIG


def register(subparsers) -> None:
    p = subparsers.add_parser("models", help="Show effective model/provider config by role")
    p.set_defaults(func=run)


def run(args) -> int:
    print("Effective LLM model config (after env overrides):")
    print()
    for role in sorted(MODEL_CONFIG):
        cfg = MODEL_CONFIG[role]
        line = f"- {role}: provider={cfg.get('provider', '')} model={cfg.get('model', '')}"
        if cfg.get("base_url"):
            line += " base_url=custom"
        if cfg.get("fallback_provider"):
            line += f" fallback_provider={cfg['fallback_provider']}"
            line += f" fallback_model={cfg.get('fallback_model', '')}"
        print(line)

    print("\nOverride pattern:")
    print("  CAMPAIGN_ALLY_<ROLE>_PROVIDER, CAMPAIGN_ALLY_<ROLE>_MODEL, CAMPAIGN_ALLY_<ROLE>_BASE_URL")
    print("Example (canon checker on Anthropic):")
    print("  CAMPAIGN_ALLY_CANON_CHECKER_PROVIDER=anthropic")
    print("  CAMPAIGN_ALLY_CANON_CHECKER_MODEL=<anthropic-model-name>")
    print("  CAMPAIGN_ALLY_CANON_CHECKER_API_KEY=<your-key>")
    return 0
