"""Entry point for ``python -m campaign_ally <command>``.

Commands:
    serve    – run the prep API with uvicorn
    migrate  – apply pending SQL migrations to the database
    models   – show resolved per-role model/provider configuration
    doctor   – check environment, deps, database and LLM provider
    export   – render a stored session to a markdown file
"""
from campaign_ally.cli import main

if __name__ == "__main__":
    main()
