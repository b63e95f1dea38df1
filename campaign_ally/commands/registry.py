"""Subcommand wiring for ``python -m campaign_ally``.

Each module under ``campaign_ally.commands`` exposes ``register(subparsers)``, which adds its
parser and binds ``run(args) -> int`` as the handler.
"""
from __future__ import annotations

from importlib import import_module
from types import ModuleType

_PACKAGE = "campaign_ally.commands"

# Help output lists commands in this order.
COMMAND_MODULES: tuple[str, ...] = ("serve", "migrate", "models", "doctor", "export")


def load_commands() -> dict[str, ModuleType]:
    return {name: import_module(f"{_PACKAGE}.{name}") for name in COMMAND_MODULES}


def register_all(subparsers) -> dict[str, ModuleType]:
    """Attach every command parser to ``subparsers``; returns the loaded modules by name."""
    commands = load_commands()
    for module in commands.values():
        module.register(subparsers)
    return commands
