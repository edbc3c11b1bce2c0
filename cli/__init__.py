"""CLI package for the cold-storage monitoring client."""

from importlib import import_module
from types import ModuleType


def __getattr__(name: str) -> ModuleType:
    if name == "app":
        return import_module("cli.app")
    raise AttributeError(name)

# The Typer application lives in ``cli.app``. Tests patch ``cli.app.ApiClient``,
# so the package root must not shadow that module with the Typer instance.

__all__ = []
