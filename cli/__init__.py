"""Command line client for the tank history service.

``cli.app`` resolves lazily to the module rather than the Typer instance so
callers can patch ``cli.app.ApiClient``.
"""

from importlib import import_module
from types import ModuleType


def __getattr__(name: str) -> ModuleType:
    if name == "app":
        return import_module("cli.app")
    raise AttributeError(name)


__all__ = []
