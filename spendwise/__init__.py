"""Spendwise: personal expense tracking API, client and CLI."""

__all__ = [
    "auth",
    "cli",
    "client",
    "config",
    "crud",
    "database",
    "errors",
    "models",
    "schemas",
    "security",
    "server",
]

__version__ = "1.0.0"
