"""Routers package."""

from . import health, instances, terminal

__all__ = [
    "health",
    "instances",
    "terminal",
]
