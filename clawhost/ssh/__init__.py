"""Command proxy into deployed instances."""

from .proxy import CommandProxy

__all__ = ["CommandProxy"]
