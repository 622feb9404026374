"""Cloud provider API clients."""

from .base import ProviderClient, wait_for_state
from .fly import FlyClient
from .railway import RailwayClient
from .render import RenderClient

__all__ = [
    "FlyClient",
    "ProviderClient",
    "RailwayClient",
    "RenderClient",
    "wait_for_state",
]
