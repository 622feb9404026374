"""Deployment orchestration and provider backends."""

# Import backends to register them
from . import fly, railway, render  # noqa: F401
from .base import ProviderBackend, ProvisionedResource, ProvisionRequest
from .orchestrator import DeploymentOrchestrator
from .registry import get_backend, list_backends, register_backend

__all__ = [
    "DeploymentOrchestrator",
    "ProviderBackend",
    "ProvisionRequest",
    "ProvisionedResource",
    "get_backend",
    "list_backends",
    "register_backend",
]
