"""Registry of provider backends."""

from clawhost.config import Settings

from .base import ProviderBackend

_BACKEND_REGISTRY: dict[str, type[ProviderBackend]] = {}


def register_backend(name: str):
    """Decorator to register a provider backend.

    Usage:
        @register_backend("fly")
        class FlyBackend(ProviderBackend):
            ...
    """

    def decorator(cls: type[ProviderBackend]) -> type[ProviderBackend]:
        cls.name = name
        _BACKEND_REGISTRY[name] = cls
        return cls

    return decorator


def get_backend(name: str, settings: Settings) -> ProviderBackend:
    """Get a backend instance by provider name.

    Raises:
        ValueError: If the provider is not registered.
        ProviderConfigError: If the provider's credentials are missing.
    """
    if name not in _BACKEND_REGISTRY:
        available = sorted(_BACKEND_REGISTRY)
        raise ValueError(f"Unknown provider: {name}. Available: {available}")
    return _BACKEND_REGISTRY[name](settings)


def list_backends() -> list[str]:
    return sorted(_BACKEND_REGISTRY)
