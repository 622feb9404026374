"""Provider backend abstraction used by the deployment orchestrator."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
import re
from typing import ClassVar

from clawhost.config import Settings
from clawhost.models import Instance


@dataclass
class ProvisionRequest:
    """Everything a backend needs to create the compute resource for one instance."""

    name: str
    image: str
    # Non-secret runtime settings (config document, workspace path)
    env: dict[str, str]
    # Gateway token and provider/channel credentials
    secrets: dict[str, str]
    # Shell script: write the config document to disk, then exec the gateway
    start_command: str
    gateway_port: int

    @property
    def merged_env(self) -> dict[str, str]:
        return {**self.env, **self.secrets}


@dataclass
class ProvisionedResource:
    resource_id: str
    resource_name: str
    access_url: str | None = None
    shell_url: str | None = None
    details: dict[str, str] = field(default_factory=dict)


def slugify(value: str, length: int = 8) -> str:
    """Lowercase alphanumeric prefix usable in provider resource names."""
    return re.sub(r"[^a-z0-9]", "", value.lower())[:length] or "user"


class ProviderBackend(ABC):
    """Translates provider-neutral deployment steps into provider API calls.

    Each provider (Fly.io, Render, Railway) has its own backend, registered
    under its name with `register_backend`.
    """

    name: ClassVar[str]
    # False when the provider has no public log API
    supports_logs: ClassVar[bool] = True

    def __init__(self, settings: Settings):
        self.settings = settings

    def resource_name(self, user_id: str) -> str:
        return f"openclaw-{slugify(user_id)}"

    async def prepare(self, name: str) -> str | None:
        """Create provider-side containers (e.g. a Fly app) before provisioning.

        Returns:
            The name of a resource that now exists, or None when nothing was created.
        """
        return None

    @abstractmethod
    async def provision(self, request: ProvisionRequest) -> ProvisionedResource:
        """Create the compute resource. Returns once the provider accepted it."""

    @abstractmethod
    async def wait_until_live(self, resource: ProvisionedResource) -> ProvisionedResource:
        """Block (bounded) until the resource runs and has a public URL.

        Returns:
            The resource with `access_url` filled in.

        Raises:
            ProviderTimeoutError: Resource did not come up in time.
            ProviderTerminalStateError: Resource failed to start.
        """

    @abstractmethod
    async def destroy(self, instance: Instance) -> None:
        """Delete every cloud resource recorded on the instance."""

    @abstractmethod
    async def stop(self, instance: Instance) -> None: ...

    @abstractmethod
    async def start(self, instance: Instance) -> None: ...

    @abstractmethod
    async def restart(self, instance: Instance) -> None: ...

    @abstractmethod
    async def is_running(self, instance: Instance) -> bool:
        """Map the provider's own "running" indicators to a boolean."""

    @abstractmethod
    async def get_logs(self, instance: Instance, tail: int = 100) -> str: ...
