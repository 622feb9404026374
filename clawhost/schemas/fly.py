"""Pydantic schemas for Fly.io Machines API responses.

API Documentation: https://fly.io/docs/machines/api/
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class FlyApp(BaseModel):
    """App from GET /apps/{app_name} or POST /apps."""

    model_config = ConfigDict(extra="allow")

    id: str | None = Field(None, description="App id")
    name: str | None = Field(None, description="App name (also the hostname prefix)")
    status: str | None = Field(None, description="App status")
    organization: dict[str, Any] | None = Field(None, description="Owning organization")


class FlyMachine(BaseModel):
    """Machine from GET /apps/{app_name}/machines/{machine_id}."""

    model_config = ConfigDict(extra="allow")

    id: str = Field(..., description="Machine id")
    name: str | None = Field(None, description="Machine display name")
    state: str = Field(..., description="created, starting, started, stopped, failed, ...")
    region: str | None = Field(None, description="Region code (e.g. iad)")
    instance_id: str | None = Field(None, description="Current machine version")
    private_ip: str | None = Field(None, description="6PN private address")
    config: dict[str, Any] = Field(default_factory=dict, description="Machine config as submitted")
    created_at: str | None = Field(None, description="ISO creation timestamp")

    @property
    def is_running(self) -> bool:
        """Fly reports a live machine as started; older responses say running."""
        return self.state in ("started", "running")


class FlyGuest(BaseModel):
    """Guest (VM size) section of a machine config."""

    cpu_kind: str = "shared"
    cpus: int = 1
    memory_mb: int = 256


class FlyServicePort(BaseModel):
    port: int
    handlers: list[str] = Field(default_factory=list)


class FlyService(BaseModel):
    """Public service exposed by a machine."""

    protocol: str = "tcp"
    internal_port: int
    ports: list[FlyServicePort] = Field(default_factory=list)
    autostop: bool = False
    autostart: bool = True


class MachineSpec(BaseModel):
    """Desired machine configuration passed to FlyClient.create_machine."""

    image: str
    env: dict[str, str] = Field(default_factory=dict)
    cmd: list[str] | None = None
    region: str = "iad"
    guest: FlyGuest = Field(default_factory=FlyGuest)
    services: list[FlyService] | None = None


class FlyIPAddress(BaseModel):
    """IP address allocated through the GraphQL allocateIpAddress mutation."""

    model_config = ConfigDict(extra="allow")

    id: str
    address: str
    type: str
