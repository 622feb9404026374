"""Pydantic schemas for instances and their deployment history."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class InstanceRead(BaseModel):
    """Schema for reading an instance. The gateway token is never exposed."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    provider: str
    container_id: str | None
    container_name: str | None
    port: int
    status: str
    access_url: str | None
    service_url: str | None
    last_health_check: datetime | None
    created_at: datetime
    updated_at: datetime


class DeploymentLogRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    instance_id: str
    action: str
    status: str
    message: str
    error: str | None
    created_at: datetime


class DeploymentResult(BaseModel):
    """Outcome of deploy_instance.

    `status` is RUNNING or ERROR; a returned result does not imply a healthy instance.
    """

    instance_id: str
    resource_id: str
    resource_name: str
    port: int
    access_url: str
    shell_url: str | None = None
    status: str


class HealthCheckResult(BaseModel):
    instance_id: str
    healthy: bool


class InstanceLogs(BaseModel):
    instance_id: str
    logs: str
