"""Database models package."""

from .base import Base
from .deployment_log import DeploymentAction, DeploymentLog, DeploymentLogStatus
from .instance import Instance, InstanceStatus

__all__ = [
    "Base",
    "DeploymentAction",
    "DeploymentLog",
    "DeploymentLogStatus",
    "Instance",
    "InstanceStatus",
]
