"""Pydantic schemas for provider payloads, command results and API bodies."""

from .fly import FlyApp, FlyGuest, FlyIPAddress, FlyMachine, FlyService, FlyServicePort, MachineSpec
from .instance import (
    DeploymentLogRead,
    DeploymentResult,
    HealthCheckResult,
    InstanceLogs,
    InstanceRead,
)
from .railway import RailwayDeployment, RailwayLogLine, RailwayService
from .render import RenderDeploy, RenderService, RenderServiceDetails
from .terminal import (
    ApprovalResult,
    ChannelStatus,
    CommandResult,
    DoctorReport,
    GatewayHealth,
    PendingDevice,
    QRCodeResult,
    TerminalCapabilities,
    TerminalInfo,
    TerminalRequest,
    TerminalStatus,
)

__all__ = [
    "ApprovalResult",
    "ChannelStatus",
    "CommandResult",
    "DeploymentLogRead",
    "DeploymentResult",
    "DoctorReport",
    "FlyApp",
    "FlyGuest",
    "FlyIPAddress",
    "FlyMachine",
    "FlyService",
    "FlyServicePort",
    "GatewayHealth",
    "HealthCheckResult",
    "InstanceLogs",
    "InstanceRead",
    "MachineSpec",
    "PendingDevice",
    "QRCodeResult",
    "RailwayDeployment",
    "RailwayLogLine",
    "RailwayService",
    "RenderDeploy",
    "RenderService",
    "RenderServiceDetails",
    "TerminalCapabilities",
    "TerminalInfo",
    "TerminalRequest",
    "TerminalStatus",
]
