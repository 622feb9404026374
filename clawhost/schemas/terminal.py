"""Structured results of commands run inside an instance, and the terminal route payloads."""

from typing import Annotated, Any, Literal

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, field_validator

TRUTHY = frozenset({"true", "yes", "1", "connected", "online", "running"})


def _as_text(value: Any) -> Any:
    """CLI JSON is loosely typed; ids, versions and timestamps may come as numbers."""
    if isinstance(value, int | float) and not isinstance(value, bool):
        return str(value)
    return value


LooseText = Annotated[str | None, BeforeValidator(_as_text)]


class CommandResult(BaseModel):
    stdout: str = ""
    stderr: str = ""


class PendingDevice(BaseModel):
    """Device pairing request waiting for approval."""

    model_config = ConfigDict(populate_by_name=True)

    request_id: LooseText = Field(None, alias="requestId")
    channel: LooseText = None
    identifier: LooseText = None
    timestamp: LooseText = None


class ApprovalResult(BaseModel):
    success: bool
    message: str


class ChannelStatus(BaseModel):
    model_config = ConfigDict(extra="allow")

    name: LooseText = None
    type: LooseText = None
    status: LooseText = None
    connected: bool = False

    @field_validator("connected", mode="before")
    @classmethod
    def coerce_connected(cls, value: Any) -> bool:
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            return value.strip().lower() in TRUTHY
        return bool(value)


class QRCodeResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    qr_code: str | None = Field(None, alias="qrCode")
    expires: str | None = None


class DoctorReport(BaseModel):
    healthy: bool
    issues: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


class GatewayHealth(BaseModel):
    status: Literal["healthy", "unhealthy", "unknown"]
    # Seconds, or a preformatted duration such as "3h12m"
    uptime: float | str | None = None
    version: LooseText = None


TerminalAction = Literal[
    "list-devices",
    "approve-device",
    "get-whatsapp-qr",
    "run-doctor",
    "check-health",
    "list-channels",
    "execute",
]


class TerminalRequest(BaseModel):
    """Body of POST /api/instance/terminal."""

    model_config = ConfigDict(populate_by_name=True)

    action: str
    command: str | None = None
    request_id: str | None = Field(None, alias="requestId")


class TerminalCapabilities(BaseModel):
    ssh: bool = True
    device_approval: bool = True
    channel_management: bool = True
    qr_code_access: bool = True


class TerminalStatus(BaseModel):
    health: GatewayHealth | None = None
    doctor: DoctorReport | None = None
    channels: list[ChannelStatus] | None = None
    devices: list[PendingDevice] | None = None


class TerminalInfo(BaseModel):
    """Body of GET /api/instance/terminal."""

    app_name: str
    capabilities: TerminalCapabilities = Field(default_factory=TerminalCapabilities)
    status: TerminalStatus
