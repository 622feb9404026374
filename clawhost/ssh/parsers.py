"""Parsers for `openclaw` CLI output captured over SSH.

The CLI is asked for JSON first. Older builds and some sub-commands print
human-oriented text instead, so each parser falls back to a line heuristic.
"""

import json
import re
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from clawhost.logging_config import get_logger
from clawhost.schemas import ChannelStatus, DoctorReport, GatewayHealth, PendingDevice

logger = get_logger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

# Prefixes the terminal route lets through to `execute`
ALLOWED_COMMAND_PREFIXES = (
    "devices list",
    "devices approve",
    "channels list",
    "channels status",
    "health",
    "status",
    "doctor",
    "logs",
    "pairing list",
    "pairing approve",
)

# Shell metacharacters removed before a command is forwarded
DISALLOWED_CHARS = re.compile(r"[;&|`$()]")

QR_CODE_PATTERN = re.compile(r"QR Code:?\s*(.+?)(?:\n\n|\n[A-Z]|\Z)", re.IGNORECASE | re.DOTALL)

APPROVAL_FAILURE_MARKERS = ("error", "failed")

DEVICE_LABELS = {
    "Request ID:": "request_id",
    "Channel:": "channel",
    "Identifier:": "identifier",
    "Timestamp:": "timestamp",
}


def _load_json(output: str) -> Any:
    """Decode JSON output, or return None when the output is not JSON."""
    try:
        return json.loads(output)
    except ValueError:
        return None


def _validate_items(model: type[ModelT], items: list[Any]) -> list[ModelT]:
    """Validate JSON objects, dropping entries the CLI emitted in an unexpected shape."""
    parsed: list[ModelT] = []
    for item in items:
        if not isinstance(item, dict):
            continue
        try:
            parsed.append(model.model_validate(item))
        except ValidationError as e:
            logger.warning("cli_output_item_skipped", model=model.__name__, error=str(e))
    return parsed


def sanitize_command(command: str) -> str:
    """Strip shell metacharacters. Mitigates injection; it is not a sandbox."""
    return DISALLOWED_CHARS.sub("", command)


def is_allowed_command(command: str) -> bool:
    return command.strip().startswith(ALLOWED_COMMAND_PREFIXES)


def _parse_device_text(output: str) -> list[PendingDevice]:
    """Parse labelled text blocks.

    Expected format, one block per request:
        Request ID: abc123
        Channel: whatsapp
        Identifier: +1234567890
        Timestamp: 2026-02-06T10:30:00Z
    """
    devices: list[PendingDevice] = []
    current: dict[str, str] = {}

    for raw_line in output.splitlines():
        line = raw_line.strip()
        for label, field in DEVICE_LABELS.items():
            if not line.startswith(label):
                continue
            if field == "request_id" and current.get("request_id"):
                devices.append(PendingDevice(**current))
                current = {}
            # Everything after the first colon; timestamps keep their own colons
            current[field] = line.partition(":")[2].strip()
            break

    if current.get("request_id"):
        devices.append(PendingDevice(**current))

    return devices


def _normalize_device(item: dict[str, Any]) -> dict[str, Any]:
    if "requestId" not in item and "request_id" not in item and "id" in item:
        item = {**item, "request_id": item["id"]}
    return item


def parse_pending_devices(output: str) -> list[PendingDevice]:
    """Parse `openclaw devices list --json` output, falling back to the text format."""
    payload = _load_json(output)
    if payload is None:
        return _parse_device_text(output)

    if isinstance(payload, dict):
        payload = payload.get("pending") or payload.get("devices") or payload.get("requests") or []
    if not isinstance(payload, list):
        return []

    return _validate_items(
        PendingDevice, [_normalize_device(item) for item in payload if isinstance(item, dict)]
    )


def approval_succeeded(stdout: str, stderr: str) -> bool:
    """Heuristic: the approve command printed neither "error" nor "failed" (case-sensitive)."""
    return not any(
        marker in stream for marker in APPROVAL_FAILURE_MARKERS for stream in (stdout, stderr)
    )


def parse_channels(output: str) -> list[ChannelStatus]:
    """Parse `openclaw channels list --json`. Text output yields an empty list."""
    payload = _load_json(output)

    if isinstance(payload, dict):
        if isinstance(payload.get("channels"), list):
            payload = payload["channels"]
        else:
            # Keyed by channel name: {"telegram": {...}, ...}
            payload = [
                {"name": name, **info} for name, info in payload.items() if isinstance(info, dict)
            ]
    if not isinstance(payload, list):
        return []

    return _validate_items(ChannelStatus, payload)


def parse_doctor_report(stdout: str, stderr: str = "") -> DoctorReport:
    """Parse `openclaw doctor --json`, classifying text lines when JSON is unavailable."""
    payload = _load_json(stdout)
    if isinstance(payload, dict):
        return DoctorReport(
            healthy=bool(payload.get("healthy", False)),
            issues=[str(i) for i in payload.get("issues") or []],
            warnings=[str(w) for w in payload.get("warnings") or []],
        )

    issues: list[str] = []
    warnings: list[str] = []
    for line in "\n".join((stdout, stderr)).splitlines():
        lowered = line.lower()
        if "error" in lowered or "issue" in lowered:
            issues.append(line.strip())
        elif "warn" in lowered:
            warnings.append(line.strip())

    return DoctorReport(healthy=not issues, issues=issues, warnings=warnings)


def parse_gateway_health(output: str) -> GatewayHealth:
    """Parse `openclaw health --json`. Anything unparseable is reported as unknown."""
    payload = _load_json(output)
    if not isinstance(payload, dict):
        return GatewayHealth(status="unknown")

    healthy = payload.get("status") == "ok" or payload.get("ok") is True
    try:
        return GatewayHealth(
            status="healthy" if healthy else "unhealthy",
            uptime=payload.get("uptime") or None,
            version=payload.get("version") or None,
        )
    except ValidationError as e:
        logger.warning("gateway_health_unparseable", error=str(e))
        return GatewayHealth(status="unknown")


def extract_whatsapp_qr(output: str) -> str | None:
    """Return the first QR code block found in log output."""
    match = QR_CODE_PATTERN.search(output)
    if match and match.group(1).strip():
        return match.group(1).strip()
    return None
