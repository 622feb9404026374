"""Run `openclaw` CLI commands inside a Fly.io machine through `flyctl ssh console`."""

import asyncio
import os
import time

from clawhost.config import Settings
from clawhost.errors import CommandProxyError
from clawhost.logging_config import get_logger
from clawhost.schemas import (
    ApprovalResult,
    ChannelStatus,
    CommandResult,
    DoctorReport,
    GatewayHealth,
    PendingDevice,
    QRCodeResult,
)

from . import parsers

logger = get_logger(__name__)

DEFAULT_TIMEOUT = 30
HEALTH_TIMEOUT = 10


class CommandProxy:
    """Executes commands in a deployed instance and parses their output.

    flyctl authenticates with FLY_API_TOKEN from the process environment,
    overridden by settings.fly_api_token when set.
    """

    def __init__(self, settings: Settings):
        self.flyctl_path = settings.flyctl_path
        self._api_token = settings.fly_api_token

    def _build_argv(self, app_name: str, command: str, machine_id: str | None) -> list[str]:
        argv = [self.flyctl_path, "ssh", "console"]
        if machine_id:
            argv += ["--machine", machine_id]
        argv += ["--app", app_name, "--command", command]
        return argv

    def _build_env(self) -> dict[str, str]:
        env = dict(os.environ)
        if self._api_token:
            env["FLY_API_TOKEN"] = self._api_token
        return env

    async def execute(
        self,
        app_name: str,
        command: str,
        timeout: float = DEFAULT_TIMEOUT,
        machine_id: str | None = None,
    ) -> CommandResult:
        """Run `command` inside the app's machine.

        Args:
            app_name: Fly app bound to the instance.
            command: Command line executed by the remote shell.
            timeout: Seconds before the flyctl process is killed.
            machine_id: Target a specific machine instead of any in the app.

        Raises:
            CommandProxyError: flyctl missing, non-zero exit, or timeout.
        """
        argv = self._build_argv(app_name, command, machine_id)
        logger.info("ssh_command_started", app_name=app_name, command=command)
        start = time.time()

        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=self._build_env(),
            )
        except FileNotFoundError as e:
            logger.error("flyctl_missing", flyctl_path=self.flyctl_path)
            raise CommandProxyError(f"SSH command failed: {self.flyctl_path} not found") from e

        try:
            stdout_b, stderr_b = await asyncio.wait_for(process.communicate(), timeout=timeout)
        except TimeoutError as e:
            process.kill()
            await process.wait()
            logger.warning(
                "ssh_command_timeout", app_name=app_name, command=command, timeout=timeout
            )
            raise CommandProxyError(f"SSH command failed: timed out after {timeout}s") from e

        stdout = stdout_b.decode(errors="replace")
        stderr = stderr_b.decode(errors="replace")
        duration_ms = (time.time() - start) * 1000

        if process.returncode != 0:
            logger.error(
                "ssh_command_failed",
                app_name=app_name,
                command=command,
                return_code=process.returncode,
                stderr_preview=stderr[:200],
                duration_ms=round(duration_ms, 2),
            )
            raise CommandProxyError(
                f"SSH command failed: exit code {process.returncode}: {stderr.strip()[:500]}",
                stdout=stdout,
                stderr=stderr,
            )

        logger.info(
            "ssh_command_completed",
            app_name=app_name,
            command=command,
            duration_ms=round(duration_ms, 2),
        )
        return CommandResult(stdout=stdout, stderr=stderr)

    async def list_pending_devices(self, app_name: str) -> list[PendingDevice]:
        result = await self.execute(app_name, "openclaw devices list --json")
        return parsers.parse_pending_devices(result.stdout)

    async def approve_device(self, app_name: str, request_id: str) -> ApprovalResult:
        """Approve a pairing request.

        Success is inferred from the absence of "error"/"failed" in the output;
        the CLI gives no structured result for this command.
        """
        command = f"openclaw devices approve {parsers.sanitize_command(request_id)}"
        try:
            result = await self.execute(app_name, command)
        except CommandProxyError as e:
            return ApprovalResult(success=False, message=(e.stdout + e.stderr) or str(e))

        return ApprovalResult(
            success=parsers.approval_succeeded(result.stdout, result.stderr),
            message=result.stdout + result.stderr,
        )

    async def list_channels(self, app_name: str) -> list[ChannelStatus]:
        result = await self.execute(app_name, "openclaw channels list --json")
        return parsers.parse_channels(result.stdout)

    async def get_whatsapp_qr(self, app_name: str) -> QRCodeResult:
        result = await self.execute(app_name, 'openclaw logs --grep "QR Code" --tail 100')
        return QRCodeResult(qr_code=parsers.extract_whatsapp_qr(result.stdout), expires=None)

    async def run_doctor(self, app_name: str) -> DoctorReport:
        result = await self.execute(app_name, "openclaw doctor --json")
        return parsers.parse_doctor_report(result.stdout, result.stderr)

    async def get_gateway_health(self, app_name: str) -> GatewayHealth:
        try:
            result = await self.execute(app_name, "openclaw health --json", timeout=HEALTH_TIMEOUT)
        except CommandProxyError as e:
            logger.warning("gateway_health_unknown", app_name=app_name, error=str(e))
            return GatewayHealth(status="unknown")
        return parsers.parse_gateway_health(result.stdout)

    async def execute_openclaw_command(self, app_name: str, command: str) -> CommandResult:
        """Run an arbitrary `openclaw` sub-command after stripping shell metacharacters."""
        sanitized = parsers.sanitize_command(command)
        return await self.execute(app_name, f"openclaw {sanitized}")
