"""Render API client.

Docs: https://render.com/docs/api
"""

from typing import Any

from clawhost.config import Settings
from clawhost.errors import ProviderConfigError
from clawhost.logging_config import get_logger
from clawhost.schemas import RenderDeploy, RenderService

from .base import ProviderClient, wait_for_state

logger = get_logger(__name__)

RENDER_API_URL = "https://api.render.com/v1"

DEPLOY_TERMINAL_STATES = frozenset({"build_failed", "update_failed", "canceled", "deactivated"})


def _unwrap_list(data: Any, key: str) -> list[dict[str, Any]]:
    """Normalize Render list responses.

    Current API: [{"service": {...}, "cursor": "..."}, ...]
    Legacy shape: {"service": [...]}
    """
    if isinstance(data, dict):
        items = data.get(key) or []
        return items if isinstance(items, list) else [items]
    return [item.get(key, item) if isinstance(item, dict) else item for item in data or []]


class RenderClient(ProviderClient):
    """Client for the Render REST API."""

    provider = "render"
    base_url = RENDER_API_URL

    def __init__(
        self,
        api_key: str | None = None,
        owner_id: str | None = None,
        settings: Settings | None = None,
    ):
        """Initialize Render client.

        Args:
            api_key: Render API key. Defaults to settings.render_api_key.
            owner_id: Workspace owning new services. Resolved from /owners when unset.
            settings: Settings to read defaults from.

        Raises:
            ProviderConfigError: API key is missing.
        """
        api_key = api_key or (settings.render_api_key if settings else None)
        if not api_key:
            raise ProviderConfigError(
                "Missing RENDER_API_KEY environment variable. "
                "Get one at: https://dashboard.render.com/u/settings#api-keys"
            )
        super().__init__(api_key)
        self.owner_id = owner_id or (settings.render_owner_id if settings else None)
        logger.debug("render_client_initialized", owner_configured=self.owner_id is not None)

    async def get_owner_id(self) -> str:
        """Return the configured owner id, or the first workspace the key can see."""
        if self.owner_id:
            return self.owner_id
        owners = _unwrap_list(await self._request("GET", "/owners"), "owner")
        if not owners:
            raise ProviderConfigError(
                "Render API key has no workspaces; set RENDER_OWNER_ID explicitly"
            )
        self.owner_id = owners[0]["id"]
        return self.owner_id

    async def create_service(
        self,
        name: str,
        image: str,
        env: dict[str, str],
        plan: str = "starter",
        region: str = "oregon",
        start_command: str | None = None,
    ) -> RenderService:
        """Create a web service running a pre-built image. Render deploys it right away."""
        logger.info("render_service_create_started", service_name=name, region=region, plan=plan)
        owner_id = await self.get_owner_id()

        service_details: dict[str, Any] = {"runtime": "image", "plan": plan, "region": region}
        if start_command:
            service_details["envSpecificDetails"] = {"dockerCommand": start_command}

        data = await self._request(
            "POST",
            "/services",
            json_body={
                "type": "web_service",
                "name": name,
                "ownerId": owner_id,
                "image": {"ownerId": owner_id, "imagePath": image},
                "envVars": [{"key": k, "value": v} for k, v in env.items()],
                "serviceDetails": service_details,
            },
        )
        service = RenderService.model_validate(data.get("service", data))
        logger.info("render_service_created", service_name=name, service_id=service.id)
        return service

    async def get_service(self, service_id: str) -> RenderService:
        data = await self._request("GET", f"/services/{service_id}")
        return RenderService.model_validate(data)

    async def list_services(self, limit: int = 100) -> list[RenderService]:
        data = await self._request("GET", "/services", params={"limit": limit})
        return [RenderService.model_validate(item) for item in _unwrap_list(data, "service")]

    async def delete_service(self, service_id: str) -> None:
        logger.info("render_service_delete_started", service_id=service_id)
        await self._request("DELETE", f"/services/{service_id}")
        logger.info("render_service_deleted", service_id=service_id)

    async def suspend_service(self, service_id: str) -> None:
        logger.info("render_service_suspend_started", service_id=service_id)
        await self._request("POST", f"/services/{service_id}/suspend")
        logger.info("render_service_suspended", service_id=service_id)

    async def resume_service(self, service_id: str) -> None:
        logger.info("render_service_resume_started", service_id=service_id)
        await self._request("POST", f"/services/{service_id}/resume")
        logger.info("render_service_resumed", service_id=service_id)

    async def restart_service(self, service_id: str) -> None:
        logger.info("render_service_restart_started", service_id=service_id)
        await self._request("POST", f"/services/{service_id}/restart")
        logger.info("render_service_restarted", service_id=service_id)

    async def update_env_vars(self, service_id: str, env: dict[str, str]) -> None:
        """Replace the service's environment variables."""
        logger.info("render_env_vars_update_started", service_id=service_id, count=len(env))
        await self._request(
            "PUT",
            f"/services/{service_id}/env-vars",
            json_body=[{"key": k, "value": v} for k, v in env.items()],
        )
        logger.info("render_env_vars_updated", service_id=service_id)

    async def deploy(self, service_id: str) -> RenderDeploy:
        logger.info("render_deploy_trigger_started", service_id=service_id)
        data = await self._request("POST", f"/services/{service_id}/deploys")
        deploy = RenderDeploy.model_validate(data)
        logger.info("render_deploy_triggered", service_id=service_id, deploy_id=deploy.id)
        return deploy

    async def get_deploy(self, service_id: str, deploy_id: str) -> RenderDeploy:
        data = await self._request("GET", f"/services/{service_id}/deploys/{deploy_id}")
        return RenderDeploy.model_validate(data)

    async def list_deploys(self, service_id: str, limit: int = 20) -> list[RenderDeploy]:
        data = await self._request(
            "GET", f"/services/{service_id}/deploys", params={"limit": limit}
        )
        return [RenderDeploy.model_validate(item) for item in _unwrap_list(data, "deploy")]

    async def wait_for_deploy(
        self,
        service_id: str,
        deploy_id: str,
        timeout: float = 300,
        poll_interval: float = 5,
    ) -> RenderDeploy:
        """Poll a deploy until it is live.

        Raises:
            ProviderTerminalStateError: Deploy failed, was canceled or deactivated.
            ProviderTimeoutError: Deploy not live within timeout.
        """
        return await wait_for_state(
            lambda: self.get_deploy(service_id, deploy_id),
            get_state=lambda d: d.status,
            target_state="live",
            terminal_states=DEPLOY_TERMINAL_STATES,
            timeout=timeout,
            poll_interval=poll_interval,
            provider=self.provider,
            resource=f"deploy {deploy_id}",
        )

    def get_service_url(self, service: RenderService) -> str:
        return service.service_details.url or f"https://{service.name}.onrender.com"

    def get_shell_url(self, service_id: str) -> str:
        """Dashboard page with a browser shell into the service."""
        return f"https://dashboard.render.com/web/{service_id}/shell"
