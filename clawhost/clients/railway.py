"""Railway GraphQL API client.

Docs: https://docs.railway.com/reference/public-api
Every operation is a GraphQL query or mutation against a single endpoint.
"""

from typing import Any

from clawhost.config import Settings
from clawhost.errors import ProviderConfigError, ProviderTimeoutError
from clawhost.logging_config import get_logger
from clawhost.schemas import RailwayDeployment, RailwayLogLine, RailwayService

from .base import ProviderClient, wait_for_state

logger = get_logger(__name__)

RAILWAY_GRAPHQL_URL = "https://backboard.railway.com/graphql/v2"

DEPLOYMENT_TERMINAL_STATES = frozenset({"FAILED", "CRASHED", "REMOVED"})

PROJECT_ENVIRONMENTS_QUERY = """
query projectEnvironments($id: String!) {
  project(id: $id) {
    environments {
      edges { node { id name } }
    }
  }
}
"""

SERVICE_CREATE_MUTATION = """
mutation serviceCreate($input: ServiceCreateInput!) {
  serviceCreate(input: $input) { id name }
}
"""

SERVICE_DELETE_MUTATION = """
mutation serviceDelete($id: String!, $environmentId: String) {
  serviceDelete(id: $id, environmentId: $environmentId)
}
"""

VARIABLES_UPSERT_MUTATION = """
mutation variableCollectionUpsert($input: VariableCollectionUpsertInput!) {
  variableCollectionUpsert(input: $input)
}
"""

SERVICE_INSTANCE_UPDATE_MUTATION = """
mutation serviceInstanceUpdate(
  $serviceId: String!, $environmentId: String, $input: ServiceInstanceUpdateInput!
) {
  serviceInstanceUpdate(serviceId: $serviceId, environmentId: $environmentId, input: $input)
}
"""

SERVICE_INSTANCE_DEPLOY_MUTATION = """
mutation serviceInstanceDeploy($serviceId: String!, $environmentId: String!) {
  serviceInstanceDeploy(serviceId: $serviceId, environmentId: $environmentId)
}
"""

LATEST_DEPLOYMENT_QUERY = """
query latestDeployment($input: DeploymentListInput!) {
  deployments(first: 1, input: $input) {
    edges { node { id status staticUrl createdAt } }
  }
}
"""

DEPLOYMENT_RESTART_MUTATION = """
mutation deploymentRestart($id: String!) {
  deploymentRestart(id: $id)
}
"""

DEPLOYMENT_STOP_MUTATION = """
mutation deploymentStop($id: String!) {
  deploymentStop(id: $id)
}
"""

SERVICE_DOMAIN_CREATE_MUTATION = """
mutation serviceDomainCreate($input: ServiceDomainCreateInput!) {
  serviceDomainCreate(input: $input) { domain }
}
"""

DEPLOYMENT_LOGS_QUERY = """
query deploymentLogs($deploymentId: String!, $limit: Int) {
  deploymentLogs(deploymentId: $deploymentId, limit: $limit) { message timestamp severity }
}
"""


class RailwayClient(ProviderClient):
    """Client for the Railway public GraphQL API."""

    provider = "railway"

    def __init__(
        self,
        api_token: str | None = None,
        project_id: str | None = None,
        environment_id: str | None = None,
        settings: Settings | None = None,
    ):
        """Initialize Railway client.

        Args:
            api_token: Railway account or team token. Defaults to settings.railway_api_token.
            project_id: Project services are created in. Defaults to settings.railway_project_id.
            environment_id: Target environment. Resolved to "production" when unset.
            settings: Settings to read defaults from.

        Raises:
            ProviderConfigError: Token or project id is missing.
        """
        api_token = api_token or (settings.railway_api_token if settings else None)
        project_id = project_id or (settings.railway_project_id if settings else None)

        if not api_token:
            raise ProviderConfigError(
                "Missing RAILWAY_API_TOKEN environment variable. "
                "Get one at: https://railway.com/account/tokens"
            )
        if not project_id:
            raise ProviderConfigError(
                "Missing RAILWAY_PROJECT_ID environment variable. "
                "Find it in the project settings at: https://railway.com/dashboard"
            )

        super().__init__(api_token)
        self.project_id = project_id
        self._environment_id = environment_id or (
            settings.railway_environment_id if settings else None
        )

    async def _gql(self, query: str, variables: dict[str, Any] | None = None) -> dict[str, Any]:
        return await self._graphql(RAILWAY_GRAPHQL_URL, query, variables)

    async def get_environment_id(self) -> str:
        """Resolve the target environment, preferring one named "production"."""
        if self._environment_id:
            return self._environment_id

        data = await self._gql(PROJECT_ENVIRONMENTS_QUERY, {"id": self.project_id})
        environments = [e["node"] for e in data["project"]["environments"]["edges"]]
        if not environments:
            raise ProviderConfigError(f"Railway project {self.project_id} has no environments")

        chosen = next((e for e in environments if e["name"] == "production"), environments[0])
        self._environment_id = chosen["id"]
        logger.debug("railway_environment_resolved", environment=chosen["name"])
        return self._environment_id

    async def create_service(self, name: str, image: str) -> RailwayService:
        logger.info("railway_service_create_started", service_name=name)
        data = await self._gql(
            SERVICE_CREATE_MUTATION,
            {"input": {"projectId": self.project_id, "name": name, "source": {"image": image}}},
        )
        service = RailwayService.model_validate(data["serviceCreate"])
        logger.info("railway_service_created", service_name=name, service_id=service.id)
        return service

    async def delete_service(self, service_id: str) -> None:
        logger.info("railway_service_delete_started", service_id=service_id)
        await self._gql(
            SERVICE_DELETE_MUTATION,
            {"id": service_id, "environmentId": await self.get_environment_id()},
        )
        logger.info("railway_service_deleted", service_id=service_id)

    async def upsert_variables(self, service_id: str, variables: dict[str, str]) -> None:
        """Set service variables without triggering a deploy per change."""
        logger.info("railway_variables_upsert_started", service_id=service_id, count=len(variables))
        await self._gql(
            VARIABLES_UPSERT_MUTATION,
            {
                "input": {
                    "projectId": self.project_id,
                    "environmentId": await self.get_environment_id(),
                    "serviceId": service_id,
                    "variables": variables,
                    "skipDeploys": True,
                }
            },
        )
        logger.info("railway_variables_upserted", service_id=service_id)

    async def update_service_instance(
        self, service_id: str, start_command: str | None = None, region: str | None = None
    ) -> None:
        service_input: dict[str, Any] = {}
        if start_command:
            service_input["startCommand"] = start_command
        if region:
            service_input["region"] = region
        if not service_input:
            return

        await self._gql(
            SERVICE_INSTANCE_UPDATE_MUTATION,
            {
                "serviceId": service_id,
                "environmentId": await self.get_environment_id(),
                "input": service_input,
            },
        )
        logger.info("railway_service_instance_updated", service_id=service_id)

    async def deploy_service(self, service_id: str) -> None:
        logger.info("railway_deploy_started", service_id=service_id)
        await self._gql(
            SERVICE_INSTANCE_DEPLOY_MUTATION,
            {"serviceId": service_id, "environmentId": await self.get_environment_id()},
        )
        logger.info("railway_deploy_triggered", service_id=service_id)

    async def get_latest_deployment(self, service_id: str) -> RailwayDeployment | None:
        data = await self._gql(
            LATEST_DEPLOYMENT_QUERY,
            {
                "input": {
                    "projectId": self.project_id,
                    "environmentId": await self.get_environment_id(),
                    "serviceId": service_id,
                }
            },
        )
        edges = data["deployments"]["edges"]
        if not edges:
            return None
        return RailwayDeployment.model_validate(edges[0]["node"])

    async def _require_latest_deployment(self, service_id: str) -> RailwayDeployment:
        deployment = await self.get_latest_deployment(service_id)
        if deployment is None:
            raise ProviderConfigError(f"Railway service {service_id} has no deployments")
        return deployment

    async def restart_deployment(self, service_id: str) -> None:
        deployment = await self._require_latest_deployment(service_id)
        logger.info("railway_restart_started", service_id=service_id, deployment_id=deployment.id)
        await self._gql(DEPLOYMENT_RESTART_MUTATION, {"id": deployment.id})
        logger.info("railway_restarted", service_id=service_id, deployment_id=deployment.id)

    async def stop_deployment(self, service_id: str) -> None:
        deployment = await self._require_latest_deployment(service_id)
        logger.info("railway_stop_started", service_id=service_id, deployment_id=deployment.id)
        await self._gql(DEPLOYMENT_STOP_MUTATION, {"id": deployment.id})
        logger.info("railway_stopped", service_id=service_id, deployment_id=deployment.id)

    async def create_service_domain(self, service_id: str) -> str:
        """Generate a public *.up.railway.app domain for the service."""
        data = await self._gql(
            SERVICE_DOMAIN_CREATE_MUTATION,
            {
                "input": {
                    "serviceId": service_id,
                    "environmentId": await self.get_environment_id(),
                }
            },
        )
        domain = data["serviceDomainCreate"]["domain"]
        logger.info("railway_domain_created", service_id=service_id, domain=domain)
        return domain

    async def get_deployment_logs(self, service_id: str, limit: int = 100) -> list[RailwayLogLine]:
        deployment = await self._require_latest_deployment(service_id)
        data = await self._gql(
            DEPLOYMENT_LOGS_QUERY, {"deploymentId": deployment.id, "limit": limit}
        )
        return [RailwayLogLine.model_validate(line) for line in data["deploymentLogs"]]

    async def wait_for_deployment(
        self, service_id: str, timeout: float = 300, poll_interval: float = 5
    ) -> RailwayDeployment:
        """Poll the service's latest deployment until it reports SUCCESS.

        Raises:
            ProviderTerminalStateError: Deployment FAILED, CRASHED or was REMOVED.
            ProviderTimeoutError: No successful deployment within timeout.
        """

        async def fetch() -> RailwayDeployment:
            deployment = await self.get_latest_deployment(service_id)
            # Deployment may not be registered yet right after serviceInstanceDeploy
            return deployment or RailwayDeployment(id="", status="QUEUED")

        try:
            return await wait_for_state(
                fetch,
                get_state=lambda d: d.status,
                target_state="SUCCESS",
                terminal_states=DEPLOYMENT_TERMINAL_STATES,
                timeout=timeout,
                poll_interval=poll_interval,
                provider=self.provider,
                resource=f"service {service_id}",
            )
        except ProviderTimeoutError:
            logger.error("railway_deploy_timeout", service_id=service_id, timeout=timeout)
            raise
