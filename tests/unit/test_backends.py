from unittest.mock import MagicMock

import pytest

from clawhost.clients import FlyClient, RailwayClient, RenderClient
from clawhost.deploy import ProvisionedResource, ProvisionRequest, get_backend, list_backends
from clawhost.deploy.fly import FlyBackend, to_base36
from clawhost.deploy.railway import RailwayBackend
from clawhost.deploy.render import RenderBackend
from clawhost.errors import ProviderAPIError
from clawhost.models import Instance
from clawhost.schemas import FlyMachine, RailwayDeployment, RenderService


@pytest.fixture
def request_() -> ProvisionRequest:
    return ProvisionRequest(
        name="openclaw-user1",
        image="ghcr.io/openclaw/openclaw:latest",
        env={"OPENCLAW_CONFIG": "{}", "NODE_ENV": "production"},
        secrets={"OPENCLAW_GATEWAY_TOKEN": "tok", "ANTHROPIC_API_KEY": "sk"},
        start_command="mkdir -p /home/node/.openclaw && exec node dist/index.js gateway",
        gateway_port=18789,
    )


def _instance(**values) -> Instance:
    defaults = {
        "user_id": "user-1",
        "provider": "fly",
        "port": 20000,
        "container_id": "res-1",
        "container_name": "openclaw-user1",
    }
    defaults.update(values)
    return Instance(**defaults)


def test_registry_lists_all_providers():
    assert list_backends() == ["fly", "railway", "render"]


def test_registry_resolves_backend(settings):
    assert isinstance(get_backend("render", settings), RenderBackend)


def test_registry_rejects_unknown_provider(settings):
    with pytest.raises(ValueError, match="Unknown provider: heroku"):
        get_backend("heroku", settings)


def test_base36():
    assert to_base36(0) == "0"
    assert to_base36(35) == "z"
    assert to_base36(36) == "10"


class TestFlyBackend:
    @pytest.fixture
    def client(self):
        client = MagicMock(spec=FlyClient)
        client.get_app_url.return_value = "https://openclaw-user1.fly.dev"
        return client

    @pytest.fixture
    def backend(self, settings, client) -> FlyBackend:
        return FlyBackend(settings, client=client)

    def test_resource_name_is_unique_per_call(self, backend):
        name = backend.resource_name("User_ABCDEFGHIJ")
        assert name.startswith("openclaw-userabcd-")
        assert name == name.lower()

    @pytest.mark.asyncio
    async def test_prepare_verifies_token_and_creates_app(self, backend, client):
        assert await backend.prepare("openclaw-user1") == "openclaw-user1"
        client.verify_access.assert_awaited_once()
        client.create_app.assert_awaited_once_with("openclaw-user1")

    @pytest.mark.asyncio
    async def test_provision_sets_secrets_then_creates_machine(self, backend, client, request_):
        client.create_machine.return_value = FlyMachine(id="m-1", state="created")

        resource = await backend.provision(request_)

        assert resource == ProvisionedResource(resource_id="m-1", resource_name="openclaw-user1")
        client.set_secrets.assert_awaited_once_with("openclaw-user1", request_.secrets)
        app_name, spec = client.create_machine.await_args.args
        assert app_name == "openclaw-user1"
        assert spec.image == request_.image
        # Secrets travel as app secrets, not machine env
        assert "OPENCLAW_GATEWAY_TOKEN" not in spec.env
        assert spec.cmd == ["/bin/sh", "-c", request_.start_command]
        assert spec.guest.memory_mb == 512
        assert spec.services[0].internal_port == 18789
        assert [p.port for p in spec.services[0].ports] == [443, 80]

    @pytest.mark.asyncio
    async def test_wait_until_live(self, backend, client):
        resource = ProvisionedResource(resource_id="m-1", resource_name="openclaw-user1")

        resource = await backend.wait_until_live(resource)

        assert resource.access_url == "https://openclaw-user1.fly.dev"
        client.wait_for_machine_state.assert_awaited_once()
        assert client.wait_for_machine_state.await_args.args[2] == "started"
        client.allocate_ip_address.assert_awaited_once_with("openclaw-user1", "v6")

    @pytest.mark.asyncio
    async def test_destroy_deletes_machines_then_app(self, backend, client):
        client.list_machines.return_value = [
            FlyMachine(id="m-1", state="started"),
            FlyMachine(id="m-2", state="stopped"),
        ]

        await backend.destroy(_instance())

        assert [c.args for c in client.delete_machine.await_args_list] == [
            ("openclaw-user1", "m-1"),
            ("openclaw-user1", "m-2"),
        ]
        client.delete_app.assert_awaited_once_with("openclaw-user1")

    @pytest.mark.asyncio
    async def test_destroy_without_app_is_noop(self, backend, client):
        await backend.destroy(_instance(container_name=None, container_id=None))

        client.list_machines.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_is_running(self, backend, client):
        client.get_machine.return_value = FlyMachine(id="res-1", state="stopped")

        assert await backend.is_running(_instance()) is False


class TestRenderBackend:
    @pytest.fixture
    def client(self):
        client = MagicMock(spec=RenderClient)
        client.get_shell_url.return_value = "https://dashboard.render.com/web/srv-1/shell"
        return client

    @pytest.fixture
    def backend(self, settings, client) -> RenderBackend:
        return RenderBackend(settings, client=client)

    @pytest.mark.asyncio
    async def test_provision_passes_merged_env(self, backend, client, request_):
        client.create_service.return_value = RenderService(id="srv-1", name="openclaw-user1")

        resource = await backend.provision(request_)

        assert resource.resource_id == "srv-1"
        assert resource.shell_url == "https://dashboard.render.com/web/srv-1/shell"
        kwargs = client.create_service.await_args.kwargs
        assert kwargs["env"]["OPENCLAW_GATEWAY_TOKEN"] == "tok"
        assert kwargs["env"]["OPENCLAW_CONFIG"] == "{}"
        assert kwargs["plan"] == "starter"
        assert kwargs["region"] == "oregon"

    @pytest.mark.asyncio
    async def test_wait_until_live_falls_back_to_default_url(self, backend, client, monkeypatch):
        monkeypatch.setattr("clawhost.deploy.render.URL_POLL_ATTEMPTS", 2)
        client.list_deploys.return_value = []
        client.get_service.return_value = RenderService(id="srv-1", name="openclaw-user1")
        resource = ProvisionedResource(resource_id="srv-1", resource_name="openclaw-user1")

        resource = await backend.wait_until_live(resource)

        assert resource.access_url == "https://openclaw-user1.onrender.com"
        assert client.get_service.await_count == 2
        client.wait_for_deploy.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_logs_point_at_dashboard(self, backend):
        instance = _instance(provider="render", service_url="https://dashboard.render.com/x")

        logs = await backend.get_logs(instance)

        assert logs == "Logs are available in the Render dashboard:\nhttps://dashboard.render.com/x"

    @pytest.mark.asyncio
    async def test_stop_suspends_service(self, backend, client):
        await backend.stop(_instance(provider="render"))

        client.suspend_service.assert_awaited_once_with("res-1")


class TestRailwayBackend:
    @pytest.fixture
    def client(self):
        return MagicMock(spec=RailwayClient)

    @pytest.fixture
    def backend(self, settings, client) -> RailwayBackend:
        return RailwayBackend(settings, client=client)

    @pytest.mark.asyncio
    async def test_provision_order(self, backend, client, request_):
        client.create_service.return_value = MagicMock(id="svc-1")
        client.create_service.return_value.name = "openclaw-user1"

        resource = await backend.provision(request_)

        assert resource.resource_id == "svc-1"
        client.upsert_variables.assert_awaited_once_with("svc-1", request_.merged_env)
        start_command = client.update_service_instance.await_args.kwargs["start_command"]
        assert start_command.startswith("/bin/sh -c '")
        client.deploy_service.assert_awaited_once_with("svc-1")

    @pytest.mark.asyncio
    async def test_failed_provision_deletes_created_service(self, backend, client, request_):
        client.create_service.return_value = MagicMock(id="svc-1")
        client.upsert_variables.side_effect = ProviderAPIError("railway", 400, "bad variables")

        with pytest.raises(ProviderAPIError, match="bad variables"):
            await backend.provision(request_)

        client.delete_service.assert_awaited_once_with("svc-1")
        client.deploy_service.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_cleanup_failure_keeps_original_error(self, backend, client, request_):
        client.create_service.return_value = MagicMock(id="svc-1")
        client.deploy_service.side_effect = ProviderAPIError("railway", 500, "deploy rejected")
        client.delete_service.side_effect = ProviderAPIError("railway", None, "connection reset")

        with pytest.raises(ProviderAPIError, match="deploy rejected"):
            await backend.provision(request_)

        client.delete_service.assert_awaited_once_with("svc-1")

    @pytest.mark.asyncio
    async def test_wait_until_live_uses_generated_domain(self, backend, client):
        client.create_service_domain.return_value = "openclaw-user1.up.railway.app"
        resource = ProvisionedResource(resource_id="svc-1", resource_name="openclaw-user1")

        resource = await backend.wait_until_live(resource)

        assert resource.access_url == "https://openclaw-user1.up.railway.app"

    @pytest.mark.asyncio
    async def test_is_running_without_deployment(self, backend, client):
        client.get_latest_deployment.return_value = None
        assert await backend.is_running(_instance(provider="railway")) is False

        client.get_latest_deployment.return_value = RailwayDeployment(id="d", status="SUCCESS")
        assert await backend.is_running(_instance(provider="railway")) is True
