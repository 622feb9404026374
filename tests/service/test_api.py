"""Tests for the HTTP API."""

import http
from unittest.mock import AsyncMock, MagicMock

import httpx
from httpx import ASGITransport, AsyncClient
import pytest
import respx
from sqlalchemy.ext.asyncio import AsyncSession

from clawhost.api.dependencies import get_command_proxy, get_orchestrator
from clawhost.api.main import app
from clawhost.config import get_settings
from clawhost.database import get_async_session
from clawhost.errors import CommandProxyError, ProviderAPIError, ProviderTimeoutError
from clawhost.models import Instance
from clawhost.schemas import ApprovalResult, CommandResult, GatewayHealth, PendingDevice
from clawhost.ssh import CommandProxy

USER = {"X-User-ID": "user-1"}


@pytest.fixture
def proxy() -> MagicMock:
    proxy = MagicMock(spec=CommandProxy)
    proxy.get_gateway_health.return_value = GatewayHealth(status="healthy", version="1.2.0")
    proxy.run_doctor.side_effect = CommandProxyError("SSH command failed: exit code 1")
    proxy.list_channels.return_value = []
    proxy.list_pending_devices.return_value = [
        PendingDevice(request_id="req-1", channel="whatsapp")
    ]
    return proxy


@pytest.fixture
async def client(session_maker, orchestrator, proxy, settings):
    """Create test client."""

    async def override_session():
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_async_session] = override_session
    app.dependency_overrides[get_orchestrator] = lambda: orchestrator
    app.dependency_overrides[get_command_proxy] = lambda: proxy
    app.dependency_overrides[get_settings] = lambda: settings
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
async def instance(session_maker) -> Instance:
    async with session_maker() as session:
        instance = Instance(
            user_id="user-1",
            provider="fly",
            port=20000,
            status="RUNNING",
            container_id="m-1",
            container_name="openclaw-user1",
            access_url="https://openclaw-user1.fly.dev",
            gateway_token="secret-token",
        )
        session.add(instance)
        await session.commit()
        return instance


@pytest.mark.asyncio
async def test_health(client):
    response = await client.get("/health")
    assert response.status_code == http.HTTPStatus.OK
    assert response.json() == {"status": "ok"}


@pytest.mark.asyncio
async def test_ready_reports_provider(client):
    response = await client.get("/health/ready")
    assert response.status_code == http.HTTPStatus.OK
    assert response.json() == {"status": "ready", "deploy_provider": "fly"}


@pytest.mark.asyncio
async def test_not_ready_without_database(client):
    session = AsyncMock(spec=AsyncSession)
    session.execute.side_effect = ConnectionRefusedError("connection refused")

    async def broken_session():
        yield session

    app.dependency_overrides[get_async_session] = broken_session

    response = await client.get("/health/ready")

    assert response.status_code == http.HTTPStatus.SERVICE_UNAVAILABLE
    assert response.json() == {"detail": "Database unavailable"}


@pytest.mark.asyncio
async def test_correlation_id_is_echoed(client):
    response = await client.get("/", headers={"X-Correlation-ID": "req_test"})
    assert response.headers["X-Correlation-ID"] == "req_test"
    assert response.json()["name"] == "clawhost API"


class TestInstances:
    @pytest.mark.asyncio
    async def test_requires_user_header(self, client):
        response = await client.get("/api/instances/me")
        assert response.status_code == http.HTTPStatus.UNPROCESSABLE_ENTITY

    @pytest.mark.asyncio
    async def test_no_instance(self, client):
        response = await client.get("/api/instances/me", headers=USER)
        assert response.status_code == http.HTTPStatus.NOT_FOUND

    @pytest.mark.asyncio
    async def test_get_instance_hides_gateway_token(self, client, instance):
        response = await client.get("/api/instances/me", headers=USER)

        assert response.status_code == http.HTTPStatus.OK
        data = response.json()
        assert data["id"] == instance.id
        assert data["status"] == "RUNNING"
        assert "gateway_token" not in data

    @pytest.mark.asyncio
    async def test_deploy(self, client):
        async with respx.mock(base_url="https://gateway.test", assert_all_called=True) as mock:
            mock.get("/health").mock(return_value=httpx.Response(httpx.codes.OK))

            response = await client.post(
                "/api/instances",
                headers=USER,
                json={"ai_provider": "anthropic", "ai_api_key": "sk-ant"},
            )

        assert response.status_code == http.HTTPStatus.CREATED
        data = response.json()
        assert data["status"] == "RUNNING"
        assert data["access_url"] == "https://gateway.test"

    @pytest.mark.asyncio
    async def test_deploy_failure_is_bad_gateway(self, client, fake_backend):
        fake_backend.fail_on["provision"] = ProviderAPIError("fly", 500, "internal")

        response = await client.post(
            "/api/instances", headers=USER, json={"ai_api_key": "sk-ant"}
        )

        assert response.status_code == http.HTTPStatus.BAD_GATEWAY
        assert response.json()["detail"].startswith("Deployment failed")

    @pytest.mark.asyncio
    async def test_stop(self, client, instance, fake_backend):
        response = await client.post("/api/instances/me/stop", headers=USER)

        assert response.status_code == http.HTTPStatus.OK
        assert response.json()["status"] == "STOPPED"
        assert fake_backend.calls == [("stop", "m-1")]

    @pytest.mark.asyncio
    async def test_provider_error_is_500_with_message(self, client, instance, fake_backend):
        fake_backend.fail_on["stop"] = ProviderAPIError("fly", 500, "machine locked")

        response = await client.post("/api/instances/me/stop", headers=USER)

        assert response.status_code == http.HTTPStatus.INTERNAL_SERVER_ERROR
        assert response.json() == {"error": "fly API error 500: machine locked"}

    @pytest.mark.asyncio
    async def test_provider_timeout_on_logs_is_500(self, client, instance, fake_backend):
        fake_backend.fail_on["get_logs"] = ProviderTimeoutError("Timed out fetching logs")

        response = await client.get("/api/instances/me/logs", headers=USER)

        assert response.status_code == http.HTTPStatus.INTERNAL_SERVER_ERROR
        assert response.json() == {"error": "Timed out fetching logs"}

    @pytest.mark.asyncio
    async def test_lifecycle_without_identifiers_conflicts(self, client, session_maker):
        async with session_maker() as session:
            session.add(Instance(user_id="user-1", provider="fly", port=20000, status="ERROR"))
            await session.commit()

        response = await client.post("/api/instances/me/restart", headers=USER)

        assert response.status_code == http.HTTPStatus.CONFLICT
        assert response.json()["detail"] == "Instance missing provider identifiers"

    @pytest.mark.asyncio
    async def test_logs(self, client, instance, fake_backend):
        response = await client.get("/api/instances/me/logs", params={"tail": 5}, headers=USER)

        assert response.status_code == http.HTTPStatus.OK
        assert response.json() == {
            "instance_id": instance.id,
            "logs": "gateway listening on 18789",
        }
        assert fake_backend.calls == [("get_logs", 5)]

    @pytest.mark.asyncio
    async def test_health_check(self, client, instance, fake_backend):
        fake_backend.running = False

        response = await client.post("/api/instances/me/health", headers=USER)

        assert response.json() == {"instance_id": instance.id, "healthy": False}

    @pytest.mark.asyncio
    async def test_deployment_history(self, client, instance):
        await client.post("/api/instances/me/stop", headers=USER)
        await client.post("/api/instances/me/start", headers=USER)

        response = await client.get("/api/instances/me/deployments", headers=USER)

        assert [(e["action"], e["status"]) for e in response.json()] == [
            ("STOP", "SUCCESS"),
            ("START", "SUCCESS"),
        ]


class TestTerminal:
    @pytest.mark.asyncio
    async def test_info_tolerates_failed_section(self, client, instance):
        response = await client.get("/api/instance/terminal", headers=USER)

        assert response.status_code == http.HTTPStatus.OK
        data = response.json()
        assert data["app_name"] == "openclaw-user1"
        assert data["capabilities"]["device_approval"] is True
        assert data["status"]["health"]["status"] == "healthy"
        assert data["status"]["doctor"] is None
        assert data["status"]["channels"] == []
        assert data["status"]["devices"][0]["requestId"] == "req-1"

    @pytest.mark.asyncio
    async def test_info_without_instance(self, client):
        response = await client.get("/api/instance/terminal", headers=USER)
        assert response.status_code == http.HTTPStatus.NOT_FOUND

    @pytest.mark.asyncio
    async def test_info_without_app_name(self, client, session_maker):
        async with session_maker() as session:
            session.add(Instance(user_id="user-1", provider="fly", port=20000))
            await session.commit()

        response = await client.get("/api/instance/terminal", headers=USER)

        assert response.status_code == http.HTTPStatus.BAD_REQUEST

    @pytest.mark.asyncio
    async def test_approve_device_accepts_camel_case(self, client, instance, proxy):
        proxy.approve_device.return_value = ApprovalResult(success=True, message="Approved")

        response = await client.post(
            "/api/instance/terminal",
            headers=USER,
            json={"action": "approve-device", "requestId": "req-1"},
        )

        assert response.status_code == http.HTTPStatus.OK
        assert response.json() == {"success": True, "message": "Approved"}
        proxy.approve_device.assert_awaited_once_with("openclaw-user1", "req-1")

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("body", "expected"),
        [
            ({"action": "approve-device"}, http.HTTPStatus.BAD_REQUEST),
            ({"action": "execute"}, http.HTTPStatus.BAD_REQUEST),
            ({"action": "execute", "command": "config set x y"}, http.HTTPStatus.FORBIDDEN),
            ({"action": "reboot"}, http.HTTPStatus.BAD_REQUEST),
        ],
    )
    async def test_rejected_requests(self, client, instance, proxy, body, expected):
        response = await client.post("/api/instance/terminal", headers=USER, json=body)

        assert response.status_code == expected
        proxy.execute_openclaw_command.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_execute_allowed_command(self, client, instance, proxy):
        proxy.execute_openclaw_command.return_value = CommandResult(stdout="ok", stderr="")

        response = await client.post(
            "/api/instance/terminal",
            headers=USER,
            json={"action": "execute", "command": "channels status"},
        )

        assert response.json() == {"stdout": "ok", "stderr": ""}

    @pytest.mark.asyncio
    async def test_list_devices(self, client, instance):
        response = await client.post(
            "/api/instance/terminal", headers=USER, json={"action": "list-devices"}
        )

        assert response.json()["devices"][0]["requestId"] == "req-1"

    @pytest.mark.asyncio
    async def test_proxy_failure_is_500_with_message(self, client, instance):
        response = await client.post(
            "/api/instance/terminal", headers=USER, json={"action": "run-doctor"}
        )

        assert response.status_code == http.HTTPStatus.INTERNAL_SERVER_ERROR
        assert response.json() == {"error": "SSH command failed: exit code 1"}
