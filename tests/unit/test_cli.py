from datetime import UTC, datetime
import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from typer.testing import CliRunner

from clawhost.cli.main import app
from clawhost.errors import DeploymentError, MissingIdentifiersError
from clawhost.models import DeploymentLog, Instance
from clawhost.schemas import DeploymentResult

runner = CliRunner()

NOW = datetime(2026, 2, 6, 10, 30, tzinfo=UTC)


def _instance(**values) -> Instance:
    defaults = {
        "id": "inst-1",
        "user_id": "user-1",
        "provider": "fly",
        "port": 20000,
        "status": "RUNNING",
        "container_id": "m-1",
        "container_name": "openclaw-user1",
        "access_url": "https://openclaw-user1.fly.dev",
        "created_at": NOW,
        "updated_at": NOW,
    }
    defaults.update(values)
    return Instance(**defaults)


@pytest.fixture(autouse=True)
def no_logging_setup():
    with patch("clawhost.cli.main.setup_logging"):
        yield


@pytest.fixture
def mock_orchestrator():
    with patch("clawhost.cli.commands.instance.get_orchestrator") as mock:
        orchestrator = MagicMock()
        orchestrator.get_instance = AsyncMock(return_value=_instance())
        orchestrator.get_instance_by_id = AsyncMock(return_value=_instance(status="STOPPED"))
        orchestrator.stop_instance = AsyncMock()
        orchestrator.start_instance = AsyncMock()
        orchestrator.restart_instance = AsyncMock()
        orchestrator.get_instance_logs = AsyncMock(return_value="gateway ready")
        orchestrator.check_instance_health = AsyncMock(return_value=True)
        orchestrator.get_deployment_logs = AsyncMock(return_value=[])
        orchestrator.deploy_instance = AsyncMock()
        mock.return_value = orchestrator
        yield orchestrator


def test_status(mock_orchestrator):
    result = runner.invoke(app, ["instance", "status", "user-1"])

    assert result.exit_code == 0
    assert "openclaw-user1" in result.output
    assert "RUNNING" in result.output


def test_status_without_instance(mock_orchestrator):
    mock_orchestrator.get_instance.return_value = None

    result = runner.invoke(app, ["instance", "status", "user-1"])

    assert result.exit_code == 1
    assert "No instance found" in result.output


def test_stop(mock_orchestrator):
    result = runner.invoke(app, ["instance", "stop", "user-1"])

    assert result.exit_code == 0
    mock_orchestrator.stop_instance.assert_awaited_once_with("inst-1")
    assert "STOPPED" in result.output


def test_restart_missing_identifiers(mock_orchestrator):
    mock_orchestrator.restart_instance.side_effect = MissingIdentifiersError(
        "Instance missing provider identifiers"
    )

    result = runner.invoke(app, ["instance", "restart", "user-1"])

    assert result.exit_code == 1
    assert "missing provider identifiers" in result.output


def test_logs(mock_orchestrator):
    result = runner.invoke(app, ["instance", "logs", "user-1", "--tail", "20"])

    assert result.exit_code == 0
    assert "gateway ready" in result.output
    mock_orchestrator.get_instance_logs.assert_awaited_once_with("inst-1", tail=20)


def test_health_not_running_exits_non_zero(mock_orchestrator):
    mock_orchestrator.check_instance_health.return_value = False

    result = runner.invoke(app, ["instance", "health", "user-1"])

    assert result.exit_code == 1
    assert "Not running" in result.output


def test_history(mock_orchestrator):
    mock_orchestrator.get_deployment_logs.return_value = [
        DeploymentLog(
            id=1,
            instance_id="inst-1",
            action="DEPLOY",
            status="FAILED",
            message="Deployment failed",
            error="fly API error 422",
            created_at=NOW,
            updated_at=NOW,
        )
    ]

    result = runner.invoke(app, ["instance", "history", "user-1", "--json"])

    assert result.exit_code == 0
    assert '"error": "fly API error 422"' in result.output


def test_deploy_reads_config_file(mock_orchestrator, tmp_path):
    config_file = tmp_path / "config.json"
    config_file.write_text(json.dumps({"ai_provider": "openai", "ai_api_key": "sk-openai"}))
    mock_orchestrator.deploy_instance.return_value = DeploymentResult(
        instance_id="inst-1",
        resource_id="m-1",
        resource_name="openclaw-user1",
        port=20000,
        access_url="https://openclaw-user1.fly.dev",
        status="RUNNING",
    )

    result = runner.invoke(app, ["instance", "deploy", "user-1", "--config", str(config_file)])

    assert result.exit_code == 0
    assert "Instance deployed" in result.output
    user_id, config = mock_orchestrator.deploy_instance.await_args.args
    assert user_id == "user-1"
    assert config.ai_provider == "openai"


def test_deploy_invalid_config(mock_orchestrator, tmp_path):
    config_file = tmp_path / "config.json"
    config_file.write_text(json.dumps({"ai_provider": "openai"}))

    result = runner.invoke(app, ["instance", "deploy", "user-1", "--config", str(config_file)])

    assert result.exit_code == 1
    mock_orchestrator.deploy_instance.assert_not_awaited()


def test_deploy_failure(mock_orchestrator, tmp_path):
    config_file = tmp_path / "config.json"
    config_file.write_text(json.dumps({"ai_api_key": "sk-ant"}))
    mock_orchestrator.deploy_instance.side_effect = DeploymentError("Deployment failed: boom")

    result = runner.invoke(app, ["instance", "deploy", "user-1", "--config", str(config_file)])

    assert result.exit_code == 1
    assert "Deployment failed: boom" in result.output
