import asyncio
import json
from pathlib import Path

from rich.console import Console
from rich.table import Table
import typer

from clawhost.config import get_settings
from clawhost.deploy import DeploymentOrchestrator
from clawhost.errors import ClawhostError, InstanceNotFoundError
from clawhost.models import Instance
from clawhost.openclaw import UserConfiguration
from clawhost.schemas import DeploymentLogRead, InstanceRead

console = Console()


def get_orchestrator() -> DeploymentOrchestrator:
    from clawhost.database import async_session_maker

    return DeploymentOrchestrator(async_session_maker, get_settings())


async def _require_instance(orchestrator: DeploymentOrchestrator, user_id: str) -> Instance:
    instance = await orchestrator.get_instance(user_id)
    if instance is None:
        raise InstanceNotFoundError(f"No instance found for user {user_id}")
    return instance


async def deploy_command(user_id: str, config: UserConfiguration):
    orchestrator = get_orchestrator()
    return await orchestrator.deploy_instance(user_id, config)


async def status_command(user_id: str) -> InstanceRead:
    instance = await _require_instance(get_orchestrator(), user_id)
    return InstanceRead.model_validate(instance)


async def lifecycle_command(user_id: str, action: str) -> InstanceRead:
    orchestrator = get_orchestrator()
    instance = await _require_instance(orchestrator, user_id)
    operation = {
        "stop": orchestrator.stop_instance,
        "start": orchestrator.start_instance,
        "restart": orchestrator.restart_instance,
    }[action]
    await operation(instance.id)
    return InstanceRead.model_validate(await orchestrator.get_instance_by_id(instance.id))


async def logs_command(user_id: str, tail: int) -> str:
    orchestrator = get_orchestrator()
    instance = await _require_instance(orchestrator, user_id)
    return await orchestrator.get_instance_logs(instance.id, tail=tail)


async def health_command(user_id: str) -> bool:
    orchestrator = get_orchestrator()
    instance = await _require_instance(orchestrator, user_id)
    return await orchestrator.check_instance_health(instance.id)


async def history_command(user_id: str) -> list[DeploymentLogRead]:
    orchestrator = get_orchestrator()
    instance = await _require_instance(orchestrator, user_id)
    logs = await orchestrator.get_deployment_logs(instance.id)
    return [DeploymentLogRead.model_validate(log) for log in logs]


def _fail(e: Exception):
    console.print(f"[bold red]Error:[/bold red] {str(e)}")
    raise typer.Exit(code=1) from None


def _print_instance(instance: InstanceRead, json_output: bool):
    if json_output:
        typer.echo(instance.model_dump_json(indent=2))
        return
    console.print(f"ID: [cyan]{instance.id}[/cyan]")
    console.print(f"Provider: [magenta]{instance.provider}[/magenta]")
    console.print(f"Resource: {instance.container_name or '-'} / {instance.container_id or '-'}")
    console.print(f"Status: [bold]{instance.status}[/bold]")
    if instance.access_url:
        console.print(f"URL: {instance.access_url}")


# Typer command wrapper
app = typer.Typer()


@app.command()
def deploy(
    user_id: str = typer.Argument(..., help="Owner of the instance"),
    config_path: Path = typer.Option(
        ..., "--config", "-c", exists=True, dir_okay=False, help="UserConfiguration JSON file"
    ),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """Deploy an instance, replacing the user's existing one"""
    try:
        config = UserConfiguration.model_validate_json(config_path.read_text())
        result = asyncio.run(deploy_command(user_id, config))
    except (ClawhostError, ValueError) as e:
        _fail(e)

    if json_output:
        typer.echo(result.model_dump_json(indent=2))
        return

    if result.status == "RUNNING":
        console.print("[bold green]✓ Instance deployed![/bold green]")
    else:
        console.print("[bold yellow]! Instance created but gateway is not healthy[/bold yellow]")
    console.print(f"Instance: [cyan]{result.instance_id}[/cyan]")
    console.print(f"Resource: [magenta]{result.resource_name}[/magenta] ({result.resource_id})")
    console.print(f"URL: {result.access_url}")
    if result.shell_url:
        console.print(f"Shell: {result.shell_url}")


@app.command()
def status(
    user_id: str = typer.Argument(...),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """Show the user's instance"""
    try:
        instance = asyncio.run(status_command(user_id))
    except ClawhostError as e:
        _fail(e)
    _print_instance(instance, json_output)


def _lifecycle(user_id: str, action: str, json_output: bool):
    try:
        instance = asyncio.run(lifecycle_command(user_id, action))
    except ClawhostError as e:
        _fail(e)
    _print_instance(instance, json_output)


@app.command()
def stop(
    user_id: str = typer.Argument(...),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """Stop the user's instance"""
    _lifecycle(user_id, "stop", json_output)


@app.command()
def start(
    user_id: str = typer.Argument(...),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """Start the user's stopped instance"""
    _lifecycle(user_id, "start", json_output)


@app.command()
def restart(
    user_id: str = typer.Argument(...),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """Restart the user's instance"""
    _lifecycle(user_id, "restart", json_output)


@app.command()
def logs(
    user_id: str = typer.Argument(...),
    tail: int = typer.Option(100, "--tail", "-n", min=1, help="Number of log lines"),
):
    """Print recent runtime logs"""
    try:
        output = asyncio.run(logs_command(user_id, tail))
    except ClawhostError as e:
        _fail(e)
    typer.echo(output)


@app.command()
def health(user_id: str = typer.Argument(...)):
    """Check with the provider whether the instance runs"""
    try:
        healthy = asyncio.run(health_command(user_id))
    except ClawhostError as e:
        _fail(e)

    if healthy:
        console.print("[bold green]✓ Running[/bold green]")
    else:
        console.print("[bold red]✗ Not running[/bold red]")
        raise typer.Exit(code=1)


@app.command()
def history(
    user_id: str = typer.Argument(...),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """Show the deployment log of the user's instance"""
    try:
        entries = asyncio.run(history_command(user_id))
    except ClawhostError as e:
        _fail(e)

    if json_output:
        typer.echo(json.dumps([e.model_dump(mode="json") for e in entries], indent=2))
        return

    table = Table("Time", "Action", "Status", "Message")
    for entry in entries:
        message = entry.message if not entry.error else f"{entry.message}: {entry.error}"
        table.add_row(entry.created_at.isoformat(), entry.action, entry.status, message)
    console.print(table)
