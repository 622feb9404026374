import asyncio

from rich.console import Console
import typer

from clawhost.cli.commands import instance
from clawhost.config import get_settings
from clawhost.logging_config import setup_logging

app = typer.Typer()


@app.callback()
def callback():
    """
    clawhost - deploy and operate OpenClaw gateways
    """
    settings = get_settings()
    setup_logging(
        service_name="cli", log_format=settings.log_format, log_level=settings.log_level
    )


@app.command("init-db")
def init_db():
    """Create database tables"""
    from clawhost.database import create_tables

    console = Console()
    try:
        asyncio.run(create_tables())
    except Exception as e:
        console.print(f"[bold red]Error:[/bold red] {str(e)}")
        raise typer.Exit(code=1) from None
    console.print("[bold green]✓ Tables created[/bold green]")


app.add_typer(instance.app, name="instance")
