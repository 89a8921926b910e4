"""Command line entry point for the model repository server.

Provides `serve` to run the HTTP API, `repos` to inspect the configured
repositories, and `init-config` to write a default configuration file.
"""

import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.table import Table

from . import __version__

console = Console()


def _load_config(server_dir: Optional[str]):
    """Load and validate the server configuration.

    Raises:
        click.ClickException: If the configuration file is malformed or invalid
    """
    from .server.utils.config_manager import ServerConfigManager

    try:
        return ServerConfigManager(server_dir).load_or_default()
    except ValueError as e:
        raise click.ClickException(str(e))


@click.group("model-repo")
@click.version_option(__version__, prog_name="model-repo")
def cli():
    """Model repository server.

    Serves file management endpoints for git repositories checked out on
    this host.
    """
    pass


@cli.command("serve")
@click.option("--server-dir", type=click.Path(file_okay=False), help="Server directory holding config.json")
@click.option("--host", help="Bind address (overrides configuration)")
@click.option("--port", type=int, help="Bind port (overrides configuration)")
def serve(server_dir: Optional[str], host: Optional[str], port: Optional[int]):
    """Run the HTTP API server.

    Examples:
        model-repo serve
        model-repo serve --host 0.0.0.0 --port 9000
    """
    import uvicorn

    from .server.app import create_app

    config = _load_config(server_dir)
    if host:
        config.host = host
    if port:
        config.port = port

    app = create_app(config)
    console.print(
        f"[green]Serving {len(config.repositories)} repositories on "
        f"http://{config.host}:{config.port}[/green]"
    )
    uvicorn.run(app, host=config.host, port=config.port, log_level=config.log_level.lower())


@cli.command("repos")
@click.option("--server-dir", type=click.Path(file_okay=False), help="Server directory holding config.json")
def repos(server_dir: Optional[str]):
    """List configured repositories and whether their paths are usable."""
    from .git import GitWorkingCopy

    config = _load_config(server_dir)
    if not config.repositories:
        console.print("[dim]No repositories configured[/dim]")
        return

    table = Table(title="Managed Repositories")
    table.add_column("Project", style="cyan")
    table.add_column("Name", style="cyan")
    table.add_column("Path", style="dim")
    table.add_column("Main Branch", style="green")
    table.add_column("Status")

    for repo in config.repositories:
        if not Path(repo.path).exists():
            state = "[red]missing (404)[/red]"
        elif GitWorkingCopy.is_repository(repo.path):
            state = "[green]ready[/green]"
        else:
            state = "[red]not a repository (400)[/red]"
        table.add_row(repo.project_code, repo.name, repo.path, repo.main_branch, state)

    console.print(table)


@cli.command("init-config")
@click.option("--server-dir", type=click.Path(file_okay=False), help="Server directory holding config.json")
@click.option("--force", is_flag=True, help="Overwrite an existing configuration file")
def init_config(server_dir: Optional[str], force: bool):
    """Write a default configuration file."""
    from .server.utils.config_manager import ServerConfigManager

    manager = ServerConfigManager(server_dir)
    if manager.config_file_path.exists() and not force:
        console.print(
            f"[red]Error: {manager.config_file_path} already exists (use --force to overwrite)[/red]"
        )
        sys.exit(1)

    manager.save_config(manager.create_default_config())
    console.print(f"[green]Wrote {manager.config_file_path}[/green]")


if __name__ == "__main__":
    cli()
