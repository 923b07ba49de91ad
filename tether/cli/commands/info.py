import click
from rich.console import Console

from tether.cli.commands.auth import status_line
from tether.cli.utils import init_app

console = Console()


@click.command()
@click.pass_context
def config(ctx):
    """Show resolved paths and settings"""
    app = init_app(ctx)
    cfg = app.config_manager
    paths = app.config.paths

    console.print("\n[bold cyan]Configuration[/bold cyan]")
    console.print(f"  Config file: [yellow]{cfg.config_path}[/yellow]")
    console.print(f"  Log file: [yellow]{paths.log_file}[/yellow]")
    console.print("\n[bold cyan]Paths[/bold cyan]")
    console.print(f"  Workspace: [green]{paths.workspace}[/green]")
    console.print(f"  Claude dir: [green]{paths.claude_dir}[/green]")
    console.print(f"  Codex dir: [green]{paths.codex_dir}[/green]")
    console.print(f"  Terminal state: [green]{paths.sessions_dir}[/green]")
    console.print(f"  Transcripts: [green]{paths.transcripts_dir}[/green]")
    console.print("\n[bold cyan]Menu[/bold cyan]")
    console.print(f"  Enabled: [green]{cfg.get('menu.enabled')}[/green]")
    console.print(f"  Timeout: [green]{cfg.get('menu.timeout_seconds')}s[/green]")
    console.print(f"  Command: [green]{cfg.get('menu.command')} {' '.join(cfg.get('menu.flags', []))}[/green]")
    console.print("\n[bold cyan]Auth[/bold cyan]")
    console.print(f"  Refresh threshold: [green]{cfg.get('auth.refresh_threshold_hours')}h[/green]")
    console.print(f"  {status_line(app.token_refresher.status())}")
    console.print()


@click.command()
def version():
    """Show version information"""
    console.print("[cyan]tether[/cyan] v0.1.0")
    console.print("Persistent claude sessions and credentials for ephemeral workspaces")


config_command = config
version_command = version

__all__ = [
    "config_command",
    "version_command",
]
