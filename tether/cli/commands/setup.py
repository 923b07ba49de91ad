import click
from rich.console import Console
from rich.markup import escape

from tether.cli.commands.auth import auth_summary
from tether.cli.commands.menu import run_menu
from tether.cli.utils import init_app
from tether.install.installer import InstallReport
from tether.utils.errors import TetherError
from tether.utils.logging import get_logger

console = Console()
logger = get_logger(__name__)


def print_report(report: InstallReport, verbose: bool = True) -> None:
    if verbose:
        for action in report.actions:
            console.print(f"  [green]✓[/green] {escape(action)}", highlight=False)
    for warning in report.warnings:
        console.print(f"  [yellow]⚠️  {escape(warning)}[/yellow]", highlight=False)


@click.command(name="setup")
@click.option("--skip-install", is_flag=True, help="Only set up directories and links; do not download binaries")
@click.pass_context
def setup_command(ctx, skip_install: bool):
    """Set up persistent claude & codex storage in the workspace

    \b
    Creates the persistent directories, links ~/.claude, ~/.codex and
    ~/.local/share/claude into the workspace, installs missing CLIs, and
    writes the shell rc file, the .replit boot hook and .gitignore entries.
    Safe to run repeatedly.
    """
    app = init_app(ctx)
    paths = app.config.paths

    console.print("\n[bold cyan]Tether setup[/bold cyan]")
    console.print(f"  Workspace:  [yellow]{paths.workspace}[/yellow]")
    console.print(f"  Claude dir: [yellow]{paths.claude_dir}[/yellow]\n")

    report = app.installer.run(install=not skip_install)
    print_report(report)

    if not report.actions and report.ok:
        console.print("  [green]✓[/green] Everything already in place")

    console.print(
        f"\nAdd to your shell rc: [bold]source {app.installer.shell_rc_path()}[/bold]\n",
        highlight=False,
    )
    if not report.ok:
        logger.warning(f"Setup finished with {len(report.warnings)} warning(s)")


@click.command(name="shell-init")
@click.option("--no-menu", is_flag=True, help="Skip the interactive session menu")
@click.option("--no-install", is_flag=True, help="Never download missing binaries")
@click.pass_context
def shell_init_command(ctx, no_menu: bool, no_install: bool):
    """Repair links, refresh the token and offer the session menu

    Runs from the generated shell rc file and the .replit boot hook.
    Always exits 0 so a failure never breaks the shell.
    """
    try:
        app = init_app(ctx)
    except TetherError as e:
        console.print(f"[yellow]⚠️  tether: {escape(str(e))}[/yellow]")
        return
    except Exception:
        logger.exception("Unexpected error loading tether")
        return

    try:
        report = app.installer.boot(install=not no_install)
        print_report(report, verbose=False)
    except (TetherError, OSError) as e:
        logger.warning(f"Layout repair failed: {e}")
    except Exception:
        logger.exception("Unexpected error repairing layout")

    try:
        refresh_report = app.token_refresher.auto_refresh_if_needed()
        console.print(auth_summary(app.token_refresher, refresh_report))
    except (TetherError, OSError) as e:
        logger.warning(f"Token check failed: {e}")
    except Exception:
        logger.exception("Unexpected error checking token")

    if no_menu:
        return
    try:
        run_menu(app, automatic=True, out=console)
    except (TetherError, OSError) as e:
        logger.warning(f"Session menu failed: {e}")
    except Exception:
        logger.exception("Unexpected error in session menu")
