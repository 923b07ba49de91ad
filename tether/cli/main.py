import sys

import click
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel

from tether.cli.commands import (
    auth_command,
    config_command,
    menu_command,
    sessions_group,
    setup_command,
    shell_init_command,
    version_command,
)
from tether.utils.errors import TetherError
from tether.utils.logging import get_logger

console = Console(stderr=True)
logger = get_logger(__name__)

_debug_mode = False


def handle_exception(e: BaseException, debug_mode: bool = False) -> None:
    """Handle exceptions with clean output."""
    exit_code = 1

    if isinstance(e, TetherError):
        exit_code = getattr(e, "exit_code", 1)
        notes = getattr(e, "__notes__", [])
        hint_text = "\n".join([f"[dim]💡 {note}[/dim]" for note in notes])
        body = f"[red]Error[/red]: {escape(str(e))}"
        if hint_text:
            body = f"{body}\n\n{hint_text}"
        console.print(Panel(body, title="[bold]Tether Error[/bold]", border_style="red"))
    elif isinstance(e, KeyboardInterrupt):
        console.print("[yellow]Interrupted[/yellow]")
        exit_code = 130
    else:
        console.print(
            Panel(
                f"[red]Unexpected Error[/red]: {escape(str(e))}\n\n"
                "[dim]Run again with --debug for a traceback; details are in the tether log.[/dim]",
                title="[bold]Tether Error[/bold]",
                border_style="red",
            )
        )
        logger.error(f"Unexpected error: {e!r}")

    if debug_mode:
        logger.exception(f"Unhandled exception: {e}")
        console.print_exception(show_locals=True)

    sys.exit(exit_code)


def excepthook(exc_type, exc_value, exc_traceback) -> None:
    """Global exception handler."""
    if exc_type is KeyboardInterrupt:
        console.print("[yellow]Interrupted[/yellow]")
        sys.exit(130)
    handle_exception(exc_value, debug_mode=_debug_mode)


@click.group(
    invoke_without_command=True,
    context_settings=dict(help_option_names=["-h", "--help"]),
)
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False),
    default=None,
    help="Config file (default: <workspace>/.tether/config.yaml)",
)
@click.option("--debug", is_flag=True, help="Enable debug output")
@click.pass_context
def cli(ctx, config_path, debug):
    """Tether - persistent claude sessions for ephemeral workspaces

    \b
    Examples:
      tether setup              Link ~/.claude into the workspace and install CLIs
      tether menu               Continue, resume or start a claude session
      tether auth --status      Show OAuth token lifetime
      tether sessions list      Recent sessions with sizes and prompts
    """
    global _debug_mode
    _debug_mode = debug
    sys.excepthook = excepthook

    obj = ctx.ensure_object(dict)
    if config_path:
        obj["config_path"] = config_path
    obj["debug"] = debug

    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


cli.add_command(auth_command, "auth")
cli.add_command(menu_command, "menu")
cli.add_command(sessions_group, "sessions")
cli.add_command(setup_command, "setup")
cli.add_command(shell_init_command, "shell-init")
cli.add_command(config_command, "config")
cli.add_command(version_command, "version")


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
