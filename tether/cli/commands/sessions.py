import json

import click
from rich.console import Console
from rich.table import Table

from tether.cli.utils import init_app
from tether.utils.formatting import format_utc, prompt_preview, time_ago

console = Console()


@click.group(name="sessions", invoke_without_command=True)
@click.pass_context
def sessions_group(ctx):
    """Inspect claude sessions and per-terminal state

    \b
    Commands:
      tether sessions              List recent sessions
      tether sessions last         This terminal's last session
      tether sessions terminals    Last session of every terminal
    """
    if ctx.invoked_subcommand is None:
        ctx.invoke(sessions_list)


@sessions_group.command(name="list")
@click.option("--limit", "-n", type=click.IntRange(min=1), default=None, help="Show N most recent sessions")
@click.option("--json", "as_json", is_flag=True, help="Print JSON instead of a table")
@click.pass_context
def sessions_list(ctx, limit, as_json: bool):
    """List recent sessions, most recently active first"""
    app = init_app(ctx)
    rows = app.session_registry.rows(limit=limit or app.config.menu.recent_limit)

    if as_json:
        click.echo(json.dumps([row._asdict() for row in rows], indent=2))
        return

    if not rows:
        console.print("[yellow]No sessions found[/yellow]")
        return

    table = Table(show_header=True)
    table.add_column("#", justify="right", style="dim")
    table.add_column("Session ID", style="cyan", no_wrap=True)
    table.add_column("Msgs", justify="right")
    table.add_column("Size", justify="right")
    table.add_column("Active", style="green")
    table.add_column("Latest prompt", overflow="ellipsis")

    for row in rows:
        table.add_row(
            str(row.rank),
            row.session_id,
            row.messages,
            row.size,
            row.last_active,
            row.last_prompt,
        )

    console.print(table)


@sessions_group.command(name="last")
@click.pass_context
def sessions_last(ctx):
    """Show the last session recorded for this terminal"""
    app = init_app(ctx)
    tracker = app.terminal_tracker
    state = tracker.load()

    if state is None:
        console.print(f"[yellow]No session recorded for terminal {tracker.terminal_id}[/yellow]")
        return

    console.print(f"\n[bold cyan]Terminal[/bold cyan] {tracker.terminal_id}")
    console.print(f"  Session: [green]{state.session_id}[/green]")
    console.print(f"  Saved:   {format_utc(state.timestamp * 1000)} ({time_ago(state.timestamp * 1000)})")
    if state.flags:
        console.print(f"  Flags:   {state.flags}", markup=False)

    summary = app.session_registry.find(state.session_id)
    if summary is not None and summary.last_prompt:
        console.print(f'  Latest:  "{prompt_preview(summary.last_prompt)}"', markup=False)
    console.print()


@sessions_group.command(name="terminals")
@click.pass_context
def sessions_terminals(ctx):
    """List the last session of every known terminal"""
    app = init_app(ctx)
    states = app.terminal_tracker.list_states()

    if not states:
        console.print("[yellow]No terminal state recorded[/yellow]")
        return

    current = app.terminal_tracker.terminal_id
    table = Table(show_header=True)
    table.add_column("Terminal", style="cyan")
    table.add_column("Session ID")
    table.add_column("Saved", style="dim")

    for state in states:
        name = f"{state.terminal_id} *" if state.terminal_id == current else state.terminal_id
        table.add_row(name, state.session_id, time_ago(state.timestamp * 1000))

    console.print(table)
