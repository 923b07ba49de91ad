from typing import Optional

import click
from rich.console import Console
from rich.markup import escape

from tether.cli.picker import PickerResult
from tether.cli.utils import build_picker, init_app, menu_unavailable_reason
from tether.core.app import TetherApp
from tether.utils.errors import TetherError
from tether.utils.logging import get_logger

console = Console()
logger = get_logger(__name__)


def run_menu(app: TetherApp, automatic: bool, out: Optional[Console] = None) -> Optional[PickerResult]:
    """Show the session menu if this shell can host it.

    Returns:
        The picker result, or None when the menu was not shown.
    """
    out = out or console
    reason = menu_unavailable_reason(app, automatic=automatic)
    if reason:
        logger.debug(f"Session menu skipped: {reason}")
        if not automatic:
            out.print(f"[yellow]Session menu unavailable: {reason}[/yellow]")
        return None

    result = build_picker(app, out).run()
    logger.info(f"Menu finished: {result.choice.value} session={result.session_id} invoked={result.invoked}")
    return result


@click.command(name="menu")
@click.pass_context
def menu_command(ctx):
    """Continue, resume or start a claude session for this terminal

    \b
    Keys:
      c / Enter   Continue this terminal's last session (default after timeout)
      r           Pick from recent sessions
      n           Start a new session
      s           Skip, just a shell
    """
    try:
        app = init_app(ctx)
        run_menu(app, automatic=False)
    except (TetherError, OSError) as e:
        logger.warning(f"Session menu failed: {e}")
        console.print(f"[yellow]⚠️  Session menu failed: {escape(str(e))}[/yellow]")
    except Exception:
        logger.exception("Unexpected error in session menu")
