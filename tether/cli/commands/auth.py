import click
from rich.console import Console
from rich.markup import escape

from tether.auth.models import AutoRefreshOutcome, AutoRefreshReport, TokenState, TokenStatus
from tether.auth.refresher import TokenRefresher
from tether.cli.utils import init_app
from tether.utils.errors import TetherError
from tether.utils.logging import get_logger

console = Console()
logger = get_logger(__name__)


def status_line(status: TokenStatus) -> str:
    icon = "✅" if status.state == TokenState.VALID else "❌"
    return f"{icon} {status.describe()}"


def refresh_messages(report: AutoRefreshReport) -> list:
    """Lines to show after an automatic refresh. Empty when nothing happened."""
    before = report.before
    lines = []
    if report.outcome in (AutoRefreshOutcome.NO_CREDENTIALS, AutoRefreshOutcome.NOT_NEEDED):
        return lines

    if before.state == TokenState.EXPIRED:
        lines.append("⚠️  Token expired, attempting refresh...")
    else:
        lines.append(f"🔄 Token expires in {before.remaining_hours}h, refreshing...")

    if report.outcome == AutoRefreshOutcome.REFRESHED:
        hours = report.after.remaining_hours if report.after else None
        lines.append(f"✅ Token refreshed ({hours}h remaining)" if hours is not None else "✅ Token refreshed successfully")
    elif report.outcome == AutoRefreshOutcome.FAILED_STILL_VALID:
        lines.append(f"⚠️  Refresh failed, {report.after.remaining_hours}h remaining")
    else:
        lines.append("❌ Token refresh failed - run: claude login")
    return lines


def auth_summary(refresher: TokenRefresher, report: AutoRefreshReport) -> str:
    """One-line description of how the claude CLI is authenticated right now."""
    method = refresher.auth_method()
    if method == "api_key":
        return "✅ Claude authentication: API key (permanent)"
    status = report.after or report.before
    if report.outcome == AutoRefreshOutcome.NO_CREDENTIALS or method is None:
        return "❌ Claude authentication: not logged in - run: claude login"
    if report.outcome == AutoRefreshOutcome.REFRESHED:
        return f"✅ Claude authentication: refreshed ({status.remaining_hours}h remaining)"
    if status.state == TokenState.VALID:
        return f"✅ Claude authentication: valid ({status.remaining_hours}h remaining)"
    return "❌ Claude authentication: token expired - run: claude login"


@click.command(name="auth")
@click.option("--status", "show_status", is_flag=True, help="Print token status and exit")
@click.option("--force", is_flag=True, help="Refresh now even if the token is still valid")
@click.option("-q", "--quiet", is_flag=True, help="Print nothing unless a refresh was attempted")
@click.pass_context
def auth_command(ctx, show_status: bool, force: bool, quiet: bool):
    """Check or refresh the claude OAuth token

    \b
    Examples:
      tether auth            Refresh if expired or expiring within 2h
      tether auth --status   Show remaining lifetime
      tether auth --force    Refresh unconditionally
    """
    try:
        app = init_app(ctx)
    except TetherError as e:
        if show_status or force:
            raise
        # The default mode runs on shell start and must not fail it
        logger.warning(f"Automatic token refresh skipped: {e}")
        console.print(f"[yellow]⚠️  tether: {escape(str(e))}[/yellow]")
        return
    refresher = app.token_refresher

    if show_status:
        console.print(status_line(refresher.status()))
        return

    if force:
        console.print("Forcing token refresh...")
        result = refresher.refresh()
        if result.success:
            console.print("✅ Token refreshed")
            return
        console.print(f"❌ Refresh failed: {result.message}", markup=False)
        ctx.exit(1)

    try:
        report = refresher.auto_refresh_if_needed()
    except (TetherError, OSError) as e:
        logger.warning(f"Automatic token refresh skipped: {e}")
        return
    except Exception:
        logger.exception("Unexpected error during automatic token refresh")
        return

    for line in refresh_messages(report):
        console.print(line)
    if not quiet and report.outcome in (AutoRefreshOutcome.NOT_NEEDED, AutoRefreshOutcome.NO_CREDENTIALS):
        console.print(status_line(report.after or report.before))
