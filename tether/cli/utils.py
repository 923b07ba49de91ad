import logging
import shutil
import sys
from typing import Callable, Optional

import click
from rich.console import Console

from tether.cli.picker import ClaudeLauncher, SessionPicker
from tether.core.app import TetherApp
from tether.utils.logging import get_logger, setup_logging

logger = get_logger(__name__)


def init_app(ctx: click.Context) -> TetherApp:
    """Build the TetherApp once per invocation and start logging to its log file."""
    obj = ctx.ensure_object(dict)
    app = obj.get("app")
    if app is None:
        app = TetherApp(obj.get("config_path"))
        obj["app"] = app
    if not obj.get("logging_ready"):
        level = logging.DEBUG if obj.get("debug") else logging.WARNING
        setup_logging(level=level, log_file=app.config.paths.log_file)
        obj["logging_ready"] = True
    return app


def menu_unavailable_reason(
    app: TetherApp,
    automatic: bool,
    isatty: Optional[Callable[[], bool]] = None,
    which: Callable[[str], Optional[str]] = shutil.which,
) -> Optional[str]:
    """Why the session menu should not be shown, or None if it can run.

    The config and environment switches only apply to the automatic menu.
    """
    if automatic:
        if not app.config.menu.enabled:
            return "menu disabled in config"
        if app.config_manager.menu_disabled_by_env():
            return "menu disabled by environment"
    isatty = isatty or sys.stdin.isatty
    if not isatty():
        return "stdin is not a terminal"
    if which(app.config.menu.command) is None:
        return f"{app.config.menu.command} not found on PATH"
    return None


def build_picker(app: TetherApp, console: Optional[Console] = None) -> SessionPicker:
    menu = app.config.menu
    return SessionPicker(
        registry=app.session_registry,
        tracker=app.terminal_tracker,
        launcher=ClaudeLauncher(menu.command, menu.flags),
        config=menu,
        console=console,
    )
