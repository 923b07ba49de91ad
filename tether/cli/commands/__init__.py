from .auth import auth_command
from .info import config_command, version_command
from .menu import menu_command
from .sessions import sessions_group
from .setup import setup_command, shell_init_command

__all__ = [
    "auth_command",
    "config_command",
    "version_command",
    "menu_command",
    "sessions_group",
    "setup_command",
    "shell_init_command",
]
