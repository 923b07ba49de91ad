"""Workspace bootstrap for tether."""

from tether.install.installer import InstallReport, Installer
from tether.install.layout import LayoutAction, LinkAction, LinkSpec, ensure_layout, plan_layout

__all__ = [
    "InstallReport",
    "Installer",
    "LayoutAction",
    "LinkAction",
    "LinkSpec",
    "ensure_layout",
    "plan_layout",
]
