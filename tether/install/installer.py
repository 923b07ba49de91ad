"""Idempotent bootstrap of the persistent workspace layout and CLI binaries."""

import os
import re
import shlex
import shutil
import subprocess
from pathlib import Path
from typing import Callable, Dict, List, Optional

from pydantic import BaseModel, Field

from tether.config.models import TetherConfig
from tether.install.layout import LinkSpec, ensure_layout
from tether.utils.logging import get_logger

logger = get_logger(__name__)

RC_MARKER = "# tether - persistent claude & codex setup"
BOOT_MARKER = "tether shell-init"
GITIGNORE_ENTRIES = (".claude-persistent/", ".codex-persistent/", ".tether/")


class InstallReport(BaseModel):
    """What a run changed, and what it had to give up on."""

    actions: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.warnings


def version_key(name: str) -> List:
    """Natural sort key so that 1.0.10 sorts after 1.0.9."""
    return [int(part) if part.isdigit() else part for part in re.split(r"(\d+)", name)]


class Installer:
    """Provisions directories, symlinks and binaries for one workspace.

    Every step is safe to repeat. Failures are collected as warnings and never
    stop later steps, so the shell stays usable when the network is down.
    """

    def __init__(
        self,
        config: TetherConfig,
        runner: Callable[..., subprocess.CompletedProcess] = subprocess.run,
        which: Callable[[str], Optional[str]] = shutil.which,
    ):
        self.config = config
        self.paths = config.paths
        self.runner = runner
        self.which = which

    @property
    def local_bin(self) -> Path:
        return self.paths.home / ".local" / "bin"

    def directories(self) -> List[Path]:
        dirs = [
            self.paths.claude_dir,
            self.paths.sessions_dir,
            self.paths.claude_versions_dir,
            self.paths.persistent_home,
            self.paths.workspace / ".config",
            self.paths.state_dir / "logs",
            self.local_bin,
        ]
        if self.config.install.manage_codex:
            dirs.insert(1, self.paths.codex_dir)
        return dirs

    def links(self) -> List[LinkSpec]:
        home = self.paths.home
        links = [
            LinkSpec(home / ".claude", self.paths.claude_dir),
            LinkSpec(home / ".local" / "share" / "claude", self.paths.claude_share_dir),
        ]
        if self.config.install.manage_codex:
            links.append(LinkSpec(home / ".codex", self.paths.codex_dir))
        return links

    def ensure_directories(self, report: InstallReport) -> None:
        for directory in self.directories():
            if directory.is_dir():
                continue
            try:
                directory.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                report.warnings.append(f"Could not create {directory}: {e}")
                continue
            report.actions.append(f"Created {directory}")

    def link_layout(self, report: InstallReport) -> None:
        result = ensure_layout(self.links())
        report.actions.extend(f"Linked {action.describe()}" for action in result.applied)
        report.warnings.extend(result.errors)

    def installed_versions(self) -> List[str]:
        versions_dir = self.paths.claude_versions_dir
        if not versions_dir.is_dir():
            return []
        names = [p.name for p in versions_dir.iterdir() if not p.name.startswith(".")]
        return sorted(names, key=version_key)

    def _install_env(self) -> Dict[str, str]:
        env = dict(os.environ)
        env["CLAUDE_CONFIG_DIR"] = str(self.paths.claude_dir)
        env["HOME"] = str(self.paths.home)
        env["PATH"] = f"{self.local_bin}{os.pathsep}{env.get('PATH', '')}"
        return env

    def run_step(self, name: str, command: str, report: InstallReport) -> bool:
        """Run one shell install command under the configured wall-clock budget."""
        timeout = self.config.install.step_timeout_seconds
        logger.info(f"Installing {name}: {command}")
        try:
            self.runner(
                ["bash", "-c", command],
                check=True,
                timeout=timeout,
                env=self._install_env(),
            )
        except subprocess.TimeoutExpired:
            report.warnings.append(f"{name} installation timed out after {timeout:g}s (install manually later)")
            return False
        except subprocess.CalledProcessError as e:
            report.warnings.append(f"{name} installation failed with exit code {e.returncode} (install manually later)")
            return False
        except OSError as e:
            report.warnings.append(f"{name} installation could not start: {e}")
            return False
        report.actions.append(f"Installed {name}")
        return True

    def install_binaries(self, report: InstallReport) -> None:
        if self.installed_versions():
            logger.debug(f"claude already installed ({self.installed_versions()[-1]})")
        else:
            self.run_step("Claude Code", self.config.install.claude_install_command, report)

        if self.config.install.manage_codex:
            if self.which("codex"):
                logger.debug("codex already installed")
            else:
                self.run_step("Codex CLI", self.config.install.codex_install_command, report)

    def link_latest_binary(self, report: InstallReport) -> Optional[Path]:
        """Point ~/.local/bin/claude at the newest persisted version."""
        versions = self.installed_versions()
        if not versions:
            return None
        binary = self.paths.claude_versions_dir / versions[-1]
        link = self.local_bin / Path(self.config.menu.command).name
        result = ensure_layout([LinkSpec(link, binary, migrate=False)])
        report.actions.extend(f"Linked {action.describe()}" for action in result.applied)
        report.warnings.extend(result.errors)
        return binary

    def shell_rc_path(self) -> Path:
        return self.paths.workspace / ".config" / "bashrc"

    def render_shell_rc(self) -> str:
        paths = self.paths
        history = paths.persistent_home / ".bash_history"
        return "\n".join(
            [
                "#!/bin/bash",
                RC_MARKER,
                "# Auto-generated by 'tether setup'; edits are overwritten.",
                "",
                f'export TETHER_WORKSPACE="{paths.workspace}"',
                f'export CLAUDE_CONFIG_DIR="{paths.claude_dir}"',
                f'case ":$PATH:" in *":{self.local_bin}:"*) ;; *) export PATH="{self.local_bin}:$PATH" ;; esac',
                "",
                "# Bash history persistence",
                f'mkdir -p "{paths.persistent_home}"',
                f'export HISTFILE="{history}"',
                "export HISTSIZE=10000",
                "export HISTFILESIZE=20000",
                "export HISTCONTROL=ignoredups",
                '[ -f "${HISTFILE}" ] && history -r "${HISTFILE}"',
                "",
                self._claude_alias("cr", "-c"),
                self._claude_alias("claude-resume", "-c"),
                self._claude_alias("claude-pick", "-r"),
                self._claude_alias("claude-new"),
                "alias claude-menu='tether menu'",
                "",
                "# Layout repair, token refresh, then the session menu (interactive shells only)",
                'if [[ $- == *i* ]] && command -v tether >/dev/null 2>&1; then',
                f"    {BOOT_MARKER} || true",
                "fi",
                "",
            ]
        )

    def _claude_alias(self, name: str, *args: str) -> str:
        menu = self.config.menu
        command = shlex.join([menu.command, *args, *menu.flags])
        return f"alias {name}={shlex.quote(command)}"

    def write_shell_rc(self, report: InstallReport) -> Optional[Path]:
        path = self.shell_rc_path()
        content = self.render_shell_rc()
        try:
            if path.exists() and path.read_text(encoding="utf-8") == content:
                return path
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content, encoding="utf-8")
        except OSError as e:
            report.warnings.append(f"Could not write {path}: {e}")
            return None
        report.actions.append(f"Wrote {path}")
        return path

    def update_replit_boot(self, report: InstallReport) -> bool:
        """Append an onBoot hook to .replit once."""
        path = self.paths.workspace / ".replit"
        line = f'onBoot = "{BOOT_MARKER} --no-menu 2>/dev/null || true"'
        try:
            content = path.read_text(encoding="utf-8") if path.exists() else ""
            if BOOT_MARKER in content:
                return False
            if content and not content.endswith("\n"):
                content += "\n"
            prefix = "\n" if content else ""
            path.write_text(f"{content}{prefix}# Claude persistence (added by tether)\n{line}\n", encoding="utf-8")
        except OSError as e:
            report.warnings.append(f"Could not update {path}: {e}")
            return False
        report.actions.append(f"Added boot hook to {path}")
        return True

    def update_gitignore(self, report: InstallReport) -> bool:
        """Keep credential directories out of version control."""
        path = self.paths.workspace / ".gitignore"
        try:
            content = path.read_text(encoding="utf-8") if path.exists() else ""
            existing = {line.strip() for line in content.splitlines()}
            missing = [entry for entry in GITIGNORE_ENTRIES if entry not in existing]
            if not missing:
                return False
            if content and not content.endswith("\n"):
                content += "\n"
            block = "\n# Claude/Codex credentials (added by tether)\n" + "\n".join(missing) + "\n"
            path.write_text(content + block if content else block.lstrip("\n"), encoding="utf-8")
        except OSError as e:
            report.warnings.append(f"Could not update {path}: {e}")
            return False
        report.actions.append(f"Updated {path}")
        return True

    def boot(self, install: bool = True) -> InstallReport:
        """Repair the layout after a container restart."""
        report = InstallReport()
        self.ensure_directories(report)
        self.link_layout(report)
        if install:
            self.install_binaries(report)
        self.link_latest_binary(report)
        for warning in report.warnings:
            logger.info(f"Boot warning: {warning}")
        return report

    def run(self, install: bool = True) -> InstallReport:
        """Full setup: boot steps plus the shell and workspace integration files."""
        report = self.boot(install=install)
        warned = len(report.warnings)
        self.write_shell_rc(report)
        self.update_replit_boot(report)
        self.update_gitignore(report)
        for warning in report.warnings[warned:]:
            logger.info(f"Setup warning: {warning}")
        return report
