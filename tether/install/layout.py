"""Declarative symlink layout: plan the difference, then apply it."""

import os
import shutil
from enum import Enum
from pathlib import Path
from typing import Iterable, List, NamedTuple

from tether.utils.errors import InstallError
from tether.utils.logging import get_logger

logger = get_logger(__name__)


class LinkAction(str, Enum):
    NONE = "none"  # already correct
    CREATE = "create"  # nothing at path
    RELINK = "relink"  # symlink to a different target
    MIGRATE = "migrate"  # real directory; contents move into the target first
    REPLACE = "replace"  # plain file, or directory we may discard


class LinkSpec(NamedTuple):
    path: Path
    target: Path
    migrate: bool = True


class LayoutAction(NamedTuple):
    spec: LinkSpec
    action: LinkAction

    def describe(self) -> str:
        return f"{self.spec.path} -> {self.spec.target} ({self.action.value})"


class LayoutResult(NamedTuple):
    applied: List[LayoutAction]
    errors: List[str]


def _same_path(a: Path, b: Path) -> bool:
    return os.path.normpath(str(a)) == os.path.normpath(str(b))


def plan_layout(links: Iterable[LinkSpec]) -> List[LayoutAction]:
    """Compare each desired link against the filesystem."""
    actions = []
    for spec in links:
        path = Path(spec.path)
        if path.is_symlink():
            current = Path(os.readlink(path))
            if not current.is_absolute():
                current = path.parent / current
            action = LinkAction.NONE if _same_path(current, spec.target) else LinkAction.RELINK
        elif path.is_dir():
            action = LinkAction.MIGRATE if spec.migrate else LinkAction.REPLACE
        elif path.exists():
            action = LinkAction.REPLACE
        else:
            action = LinkAction.CREATE
        actions.append(LayoutAction(spec, action))
    return actions


def merge_tree(source: Path, destination: Path) -> int:
    """Copy source into destination without overwriting existing files.

    Returns:
        Number of files copied.
    """
    copied = 0
    for dirpath, dirnames, filenames in os.walk(source):
        relative = Path(dirpath).relative_to(source)
        target_dir = destination / relative
        target_dir.mkdir(parents=True, exist_ok=True)
        for name in filenames + [d for d in dirnames if (Path(dirpath) / d).is_symlink()]:
            src = Path(dirpath) / name
            dst = target_dir / name
            if dst.exists() or dst.is_symlink():
                continue
            shutil.copy2(src, dst, follow_symlinks=False)
            copied += 1
    return copied


def apply_action(action: LayoutAction) -> None:
    """Bring one path in line with its spec.

    Raises:
        InstallError: If the filesystem operation fails.
    """
    path, target = Path(action.spec.path), Path(action.spec.target)
    if action.action == LinkAction.NONE:
        return
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        if action.action == LinkAction.RELINK:
            path.unlink()
        elif action.action == LinkAction.MIGRATE:
            target.mkdir(parents=True, exist_ok=True)
            copied = merge_tree(path, target)
            logger.info(f"Moved {copied} file(s) from {path} into {target}")
            shutil.rmtree(path)
        elif action.action == LinkAction.REPLACE:
            if path.is_dir():
                shutil.rmtree(path)
            else:
                path.unlink()
        path.symlink_to(target)
    except OSError as e:
        raise InstallError(f"Could not link {path} -> {target}: {e}") from e
    logger.info(f"Linked {action.describe()}")


def apply_layout(actions: Iterable[LayoutAction]) -> LayoutResult:
    """Apply every pending action, continuing past failures."""
    applied: List[LayoutAction] = []
    errors: List[str] = []
    for action in actions:
        if action.action == LinkAction.NONE:
            continue
        try:
            apply_action(action)
        except InstallError as e:
            logger.info(str(e))
            errors.append(str(e))
            continue
        applied.append(action)
    return LayoutResult(applied, errors)


def ensure_layout(links: Iterable[LinkSpec]) -> LayoutResult:
    return apply_layout(plan_layout(links))
