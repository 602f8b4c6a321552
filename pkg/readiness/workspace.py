"""Host data directories mounted into the Pulsar containers."""

from __future__ import annotations

import os
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable

# uid:gid pairs the Pulsar images run as, then the invoking user.
CONTAINER_OWNERS = ((10000, 10000), (1000, 1000))

Chown = Callable[[str, int, int], None]


@dataclass
class DirectoryReport:
    """Data class for one prepared directory."""
    path: str
    created: bool
    owner: tuple[int, int] | None = None
    warnings: list[str] = field(default_factory=list)


def _walk(path: Path):
    yield path
    for root, dirs, files in os.walk(path):
        for name in dirs + files:
            yield Path(root) / name


def _chmod_tree(path: Path, mode: int) -> str | None:
    try:
        for item in _walk(path):
            os.chmod(item, mode)
    except OSError as exc:
        return f"could not set permissions {oct(mode)} on {path}: {exc}"
    return None


def _chown_tree(path: Path, owners: list[tuple[int, int]], chown: Chown) -> tuple[int, int] | None:
    for uid, gid in owners:
        try:
            for item in _walk(path):
                chown(str(item), uid, gid)
        except OSError:
            continue
        return uid, gid
    return None


def _candidate_owners() -> list[tuple[int, int]]:
    owners = list(CONTAINER_OWNERS)
    if hasattr(os, "getuid"):
        current = (os.getuid(), os.getgid())
        if current not in owners:
            owners.append(current)
    return owners


def prepare_data_dir(path: Path | str, *, chown: Chown | None = None) -> DirectoryReport:
    """Create a data directory the containers can write to.

    A directory that exists but is not writable is recreated. ZooKeeper
    directories get a ``version-2`` subdirectory. Permission and ownership
    failures are reported as warnings; only creation failures raise.
    """
    target = Path(path)
    warnings: list[str] = []

    if target.is_dir() and not os.access(target, os.W_OK):
        warnings.append(f"{target} exists but is not writable, recreating it")
        shutil.rmtree(target, ignore_errors=True)
        if target.exists():
            warnings.append(f"could not remove {target}, keeping the existing directory")

    created = not target.is_dir()
    target.mkdir(parents=True, exist_ok=True)
    # Only the directory's own name counts; parent directories may be called anything.
    if "zookeeper" in target.name:
        (target / "version-2").mkdir(exist_ok=True)

    warning = _chmod_tree(target, 0o755)
    if warning:
        warnings.append(warning)

    owner = None
    if chown is None:
        chown = getattr(os, "chown", None)
    if chown is not None:
        owner = _chown_tree(target, _candidate_owners(), chown)
        if owner is None:
            warnings.append(f"could not set ownership for {target}")

    # Containers may run as any uid; world-writable is the last resort.
    warning = _chmod_tree(target, 0o777)
    if warning:
        warnings.append(warning)

    return DirectoryReport(path=str(target), created=created, owner=owner, warnings=warnings)
