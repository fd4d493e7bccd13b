"""Git project discovery under configured root directories."""

import logging
import os
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional

logger = logging.getLogger(__name__)

MAX_SCAN_DEPTH = 3
GIT_TIMEOUT_SECS = 2.0


@dataclass(frozen=True)
class Project:
    """A directory containing a ``.git`` directory."""

    name: str
    path: Path

    @classmethod
    def from_path(cls, path: Path) -> Optional["Project"]:
        name = path.name.strip()
        if not name:
            return None
        return cls(name=name, path=path)


def normalize_path_key(path: Path) -> str:
    return os.path.normpath(os.path.abspath(path))


def discover_projects(roots: Iterable[Path], max_depth: int = MAX_SCAN_DEPTH) -> list[Project]:
    """
    Find git projects under ``roots``.

    Directories up to ``max_depth`` levels below a root are considered;
    missing roots are skipped and symlinks are followed. A project reached
    through several roots is reported once.

    Returns:
        Projects ordered by normalized path
    """
    projects: dict[str, Project] = {}

    for root in roots:
        root = Path(root)
        if not root.is_dir():
            logger.debug(f"Skipping missing project root: {root}")
            continue
        root_depth = len(root.parts)
        for dirpath, dirnames, _ in os.walk(root, followlinks=True):
            current = Path(dirpath)
            depth = len(current.parts) - root_depth
            if ".git" in dirnames:
                project = Project.from_path(Path(normalize_path_key(current)))
                if project:
                    projects[str(project.path)] = project
            # Never descend into .git, nor past the depth limit.
            dirnames[:] = [d for d in dirnames if d != ".git"] if depth < max_depth else []

    return [projects[key] for key in sorted(projects)]


def filter_projects(projects: list[Project], query: str) -> list[Project]:
    """Keep projects whose name contains the trimmed query."""
    needle = query.strip()
    if not needle:
        return list(projects)
    return [project for project in projects if needle in project.name]


def last_commit_summary(project_path: Path) -> Optional[str]:
    """Return ``"<subject> (by <author>, <date>)"`` of HEAD, or None."""
    try:
        completed = subprocess.run(
            [
                "git",
                "-C",
                str(project_path),
                "log",
                "-1",
                "--pretty=format:%s (by %an, %ad)",
                "--date=short",
            ],
            capture_output=True,
            text=True,
            timeout=GIT_TIMEOUT_SECS,
            check=False,
        )
    except (OSError, subprocess.SubprocessError) as e:
        logger.debug(f"git log failed for {project_path}: {e}")
        return None
    if completed.returncode != 0:
        return None
    summary = completed.stdout.strip()
    return summary or None
