"""
Git project index for the open-project workflow.

Lists git repositories under the configured roots, ranked by when they were
last opened, and records usage when a project is picked.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Optional

from alfredkit.core.config import ProjectConfig
from alfredkit.core.errors import ErrorCode, WorkflowError, user_error
from alfredkit.core.feedback import Feedback, Item
from alfredkit.infrastructure.project_discovery import (
    Project,
    discover_projects,
    filter_projects,
    last_commit_summary,
    normalize_path_key,
)
from alfredkit.infrastructure.usage_log import UsageLog, parse_usage_timestamp, record_usage

logger = logging.getLogger(__name__)

NO_PROJECTS_TITLE = "No Git projects found"
NO_PROJECTS_SUBTITLE = "No matching or initialized Git repos found"
NO_COMMIT_TEXT = "No recent commits"
NO_USAGE_TEXT = "N/A"


def subtitle_format(commit_summary: Optional[str], usage_timestamp: Optional[str]) -> str:
    """Render ``"<last commit> • <last used>"`` with placeholders for missing parts."""
    commit_text = (commit_summary or "").strip() or NO_COMMIT_TEXT
    usage_text = (usage_timestamp or "").strip() or NO_USAGE_TEXT
    return f"{commit_text} • {usage_text}"


def no_projects_feedback() -> Feedback:
    return Feedback.single(
        Item(title=NO_PROJECTS_TITLE, subtitle=NO_PROJECTS_SUBTITLE, valid=False)
    )


@dataclass
class RankedProject:
    """A project with its display subtitle and usage sort key."""

    project: Project
    subtitle: str
    last_used: int

    def to_item(self) -> Item:
        path = str(self.project.path)
        return Item(
            title=self.project.name,
            subtitle=self.subtitle,
            arg=path,
            autocomplete=self.project.name,
        )


@dataclass
class UsageRecord:
    """Result of recording a project as used."""

    path: str
    usage_file: str
    timestamp: str

    def to_dict(self) -> dict[str, Any]:
        return {"path": self.path, "usage_file": self.usage_file, "timestamp": self.timestamp}


class ProjectService:
    """Discovers, ranks and records git projects."""

    def __init__(
        self,
        config: ProjectConfig,
        commit_summary: Callable[[Path], Optional[str]] = last_commit_summary,
    ):
        self.config = config
        self.commit_summary = commit_summary

    def rank(self, query: str) -> list[RankedProject]:
        """
        Projects matching ``query``, most recently used first.

        Ties (including never-used projects) are ordered by name. The result
        count is capped by ``max_results`` only when the query is empty.
        """
        query = query.strip()
        projects = filter_projects(
            discover_projects(self.config.project_dirs, self.config.max_depth), query
        )
        if not projects:
            return []

        usage = UsageLog.load(self.config.usage_file)
        ranked = []
        for project in projects:
            last_used = usage.timestamp_for(project.path, project.name)
            ranked.append(
                RankedProject(
                    project=project,
                    subtitle=subtitle_format(self.commit_summary(project.path), last_used),
                    last_used=parse_usage_timestamp(last_used),
                )
            )
        ranked.sort(key=lambda r: (-r.last_used, r.project.name))
        if not query:
            ranked = ranked[: self.config.max_results]
        return ranked

    def script_filter(self, query: str) -> Feedback:
        ranked = self.rank(query)
        if not ranked:
            return no_projects_feedback()
        return Feedback(items=[r.to_item() for r in ranked])

    def record_usage(self, raw_path: str, now: Optional[datetime] = None) -> UsageRecord:
        """
        Record ``raw_path`` as just used.

        Raises:
            WorkflowError: ``user.invalid_input`` for an empty path,
                ``runtime.storage_failure`` when the usage file cannot be written
        """
        raw_path = raw_path.strip()
        if not raw_path:
            raise user_error("project path must not be empty")
        path = Path(normalize_path_key(Path(raw_path)))
        usage_file = self.config.usage_file
        try:
            timestamp = record_usage(path, usage_file, now)
        except (OSError, UnicodeDecodeError) as e:
            raise WorkflowError(
                code=ErrorCode.STORAGE_FAILURE,
                message=f"failed to write usage file {usage_file}: {e}",
                details={"usage_file": str(usage_file)},
            ) from e
        logger.debug(f"Recorded usage for {path} at {timestamp}")
        return UsageRecord(path=str(path), usage_file=str(usage_file), timestamp=timestamp)
