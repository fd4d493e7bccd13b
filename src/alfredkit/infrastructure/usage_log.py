"""
Project usage log.

A line-oriented text file of ``KEY | YYYY-MM-DD HH:MM:SS`` entries. Keys are
absolute project paths; older entries may be keyed by the project's basename.
The last line for a key wins.
"""

import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


def _split_line(line: str) -> Optional[tuple[str, str]]:
    if "|" not in line:
        return None
    key, timestamp = line.split("|", 1)
    key, timestamp = key.strip(), timestamp.strip()
    if not key or not timestamp:
        return None
    return key, timestamp


class UsageLog:
    """Last-used timestamps per project, loaded from the usage file."""

    def __init__(self, entries: Optional[dict[str, str]] = None):
        self.entries = entries or {}

    @classmethod
    def load(cls, path: Path) -> "UsageLog":
        """Load the usage file; a missing or unreadable file yields an empty log."""
        try:
            content = Path(path).read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            logger.debug(f"No usage log loaded from {path}: {e}")
            return cls()

        entries: dict[str, str] = {}
        for line in content.splitlines():
            parsed = _split_line(line)
            if parsed:
                entries[parsed[0]] = parsed[1]
        return cls(entries)

    def timestamp_for(self, project_path: Path, project_name: str) -> Optional[str]:
        """Timestamp recorded for the project path, falling back to its name."""
        return self.entries.get(str(project_path)) or self.entries.get(project_name)


def parse_usage_timestamp(raw: Optional[str]) -> int:
    """Seconds since the epoch for a usage timestamp; 0 when missing or invalid."""
    if not raw:
        return 0
    try:
        parsed = datetime.strptime(raw.strip(), TIMESTAMP_FORMAT)
    except ValueError:
        return 0
    return int(parsed.replace(tzinfo=timezone.utc).timestamp())


def record_usage(project_path: Path, usage_file: Path, now: Optional[datetime] = None) -> str:
    """
    Record that a project was just used.

    Drops earlier lines keyed by the project's path or basename, appends a
    fresh entry, and replaces the file through a temporary sibling.

    Args:
        project_path: Absolute project path
        usage_file: Usage log location
        now: Timestamp to record; defaults to local time

    Returns:
        The recorded timestamp text

    Raises:
        OSError: If the usage file cannot be written
        UnicodeDecodeError: If the existing usage file is not UTF-8
    """
    path_key = str(project_path)
    name_key = Path(project_path).name
    usage_file = Path(usage_file)

    try:
        existing = usage_file.read_text(encoding="utf-8")
    except FileNotFoundError:
        existing = ""

    lines = []
    for line in existing.splitlines():
        parsed = _split_line(line)
        if parsed is None:
            continue
        if parsed[0] not in (path_key, name_key):
            lines.append(line)

    timestamp = (now or datetime.now()).strftime(TIMESTAMP_FORMAT)
    lines.append(f"{path_key} | {timestamp}")

    usage_file.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = usage_file.with_name(f"{usage_file.name}.{os.getpid()}.tmp")
    try:
        tmp_path.write_text("\n".join(lines) + "\n", encoding="utf-8")
        tmp_path.replace(usage_file)
    except OSError:
        tmp_path.unlink(missing_ok=True)
        raise
    return timestamp
