"""Assignee directory: assignee name to chat address."""

import logging
from pathlib import Path

import yaml

from task_notifier.config import Config

logger = logging.getLogger(__name__)


class AssigneeDirectory:
    """Read-only name → address mapping, loaded once per operation."""

    def __init__(self, entries: dict[str, str] | None = None) -> None:
        """Initialize directory, dropping entries with a blank name or address."""
        self._entries: dict[str, str] = {}
        for name, address in (entries or {}).items():
            key = str(name).strip() if name is not None else ""
            value = str(address).strip() if address is not None else ""
            if key and value:
                self._entries[key] = value

    def resolve(self, name: str) -> str | None:
        """Get the address for an assignee, or None if unknown."""
        if not name:
            return None
        return self._entries.get(name.strip())

    def __len__(self) -> int:
        return len(self._entries)


def load_directory(config: Config) -> AssigneeDirectory:
    """Load the assignee directory from config.

    The optional directory_file (a YAML mapping) is merged over the inline
    assignees mapping. A missing or invalid file is logged and ignored.
    """
    entries = dict(config.assignees)
    if config.directory_file is not None:
        entries.update(_read_directory_file(config.directory_file))
    directory = AssigneeDirectory(entries)
    logger.debug(f"[Directory] Loaded {len(directory)} assignees")
    return directory


def _read_directory_file(path: Path) -> dict[str, str]:
    if not path.exists():
        logger.warning(f"[Directory] Directory file not found: {path}")
        return {}
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        logger.warning(f"[Directory] Invalid YAML in {path}: {e}")
        return {}
    if not isinstance(data, dict):
        logger.warning(f"[Directory] {path} must contain a mapping of name: address")
        return {}
    return {str(k): str(v) for k, v in data.items() if k is not None and v is not None}
