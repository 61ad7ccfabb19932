"""Reporting on staged PR work items."""

from collections import defaultdict
from typing import Dict, List, Optional

from adopr.config import get_config
from adopr.core import Workspace
from adopr.integrations.git import list_changed_files
from adopr.models import ChangedFile, Config, PRWorkItem


def get_work_item_status(work_item: PRWorkItem) -> Dict[str, bool]:
    """Report which artifacts of a work item are present."""
    return {
        "metadata": work_item.metadata_path.is_file(),
        "diff": work_item.diff_path.is_file(),
        "worktree": work_item.worktree_path.is_dir(),
    }


def list_work_items(config: Optional[Config] = None) -> List[PRWorkItem]:
    """List staged work items."""
    return Workspace(config or get_config()).list_work_items()


def group_changed_files(files: List[ChangedFile]) -> Dict[str, List[ChangedFile]]:
    """Group changed files by extension, ``(none)`` for files without one.

    Groups are ordered by size, largest first, then by name.
    """
    groups: Dict[str, List[ChangedFile]] = defaultdict(list)
    for changed_file in files:
        groups[changed_file.extension or "(none)"].append(changed_file)
    return dict(sorted(groups.items(), key=lambda item: (-len(item[1]), item[0])))


def get_changed_files(work_item: PRWorkItem, config: Optional[Config] = None) -> List[ChangedFile]:
    """List files changed in a work item's worktree, empty if there is no worktree.

    Raises:
        GitRepositoryError: If git cannot compute the file list
    """
    config = config or get_config()
    if not work_item.worktree_path.is_dir():
        return []
    return list_changed_files(
        work_item.worktree_path, config.git.main_branch, timeout=config.defaults.command_timeout
    )
