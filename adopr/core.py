"""Local workspace layout for bare mirrors and PR data."""

import re
from pathlib import Path
from typing import List, Optional

from adopr.config import get_config
from adopr.models import Config, PRWorkItem, validate_repository_name
from adopr.utils.logger import get_logger

logger = get_logger(__name__)

BARE_REPOS_DIRNAME = "bare-repos"
PR_DATA_DIRNAME = "pr-data"

_WORK_ITEM_DIR_PATTERN = re.compile(r"^(?P<repository>.+)-(?P<pr_id>\d+)$")


class Workspace:
    """Filesystem layout rooted at ``storage.root``.

    ``bare-repos/<repo>/`` holds one bare mirror per repository and
    ``pr-data/<repo>-<id>/`` holds one PR work item.
    """

    def __init__(self, config: Optional[Config] = None, root: Optional[Path] = None):
        self.config = config or get_config()
        self.root = Path(root) if root else self.config.storage.root_path

    @property
    def bare_repos_dir(self) -> Path:
        return self.root / BARE_REPOS_DIRNAME

    @property
    def pr_data_dir(self) -> Path:
        return self.root / PR_DATA_DIRNAME

    def ensure_directories(self) -> None:
        """Create the bare-repos and pr-data directories."""
        logger.info("Setting up directory structure...")
        self.bare_repos_dir.mkdir(parents=True, exist_ok=True)
        self.pr_data_dir.mkdir(parents=True, exist_ok=True)

    def bare_repo_path(self, repository: str) -> Path:
        return self.bare_repos_dir / validate_repository_name(repository)

    def work_item(self, repository: str, pr_id: int) -> PRWorkItem:
        """Get the work item for a repository and PR id."""
        repository = validate_repository_name(repository)
        return PRWorkItem(
            repository=repository,
            pr_id=pr_id,
            data_dir=self.pr_data_dir / PRWorkItem.directory_name(repository, pr_id),
        )

    def list_work_items(self) -> List[PRWorkItem]:
        """List work items found under pr-data, sorted by directory name."""
        if not self.pr_data_dir.is_dir():
            return []

        items = []
        for entry in sorted(self.pr_data_dir.iterdir()):
            if not entry.is_dir():
                continue
            match = _WORK_ITEM_DIR_PATTERN.match(entry.name)
            if match is None:
                logger.debug(f"Skipping unrecognized pr-data entry: {entry.name}")
                continue
            items.append(
                PRWorkItem(
                    repository=match.group("repository"),
                    pr_id=int(match.group("pr_id")),
                    data_dir=entry,
                )
            )
        return items
