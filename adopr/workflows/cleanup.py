"""PR cleanup workflow."""

import shutil
from typing import Optional

from adopr.config import get_config
from adopr.core import Workspace
from adopr.integrations.git import remove_worktree
from adopr.models import Config
from adopr.utils.logger import get_logger

logger = get_logger(__name__)


class CleanupWorkflowError(Exception):
    """Cleanup workflow error."""
    pass


def cleanup_pr_workflow(repository: str, pr_id: int, config: Optional[Config] = None) -> bool:
    """Remove the worktree and data directory of a PR.

    Args:
        repository: Repository name
        pr_id: Pull request id
        config: Configuration (loaded if None)

    Returns:
        True if something was removed, False if there was nothing to clean up

    Raises:
        CleanupWorkflowError: If the PR data directory cannot be removed
    """
    config = config or get_config()
    workspace = Workspace(config)

    logger.info(f"Cleaning up PR {pr_id} from repo {repository}...")

    work_item = workspace.work_item(repository, pr_id)
    if not work_item.exists():
        logger.warning(f"PR data directory does not exist: {work_item.data_dir}")
        return False

    worktree_path = work_item.worktree_path
    if worktree_path.exists():
        logger.info("Removing worktree...")
        bare_repo_path = workspace.bare_repo_path(repository)
        try:
            if remove_worktree(bare_repo_path, worktree_path, timeout=config.defaults.command_timeout):
                logger.info("Worktree removed successfully")
            else:
                logger.warning("Failed to remove worktree via git command, removed directory directly")
        except OSError as e:
            # The data directory removal below retries the same files
            logger.warning(f"Failed to remove worktree directory {worktree_path}: {e}")

    logger.info("Removing PR data directory...")
    try:
        shutil.rmtree(work_item.data_dir)
    except OSError as e:
        logger.error(f"Failed to remove PR data directory: {work_item.data_dir}")
        raise CleanupWorkflowError(f"Failed to remove PR data directory {work_item.data_dir}: {e}") from e

    logger.info("PR data directory removed successfully")
    logger.info(f"Cleanup completed for PR {pr_id}")
    return True
