"""PR fetch workflow."""

from typing import Optional

from adopr.config import get_config
from adopr.core import Workspace
from adopr.integrations.azure import AzureDevOpsError, AzureDevOpsIntegration
from adopr.integrations.git import BareRepositoryManager, GitRepositoryError, PRWorktreeBuilder
from adopr.models import Config, FetchResult, PRWorkItem, PullRequest
from adopr.utils.files import atomic_write_text
from adopr.utils.logger import get_logger
from adopr.utils.shell import ShellError, check_command_exists

logger = get_logger(__name__)


class FetchWorkflowError(Exception):
    """Fetch workflow error."""
    pass


def validate_fetch_prerequisites() -> list[str]:
    """Check the external tools the fetch workflow needs.

    Returns:
        List of problems, empty when all tools are available
    """
    errors = []
    for tool in ("az", "git"):
        if not check_command_exists(tool):
            errors.append(f"{tool} is not installed or not in PATH")
    return errors


def write_metadata(pull_request: PullRequest, work_item: PRWorkItem) -> str:
    """Write ``metadata.md`` for a pull request.

    Returns:
        The source branch, which the rest of the fetch needs
    """
    atomic_write_text(work_item.metadata_path, pull_request.render_metadata())
    logger.info(f"PR metadata saved to {work_item.metadata_path}")
    return pull_request.source_branch


def fetch_pr_workflow(
    repository: str,
    pr_id: int,
    config: Optional[Config] = None,
    azure: Optional[AzureDevOpsIntegration] = None,
    remote_url: Optional[str] = None,
) -> FetchResult:
    """Fetch a PR, stage its worktree and write its metadata and diff.

    Steps: authenticate, configure az defaults, read PR metadata, write
    metadata.md, update the bare mirror, build the worktree merged with the
    main branch and write diff.patch.

    Args:
        repository: Repository name
        pr_id: Pull request id
        config: Configuration (loaded if None)
        azure: Azure DevOps integration (created from config if None)
        remote_url: Clone URL override (computed from config if None)

    Returns:
        Fetch result

    Raises:
        FetchWorkflowError: If any fatal step fails
    """
    config = config or get_config()
    timeout = config.defaults.command_timeout
    azure = azure or AzureDevOpsIntegration(config.azure, timeout=timeout)
    workspace = Workspace(config)

    logger.info(f"Fetching PR {pr_id} from repo {repository}...")

    try:
        work_item = workspace.work_item(repository, pr_id)

        azure.validate_auth()
        azure.configure_defaults()

        logger.info("Fetching PR metadata...")
        pull_request = azure.fetch_pull_request(pr_id, repository)

        workspace.ensure_directories()
        work_item.data_dir.mkdir(parents=True, exist_ok=True)
        source_branch = write_metadata(pull_request, work_item)

        if not source_branch:
            raise FetchWorkflowError(f"Failed to get source branch for PR {pr_id}")

        mirror = BareRepositoryManager(workspace.bare_repos_dir, config.git, timeout=timeout)
        bare_repo_path = mirror.ensure_mirror(
            repository, remote_url or config.azure.repository_url(repository)
        )

        builder = PRWorktreeBuilder(bare_repo_path, config.git, timeout=timeout)
        outcome = builder.build(
            source_branch,
            work_item.worktree_path,
            work_item.diff_path,
            fail_on_conflict=config.merge.fail_on_conflict,
        )

    except (AzureDevOpsError, GitRepositoryError, ShellError, ValueError) as e:
        logger.error(str(e))
        raise FetchWorkflowError(str(e)) from e
    except OSError as e:
        logger.error(f"Filesystem error while fetching PR {pr_id}: {e}")
        raise FetchWorkflowError(f"Filesystem error while fetching PR {pr_id}: {e}") from e

    logger.info(f"PR {pr_id} fetch completed successfully!")
    logger.info(f"PR data available at: {work_item.data_dir}")

    return FetchResult(
        work_item=work_item,
        pull_request=pull_request,
        merge_clean=outcome.clean,
        conflicted_files=outcome.conflicted_files,
    )
