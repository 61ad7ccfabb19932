"""Azure DevOps integration via the az CLI."""

import json
from typing import Optional

from adopr.models import AzureConfig, PullRequest
from adopr.utils.logger import get_logger
from adopr.utils.shell import ShellError, check_command_exists, run_command

logger = get_logger(__name__)


class AzureDevOpsError(Exception):
    """Azure DevOps integration error."""
    pass


class AzureCliNotFoundError(AzureDevOpsError):
    """The az CLI is not installed."""
    pass


class AzureAuthError(AzureDevOpsError):
    """No active Azure session."""
    pass


class PullRequestFetchError(AzureDevOpsError):
    """Pull request metadata could not be read."""
    pass


class AzureDevOpsIntegration:
    """Azure DevOps integration using the az CLI."""

    def __init__(self, settings: AzureConfig, timeout: Optional[float] = None):
        """Initialize Azure DevOps integration.

        Args:
            settings: Organization and project settings
            timeout: Timeout for az commands in seconds, None waits forever
        """
        self.settings = settings
        self.timeout = timeout

    def validate_auth(self) -> None:
        """Verify an Azure session is active.

        Raises:
            AzureCliNotFoundError: If az is not on PATH
            AzureAuthError: If ``az account show`` fails
        """
        logger.info("Checking Azure authentication...")

        if not check_command_exists("az"):
            raise AzureCliNotFoundError(
                "Azure CLI (az) is not installed or not in PATH. "
                "See https://docs.microsoft.com/en-us/cli/azure/install-azure-cli"
            )

        try:
            result = run_command(["az", "account", "show"], timeout=self.timeout)
        except ShellError as e:
            raise AzureAuthError(f"Failed to check Azure authentication: {e}")

        if not result.success:
            raise AzureAuthError("Not authenticated with Azure. Run 'az login' first.")

        logger.info("Azure authentication verified")

    def configure_defaults(self) -> None:
        """Set organization and project defaults for later az devops calls.

        Raises:
            AzureDevOpsError: If ``az devops configure`` fails
        """
        logger.info("Configuring Azure DevOps defaults...")

        try:
            run_command(
                [
                    "az", "devops", "configure", "--defaults",
                    f"organization={self.settings.organization}",
                    f"project={self.settings.project}",
                ],
                check=True,
                timeout=self.timeout,
            )
        except ShellError as e:
            detail = e.detail
            raise AzureDevOpsError(f"Failed to configure Azure DevOps defaults: {detail}")

        logger.debug(
            f"Defaults set: organization={self.settings.organization} project={self.settings.project}"
        )

    def fetch_pull_request(self, pr_id: int, repository: str) -> PullRequest:
        """Fetch pull request metadata.

        Runs ``az repos pr show`` exactly once. A missing PR is not a
        transient condition, so failures are not retried.

        Args:
            pr_id: Pull request id
            repository: Repository name used for reporting and the metadata document

        Returns:
            Pull request with placeholders for omitted fields

        Raises:
            PullRequestFetchError: If the PR cannot be read or parsed
        """
        try:
            result = run_command(
                ["az", "repos", "pr", "show", "--id", str(pr_id), "--output", "json"],
                check=True,
                timeout=self.timeout,
            )
        except ShellError as e:
            detail = e.stderr.strip()
            message = f"Failed to fetch PR {pr_id} from repository {repository}"
            raise PullRequestFetchError(f"{message}: {detail}" if detail else message)

        try:
            data = json.loads(result.stdout)
        except json.JSONDecodeError as e:
            raise PullRequestFetchError(
                f"Failed to parse PR {pr_id} data from repository {repository}: {e}"
            )

        if not isinstance(data, dict):
            raise PullRequestFetchError(
                f"Unexpected PR {pr_id} data from repository {repository}: {type(data).__name__}"
            )

        reported_repo = (data.get("repository") or {}).get("name")
        if reported_repo and reported_repo.lower() != repository.lower():
            logger.warning(
                f"PR {pr_id} belongs to repository {reported_repo}, not {repository}"
            )

        pull_request = PullRequest.from_azure(data, repository=repository, pr_id=pr_id)
        logger.debug(f"Fetched PR {pr_id}: {pull_request.title} ({pull_request.source_branch})")
        return pull_request

