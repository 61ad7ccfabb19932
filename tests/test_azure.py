"""Tests for Azure DevOps integration."""

import json
from unittest.mock import patch

import pytest

from adopr.integrations.azure import (
    AzureAuthError,
    AzureCliNotFoundError,
    AzureDevOpsError,
    AzureDevOpsIntegration,
    PullRequestFetchError,
)
from adopr.models import AzureConfig
from adopr.utils.shell import ShellError, ShellResult


@pytest.fixture
def integration():
    """Create integration for the contoso organization."""
    settings = AzureConfig(organization="https://dev.azure.com/contoso", project="Platform")
    return AzureDevOpsIntegration(settings, timeout=30)


def shell_result(returncode=0, stdout="", stderr=""):
    return ShellResult(returncode=returncode, stdout=stdout, stderr=stderr, command="az")


class TestValidateAuth:
    """Test Azure authentication check."""

    @patch("adopr.integrations.azure.check_command_exists", return_value=True)
    @patch("adopr.integrations.azure.run_command")
    def test_authenticated(self, mock_run, mock_exists, integration):
        mock_run.return_value = shell_result(stdout='{"user": {}}')

        integration.validate_auth()

        mock_run.assert_called_once_with(["az", "account", "show"], timeout=30)

    @patch("adopr.integrations.azure.check_command_exists", return_value=True)
    @patch("adopr.integrations.azure.run_command")
    def test_not_authenticated(self, mock_run, mock_exists, integration):
        mock_run.return_value = shell_result(returncode=1, stderr="Please run 'az login'")

        with pytest.raises(AzureAuthError, match="az login"):
            integration.validate_auth()

    @patch("adopr.integrations.azure.check_command_exists", return_value=False)
    @patch("adopr.integrations.azure.run_command")
    def test_cli_missing(self, mock_run, mock_exists, integration):
        with pytest.raises(AzureCliNotFoundError):
            integration.validate_auth()

        mock_run.assert_not_called()

    @patch("adopr.integrations.azure.check_command_exists", return_value=True)
    @patch("adopr.integrations.azure.run_command")
    def test_timeout(self, mock_run, mock_exists, integration):
        mock_run.side_effect = ShellError("Command timed out: az account show", -1)

        with pytest.raises(AzureAuthError, match="timed out"):
            integration.validate_auth()


class TestConfigureDefaults:
    """Test az devops defaults."""

    @patch("adopr.integrations.azure.run_command")
    def test_sets_organization_and_project(self, mock_run, integration):
        mock_run.return_value = shell_result()

        integration.configure_defaults()

        mock_run.assert_called_once_with(
            [
                "az", "devops", "configure", "--defaults",
                "organization=https://dev.azure.com/contoso",
                "project=Platform",
            ],
            check=True,
            timeout=30,
        )

    @patch("adopr.integrations.azure.run_command")
    def test_failure(self, mock_run, integration):
        mock_run.side_effect = ShellError("Command failed", 1, "", "devops extension missing")

        with pytest.raises(AzureDevOpsError, match="devops extension missing"):
            integration.configure_defaults()


class TestFetchPullRequest:
    """Test PR metadata retrieval."""

    @patch("adopr.integrations.azure.run_command")
    def test_fetch(self, mock_run, integration, azure_pr_data):
        mock_run.return_value = shell_result(stdout=json.dumps(azure_pr_data))

        pr = integration.fetch_pull_request(42, "svc")

        mock_run.assert_called_once_with(
            ["az", "repos", "pr", "show", "--id", "42", "--output", "json"],
            check=True,
            timeout=30,
        )
        assert pr.pr_id == 42
        assert pr.repository == "svc"
        assert pr.source_branch == "feature/x"
        assert pr.author == "Alice"

    @patch("adopr.integrations.azure.run_command")
    def test_not_found_is_not_retried(self, mock_run, integration):
        mock_run.side_effect = ShellError(
            "Command failed", 1, "", "TF401180: The requested pull request was not found."
        )

        with pytest.raises(PullRequestFetchError, match="Failed to fetch PR 99999999 from repository svc"):
            integration.fetch_pull_request(99999999, "svc")

        assert mock_run.call_count == 1

    @patch("adopr.integrations.azure.run_command")
    def test_invalid_json(self, mock_run, integration):
        mock_run.return_value = shell_result(stdout="not json")

        with pytest.raises(PullRequestFetchError, match="Failed to parse PR 42"):
            integration.fetch_pull_request(42, "svc")

    @patch("adopr.integrations.azure.run_command")
    def test_unexpected_json(self, mock_run, integration):
        mock_run.return_value = shell_result(stdout="[]")

        with pytest.raises(PullRequestFetchError, match="Unexpected PR 42 data"):
            integration.fetch_pull_request(42, "svc")

    @patch("adopr.integrations.azure.run_command")
    def test_repository_mismatch_is_kept(self, mock_run, integration, azure_pr_data):
        """Test the requested repository is recorded even if ADO reports another."""
        mock_run.return_value = shell_result(stdout=json.dumps(azure_pr_data))

        pr = integration.fetch_pull_request(42, "other-repo")

        assert pr.repository == "other-repo"
