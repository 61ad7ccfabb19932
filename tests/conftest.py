"""Shared test configuration and fixtures."""

import os
import shutil
import subprocess
from pathlib import Path
from unittest.mock import Mock

import pytest

from adopr.config import ConfigManager
from adopr.integrations.azure import AzureDevOpsIntegration
from adopr.models import Config, PullRequest

requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git is not installed")


@pytest.fixture
def temp_home(tmp_path_factory):
    """Create a temporary home directory for tests."""
    return tmp_path_factory.mktemp("home")


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Remove adopr environment overrides inherited from the shell."""
    for key in list(os.environ):
        if key.startswith("ADOPR_") or key in ("ADO_ORG_URL", "ADO_PROJECT", "ADO_REPO"):
            monkeypatch.delenv(key, raising=False)


@pytest.fixture
def isolated_config_manager(temp_home, monkeypatch):
    """Create an isolated ConfigManager that doesn't touch real config files."""
    monkeypatch.setattr(Path, "home", lambda: temp_home)

    manager = ConfigManager()
    manager._user_config_path = temp_home / ".adopr" / "config.yaml"
    manager._config = None
    return manager


@pytest.fixture(autouse=True)
def mock_global_config_manager(isolated_config_manager, monkeypatch):
    """Replace the global config_manager for all tests."""
    import adopr.cli
    import adopr.config

    monkeypatch.setattr(adopr.config, "config_manager", isolated_config_manager)
    monkeypatch.setattr(adopr.cli, "config_manager", isolated_config_manager)
    return isolated_config_manager


@pytest.fixture
def sandbox_root(tmp_path):
    """Storage root for bare-repos/ and pr-data/."""
    return tmp_path / "sandbox"


@pytest.fixture
def test_config(sandbox_root):
    """Configuration pointing storage at the sandbox."""
    return Config.model_validate(
        {
            "azure": {
                "organization": "https://dev.azure.com/contoso",
                "project": "Platform",
            },
            "storage": {"root": str(sandbox_root)},
        }
    )


@pytest.fixture
def azure_pr_data():
    """``az repos pr show`` output for PR 42 of svc."""
    return {
        "pullRequestId": 42,
        "title": "Fix crash on startup",
        "description": "Fixes bug",
        "sourceRefName": "refs/heads/feature/x",
        "targetRefName": "refs/heads/master",
        "status": "active",
        "creationDate": "2024-05-01T10:00:00.000000+00:00",
        "createdBy": {"displayName": "Alice"},
        "repository": {"name": "svc"},
        "_links": {"web": {"href": "https://dev.azure.com/contoso/Platform/_git/svc/pullrequest/42"}},
    }


@pytest.fixture
def mock_azure(azure_pr_data):
    """Azure DevOps integration returning ``azure_pr_data`` for any PR."""
    azure = Mock(spec=AzureDevOpsIntegration)
    azure.fetch_pull_request.side_effect = lambda pr_id, repository: PullRequest.from_azure(
        azure_pr_data, repository=repository, pr_id=pr_id
    )
    return azure


@pytest.fixture
def runner():
    """Create a Click CLI test runner."""
    from click.testing import CliRunner
    return CliRunner()


# ---------------------------------------------------------------------------
# git repositories
# ---------------------------------------------------------------------------

def git(*args, cwd):
    """Run git in ``cwd`` and return stdout."""
    result = subprocess.run(
        ["git", "-c", "user.name=Test", "-c", "user.email=test@example.com", *args],
        cwd=cwd,
        capture_output=True,
        text=True,
        check=True,
    )
    return result.stdout.strip()


def commit_file(repo, name, content, message):
    """Write a file and commit it."""
    (Path(repo) / name).write_text(content)
    git("add", name, cwd=repo)
    git("commit", "-q", "-m", message, cwd=repo)
    return git("rev-parse", "HEAD", cwd=repo)


@pytest.fixture
def git_env(tmp_path, monkeypatch):
    """Isolate git from the user's global and system configuration."""
    git_home = tmp_path / "git-home"
    git_home.mkdir()
    monkeypatch.setenv("HOME", str(git_home))
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    monkeypatch.delenv("GIT_DIR", raising=False)
    monkeypatch.delenv("GIT_WORK_TREE", raising=False)
    return git_home


@pytest.fixture
def upstream_repo(tmp_path, git_env):
    """Upstream repository with master and a feature/x branch.

    feature/x edits app.txt and adds feature.py; master has since moved on
    with master.txt.
    """
    repo = tmp_path / "upstream"
    repo.mkdir()
    git("init", "-q", cwd=repo)
    git("symbolic-ref", "HEAD", "refs/heads/master", cwd=repo)
    commit_file(repo, "README.md", "base\n", "Initial commit")
    commit_file(repo, "app.txt", "line1\nline2\n", "Add app")

    git("checkout", "-q", "-b", "feature/x", cwd=repo)
    commit_file(repo, "app.txt", "line1\nline2\nfeature line\n", "Extend app")
    commit_file(repo, "feature.py", "print('feature')\n", "Add feature")

    git("checkout", "-q", "master", cwd=repo)
    commit_file(repo, "master.txt", "from master\n", "Advance master")
    return repo
