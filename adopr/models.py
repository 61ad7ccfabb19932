"""Data models for the adopr tool."""

import re
from enum import Enum
from pathlib import Path
from typing import Any
from urllib.parse import unquote, urlparse

from pydantic import BaseModel, Field, field_validator

REF_HEADS_PREFIX = "refs/heads/"

# Placeholders used when Azure DevOps omits a pull request field
UNKNOWN_BRANCH = "unknown"
NO_TITLE = "No title"
NO_DESCRIPTION = "No description"
UNKNOWN_AUTHOR = "Unknown"
UNKNOWN_DATE = "Unknown"

NON_ADO_HOSTS = ("github.com", "gitlab.com", "bitbucket.org")

_PR_ID_PATTERN = re.compile(r"^\d+$", re.ASCII)
_ADO_PR_PATH_PATTERN = re.compile(r"pullrequest/(\d+)", re.ASCII | re.IGNORECASE)
_ADO_REPO_PATH_PATTERN = re.compile(r"/_git/([^/]+)/pullrequest/", re.IGNORECASE)
_FOREIGN_PR_PATH_PATTERN = re.compile(r"/(pull|pulls|merge_requests)/\d+", re.ASCII)


class PRReferenceError(ValueError):
    """PR reference cannot be parsed."""
    pass


class NotAdoPullRequestError(PRReferenceError):
    """PR reference points at a provider other than Azure DevOps."""
    pass


class ChangeType(str, Enum):
    """File change types reported by ``git diff --name-status``."""

    ADDED = "added"
    MODIFIED = "modified"
    DELETED = "deleted"
    RENAMED = "renamed"
    COPIED = "copied"
    TYPE_CHANGED = "type_changed"
    UNMERGED = "unmerged"
    UNKNOWN = "unknown"

    @classmethod
    def from_status(cls, status: str) -> "ChangeType":
        """Map a git status letter (``M``, ``R100``...) to a change type."""
        mapping = {
            "A": cls.ADDED,
            "M": cls.MODIFIED,
            "D": cls.DELETED,
            "R": cls.RENAMED,
            "C": cls.COPIED,
            "T": cls.TYPE_CHANGED,
            "U": cls.UNMERGED,
        }
        return mapping.get(status[:1].upper(), cls.UNKNOWN)


def validate_repository_name(name: str) -> str:
    """Check a repository name is usable as a single directory name.

    Raises:
        PRReferenceError: If the name is empty or contains path separators
    """
    name = (name or "").strip()
    if not name or name in (".", "..") or "/" in name or "\\" in name:
        raise PRReferenceError(f"Invalid repository name: {name!r}")
    return name


def strip_ref_prefix(ref_name: str) -> str:
    """Turn ``refs/heads/feature/x`` into ``feature/x``."""
    if ref_name.startswith(REF_HEADS_PREFIX):
        return ref_name[len(REF_HEADS_PREFIX):]
    return ref_name


class PullRequestReference(BaseModel):
    """Pull request reference parsed from a bare id or a web URL."""

    raw: str = Field(description="Raw reference as given by the user")
    pr_id: int = Field(description="Pull request id")
    repository: str | None = Field(default=None, description="Repository name, if known")
    url: str | None = Field(default=None, description="Source URL, if given as a URL")

    @classmethod
    def parse(cls, reference: str, default_repository: str | None = None) -> "PullRequestReference":
        """Parse a pull request reference.

        Supported formats:
        - PR id: 12345
        - ADO URL: https://dev.azure.com/org/project/_git/repo/pullrequest/12345

        A bare id takes ``default_repository``; a URL carries its own repository
        when the path names one.

        Raises:
            NotAdoPullRequestError: URL belongs to GitHub, GitLab or Bitbucket
            PRReferenceError: Reference is neither an id nor an ADO PR URL
        """
        text = (reference or "").strip()

        if _PR_ID_PATTERN.match(text):
            return cls(raw=reference, pr_id=int(text), repository=default_repository)

        url = text
        # dev.azure.com/org/... as copied without the scheme
        if "://" not in url and "/" in url and "." in url.split("/", 1)[0]:
            url = f"https://{url}"

        parsed = urlparse(url)
        if parsed.scheme and parsed.netloc:
            host = parsed.netloc.lower().split("@")[-1].split(":")[0]
            if host.startswith("www."):
                host = host[4:]

            if host in NON_ADO_HOSTS or _FOREIGN_PR_PATH_PATTERN.search(parsed.path):
                raise NotAdoPullRequestError(
                    f"Not an ADO PR: {url}. Only Azure DevOps pull request URLs are supported"
                )

            match = _ADO_PR_PATH_PATTERN.search(parsed.path)
            if match:
                repo_match = _ADO_REPO_PATH_PATTERN.search(parsed.path)
                repository = unquote(repo_match.group(1)) if repo_match else default_repository
                return cls(raw=reference, pr_id=int(match.group(1)), repository=repository, url=url)

        raise PRReferenceError(
            f"Invalid PR number or URL format: {reference!r}. Expected a PR id such as 12345 "
            "or a URL such as https://dev.azure.com/<org>/<project>/_git/<repo>/pullrequest/12345"
        )


class PullRequest(BaseModel):
    """Azure DevOps pull request metadata."""

    pr_id: int = Field(description="Pull request id")
    repository: str = Field(description="Repository name")
    title: str = Field(default=NO_TITLE, description="PR title")
    description: str = Field(default=NO_DESCRIPTION, description="PR description")
    source_branch: str = Field(default=UNKNOWN_BRANCH, description="Source branch without refs/heads/")
    author: str = Field(default=UNKNOWN_AUTHOR, description="Creator display name")
    created: str = Field(default=UNKNOWN_DATE, description="Creation date as reported by ADO")
    status: str | None = Field(default=None, description="PR status (active, completed...)")
    target_branch: str | None = Field(default=None, description="Target branch without refs/heads/")
    url: str | None = Field(default=None, description="Web URL")

    @classmethod
    def from_azure(cls, data: dict[str, Any], repository: str, pr_id: int) -> "PullRequest":
        """Build a pull request from ``az repos pr show`` JSON.

        Missing, null and empty fields fall back to placeholders so that no
        field is ever rendered blank.
        """

        def text(value: Any, default: str) -> str:
            if value is None:
                return default
            value = str(value)
            return value if value.strip() else default

        created_by = data.get("createdBy") or {}
        links = data.get("_links") or {}
        web_link = links.get("web") or {}

        source_branch = strip_ref_prefix(text(data.get("sourceRefName"), UNKNOWN_BRANCH))
        target_ref = data.get("targetRefName")

        return cls(
            pr_id=pr_id,
            repository=repository,
            title=text(data.get("title"), NO_TITLE),
            description=text(data.get("description"), NO_DESCRIPTION),
            source_branch=source_branch or UNKNOWN_BRANCH,
            author=text(created_by.get("displayName"), UNKNOWN_AUTHOR),
            created=text(data.get("creationDate"), UNKNOWN_DATE),
            status=data.get("status"),
            target_branch=strip_ref_prefix(target_ref) if target_ref else None,
            url=web_link.get("href") or data.get("url"),
        )

    def render_metadata(self) -> str:
        """Render the ``metadata.md`` document."""
        return (
            f"# PR {self.pr_id} Metadata\n"
            "\n"
            f"**Repository:** {self.repository}  \n"
            f"**PR ID:** {self.pr_id}  \n"
            f"**Source Branch:** {self.source_branch}  \n"
            f"**Author:** {self.author}  \n"
            f"**Created:** {self.created}  \n"
            "\n"
            "## Title\n"
            f"{self.title}\n"
            "\n"
            "## Description\n"
            f"{self.description}\n"
        )


class PRWorkItem(BaseModel):
    """Files owned by one (repository, PR id) pair."""

    repository: str = Field(description="Repository name")
    pr_id: int = Field(description="Pull request id")
    data_dir: Path = Field(description="pr-data/<repo>-<id> directory")

    @staticmethod
    def directory_name(repository: str, pr_id: int) -> str:
        """Name of the ``pr-data`` directory for a repository and PR id."""
        return f"{repository}-{pr_id}"

    @property
    def metadata_path(self) -> Path:
        return self.data_dir / "metadata.md"

    @property
    def diff_path(self) -> Path:
        return self.data_dir / "diff.patch"

    @property
    def worktree_path(self) -> Path:
        return self.data_dir / "worktree"

    def exists(self) -> bool:
        """Check if the data directory exists."""
        return self.data_dir.is_dir()


class ChangedFile(BaseModel):
    """File changed by a pull request."""

    path: str = Field(description="Path relative to the repository root")
    change_type: ChangeType = Field(description="Kind of change")

    @property
    def extension(self) -> str:
        """Lower-case extension without the dot, empty when there is none."""
        return Path(self.path).suffix.lstrip(".").lower()


class FetchResult(BaseModel):
    """Outcome of a successful fetch."""

    work_item: PRWorkItem
    pull_request: PullRequest
    merge_clean: bool = Field(default=True, description="Main branch merged without conflicts")
    conflicted_files: list[str] = Field(default_factory=list, description="Files left with conflicts")


class AzureConfig(BaseModel):
    """Azure DevOps settings."""

    organization: str = Field(
        default="https://dev.azure.com/msazure", description="Organization URL"
    )
    project: str = Field(default="CloudNativeCompute", description="Project name")
    default_repository: str | None = Field(
        default=None, description="Repository used when a PR is given by id only"
    )

    @field_validator("organization")
    @classmethod
    def validate_organization(cls, v: str) -> str:
        """Validate organization is an http(s) URL."""
        v = v.strip().rstrip("/")
        if not v.startswith(("https://", "http://")):
            raise ValueError(f"Organization must be a URL such as https://dev.azure.com/<org>, got: {v}")
        return v

    @field_validator("project")
    @classmethod
    def validate_project(cls, v: str) -> str:
        """Validate project is not empty."""
        if not v or not v.strip():
            raise ValueError("Project cannot be empty") from None
        return v.strip()

    def repository_url(self, repository: str) -> str:
        """Clone URL of a repository in this organization and project."""
        return f"{self.organization}/{self.project}/_git/{repository}"


class StorageConfig(BaseModel):
    """Local storage settings."""

    root: str = Field(
        default="~/aiplayground/ado-pr-fetcher",
        description="Directory holding bare-repos/ and pr-data/",
    )

    @property
    def root_path(self) -> Path:
        return Path(self.root).expanduser()


class GitConfig(BaseModel):
    """Git settings."""

    main_branch: str = Field(default="master", description="Integration branch merged into PRs")
    merge_user_name: str = Field(default="adopr", description="Committer name for the local merge")
    merge_user_email: str = Field(
        default="adopr@localhost", description="Committer email for the local merge"
    )

    @field_validator("main_branch")
    @classmethod
    def validate_main_branch(cls, v: str) -> str:
        """Validate main branch is a plain branch name."""
        v = strip_ref_prefix(v.strip())
        if not v:
            raise ValueError("Main branch cannot be empty") from None
        return v


class MergeConfig(BaseModel):
    """Merge behavior settings."""

    fail_on_conflict: bool = Field(
        default=False,
        description="Abort the fetch when merging the main branch conflicts",
    )


class DefaultsConfig(BaseModel):
    """Default settings."""

    command_timeout: int | None = Field(
        default=None, description="Timeout for external commands in seconds (null = none)"
    )

    @field_validator("command_timeout")
    @classmethod
    def validate_command_timeout(cls, v: int | None) -> int | None:
        """Validate timeout is positive."""
        if v is not None and v <= 0:
            raise ValueError("Command timeout must be positive")
        return v


class Config(BaseModel):
    """Main configuration model."""

    version: str = Field(default="1.0", description="Config version")
    azure: AzureConfig = Field(default_factory=AzureConfig, description="Azure DevOps settings")
    storage: StorageConfig = Field(default_factory=StorageConfig, description="Storage settings")
    git: GitConfig = Field(default_factory=GitConfig, description="Git settings")
    merge: MergeConfig = Field(default_factory=MergeConfig, description="Merge settings")
    defaults: DefaultsConfig = Field(default_factory=DefaultsConfig, description="Default settings")

    model_config = {"extra": "allow"}
