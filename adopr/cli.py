"""Click CLI interface for the adopr tool."""

import sys
from typing import Optional, Tuple

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from adopr import __version__
from adopr.config import ConfigError, config_manager
from adopr.core import Workspace
from adopr.integrations.git import GitRepositoryError
from adopr.models import NotAdoPullRequestError, PRReferenceError, PullRequestReference, validate_repository_name
from adopr.utils.logger import enable_verbose_logging, get_logger
from adopr.workflows import (
    CleanupWorkflowError,
    FetchWorkflowError,
    cleanup_pr_workflow,
    fetch_pr_workflow,
    get_changed_files,
    get_work_item_status,
    group_changed_files,
    list_work_items,
    validate_fetch_prerequisites,
)

logger = get_logger(__name__)
console = Console()


def fail(message: str, hint: Optional[str] = None) -> None:
    """Print an error and exit with status 1."""
    console.print(f"[red]Error:[/red] {escape(message)}")
    if hint:
        console.print(f"[yellow]Hint:[/yellow] {escape(hint)}")
    sys.exit(1)


def resolve_target(first: str, second: Optional[str]) -> Tuple[str, int]:
    """Resolve ``[REPO] PR`` arguments to a repository name and PR id.

    With one argument it is the PR reference and the repository comes from
    the URL or the configured default. With two the first is the repository.

    Raises:
        PRReferenceError: If the reference is invalid, points elsewhere, or no repository is known
        ConfigError: If configuration cannot be loaded
    """
    if second is None:
        repo_arg, pr_ref = None, first
    else:
        repo_arg, pr_ref = validate_repository_name(first), second

    default_repo = repo_arg or config_manager.get_config().azure.default_repository
    reference = PullRequestReference.parse(pr_ref, default_repository=default_repo)

    if repo_arg and reference.repository and reference.repository.lower() != repo_arg.lower():
        raise PRReferenceError(
            f"Repository {repo_arg} does not match repository {reference.repository} in {pr_ref}"
        )

    if not reference.repository:
        raise PRReferenceError(
            "Repository not specified. Pass it as REPO, use a full PR URL, "
            "or set azure.default_repository"
        )

    return validate_repository_name(reference.repository), reference.pr_id


def _resolve_or_fail(first: str, second: Optional[str]) -> Tuple[str, int]:
    try:
        return resolve_target(first, second)
    except NotAdoPullRequestError as e:
        fail(str(e), "Only Azure DevOps pull requests are supported")
    except PRReferenceError as e:
        fail(str(e), "Usage: adopr <fetch|cleanup|show> [REPO] <PR-ID|PR-URL>")
    except ConfigError as e:
        fail(str(e))


@click.group(invoke_without_command=True)
@click.option("--version", is_flag=True, help="Show version and exit")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
@click.pass_context
def cli(ctx: click.Context, version: bool, verbose: bool) -> None:
    """adopr - Azure DevOps pull request fetcher.

    Stages a pull request for review: PR metadata, a worktree of the source
    branch merged with master, and the resulting diff.
    """
    if version:
        click.echo(f"adopr version {__version__}")
        sys.exit(0)

    if verbose:
        enable_verbose_logging()

    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())
        sys.exit(1)


@cli.command()
@click.argument("repo_or_pr")
@click.argument("pr", required=False)
def fetch(repo_or_pr: str, pr: Optional[str]) -> None:
    """Fetch PR data and create worktree.

    \b
    Examples:
      adopr fetch aks-rp 13386625
      adopr fetch https://dev.azure.com/org/project/_git/aks-rp/pullrequest/13386625
    """
    repository, pr_id = _resolve_or_fail(repo_or_pr, pr)

    errors = validate_fetch_prerequisites()
    if errors:
        console.print("[red]Error:[/red] Prerequisites not met:")
        for error in errors:
            console.print(f"  - {escape(error)}")
        sys.exit(1)

    try:
        result = fetch_pr_workflow(repository, pr_id, config=config_manager.get_config())
    except ConfigError as e:
        fail(str(e))
    except FetchWorkflowError as e:
        hint = "Run 'az login' to authenticate with Azure" if "az login" in str(e) else None
        fail(str(e), hint)

    pull_request = result.pull_request
    console.print(
        f"[green]✓[/green] Fetched PR {pr_id} from {escape(repository)}: "
        f"[bold]{escape(pull_request.title)}[/bold]"
    )
    console.print(f"  Source branch: {escape(pull_request.source_branch)}")
    if pull_request.target_branch:
        console.print(f"  Target branch: {escape(pull_request.target_branch)}")
    if pull_request.status:
        console.print(f"  Status: {escape(pull_request.status)}")
    console.print(f"  Author: {escape(pull_request.author)}")
    console.print(f"  Metadata: {result.work_item.metadata_path}")
    console.print(f"  Diff: {result.work_item.diff_path}")
    console.print(f"  Worktree: {result.work_item.worktree_path}")
    if pull_request.url:
        console.print(f"View PR online: {escape(pull_request.url)}")

    if not result.merge_clean:
        console.print("[yellow]Warning:[/yellow] Merge conflicts detected; the diff may contain conflict markers")
        for path in result.conflicted_files:
            console.print(f"  - {escape(path)}")


@cli.command()
@click.argument("repo_or_pr")
@click.argument("pr", required=False)
def cleanup(repo_or_pr: str, pr: Optional[str]) -> None:
    """Clean up PR worktree and data.

    \b
    Example:
      adopr cleanup aks-rp 13386625
    """
    repository, pr_id = _resolve_or_fail(repo_or_pr, pr)

    try:
        removed = cleanup_pr_workflow(repository, pr_id, config=config_manager.get_config())
    except ConfigError as e:
        fail(str(e))
    except CleanupWorkflowError as e:
        fail(str(e))

    if removed:
        console.print(f"[green]✓[/green] Cleaned up PR {pr_id} from {escape(repository)}")
    else:
        console.print(f"[yellow]Nothing to clean up for PR {pr_id} from {escape(repository)}[/yellow]")


@cli.command()
def status() -> None:
    """Show staged pull requests."""
    try:
        work_items = list_work_items(config_manager.get_config())
    except ConfigError as e:
        fail(str(e))

    if not work_items:
        console.print("[yellow]No staged pull requests found.[/yellow]")
        return

    table = Table(title="Staged Pull Requests")
    table.add_column("Repository", style="cyan")
    table.add_column("PR", style="green")
    table.add_column("Metadata")
    table.add_column("Diff")
    table.add_column("Worktree")
    table.add_column("Path", style="dim")

    def mark(present: bool) -> str:
        return "[green]✓[/green]" if present else "[red]✗[/red]"

    for work_item in work_items:
        item_status = get_work_item_status(work_item)
        table.add_row(
            escape(work_item.repository),
            str(work_item.pr_id),
            mark(item_status["metadata"]),
            mark(item_status["diff"]),
            mark(item_status["worktree"]),
            str(work_item.data_dir),
        )

    console.print(table)
    console.print(f"\n[bold]Summary:[/bold] {len(work_items)} staged pull request(s)")


@cli.command()
@click.argument("repo_or_pr")
@click.argument("pr", required=False)
def show(repo_or_pr: str, pr: Optional[str]) -> None:
    """Show metadata and changed files of a staged PR."""
    repository, pr_id = _resolve_or_fail(repo_or_pr, pr)

    try:
        current_config = config_manager.get_config()
    except ConfigError as e:
        fail(str(e))

    work_item = Workspace(current_config).work_item(repository, pr_id)
    if not work_item.metadata_path.is_file():
        fail(
            f"PR {pr_id} from {repository} has not been fetched",
            f"Run 'adopr fetch {repository} {pr_id}' first",
        )

    console.print(escape(work_item.metadata_path.read_text(encoding="utf-8")))

    try:
        changed_files = get_changed_files(work_item, current_config)
    except GitRepositoryError as e:
        fail(str(e))

    if not changed_files:
        console.print("[yellow]No changed files found (worktree missing or no changes).[/yellow]")
        return

    groups = group_changed_files(changed_files)

    table = Table(title="Changed Files")
    table.add_column("Type", style="cyan")
    table.add_column("Files", style="green")
    for extension, files in groups.items():
        table.add_row(escape(extension), str(len(files)))
    console.print(table)

    for extension, files in groups.items():
        console.print(f"[bold]{escape(extension)}[/bold]")
        for changed_file in files:
            console.print(f"  - {escape(changed_file.path)} ({changed_file.change_type.value})")


@cli.command()
def init() -> None:
    """Create the default configuration file."""
    try:
        config_path = config_manager.create_default_config()
    except ConfigError as e:
        fail(str(e))

    console.print(f"[green]✓[/green] Configuration file: {config_path}")
    console.print("\n[bold]Next steps:[/bold]")
    console.print("1. Set your organization: [cyan]adopr config set azure.organization https://dev.azure.com/<org>[/cyan]")
    console.print("2. Set your project: [cyan]adopr config set azure.project <project>[/cyan]")
    console.print("3. Log in to Azure: [cyan]az login[/cyan]")


@cli.group()
def config() -> None:
    """Configuration management."""
    pass


@config.command("get")
@click.argument("key")
def config_get(key: str) -> None:
    """Get configuration value by KEY (e.g. 'azure.project')."""
    try:
        value = config_manager.get_config_value(key)
    except ConfigError as e:
        fail(str(e))

    console.print(f"{escape(key)}: {escape(str(value))}")


@config.command("set")
@click.argument("key")
@click.argument("value")
def config_set(key: str, value: str) -> None:
    """Set configuration KEY to VALUE in the user config file."""
    parsed_value = value
    if value.lower() in ("true", "false"):
        parsed_value = value.lower() == "true"
    elif value.lower() in ("null", "none"):
        parsed_value = None

    try:
        config_manager.set_config_value(key, parsed_value)
    except ConfigError as e:
        fail(str(e))

    console.print(f"[green]✓[/green] Config updated: {escape(key)} = {escape(str(parsed_value))}")


@config.command("show")
def config_show() -> None:
    """Show current configuration values."""
    try:
        config_dict = config_manager.get_config().model_dump(mode="json")
    except ConfigError as e:
        fail(str(e))

    table = Table(title="Current Configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")

    def add_config_rows(data: dict, prefix: str = "") -> None:
        for key, value in data.items():
            full_key = f"{prefix}.{key}" if prefix else key
            if isinstance(value, dict):
                add_config_rows(value, full_key)
            elif value is None:
                table.add_row(full_key, "[dim]None[/dim]")
            else:
                table.add_row(full_key, escape(str(value)))

    add_config_rows(config_dict)
    console.print(table)
    console.print(f"\n[bold]Config file:[/bold] {config_manager.config_path}")


def main() -> None:
    """Entry point for the adopr console script."""
    cli()


if __name__ == "__main__":
    main()
