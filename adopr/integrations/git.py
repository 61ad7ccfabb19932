"""Bare mirror and PR worktree management."""

import shutil
from pathlib import Path
from typing import List, Optional

from adopr.models import ChangeType, ChangedFile, GitConfig
from adopr.utils.files import atomic_write_bytes
from adopr.utils.logger import get_logger
from adopr.utils.shell import ShellError, ShellResult, run_command

logger = get_logger(__name__)

REMOTE_FETCH_REFSPEC = "+refs/heads/*:refs/remotes/origin/*"


class GitRepositoryError(Exception):
    """Git repository error."""
    pass


class GitCloneError(GitRepositoryError):
    """Bare clone failed."""
    pass


class BranchNotFoundError(GitRepositoryError):
    """Remote-tracking ref for a branch does not exist."""
    pass


class WorktreeError(GitRepositoryError):
    """Worktree could not be created."""
    pass


class MergeConflictError(GitRepositoryError):
    """Merging the main branch left conflicts."""

    def __init__(self, message: str, conflicted_files: Optional[List[str]] = None):
        super().__init__(message)
        self.conflicted_files = conflicted_files or []


class MergeOutcome:
    """Result of merging the main branch into a PR worktree."""

    def __init__(self, clean: bool, conflicted_files: Optional[List[str]] = None):
        self.clean = clean
        self.conflicted_files = conflicted_files or []


def run_git(
    *args: str,
    cwd: Optional[Path] = None,
    check: bool = False,
    timeout: Optional[float] = None,
    text: bool = True,
) -> ShellResult:
    """Run a git command."""
    return run_command(["git", *args], cwd=cwd, check=check, timeout=timeout, text=text)


class BareRepositoryManager:
    """Keeps one bare mirror per repository under ``bare-repos/``.

    The mirror's local main branch is a cache of the remote main branch and is
    overwritten on every update.
    """

    def __init__(self, bare_repos_dir: Path, git_config: GitConfig, timeout: Optional[float] = None):
        self.bare_repos_dir = Path(bare_repos_dir)
        self.git_config = git_config
        self.timeout = timeout

    def repo_path(self, repository: str) -> Path:
        return self.bare_repos_dir / repository

    def ensure_mirror(self, repository: str, remote_url: str) -> Path:
        """Clone or update the bare mirror and reset its main branch to the remote.

        Args:
            repository: Repository name
            remote_url: Clone URL

        Returns:
            Path to the bare repository

        Raises:
            GitCloneError: If the initial clone fails
            GitRepositoryError: If fetching or updating the main branch fails
        """
        bare_repo_path = self.repo_path(repository)

        if not bare_repo_path.is_dir():
            logger.info(f"Cloning bare repository {repository}...")
            self.bare_repos_dir.mkdir(parents=True, exist_ok=True)
            try:
                run_git("clone", "--bare", remote_url, str(bare_repo_path), check=True, timeout=self.timeout)
            except ShellError as e:
                raise GitCloneError(f"Failed to clone repository {repository}: {e.detail}")
            self._configure_remote_tracking(bare_repo_path)
        else:
            logger.info("Updating existing bare repository...")
            self._configure_remote_tracking(bare_repo_path)
            self._fetch(bare_repo_path)

        logger.info(f"Fetching latest {self.git_config.main_branch} branch...")
        self._fetch(bare_repo_path)

        self.update_main_branch(bare_repo_path)

        logger.info(f"Bare repository ready at {bare_repo_path}")
        return bare_repo_path

    def _configure_remote_tracking(self, bare_repo_path: Path) -> None:
        """Make fetches populate refs/remotes/origin/* in the bare mirror.

        A plain ``git clone --bare`` maps remote branches straight onto
        refs/heads/* and sets no fetch refspec.
        """
        try:
            run_git(
                "config", "remote.origin.fetch", REMOTE_FETCH_REFSPEC,
                cwd=bare_repo_path, check=True, timeout=self.timeout,
            )
        except ShellError as e:
            raise GitRepositoryError(f"Failed to configure remote tracking refs: {e.detail}")

    def _fetch(self, bare_repo_path: Path) -> None:
        try:
            run_git("fetch", "--prune", "origin", cwd=bare_repo_path, check=True, timeout=self.timeout)
        except ShellError as e:
            raise GitRepositoryError(f"Failed to fetch from origin: {e.detail}")

    def update_main_branch(self, bare_repo_path: Path) -> None:
        """Force the local main branch to the remote-tracking main branch."""
        main_branch = self.git_config.main_branch
        logger.info(f"Updating {main_branch} to match remote {main_branch} exactly...")
        try:
            run_git(
                "update-ref", f"refs/heads/{main_branch}", f"refs/remotes/origin/{main_branch}",
                cwd=bare_repo_path, check=True, timeout=self.timeout,
            )
        except ShellError as e:
            raise GitRepositoryError(
                f"Failed to update {main_branch} from origin/{main_branch}: {e.detail}"
            )


def resolve_commit(repo_path: Path, ref: str, timeout: Optional[float] = None) -> Optional[str]:
    """Return the commit id a ref points at, or None if it does not resolve."""
    result = run_git("rev-parse", "--verify", "--quiet", f"{ref}^{{commit}}", cwd=repo_path, timeout=timeout)
    if not result.success:
        return None
    return result.stdout.strip() or None


def remove_worktree(bare_repo_path: Optional[Path], worktree_path: Path, timeout: Optional[float] = None) -> bool:
    """Deregister a worktree and delete its directory.

    Deregistration goes through the bare repository when it exists. The
    directory is removed whether or not deregistration worked, and dangling
    registrations are pruned afterwards.

    Returns:
        True if git deregistered the worktree, False if the directory had to be removed directly
    """
    deregistered = False
    has_repo = bare_repo_path is not None and Path(bare_repo_path).is_dir()

    if has_repo:
        try:
            result = run_git(
                "worktree", "remove", "--force", str(worktree_path), cwd=bare_repo_path, timeout=timeout
            )
            deregistered = result.success
            if not deregistered:
                logger.debug(f"git worktree remove failed: {result.stderr.strip()}")
        except ShellError as e:
            logger.debug(f"git worktree remove failed: {e}")

    if worktree_path.exists():
        shutil.rmtree(worktree_path)

    if has_repo:
        try:
            run_git("worktree", "prune", cwd=bare_repo_path, check=True, timeout=timeout)
        except ShellError as e:
            logger.warning(f"Failed to prune worktree registrations: {e.detail}")

    return deregistered


class PRWorktreeBuilder:
    """Builds a PR worktree merged with the main branch and writes its diff."""

    def __init__(self, bare_repo_path: Path, git_config: GitConfig, timeout: Optional[float] = None):
        self.bare_repo_path = Path(bare_repo_path)
        self.git_config = git_config
        self.timeout = timeout

    @property
    def main_ref(self) -> str:
        return f"origin/{self.git_config.main_branch}"

    def build(
        self,
        source_branch: str,
        worktree_path: Path,
        diff_path: Path,
        fail_on_conflict: bool = False,
    ) -> MergeOutcome:
        """Create the worktree, merge the main branch into it and write the diff.

        Args:
            source_branch: PR source branch without refs/heads/
            worktree_path: Where to create the worktree
            diff_path: Where to write the patch
            fail_on_conflict: Raise instead of continuing when the merge conflicts

        Returns:
            Merge outcome; the diff may contain conflict markers when not clean

        Raises:
            BranchNotFoundError: If origin/<source_branch> does not exist
            WorktreeError: If the worktree cannot be created
            MergeConflictError: If the merge conflicts and fail_on_conflict is set
            GitRepositoryError: If the diff cannot be produced
        """
        diff_path.unlink(missing_ok=True)

        if worktree_path.exists():
            logger.info("Removing existing worktree...")
            remove_worktree(self.bare_repo_path, worktree_path, timeout=self.timeout)

        logger.info(f"Creating worktree for branch {source_branch}...")
        logger.info("Verifying branch exists...")
        source_ref = f"origin/{source_branch}"
        if resolve_commit(self.bare_repo_path, f"refs/remotes/{source_ref}", timeout=self.timeout) is None:
            raise BranchNotFoundError(f"Branch {source_ref} not found")

        self._add_worktree(worktree_path, source_ref)

        outcome = self.merge_main(worktree_path)
        if not outcome.clean and fail_on_conflict:
            raise MergeConflictError(
                f"Merging {self.main_ref} into {source_branch} produced conflicts",
                outcome.conflicted_files,
            )

        self.write_diff(worktree_path, diff_path)
        logger.info(f"Worktree created at {worktree_path}")
        return outcome

    def _add_worktree(self, worktree_path: Path, source_ref: str) -> None:
        worktree_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            run_git(
                "worktree", "add", "--detach", str(worktree_path), source_ref,
                cwd=self.bare_repo_path, check=True, timeout=self.timeout,
            )
        except ShellError as e:
            raise WorktreeError(f"Failed to create worktree: {e.detail}")

    def merge_main(self, worktree_path: Path) -> MergeOutcome:
        """Merge the remote main branch into the worktree checkout.

        A failed merge is not fatal here; whatever state the merge leaves
        behind, conflict markers included, is kept.
        """
        logger.info(f"Merging {self.git_config.main_branch} branch into worktree...")
        result = run_git(
            "-c", f"user.name={self.git_config.merge_user_name}",
            "-c", f"user.email={self.git_config.merge_user_email}",
            "merge", self.main_ref, "--no-edit",
            cwd=worktree_path, timeout=self.timeout,
        )
        if result.success:
            return MergeOutcome(clean=True)

        conflicted_files = self.conflicted_files(worktree_path)
        logger.warning("Merge conflicts detected, continuing with current state")
        if conflicted_files:
            logger.warning(f"Conflicted files: {', '.join(conflicted_files)}")
        else:
            logger.debug(f"merge output: {result.stdout.strip()} {result.stderr.strip()}")
        return MergeOutcome(clean=False, conflicted_files=conflicted_files)

    def conflicted_files(self, worktree_path: Path) -> List[str]:
        result = run_git("diff", "--name-only", "--diff-filter=U", cwd=worktree_path, timeout=self.timeout)
        if not result.success:
            return []
        return [line for line in result.stdout.splitlines() if line.strip()]

    def write_diff(self, worktree_path: Path, diff_path: Path) -> None:
        """Write ``git diff origin/<main>`` of the worktree to ``diff_path`` byte for byte."""
        logger.info("Generating diff patch...")
        try:
            result = run_git(
                "diff", self.main_ref, cwd=worktree_path, check=True, timeout=self.timeout, text=False
            )
        except ShellError as e:
            raise GitRepositoryError(f"Failed to generate diff: {e.detail}")

        atomic_write_bytes(diff_path, result.stdout)
        logger.info(f"Diff patch saved to {diff_path}")


def list_changed_files(
    worktree_path: Path, main_branch: str, timeout: Optional[float] = None
) -> List[ChangedFile]:
    """List files the worktree changes relative to origin/<main_branch>.

    Raises:
        GitRepositoryError: If git cannot compute the file list
    """
    try:
        result = run_git(
            "diff", "--name-status", f"origin/{main_branch}",
            cwd=worktree_path, check=True, timeout=timeout,
        )
    except ShellError as e:
        raise GitRepositoryError(f"Failed to list changed files: {e.detail}")

    changed = []
    for line in result.stdout.splitlines():
        parts = line.split("\t")
        if len(parts) < 2:
            continue
        # Renames and copies list old and new paths; keep the new one
        changed.append(ChangedFile(path=parts[-1], change_type=ChangeType.from_status(parts[0])))
    return changed
