"""adopr - Azure DevOps pull request fetcher.

Stages Azure DevOps pull requests for review: writes PR metadata, keeps a bare
mirror of the repository, and produces a worktree and diff of the source
branch merged with the main branch.
"""

__version__ = "0.1.0"
