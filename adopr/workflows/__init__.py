"""Workflow modules for fetching and cleaning up pull requests."""

from adopr.workflows.cleanup import CleanupWorkflowError, cleanup_pr_workflow
from adopr.workflows.fetch import (
    FetchWorkflowError,
    fetch_pr_workflow,
    validate_fetch_prerequisites,
    write_metadata,
)
from adopr.workflows.status import (
    get_changed_files,
    get_work_item_status,
    group_changed_files,
    list_work_items,
)

__all__ = [
    # Fetch workflow
    "fetch_pr_workflow",
    "validate_fetch_prerequisites",
    "write_metadata",
    "FetchWorkflowError",
    # Cleanup workflow
    "cleanup_pr_workflow",
    "CleanupWorkflowError",
    # Status
    "get_changed_files",
    "get_work_item_status",
    "group_changed_files",
    "list_work_items",
]
