"""Domain error hierarchy for clean exception handling."""
from __future__ import annotations

from typing import TYPE_CHECKING, List

if TYPE_CHECKING:
    from workflow_api.domain.validation import ValidationIssue


class DomainError(Exception):
    """Base for all domain errors."""


class NotFoundError(DomainError):
    """Resource not found."""


class ValidationError(DomainError):
    """Invalid input or state."""


class ConflictError(DomainError):
    """Resource conflict (e.g., duplicate id)."""


class VersionConflictError(ConflictError):
    """A save was based on a version that is no longer current.

    Retryable: the caller should reload the workflow, re-apply its change
    and save again with the fresh version.
    """

    retryable = True

    def __init__(self, workflow_id: str, expected_version: int, current_version: int):
        self.workflow_id = workflow_id
        self.expected_version = expected_version
        self.current_version = current_version
        super().__init__(
            f"Workflow {workflow_id} is at version {current_version}, "
            f"save was based on version {expected_version}"
        )


class UnknownNodeTypeError(DomainError):
    """Node type is not present in the registry."""

    def __init__(self, node_type: object):
        self.node_type = node_type
        super().__init__(f"Unknown node type: {node_type!r}")


class GraphRejectedError(DomainError):
    """A save was refused because validation produced error-severity issues."""

    def __init__(self, workflow_id: str, issues: List[ValidationIssue]):
        self.workflow_id = workflow_id
        self.issues = issues
        errors = [issue for issue in issues if issue.severity == "error"]
        super().__init__(
            f"Workflow {workflow_id} has {len(errors)} blocking validation error(s)"
        )
