"""Specification pattern for reusable query logic over workflow summaries."""
from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List


class Specification(ABC):
    """Abstract base for specifications (query filters)."""

    @abstractmethod
    def is_satisfied_by(self, candidate: Dict[str, Any]) -> bool:
        """Check if candidate satisfies this specification."""
        pass

    def and_(self, other: Specification) -> Specification:
        """Combine with AND logic."""
        return AndSpecification(self, other)

    def or_(self, other: Specification) -> Specification:
        """Combine with OR logic."""
        return OrSpecification(self, other)

    def not_(self) -> Specification:
        """Negate this specification."""
        return NotSpecification(self)


class AndSpecification(Specification):
    """AND composite specification."""

    def __init__(self, left: Specification, right: Specification):
        self.left = left
        self.right = right

    def is_satisfied_by(self, candidate: Dict[str, Any]) -> bool:
        return self.left.is_satisfied_by(candidate) and self.right.is_satisfied_by(candidate)


class OrSpecification(Specification):
    """OR composite specification."""

    def __init__(self, left: Specification, right: Specification):
        self.left = left
        self.right = right

    def is_satisfied_by(self, candidate: Dict[str, Any]) -> bool:
        return self.left.is_satisfied_by(candidate) or self.right.is_satisfied_by(candidate)


class NotSpecification(Specification):
    """NOT specification."""

    def __init__(self, spec: Specification):
        self.spec = spec

    def is_satisfied_by(self, candidate: Dict[str, Any]) -> bool:
        return not self.spec.is_satisfied_by(candidate)


# Workflow Specifications

class WorkflowByName(Specification):
    """Finds workflows by name (case-insensitive contains)."""

    def __init__(self, name_pattern: str):
        self.pattern = name_pattern.lower()

    def is_satisfied_by(self, workflow: Dict[str, Any]) -> bool:
        return self.pattern in (workflow.get("name") or "").lower()


class WorkflowHasNodeType(Specification):
    """Workflows containing at least one node of the given type."""

    def __init__(self, node_type: str):
        self.node_type = str(getattr(node_type, "value", node_type))

    def is_satisfied_by(self, workflow: Dict[str, Any]) -> bool:
        return self.node_type in workflow.get("node_types", [])


class WorkflowUpdatedAfter(Specification):
    """Workflows saved after a point in time."""

    def __init__(self, since: datetime):
        self.since = since

    def is_satisfied_by(self, workflow: Dict[str, Any]) -> bool:
        updated_at = workflow.get("updated_at")
        if isinstance(updated_at, str):
            updated_at = datetime.fromisoformat(updated_at)
        return updated_at is not None and updated_at > self.since


# Helper function to filter collections

def filter_by_specification(items: List[Dict[str, Any]], spec: Specification) -> List[Dict[str, Any]]:
    """Filter a collection using a specification."""
    return [item for item in items if spec.is_satisfied_by(item)]
