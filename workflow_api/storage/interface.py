from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Tuple

from workflow_api.domain.graph import WorkflowGraph


class WorkflowStore(ABC):
    """
    Abstract interface for workflow persistence. Supports both a local
    filesystem and a SQL database.

    ``save`` is the only write path for a graph and uses optimistic
    concurrency: it succeeds only when the stored version still equals
    the version the caller's edit was based on.
    """

    @abstractmethod
    def create(self, name: str, description: str = "", graph: Optional[WorkflowGraph] = None) -> Dict[str, Any]:
        """
        Create a workflow, at version 0.

        Args:
            name: Workflow name
            description: Workflow description (optional)
            graph: Initial graph (optional, defaults to an empty graph)

        Returns:
            Summary of the created workflow
        """
        pass

    @abstractmethod
    def get(self, workflow_id: str) -> Dict[str, Any]:
        """
        Get a workflow summary.

        Raises:
            NotFoundError: If the workflow does not exist
        """
        pass

    @abstractmethod
    def list(self) -> List[Dict[str, Any]]:
        """Summaries of every workflow, oldest first."""
        pass

    @abstractmethod
    def load(self, workflow_id: str) -> Tuple[WorkflowGraph, int]:
        """
        Load a workflow graph.

        Args:
            workflow_id: Workflow ID

        Returns:
            The graph and its stored version, read together

        Raises:
            NotFoundError: If the workflow does not exist
        """
        pass

    @abstractmethod
    def save(self, workflow_id: str, graph: WorkflowGraph, expected_version: int) -> int:
        """
        Persist a graph if the stored version is still ``expected_version``.

        Args:
            workflow_id: Workflow ID
            graph: Graph to store; its own ``version`` field is ignored
            expected_version: Version the edit was based on

        Returns:
            The new version (``expected_version + 1``)

        Raises:
            NotFoundError: If the workflow does not exist
            VersionConflictError: If another save happened in between;
                stored state is left untouched
        """
        pass

    @abstractmethod
    def update_details(self, workflow_id: str, name: Optional[str] = None,
                       description: Optional[str] = None) -> Dict[str, Any]:
        """Rename or re-describe a workflow. Does not touch the graph version."""
        pass

    @abstractmethod
    def delete(self, workflow_id: str) -> Dict[str, Any]:
        """
        Delete a workflow.

        Returns:
            Summary of the deleted workflow

        Raises:
            NotFoundError: If the workflow does not exist
        """
        pass


def summarize(workflow_id: str, name: str, description: str, graph: WorkflowGraph,
              version: int, created_at: str, updated_at: str) -> Dict[str, Any]:
    """Summary dict shared by every store implementation."""
    node_types = []
    for node in graph.nodes:
        if node.type.value not in node_types:
            node_types.append(node.type.value)
    return {
        "id": workflow_id,
        "name": name,
        "description": description or "",
        "version": version,
        "node_count": len(graph.nodes),
        "edge_count": len(graph.edges),
        "node_types": node_types,
        "created_at": created_at,
        "updated_at": updated_at,
    }
